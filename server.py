"""Main FastAPI application - real-time chat server for the care portal"""
import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, HTTPException, Request, WebSocket
from starlette.middleware.sessions import SessionMiddleware
import uvicorn

from database.message_store import MessageStore
from domain.errors import StoreUnavailableError
from domain.rooms import derive_room_id
from events.gateway import ChatGateway
from realtime.handler import handle_websocket_connection
from realtime.session import resolve_identity
from settings import Settings, get_settings

logger = logging.getLogger(__name__)


def create_app(settings: Settings | None = None) -> FastAPI:
    """Build the chat application with its own store, presence and rooms"""
    settings = settings or get_settings()
    logging.basicConfig(level=settings.log_level.upper())

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """Open the message store and build the gateway for this app"""
        store = MessageStore(settings.database_path)
        await store.init()

        app.state.store = store
        app.state.gateway = ChatGateway(
            store,
            session_key=settings.session_user_key,
            enforce_sender_identity=settings.enforce_sender_identity,
            restrict_rooms_to_participants=settings.restrict_rooms_to_participants,
        )
        logger.info("Chat gateway started")

        yield

        await store.close()
        logger.info("Application shutdown complete")

    app = FastAPI(title="Care Portal Chat", lifespan=lifespan)
    app.add_middleware(
        SessionMiddleware,
        secret_key=settings.secret_key,
        session_cookie=settings.session_cookie,
    )

    @app.get("/health")
    async def health(request: Request) -> dict:
        gateway: ChatGateway = request.app.state.gateway
        return {
            "status": "ok",
            "connections": gateway.connection_manager.get_connection_count(),
            "online": gateway.presence.get_online_count(),
        }

    @app.get("/chat/history/{peer_id}")
    async def get_history(peer_id: str, request: Request) -> dict:
        """Room history with a peer, oldest first, to seed the chat view"""
        user_id = resolve_identity(request, settings.session_user_key)
        if user_id is None:
            raise HTTPException(status_code=401, detail="Not authenticated")

        room_id = derive_room_id(user_id, peer_id)
        try:
            messages = await request.app.state.store.list_by_room(room_id)
        except StoreUnavailableError as e:
            logger.error("Error loading history for room %s: %s", room_id, e)
            raise HTTPException(status_code=503, detail="Chat history unavailable") from e
        return {
            "roomId": room_id,
            "messages": [message.to_dict() for message in messages],
            "count": len(messages),
        }

    @app.websocket("/ws")
    async def websocket_endpoint(websocket: WebSocket) -> None:
        """WebSocket endpoint that delegates to handler"""
        await handle_websocket_connection(websocket, websocket.app.state.gateway)

    return app


app = create_app()


if __name__ == "__main__":
    settings = get_settings()
    uvicorn.run(app, host=settings.host, port=settings.port)
