"""WebSocket connection handling and message parsing"""
import json
import logging

from fastapi import WebSocket, WebSocketDisconnect, status

from domain.constants import ERROR_INVALID_JSON
from domain.models import ClientEvent
from events.gateway import ChatGateway

logger = logging.getLogger(__name__)


def parse_client_event(message: str) -> ClientEvent:
    """Parse an inbound frame of the form {"event": name, "data": {...}}

    Raises:
        ValueError: The frame is not JSON or does not have that shape
    """
    payload = json.loads(message)
    if not isinstance(payload, dict):
        raise ValueError("Event frame must be a JSON object")

    event = payload.get("event")
    if not isinstance(event, str) or not event.strip():
        raise ValueError("Event frame needs an 'event' name")

    data = payload.get("data")
    if data is None:
        data = {}
    if not isinstance(data, dict):
        raise ValueError("Event 'data' must be a JSON object")

    return ClientEvent(event=event.strip(), data=data)


async def handle_websocket_connection(websocket: WebSocket, gateway: ChatGateway) -> None:
    """Serve one socket until it disconnects

    Frames are handled one at a time, so a connection's events take effect in
    the order it sent them.
    """
    session = await gateway.open_session(websocket)

    try:
        while True:
            message = await websocket.receive_text()

            # Anonymous sockets stay connected but are never served
            if not session.authenticated:
                continue

            try:
                client_event = parse_client_event(message)
            except ValueError as e:
                # json.JSONDecodeError is a ValueError too
                logger.warning("Invalid frame from user %s: %s", session.user_id, e)
                await gateway.send_error(session, ERROR_INVALID_JSON)
                continue

            await gateway.handle_event(session, client_event.event, client_event.data)

    except WebSocketDisconnect:
        logger.debug("Connection %s closed by client", session.connection_id)
    except Exception:
        logger.exception("WebSocket error on connection %s", session.connection_id)
        try:
            await websocket.close(code=status.WS_1011_INTERNAL_ERROR)
        except RuntimeError as e:
            # Already closed by the transport
            logger.debug("Close after error on connection %s failed: %s", session.connection_id, e)
    finally:
        await gateway.close_session(session)
