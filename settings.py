"""Application settings loaded from CHAT_* environment variables or a .env file"""
from functools import lru_cache

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Chat server settings"""

    model_config = SettingsConfigDict(env_prefix="CHAT_", env_file=".env", extra="ignore")

    # Server
    host: str = "localhost"
    port: int = 8765
    log_level: str = "INFO"

    # Message store
    database_path: str = "chat_history.db"

    # Shared HTTP session (issued by the portal's auth layer)
    secret_key: str = Field(default="change-me-in-production")
    session_cookie: str = "session"
    session_user_key: str = "user_id"

    # Authorization switches, off by default
    enforce_sender_identity: bool = False
    restrict_rooms_to_participants: bool = False


@lru_cache
def get_settings() -> Settings:
    return Settings()
