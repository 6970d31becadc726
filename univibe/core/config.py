"""
Application configuration using Pydantic Settings.

Backend switching is controlled by the ENVIRONMENT variable.
"""

from functools import lru_cache
from typing import List, Literal

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=True,
        extra="ignore",
    )

    # ===========================================
    # Environment
    # ===========================================
    # local: SQLite document backend, memory: in-process backend
    ENVIRONMENT: Literal["local", "memory"] = "local"
    DEBUG: bool = False
    LOG_LEVEL: str = "INFO"

    # ===========================================
    # Document backend
    # ===========================================
    DATABASE_URL: str = "sqlite+aiosqlite:///./univibe.db"
    CHATS_COLLECTION: str = "univibe_chats"

    # ===========================================
    # Chat
    # ===========================================
    # Joins the two sorted identities into a session id
    SESSION_ID_SEPARATOR: str = Field("_", min_length=1)

    # Append attempts before a send is reported as failed
    APPEND_MAX_ATTEMPTS: int = Field(5, ge=1)
    APPEND_RETRY_DELAY_MS: int = Field(50, ge=0)

    # ===========================================
    # Simulated replies
    # ===========================================
    REPLY_ENABLED: bool = True
    REPLY_MIN_DELAY_MS: int = Field(1500, ge=0)
    REPLY_JITTER_MS: int = Field(1500, ge=0)

    # ===========================================
    # Auth
    # ===========================================
    AUTH_PROVIDER: Literal["mock"] = "mock"
    AUTH_ENABLED: bool = True

    # ===========================================
    # Server
    # ===========================================
    HOST: str = "0.0.0.0"
    PORT: int = 8000
    ALLOWED_ORIGINS: List[str] = Field(
        default=["http://localhost:3000", "http://localhost:5173"]
    )

    @property
    def is_local(self) -> bool:
        """Check if running against the SQLite backend."""
        return self.ENVIRONMENT == "local"

    @property
    def is_memory(self) -> bool:
        """Check if running against the in-process backend."""
        return self.ENVIRONMENT == "memory"


@lru_cache()
def get_settings() -> Settings:
    """
    Get cached settings instance.

    Using lru_cache ensures settings are loaded only once.
    """
    return Settings()
