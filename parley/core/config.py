"""
Application configuration using Pydantic Settings.

Values are read from environment variables (and an optional .env file).
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
    ENVIRONMENT: Literal["local", "test"] = "local"
    DEBUG: bool = False
    LOG_LEVEL: str = "INFO"

    # ===========================================
    # Database
    # ===========================================
    DATABASE_URL: str = "sqlite+aiosqlite:///./parley.db"

    # ===========================================
    # Chat limits
    # ===========================================
    # Oldest messages beyond this count are deleted on every write
    MESSAGE_LIMIT_PER_CHAT: int = 2000
    SEARCH_RESULT_LIMIT: int = 50
    USERNAME_MAX_LENGTH: int = 64
    MESSAGE_TEXT_MAX_LENGTH: int = 2000
    ATTACHMENT_REF_MAX_LENGTH: int = 512
    GROUP_NAME_MAX_LENGTH: int = 128
    DEFAULT_GROUP_NAME: str = "New group"
    SYSTEM_SENDER_NAME: str = "System"

    # ===========================================
    # Credentials
    # ===========================================
    PASSWORD_HASH_ITERATIONS: int = 600_000

    # ===========================================
    # Server
    # ===========================================
    HOST: str = "0.0.0.0"
    PORT: int = 3000
    ALLOWED_ORIGINS: List[str] = Field(
        default=["http://localhost:3000", "http://localhost:5173"]
    )

    # ===========================================
    # Attachments
    # ===========================================
    STORAGE_BASE_PATH: str = "./uploads"
    UPLOAD_MAX_BYTES: int = 40 * 1024 * 1024
    # Exact MIME types, or a "type/*" prefix
    UPLOAD_ALLOWED_TYPES: List[str] = Field(
        default=["image/*", "application/pdf", "text/plain"]
    )


@lru_cache()
def get_settings() -> Settings:
    """
    Get cached settings instance.

    Using lru_cache ensures settings are loaded only once.
    """
    return Settings()
