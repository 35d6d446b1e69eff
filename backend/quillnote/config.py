# @TASK P0-T0.3 - pydantic-settings based application settings

from functools import lru_cache
from typing import Literal

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Quillnote application settings.

    All values are loaded from environment variables.
    A .env file in the working directory is also supported.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
    )

    # --- Primary store ---
    DATABASE_URL: str = "sqlite+aiosqlite:///:memory:"
    DATABASE_ECHO: bool = False

    # --- Secondary mirror ---
    MIRROR_BACKEND: Literal["memory", "http", "none"] = "memory"
    MIRROR_URL: str = ""  # Base URL of the document store REST API
    MIRROR_API_KEY: str = ""
    MIRROR_TIMEOUT_SECONDS: float = 10.0
    MIRROR_MAX_ATTEMPTS: int = 2
    MIRROR_RETRY_DELAY_SECONDS: float = 0.5

    # --- Behaviour ---
    READ_CACHE_ENABLED: bool = True
    AUTOSAVE_DEBOUNCE_SECONDS: float = 1.0
    ENFORCE_OWNERSHIP: bool = True

    # --- Server ---
    CORS_ORIGINS: list[str] = [
        "http://localhost:5173",
        "http://127.0.0.1:5173",
    ]
    LOG_LEVEL: str = "INFO"
    HOST: str = "127.0.0.1"
    PORT: int = 8000

    @property
    def async_database_url(self) -> str:
        """Ensure the database URL uses an async driver."""
        url = self.DATABASE_URL
        if url.startswith("sqlite://"):
            url = url.replace("sqlite://", "sqlite+aiosqlite://", 1)
        elif url.startswith("postgresql://"):
            url = url.replace("postgresql://", "postgresql+asyncpg://", 1)
        return url

    @property
    def is_memory_database(self) -> bool:
        """True when the primary store lives only for the process lifetime."""
        url = self.async_database_url
        return url.startswith("sqlite") and (":memory:" in url or url.rstrip("/").endswith(":"))


@lru_cache
def get_settings() -> Settings:
    """Return cached application settings singleton."""
    return Settings()
