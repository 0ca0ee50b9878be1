"""Environment-driven configuration with Pydantic v2."""

from typing import List, Literal, Optional
from pathlib import Path
from pydantic import Field, field_validator
from pydantic_settings import BaseSettings

from constants import DEFAULT_CACHE_KEY, DEFAULT_EMPTY_MESSAGE, DEFAULT_MESSAGES_TABLE


class Settings(BaseSettings):
    """Application settings driven entirely by environment variables."""

    # Server Configuration
    host: str = Field(default="0.0.0.0", env="HOST")
    port: int = Field(default=3010, env="PORT", ge=1024, le=65535)
    debug: bool = Field(default=False, env="DEBUG")
    workers: int = Field(default=1, env="WORKERS", ge=1, le=8)
    cors_origins: List[str] = Field(default=["*"], env="CORS_ORIGINS")

    # Database Configuration (row store)
    database_url: str = Field(default="sqlite+aiosqlite:///./data/messages.db", env="DATABASE_URL")
    database_echo: bool = Field(default=False, env="DATABASE_ECHO")
    database_pool_size: int = Field(default=20, env="DATABASE_POOL_SIZE", ge=1, le=100)
    database_max_overflow: int = Field(default=30, env="DATABASE_MAX_OVERFLOW", ge=0, le=100)
    messages_table: str = Field(default=DEFAULT_MESSAGES_TABLE, env="MESSAGES_TABLE",
                                pattern=r"^[A-Za-z_][A-Za-z0-9_]*$")

    # Cache Configuration
    redis_url: Optional[str] = Field(default=None, env="REDIS_URL")
    redis_enabled: bool = Field(default=False, env="REDIS_ENABLED")
    cache_ttl: int = Field(default=60, env="CACHE_TTL", ge=1)

    # Message Service
    message_cache_key: str = Field(default=DEFAULT_CACHE_KEY, env="MESSAGE_CACHE_KEY", min_length=1)
    empty_message_text: str = Field(default=DEFAULT_EMPTY_MESSAGE, env="EMPTY_MESSAGE_TEXT")
    cache_empty_default: bool = Field(default=True, env="CACHE_EMPTY_DEFAULT")
    message_max_length: int = Field(default=10000, env="MESSAGE_MAX_LENGTH", ge=1)

    # Service Timeouts (seconds)
    store_timeout: float = Field(default=5.0, env="STORE_TIMEOUT", gt=0, le=60)
    cache_timeout: float = Field(default=1.0, env="CACHE_TIMEOUT", gt=0, le=30)

    # Logging
    log_level: str = Field(default="INFO", env="LOG_LEVEL")
    log_format: Literal["json", "console"] = Field(default="json", env="LOG_FORMAT")
    log_file: Optional[str] = Field(default=None, env="LOG_FILE")

    @field_validator("database_url")
    @classmethod
    def validate_database_url(cls, v):
        """Ensure database directory exists for file-backed SQLite."""
        if v and v.startswith("sqlite") and ":///" in v:
            db_path = v.split("///")[1]
            if db_path and db_path != ":memory:":
                Path(db_path).parent.mkdir(parents=True, exist_ok=True)
        return v

    @property
    def is_sqlite(self) -> bool:
        """SQLite engines reject pool sizing arguments."""
        return self.database_url.startswith("sqlite")

    @property
    def is_development(self) -> bool:
        """Check if running in development mode."""
        return self.debug

    @property
    def is_production(self) -> bool:
        """Check if running in production mode."""
        return not self.debug

    model_config = {
        "env_file": ".env",
        "env_file_encoding": "utf-8",
        "case_sensitive": False,
        "extra": "ignore",
        "env_parse_none_str": "none",
        "env_nested_delimiter": "__",
    }
