"""Process configuration read from environment variables.

Values can also come from a .env file in the working directory.
"""

from functools import lru_cache
from typing import Any, Literal

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Settings for the warehouse connection, the table store and the server."""

    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    # Snowflake
    SNOWFLAKE_ACCOUNT: str = Field(default="")
    SNOWFLAKE_USER: str = Field(default="")
    SNOWFLAKE_PASSWORD: str = Field(default="")
    SNOWFLAKE_ROLE: str | None = Field(default=None)
    SNOWFLAKE_WAREHOUSE: str | None = Field(default=None)
    # 0 fetches every table
    SNOWFLAKE_TABLE_LIMIT: int = Field(default=0, ge=0)

    # Table store
    DATABASE_URL: str = Field(default="sqlite+aiosqlite:///catalog.db")

    # Reconciliation
    SYNC_CONCURRENCY: int = Field(default=1, ge=1)

    # Logging
    LOG_LEVEL: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = Field(default="INFO")

    # Server
    HOST: str = Field(default="127.0.0.1")
    PORT: int = Field(default=8000)

    @field_validator("LOG_LEVEL", mode="before")
    @classmethod
    def _normalize_log_level(cls, value: Any) -> Any:
        return value.upper() if isinstance(value, str) else value

    def snowflake_connect_kwargs(self) -> dict[str, str]:
        """Keyword arguments for snowflake.connector.connect()."""
        kwargs = {
            "account": self.SNOWFLAKE_ACCOUNT,
            "user": self.SNOWFLAKE_USER,
            "password": self.SNOWFLAKE_PASSWORD,
            "role": self.SNOWFLAKE_ROLE,
            "warehouse": self.SNOWFLAKE_WAREHOUSE,
        }
        return {name: value for name, value in kwargs.items() if value}


@lru_cache
def get_settings() -> Settings:
    return Settings()
