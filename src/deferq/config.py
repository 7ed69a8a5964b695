from typing import Literal

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    # Retry settings (milliseconds)
    backoff_strategy: Literal["exponential", "linear", "fixed"] = "exponential"
    base_retry_delay: int = Field(default=1000, ge=0)
    max_retry_delay: int = Field(default=3_600_000, ge=0)  # 1 hour
    default_max_retries: int = Field(default=3, ge=0)

    # Sync settings
    batch_size: int = Field(default=100, gt=0)
    concurrency: int = Field(default=3, gt=0)  # Reserved, tasks run sequentially
    execution_timeout: int = Field(default=30_000, gt=0)  # 30 seconds in milliseconds
    poll_interval: float = Field(default=10.0, gt=0)  # Seconds between background syncs

    # Database settings
    database_url: str = "sqlite+aiosqlite:///deferq.sqlite3"
    db_pool_size: int = 20
    db_max_overflow: int = 30
    db_echo: bool = False
    db_statement_timeout: int = 30000  # 30 seconds in milliseconds (PostgreSQL only)
    db_command_timeout: int = 30  # 30 seconds (asyncpg only)
    db_schema: str | None = None  # Schema holding the deferq tables, None for the default
    checkpoint_key: str = "default"  # Separate checkpoints per scheduler instance

    model_config = SettingsConfigDict(env_prefix="DEFERQ_")
