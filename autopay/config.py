"""Settings — engine, chain, key-storage and scheduler configuration from the environment.

Invariants:
    - The encryption key and RPC URL come from the environment or .env only
    - get_settings() is cached: the Ticker, routes and alembic share one instance

Design Decisions:
    - pydantic-settings over raw os.environ: validation, type coercion, .env file support
    - Defaults target a local Postgres and the public testnet RPC
    - Every RPC call carries an explicit timeout (rpc_timeout_seconds); confirmation
      waits get their own, longer budget
"""

from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict
from functools import lru_cache


class Settings(BaseSettings):
    """Environment variables, case-insensitive (DATABASE_URL, RPC_URL, ...)."""

    model_config = SettingsConfigDict(env_file=".env", case_sensitive=False)

    # Database
    database_url: str = (
        "postgresql+asyncpg://autopay:autopay@db:5432/autopay"
    )

    @field_validator("database_url", mode="before")
    @classmethod
    def convert_postgres_url(cls, v: str) -> str:
        """Hosting providers hand out postgresql:// but asyncpg needs postgresql+asyncpg://."""
        if isinstance(v, str) and v.startswith("postgresql://"):
            return v.replace("postgresql://", "postgresql+asyncpg://", 1)
        return v

    database_pool_size: int = 10
    database_max_overflow: int = 5

    # Blockchain RPC
    rpc_url: str = "https://rpc.testnet.arc.network"
    chain_native_decimals: int = 18
    chain_native_symbol: str = "USDC"
    rpc_timeout_seconds: float = 30.0
    rpc_confirmation_timeout_seconds: float = 180.0
    rpc_max_retries: int = 3
    rpc_base_delay_ms: int = 500
    rpc_max_delay_ms: int = 10_000

    # Authorization material at rest (Fernet key, urlsafe base64)
    # Empty → ephemeral key per process (development only)
    encryption_key: str = ""

    # Scheduler
    scheduler_enabled: bool = True
    general_tick_seconds: float = 60.0
    conditional_tick_seconds: float = 30.0

    # API
    cors_origins: list[str] = ["http://localhost:5173"]

    # Observability
    log_level: str = "INFO"
    log_format: str = "json"


@lru_cache
def get_settings() -> Settings:
    return Settings()
