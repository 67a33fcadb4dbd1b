"""Application configuration management using pydantic-settings."""

from functools import lru_cache
from typing import Literal

from pydantic import Field, computed_field
from pydantic_settings import BaseSettings, SettingsConfigDict

ZERO_ADDRESS = "0x0000000000000000000000000000000000000000"


class Settings(BaseSettings):
    """Application settings with environment variable support."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Application
    app_name: str = Field(default="chainsync", description="Application name")
    environment: Literal["development", "testing", "staging", "production"] = Field(
        default="development", description="Runtime environment"
    )
    debug: bool = Field(default=False, description="Debug mode flag")

    # API
    api_v1_prefix: str = Field(default="/api/v1", description="API v1 prefix")
    allowed_origins: list[str] = Field(
        default=["http://localhost:3000"],
        description="CORS allowed origins",
    )
    autostart_sync: bool = Field(
        default=True, description="Start schedulers with the application"
    )

    # Indexers
    indexer_url: str = Field(
        default="https://ponder.frankencoin.com",
        description="Primary indexer base URL",
    )
    backup_indexer_url: str | None = Field(
        default=None, description="Backup indexer base URL (optional)"
    )
    indexer_status_timeout: float = Field(
        default=5.0, description="Indexer status probe timeout in seconds"
    )
    indexer_query_timeout: float = Field(
        default=30.0, description="Indexer GraphQL query timeout in seconds"
    )
    indexer_query_limit: int = Field(
        default=1000, description="Page size cap for indexer list queries"
    )
    indexer_status_keys: list[str] = Field(
        default=["Ethereum", "mainnet"],
        description="Chain keys tried in order when parsing the indexer status",
    )

    # Chains
    rpc_urls: dict[str, str] = Field(
        default={"mainnet": "https://ethereum-rpc.publicnode.com"},
        description="RPC endpoint per monitored chain",
    )
    primary_chain: str = Field(
        default="mainnet", description="Chain whose contracts are reconciled"
    )

    # Contract Addresses
    savings_address: str = Field(
        default=ZERO_ADDRESS, description="Savings (lead rate) contract address"
    )
    minting_hub_v1_address: str = Field(
        default=ZERO_ADDRESS, description="Minting hub V1 contract address"
    )
    minting_hub_v2_address: str = Field(
        default=ZERO_ADDRESS, description="Minting hub V2 contract address"
    )

    # Synchronization
    polling_delay: float = Field(
        default=2.0, description="Seconds between block height polls"
    )
    indexing_timeout_count: int = Field(
        default=3, description="Ticks a cycle may stay running before a forced reset"
    )
    health_check_interval: float = Field(
        default=30.0, description="Seconds between indexer health probes"
    )
    require_indexer_caught_up: bool = Field(
        default=True,
        description="Skip cycles while the routed indexer lags the chain head",
    )

    # Database
    database_enabled: bool = Field(
        default=False, description="Persist indexer health to PostgreSQL"
    )
    db_host: str = Field(default="localhost", description="PostgreSQL host")
    db_port: int = Field(default=5432, description="PostgreSQL port")
    db_user: str = Field(default="postgres", description="PostgreSQL user")
    db_password: str = Field(default="postgres", description="PostgreSQL password")
    db_name: str = Field(default="chainsync", description="PostgreSQL database name")

    # Logging
    log_level: str = Field(default="INFO", description="Logging level")
    log_format: Literal["json", "console"] = Field(
        default="console", description="Log output format"
    )

    @computed_field
    @property
    def database_url(self) -> str:
        """Construct database URL from components."""
        return (
            f"postgresql+asyncpg://{self.db_user}:{self.db_password}"
            f"@{self.db_host}:{self.db_port}/{self.db_name}"
        )

    @computed_field
    @property
    def has_backup_indexer(self) -> bool:
        """Whether a backup indexer is configured."""
        return bool(self.backup_indexer_url)

    @property
    def primary_rpc_url(self) -> str:
        """Get RPC URL of the chain whose contracts are reconciled."""
        try:
            return self.rpc_urls[self.primary_chain]
        except KeyError:
            raise ValueError(
                f"No RPC URL configured for primary chain {self.primary_chain!r}"
            ) from None


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
