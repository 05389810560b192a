# =============================================================================
# File: novel_sync/config/mongo_config.py
# Purpose: Configuration for the MongoDB projection store
# =============================================================================

from functools import lru_cache
from pydantic import Field
from pydantic_settings import SettingsConfigDict

from novel_sync.common.base.base_config import BaseConfig


class MongoConfig(BaseConfig):
    """Configuration for the MongoDB projection store"""

    model_config = SettingsConfigDict(
        **{**BaseConfig.model_config, 'env_prefix': 'MONGODB_'},
    )

    # Connection
    uri: str = Field(default="mongodb://localhost:27017", description="MongoDB connection URI")
    database: str = Field(default="novel_rm", description="Projection database name")
    app_name: str = Field(default="novel-ledger-sync", description="Client app name reported to the server")

    # Timeouts
    connect_timeout_seconds: float = Field(default=10.0, description="Connect timeout")
    server_selection_timeout_seconds: float = Field(default=10.0, description="Server selection timeout")

    # Pool
    max_pool_size: int = Field(default=10, description="Max connections in pool")
    min_pool_size: int = Field(default=2, description="Min connections kept open")
    max_idle_time_seconds: int = Field(default=1800, description="Idle connection TTL")

    # Startup
    ensure_indexes_on_connect: bool = Field(default=True, description="Create unique indexes at startup")


@lru_cache(maxsize=1)
def get_mongo_config() -> MongoConfig:
    """Get MongoDB configuration singleton (cached)."""
    return MongoConfig()


def reset_mongo_config() -> None:
    """Reset config singleton (for testing)."""
    get_mongo_config.cache_clear()
