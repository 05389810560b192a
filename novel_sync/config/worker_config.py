# =============================================================================
# File: novel_sync/config/worker_config.py
# Purpose: Configuration for the ledger sync worker
# =============================================================================

from functools import lru_cache
from typing import List

from pydantic import Field
from pydantic_settings import SettingsConfigDict

from novel_sync.common.base.base_config import BaseConfig


class WorkerConfig(BaseConfig):
    """Configuration for the ledger sync worker"""

    model_config = SettingsConfigDict(
        **{**BaseConfig.model_config, 'env_prefix': 'SYNC_WORKER_'},
    )

    worker_id: str = Field(default="sync-worker-1", description="Instance identifier")

    # Reconciliation
    reconciliation_enabled: bool = Field(default=True, description="Run periodic consistency checks")
    reconciliation_interval_seconds: int = Field(default=300, description="Seconds between checks")
    reconciliation_error_backoff_seconds: int = Field(default=60, description="Backoff after a failed check")

    # Replay: when set, only these events are processed (from LEDGER_START_BLOCK or block 0)
    replay_event_names: List[str] = Field(default_factory=list, description="Event names to replay")

    # Metrics
    metrics_port: int = Field(default=0, description="Prometheus exporter port (0 = disabled)")

    # Shutdown
    shutdown_timeout_seconds: float = Field(default=30.0, description="Graceful stop deadline")


@lru_cache(maxsize=1)
def get_worker_config() -> WorkerConfig:
    """Get worker configuration singleton (cached)."""
    return WorkerConfig()


def reset_worker_config() -> None:
    """Reset config singleton (for testing)."""
    get_worker_config.cache_clear()
