# =============================================================================
# File: novel_sync/config/ledger_config.py
# Purpose: Configuration for the ledger gateway bridge and event feed
# =============================================================================

from functools import lru_cache
from typing import Optional

from pydantic import Field, SecretStr
from pydantic_settings import SettingsConfigDict

from novel_sync.common.base.base_config import BaseConfig


class LedgerConfig(BaseConfig):
    """Configuration for ledger access"""

    model_config = SettingsConfigDict(
        **{**BaseConfig.model_config, 'env_prefix': 'LEDGER_'},
    )

    # Gateway bridge
    base_url: str = Field(default="http://localhost:7080", description="Ledger gateway bridge URL")
    api_token: Optional[SecretStr] = Field(default=None, description="Bearer token for the bridge")
    channel: str = Field(default="mychannel", description="Channel name")
    chaincode: str = Field(default="novel-basic", description="Chaincode name")

    # Per-call deadlines (seconds)
    evaluate_timeout_seconds: float = Field(default=15.0, description="Evaluate deadline")
    endorse_timeout_seconds: float = Field(default=30.0, description="Endorsement deadline")
    submit_timeout_seconds: float = Field(default=15.0, description="Submit deadline")
    commit_status_timeout_seconds: float = Field(default=120.0, description="Commit status deadline")

    # Event feed
    start_block: Optional[int] = Field(default=None, description="Start block for replay (None = live tail)")
    event_poll_timeout_seconds: float = Field(default=30.0, description="Long-poll timeout for event feed")

    @property
    def submit_deadline_seconds(self) -> float:
        """Total deadline for a submit: endorsement + ordering + commit wait"""
        return self.submit_timeout_seconds + self.commit_status_timeout_seconds


@lru_cache(maxsize=1)
def get_ledger_config() -> LedgerConfig:
    """Get ledger configuration singleton (cached)."""
    return LedgerConfig()


def reset_ledger_config() -> None:
    """Reset config singleton (for testing)."""
    get_ledger_config.cache_clear()
