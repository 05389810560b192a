# =============================================================================
# File: novel_sync/config/recharge_config.py
# Purpose: Configuration for the recharge workflow and request signing
# =============================================================================

import logging
from functools import lru_cache
from typing import Optional

from pydantic import Field, SecretStr
from pydantic_settings import SettingsConfigDict

from novel_sync.common.base.base_config import BaseConfig

log = logging.getLogger("novel_sync.config.recharge")

# Used only when RECHARGE_SECRET_KEY is unset; production must override it
DEFAULT_RECHARGE_SECRET_KEY = "your-secret-key-change-in-production"

_fallback_warned = False


class RechargeConfig(BaseConfig):
    """Configuration for the recharge workflow"""

    model_config = SettingsConfigDict(
        **{**BaseConfig.model_config, 'env_prefix': 'RECHARGE_'},
    )

    # HMAC-SHA256 signing key shared with the payment provider
    secret_key: Optional[SecretStr] = Field(default=None, description="HMAC signing key")

    # Replay window
    max_request_age_seconds: int = Field(default=300, description="Max accepted request age")

    # Credits added per recharge; one fixed package per deployment
    package_amount: int = Field(default=150, description="Credits added per recharge")

    def get_signing_key(self) -> str:
        """Return the signing key, falling back to the default with a warning."""
        global _fallback_warned
        if self.secret_key is not None and self.secret_key.get_secret_value():
            return self.secret_key.get_secret_value()

        if not _fallback_warned:
            log.warning("RECHARGE_SECRET_KEY is not set, using the default signing key")
            _fallback_warned = True
        return DEFAULT_RECHARGE_SECRET_KEY


@lru_cache(maxsize=1)
def get_recharge_config() -> RechargeConfig:
    """Get recharge configuration singleton (cached)."""
    return RechargeConfig()


def reset_recharge_config() -> None:
    """Reset config singleton (for testing)."""
    global _fallback_warned
    _fallback_warned = False
    get_recharge_config.cache_clear()
