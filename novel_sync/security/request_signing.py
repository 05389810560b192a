# =============================================================================
# File: novel_sync/security/request_signing.py
# Description: HMAC-SHA256 request signatures and replay-window checks
# =============================================================================

"""
Signed request scheme shared with the payment provider.

    canonical = "&".join(f"{k}={v}" for k, v in sorted(params.items()))
    signature = hex(HMAC_SHA256(secret, canonical))

Both checks are pure functions and run before any state is touched.
"""

from __future__ import annotations

import hashlib
import hmac
import time
from typing import Any, Dict, Mapping, Optional, Union

from novel_sync.common.exceptions.exceptions import ValidationError
from novel_sync.config.logging_config import get_logger
from novel_sync.security.exceptions import (
    SignatureInvalidError,
    TimestampExpiredError,
    TimestampFutureError,
)

log = get_logger("novel_sync.security.request_signing")

DEFAULT_MAX_REQUEST_AGE_SECONDS = 300

# Wire names of the recharge fields covered by the signature
RECHARGE_SIGNED_FIELDS = ("actual_price", "email", "order_sn", "timestamp")


def canonical_string(params: Mapping[str, str]) -> str:
    return "&".join(f"{key}={params[key]}" for key in sorted(params))


def compute_signature(params: Mapping[str, str], secret: str) -> str:
    """Lowercase hex HMAC-SHA256 of the canonical parameter string."""
    digest = hmac.new(
        secret.encode("utf-8"),
        canonical_string(params).encode("utf-8"),
        hashlib.sha256,
    )
    return digest.hexdigest()


def validate_signature(params: Mapping[str, str], signature: str, secret: str) -> None:
    """
    Raises:
        SignatureInvalidError: signature does not match params
    """
    expected = compute_signature(params, secret)
    if not hmac.compare_digest(expected, signature or ""):
        log.warning(f"Signature mismatch for fields {sorted(params)}")
        raise SignatureInvalidError()


def validate_timestamp(
        timestamp: Union[int, str],
        now: Optional[int] = None,
        max_age_seconds: int = DEFAULT_MAX_REQUEST_AGE_SECONDS,
) -> None:
    """
    Accept a unix-seconds timestamp no newer than now and at most
    max_age_seconds old (the boundary itself is accepted).

    Raises:
        ValidationError: timestamp is not an integer
        TimestampFutureError: timestamp > now
        TimestampExpiredError: now - timestamp > max_age_seconds
    """
    try:
        ts = int(timestamp)
    except (TypeError, ValueError):
        raise ValidationError(f"Invalid request timestamp: {timestamp!r}")

    now = int(time.time()) if now is None else int(now)
    age = now - ts

    if age < 0:
        log.warning(f"Request timestamp {ts} is {-age}s in the future")
        raise TimestampFutureError(ts, now)
    if age > max_age_seconds:
        log.warning(f"Request timestamp {ts} expired: age {age}s > {max_age_seconds}s")
        raise TimestampExpiredError(age, max_age_seconds)


def build_recharge_signing_params(request: Union[Mapping[str, Any], Any]) -> Dict[str, str]:
    """
    The signed subset of a recharge request, keyed by wire name.

    Accepts a mapping of wire fields or a RechargeRequest model.
    """
    if not isinstance(request, Mapping):
        request = request.model_dump()
    return {field: str(request.get(field, "")) for field in RECHARGE_SIGNED_FIELDS}
