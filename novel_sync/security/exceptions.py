# =============================================================================
# File: novel_sync/security/exceptions.py
# Description: Request authenticity / freshness exceptions
# =============================================================================

from novel_sync.common.exceptions.exceptions import ValidationError


class SignatureInvalidError(ValidationError):
    """HMAC signature does not match the signed parameters"""
    def __init__(self):
        super().__init__("Invalid request signature")


class TimestampExpiredError(ValidationError):
    """Request is older than the replay window"""
    def __init__(self, age_seconds: int, max_age_seconds: int):
        super().__init__(f"Request expired: age {age_seconds}s exceeds {max_age_seconds}s")
        self.age_seconds = age_seconds
        self.max_age_seconds = max_age_seconds


class TimestampFutureError(ValidationError):
    """Request timestamp lies in the future"""
    def __init__(self, timestamp: int, now: int):
        super().__init__(f"Request timestamp {timestamp} is in the future (now={now})")
        self.timestamp = timestamp
        self.now = now
