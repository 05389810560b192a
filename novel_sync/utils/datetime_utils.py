# =============================================================================
# File: novel_sync/utils/datetime_utils.py
# Description: Datetime helpers for ledger timestamps
# =============================================================================

from datetime import datetime, timezone
from typing import Optional

# Textual format used by the chaincode for createdAt / updatedAt / timestamp
LEDGER_TIMESTAMP_FORMAT = "%Y-%m-%d %H:%M:%S"


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def format_ledger_timestamp(value: Optional[datetime] = None) -> str:
    """Format a datetime the way the ledger does (defaults to now)."""
    return (value or datetime.now()).strftime(LEDGER_TIMESTAMP_FORMAT)
