# =============================================================================
# File: novel_sync/ledger/ports/ledger_port.py
# Description: Port interfaces for the ledger and its event feed
# Pattern: Hexagonal Architecture / Ports & Adapters
# =============================================================================

from __future__ import annotations

from dataclasses import dataclass
from typing import AsyncIterator, Optional, Protocol, runtime_checkable


@dataclass(frozen=True)
class LedgerEvent:
    """One chaincode event as delivered by the feed"""
    event_name: str
    payload: bytes
    block_number: int
    tx_id: Optional[str] = None


@runtime_checkable
class LedgerPort(Protocol):
    """
    Port: Ledger transactions

    Implemented by: HttpLedgerAdapter (novel_sync/infra/ledger_http/adapter.py)

    Arguments are passed as strings, matching the chaincode's transaction
    signatures. Both methods return the raw result bytes.
    """

    async def submit(self, tx_name: str, *args: str) -> bytes:
        """
        Endorse, order and commit a transaction.

        A successful return means the transaction committed. The chaincode
        may emit one event for it.
        """
        ...

    async def evaluate(self, tx_name: str, *args: str) -> bytes:
        """Run a read-only query transaction. Emits no event."""
        ...


@runtime_checkable
class EventFeedPort(Protocol):
    """
    Port: Chaincode event feed

    Delivery is ordered per block and best-effort. Events can repeat across
    subscriptions, so consumers must be idempotent.
    """

    async def subscribe(self, start_block: Optional[int] = None) -> AsyncIterator[LedgerEvent]:
        """
        Open a subscription and return an async iterator of events.

        Raising from this coroutine means the subscription could not be
        opened. Errors raised while iterating mean the stream broke.

        Args:
            start_block: Replay from this block; None tails new blocks only.
        """
        ...
