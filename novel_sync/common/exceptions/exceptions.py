# novel_sync/common/exceptions/exceptions.py
# =============================================================================
# Custom exceptions for novel_sync
# =============================================================================


class NovelSyncException(Exception):
    """Base exception for novel_sync"""
    pass


class ValidationError(NovelSyncException):
    """Raised when request validation fails"""
    pass


class NotFoundError(NovelSyncException):
    """Raised when a resource is not found"""
    pass


# Alias for compatibility
ResourceNotFoundError = NotFoundError


class ConflictError(NovelSyncException):
    """Raised when there's a conflict (e.g., duplicate)"""
    pass


class DomainError(NovelSyncException):
    """Raised for domain-specific errors"""
    pass


class InfrastructureError(NovelSyncException):
    """Raised for infrastructure errors"""
    pass


# =============================================================================
# Ledger boundary
# =============================================================================

class LedgerReadError(InfrastructureError):
    """Evaluate transaction failed or returned an undecodable result"""

    def __init__(self, tx_name: str, reason: str):
        super().__init__(f"Ledger read {tx_name} failed: {reason}")
        self.tx_name = tx_name
        self.reason = reason


class LedgerWriteError(InfrastructureError):
    """Submit transaction failed"""

    # A plain write failure was rejected by the ledger; a timeout may still commit
    outcome_unknown: bool = False

    def __init__(self, tx_name: str, reason: str):
        super().__init__(f"Ledger write {tx_name} failed: {reason}")
        self.tx_name = tx_name
        self.reason = reason


class LedgerTimeoutError(LedgerWriteError):
    """
    Ledger call did not complete within its deadline.

    The mutation may still have committed. Callers must treat this as
    retryable and rely on their own idempotency key, not on the absence
    of a result.
    """

    outcome_unknown = True

    def __init__(self, tx_name: str, timeout_seconds: float):
        super().__init__(tx_name, f"timed out after {timeout_seconds}s")
        self.timeout_seconds = timeout_seconds


# =============================================================================
# Projection side
# =============================================================================

class ProjectionWriteError(InfrastructureError):
    """Projection store write failed (non-fatal, never surfaced to callers)"""

    def __init__(self, collection: str, reason: str):
        super().__init__(f"Projection write to {collection} failed: {reason}")
        self.collection = collection
        self.reason = reason


class SubscriptionError(InfrastructureError):
    """Event feed subscription could not be opened or broke mid-stream"""
    pass


class PayloadDecodeError(InfrastructureError):
    """Ledger event payload could not be decoded"""

    def __init__(self, event_name: str, reason: str):
        super().__init__(f"Cannot decode {event_name} payload: {reason}")
        self.event_name = event_name
        self.reason = reason
