# =============================================================================
# File: novel_sync/user_credit/exceptions.py
# Description: UserCredit and recharge domain exceptions
# =============================================================================

from novel_sync.common.exceptions.exceptions import (
    ConflictError,
    DomainError,
    ResourceNotFoundError,
)


class UserCreditError(DomainError):
    """Base exception for UserCredit domain"""
    pass


class UserNotFoundError(ResourceNotFoundError):
    """No account matches the external identifier"""
    def __init__(self, email: str):
        super().__init__(f"User not found: {email}")
        self.email = email


class InsufficientCreditError(UserCreditError):
    """User has no credit left to consume"""
    def __init__(self, user_id: str, credit: int):
        super().__init__(f"User {user_id} has insufficient credit: {credit}")
        self.user_id = user_id
        self.credit = credit


class RechargeOrderConflictError(ConflictError):
    """Base for orders that cannot be (re)processed"""
    def __init__(self, order_sn: str, message: str):
        super().__init__(message)
        self.order_sn = order_sn


class DuplicateOrderInProgressError(RechargeOrderConflictError):
    """Another execution holds the pending reservation for this order"""
    def __init__(self, order_sn: str):
        super().__init__(order_sn, f"Recharge order is still being processed: {order_sn}")


class OrderAlreadyFailedError(RechargeOrderConflictError):
    """Order previously failed; needs operator action, not a client retry"""
    def __init__(self, order_sn: str):
        super().__init__(order_sn, f"Recharge order previously failed, manual intervention required: {order_sn}")
