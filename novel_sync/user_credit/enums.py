# =============================================================================
# File: novel_sync/user_credit/enums.py
# Description: UserCredit domain enumerations
# =============================================================================

from enum import Enum


class RechargeStatus(str, Enum):
    """Recharge order lifecycle: pending -> success | failed (terminal)"""
    PENDING = "pending"
    SUCCESS = "success"
    FAILED = "failed"

    @property
    def is_terminal(self) -> bool:
        return self is not RechargeStatus.PENDING


class CreditHistoryType(str, Enum):
    """Kinds of credit movement"""
    CONSUME = "consume"
    RECHARGE = "recharge"
    REWARD = "reward"
