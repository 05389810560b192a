# =============================================================================
# File: novel_sync/user_credit/events.py
# Description: UserCredit and CreditHistory payloads carried by ledger events
# =============================================================================

from __future__ import annotations

from pydantic import Field

from novel_sync.common.base.base_model import LedgerPayload, LedgerInt, LedgerStr


class UserCreditPayload(LedgerPayload):
    """
    UserCredit snapshot emitted by CreateUserCredit / UpdateUserCredit /
    DeleteUserCredit / ConsumeUserToken and returned by ReadUserCredit.
    """
    user_id: LedgerStr = Field(default="", alias="userId")
    credit: LedgerInt = 0
    total_used: LedgerInt = Field(default=0, alias="totalUsed")
    total_recharge: LedgerInt = Field(default=0, alias="totalRecharge")
    created_at: LedgerStr = Field(default="", alias="createdAt")
    updated_at: LedgerStr = Field(default="", alias="updatedAt")


class CreditHistoryPayload(LedgerPayload):
    """One credit movement, emitted by CreateCreditHistory"""
    id: LedgerStr = ""
    user_id: LedgerStr = Field(default="", alias="userId")
    amount: LedgerInt = 0
    type: LedgerStr = ""
    description: LedgerStr = ""
    timestamp: LedgerStr = ""
    novel_id: LedgerStr = Field(default="", alias="novelId")
