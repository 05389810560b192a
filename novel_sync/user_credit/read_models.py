# =============================================================================
# File: novel_sync/user_credit/read_models.py
# Description: UserCredit domain read models for MongoDB projections
# =============================================================================

from __future__ import annotations

from datetime import datetime
from typing import Annotated, Any, Dict, List, Optional

from pydantic import BaseModel, BeforeValidator, ConfigDict, Field

from novel_sync.common.base.base_model import LedgerStr
from novel_sync.user_credit.enums import RechargeStatus
from novel_sync.user_credit.events import CreditHistoryPayload, UserCreditPayload


class UserCreditReadModel(BaseModel):
    """Mirror of a ledger UserCredit (collection: user_credits), keyed by userId"""
    id: str
    user_id: str = Field(alias="userId")
    credit: int = 0
    total_used: int = Field(default=0, alias="totalUsed")
    total_recharge: int = Field(default=0, alias="totalRecharge")
    created_at: str = Field(default="", alias="createdAt")
    updated_at: str = Field(default="", alias="updatedAt")

    model_config = ConfigDict(populate_by_name=True, extra='ignore')

    @classmethod
    def from_payload(cls, payload: UserCreditPayload, record_id: str) -> UserCreditReadModel:
        return cls.model_validate({**payload.to_ledger_dict(), "id": record_id})

    def to_document(self) -> Dict[str, Any]:
        return self.model_dump(by_alias=True)


class CreditHistoryReadModel(BaseModel):
    """Append-only credit movement (collection: credit_histories)"""
    id: str
    user_id: str = Field(alias="userId")
    amount: int = 0
    type: str = ""  # consume, recharge, reward
    description: str = ""
    timestamp: str = ""
    novel_id: str = Field(default="", alias="novelId")

    model_config = ConfigDict(populate_by_name=True, extra='ignore')

    @classmethod
    def from_payload(cls, payload: CreditHistoryPayload, record_id: str) -> CreditHistoryReadModel:
        return cls.model_validate({**payload.to_ledger_dict(), "id": record_id})

    def to_document(self) -> Dict[str, Any]:
        return self.model_dump(by_alias=True)


class RechargeRecordReadModel(BaseModel):
    """Idempotency anchor of one recharge order (collection: recharge_records)"""
    order_sn: str = Field(alias="orderSn")
    user_id: str = Field(default="", alias="userId")
    email: str = ""
    amount: int = 0
    actual_price: int = Field(default=0, alias="actualPrice")
    new_credit: int = Field(default=0, alias="newCredit")
    status: RechargeStatus
    processed_at: Optional[datetime] = Field(default=None, alias="processedAt")
    created_at: datetime = Field(alias="createdAt")
    updated_at: datetime = Field(alias="updatedAt")

    model_config = ConfigDict(populate_by_name=True, extra='ignore')

    def to_document(self) -> Dict[str, Any]:
        doc = self.model_dump(by_alias=True)
        doc["status"] = self.status.value
        return doc


def _as_id_list(value: Any) -> List[str]:
    """users.novelIds is owned by another service: null -> [], ids -> str"""
    if not isinstance(value, (list, tuple)):
        return []
    return [str(item) for item in value if item is not None]


class UserAccountReadModel(BaseModel):
    """Account looked up by email during recharge (collection: users, read-only)"""
    user_id: str
    email: LedgerStr = ""
    username: LedgerStr = ""
    novel_ids: Annotated[List[str], BeforeValidator(_as_id_list)] = Field(default_factory=list, alias="novelIds")

    model_config = ConfigDict(populate_by_name=True, extra='ignore')

    @classmethod
    def from_document(cls, doc: Dict[str, Any]) -> UserAccountReadModel:
        return cls.model_validate({**doc, "user_id": str(doc["_id"])})
