# =============================================================================
# File: novel_sync/infra/read_repos/recharge_record_repo.py
# Description: Recharge order records - the idempotency anchor of recharge
# =============================================================================

from __future__ import annotations

from datetime import datetime
from typing import Optional

from pymongo.errors import DuplicateKeyError, PyMongoError

from novel_sync.common.enums.enums import Collection
from novel_sync.common.exceptions.exceptions import InfrastructureError
from novel_sync.config.logging_config import get_logger
from novel_sync.infra.persistence.mongo_client import MongoStore
from novel_sync.user_credit.enums import RechargeStatus
from novel_sync.user_credit.read_models import RechargeRecordReadModel
from novel_sync.utils.datetime_utils import utc_now

log = get_logger("novel_sync.user_credit.recharge_record_repo")


class RechargeRecordRepo:
    """
    recharge_records, one document per orderSn.

    insert_record() lets DuplicateKeyError through: the unique index on
    orderSn is what decides which concurrent caller owns an order.
    Status transitions only ever apply to a pending record.
    """

    def __init__(self, store: MongoStore):
        self.store = store

    @property
    def _coll(self):
        return self.store.collection(Collection.RECHARGE_RECORDS)

    async def find_by_order_sn(self, order_sn: str) -> Optional[RechargeRecordReadModel]:
        try:
            doc = await self._coll.find_one({"orderSn": order_sn}, {"_id": 0})
        except PyMongoError as e:
            raise InfrastructureError(f"Failed to read recharge record {order_sn}: {e}") from e
        return RechargeRecordReadModel.model_validate(doc) if doc else None

    async def insert_record(
            self,
            order_sn: str,
            email: str,
            actual_price: int,
            status: RechargeStatus = RechargeStatus.PENDING,
            user_id: str = "",
            now: Optional[datetime] = None,
    ) -> RechargeRecordReadModel:
        """
        Raises:
            DuplicateKeyError: a record for order_sn already exists
        """
        now = now or utc_now()
        record = RechargeRecordReadModel(
            order_sn=order_sn,
            user_id=user_id,
            email=email,
            actual_price=actual_price,
            status=status,
            processed_at=now if status.is_terminal else None,
            created_at=now,
            updated_at=now,
        )
        try:
            await self._coll.insert_one(record.to_document())
        except DuplicateKeyError:
            raise
        except PyMongoError as e:
            raise InfrastructureError(f"Failed to insert recharge record {order_sn}: {e}") from e
        return record

    async def mark_failed(self, order_sn: str, now: Optional[datetime] = None) -> bool:
        now = now or utc_now()
        return await self._transition(order_sn, {
            "status": RechargeStatus.FAILED.value,
            "processedAt": now,
            "updatedAt": now,
        })

    async def mark_success(
            self,
            order_sn: str,
            user_id: str,
            amount: int,
            new_credit: int,
            now: Optional[datetime] = None,
    ) -> bool:
        now = now or utc_now()
        return await self._transition(order_sn, {
            "status": RechargeStatus.SUCCESS.value,
            "userId": user_id,
            "amount": amount,
            "newCredit": new_credit,
            "processedAt": now,
            "updatedAt": now,
        })

    async def _transition(self, order_sn: str, fields: dict) -> bool:
        """Apply fields to a pending record. Returns False if nothing matched."""
        try:
            result = await self._coll.update_one(
                {"orderSn": order_sn, "status": RechargeStatus.PENDING.value},
                {"$set": fields},
            )
        except PyMongoError as e:
            raise InfrastructureError(f"Failed to update recharge record {order_sn}: {e}") from e

        if result.matched_count == 0:
            log.warning(f"Recharge record {order_sn} not pending, status {fields['status']} not applied")
            return False
        return True
