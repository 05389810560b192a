# =============================================================================
# File: novel_sync/infra/read_repos/user_credit_read_repo.py
# Description: Read repositories for user credits and credit history
# =============================================================================

from __future__ import annotations

from datetime import datetime
from typing import Any, Dict, List, Optional

from pymongo import DESCENDING
from pymongo.errors import DuplicateKeyError, PyMongoError

from novel_sync.common.enums.enums import Collection
from novel_sync.common.exceptions.exceptions import ProjectionWriteError
from novel_sync.config.logging_config import get_logger
from novel_sync.infra.persistence.mongo_client import MongoStore
from novel_sync.user_credit.read_models import CreditHistoryReadModel, UserCreditReadModel
from novel_sync.utils.datetime_utils import format_ledger_timestamp

log = get_logger("novel_sync.user_credit.read_repo")


class UserCreditReadRepo:
    """user_credits projection keyed by userId"""

    def __init__(self, store: MongoStore):
        self.store = store

    @property
    def _coll(self):
        return self.store.collection(Collection.USER_CREDITS)

    # =========================================================================
    # Reads
    # =========================================================================

    async def find_by_user_id(self, user_id: str) -> Optional[UserCreditReadModel]:
        doc = await self._coll.find_one({"userId": user_id}, {"_id": 0})
        return UserCreditReadModel.model_validate(doc) if doc else None

    async def count_user_credits(self) -> int:
        return await self._coll.count_documents({})

    async def list_user_credits(self) -> List[UserCreditReadModel]:
        docs = await self._coll.find({}, {"_id": 0}).to_list(length=None)
        return [UserCreditReadModel.model_validate(doc) for doc in docs]

    # =========================================================================
    # Writes
    # =========================================================================

    async def insert_user_credit(self, user_credit: UserCreditReadModel) -> bool:
        """Insert one record. Returns False if the userId already has one."""
        try:
            await self._coll.insert_one(user_credit.to_document())
            return True
        except DuplicateKeyError:
            return False
        except PyMongoError as e:
            raise ProjectionWriteError(Collection.USER_CREDITS.value, str(e)) from e

    async def update_by_user_id(self, user_id: str, fields: Dict[str, Any]) -> int:
        """$set the given fields. Returns the matched count."""
        try:
            result = await self._coll.update_one({"userId": user_id}, {"$set": fields})
        except PyMongoError as e:
            raise ProjectionWriteError(Collection.USER_CREDITS.value, str(e)) from e
        return result.matched_count

    async def delete_by_user_id(self, user_id: str) -> int:
        try:
            result = await self._coll.delete_one({"userId": user_id})
        except PyMongoError as e:
            raise ProjectionWriteError(Collection.USER_CREDITS.value, str(e)) from e
        return result.deleted_count

    async def mirror_balance(
            self,
            user_id: str,
            credit: int,
            total_recharge: int,
            updated_at: Optional[datetime] = None,
    ) -> int:
        """
        Write a balance the ledger has already committed.

        Only used by the recharge workflow; the next UpdateUserCredit event
        overwrites whatever this wrote.
        """
        return await self.update_by_user_id(user_id, {
            "credit": credit,
            "totalRecharge": total_recharge,
            "updatedAt": format_ledger_timestamp(updated_at),
        })


class CreditHistoryReadRepo:
    """Append-only credit_histories projection"""

    def __init__(self, store: MongoStore):
        self.store = store

    @property
    def _coll(self):
        return self.store.collection(Collection.CREDIT_HISTORIES)

    async def insert_credit_history(self, entry: CreditHistoryReadModel) -> None:
        try:
            await self._coll.insert_one(entry.to_document())
        except PyMongoError as e:
            raise ProjectionWriteError(Collection.CREDIT_HISTORIES.value, str(e)) from e

    async def list_for_user(self, user_id: str, limit: int = 50) -> List[CreditHistoryReadModel]:
        """Newest first"""
        cursor = self._coll.find({"userId": user_id}, {"_id": 0}).sort("timestamp", DESCENDING).limit(limit)
        docs = await cursor.to_list(length=limit)
        return [CreditHistoryReadModel.model_validate(doc) for doc in docs]
