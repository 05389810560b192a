# =============================================================================
# File: novel_sync/infra/read_repos/user_account_read_repo.py
# Description: Read-only access to the users collection
# =============================================================================

from __future__ import annotations

from typing import Optional

from novel_sync.common.enums.enums import Collection
from novel_sync.infra.persistence.mongo_client import MongoStore
from novel_sync.user_credit.read_models import UserAccountReadModel


class UserAccountReadRepo:
    """Users are owned by another service; this repo never writes."""

    def __init__(self, store: MongoStore):
        self.store = store

    async def find_by_email(self, email: str) -> Optional[UserAccountReadModel]:
        doc = await self.store.collection(Collection.USERS).find_one({"email": email})
        return UserAccountReadModel.from_document(doc) if doc else None
