# =============================================================================
# File: novel_sync/infra/read_repos/novel_read_repo.py
# Description: Read repository for the novels projection
# =============================================================================

from __future__ import annotations

from typing import Any, Dict, List, Optional

from pymongo.errors import DuplicateKeyError, PyMongoError

from novel_sync.common.enums.enums import Collection
from novel_sync.common.exceptions.exceptions import ProjectionWriteError
from novel_sync.config.logging_config import get_logger
from novel_sync.infra.persistence.mongo_client import MongoStore
from novel_sync.novel.read_models import NovelReadModel

log = get_logger("novel_sync.novel.read_repo")

_COLLECTION = Collection.NOVELS.value


class NovelReadRepo:
    """
    Novels projection keyed by storyOutline.

    Write methods raise ProjectionWriteError on store failures. A duplicate
    storyOutline on insert is reported as False, not as an error.
    """

    def __init__(self, store: MongoStore):
        self.store = store

    @property
    def _coll(self):
        return self.store.collection(_COLLECTION)

    # =========================================================================
    # Reads
    # =========================================================================

    async def find_by_story_outline(self, story_outline: str) -> Optional[NovelReadModel]:
        doc = await self._coll.find_one({"storyOutline": story_outline}, {"_id": 0})
        return NovelReadModel.model_validate(doc) if doc else None

    async def count_novels(self) -> int:
        return await self._coll.count_documents({})

    async def list_novels(self) -> List[NovelReadModel]:
        docs = await self._coll.find({}, {"_id": 0}).to_list(length=None)
        return [NovelReadModel.model_validate(doc) for doc in docs]

    # =========================================================================
    # Writes
    # =========================================================================

    async def insert_novel(self, novel: NovelReadModel) -> bool:
        """Insert one novel. Returns False if the storyOutline is already taken."""
        try:
            await self._coll.insert_one(novel.to_document())
            return True
        except DuplicateKeyError:
            return False
        except PyMongoError as e:
            raise ProjectionWriteError(_COLLECTION, str(e)) from e

    async def update_by_story_outline(self, story_outline: str, fields: Dict[str, Any]) -> int:
        """$set the given fields. Returns the matched count."""
        try:
            result = await self._coll.update_one({"storyOutline": story_outline}, {"$set": fields})
        except PyMongoError as e:
            raise ProjectionWriteError(_COLLECTION, str(e)) from e
        return result.matched_count

    async def delete_by_story_outline(self, story_outline: str) -> int:
        try:
            result = await self._coll.delete_one({"storyOutline": story_outline})
        except PyMongoError as e:
            raise ProjectionWriteError(_COLLECTION, str(e)) from e
        return result.deleted_count
