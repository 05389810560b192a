# =============================================================================
# File: novel_sync/infra/persistence/mongo_client.py
# Description: Explicitly managed MongoDB handle for the projection store
# =============================================================================

from __future__ import annotations

from typing import Any, Dict, List, Optional

import motor.motor_asyncio as motor_async
from pymongo import ASCENDING, DESCENDING

from novel_sync.common.enums.enums import Collection
from novel_sync.common.exceptions.exceptions import InfrastructureError
from novel_sync.config.logging_config import get_logger
from novel_sync.config.mongo_config import MongoConfig, get_mongo_config

log = get_logger("novel_sync.infra.persistence.mongo")

# Natural keys of the projection. The unique index on recharge_records.orderSn
# is the only cross-process mutex of the recharge workflow.
PROJECTION_INDEXES: Dict[str, List[Dict[str, Any]]] = {
    Collection.NOVELS.value: [
        {"keys": [("storyOutline", ASCENDING)], "unique": True, "name": "storyOutline_unique"},
    ],
    Collection.USER_CREDITS.value: [
        {"keys": [("userId", ASCENDING)], "unique": True, "name": "userId_unique"},
    ],
    Collection.CREDIT_HISTORIES.value: [
        {"keys": [("userId", ASCENDING), ("timestamp", DESCENDING)], "name": "userId_timestamp"},
    ],
    Collection.RECHARGE_RECORDS.value: [
        {"keys": [("orderSn", ASCENDING)], "unique": True, "name": "orderSn_unique"},
    ],
    Collection.USERS.value: [
        {"keys": [("email", ASCENDING)], "name": "email"},
    ],
}


class MongoStore:
    """
    Process-scoped MongoDB handle.

    Constructed at startup, connected once, passed to repositories, and
    closed at shutdown. Tests construct it around an in-memory database via
    MongoStore.from_database().
    """

    def __init__(self, config: Optional[MongoConfig] = None):
        self.config = config or get_mongo_config()
        self._client: Optional[motor_async.AsyncIOMotorClient] = None
        self._db = None

    @classmethod
    def from_database(cls, database, config: Optional[MongoConfig] = None) -> "MongoStore":
        """Wrap an already-open database object (motor or a compatible fake)."""
        store = cls(config)
        store._db = database
        return store

    # ---- Lifecycle ----

    async def connect(self) -> None:
        if self._db is not None:
            return

        self._client = motor_async.AsyncIOMotorClient(
            self.config.uri,
            appname=self.config.app_name,
            maxPoolSize=self.config.max_pool_size,
            minPoolSize=self.config.min_pool_size,
            maxIdleTimeMS=self.config.max_idle_time_seconds * 1000,
            connectTimeoutMS=int(self.config.connect_timeout_seconds * 1000),
            serverSelectionTimeoutMS=int(self.config.server_selection_timeout_seconds * 1000),
        )
        self._db = self._client[self.config.database]

        try:
            await self.ping()
        except Exception as e:
            await self.close()
            raise InfrastructureError(f"MongoDB unreachable at {self._redact_uri(self.config.uri)}: {e}") from e

        if self.config.ensure_indexes_on_connect:
            await self.ensure_indexes()

        log.info(f"MongoDB connected: {self._redact_uri(self.config.uri)} db={self.config.database}")

    async def close(self) -> None:
        if self._client is not None:
            self._client.close()
            log.info("MongoDB connection closed")
        self._client = None
        self._db = None

    @property
    def is_connected(self) -> bool:
        return self._db is not None

    # ---- Access ----

    @property
    def db(self):
        if self._db is None:
            raise InfrastructureError("MongoStore is not connected")
        return self._db

    def collection(self, name: str | Collection):
        if isinstance(name, Collection):
            name = name.value
        return self.db[name]

    # ---- Health / schema ----

    async def ping(self) -> bool:
        await self.db.command("ping")
        return True

    async def ensure_indexes(self) -> None:
        for collection_name, indexes in PROJECTION_INDEXES.items():
            coll = self.collection(collection_name)
            for spec in indexes:
                options = {k: v for k, v in spec.items() if k != "keys"}
                await coll.create_index(spec["keys"], **options)
        log.info(f"Projection indexes ensured for {len(PROJECTION_INDEXES)} collections")

    @staticmethod
    def _redact_uri(uri: str) -> str:
        if "@" in uri and "://" in uri:
            scheme, rest = uri.split("://", 1)
            return f"{scheme}://***:***@{rest.split('@', 1)[1]}"
        return uri
