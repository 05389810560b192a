# =============================================================================
# File: tests/conftest.py
# Description: Shared fixtures - fake store, fake ledger, wired components
# =============================================================================

import time
from typing import Callable, Optional

import pytest
import pytest_asyncio
from bson import ObjectId

from novel_sync.config.ledger_config import LedgerConfig, reset_ledger_config
from novel_sync.config.mongo_config import MongoConfig, reset_mongo_config
from novel_sync.config.recharge_config import RechargeConfig, reset_recharge_config
from novel_sync.config.worker_config import reset_worker_config
from novel_sync.core.startup import SyncComponents, build_components
from novel_sync.infra.persistence.mongo_client import MongoStore
from novel_sync.security.request_signing import build_recharge_signing_params, compute_signature
from novel_sync.services.application.recharge_service import RechargeRequest
from tests.fakes.fake_document_store import FakeDatabase
from tests.fakes.fake_ledger import FakeLedger

TEST_SECRET = "test-recharge-secret"


@pytest.fixture(autouse=True)
def _reset_config_singletons():
    yield
    reset_mongo_config()
    reset_ledger_config()
    reset_recharge_config()
    reset_worker_config()


@pytest.fixture
def fake_db() -> FakeDatabase:
    return FakeDatabase()


@pytest_asyncio.fixture
async def store(fake_db) -> MongoStore:
    store = MongoStore.from_database(fake_db, MongoConfig())
    await store.ensure_indexes()
    return store


@pytest.fixture
def fake_ledger() -> FakeLedger:
    return FakeLedger()


@pytest.fixture
def ledger_config() -> LedgerConfig:
    return LedgerConfig(
        evaluate_timeout_seconds=0.5,
        submit_timeout_seconds=0.25,
        commit_status_timeout_seconds=0.25,
    )


@pytest.fixture
def recharge_config() -> RechargeConfig:
    return RechargeConfig(secret_key=TEST_SECRET, max_request_age_seconds=300, package_amount=150)


@pytest.fixture
def components(store, fake_ledger, ledger_config, recharge_config) -> SyncComponents:
    return build_components(store, fake_ledger, ledger_config, recharge_config)


@pytest.fixture
def seed_user(fake_db, fake_ledger) -> Callable[..., str]:
    """Create an account in users and its credit on the ledger; returns the userId."""
    def _seed(email: str, credit: int = 0, total_used: int = 0, total_recharge: int = 0,
              on_ledger: bool = True) -> str:
        object_id = ObjectId()
        fake_db["users"].seed({"_id": object_id, "email": email, "username": email.split("@")[0]})
        user_id = str(object_id)
        if on_ledger:
            fake_ledger.seed_user_credit(user_id, credit, total_used, total_recharge)
        return user_id
    return _seed


@pytest.fixture
def make_recharge_request() -> Callable[..., RechargeRequest]:
    """Build a correctly signed recharge request."""
    def _make(order_sn: str, email: str, actual_price: int = 150, timestamp: Optional[int] = None,
              secret: str = TEST_SECRET) -> RechargeRequest:
        fields = {
            "title": "150 Token package",
            "order_sn": order_sn,
            "email": email,
            "actual_price": actual_price,
            "order_info": "test order",
            "good_id": "GOOD_001",
            "gd_name": "150 Token",
            "timestamp": str(timestamp if timestamp is not None else int(time.time())),
        }
        fields["signature"] = compute_signature(build_recharge_signing_params(fields), secret)
        return RechargeRequest.model_validate(fields)
    return _make
