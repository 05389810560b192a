# =============================================================================
# File: tests/test_recharge_service.py
# Description: Idempotent recharge workflow - replay, concurrency, failures
# =============================================================================

import asyncio
import time

import pytest
from bson import ObjectId
from pymongo.errors import OperationFailure

from novel_sync.common.exceptions.exceptions import (
    LedgerReadError,
    LedgerTimeoutError,
    LedgerWriteError,
    ValidationError,
)
from novel_sync.security.exceptions import (
    SignatureInvalidError,
    TimestampExpiredError,
    TimestampFutureError,
)
from novel_sync.services.application.recharge_service import (
    RechargeRequest,
    parse_recharge_request,
)
from novel_sync.user_credit.exceptions import (
    DuplicateOrderInProgressError,
    OrderAlreadyFailedError,
    UserNotFoundError,
)

EMAIL = "reader@example.com"


def _order(fake_db, order_sn):
    for doc in fake_db["recharge_records"].docs:
        if doc["orderSn"] == order_sn:
            return doc
    return None


class TestRechargeHappyPath:

    @pytest.mark.asyncio
    async def test_adds_package_amount_on_ledger(self, components, fake_ledger, fake_db, seed_user,
                                                 make_recharge_request):
        user_id = seed_user(EMAIL, credit=10, total_used=3, total_recharge=20)

        result = await components.recharge_service.recharge(make_recharge_request("A1", EMAIL))

        assert result.user_id == user_id
        assert result.new_credit == 160
        assert result.amount == 150
        assert result.replayed is False

        ledger_credit = fake_ledger.world_state[user_id]
        assert ledger_credit["credit"] == 160
        assert ledger_credit["totalRecharge"] == 170
        assert ledger_credit["totalUsed"] == 3

    @pytest.mark.asyncio
    async def test_order_record_finalized(self, components, fake_db, seed_user, make_recharge_request):
        user_id = seed_user(EMAIL, credit=0)

        await components.recharge_service.recharge(make_recharge_request("A1", EMAIL))

        order = _order(fake_db, "A1")
        assert order["status"] == "success"
        assert order["userId"] == user_id
        assert order["amount"] == 150
        assert order["newCredit"] == 150
        assert order["processedAt"] is not None

    @pytest.mark.asyncio
    async def test_projection_mirrored_best_effort(self, components, fake_db, seed_user, make_recharge_request):
        user_id = seed_user(EMAIL, credit=5)
        fake_db["user_credits"].seed({"id": "x", "userId": user_id, "credit": 5, "totalUsed": 0, "totalRecharge": 0})

        await components.recharge_service.recharge(make_recharge_request("A1", EMAIL))

        mirrored = fake_db["user_credits"].docs[0]
        assert mirrored["credit"] == 155
        assert mirrored["totalRecharge"] == 150

    @pytest.mark.asyncio
    async def test_mirror_failure_does_not_fail_recharge(self, components, fake_db, seed_user, make_recharge_request):
        seed_user(EMAIL, credit=5)
        fake_db["user_credits"].configure_failure("update_one", OperationFailure("not primary"))

        result = await components.recharge_service.recharge(make_recharge_request("A1", EMAIL))

        assert result.new_credit == 155
        assert _order(fake_db, "A1")["status"] == "success"

    @pytest.mark.asyncio
    async def test_finalize_failure_still_returns_result(self, components, fake_db, fake_ledger, seed_user,
                                                         make_recharge_request):
        seed_user(EMAIL, credit=0)
        records = fake_db["recharge_records"]
        original_update = records.update_one

        async def failing_update(filter, update):
            if update["$set"].get("status") == "success":
                raise OperationFailure("write concern timeout")
            return await original_update(filter, update)

        records.update_one = failing_update

        result = await components.recharge_service.recharge(make_recharge_request("A1", EMAIL))

        assert result.new_credit == 150
        assert fake_ledger.get_call_count("UpdateUserCredit") == 1
        assert _order(fake_db, "A1")["status"] == "pending"


class TestRechargeIdempotence:

    @pytest.mark.asyncio
    async def test_same_order_twice_returns_identical_result(self, components, fake_ledger, seed_user,
                                                             make_recharge_request):
        seed_user(EMAIL, credit=10)
        request = make_recharge_request("A1", EMAIL)

        first = await components.recharge_service.recharge(request)
        second = await components.recharge_service.recharge(request)

        assert (second.user_id, second.new_credit) == (first.user_id, first.new_credit)
        assert second.replayed is True
        assert fake_ledger.get_call_count("UpdateUserCredit") == 1

    @pytest.mark.asyncio
    async def test_replay_after_later_ledger_changes_returns_original_result(
            self, components, fake_ledger, seed_user, make_recharge_request):
        user_id = seed_user(EMAIL, credit=10)
        request = make_recharge_request("A1", EMAIL)

        first = await components.recharge_service.recharge(request)
        await fake_ledger.submit("UpdateUserCredit", user_id, "1", "0", "0")
        second = await components.recharge_service.recharge(request)

        assert second.new_credit == first.new_credit == 160

    @pytest.mark.asyncio
    async def test_concurrent_duplicates_reach_ledger_once(self, components, fake_ledger, seed_user,
                                                           make_recharge_request):
        seed_user(EMAIL, credit=0)
        request = make_recharge_request("A1", EMAIL)

        results = await asyncio.gather(
            components.recharge_service.recharge(request),
            components.recharge_service.recharge(request),
            return_exceptions=True,
        )

        assert fake_ledger.get_call_count("UpdateUserCredit") == 1
        successes = [r for r in results if not isinstance(r, Exception)]
        failures = [r for r in results if isinstance(r, Exception)]
        assert len(successes) >= 1
        assert all(isinstance(f, DuplicateOrderInProgressError) for f in failures)
        assert all(s.new_credit == 150 for s in successes)

    @pytest.mark.asyncio
    async def test_pending_order_reported_in_progress(self, components, fake_db, fake_ledger, seed_user,
                                                      make_recharge_request):
        seed_user(EMAIL)
        await components.recharge_record_repo.insert_record("A1", EMAIL, 150)

        with pytest.raises(DuplicateOrderInProgressError):
            await components.recharge_service.recharge(make_recharge_request("A1", EMAIL))
        assert not fake_ledger.was_called("UpdateUserCredit")

    @pytest.mark.asyncio
    async def test_failed_order_is_not_retried(self, components, fake_ledger, seed_user, make_recharge_request):
        seed_user(EMAIL, credit=0)
        fake_ledger.configure_failure("UpdateUserCredit", "endorsement policy failure")
        request = make_recharge_request("A1", EMAIL)

        with pytest.raises(LedgerWriteError):
            await components.recharge_service.recharge(request)

        fake_ledger.clear_failures()
        with pytest.raises(OrderAlreadyFailedError):
            await components.recharge_service.recharge(request)
        assert fake_ledger.get_call_count("UpdateUserCredit") == 1


class TestRechargeRejections:

    @pytest.mark.asyncio
    async def test_tampered_request_rejected_before_any_state_change(self, components, fake_db, fake_ledger,
                                                                      seed_user, make_recharge_request):
        seed_user(EMAIL)
        request = make_recharge_request("A1", EMAIL)
        tampered = request.model_copy(update={"actual_price": 1})

        with pytest.raises(SignatureInvalidError):
            await components.recharge_service.recharge(tampered)

        assert fake_db["recharge_records"].docs == []
        assert not fake_ledger.was_called("ReadUserCredit")

    @pytest.mark.asyncio
    async def test_wrong_secret_rejected(self, components, seed_user, make_recharge_request):
        seed_user(EMAIL)
        with pytest.raises(SignatureInvalidError):
            await components.recharge_service.recharge(make_recharge_request("A1", EMAIL, secret="guess"))

    @pytest.mark.asyncio
    async def test_replay_window_edges(self, components, seed_user, make_recharge_request):
        seed_user(EMAIL, credit=0)
        now = int(time.time())
        service = components.recharge_service

        result = await service.recharge(make_recharge_request("EDGE-300", EMAIL, timestamp=now - 300), now=now)
        assert result.new_credit == 150

        with pytest.raises(TimestampExpiredError):
            await service.recharge(make_recharge_request("EDGE-301", EMAIL, timestamp=now - 301), now=now)

        with pytest.raises(TimestampFutureError):
            await service.recharge(make_recharge_request("EDGE+1", EMAIL, timestamp=now + 1), now=now)

    @pytest.mark.asyncio
    async def test_unknown_email_records_failed_order(self, components, fake_db, fake_ledger,
                                                      make_recharge_request):
        with pytest.raises(UserNotFoundError):
            await components.recharge_service.recharge(make_recharge_request("A1", "nobody@example.com"))

        order = _order(fake_db, "A1")
        assert order["status"] == "failed"
        assert not fake_ledger.was_called("ReadUserCredit")

        with pytest.raises(OrderAlreadyFailedError):
            await components.recharge_service.recharge(make_recharge_request("A1", "nobody@example.com"))

    @pytest.mark.asyncio
    async def test_unknown_email_reported_even_if_order_cannot_be_recorded(self, components, fake_db,
                                                                          make_recharge_request):
        fake_db["recharge_records"].configure_failure("insert_one", OperationFailure("not primary"))

        with pytest.raises(UserNotFoundError):
            await components.recharge_service.recharge(make_recharge_request("A1", "nobody@example.com"))

    @pytest.mark.asyncio
    async def test_sparse_account_document_accepted(self, components, fake_db, fake_ledger, make_recharge_request):
        object_id = ObjectId()
        fake_db["users"].seed({"_id": object_id, "email": EMAIL, "username": None, "novelIds": None})
        fake_ledger.seed_user_credit(str(object_id), credit=1)

        result = await components.recharge_service.recharge(make_recharge_request("A1", EMAIL))

        assert result.user_id == str(object_id)
        assert result.new_credit == 151


class TestRechargeLedgerFailures:

    @pytest.mark.asyncio
    async def test_read_failure_marks_order_failed(self, components, fake_db, fake_ledger, seed_user,
                                                   make_recharge_request):
        seed_user(EMAIL, on_ledger=False)

        with pytest.raises(LedgerReadError):
            await components.recharge_service.recharge(make_recharge_request("A1", EMAIL))

        assert _order(fake_db, "A1")["status"] == "failed"
        assert not fake_ledger.was_called("UpdateUserCredit")

    @pytest.mark.asyncio
    async def test_write_rejection_marks_order_failed(self, components, fake_db, fake_ledger, seed_user,
                                                      make_recharge_request):
        user_id = seed_user(EMAIL, credit=7)
        fake_ledger.configure_failure("UpdateUserCredit", "MVCC_READ_CONFLICT")

        with pytest.raises(LedgerWriteError) as exc_info:
            await components.recharge_service.recharge(make_recharge_request("A1", EMAIL))

        assert not exc_info.value.outcome_unknown
        assert _order(fake_db, "A1")["status"] == "failed"
        assert fake_ledger.world_state[user_id]["credit"] == 7

    @pytest.mark.asyncio
    async def test_write_timeout_marks_order_failed(self, components, fake_db, fake_ledger, seed_user,
                                                    make_recharge_request):
        seed_user(EMAIL, credit=7)
        fake_ledger.configure_delay("UpdateUserCredit", 5.0)

        with pytest.raises(LedgerTimeoutError) as exc_info:
            await components.recharge_service.recharge(make_recharge_request("A1", EMAIL))

        assert exc_info.value.outcome_unknown
        assert _order(fake_db, "A1")["status"] == "failed"


class TestParseRechargeRequest:

    def test_integer_timestamp_accepted(self):
        request = parse_recharge_request({
            "order_sn": "A1", "email": EMAIL, "actual_price": 150,
            "timestamp": 1700000000, "signature": "abc",
        })
        assert isinstance(request, RechargeRequest)
        assert request.timestamp == "1700000000"

    def test_missing_fields_raise_validation_error(self):
        with pytest.raises(ValidationError) as exc_info:
            parse_recharge_request({"email": EMAIL})
        assert "order_sn" in str(exc_info.value)
