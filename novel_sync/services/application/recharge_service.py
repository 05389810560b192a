# =============================================================================
# File: novel_sync/services/application/recharge_service.py
# Description: Idempotent, signed recharge of user credit on the ledger
# =============================================================================

from __future__ import annotations

import time
from typing import TYPE_CHECKING, Any, Dict, Mapping, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic import ValidationError as PydanticValidationError
from pymongo.errors import DuplicateKeyError

from novel_sync.common.exceptions.exceptions import (
    InfrastructureError,
    LedgerReadError,
    LedgerWriteError,
    NovelSyncException,
    ValidationError,
)
from novel_sync.config.logging_config import get_logger
from novel_sync.config.recharge_config import RechargeConfig, get_recharge_config
from novel_sync.infra.metrics.sync_metrics import recharge_credits_added_total, record_recharge_outcome
from novel_sync.security.request_signing import (
    build_recharge_signing_params,
    validate_signature,
    validate_timestamp,
)
from novel_sync.user_credit.enums import RechargeStatus
from novel_sync.user_credit.exceptions import (
    DuplicateOrderInProgressError,
    OrderAlreadyFailedError,
    RechargeOrderConflictError,
    UserNotFoundError,
)
from novel_sync.user_credit.read_models import RechargeRecordReadModel
from novel_sync.utils.datetime_utils import utc_now

if TYPE_CHECKING:
    from novel_sync.infra.read_repos.recharge_record_repo import RechargeRecordRepo
    from novel_sync.infra.read_repos.user_account_read_repo import UserAccountReadRepo
    from novel_sync.infra.read_repos.user_credit_read_repo import UserCreditReadRepo
    from novel_sync.ledger.contracts import UserCreditContract

log = get_logger("novel_sync.services.recharge")


# =============================================================================
# Request / result models
# =============================================================================

class RechargeRequest(BaseModel):
    """Recharge callback as sent by the payment provider (wire field names)"""
    title: str = ""
    order_sn: str = Field(min_length=1)
    email: str = Field(min_length=1)
    actual_price: int = 0
    order_info: str = ""
    good_id: str = ""
    gd_name: str = ""
    timestamp: str = Field(min_length=1)  # unix seconds
    signature: str = Field(min_length=1)

    model_config = ConfigDict(extra='ignore')

    @field_validator('timestamp', mode='before')
    @classmethod
    def _timestamp_as_text(cls, value: Any) -> Any:
        if isinstance(value, int) and not isinstance(value, bool):
            return str(value)
        return value


def parse_recharge_request(data: Mapping[str, Any]) -> RechargeRequest:
    """
    Raises:
        ValidationError: missing or malformed fields
    """
    try:
        return RechargeRequest.model_validate(data)
    except PydanticValidationError as e:
        fields = ", ".join(".".join(str(p) for p in err["loc"]) for err in e.errors())
        raise ValidationError(f"Invalid recharge request: {fields}") from e


class RechargeResult(BaseModel):
    user_id: str
    new_credit: int
    amount: int
    order_sn: str
    replayed: bool = False

    model_config = ConfigDict(frozen=True)

    def to_response(self) -> Dict[str, Any]:
        return {
            "userId": self.user_id,
            "newCredit": self.new_credit,
            "addedTokens": self.amount,
            "orderSn": self.order_sn,
        }


# =============================================================================
# Service
# =============================================================================

class RechargeService:
    """
    Adds the configured package amount to a user's ledger credit, at most
    once per order_sn.

    The recharge_records document for an order is the only idempotency
    anchor; its unique index on orderSn decides which concurrent caller
    gets to write to the ledger. There are no in-process locks, so several
    service instances can run side by side.

    Order states: pending -> success | failed. Terminal states are never
    left. A failed order is not retried automatically.
    """

    def __init__(
            self,
            user_credit_contract: 'UserCreditContract',
            recharge_records: 'RechargeRecordRepo',
            user_accounts: 'UserAccountReadRepo',
            user_credits: 'UserCreditReadRepo',
            config: Optional[RechargeConfig] = None,
    ):
        self.user_credit_contract = user_credit_contract
        self.recharge_records = recharge_records
        self.user_accounts = user_accounts
        self.user_credits = user_credits
        self.config = config or get_recharge_config()

    async def recharge(self, request: RechargeRequest, now: Optional[int] = None) -> RechargeResult:
        """
        Args:
            request: Validated recharge request
            now: Current unix time override for the replay window

        Raises:
            SignatureInvalidError, TimestampExpiredError, TimestampFutureError
            DuplicateOrderInProgressError: another execution holds the order
            OrderAlreadyFailedError: the order failed earlier
            UserNotFoundError: no account for request.email
            LedgerReadError: current credit could not be read (order -> failed)
            LedgerWriteError: ledger update failed or timed out (order -> failed)
        """
        start = time.monotonic()
        order_sn = request.order_sn

        try:
            result = await self._recharge(request, now)
        except ValidationError:
            record_recharge_outcome("rejected")
            raise
        except RechargeOrderConflictError:
            record_recharge_outcome("conflict")
            raise
        except UserNotFoundError:
            record_recharge_outcome("user_not_found")
            raise
        except NovelSyncException:
            record_recharge_outcome("failed")
            raise

        record_recharge_outcome("replayed" if result.replayed else "success")
        log.info(
            f"Recharge {order_sn} {'replayed' if result.replayed else 'completed'}: "
            f"user={result.user_id}, new_credit={result.new_credit} "
            f"({(time.monotonic() - start) * 1000:.0f}ms)",
            extra={"order_sn": order_sn},
        )
        return result

    async def _recharge(self, request: RechargeRequest, now: Optional[int]) -> RechargeResult:
        order_sn = request.order_sn

        # 0. Authenticity, then freshness
        validate_signature(
            build_recharge_signing_params(request),
            request.signature,
            self.config.get_signing_key(),
        )
        validate_timestamp(request.timestamp, now=now, max_age_seconds=self.config.max_request_age_seconds)

        # 1. Seen this order before?
        existing = await self.recharge_records.find_by_order_sn(order_sn)
        if existing is not None:
            return self._resolve_existing(existing)

        # 2. Resolve the account
        account = await self.user_accounts.find_by_email(request.email)
        if account is None:
            log.warning(f"Recharge {order_sn}: no user with email {request.email}", extra={"order_sn": order_sn})
            try:
                await self.recharge_records.insert_record(
                    order_sn, request.email, request.actual_price, status=RechargeStatus.FAILED,
                )
            except DuplicateKeyError:
                pass
            except InfrastructureError as e:
                log.error(f"Recharge {order_sn}: could not record failed order: {e}", extra={"order_sn": order_sn})
            raise UserNotFoundError(request.email)

        user_id = account.user_id

        # 3. Reserve the order
        try:
            await self.recharge_records.insert_record(
                order_sn, request.email, request.actual_price, user_id=user_id,
            )
        except DuplicateKeyError:
            existing = await self.recharge_records.find_by_order_sn(order_sn)
            if existing is None:
                raise DuplicateOrderInProgressError(order_sn)
            return self._resolve_existing(existing)

        # 4. Compute the new balance from the ledger
        amount = self.config.package_amount
        try:
            current = await self.user_credit_contract.read_user_credit(user_id)
        except LedgerReadError:
            await self._mark_failed(order_sn)
            raise

        new_credit = current.credit + amount
        new_total_recharge = current.total_recharge + amount

        # 5. Commit on the ledger
        try:
            await self.user_credit_contract.update_user_credit(
                user_id, new_credit, current.total_used, new_total_recharge,
            )
        except LedgerWriteError as e:
            if e.outcome_unknown:
                log.error(
                    f"Recharge {order_sn}: ledger outcome unknown, order marked failed for manual review",
                    extra={"order_sn": order_sn},
                )
            await self._mark_failed(order_sn)
            raise

        recharge_credits_added_total.inc(amount)

        # 6. Mirror, best effort; the UpdateUserCredit event is authoritative
        try:
            await self.user_credits.mirror_balance(user_id, new_credit, new_total_recharge)
        except InfrastructureError as e:
            log.warning(f"Recharge {order_sn}: projection mirror failed: {e}", extra={"order_sn": order_sn})

        # 7. Finalize
        try:
            finalized = await self.recharge_records.mark_success(order_sn, user_id, amount, new_credit)
            if not finalized:
                log.error(
                    f"Recharge {order_sn}: ledger updated but order was no longer pending",
                    extra={"order_sn": order_sn},
                )
        except InfrastructureError as e:
            log.error(
                f"Recharge {order_sn}: ledger updated but finalizing the order failed: {e}",
                extra={"order_sn": order_sn},
            )

        return RechargeResult(user_id=user_id, new_credit=new_credit, amount=amount, order_sn=order_sn)

    @staticmethod
    def _resolve_existing(record: RechargeRecordReadModel) -> RechargeResult:
        if record.status is RechargeStatus.SUCCESS:
            return RechargeResult(
                user_id=record.user_id,
                new_credit=record.new_credit,
                amount=record.amount,
                order_sn=record.order_sn,
                replayed=True,
            )
        if record.status is RechargeStatus.FAILED:
            raise OrderAlreadyFailedError(record.order_sn)
        raise DuplicateOrderInProgressError(record.order_sn)

    async def _mark_failed(self, order_sn: str) -> None:
        try:
            await self.recharge_records.mark_failed(order_sn, utc_now())
        except InfrastructureError as e:
            log.error(f"Recharge {order_sn}: could not mark order failed: {e}", extra={"order_sn": order_sn})
