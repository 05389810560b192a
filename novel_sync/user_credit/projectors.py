# =============================================================================
# File: novel_sync/user_credit/projectors.py
# Description: UserCredit ledger events -> user_credits / credit_histories
# =============================================================================

from __future__ import annotations

from typing import TYPE_CHECKING

from novel_sync.config.logging_config import get_logger
from novel_sync.infra.event_dispatch.event_decoding import DecodedLedgerEvent
from novel_sync.infra.event_dispatch.handler_registry import projection_handler
from novel_sync.user_credit.events import CreditHistoryPayload, UserCreditPayload
from novel_sync.user_credit.read_models import CreditHistoryReadModel, UserCreditReadModel
from novel_sync.utils.id_utils import generate_surrogate_id
from novel_sync.utils.payload_fields import get_str

if TYPE_CHECKING:
    from novel_sync.infra.read_repos.user_credit_read_repo import (
        CreditHistoryReadRepo,
        UserCreditReadRepo,
    )

log = get_logger("novel_sync.user_credit.projectors")


class UserCreditProjector:
    """
    Projects UserCredit events onto user_credits, matched by userId.

    ConsumeUserToken carries the post-spend balance, so it is applied
    exactly like UpdateUserCredit.
    """

    def __init__(self, user_credit_read_repo: 'UserCreditReadRepo'):
        self.user_credit_read_repo = user_credit_read_repo

    @projection_handler("CreateUserCredit")
    async def on_create_user_credit(self, event: DecodedLedgerEvent) -> None:
        payload: UserCreditPayload = event.payload
        if not payload.user_id:
            log.warning(f"CreateUserCredit without userId at block {event.block_number}, skipped")
            return

        log.info(f"Projecting CreateUserCredit: userId={payload.user_id}, credit={payload.credit}")
        await self._create(event, payload)

    @projection_handler("UpdateUserCredit")
    async def on_update_user_credit(self, event: DecodedLedgerEvent) -> None:
        await self._apply_balance(event)

    @projection_handler("ConsumeUserToken")
    async def on_consume_user_token(self, event: DecodedLedgerEvent) -> None:
        await self._apply_balance(event)

    @projection_handler("DeleteUserCredit")
    async def on_delete_user_credit(self, event: DecodedLedgerEvent) -> None:
        payload: UserCreditPayload = event.payload
        deleted = await self.user_credit_read_repo.delete_by_user_id(payload.user_id)
        if deleted == 0:
            log.debug(f"DeleteUserCredit: userId={payload.user_id} not in projection")
            return
        log.info(f"Projected DeleteUserCredit: userId={payload.user_id}")

    async def _apply_balance(self, event: DecodedLedgerEvent) -> None:
        payload: UserCreditPayload = event.payload
        if not payload.user_id:
            log.warning(f"{event.event_name} without userId at block {event.block_number}, skipped")
            return

        matched = await self.user_credit_read_repo.update_by_user_id(payload.user_id, {
            "credit": payload.credit,
            "totalUsed": payload.total_used,
            "totalRecharge": payload.total_recharge,
            "updatedAt": payload.updated_at,
        })

        if matched == 0:
            log.info(f"{event.event_name} for unknown userId={payload.user_id}, creating it")
            await self._create(event, payload)
            return

        log.info(
            f"Projected {event.event_name}: userId={payload.user_id}, credit={payload.credit}, "
            f"totalUsed={payload.total_used}, totalRecharge={payload.total_recharge}"
        )

    async def _create(self, event: DecodedLedgerEvent, payload: UserCreditPayload) -> None:
        existing = await self.user_credit_read_repo.find_by_user_id(payload.user_id)
        if existing is not None:
            log.debug(f"UserCredit userId={payload.user_id} already projected")
            return

        # UserCredit has no id on the ledger; only an explicit one is kept
        record_id = get_str(event.raw, "id") or generate_surrogate_id()
        inserted = await self.user_credit_read_repo.insert_user_credit(
            UserCreditReadModel.from_payload(payload, record_id)
        )
        if not inserted:
            log.debug(f"UserCredit userId={payload.user_id} inserted concurrently")


class CreditHistoryProjector:
    """Appends CreateCreditHistory events to credit_histories"""

    def __init__(self, credit_history_read_repo: 'CreditHistoryReadRepo'):
        self.credit_history_read_repo = credit_history_read_repo

    @projection_handler("CreateCreditHistory")
    async def on_create_credit_history(self, event: DecodedLedgerEvent) -> None:
        payload: CreditHistoryPayload = event.payload
        record_id = payload.id or generate_surrogate_id()

        await self.credit_history_read_repo.insert_credit_history(
            CreditHistoryReadModel.from_payload(payload, record_id)
        )
        log.info(
            f"Projected CreateCreditHistory: userId={payload.user_id}, "
            f"amount={payload.amount}, type={payload.type}"
        )
