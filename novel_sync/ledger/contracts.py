# =============================================================================
# File: novel_sync/ledger/contracts.py
# Description: Typed wrappers around the novel-basic chaincode transactions
# =============================================================================

from __future__ import annotations

import json
from typing import Any, Dict, List

from pydantic import ValidationError as PydanticValidationError

from novel_sync.common.enums.enums import LedgerTransaction
from novel_sync.common.exceptions.exceptions import LedgerReadError
from novel_sync.config.logging_config import get_logger
from novel_sync.ledger.gateway import LedgerGateway
from novel_sync.novel.events import NovelPayload
from novel_sync.user_credit.events import UserCreditPayload
from novel_sync.user_credit.exceptions import InsufficientCreditError

log = get_logger("novel_sync.ledger.contracts")


def _decode_object(tx_name: str, raw: Any, model):
    if not isinstance(raw, dict):
        raise LedgerReadError(tx_name, f"expected an object, got {type(raw).__name__}")
    try:
        return model.model_validate(raw)
    except PydanticValidationError as e:
        raise LedgerReadError(tx_name, f"unexpected result shape: {e}") from e


def _decode_list(tx_name: str, raw: Any) -> List[Dict[str, Any]]:
    # An empty world state comes back as JSON null
    if raw is None:
        return []
    if not isinstance(raw, list):
        raise LedgerReadError(tx_name, f"expected an array, got {type(raw).__name__}")
    return [item for item in raw if isinstance(item, dict)]


class NovelContract:
    """Novel transactions (all arguments are sent as strings)"""

    def __init__(self, gateway: LedgerGateway):
        self.gateway = gateway

    async def create_novel(
            self,
            novel_id: str,
            author: str,
            story_outline: str,
            subsections: str,
            characters: str,
            items: str,
            total_scenes: str,
    ) -> None:
        await self.gateway.submit(
            LedgerTransaction.CREATE_NOVEL.value,
            novel_id, author, story_outline, subsections, characters, items, total_scenes,
        )
        log.info(f"Novel created on ledger: id={novel_id}")

    async def update_novel(
            self,
            novel_id: str,
            author: str,
            story_outline: str,
            subsections: str,
            characters: str,
            items: str,
            total_scenes: str,
    ) -> None:
        await self.gateway.submit(
            LedgerTransaction.UPDATE_NOVEL.value,
            novel_id, author, story_outline, subsections, characters, items, total_scenes,
        )
        log.info(f"Novel updated on ledger: id={novel_id}")

    async def delete_novel(self, novel_id: str) -> None:
        await self.gateway.submit(LedgerTransaction.DELETE_NOVEL.value, novel_id)
        log.info(f"Novel deleted on ledger: id={novel_id}")

    async def read_novel(self, novel_id: str) -> NovelPayload:
        tx = LedgerTransaction.READ_NOVEL.value
        return _decode_object(tx, await self.gateway.evaluate_json(tx, novel_id), NovelPayload)

    async def get_all_novels(self) -> List[NovelPayload]:
        tx = LedgerTransaction.GET_ALL_NOVELS.value
        items = _decode_list(tx, await self.gateway.evaluate_json(tx))
        # The range scan also returns non-novel keys; a novel always has an id
        return [NovelPayload.model_validate(item) for item in items if item.get("id")]


class UserCreditContract:
    """UserCredit transactions"""

    def __init__(self, gateway: LedgerGateway):
        self.gateway = gateway

    async def create_user_credit(self, user_id: str, credit: int, total_used: int, total_recharge: int) -> None:
        await self.gateway.submit(
            LedgerTransaction.CREATE_USER_CREDIT.value,
            user_id, str(credit), str(total_used), str(total_recharge),
        )
        log.info(f"UserCredit created on ledger: user_id={user_id}, credit={credit}")

    async def update_user_credit(self, user_id: str, credit: int, total_used: int, total_recharge: int) -> None:
        await self.gateway.submit(
            LedgerTransaction.UPDATE_USER_CREDIT.value,
            user_id, str(credit), str(total_used), str(total_recharge),
        )
        log.info(f"UserCredit updated on ledger: user_id={user_id}, credit={credit}")

    async def delete_user_credit(self, user_id: str) -> None:
        await self.gateway.submit(LedgerTransaction.DELETE_USER_CREDIT.value, user_id)
        log.info(f"UserCredit deleted on ledger: user_id={user_id}")

    async def read_user_credit(self, user_id: str) -> UserCreditPayload:
        tx = LedgerTransaction.READ_USER_CREDIT.value
        return _decode_object(tx, await self.gateway.evaluate_json(tx, user_id), UserCreditPayload)

    async def get_all_user_credits(self) -> List[UserCreditPayload]:
        tx = LedgerTransaction.GET_ALL_USER_CREDITS.value
        items = _decode_list(tx, await self.gateway.evaluate_json(tx))
        return [UserCreditPayload.model_validate(item) for item in items if item.get("userId")]

    async def consume_user_token(self, user_id: str) -> UserCreditPayload:
        """
        Spend one credit: credit - 1, totalUsed + 1.

        Read-modify-write against the ledger; concurrent consumers of the same
        user are serialised by the ledger's MVCC check, not here.

        Raises:
            InsufficientCreditError: credit is already zero or negative
        """
        current = await self.read_user_credit(user_id)
        if current.credit <= 0:
            raise InsufficientCreditError(user_id, current.credit)

        updated = current.model_copy(update={
            "credit": current.credit - 1,
            "total_used": current.total_used + 1,
        })
        await self.update_user_credit(user_id, updated.credit, updated.total_used, updated.total_recharge)
        return updated


async def init_ledger_from_snapshot(gateway: LedgerGateway, snapshot: Dict[str, Any]) -> str:
    """
    Submit InitFromMongoDB with {"novels": [...], "userCredits": [...]}.

    Entities that already exist on the ledger are skipped by the chaincode.
    Returns the chaincode's summary text.
    """
    tx = LedgerTransaction.INIT_FROM_MONGODB.value
    result = await gateway.submit(tx, json.dumps(snapshot, ensure_ascii=False))
    return result.decode("utf-8", errors="replace")
