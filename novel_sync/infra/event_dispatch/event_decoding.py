# =============================================================================
# File: novel_sync/infra/event_dispatch/event_decoding.py
# Description: Decodes raw ledger event bytes into typed payload models
# =============================================================================

from __future__ import annotations

import json
from dataclasses import dataclass, field
from typing import Any, Dict, Optional, Type

from pydantic import ValidationError as PydanticValidationError

from novel_sync.common.base.base_model import LedgerPayload
from novel_sync.common.enums.enums import LedgerEventName
from novel_sync.common.exceptions.exceptions import PayloadDecodeError
from novel_sync.ledger.ports.ledger_port import LedgerEvent
from novel_sync.novel.events import NovelPayload
from novel_sync.user_credit.events import CreditHistoryPayload, UserCreditPayload

EVENT_PAYLOAD_MODELS: Dict[str, Type[LedgerPayload]] = {
    LedgerEventName.CREATE_NOVEL.value: NovelPayload,
    LedgerEventName.UPDATE_NOVEL.value: NovelPayload,
    LedgerEventName.DELETE_NOVEL.value: NovelPayload,
    LedgerEventName.CREATE_USER_CREDIT.value: UserCreditPayload,
    LedgerEventName.UPDATE_USER_CREDIT.value: UserCreditPayload,
    LedgerEventName.DELETE_USER_CREDIT.value: UserCreditPayload,
    LedgerEventName.CONSUME_USER_TOKEN.value: UserCreditPayload,
    LedgerEventName.CREATE_CREDIT_HISTORY.value: CreditHistoryPayload,
}


@dataclass(frozen=True)
class DecodedLedgerEvent:
    """A ledger event with its payload parsed into the matching model"""
    event_name: str
    block_number: int
    payload: LedgerPayload
    raw: Dict[str, Any] = field(default_factory=dict)
    tx_id: Optional[str] = None

    def has_field(self, key: str) -> bool:
        """True if the ledger actually sent a non-empty value for key"""
        value = self.raw.get(key)
        return value is not None and value != ""


def decode_ledger_event(event: LedgerEvent) -> DecodedLedgerEvent:
    """
    Raises:
        PayloadDecodeError: unknown event name, invalid JSON or not a JSON object
    """
    model = EVENT_PAYLOAD_MODELS.get(event.event_name)
    if model is None:
        raise PayloadDecodeError(event.event_name, "no payload model for this event")

    try:
        raw = json.loads(event.payload)
    except (ValueError, UnicodeDecodeError) as e:
        raise PayloadDecodeError(event.event_name, f"invalid JSON: {e}") from e

    if not isinstance(raw, dict):
        raise PayloadDecodeError(event.event_name, f"expected an object, got {type(raw).__name__}")

    try:
        payload = model.model_validate(raw)
    except PydanticValidationError as e:
        raise PayloadDecodeError(event.event_name, str(e)) from e

    return DecodedLedgerEvent(
        event_name=event.event_name,
        block_number=event.block_number,
        payload=payload,
        raw=raw,
        tx_id=event.tx_id,
    )
