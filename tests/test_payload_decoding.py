# =============================================================================
# File: tests/test_payload_decoding.py
# Description: Tolerant field coercion and typed decoding of ledger events
# =============================================================================

import json

import pytest

from novel_sync.common.exceptions.exceptions import PayloadDecodeError
from novel_sync.infra.event_dispatch.event_decoding import decode_ledger_event
from novel_sync.ledger.ports.ledger_port import LedgerEvent
from novel_sync.novel.events import NovelPayload
from novel_sync.user_credit.events import CreditHistoryPayload, UserCreditPayload
from novel_sync.utils.payload_fields import coerce_int, coerce_str, get_int, get_str


def _event(name, payload, block=1):
    raw = payload if isinstance(payload, bytes) else json.dumps(payload).encode()
    return LedgerEvent(event_name=name, payload=raw, block_number=block)


class TestFieldCoercion:

    @pytest.mark.parametrize("value, expected", [
        (7, 7),
        (7.9, 7),
        ("42", 42),
        (" 42 ", 42),
        ("3.0", 3),
        ("-5", -5),
        ("abc", 0),
        ("", 0),
        (None, 0),
        ([1], 0),
        (float("inf"), 0),
        (float("nan"), 0),
        ("1e999", 0),
        ("Infinity", 0),
        ("NaN", 0),
    ])
    def test_coerce_int(self, value, expected):
        assert coerce_int(value) == expected

    @pytest.mark.parametrize("value, expected", [
        ("text", "text"),
        ("", ""),
        (None, ""),
        (12, "12"),
        (12.0, "12"),
        (True, ""),
        ({"a": 1}, ""),
    ])
    def test_coerce_str(self, value, expected):
        assert coerce_str(value) == expected

    def test_missing_keys(self):
        assert get_str({}, "author") == ""
        assert get_int({}, "credit") == 0

    def test_present_keys(self):
        data = {"author": "Lu Xun", "credit": "10"}
        assert get_str(data, "author") == "Lu Xun"
        assert get_int(data, "credit") == 10


class TestDecodeLedgerEvent:

    def test_novel_payload(self):
        decoded = decode_ledger_event(_event("CreateNovel", {
            "id": "n1", "author": "A", "storyOutline": "outline", "totalScenes": "12",
        }, block=9))

        assert decoded.event_name == "CreateNovel"
        assert decoded.block_number == 9
        assert isinstance(decoded.payload, NovelPayload)
        assert decoded.payload.story_outline == "outline"
        assert decoded.payload.total_scenes == "12"
        assert decoded.payload.subsections == ""

    def test_user_credit_numeric_strings_are_coerced(self):
        decoded = decode_ledger_event(_event("UpdateUserCredit", {
            "userId": "u1", "credit": "160", "totalUsed": 2.0, "totalRecharge": None,
        }))

        assert isinstance(decoded.payload, UserCreditPayload)
        assert decoded.payload.credit == 160
        assert decoded.payload.total_used == 2
        assert decoded.payload.total_recharge == 0

    def test_overflowing_number_becomes_zero(self):
        decoded = decode_ledger_event(_event("CreateUserCredit", b'{"userId": "u1", "credit": 1e999, "totalUsed": "NaN"}'))
        assert decoded.payload.credit == 0
        assert decoded.payload.total_used == 0

    def test_consume_token_uses_user_credit_model(self):
        decoded = decode_ledger_event(_event("ConsumeUserToken", {"userId": "u1", "credit": 4}))
        assert isinstance(decoded.payload, UserCreditPayload)

    def test_credit_history_payload(self):
        decoded = decode_ledger_event(_event("CreateCreditHistory", {
            "userId": "u1", "amount": "-1", "type": "consume", "novelId": "n1",
        }))
        assert isinstance(decoded.payload, CreditHistoryPayload)
        assert decoded.payload.amount == -1
        assert decoded.payload.novel_id == "n1"

    def test_unknown_fields_ignored(self):
        decoded = decode_ledger_event(_event("CreateNovel", {"storyOutline": "o", "extra": {"x": 1}}))
        assert decoded.raw["extra"] == {"x": 1}
        assert not hasattr(decoded.payload, "extra")

    def test_has_field(self):
        decoded = decode_ledger_event(_event("CreateNovel", {"storyOutline": "o", "id": ""}))
        assert decoded.has_field("storyOutline")
        assert not decoded.has_field("id")
        assert not decoded.has_field("author")

    def test_invalid_json(self):
        with pytest.raises(PayloadDecodeError):
            decode_ledger_event(_event("CreateNovel", b"{not json"))

    def test_non_object_payload(self):
        with pytest.raises(PayloadDecodeError):
            decode_ledger_event(_event("CreateNovel", [1, 2]))

    def test_unknown_event_name(self):
        with pytest.raises(PayloadDecodeError):
            decode_ledger_event(_event("TransferAsset", {}))
