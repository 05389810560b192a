# =============================================================================
# File: novel_sync/novel/events.py
# Description: Novel entity payload as carried by ledger events and reads
# =============================================================================

from __future__ import annotations

from pydantic import Field

from novel_sync.common.base.base_model import LedgerPayload, LedgerStr


class NovelPayload(LedgerPayload):
    """
    Novel snapshot emitted by CreateNovel / UpdateNovel / DeleteNovel and
    returned by ReadNovel / GetAllNovels.
    """
    id: LedgerStr = ""
    author: LedgerStr = ""
    story_outline: LedgerStr = Field(default="", alias="storyOutline")
    subsections: LedgerStr = ""
    characters: LedgerStr = ""
    items: LedgerStr = ""
    total_scenes: LedgerStr = Field(default="", alias="totalScenes")
    created_at: LedgerStr = Field(default="", alias="createdAt")
    updated_at: LedgerStr = Field(default="", alias="updatedAt")
