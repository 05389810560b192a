# =============================================================================
# File: novel_sync/novel/read_models.py
# Description: Novel projection read model (MongoDB collection: novels)
# =============================================================================

from __future__ import annotations

from typing import Any, Dict

from pydantic import BaseModel, ConfigDict, Field

from novel_sync.novel.events import NovelPayload


class NovelReadModel(BaseModel):
    """Mirror of a ledger Novel, keyed by storyOutline"""
    id: str
    author: str = ""
    story_outline: str = Field(alias="storyOutline")
    subsections: str = ""
    characters: str = ""
    items: str = ""
    total_scenes: str = Field(default="", alias="totalScenes")
    created_at: str = Field(default="", alias="createdAt")
    updated_at: str = Field(default="", alias="updatedAt")

    model_config = ConfigDict(populate_by_name=True, extra='ignore')

    @classmethod
    def from_payload(cls, payload: NovelPayload, record_id: str) -> NovelReadModel:
        return cls.model_validate({**payload.to_ledger_dict(), "id": record_id})

    def to_document(self) -> Dict[str, Any]:
        return self.model_dump(by_alias=True)
