# =============================================================================
# File: novel_sync/novel/projectors.py
# Description: Novel ledger events -> novels projection
# =============================================================================

from __future__ import annotations

from typing import TYPE_CHECKING

from novel_sync.config.logging_config import get_logger
from novel_sync.infra.event_dispatch.event_decoding import DecodedLedgerEvent
from novel_sync.infra.event_dispatch.handler_registry import projection_handler
from novel_sync.novel.events import NovelPayload
from novel_sync.novel.read_models import NovelReadModel
from novel_sync.utils.id_utils import generate_surrogate_id

if TYPE_CHECKING:
    from novel_sync.infra.read_repos.novel_read_repo import NovelReadRepo

log = get_logger("novel_sync.novel.projectors")


class NovelProjector:
    """
    Projects Novel events onto the novels collection.

    Records are matched by storyOutline, not by the ledger id. Every
    handler is safe to re-run for the same event: creates skip existing
    records, updates fall back to a create, deletes of absent records
    succeed.
    """

    def __init__(self, novel_read_repo: 'NovelReadRepo'):
        self.novel_read_repo = novel_read_repo

    @projection_handler("CreateNovel")
    async def on_create_novel(self, event: DecodedLedgerEvent) -> None:
        payload: NovelPayload = event.payload
        if not payload.story_outline:
            log.warning(f"CreateNovel without storyOutline at block {event.block_number}, skipped")
            return

        log.info(f"Projecting CreateNovel: storyOutline={payload.story_outline}")
        await self._create(payload)

    @projection_handler("UpdateNovel")
    async def on_update_novel(self, event: DecodedLedgerEvent) -> None:
        payload: NovelPayload = event.payload
        if not payload.story_outline:
            log.warning(f"UpdateNovel without storyOutline at block {event.block_number}, skipped")
            return

        matched = await self.novel_read_repo.update_by_story_outline(payload.story_outline, {
            "author": payload.author,
            "storyOutline": payload.story_outline,
            "subsections": payload.subsections,
            "characters": payload.characters,
            "items": payload.items,
            "totalScenes": payload.total_scenes,
            "updatedAt": payload.updated_at,
        })

        if matched == 0:
            log.info(f"UpdateNovel for unknown storyOutline={payload.story_outline}, creating it")
            await self._create(payload)
            return

        log.info(f"Projected UpdateNovel: storyOutline={payload.story_outline}")

    @projection_handler("DeleteNovel")
    async def on_delete_novel(self, event: DecodedLedgerEvent) -> None:
        payload: NovelPayload = event.payload
        deleted = await self.novel_read_repo.delete_by_story_outline(payload.story_outline)
        if deleted == 0:
            log.debug(f"DeleteNovel: storyOutline={payload.story_outline} not in projection")
            return
        log.info(f"Projected DeleteNovel: storyOutline={payload.story_outline}")

    async def _create(self, payload: NovelPayload) -> None:
        existing = await self.novel_read_repo.find_by_story_outline(payload.story_outline)
        if existing is not None:
            log.debug(f"Novel storyOutline={payload.story_outline} already projected as id={existing.id}")
            return

        record_id = payload.id or generate_surrogate_id()
        inserted = await self.novel_read_repo.insert_novel(NovelReadModel.from_payload(payload, record_id))
        if not inserted:
            # Lost an insert race with another delivery of the same event
            log.debug(f"Novel storyOutline={payload.story_outline} inserted concurrently")
            return
        log.info(f"Created novel projection: id={record_id}, storyOutline={payload.story_outline}")
