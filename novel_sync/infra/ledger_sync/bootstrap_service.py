# =============================================================================
# File: novel_sync/infra/ledger_sync/bootstrap_service.py
# Description: Seeds an empty ledger from the MongoDB projection
# =============================================================================

from __future__ import annotations

from typing import TYPE_CHECKING, Any, Dict

from novel_sync.config.logging_config import get_logger
from novel_sync.ledger.contracts import init_ledger_from_snapshot

if TYPE_CHECKING:
    from novel_sync.infra.read_repos.novel_read_repo import NovelReadRepo
    from novel_sync.infra.read_repos.user_credit_read_repo import UserCreditReadRepo
    from novel_sync.ledger.gateway import LedgerGateway

log = get_logger("novel_sync.infra.ledger_sync.bootstrap")

_NOVEL_LEDGER_FIELDS = (
    "id", "author", "storyOutline", "subsections", "characters", "items", "totalScenes",
    "createdAt", "updatedAt",
)
_USER_CREDIT_LEDGER_FIELDS = (
    "userId", "credit", "totalUsed", "totalRecharge", "createdAt", "updatedAt",
)


class LedgerBootstrapService:
    """
    One-off migration in the reverse direction: pushes what the projection
    holds into the ledger with InitFromMongoDB. The chaincode skips keys it
    already has, so running it twice is harmless.
    """

    def __init__(
            self,
            gateway: 'LedgerGateway',
            novel_read_repo: 'NovelReadRepo',
            user_credit_read_repo: 'UserCreditReadRepo',
    ):
        self.gateway = gateway
        self.novel_read_repo = novel_read_repo
        self.user_credit_read_repo = user_credit_read_repo

    async def collect_projection_snapshot(self) -> Dict[str, Any]:
        novels = await self.novel_read_repo.list_novels()
        user_credits = await self.user_credit_read_repo.list_user_credits()

        return {
            "novels": [
                {k: v for k, v in novel.to_document().items() if k in _NOVEL_LEDGER_FIELDS}
                for novel in novels
            ],
            "userCredits": [
                {k: v for k, v in uc.to_document().items() if k in _USER_CREDIT_LEDGER_FIELDS}
                for uc in user_credits
            ],
        }

    async def projection_stats(self) -> Dict[str, Any]:
        novels_count = await self.novel_read_repo.count_novels()
        user_credits = await self.user_credit_read_repo.list_user_credits()

        total_credit = sum(uc.credit for uc in user_credits)
        return {
            "totalNovels": novels_count,
            "totalUserCredits": len(user_credits),
            "totalCreditSum": total_credit,
            "averageCredit": (total_credit / len(user_credits)) if user_credits else 0.0,
        }

    async def init_ledger_from_projection(self) -> str:
        """
        Returns:
            The chaincode's summary text

        Raises:
            LedgerWriteError: InitFromMongoDB was rejected or timed out
        """
        snapshot = await self.collect_projection_snapshot()
        log.info(
            f"Initializing ledger from projection: {len(snapshot['novels'])} novels, "
            f"{len(snapshot['userCredits'])} user credits"
        )
        result = await init_ledger_from_snapshot(self.gateway, snapshot)
        log.info(f"InitFromMongoDB completed: {result}")
        return result
