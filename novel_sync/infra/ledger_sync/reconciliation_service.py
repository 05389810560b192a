# =============================================================================
# File: novel_sync/infra/ledger_sync/reconciliation_service.py
# Description: Read-only ledger vs projection consistency checks
# =============================================================================

from __future__ import annotations

import asyncio
import time
from dataclasses import dataclass, field
from datetime import datetime
from typing import TYPE_CHECKING, Any, Dict, List, Optional

from novel_sync.common.enums.enums import Collection
from novel_sync.config.logging_config import get_logger
from novel_sync.infra.metrics.sync_metrics import (
    consistency_status,
    reconciliation_duration_seconds,
    reconciliation_runs_total,
    record_entity_counts,
)
from novel_sync.utils.datetime_utils import utc_now

if TYPE_CHECKING:
    from novel_sync.infra.read_repos.novel_read_repo import NovelReadRepo
    from novel_sync.infra.read_repos.user_credit_read_repo import UserCreditReadRepo
    from novel_sync.ledger.contracts import NovelContract, UserCreditContract

log = get_logger("novel_sync.infra.ledger_sync.reconciliation")


@dataclass
class ConsistencyReport:
    """Outcome of one consistency check"""
    consistent: bool
    discrepancies: List[str] = field(default_factory=list)
    ledger_counts: Dict[str, int] = field(default_factory=dict)
    projection_counts: Dict[str, int] = field(default_factory=dict)
    checked_at: datetime = field(default_factory=utc_now)
    duration_ms: float = 0.0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "consistent": self.consistent,
            "discrepancies": list(self.discrepancies),
            "ledger_counts": dict(self.ledger_counts),
            "projection_counts": dict(self.projection_counts),
            "checked_at": self.checked_at.isoformat(),
            "duration_ms": round(self.duration_ms, 2),
        }


class ConsistencyReconciler:
    """
    Compares entity counts on both sides and reports drift.

    Ledger counts are the number of records returned by GetAllNovels /
    GetAllUserCredits; projection counts come from count_documents({}).
    Nothing is written to either side.
    """

    def __init__(
            self,
            novel_contract: 'NovelContract',
            user_credit_contract: 'UserCreditContract',
            novel_read_repo: 'NovelReadRepo',
            user_credit_read_repo: 'UserCreditReadRepo',
    ):
        self.novel_contract = novel_contract
        self.user_credit_contract = user_credit_contract
        self.novel_read_repo = novel_read_repo
        self.user_credit_read_repo = user_credit_read_repo

    async def validate_consistency(self) -> ConsistencyReport:
        """
        Raises:
            LedgerReadError: the ledger could not be queried
        """
        start = time.monotonic()

        ledger_counts = {
            Collection.NOVELS.value: len(await self.novel_contract.get_all_novels()),
            Collection.USER_CREDITS.value: len(await self.user_credit_contract.get_all_user_credits()),
        }
        projection_counts = {
            Collection.NOVELS.value: await self.novel_read_repo.count_novels(),
            Collection.USER_CREDITS.value: await self.user_credit_read_repo.count_user_credits(),
        }

        discrepancies = []
        for entity_type, ledger_count in ledger_counts.items():
            projection_count = projection_counts[entity_type]
            record_entity_counts(entity_type, ledger_count, projection_count)
            if ledger_count != projection_count:
                discrepancies.append(
                    f"{entity_type} count mismatch: ledger={ledger_count}, projection={projection_count}"
                )

        duration = time.monotonic() - start
        report = ConsistencyReport(
            consistent=not discrepancies,
            discrepancies=discrepancies,
            ledger_counts=ledger_counts,
            projection_counts=projection_counts,
            duration_ms=duration * 1000,
        )

        reconciliation_duration_seconds.observe(duration)
        reconciliation_runs_total.labels(status='consistent' if report.consistent else 'drift').inc()
        consistency_status.set(1 if report.consistent else 0)

        if report.consistent:
            log.info(f"Ledger and projection consistent: {ledger_counts}")
        else:
            log.warning(f"Ledger/projection drift: {'; '.join(discrepancies)}")
        return report


async def run_reconciliation_periodically(
        reconciler: ConsistencyReconciler,
        interval_seconds: float,
        error_backoff_seconds: Optional[float] = None,
) -> None:
    """
    Run validate_consistency() every interval_seconds until cancelled.

    A failed check is logged and retried after error_backoff_seconds
    (default: the regular interval).
    """
    backoff = interval_seconds if error_backoff_seconds is None else error_backoff_seconds
    log.info(f"Periodic reconciliation started (every {interval_seconds}s)")

    while True:
        try:
            await reconciler.validate_consistency()
            delay = interval_seconds
        except asyncio.CancelledError:
            log.info("Periodic reconciliation cancelled")
            raise
        except Exception as e:
            reconciliation_runs_total.labels(status='error').inc()
            log.error(f"Consistency check failed: {e}")
            delay = backoff

        try:
            await asyncio.sleep(delay)
        except asyncio.CancelledError:
            log.info("Periodic reconciliation cancelled")
            raise
