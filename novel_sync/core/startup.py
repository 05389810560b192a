# =============================================================================
# File: novel_sync/core/startup.py
# Description: Wires repositories, contracts and services around one store
# =============================================================================

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Iterable, Optional

from novel_sync.config.ledger_config import LedgerConfig
from novel_sync.config.recharge_config import RechargeConfig
from novel_sync.infra.event_dispatch.dispatcher import LedgerEventDispatcher
from novel_sync.infra.event_dispatch.handler_registry import ProjectionHandlerRegistry
from novel_sync.infra.ledger_sync.bootstrap_service import LedgerBootstrapService
from novel_sync.infra.ledger_sync.reconciliation_service import ConsistencyReconciler
from novel_sync.infra.persistence.mongo_client import MongoStore
from novel_sync.infra.read_repos.novel_read_repo import NovelReadRepo
from novel_sync.infra.read_repos.recharge_record_repo import RechargeRecordRepo
from novel_sync.infra.read_repos.user_account_read_repo import UserAccountReadRepo
from novel_sync.infra.read_repos.user_credit_read_repo import CreditHistoryReadRepo, UserCreditReadRepo
from novel_sync.ledger.contracts import NovelContract, UserCreditContract
from novel_sync.ledger.gateway import LedgerGateway
from novel_sync.ledger.ports.ledger_port import EventFeedPort, LedgerPort
from novel_sync.novel.projectors import NovelProjector
from novel_sync.services.application.recharge_service import RechargeService
from novel_sync.user_credit.projectors import CreditHistoryProjector, UserCreditProjector

logger = logging.getLogger("novel_sync.startup")


@dataclass
class SyncComponents:
    """Everything built on top of one MongoStore and one ledger connection"""
    store: MongoStore
    gateway: LedgerGateway
    novel_contract: NovelContract
    user_credit_contract: UserCreditContract

    novel_read_repo: NovelReadRepo
    user_credit_read_repo: UserCreditReadRepo
    credit_history_read_repo: CreditHistoryReadRepo
    recharge_record_repo: RechargeRecordRepo
    user_account_read_repo: UserAccountReadRepo

    registry: ProjectionHandlerRegistry
    recharge_service: RechargeService
    reconciler: ConsistencyReconciler
    bootstrap_service: LedgerBootstrapService


def build_projection_registry(
        novel_read_repo: NovelReadRepo,
        user_credit_read_repo: UserCreditReadRepo,
        credit_history_read_repo: CreditHistoryReadRepo,
) -> ProjectionHandlerRegistry:
    registry = ProjectionHandlerRegistry()
    registry.register_projector(NovelProjector(novel_read_repo))
    registry.register_projector(UserCreditProjector(user_credit_read_repo))
    registry.register_projector(CreditHistoryProjector(credit_history_read_repo))
    return registry


def build_components(
        store: MongoStore,
        ledger_port: LedgerPort,
        ledger_config: Optional[LedgerConfig] = None,
        recharge_config: Optional[RechargeConfig] = None,
) -> SyncComponents:
    """The store must already be connected (or wrap a test database)."""
    gateway = LedgerGateway(ledger_port, ledger_config)
    novel_contract = NovelContract(gateway)
    user_credit_contract = UserCreditContract(gateway)

    novel_read_repo = NovelReadRepo(store)
    user_credit_read_repo = UserCreditReadRepo(store)
    credit_history_read_repo = CreditHistoryReadRepo(store)
    recharge_record_repo = RechargeRecordRepo(store)
    user_account_read_repo = UserAccountReadRepo(store)

    registry = build_projection_registry(novel_read_repo, user_credit_read_repo, credit_history_read_repo)
    logger.info(f"Projection handlers registered: {', '.join(registry.event_names)}")

    return SyncComponents(
        store=store,
        gateway=gateway,
        novel_contract=novel_contract,
        user_credit_contract=user_credit_contract,
        novel_read_repo=novel_read_repo,
        user_credit_read_repo=user_credit_read_repo,
        credit_history_read_repo=credit_history_read_repo,
        recharge_record_repo=recharge_record_repo,
        user_account_read_repo=user_account_read_repo,
        registry=registry,
        recharge_service=RechargeService(
            user_credit_contract,
            recharge_record_repo,
            user_account_read_repo,
            user_credit_read_repo,
            recharge_config,
        ),
        reconciler=ConsistencyReconciler(
            novel_contract,
            user_credit_contract,
            novel_read_repo,
            user_credit_read_repo,
        ),
        bootstrap_service=LedgerBootstrapService(gateway, novel_read_repo, user_credit_read_repo),
    )


def build_dispatcher(
        components: SyncComponents,
        feed: EventFeedPort,
        start_block: Optional[int] = None,
        event_names: Optional[Iterable[str]] = None,
) -> LedgerEventDispatcher:
    return LedgerEventDispatcher(
        feed=feed,
        registry=components.registry,
        start_block=start_block,
        event_names=event_names,
    )
