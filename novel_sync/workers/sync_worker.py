# novel_sync/workers/sync_worker.py
"""
Ledger Sync Worker

Long-running process that keeps the MongoDB projection in step with the
ledger:
- LedgerEventDispatcher consumes the chaincode event feed and applies
  every event to the projection
- Periodic ConsistencyReconciler reports count drift between both sides
- Optional Prometheus exporter

If the event subscription breaks, the worker shuts down with a non-zero
exit code and leaves restarting to the process supervisor.
"""

import asyncio
import logging
import os
import signal
import sys
import time
from typing import List, Optional

import httpx
from dotenv import load_dotenv
from prometheus_client import start_http_server

from novel_sync.config.ledger_config import LedgerConfig, get_ledger_config
from novel_sync.config.logging_config import (
    log_metrics_table,
    log_status_update,
    log_worker_banner,
    setup_logging,
)
from novel_sync.config.mongo_config import MongoConfig, get_mongo_config
from novel_sync.config.worker_config import WorkerConfig, get_worker_config
from novel_sync.core.startup import SyncComponents, build_components, build_dispatcher
from novel_sync.infra.event_dispatch.dispatcher import LedgerEventDispatcher
from novel_sync.infra.ledger_http.adapter import HttpLedgerAdapter
from novel_sync.infra.ledger_sync.reconciliation_service import run_reconciliation_periodically
from novel_sync.infra.persistence.mongo_client import MongoStore

log = logging.getLogger("novel_sync.worker.sync")


class LedgerSyncWorker:
    """Owns the store, the ledger HTTP client, the dispatcher and the reconciliation loop"""

    def __init__(
            self,
            config: Optional[WorkerConfig] = None,
            mongo_config: Optional[MongoConfig] = None,
            ledger_config: Optional[LedgerConfig] = None,
    ):
        self.config = config or get_worker_config()
        self.mongo_config = mongo_config or get_mongo_config()
        self.ledger_config = ledger_config or get_ledger_config()
        self.instance_id = self.config.worker_id

        self.store: Optional[MongoStore] = None
        self.http_client: Optional[httpx.AsyncClient] = None
        self.components: Optional[SyncComponents] = None
        self.dispatcher: Optional[LedgerEventDispatcher] = None

        self._background_tasks: List[asyncio.Task] = []
        self._shutdown_event = asyncio.Event()
        self._signal_count = 0
        self._start_time = time.time()
        self.exit_code = 0

    # =========================================================================
    # Lifecycle
    # =========================================================================

    async def start(self) -> None:
        """
        Raises:
            InfrastructureError: MongoDB unreachable
            SubscriptionError: event feed could not be opened
        """
        self.store = MongoStore(self.mongo_config)
        await self.store.connect()

        self.http_client = httpx.AsyncClient()
        adapter = HttpLedgerAdapter(self.http_client, self.ledger_config)
        self.components = build_components(self.store, adapter, self.ledger_config)

        event_names = self.config.replay_event_names or None
        start_block = self.ledger_config.start_block
        if event_names and start_block is None:
            start_block = 0

        self.dispatcher = build_dispatcher(self.components, adapter, start_block, event_names)
        await self.dispatcher.start()
        self._background_tasks.append(
            asyncio.create_task(self._watch_dispatcher(), name="dispatcher-watch")
        )

        if self.config.reconciliation_enabled:
            self._background_tasks.append(asyncio.create_task(
                run_reconciliation_periodically(
                    self.components.reconciler,
                    self.config.reconciliation_interval_seconds,
                    self.config.reconciliation_error_backoff_seconds,
                ),
                name="reconciliation",
            ))

        log_status_update(log, "Worker Ready", {
            "ledger": f"{self.ledger_config.channel}/{self.ledger_config.chaincode}",
            "start_block": start_block if start_block is not None else "latest",
            "events": ", ".join(event_names) if event_names else "all",
            "reconciliation": (
                f"every {self.config.reconciliation_interval_seconds}s"
                if self.config.reconciliation_enabled else "disabled"
            ),
        })

    async def stop(self) -> None:
        if self.dispatcher is not None:
            self.dispatcher.stop()
            try:
                await self.dispatcher.wait_stopped(timeout=self.config.shutdown_timeout_seconds)
            except asyncio.TimeoutError:
                log.warning("Dispatcher did not stop in time")

        for task in self._background_tasks:
            task.cancel()
        if self._background_tasks:
            await asyncio.gather(*self._background_tasks, return_exceptions=True)
        self._background_tasks.clear()

        if self.dispatcher is not None:
            log_metrics_table(log, "Ledger Sync Summary", {
                "events_received": self.dispatcher.events_received,
                "events_handled": self.dispatcher.events_handled,
                "events_failed": self.dispatcher.events_failed,
                "last_block": self.dispatcher.last_block,
                "uptime_s": int(time.time() - self._start_time),
            })

        if self.http_client is not None:
            await self.http_client.aclose()
            self.http_client = None
        if self.store is not None:
            await self.store.close()
            self.store = None

    async def _watch_dispatcher(self) -> None:
        await self.dispatcher.wait_stopped()
        if self._shutdown_event.is_set():
            return
        if self.dispatcher.last_error is not None:
            log.error(f"Event dispatcher terminated: {self.dispatcher.last_error}")
            self.exit_code = 1
        else:
            log.warning("Event feed ended, shutting down")
        self._shutdown_event.set()

    # =========================================================================
    # Signals
    # =========================================================================

    def handle_signal(self, sig, frame):
        """1st signal: graceful shutdown, 2nd+: force exit"""
        self._signal_count += 1
        log.warning(f"Received signal {signal.Signals(sig).name} (count: {self._signal_count})")

        if self._signal_count == 1:
            log.warning("Initiating graceful shutdown...")
            self._shutdown_event.set()
        else:
            log.error("Multiple signals received - forcing immediate exit")
            os._exit(1)

    async def wait_for_shutdown(self) -> None:
        await self._shutdown_event.wait()


# =============================================================================
# Main Entry Point
# =============================================================================

async def run_worker() -> int:
    load_dotenv()
    setup_logging(
        service_name="worker.ledger_sync",
        log_file=os.getenv("WORKER_LOG_FILE"),
        service_type="sync_worker",
    )

    worker = LedgerSyncWorker()
    log_worker_banner(log, worker_name="Ledger Sync Worker", instance_id=worker.instance_id)

    signal.signal(signal.SIGINT, worker.handle_signal)
    signal.signal(signal.SIGTERM, worker.handle_signal)

    if worker.config.metrics_port:
        start_http_server(worker.config.metrics_port)
        log.info(f"Prometheus metrics on :{worker.config.metrics_port}")

    try:
        await worker.start()
        await worker.wait_for_shutdown()
    except Exception as e:
        log.error(f"Worker failed: {e}", exc_info=True)
        worker.exit_code = 1
    finally:
        try:
            await asyncio.wait_for(worker.stop(), timeout=worker.config.shutdown_timeout_seconds)
            log.info("Graceful shutdown completed")
        except asyncio.TimeoutError:
            log.error("Graceful shutdown timed out")
        except Exception as e:
            log.error(f"Error during shutdown: {e}", exc_info=True)

    return worker.exit_code


def main():
    """Main entry point"""
    try:
        exit_code = asyncio.run(run_worker())
    except KeyboardInterrupt:
        print("\nWorker interrupted")
        exit_code = 0
    sys.exit(exit_code)


if __name__ == "__main__":
    main()
