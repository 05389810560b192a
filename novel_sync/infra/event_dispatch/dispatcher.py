# =============================================================================
# File: novel_sync/infra/event_dispatch/dispatcher.py
# Description: Consumes the ledger event feed and routes events to projectors
# =============================================================================

from __future__ import annotations

import asyncio
import time
from typing import AsyncIterator, Iterable, Optional, Set

from novel_sync.common.exceptions.exceptions import PayloadDecodeError, SubscriptionError
from novel_sync.config.logging_config import get_logger
from novel_sync.infra.event_dispatch.event_decoding import decode_ledger_event
from novel_sync.infra.event_dispatch.handler_registry import ProjectionHandlerRegistry
from novel_sync.infra.metrics.sync_metrics import (
    dispatcher_running,
    ledger_last_block_processed,
    projection_handler_duration_seconds,
    record_event_outcome,
)
from novel_sync.ledger.ports.ledger_port import EventFeedPort, LedgerEvent

log = get_logger("novel_sync.infra.event_dispatch.dispatcher")


async def _next_event(stream: AsyncIterator[LedgerEvent]) -> LedgerEvent:
    return await stream.__anext__()


class LedgerEventDispatcher:
    """
    One long-lived consumption task per ledger connection.

    Events are handled inline, one at a time, in feed order. A handler or
    decode failure is logged and the stream moves on; an unknown event name
    is logged and skipped. stop() is observed while waiting for the next
    event, never in the middle of a handler, and pending events are not
    drained.

    If the feed itself breaks, the task ends and last_error holds a
    SubscriptionError. Restarting is the owner's job.
    """

    def __init__(
            self,
            feed: EventFeedPort,
            registry: ProjectionHandlerRegistry,
            start_block: Optional[int] = None,
            event_names: Optional[Iterable[str]] = None,
            name: str = "ledger-event-dispatcher",
    ):
        """
        Args:
            feed: Event feed to subscribe to
            registry: Event name -> projector method routing
            start_block: Replay from this block (None = tail new blocks)
            event_names: Only process these events (None = all)
            name: Task name, used in logs
        """
        self.feed = feed
        self.registry = registry
        self.start_block = start_block
        self.event_names: Optional[Set[str]] = set(event_names) if event_names else None
        self.name = name

        self._task: Optional[asyncio.Task] = None
        self._stop_event = asyncio.Event()
        self._stopped_event = asyncio.Event()
        self._stopped_event.set()
        self._last_error: Optional[Exception] = None

        self.events_received = 0
        self.events_handled = 0
        self.events_failed = 0
        self.last_block: Optional[int] = None

    # =========================================================================
    # Lifecycle
    # =========================================================================

    async def start(self) -> None:
        """
        Open the subscription and start consuming.

        Raises:
            SubscriptionError: the feed could not be opened (no retry)
        """
        if self._task is not None and not self._task.done():
            log.warning(f"{self.name} already running")
            return

        try:
            stream = await self.feed.subscribe(self.start_block)
        except SubscriptionError:
            raise
        except Exception as e:
            raise SubscriptionError(f"Failed to open event subscription: {e}") from e

        self._stop_event.clear()
        self._stopped_event.clear()
        self._last_error = None
        self._task = asyncio.create_task(self._consume(stream), name=self.name)
        dispatcher_running.set(1)

        filter_info = f", events={sorted(self.event_names)}" if self.event_names else ""
        log.info(f"{self.name} started (start_block={self.start_block}{filter_info})")

    def stop(self) -> None:
        """Request a stop. Takes effect before the next event is read."""
        self._stop_event.set()

    async def wait_stopped(self, timeout: Optional[float] = None) -> None:
        if timeout is None:
            await self._stopped_event.wait()
        else:
            await asyncio.wait_for(self._stopped_event.wait(), timeout=timeout)

    @property
    def stopped(self) -> bool:
        return self._stopped_event.is_set()

    @property
    def last_error(self) -> Optional[Exception]:
        return self._last_error

    # =========================================================================
    # Consumption loop
    # =========================================================================

    async def _consume(self, stream: AsyncIterator[LedgerEvent]) -> None:
        stop_waiter = asyncio.create_task(self._stop_event.wait())
        try:
            while not self._stop_event.is_set():
                next_event = asyncio.create_task(_next_event(stream))
                done, _ = await asyncio.wait({next_event, stop_waiter}, return_when=asyncio.FIRST_COMPLETED)

                if stop_waiter in done:
                    next_event.cancel()
                    await asyncio.gather(next_event, return_exceptions=True)
                    break

                try:
                    event = next_event.result()
                except StopAsyncIteration:
                    log.info(f"{self.name}: event feed ended")
                    break
                except Exception as e:
                    self._last_error = e if isinstance(e, SubscriptionError) else SubscriptionError(
                        f"Event feed failed: {e}"
                    )
                    log.error(f"{self.name}: event feed failed: {e}")
                    break

                await self._dispatch(event)

        except asyncio.CancelledError:
            log.info(f"{self.name} cancelled")
            raise
        finally:
            stop_waiter.cancel()
            aclose = getattr(stream, "aclose", None)
            if aclose is not None:
                try:
                    await aclose()
                except Exception as e:
                    log.debug(f"{self.name}: error closing event stream: {e}")
            dispatcher_running.set(0)
            self._stopped_event.set()
            log.info(
                f"{self.name} stopped: received={self.events_received}, "
                f"handled={self.events_handled}, failed={self.events_failed}"
            )

    async def _dispatch(self, event: LedgerEvent) -> None:
        self.events_received += 1
        event_name = event.event_name

        try:
            if self.event_names is not None and event_name not in self.event_names:
                record_event_outcome(event_name, "filtered")
                return

            handler = self.registry.get_handler(event_name)
            if handler is None:
                log.warning(f"Unknown ledger event {event_name} at block {event.block_number}, skipped")
                record_event_outcome(event_name, "unhandled")
                return

            try:
                decoded = decode_ledger_event(event)
            except PayloadDecodeError as e:
                self.events_failed += 1
                log.error(f"{e} (block {event.block_number})")
                record_event_outcome(event_name, "failed")
                return
            except Exception as e:
                self.events_failed += 1
                log.error(
                    f"Unexpected error decoding {event_name} at block {event.block_number}: {e}",
                    exc_info=True,
                    extra={"event_name": event_name, "block_number": event.block_number},
                )
                record_event_outcome(event_name, "failed")
                return

            start = time.monotonic()
            try:
                await handler(decoded)
            except Exception as e:
                self.events_failed += 1
                log.error(
                    f"Projection handler for {event_name} failed at block {event.block_number}: {e}",
                    exc_info=True,
                    extra={"event_name": event_name, "block_number": event.block_number},
                )
                record_event_outcome(event_name, "failed")
            else:
                self.events_handled += 1
                record_event_outcome(event_name, "handled")
            finally:
                projection_handler_duration_seconds.labels(event_name=event_name).observe(time.monotonic() - start)
        finally:
            self.last_block = event.block_number
            ledger_last_block_processed.set(event.block_number)
