# =============================================================================
# File: novel_sync/ledger/gateway.py
# Description: Deadline-bounded access to the ledger with typed failures
# =============================================================================

from __future__ import annotations

import asyncio
import json
import time
from typing import Any, Optional

from novel_sync.config.ledger_config import LedgerConfig, get_ledger_config
from novel_sync.config.logging_config import get_logger
from novel_sync.common.exceptions.exceptions import (
    LedgerReadError,
    LedgerWriteError,
    LedgerTimeoutError,
)
from novel_sync.infra.metrics.sync_metrics import (
    ledger_call_duration_seconds,
    ledger_call_failures_total,
)
from novel_sync.ledger.ports.ledger_port import LedgerPort

log = get_logger("novel_sync.ledger.gateway")


class LedgerGateway:
    """
    Wraps a LedgerPort with per-call deadlines and error classification.

    - evaluate(): bounded by evaluate_timeout_seconds, failures -> LedgerReadError
    - submit():   bounded by submit + commit-status timeouts,
                  rejection -> LedgerWriteError, deadline -> LedgerTimeoutError

    A LedgerTimeoutError on submit does not mean the transaction was dropped.
    """

    def __init__(self, port: LedgerPort, config: Optional[LedgerConfig] = None):
        self._port = port
        self._config = config or get_ledger_config()

    @property
    def port(self) -> LedgerPort:
        return self._port

    async def evaluate(self, tx_name: str, *args: str) -> bytes:
        timeout = self._config.evaluate_timeout_seconds
        start = time.monotonic()
        try:
            return await asyncio.wait_for(self._port.evaluate(tx_name, *args), timeout=timeout)
        except asyncio.TimeoutError:
            ledger_call_failures_total.labels(kind='evaluate', tx_name=tx_name, reason='timeout').inc()
            log.error(f"Ledger evaluate {tx_name} timed out after {timeout}s")
            raise LedgerReadError(tx_name, f"timed out after {timeout}s")
        except LedgerReadError:
            ledger_call_failures_total.labels(kind='evaluate', tx_name=tx_name, reason='rejected').inc()
            raise
        except Exception as e:
            ledger_call_failures_total.labels(kind='evaluate', tx_name=tx_name, reason='error').inc()
            log.error(f"Ledger evaluate {tx_name} failed: {e}")
            raise LedgerReadError(tx_name, str(e)) from e
        finally:
            ledger_call_duration_seconds.labels(kind='evaluate', tx_name=tx_name).observe(time.monotonic() - start)

    async def evaluate_json(self, tx_name: str, *args: str) -> Any:
        """Evaluate and decode the JSON result. An empty result decodes to None."""
        raw = await self.evaluate(tx_name, *args)
        if not raw or not raw.strip():
            return None
        try:
            return json.loads(raw)
        except (ValueError, UnicodeDecodeError) as e:
            raise LedgerReadError(tx_name, f"invalid JSON result: {e}") from e

    async def submit(self, tx_name: str, *args: str) -> bytes:
        timeout = self._config.submit_deadline_seconds
        start = time.monotonic()
        try:
            result = await asyncio.wait_for(self._port.submit(tx_name, *args), timeout=timeout)
            log.debug(f"Ledger submit {tx_name} committed in {time.monotonic() - start:.3f}s")
            return result
        except asyncio.TimeoutError:
            ledger_call_failures_total.labels(kind='submit', tx_name=tx_name, reason='timeout').inc()
            log.error(f"Ledger submit {tx_name} timed out after {timeout}s, outcome unknown")
            raise LedgerTimeoutError(tx_name, timeout)
        except LedgerWriteError as e:
            reason = 'timeout' if e.outcome_unknown else 'rejected'
            ledger_call_failures_total.labels(kind='submit', tx_name=tx_name, reason=reason).inc()
            raise
        except Exception as e:
            ledger_call_failures_total.labels(kind='submit', tx_name=tx_name, reason='error').inc()
            log.error(f"Ledger submit {tx_name} failed: {e}")
            raise LedgerWriteError(tx_name, str(e)) from e
        finally:
            ledger_call_duration_seconds.labels(kind='submit', tx_name=tx_name).observe(time.monotonic() - start)
