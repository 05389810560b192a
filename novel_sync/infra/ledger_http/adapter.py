# =============================================================================
# File: novel_sync/infra/ledger_http/adapter.py
# Description: httpx adapter for a REST gateway bridge in front of the ledger
# =============================================================================

from __future__ import annotations

import json
from typing import Any, AsyncIterator, Dict, List, Optional

import httpx

from novel_sync.common.exceptions.exceptions import (
    LedgerReadError,
    LedgerTimeoutError,
    LedgerWriteError,
    SubscriptionError,
)
from novel_sync.config.ledger_config import LedgerConfig, get_ledger_config
from novel_sync.config.logging_config import get_logger
from novel_sync.ledger.ports.ledger_port import LedgerEvent

log = get_logger("novel_sync.infra.ledger_http")


class HttpLedgerAdapter:
    """
    Implements LedgerPort and EventFeedPort against a gateway bridge.

    Bridge API (per channel / chaincode):
        POST {base}/channels/{ch}/chaincodes/{cc}/submit    {"transaction", "args"} -> raw result
        POST {base}/channels/{ch}/chaincodes/{cc}/evaluate  {"transaction", "args"} -> raw result
        GET  {base}/channels/{ch}/chaincodes/{cc}/events?start_block=&checkpoint=&wait=
             -> {"events": [{"eventName", "payload", "blockNumber", "txId"}], "checkpoint": "..."}

    HTTP status codes map onto ledger failures:
        4xx on submit   -> LedgerWriteError (chaincode rejected the transaction)
        timeout         -> LedgerTimeoutError (submit) / LedgerReadError (evaluate)
    """

    def __init__(self, http_client: httpx.AsyncClient, config: Optional[LedgerConfig] = None):
        """
        Args:
            http_client: Shared httpx.AsyncClient, owned by the caller
            config: Ledger configuration (default: cached singleton)
        """
        self.http = http_client
        self.config = config or get_ledger_config()

    @property
    def _base_path(self) -> str:
        return (
            f"{self.config.base_url.rstrip('/')}"
            f"/channels/{self.config.channel}/chaincodes/{self.config.chaincode}"
        )

    def _headers(self) -> Dict[str, str]:
        if self.config.api_token is None:
            return {}
        return {"Authorization": f"Bearer {self.config.api_token.get_secret_value()}"}

    # =========================================================================
    # LedgerPort
    # =========================================================================

    async def submit(self, tx_name: str, *args: str) -> bytes:
        try:
            response = await self.http.post(
                f"{self._base_path}/submit",
                json={"transaction": tx_name, "args": list(args)},
                headers=self._headers(),
                timeout=self.config.submit_deadline_seconds,
            )
        except httpx.TimeoutException:
            raise LedgerTimeoutError(tx_name, self.config.submit_deadline_seconds)
        except httpx.HTTPError as e:
            raise LedgerWriteError(tx_name, f"transport error: {e}") from e

        if response.status_code >= 400:
            raise LedgerWriteError(tx_name, self._error_text(response))
        return response.content

    async def evaluate(self, tx_name: str, *args: str) -> bytes:
        try:
            response = await self.http.post(
                f"{self._base_path}/evaluate",
                json={"transaction": tx_name, "args": list(args)},
                headers=self._headers(),
                timeout=self.config.evaluate_timeout_seconds,
            )
        except httpx.TimeoutException as e:
            raise LedgerReadError(tx_name, f"timed out after {self.config.evaluate_timeout_seconds}s") from e
        except httpx.HTTPError as e:
            raise LedgerReadError(tx_name, f"transport error: {e}") from e

        if response.status_code >= 400:
            raise LedgerReadError(tx_name, self._error_text(response))
        return response.content

    # =========================================================================
    # EventFeedPort
    # =========================================================================

    async def subscribe(self, start_block: Optional[int] = None) -> AsyncIterator[LedgerEvent]:
        """
        Open the event stream. The first poll is made here so that an
        unreachable bridge fails the subscription instead of the stream.
        """
        events, checkpoint = await self._poll(start_block=start_block, checkpoint=None, wait=0)
        log.info(
            f"Event subscription opened on {self.config.channel}/{self.config.chaincode} "
            f"(start_block={start_block})"
        )
        return self._stream(events, checkpoint)

    async def _stream(self, first_batch: List[LedgerEvent], checkpoint: Optional[str]) -> AsyncIterator[LedgerEvent]:
        for event in first_batch:
            yield event

        while True:
            events, checkpoint = await self._poll(
                start_block=None,
                checkpoint=checkpoint,
                wait=self.config.event_poll_timeout_seconds,
            )
            for event in events:
                yield event

    async def _poll(
            self,
            start_block: Optional[int],
            checkpoint: Optional[str],
            wait: float,
    ) -> tuple[List[LedgerEvent], Optional[str]]:
        params: Dict[str, Any] = {"wait": wait}
        if checkpoint is not None:
            params["checkpoint"] = checkpoint
        elif start_block is not None:
            params["start_block"] = start_block

        try:
            response = await self.http.get(
                f"{self._base_path}/events",
                params=params,
                headers=self._headers(),
                # Long-poll: give the bridge its wait window plus slack
                timeout=wait + self.config.evaluate_timeout_seconds,
            )
        except httpx.HTTPError as e:
            raise SubscriptionError(f"Event feed request failed: {e}") from e

        if response.status_code >= 400:
            raise SubscriptionError(f"Event feed returned {response.status_code}: {self._error_text(response)}")

        try:
            body = response.json()
        except ValueError as e:
            raise SubscriptionError(f"Event feed returned invalid JSON: {e}") from e

        events = [self._to_event(item) for item in body.get("events") or []]
        return events, body.get("checkpoint", checkpoint)

    @staticmethod
    def _to_event(item: Dict[str, Any]) -> LedgerEvent:
        payload = item.get("payload") or ""
        if isinstance(payload, (dict, list)):
            payload = json.dumps(payload)
        if isinstance(payload, str):
            payload = payload.encode("utf-8")
        return LedgerEvent(
            event_name=str(item.get("eventName", "")),
            payload=payload,
            block_number=int(item.get("blockNumber", 0)),
            tx_id=item.get("txId"),
        )

    @staticmethod
    def _error_text(response: httpx.Response) -> str:
        text = response.text or f"HTTP {response.status_code}"
        return text[:200] + ("... (truncated)" if len(text) > 200 else "")
