"""
toncenter v3 client: paged trace fetch with retry and backoff.

Responsibilities:
- GET /traces for one account (actions included, ascending logical time).
- Retry transport errors, HTTP 429 and 5xx with exponential backoff; give up
  with FetchError after max_retries. Other 4xx fail immediately.
- Parse raw items into Trace objects; skip (and log) items that are not objects.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass, field
from typing import Any

import httpx

from lottery_indexer.core.exceptions import FetchError
from lottery_indexer.lottery_logging import get_logger
from lottery_indexer.lottery_logging.logger import short
from lottery_indexer.ton.models import Trace

logger = get_logger(__name__)

TRACES_PATH = "/traces"


@dataclass(frozen=True)
class TracePage:
    """One page of traces plus the page's token metadata side-table."""

    offset: int
    traces: list[Trace]
    metadata: dict[str, Any] = field(default_factory=dict)
    raw_count: int = 0

    def __len__(self) -> int:
        return len(self.traces)


def _is_retryable(status_code: int) -> bool:
    return status_code == 429 or status_code >= 500


class ToncenterClient:
    """
    Thin async wrapper over the toncenter v3 indexer API.

    Use as an async context manager, or call aclose() when done.
    """

    def __init__(
        self,
        base_url: str,
        api_key: str | None = None,
        *,
        request_timeout_sec: float = 10.0,
        max_retries: int = 3,
        min_retry_delay_sec: float = 1.0,
        max_retry_delay_sec: float = 30.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        """
        Args:
            base_url: API root, e.g. https://testnet.toncenter.com/api/v3.
            api_key: Optional key, sent as the api_key query parameter.
            request_timeout_sec: HTTP timeout for each request.
            max_retries: Attempts per request before raising FetchError.
            min_retry_delay_sec: Initial backoff delay.
            max_retry_delay_sec: Cap for backoff delay.
            transport: Optional httpx transport (tests use httpx.MockTransport).
        """
        if not base_url.strip():
            raise ValueError("base_url must be non-empty")
        if max_retries < 1:
            raise ValueError("max_retries must be >= 1")
        self._base_url = base_url.rstrip("/")
        self._api_key = api_key
        self._max_retries = max_retries
        self._min_retry_delay = min_retry_delay_sec
        self._max_retry_delay = max_retry_delay_sec
        self._client = httpx.AsyncClient(
            base_url=self._base_url,
            timeout=httpx.Timeout(request_timeout_sec),
            transport=transport,
        )

    async def __aenter__(self) -> "ToncenterClient":
        return self

    async def __aexit__(self, *exc: Any) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        await self._client.aclose()

    async def fetch_traces_page(
        self,
        account: str,
        *,
        offset: int,
        limit: int,
        start_lt: int | None = None,
    ) -> TracePage:
        """Fetch one page of traces for account, oldest first."""
        params: dict[str, Any] = {
            "account": account,
            "limit": limit,
            "offset": offset,
            "include_actions": "true",
            "sort": "asc",
        }
        if start_lt is not None:
            params["start_lt"] = start_lt
        data = await self._get_json(TRACES_PATH, params)

        traces: list[Trace] = []
        items = data.get("traces")
        if items is None:
            items = []
        elif not isinstance(items, list):
            raise FetchError(f"{TRACES_PATH} returned traces as {type(items).__name__}, expected list")
        for item in items:
            try:
                traces.append(Trace.from_api(item))
            except ValueError as e:
                logger.warning("client_trace_item_invalid", offset=offset, error=str(e))
        metadata = data.get("metadata")
        page = TracePage(
            offset=offset,
            traces=traces,
            metadata=metadata if isinstance(metadata, dict) else {},
            raw_count=len(items),
        )
        logger.debug("client_page_fetched", account=short(account), offset=offset, traces=len(traces))
        return page

    async def _get_json(self, path: str, params: dict[str, Any]) -> dict[str, Any]:
        """GET path with retry; return the decoded JSON object or raise FetchError."""
        if self._api_key:
            params = {**params, "api_key": self._api_key}
        delay = self._min_retry_delay
        last_error: str = ""

        for attempt in range(self._max_retries):
            try:
                resp = await self._client.get(path, params=params)
            except httpx.HTTPError as e:
                last_error = f"{type(e).__name__}: {e}"
            else:
                if resp.status_code < 400:
                    try:
                        data = resp.json()
                    except ValueError as e:
                        raise FetchError(f"{path} returned invalid JSON") from e
                    if not isinstance(data, dict):
                        raise FetchError(f"{path} returned {type(data).__name__}, expected object")
                    return data
                if not _is_retryable(resp.status_code):
                    raise FetchError(f"{path} failed with HTTP {resp.status_code}: {resp.text[:200]}")
                last_error = f"HTTP {resp.status_code}"

            logger.warning(
                "client_request_retry",
                path=path,
                attempt=attempt + 1,
                max_retries=self._max_retries,
                error=last_error,
            )
            if attempt + 1 < self._max_retries:
                await asyncio.sleep(delay)
                delay = min(delay * 2, self._max_retry_delay)

        logger.error("client_request_give_up", path=path, max_retries=self._max_retries, error=last_error)
        raise FetchError(f"{path} failed after {self._max_retries} attempts: {last_error}")
