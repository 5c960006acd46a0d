"""
Graph client — one async httpx session per run.

Reads and writes both go through the SafetyGuardian before anything leaves
the process. Writes the guardian only plans (dry-run) return {"_dry_run": True}.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any, AsyncIterator, Optional

import httpx

from ..config import (
    GRAPH_BASE_URL,
    GRAPH_API_VERSION,
    MAX_RETRIES,
    INITIAL_BACKOFF_SECONDS,
    MAX_BACKOFF_SECONDS,
    BACKOFF_MULTIPLIER,
    DEFAULT_PAGE_SIZE,
    MAX_PAGES_PER_ENDPOINT,
    REQUEST_TIMEOUT_SECONDS,
    CONNECT_TIMEOUT_SECONDS,
)
from ..safety.guardian import SafetyGuardian

logger = logging.getLogger("m365_tenant_sync.graph")

# Throttled or temporarily unavailable; worth another attempt
RETRYABLE_STATUS = frozenset({429, 503, 504})
TRANSIENT_ERRORS = (httpx.TimeoutException, httpx.ConnectError)

DRY_RUN_RESPONSE = {"_dry_run": True}


class GraphAPIError(Exception):
    """Graph answered with a status the caller has to deal with."""
    def __init__(self, status_code: int, message: str, url: str, request_id: str = ""):
        self.status_code = status_code
        self.message = message
        self.url = url
        self.request_id = request_id
        super().__init__(f"Graph API Error {status_code} for {url}: {message}")


class GraphClient:
    """
    Async Microsoft Graph client.

    Use as `async with GraphClient(token, guardian) as client:`. The token is
    acquired by the caller; the client does not refresh it. `transport` and
    `sleep` exist so tests can run without network or real waiting.
    """

    def __init__(
        self,
        access_token: str,
        guardian: SafetyGuardian,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        sleep=asyncio.sleep,
    ):
        self.access_token = access_token
        self.guardian = guardian
        self._transport = transport
        self._sleep = sleep
        self._session: Optional[httpx.AsyncClient] = None
        self._stats = {"total_requests": 0, "throttle_events": 0}

    async def __aenter__(self) -> "GraphClient":
        self._session = httpx.AsyncClient(
            timeout=httpx.Timeout(REQUEST_TIMEOUT_SECONDS, connect=CONNECT_TIMEOUT_SECONDS),
            transport=self._transport,
            headers={
                "Authorization": f"Bearer {self.access_token}",
                "Accept": "application/json",
                "ConsistencyLevel": "eventual",
            },
        )
        return self

    async def __aexit__(self, *exc_info):
        if self._session is not None:
            await self._session.aclose()
            self._session = None

    @staticmethod
    def url_for(endpoint: str) -> str:
        """Absolute URL for a relative endpoint; absolute links pass through."""
        if endpoint.startswith(("http://", "https://")):
            return endpoint
        return f"{GRAPH_BASE_URL}/{GRAPH_API_VERSION}/{endpoint.lstrip('/')}"

    # ── Verbs ───────────────────────────────────────────────────────────────

    async def get(self, endpoint: str, params: Optional[dict] = None) -> dict:
        return await self.request("GET", endpoint, params=params)

    async def post(self, endpoint: str, body: dict) -> dict:
        return await self.request("POST", endpoint, body=body)

    async def patch(self, endpoint: str, body: dict) -> dict:
        return await self.request("PATCH", endpoint, body=body)

    async def request(
        self,
        method: str,
        endpoint: str,
        params: Optional[dict] = None,
        body: Optional[dict] = None,
    ) -> dict:
        """Guard, send and decode one request. Raises GraphAPIError on failure."""
        url = self.url_for(endpoint)
        if not self.guardian.validate_request(method, url, body):
            return dict(DRY_RUN_RESPONSE)
        return await self._send(method, url, params, body)

    # ── Pagination ──────────────────────────────────────────────────────────

    async def iter_items(
        self,
        endpoint: str,
        params: Optional[dict] = None,
        skip_top: bool = False,
    ) -> AsyncIterator[dict]:
        """
        Yield every item of a collection, following @odata.nextLink.
        Pass skip_top=True for collections that reject $top.
        """
        query: Optional[dict] = dict(params or {})
        if not skip_top:
            query.setdefault("$top", str(DEFAULT_PAGE_SIZE))

        next_url: Optional[str] = self.url_for(endpoint)
        for _ in range(MAX_PAGES_PER_ENDPOINT):
            if not next_url:
                return
            page = await self.request("GET", next_url, params=query)
            for item in page.get("value", []):
                yield item
            next_url = page.get("@odata.nextLink")
            query = None  # the next link already carries the query string

        if next_url:
            logger.warning(f"Stopped paging {endpoint} after {MAX_PAGES_PER_ENDPOINT} pages")

    async def get_all_pages(
        self,
        endpoint: str,
        params: Optional[dict] = None,
        skip_top: bool = False,
    ) -> list[dict]:
        return [item async for item in self.iter_items(endpoint, params, skip_top=skip_top)]

    # ── Transport ───────────────────────────────────────────────────────────

    async def _send(
        self,
        method: str,
        url: str,
        params: Optional[dict],
        body: Optional[dict],
    ) -> dict:
        if self._session is None:
            raise RuntimeError("GraphClient is not open; use 'async with GraphClient(...)'.")

        attempt = 0
        while True:
            delay = min(INITIAL_BACKOFF_SECONDS * BACKOFF_MULTIPLIER ** attempt, MAX_BACKOFF_SECONDS)
            try:
                response = await self._session.request(method, url, params=params, json=body)
            except TRANSIENT_ERRORS as e:
                if attempt >= MAX_RETRIES:
                    raise
                logger.warning(f"{type(e).__name__} on {method} {url}, "
                               f"retry {attempt + 1}/{MAX_RETRIES} in {delay:.1f}s")
                await self._sleep(delay)
                attempt += 1
                continue

            self._stats["total_requests"] += 1
            if response.status_code in RETRYABLE_STATUS and attempt < MAX_RETRIES:
                self._stats["throttle_events"] += 1
                wait = max(_retry_after(response, delay), delay)
                logger.warning(f"Throttled ({response.status_code}) on {method} {url}, "
                               f"retry {attempt + 1}/{MAX_RETRIES} in {wait:.1f}s")
                await self._sleep(wait)
                attempt += 1
                continue

            return _decode(response, url)

    def get_stats(self) -> dict:
        return dict(self._stats)


def _decode(response: httpx.Response, url: str) -> dict[str, Any]:
    if response.status_code == 204 or (response.is_success and not response.content.strip()):
        return {}
    if response.is_success:
        return response.json()
    raise GraphAPIError(
        response.status_code,
        _error_message(response),
        url,
        request_id=response.headers.get("request-id", ""),
    )


def _retry_after(response: httpx.Response, default: float) -> float:
    try:
        return float(response.headers.get("Retry-After", default))
    except ValueError:
        return default


def _error_message(response: httpx.Response) -> str:
    """Graph's error.message when present, else the start of the raw body."""
    try:
        payload = response.json() if response.content else {}
    except ValueError:
        payload = {}
    error = payload.get("error") if isinstance(payload, dict) else None
    if isinstance(error, dict) and error.get("message"):
        return str(error["message"])
    return response.text[:200] or response.reason_phrase
