"""Async HTTP adapter used to fetch manifest text."""

from __future__ import annotations

import asyncio
import logging
from typing import Dict, Optional, Protocol

import aiohttp

from ..config import DEFAULT_USER_AGENT, EngineSettings
from ..models import FetchResult

MANIFEST_HEADERS: Dict[str, str] = {
    "user-agent": DEFAULT_USER_AGENT,
    "accept": "*/*",
    "accept-language": "en-US,en;q=0.9",
}

NETWORK_RETRY_DELAY = 0.1


class ManifestFetcher(Protocol):
    """Anything able to fetch manifest text without raising on failure."""

    async def fetch(
        self,
        url: str,
        headers: Optional[Dict[str, str]] = None,
        timeout_ms: Optional[int] = None,
        max_retries: Optional[int] = None,
    ) -> FetchResult: ...


class HttpClient:
    """Fetches manifests with per-attempt timeouts and bounded retries."""

    def __init__(self, settings: Optional[EngineSettings] = None) -> None:
        self.settings = settings or EngineSettings()
        self._headers = MANIFEST_HEADERS.copy()
        self._headers["user-agent"] = self.settings.user_agent

        self._session: Optional[aiohttp.ClientSession] = None
        self._session_lock: Optional[asyncio.Lock] = None
        self._loop: Optional[asyncio.AbstractEventLoop] = None

    async def fetch(
        self,
        url: str,
        headers: Optional[Dict[str, str]] = None,
        timeout_ms: Optional[int] = None,
        max_retries: Optional[int] = None,
    ) -> FetchResult:
        """GET ``url`` as text. Failures come back as ``success=False``."""

        timeout_ms = self.settings.fetch_timeout_ms if timeout_ms is None else timeout_ms
        max_retries = self.settings.fetch_max_retries if max_retries is None else max_retries
        request_headers = {**self._headers, **(headers or {})}
        timeout = aiohttp.ClientTimeout(total=timeout_ms / 1000)

        session = await self._get_session()
        attempt = 0
        while True:
            if attempt > 0:
                logging.debug("Retry attempt %s/%s for %s", attempt, max_retries, url)
            try:
                async with session.get(url, headers=request_headers, timeout=timeout) as resp:
                    if resp.status < 400:
                        content = await resp.text(errors="replace")
                        return FetchResult(success=True, status=resp.status, content=content, retry_count=attempt)

                    if resp.status != 429 and resp.status < 500:
                        logging.debug("Non-retriable HTTP %s for %s", resp.status, url)
                        return FetchResult(success=False, status=resp.status, retry_count=attempt)

                    if attempt >= max_retries:
                        logging.warning("Giving up on %s after HTTP %s", url, resp.status)
                        return FetchResult(success=False, status=resp.status, retry_count=attempt)

                    delay = self._backoff_delay(attempt, resp.headers.get("Retry-After"), resp.status)
            except (aiohttp.ClientError, asyncio.TimeoutError) as exc:
                error = str(exc) or exc.__class__.__name__
                if attempt >= max_retries:
                    logging.warning("Fetching %s failed after %s attempts: %s", url, attempt + 1, error)
                    return FetchResult(success=False, status=0, retry_count=attempt, error=error)
                logging.debug("Network error for %s: %s", url, error)
                delay = NETWORK_RETRY_DELAY

            attempt += 1
            await asyncio.sleep(delay)

    def _backoff_delay(self, attempt: int, retry_after: Optional[str], status: int) -> float:
        delay = self.settings.retry_delay_ms / 1000 * (2**attempt)
        if status == 429 and retry_after and retry_after.isdigit():
            delay = float(retry_after)
            logging.debug("Rate limited, waiting %ss as requested", delay)
        return delay

    async def _get_session(self) -> aiohttp.ClientSession:
        current_loop = asyncio.get_running_loop()
        if self._session:
            if self._session.closed or not self._loop or self._loop.is_closed() or self._loop is not current_loop:
                await self._shutdown_session()

        if self._session_lock is None:
            self._session_lock = asyncio.Lock()

        async with self._session_lock:
            if self._session and not self._session.closed:
                return self._session
            self._session = aiohttp.ClientSession(headers=self._headers.copy())
            self._loop = current_loop
        return self._session

    async def _shutdown_session(self) -> None:
        if self._session and not self._session.closed:
            try:
                await self._session.close()
            except RuntimeError as exc:  # pragma: no cover - session bound to a dead loop
                logging.debug("Ignoring error while closing session: %s", exc)
        self._session = None
        self._loop = None
        self._session_lock = None

    async def close(self) -> None:
        await self._shutdown_session()

    async def __aenter__(self) -> "HttpClient":
        return self

    async def __aexit__(self, exc_type, exc_value, traceback) -> None:
        await self.close()
