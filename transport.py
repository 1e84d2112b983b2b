"""
transport.py
Generic JSON request executor: per-attempt timeout, retry, exponential backoff.

Retry lives here and only here; resource clients call execute() once.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Awaitable, Callable, Optional

import aiohttp

from errors import AcademyError, NetworkError, ServerError

logger = logging.getLogger(__name__)

Notifier = Callable[[str, str], None]
Sleeper = Callable[[float], Awaitable[Any]]

BODY_METHODS = ("POST", "PUT")


def log_notifier(message: str, level: str) -> None:
    logger.log(logging.ERROR if level == "error" else logging.INFO, message)


class Transport:
    def __init__(
        self,
        base_url: str,
        *,
        timeout: float = 30.0,
        max_attempts: int = 3,
        backoff_base: float = 1.0,
        sleep: Optional[Sleeper] = None,
        notify: Optional[Notifier] = None,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.max_attempts = max(1, max_attempts)
        self.backoff_base = backoff_base
        self._sleep = sleep if sleep is not None else asyncio.sleep
        self.notify = notify if notify is not None else log_notifier
        self._session: aiohttp.ClientSession | None = None

    def backoff_delay(self, attempt_index: int) -> float:
        return self.backoff_base * (2 ** attempt_index)

    async def _get_session(self) -> aiohttp.ClientSession:
        if self._session is None or self._session.closed:
            self._session = aiohttp.ClientSession(
                headers={"Content-Type": "application/json", "Cache-Control": "no-cache"},
            )
        return self._session

    async def close(self) -> None:
        if self._session is not None and not self._session.closed:
            await self._session.close()
        self._session = None

    async def _send(self, method: str, endpoint: str, body: Any = None) -> Any:
        """One HTTP exchange. Every failure comes out as an AcademyError."""
        url = f"{self.base_url}{endpoint}"
        context = {"method": method, "endpoint": endpoint}
        session = await self._get_session()
        try:
            async with session.request(
                method,
                url,
                json=body,
                timeout=aiohttp.ClientTimeout(total=self.timeout),
            ) as resp:
                if not 200 <= resp.status < 300:
                    raise ServerError.from_status(resp.status, resp.reason or "", context=context)
                return await resp.json(content_type=None)
        except asyncio.TimeoutError as exc:
            raise NetworkError(f"Request timed out after {self.timeout:g}s", context=context) from exc
        except aiohttp.ClientError as exc:
            raise NetworkError(f"Failed to fetch: {exc}", context=context) from exc
        except ValueError as exc:
            raise ServerError("API Error: invalid JSON response", status=502, context=context) from exc

    async def probe(self, endpoint: str) -> Any:
        """Single attempt, no backoff, no user notification."""
        return await self._send("GET", endpoint)

    async def execute(self, endpoint: str, method: str = "GET", body: Any = None) -> Any:
        method = method.upper()
        payload = body if method in BODY_METHODS else None

        attempt = 0
        while True:
            try:
                return await self._send(method, endpoint, payload)
            except AcademyError as exc:
                logger.warning(
                    "API request failed (attempt %d/%d) %s %s: %s",
                    attempt + 1, self.max_attempts, method, endpoint, exc,
                )
                if attempt + 1 >= self.max_attempts:
                    logger.error("API request gave up after %d attempts: %s %s", self.max_attempts, method, endpoint)
                    self.notify(f"API Request Failed: {exc.message}. Check your network connection.", "error")
                    raise
                delay = self.backoff_delay(attempt)
                logger.info("Retrying in %g seconds...", delay)
                await self._sleep(delay)
                attempt += 1
