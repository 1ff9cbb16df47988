"""
http.py – Async HTTP client built on *aiohttp* with a token-bucket rate
          limit, bounded retries and a fleet-wide cooldown after failures.
"""

from __future__ import annotations

import asyncio
import logging
import time
from typing import Any, Awaitable, Callable, Dict, Mapping, Optional, Type, TypeVar

import aiohttp
from pydantic import TypeAdapter, ValidationError

from .ratelimit import TokenBucket

logger = logging.getLogger(__name__)

T = TypeVar("T")

DEFAULT_COOLDOWN = 5 * 60.0


class FetchError(Exception):
    """Base class for everything that can go wrong fetching a resource."""


class TransportError(FetchError):
    """Connection or status failure that persisted through every retry."""

    def __init__(self, method: str, url: str, attempts: int, last_error: BaseException) -> None:
        super().__init__(
            f"{method} {url} failed after {attempts} attempt(s), last error was {last_error}"
        )
        self.method = method
        self.url = url
        self.attempts = attempts
        self.last_error = last_error


class DecodeError(FetchError):
    """The response arrived but its body is not the expected shape."""

    def __init__(self, url: str, error: Exception) -> None:
        super().__init__(f"Could not decode response from {url}: {error}")
        self.url = url
        self.error = error


class CooldownGate:
    """
    Single-permit gate every request attempt passes through.

    A retrying caller holds the permit for the whole cooldown, so every other
    caller of the same client queues behind it until ``cooling_until`` clears.
    """

    def __init__(
        self,
        cooldown: float = DEFAULT_COOLDOWN,
        *,
        sleep: Callable[[float], Awaitable[None]] | None = None,
    ) -> None:
        self.cooldown = cooldown
        self.cooling_until: Optional[float] = None
        self._sleep = sleep
        self._lock = asyncio.Lock()

    @property
    def cooling_down(self) -> bool:
        return self.cooling_until is not None

    async def pass_through(self, *, retry: bool) -> None:
        """Take the permit, cool down if this is a retry, then release it."""
        sleep = self._sleep or asyncio.sleep
        async with self._lock:
            if not retry:
                return
            self.cooling_until = time.monotonic() + self.cooldown
            logger.warning(
                "Network error occurred, holding all requests for %.0fs", self.cooldown
            )
            try:
                await sleep(self.cooldown)
            finally:
                self.cooling_until = None


class RateLimitedClient:
    """
    Thin wrapper over *aiohttp.ClientSession* adding:

    * optional token-bucket rate limit (requests / second)
    * ``max_retries`` extra attempts for transport errors and non-2xx statuses
    * a global cooldown before every retry, shared by all concurrent callers
    * typed JSON decoding that keeps transport and decode failures apart
    * async context-manager support
    """

    def __init__(
        self,
        *,
        session: Optional[aiohttp.ClientSession] = None,
        requests_per_second: Optional[float] = None,
        max_retries: int = 0,
        cooldown: float = DEFAULT_COOLDOWN,
        timeout: float = 30.0,
        default_headers: Optional[Mapping[str, str]] = None,
    ) -> None:
        if max_retries < 0:
            raise ValueError(f"max_retries must be non-negative, got {max_retries}")
        self._external_session = session
        self._own_session: Optional[aiohttp.ClientSession] = None
        self._timeout = timeout
        self._default_headers: Dict[str, str] = dict(default_headers or {})
        self.limiter: Optional[TokenBucket] = (
            TokenBucket(requests_per_second) if requests_per_second else None
        )
        self.max_retries = max_retries
        self.gate = CooldownGate(cooldown)

    # ---------------------------------------------- #
    # Builders
    def with_limit(self, requests_per_second: float) -> "RateLimitedClient":
        self.limiter = TokenBucket(requests_per_second)
        return self

    def with_max_retries(self, max_retries: int) -> "RateLimitedClient":
        if max_retries < 0:
            raise ValueError(f"max_retries must be non-negative, got {max_retries}")
        self.max_retries = max_retries
        return self

    # ---------------------------------------------- #
    # Async context-manager
    async def __aenter__(self) -> "RateLimitedClient":  # noqa: D401
        await self._ensure_session()
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:  # noqa: D401
        await self.close()

    # ---------------------------------------------- #
    # Session management
    async def _ensure_session(self) -> aiohttp.ClientSession:
        if self._external_session:
            return self._external_session
        if self._own_session is None or self._own_session.closed:
            timeout = aiohttp.ClientTimeout(total=self._timeout)
            self._own_session = aiohttp.ClientSession(
                timeout=timeout, headers=self._default_headers
            )
        return self._own_session

    async def close(self) -> None:
        if self._own_session and not self._own_session.closed:
            await self._own_session.close()
            self._own_session = None

    # ---------------------------------------------- #
    # Internal helpers
    async def _send(self, method: str, url: str, body: Any) -> bytes:
        session = await self._ensure_session()
        kwargs: Dict[str, Any] = {}
        if body is not None:
            kwargs["json"] = body
        async with session.request(method, url, **kwargs) as resp:
            resp.raise_for_status()
            return await resp.read()

    async def _request(self, method: str, url: str, body: Any = None) -> bytes:
        """Perform a request with cooldown, rate limit and retries."""
        attempt = 0
        while True:
            await self.gate.pass_through(retry=attempt > 0)

            if self.limiter is not None:
                await self.limiter.acquire()

            logger.debug("HTTP %s %s (attempt %d)", method, url, attempt + 1)
            try:
                return await self._send(method, url, body)
            except (aiohttp.ClientError, asyncio.TimeoutError) as e:
                attempt += 1
                if attempt > self.max_retries:
                    logger.error("HTTP %s %s failed after %d attempts: %s", method, url, attempt, e)
                    raise TransportError(method, url, attempt, e) from e
                logger.warning(
                    "HTTP %s %s failed (attempt %d/%d – will retry after cooldown): %s",
                    method,
                    url,
                    attempt,
                    self.max_retries + 1,
                    str(e).splitlines()[0] if str(e) else type(e).__name__,
                )

    @staticmethod
    def _decode(url: str, payload: bytes, as_type: Type[T] | Any) -> T:
        try:
            return TypeAdapter(as_type).validate_json(payload)
        except ValidationError as e:
            raise DecodeError(url, e) from e

    # ---------------------------------------------- #
    # Public helpers
    async def get(self, url: str) -> bytes:
        return await self._request("GET", url)

    async def post(self, url: str, body: Any) -> bytes:
        return await self._request("POST", url, body)

    async def get_json(self, url: str, as_type: Type[T] | Any = Any) -> T:
        payload = await self.get(url)
        return self._decode(url, payload, as_type)

    async def post_json(self, url: str, body: Any, as_type: Type[T] | Any = Any) -> T:
        payload = await self.post(url, body)
        return self._decode(url, payload, as_type)
