from __future__ import annotations

import json
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional, Sequence, Tuple

import aiohttp
import pytest
from multidict import CIMultiDict, CIMultiDictProxy
from pydantic import TypeAdapter, ValidationError
from yarl import URL

from core.infra.http import DecodeError, TransportError
from core.interfaces import JobRunner, Sink


def request_info(method: str, url: str) -> aiohttp.RequestInfo:
    return aiohttp.RequestInfo(
        url=URL(url),
        method=method,
        headers=CIMultiDictProxy(CIMultiDict()),
        real_url=URL(url),
    )


@dataclass
class FakeResponse:
    method: str
    url: str
    status: int = 200
    body: bytes = b""

    def raise_for_status(self) -> None:
        if self.status >= 400:
            raise aiohttp.ClientResponseError(
                request_info(self.method, self.url),
                (),
                status=self.status,
                message=f"status {self.status}",
            )

    async def read(self) -> bytes:
        return self.body

    async def __aenter__(self) -> "FakeResponse":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        return None


@dataclass
class SessionCall:
    method: str
    url: str
    json: Any = None


class FakeSession:
    """
    Minimal aiohttp.ClientSession stand-in with programmable outcomes.

    Each outcome is either an exception instance (raised when the request is
    sent), an ``(status, body)`` tuple or a bytes body (status 200).
    """

    closed = False

    def __init__(self, outcomes: Sequence[Any]) -> None:
        self._outcomes = list(outcomes)
        self.calls: List[SessionCall] = []

    def request(self, method: str, url: str, json: Any = None, **kwargs: Any) -> FakeResponse:
        self.calls.append(SessionCall(method=method, url=url, json=json))
        outcome = self._outcomes.pop(0) if len(self._outcomes) > 1 else self._outcomes[0]
        if isinstance(outcome, BaseException):
            raise outcome
        if isinstance(outcome, tuple):
            status, body = outcome
            return FakeResponse(method, url, status=status, body=body)
        return FakeResponse(method, url, body=outcome)

    async def close(self) -> None:
        self.closed = True


class FakeClient:
    """
    Client double for orchestration tests: routes URLs to JSON payloads.

    A route value may be a JSON-serialisable object, raw bytes, or an
    exception instance to raise.
    """

    def __init__(self, routes: Dict[str, Any], fallback: Optional[Callable[[str, Any], Any]] = None) -> None:
        self.routes = routes
        self.fallback = fallback
        self.requests: List[Tuple[str, str, Any]] = []

    def _lookup(self, url: str, body: Any) -> Any:
        for prefix, value in self.routes.items():
            if url.startswith(prefix):
                return value
        if self.fallback is not None:
            return self.fallback(url, body)
        raise TransportError("GET", url, 1, aiohttp.ClientConnectionError(f"no route for {url}"))

    def _decode(self, url: str, value: Any, as_type: Any) -> Any:
        if isinstance(value, BaseException):
            raise value
        payload = value if isinstance(value, bytes) else json.dumps(value).encode()
        try:
            return TypeAdapter(as_type).validate_json(payload)
        except ValidationError as e:
            raise DecodeError(url, e) from e

    async def get_json(self, url: str, as_type: Any = Any) -> Any:
        self.requests.append(("GET", url, None))
        return self._decode(url, self._lookup(url, None), as_type)

    async def post_json(self, url: str, body: Any, as_type: Any = Any) -> Any:
        self.requests.append(("POST", url, body))
        return self._decode(url, self._lookup(url, body), as_type)


class SinkSpy(Sink):
    """Records every batch written to it."""

    name = "SinkSpy"

    def __init__(self) -> None:
        self.writes: List[Tuple[str, List[Any], Tuple[str, ...]]] = []
        self.runs: List[str] = []

    async def write(self, table, records, key_fields) -> None:
        self.writes.append((table, list(records), tuple(key_fields)))

    async def log_run(self, jobname: str) -> None:
        self.runs.append(jobname)

    def table(self, name: str) -> List[Any]:
        for table, records, _ in self.writes:
            if table == name:
                return records
        return []


@dataclass
class CountingRunner(JobRunner):
    """Runner that counts its runs and can be told to fail."""

    label: str = "counting"
    fail: bool = False
    runs: int = 0
    log: List[str] = field(default_factory=list)

    @property
    def name(self) -> str:
        return self.label

    async def run(self) -> None:
        self.runs += 1
        self.log.append(self.label)
        if self.fail:
            raise RuntimeError(f"{self.label} failed")


class FakeClock:
    def __init__(self, start: float = 1000.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture()
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture()
def sink() -> SinkSpy:
    return SinkSpy()
