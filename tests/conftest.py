"""Shared fixtures: a scripted transport and storage doubles."""

from __future__ import annotations

import asyncio
import inspect
import time
from typing import Any, Callable, Iterable

import httpx
import jwt
import pytest

from jaaz.auth import REFRESH_TOKEN_KEY, MemoryStorage
from jaaz.types import RequestDescriptor

Handler = Callable[[RequestDescriptor], Any]

SECRET = "jaaz-test-secret-with-enough-bytes-for-hs256"


class FakeTransport:
    """Transport that answers from per-path handlers and records every request.

    A handler may return an ``httpx.Response``, an exception to raise, or an
    awaitable of either (used to hold a response until a test releases it).
    Every send yields to the event loop once, like a real network call.
    """

    def __init__(self) -> None:
        self.sent: list[RequestDescriptor] = []
        self._handlers: dict[str, Handler] = {}

    def route(self, path: str, handler: Handler) -> None:
        self._handlers[path] = handler

    def calls_to(self, path: str) -> list[RequestDescriptor]:
        return [r for r in self.sent if r.path == path]

    async def send(self, request: RequestDescriptor) -> httpx.Response:
        self.sent.append(request)
        await asyncio.sleep(0)
        result = self._handlers[request.path](request)
        if inspect.isawaitable(result):
            result = await result
        if isinstance(result, BaseException):
            raise result
        return result


class CountingStorage(MemoryStorage):
    """Counts how many times credentials were wiped."""

    def __init__(self) -> None:
        super().__init__()
        self.clears = 0

    async def remove_all(self, keys: Iterable[str]) -> None:
        self.clears += 1
        await super().remove_all(keys)


class GatedStorage(CountingStorage):
    """Holds refresh-token reads until ``gate`` is set."""

    def __init__(self) -> None:
        super().__init__()
        self.gate = asyncio.Event()

    async def get(self, key: str) -> Any | None:
        if key == REFRESH_TOKEN_KEY:
            await self.gate.wait()
        return await super().get(key)


def make_token(**claims: Any) -> str:
    return jwt.encode(claims, SECRET, algorithm="HS256")


async def _wait_until(predicate: Callable[[], bool], *, rounds: int = 200) -> None:
    for _ in range(rounds):
        if predicate():
            return
        await asyncio.sleep(0)
    raise AssertionError("condition not reached")


@pytest.fixture
def transport() -> FakeTransport:
    return FakeTransport()


@pytest.fixture
def storage() -> CountingStorage:
    return CountingStorage()


@pytest.fixture
def wait_until() -> Callable[..., Any]:
    return _wait_until


@pytest.fixture
def token_factory() -> Callable[..., str]:
    def factory(*, expires_in: float | None = 3600, **claims: Any) -> str:
        if expires_in is not None:
            claims["exp"] = int(time.time() + expires_in)
        return make_token(**claims)

    return factory


@pytest.fixture
def gated_storage() -> GatedStorage:
    return GatedStorage()
