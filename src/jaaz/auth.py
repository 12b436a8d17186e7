"""Token persistence and advisory expiry checks."""

from __future__ import annotations

import json
import logging
import time
from typing import Any, Iterable, Protocol

from jwt.utils import base64url_decode

from jaaz.types import TokenPair

logger = logging.getLogger(__name__)

ACCESS_TOKEN_KEY = "token"
REFRESH_TOKEN_KEY = "refreshToken"
USER_KEY = "user"


class KeyValueStorage(Protocol):
    """Durable storage the token store writes through to."""

    async def get(self, key: str) -> Any | None: ...

    async def set(self, key: str, value: Any) -> None: ...

    async def remove_all(self, keys: Iterable[str]) -> None: ...


class MemoryStorage:
    """In-process storage. Credentials live only as long as the process."""

    def __init__(self) -> None:
        self._data: dict[str, Any] = {}

    async def get(self, key: str) -> Any | None:
        return self._data.get(key)

    async def set(self, key: str, value: Any) -> None:
        self._data[key] = value

    async def remove_all(self, keys: Iterable[str]) -> None:
        for key in keys:
            self._data.pop(key, None)


def is_expired(token: str | None) -> bool:
    """Best-effort check of a JWT's ``exp`` claim.

    Only the payload segment is decoded and the signature is not checked, so
    this is only a hint for skipping requests that are bound to fail; the
    server remains the authority. Missing or malformed tokens count as
    expired. A token without an ``exp`` claim (or with ``exp: 0``) counts as
    valid.
    """
    if not token or not isinstance(token, str):
        return True
    segments = token.split(".")
    if len(segments) != 3:
        return True
    try:
        payload = json.loads(base64url_decode(segments[1]))
    except ValueError:
        return True
    if not isinstance(payload, dict):
        return True

    exp = payload.get("exp")
    if not exp:
        return False
    if isinstance(exp, bool) or not isinstance(exp, (int, float)):
        return True
    return exp < time.time()


class TokenStore:
    """Owns the session's :class:`TokenPair` and the cached user profile.

    Every read and write goes through the injected :class:`KeyValueStorage`.
    ``generation`` increases each time the tokens are cleared, which lets a
    refresh that was in flight during a sign-out notice that its result
    belongs to a session that no longer exists.
    """

    def __init__(self, storage: KeyValueStorage | None = None) -> None:
        self._storage: KeyValueStorage = storage if storage is not None else MemoryStorage()
        self._generation = 0

    @property
    def generation(self) -> int:
        return self._generation

    async def get_access_token(self) -> str | None:
        return await self._storage.get(ACCESS_TOKEN_KEY)

    async def get_refresh_token(self) -> str | None:
        return await self._storage.get(REFRESH_TOKEN_KEY)

    async def set_access_token(self, token: str) -> None:
        await self._storage.set(ACCESS_TOKEN_KEY, token)

    async def set_refresh_token(self, token: str) -> None:
        await self._storage.set(REFRESH_TOKEN_KEY, token)

    async def set_tokens(self, pair: TokenPair) -> None:
        """Persist both halves of *pair*; an absent refresh token leaves the stored one alone."""
        if pair.access_token:
            await self.set_access_token(pair.access_token)
        if pair.refresh_token:
            await self.set_refresh_token(pair.refresh_token)

    async def get_user(self) -> dict[str, Any] | None:
        return await self._storage.get(USER_KEY)

    async def set_user(self, user: dict[str, Any]) -> None:
        await self._storage.set(USER_KEY, user)

    async def clear_tokens(self) -> None:
        """Forget both tokens and the cached profile.

        Never raises: a storage failure is logged, and the caller's sign-out
        carries on regardless.
        """
        self._generation += 1
        try:
            await self._storage.remove_all([ACCESS_TOKEN_KEY, REFRESH_TOKEN_KEY, USER_KEY])
        except Exception:
            logger.exception("failed to clear stored credentials")

    async def has_valid_session(self) -> bool:
        """True if an access token is stored and has not visibly expired."""
        try:
            token = await self.get_access_token()
        except Exception as exc:  # noqa: BLE001
            logger.warning("could not read access token: %s", exc)
            return False
        return not is_expired(token)

    is_expired = staticmethod(is_expired)
