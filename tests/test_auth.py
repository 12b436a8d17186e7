"""Tests for token persistence and expiry decoding."""

from __future__ import annotations

import base64
import json
from typing import Any, Iterable

import pytest

from jaaz.auth import MemoryStorage, TokenStore, is_expired
from jaaz.types import TokenPair


class BrokenStorage(MemoryStorage):
    async def get(self, key: str) -> Any | None:
        raise OSError("keychain locked")

    async def remove_all(self, keys: Iterable[str]) -> None:
        raise OSError("keychain locked")


def _segment(data: dict[str, Any]) -> str:
    return base64.urlsafe_b64encode(json.dumps(data).encode()).rstrip(b"=").decode()


class TestIsExpired:
    def test_missing_payload_segment_is_expired(self) -> None:
        header = _segment({"alg": "HS256", "typ": "JWT"})
        assert is_expired(f"{header}.signature") is True
        assert is_expired(f"{header}..signature") is True

    def test_future_exp_is_not_expired(self, token_factory) -> None:
        assert is_expired(token_factory(expires_in=3600, sub="u1")) is False

    def test_no_exp_claim_is_not_expired(self, token_factory) -> None:
        assert is_expired(token_factory(expires_in=None, sub="service")) is False

    def test_past_exp_is_expired(self, token_factory) -> None:
        assert is_expired(token_factory(expires_in=-60)) is True

    @pytest.mark.parametrize("token", [None, "", "not-a-token", "a.b.c", "a.b.c.d"])
    def test_malformed_tokens_fail_closed(self, token: str | None) -> None:
        assert is_expired(token) is True

    def test_non_numeric_exp_is_expired(self) -> None:
        header = _segment({"alg": "none"})
        payload = _segment({"exp": "tomorrow"})
        assert is_expired(f"{header}.{payload}.sig") is True

    def test_signature_is_not_checked(self) -> None:
        header = _segment({"alg": "HS256", "typ": "JWT"})
        payload = _segment({"sub": "u1"})
        assert is_expired(f"{header}.{payload}.forged") is False

    def test_only_the_payload_is_decoded(self) -> None:
        payload = _segment({"exp": 4102444800})
        assert is_expired(f"not-base64!.{payload}.sig") is False

    def test_zero_exp_counts_as_no_expiry(self) -> None:
        header = _segment({"alg": "HS256", "typ": "JWT"})
        payload = _segment({"sub": "u1", "exp": 0})
        assert is_expired(f"{header}.{payload}.sig") is False

    def test_non_object_payload_is_expired(self) -> None:
        header = _segment({"alg": "HS256"})
        payload = base64.urlsafe_b64encode(b"[1, 2]").rstrip(b"=").decode()
        assert is_expired(f"{header}.{payload}.sig") is True

    def test_exposed_on_token_store(self) -> None:
        assert TokenStore.is_expired("a.b") is True


class TestTokenStore:
    @pytest.mark.asyncio
    async def test_set_and_get(self) -> None:
        store = TokenStore()

        await store.set_access_token("access")
        await store.set_refresh_token("refresh")

        assert await store.get_access_token() == "access"
        assert await store.get_refresh_token() == "refresh"

    @pytest.mark.asyncio
    async def test_set_overwrites(self) -> None:
        store = TokenStore()
        await store.set_access_token("old")

        await store.set_access_token("new")

        assert await store.get_access_token() == "new"

    @pytest.mark.asyncio
    async def test_set_tokens_keeps_refresh_token_when_absent(self) -> None:
        store = TokenStore()
        await store.set_tokens(TokenPair(access_token="A", refresh_token="R"))

        await store.set_tokens(TokenPair(access_token="B"))

        assert await store.get_access_token() == "B"
        assert await store.get_refresh_token() == "R"

    @pytest.mark.asyncio
    async def test_clear_removes_tokens_and_profile(self, storage) -> None:
        store = TokenStore(storage)
        await store.set_tokens(TokenPair(access_token="A", refresh_token="R"))
        await store.set_user({"id": "u1", "email": "trader@example.com"})

        await store.clear_tokens()

        assert await store.get_access_token() is None
        assert await store.get_refresh_token() is None
        assert await store.get_user() is None
        assert storage.clears == 1
        assert store.generation == 1

    @pytest.mark.asyncio
    async def test_clear_swallows_storage_errors(self, caplog) -> None:
        store = TokenStore(BrokenStorage())

        await store.clear_tokens()

        assert store.generation == 1
        assert "failed to clear stored credentials" in caplog.text

    @pytest.mark.asyncio
    async def test_has_valid_session(self, token_factory) -> None:
        store = TokenStore()
        assert await store.has_valid_session() is False

        await store.set_access_token(token_factory(expires_in=3600))
        assert await store.has_valid_session() is True

        await store.set_access_token(token_factory(expires_in=-1))
        assert await store.has_valid_session() is False

    @pytest.mark.asyncio
    async def test_has_valid_session_is_false_when_storage_fails(self) -> None:
        assert await TokenStore(BrokenStorage()).has_valid_session() is False
