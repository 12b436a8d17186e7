"""Pydantic models for requests, credentials and refresh responses."""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, ConfigDict, Field


class RequestDescriptor(BaseModel):
    """An outgoing API call, described independently of the transport.

    Descriptors are immutable so the same value can be prepared and sent
    more than once (the original attempt and its replay after a refresh)
    without one attempt's headers leaking into the other.
    """

    model_config = ConfigDict(frozen=True)

    method: str = "GET"
    path: str
    params: dict[str, Any] | None = None
    headers: dict[str, str] = Field(default_factory=dict)
    body: Any = None

    def with_header(self, name: str, value: str) -> RequestDescriptor:
        """Return a copy with *name* set to *value*."""
        return self.model_copy(update={"headers": {**self.headers, name: value}})

    def describe(self) -> str:
        return f"{self.method.upper()} {self.path}"


class TokenPair(BaseModel):
    """Access and refresh token as issued by sign-in or refresh."""

    access_token: str | None = Field(default=None, alias="accessToken")
    refresh_token: str | None = Field(default=None, alias="refreshToken")

    model_config = ConfigDict(populate_by_name=True)


class RefreshResult(BaseModel):
    """Envelope returned by ``POST /auth/refresh``.

    The server answers ``{"success": true, "data": {"accessToken": ...,
    "refreshToken": ...}}``; a missing access token makes the body malformed.
    """

    success: bool = True
    data: TokenPair
