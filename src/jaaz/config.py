"""Client configuration."""

from __future__ import annotations

import os

from pydantic import BaseModel, Field, field_validator

#: Used when neither the caller nor ``JAAZ_API_URL`` supplies a base URL.
DEFAULT_BASE_URL = "https://jaazmarkets-api.miteshh.in"

DEFAULT_PUBLIC_ROUTES = (
    "/auth/signin",
    "/auth/signup",
    "/auth/send-otp",
    "/auth/verify-otp",
    "/auth/verify-email-otp",
    "/auth/resend-verification-otp",
    "/auth/forgot-password",
    "/auth/verify-reset-otp",
    "/auth/reset-password",
    "/health",
)

DEFAULT_CREDENTIAL_ROUTES = (
    "/auth/signin",
    "/auth/signup",
    "/auth/refresh",
    "/auth/forgot-password",
    "/auth/verify-reset-otp",
    "/auth/reset-password",
)


class ClientConfig(BaseModel):
    """Everything :class:`~jaaz.client.JaazClient` needs to know about the API.

    ``public_routes`` are sent without an ``Authorization`` header.
    ``credential_routes`` are the endpoints that issue or renew credentials;
    a 401 from one of them goes straight back to the caller and never
    starts a refresh.
    """

    base_url: str = DEFAULT_BASE_URL
    timeout: float = Field(default=30.0, gt=0)
    public_routes: tuple[str, ...] = DEFAULT_PUBLIC_ROUTES
    credential_routes: tuple[str, ...] = DEFAULT_CREDENTIAL_ROUTES
    refresh_path: str = "/auth/refresh"
    logout_path: str = "/auth/logout"

    @field_validator("base_url")
    @classmethod
    def _strip_trailing_slash(cls, value: str) -> str:
        return value.rstrip("/")

    @classmethod
    def from_env(cls, **overrides: object) -> ClientConfig:
        """Build a config from ``JAAZ_API_URL`` / ``JAAZ_API_TIMEOUT``.

        Explicit keyword arguments win over the environment.
        """
        values: dict[str, object] = {}
        url = os.environ.get("JAAZ_API_URL")
        if url:
            values["base_url"] = url
        timeout = os.environ.get("JAAZ_API_TIMEOUT")
        if timeout:
            values["timeout"] = float(timeout)
        values.update(overrides)
        return cls.model_validate(values)
