"""Jaaz Python client — async HTTP client with automatic session renewal."""

from __future__ import annotations

import logging
from typing import Any
from uuid import UUID, uuid4

import httpx

from jaaz.auth import KeyValueStorage, TokenStore
from jaaz.config import ClientConfig
from jaaz.exceptions import AuthenticationError, JaazError
from jaaz.interceptor import RequestInterceptor, bearer_token
from jaaz.refresh import RefreshCoordinator, SessionEndedCallback
from jaaz.responses import extract_error_message, raise_for_status, unwrap
from jaaz.routes import RouteClassifier
from jaaz.transport import HttpxTransport, Transport
from jaaz.types import RequestDescriptor, TokenPair

logger = logging.getLogger(__name__)


class JaazClient:
    """Async HTTP client for the Jaaz Markets API.

    Every call goes through one pipeline: the access token is attached
    (except on public routes), the request is sent, and a 401 on a protected
    route is absorbed by a single shared token refresh followed by one
    replay. Callers only see the 401 if the replay is rejected too, and see
    :class:`~jaaz.exceptions.SessionExpiredError` if the session could not
    be renewed.

    Usage::

        async def signed_out() -> None:
            ...  # send the user back to the sign-in screen

        async with JaazClient(ClientConfig.from_env(), on_session_ended=signed_out) as client:
            await client.start_session(access_token, refresh_token, user)
            accounts = await client.get("/account")
    """

    def __init__(
        self,
        config: ClientConfig | None = None,
        *,
        storage: KeyValueStorage | None = None,
        transport: Transport | None = None,
        on_session_ended: SessionEndedCallback | None = None,
    ) -> None:
        self.config = config if config is not None else ClientConfig()
        self.tokens = TokenStore(storage)
        self.routes = RouteClassifier(self.config.public_routes, self.config.credential_routes)
        self._owns_transport = transport is None
        self._transport: Transport = (
            transport
            if transport is not None
            else HttpxTransport(self.config.base_url, timeout=self.config.timeout)
        )
        self._interceptor = RequestInterceptor(self.tokens, self.routes)
        self._coordinator = RefreshCoordinator(
            self.tokens,
            self._transport,
            self.routes,
            refresh_path=self.config.refresh_path,
            replay=self._dispatch,
            on_session_ended=on_session_ended,
        )

    async def __aenter__(self) -> JaazClient:
        return self

    async def __aexit__(self, *exc: object) -> None:
        await self.close()

    async def close(self) -> None:
        """Stop any refresh in flight and close the HTTP client if this client created it."""
        await self._coordinator.aclose()
        if self._owns_transport and isinstance(self._transport, HttpxTransport):
            await self._transport.aclose()

    @property
    def coordinator(self) -> RefreshCoordinator:
        return self._coordinator

    # --- Pipeline ---

    async def request(self, request: RequestDescriptor) -> httpx.Response:
        """Send *request* and return the successful response.

        Error statuses are raised as :mod:`jaaz.exceptions` types and
        transport failures as :class:`~jaaz.exceptions.TransportError`.
        """
        call_id = uuid4()
        try:
            return await self._dispatch(request, call_id)
        finally:
            self._coordinator.release(call_id)

    async def _dispatch(self, request: RequestDescriptor, call_id: UUID) -> httpx.Response:
        prepared = await self._interceptor.prepare(request)
        resp = await self._transport.send(prepared)
        if resp.status_code == 401 and self._coordinator.should_refresh(request, call_id):
            error = AuthenticationError(extract_error_message(resp, "Authentication failed"), status_code=401)
            sent_token = bearer_token(prepared)
            return await self._coordinator.handle_unauthorized(request, call_id, error, sent_token)
        return raise_for_status(resp)

    # --- Convenience methods ---

    async def get(self, path: str, *, params: dict[str, Any] | None = None) -> Any:
        resp = await self.request(RequestDescriptor(method="GET", path=path, params=params))
        return unwrap(resp)

    async def post(self, path: str, body: Any = None) -> Any:
        resp = await self.request(RequestDescriptor(method="POST", path=path, body=body))
        return unwrap(resp)

    async def put(self, path: str, body: Any = None) -> Any:
        resp = await self.request(RequestDescriptor(method="PUT", path=path, body=body))
        return unwrap(resp)

    async def patch(self, path: str, body: Any = None) -> Any:
        resp = await self.request(RequestDescriptor(method="PATCH", path=path, body=body))
        return unwrap(resp)

    async def delete(self, path: str) -> Any:
        resp = await self.request(RequestDescriptor(method="DELETE", path=path))
        return unwrap(resp)

    # --- Session ---

    async def start_session(
        self,
        access_token: str,
        refresh_token: str | None = None,
        user: dict[str, Any] | None = None,
    ) -> None:
        """Store the credentials returned by a sign-in the host performed."""
        await self.tokens.set_tokens(TokenPair(access_token=access_token, refresh_token=refresh_token))
        if user:
            await self.tokens.set_user(user)

    async def is_authenticated(self) -> bool:
        """True if a stored access token exists and has not visibly expired."""
        return await self.tokens.has_valid_session()

    async def logout(self) -> None:
        """Tell the server the session is over, then forget the credentials.

        The server call is best effort and bypasses session renewal; the
        local credentials are cleared whatever it returns.
        """
        try:
            refresh_token = await self.tokens.get_refresh_token()
            if refresh_token:
                logout = RequestDescriptor(
                    method="POST",
                    path=self.config.logout_path,
                    body={"refreshToken": refresh_token},
                )
                raise_for_status(await self._transport.send(await self._interceptor.prepare(logout)))
        except JaazError as exc:
            logger.debug("logout request failed (ignored): %s", exc)
        finally:
            await self.tokens.clear_tokens()
        logger.info("signed out")
