"""Single-flight session renewal.

When a protected request comes back 401 the coordinator renews the access
token once and replays the request. Requests that fail while that renewal
is in flight wait for it instead of starting their own, then replay in the
order they arrived. If renewal fails every waiter is rejected, the stored
credentials are cleared and the host is told the session has ended.
"""

from __future__ import annotations

import asyncio
import contextlib
import enum
import inspect
import logging
from collections import deque
from dataclasses import dataclass
from typing import Any, Awaitable, Callable
from uuid import UUID

import httpx

from jaaz.auth import TokenStore
from jaaz.exceptions import (
    AuthenticationError,
    JaazError,
    RefreshError,
    SessionExpiredError,
    TransportError,
)
from jaaz.responses import extract_error_message
from jaaz.routes import RouteClassifier
from jaaz.transport import Transport
from jaaz.types import RefreshResult, RequestDescriptor, TokenPair

logger = logging.getLogger(__name__)

ReplayFn = Callable[[RequestDescriptor, UUID], Awaitable[httpx.Response]]
SessionEndedCallback = Callable[[], Any]


class RefreshState(enum.Enum):
    IDLE = "idle"
    REFRESHING = "refreshing"


@dataclass
class PendingReplay:
    """A request parked until the in-flight refresh finishes."""

    request: RequestDescriptor
    call_id: UUID
    error: AuthenticationError
    future: asyncio.Future[None]

    @property
    def settled(self) -> bool:
        return self.future.done()

    def resolve(self) -> None:
        # A waiter whose caller gave up has a cancelled future; leave it alone.
        if not self.future.done():
            self.future.set_result(None)

    def reject(self, exc: BaseException) -> None:
        if not self.future.done():
            self.future.set_exception(exc)


class RetryLedger:
    """Retry counts per logical call, kept apart from the request itself."""

    def __init__(self) -> None:
        self._counts: dict[UUID, int] = {}

    def __len__(self) -> int:
        return len(self._counts)

    def is_marked(self, call_id: UUID) -> bool:
        return self._counts.get(call_id, 0) > 0

    def mark(self, call_id: UUID) -> None:
        if self.is_marked(call_id):
            raise RuntimeError(f"call {call_id} was already retried")
        self._counts[call_id] = 1

    def release(self, call_id: UUID) -> None:
        self._counts.pop(call_id, None)


def _session_expired(cause: BaseException) -> SessionExpiredError:
    status = getattr(cause, "status_code", None)
    err = SessionExpiredError("Session expired, please sign in again", status_code=status)
    err.__cause__ = cause
    return err


class RefreshCoordinator:
    """Owns the refresh state machine for one client.

    *transport* is used for the refresh call only, so that call never passes
    through token attachment or 401 handling. *replay* resubmits a request
    through the full pipeline once a fresh token is stored.

    The refresh runs in a task the coordinator owns. Every request that hit
    the 401, the one that started the refresh included, waits on its own
    future, so a caller that gives up only abandons its own wait.
    """

    def __init__(
        self,
        tokens: TokenStore,
        transport: Transport,
        routes: RouteClassifier,
        *,
        refresh_path: str,
        replay: ReplayFn,
        on_session_ended: SessionEndedCallback | None = None,
    ) -> None:
        self._tokens = tokens
        self._transport = transport
        self._routes = routes
        self._refresh_path = refresh_path
        self._replay = replay
        self._on_session_ended = on_session_ended
        self._state = RefreshState.IDLE
        self._originator: PendingReplay | None = None
        self._pending: deque[PendingReplay] = deque()
        self._ledger = RetryLedger()
        self._refresh_task: asyncio.Task[None] | None = None

    @property
    def state(self) -> RefreshState:
        return self._state

    @property
    def pending_count(self) -> int:
        """Requests parked behind the in-flight refresh, not counting the one that started it."""
        return len(self._pending)

    @property
    def ledger(self) -> RetryLedger:
        return self._ledger

    def should_refresh(self, request: RequestDescriptor, call_id: UUID) -> bool:
        """True if a 401 for this call may be absorbed by a refresh."""
        if self._routes.is_public(request.path) or self._routes.is_credential_route(request.path):
            return False
        return not self._ledger.is_marked(call_id)

    def release(self, call_id: UUID) -> None:
        """Drop the retry marker once the call has settled."""
        self._ledger.release(call_id)

    async def aclose(self) -> None:
        """Cancel a refresh still in flight; its waiters get :class:`SessionExpiredError`."""
        task = self._refresh_task
        if task is None or task.done():
            return
        task.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await task
        # A task cancelled before its first step never reaches its own cleanup.
        self._abort(JaazError("Client closed while the session was being refreshed"))

    async def handle_unauthorized(
        self,
        request: RequestDescriptor,
        call_id: UUID,
        error: AuthenticationError,
        sent_token: str | None = None,
    ) -> httpx.Response:
        """Renew the session (or wait for the renewal in flight) and replay *request*.

        *sent_token* is the access token the rejected request carried. If the
        stored token has changed since, the 401 belongs to a session that was
        already renewed and the request is replayed without another refresh.

        Returns the replay's response. Raises the original *error* when no
        refresh token is stored, and :class:`SessionExpiredError` when the
        refresh itself fails.
        """
        self._ledger.mark(call_id)

        if self._state is RefreshState.IDLE and sent_token:
            current = await self._read_access_token()
            if self._state is RefreshState.IDLE and current and current != sent_token:
                logger.debug("%s was sent with a replaced token, replaying", request.describe())
                return await self._replay(request, call_id)

        entry = PendingReplay(request, call_id, error, asyncio.get_running_loop().create_future())
        if self._state is RefreshState.REFRESHING:
            self._pending.append(entry)
            logger.debug("%s waiting for token refresh", request.describe())
        else:
            self._state = RefreshState.REFRESHING
            self._originator = entry
            self._refresh_task = asyncio.ensure_future(self._refresh(self._tokens.generation))

        await entry.future
        return await self._replay(request, call_id)

    async def _refresh(self, generation: int) -> None:
        try:
            await self._renew(generation)
        except asyncio.CancelledError as exc:
            logger.warning("token refresh cancelled")
            self._abort(exc)
            raise
        except Exception as exc:
            logger.exception("token refresh aborted")
            self._abort(exc)

    async def _renew(self, generation: int) -> None:
        refresh_token = await self._read_refresh_token()
        if not refresh_token:
            await self._abandon_without_refresh()
            return

        logger.info("access token rejected, refreshing session")
        try:
            pair = await self._request_new_tokens(refresh_token)
        except (RefreshError, TransportError) as exc:
            await self._fail(exc)
            return

        if self._tokens.generation != generation:
            # Signed out while the refresh was in flight.
            logger.info("session was cleared during refresh, discarding new tokens")
            cause = AuthenticationError("Session was cleared during refresh", status_code=401)
            for entry in self._finish():
                entry.reject(_session_expired(cause))
            return

        await self._tokens.set_tokens(pair)
        waiting = self._finish()
        logger.info("session refreshed, replaying %d request(s)", len(waiting))
        for entry in waiting:
            entry.resolve()

    def _abort(self, exc: BaseException) -> None:
        if self._state is not RefreshState.REFRESHING:
            return
        for entry in self._finish():
            entry.reject(_session_expired(exc))

    async def _read_access_token(self) -> str | None:
        try:
            return await self._tokens.get_access_token()
        except Exception as exc:  # noqa: BLE001
            logger.warning("could not read access token: %s", exc)
            return None

    async def _read_refresh_token(self) -> str | None:
        try:
            return await self._tokens.get_refresh_token()
        except Exception as exc:  # noqa: BLE001
            logger.warning("could not read refresh token: %s", exc)
            return None

    async def _request_new_tokens(self, refresh_token: str) -> TokenPair:
        resp = await self._transport.send(
            RequestDescriptor(
                method="POST",
                path=self._refresh_path,
                body={"refreshToken": refresh_token},
            )
        )
        if not resp.is_success:
            raise RefreshError(
                extract_error_message(resp, "Invalid or expired refresh token"),
                status_code=resp.status_code,
            )
        try:
            result = RefreshResult.model_validate(resp.json())
        except ValueError as exc:
            raise RefreshError("Malformed refresh response", status_code=resp.status_code) from exc
        if not result.success or not result.data.access_token:
            raise RefreshError("Refresh response carried no access token", status_code=resp.status_code)
        return result.data

    async def _abandon_without_refresh(self) -> None:
        logger.warning("access token rejected and no refresh token is stored")
        await self._tokens.clear_tokens()
        for entry in self._finish():
            entry.reject(entry.error)
        await self._end_session()

    async def _fail(self, exc: Exception) -> None:
        logger.warning("token refresh failed: %s", exc)
        await self._tokens.clear_tokens()
        for entry in self._finish():
            entry.reject(_session_expired(exc))
        await self._end_session()

    def _finish(self) -> list[PendingReplay]:
        """Return to IDLE and hand back every waiter, the originator first."""
        self._state = RefreshState.IDLE
        waiting = list(self._pending)
        if self._originator is not None:
            waiting.insert(0, self._originator)
        self._originator = None
        self._pending.clear()
        return waiting

    async def _end_session(self) -> None:
        if self._on_session_ended is None:
            return
        try:
            result = self._on_session_ended()
            if inspect.isawaitable(result):
                await result
        except Exception:
            logger.exception("session-ended callback failed")
