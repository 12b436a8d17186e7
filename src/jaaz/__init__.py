"""Jaaz Python SDK — authenticated client for the Jaaz Markets API."""

from jaaz.auth import KeyValueStorage, MemoryStorage, TokenStore, is_expired
from jaaz.client import JaazClient
from jaaz.config import ClientConfig
from jaaz.exceptions import (
    AuthenticationError,
    AuthorizationError,
    ConflictError,
    JaazError,
    NotFoundError,
    RateLimitError,
    RefreshError,
    ServerError,
    SessionExpiredError,
    TransportError,
    ValidationError,
)
from jaaz.interceptor import RequestInterceptor
from jaaz.refresh import PendingReplay, RefreshCoordinator, RefreshState, RetryLedger
from jaaz.routes import RouteClassifier
from jaaz.transport import HttpxTransport, Transport
from jaaz.types import RefreshResult, RequestDescriptor, TokenPair

__all__ = [
    # Client
    "JaazClient",
    "ClientConfig",
    # Session renewal
    "RefreshCoordinator",
    "RefreshState",
    "PendingReplay",
    "RetryLedger",
    "RequestInterceptor",
    "RouteClassifier",
    # Tokens
    "TokenStore",
    "KeyValueStorage",
    "MemoryStorage",
    "is_expired",
    # Transport
    "Transport",
    "HttpxTransport",
    # Types
    "RequestDescriptor",
    "TokenPair",
    "RefreshResult",
    # Exceptions
    "JaazError",
    "TransportError",
    "AuthenticationError",
    "AuthorizationError",
    "NotFoundError",
    "ValidationError",
    "ConflictError",
    "RateLimitError",
    "ServerError",
    "RefreshError",
    "SessionExpiredError",
]
