"""Classification of API paths by their authentication requirements."""

from __future__ import annotations

from typing import Iterable


class RouteClassifier:
    """Matches request paths against configured route patterns.

    Matching is by substring, so ``"/auth/signin"`` also matches
    ``"/api/auth/signin?next=/accounts"``.
    """

    def __init__(self, public_routes: Iterable[str], credential_routes: Iterable[str] = ()) -> None:
        self._public = tuple(public_routes)
        self._credential = tuple(credential_routes)

    def is_public(self, path: str) -> bool:
        """True if *path* must be sent without an access token."""
        return _matches(path, self._public)

    def is_credential_route(self, path: str) -> bool:
        """True if *path* issues or renews credentials (sign-in, refresh, ...)."""
        return _matches(path, self._credential)


def _matches(path: str, patterns: tuple[str, ...]) -> bool:
    return any(pattern in path for pattern in patterns)
