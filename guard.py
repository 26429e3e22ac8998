"""Access decision for protected views."""

import enum
from dataclasses import dataclass
from typing import Optional

from router import Match
from session_store import SessionStore


class GuardState(str, enum.Enum):
    OPEN = "open"  # route is not gated
    LOADING = "loading"
    UNAUTHENTICATED = "unauthenticated"
    AUTHENTICATED_NO_ROLE = "authenticated_no_role"
    AUTHENTICATED_MATCH = "authenticated_match"
    AUTHENTICATED_MISMATCH = "authenticated_mismatch"


@dataclass(frozen=True)
class Decision:
    state: GuardState
    redirect: Optional[str] = None

    @property
    def allowed(self) -> bool:
        return self.state in (
            GuardState.OPEN, GuardState.AUTHENTICATED_NO_ROLE, GuardState.AUTHENTICATED_MATCH
        )


def evaluate(store: SessionStore, require_role: Optional[str] = None) -> Decision:
    """Decide against the store's current snapshot. Nothing is cached."""
    if store.loading:
        return Decision(GuardState.LOADING)

    session = store.get_current_session()
    if not session or session.profile is None:
        return Decision(GuardState.UNAUTHENTICATED, redirect="/login")

    if require_role is None:
        return Decision(GuardState.AUTHENTICATED_NO_ROLE)
    if session.profile.role != require_role:
        return Decision(GuardState.AUTHENTICATED_MISMATCH, redirect="/dashboard")
    return Decision(GuardState.AUTHENTICATED_MATCH)


def check(store: SessionStore, match: Match) -> Decision:
    """Guard a routed match; public routes always pass."""
    if not match.route.protected:
        return Decision(GuardState.OPEN)
    return evaluate(store, match.route.require_role)
