# app/session/guard.py
from dataclasses import dataclass
from enum import Enum
from typing import Iterable

from app.session.models import SessionState
from app.session.navigation import DASHBOARD_PATH, LANDING_PATH, PENDING_APPROVAL_PATH, Navigator
from app.session.roles import can_access_dashboard


class GuardOutcome(str, Enum):
    SPINNER = "spinner"
    REDIRECT_LOGIN = "redirect_login"
    REDIRECT_PENDING = "redirect_pending"
    REDIRECT_DASHBOARD = "redirect_dashboard"
    RENDER = "render"


@dataclass(frozen=True)
class GuardDecision:
    outcome: GuardOutcome
    location: str | None = None

    @property
    def is_redirect(self) -> bool:
        return self.location is not None


SPINNER = GuardDecision(GuardOutcome.SPINNER)
RENDER = GuardDecision(GuardOutcome.RENDER)


def evaluate_guard(state: SessionState) -> GuardDecision:
    """
    Decide what a protected page does for the current session.

    Checked in order, first match wins:
      1. still loading          -> spinner, no navigation
      2. no user                -> redirect to "/"
      3. not approved and not a Barbero -> redirect to "/pending-approval"
      4. otherwise              -> render
    """
    if state.loading:
        return SPINNER

    user = state.user
    if user is None:
        return GuardDecision(GuardOutcome.REDIRECT_LOGIN, LANDING_PATH)

    if not can_access_dashboard(user.habilitado, user.role):
        return GuardDecision(GuardOutcome.REDIRECT_PENDING, PENDING_APPROVAL_PATH)

    return RENDER


def evaluate_role_guard(state: SessionState, roles: Iterable[str]) -> GuardDecision:
    """
    Dashboard guard plus a role restriction.

    A user who may see the dashboard but lacks the role is sent back
    to "/dashboard".
    """
    decision = evaluate_guard(state)
    if decision.outcome is not GuardOutcome.RENDER:
        return decision
    if state.user is not None and state.user.role not in set(roles):
        return GuardDecision(GuardOutcome.REDIRECT_DASHBOARD, DASHBOARD_PATH)
    return decision


def enforce(decision: GuardDecision, navigator: Navigator) -> GuardDecision:
    """Apply a decision: at most one navigation, none for render/spinner."""
    if decision.location is not None:
        navigator.push(decision.location)
    return decision


def enforce_guard(state: SessionState, navigator: Navigator) -> GuardDecision:
    return enforce(evaluate_guard(state), navigator)
