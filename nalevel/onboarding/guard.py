"""Redirect decisions for page requests during onboarding."""

from __future__ import annotations

import logging
from typing import Callable, Hashable
from urllib.parse import quote

from nalevel.metrics.prometheus_exporter import redirects_total
from nalevel.onboarding.stages import (
    HOME_PATH,
    LOGIN_PATH,
    is_onboarding_path,
    normalize_path,
    path_for_stage,
)
from nalevel.onboarding.state import OnboardingState
from nalevel.users.models import User

logger = logging.getLogger(__name__)

PUBLIC_PATHS = frozenset(
    {
        "/",
        "/about",
        "/contact",
        "/auth/login",
        "/auth/register",
        "/auth/forgot-password",
        "/auth/reset-password",
        "/auth/verify",
    },
)

# Pages that only make sense for signed-out visitors.
SIGNED_OUT_PATHS = frozenset({"/auth/login", "/auth/register"})


def login_redirect(path: str) -> str:
    return f"{LOGIN_PATH}?redirect={quote(path, safe='')}"


def decide_redirect(state: OnboardingState | None, path: str) -> str | None:
    """
    Return where a request for ``path`` must be sent, or ``None`` to let it through.

    ``state`` is ``None`` for signed-out visitors. While onboarding is in
    progress only the page of the current stage may be viewed; once it is
    completed the onboarding pages send the user home.
    """

    bare = normalize_path(path)

    if state is None:
        if bare in PUBLIC_PATHS:
            return None
        return login_redirect(path)

    if state.is_completed:
        if is_onboarding_path(bare) or bare in SIGNED_OUT_PATHS:
            return HOME_PATH
        return None

    expected = path_for_stage(state.stage)
    if bare == expected:
        return None
    return expected


def redirect_reason(state: OnboardingState | None) -> str:
    if state is None:
        return "unauthenticated"
    if state.is_completed:
        return "completed"
    return "stage_mismatch"


class RouteGuard:
    """
    Re-runs ``decide_redirect`` whenever the user or the requested path changes.

    This is the glue a page shell calls on every navigation; repeated calls for
    the same user state and path do not navigate twice.
    """

    def __init__(self, navigate: Callable[[str], None]) -> None:
        self._navigate = navigate
        self._last_key: Hashable | None = None
        self._last_decision: str | None = None

    @staticmethod
    def _key(user: User | None, path: str) -> Hashable:
        if user is None:
            return (None, normalize_path(path))
        state = user.onboarding
        return (user.id, state.stage, tuple(state.completed), normalize_path(path))

    def sync(self, user: User | None, path: str) -> str | None:
        key = self._key(user, path)
        if key == self._last_key:
            return self._last_decision

        state = user.onboarding if user is not None else None
        decision = decide_redirect(state, path)
        self._last_key = key
        self._last_decision = decision
        if decision is not None:
            redirects_total.labels(reason=redirect_reason(state)).inc()
            logger.debug("Redirecting %s to %s", path, decision)
            self._navigate(decision)
        return decision
