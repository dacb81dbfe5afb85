"""Tests for onboarding redirect decisions."""

from __future__ import annotations

import pytest

from nalevel.onboarding.guard import RouteGuard, decide_redirect
from nalevel.onboarding.stages import HOME_PATH, STAGE_ORDER, STAGE_PATHS, OnboardingStage, path_for_stage
from nalevel.onboarding.state import OnboardingState
from nalevel.users.models import User


def _state(stage: OnboardingStage) -> OnboardingState:
    return OnboardingState(stage=stage, completed=list(STAGE_ORDER[: STAGE_ORDER.index(stage)]))


def test_wrong_stage_page_redirects_to_current_stage() -> None:
    redirect = decide_redirect(
        _state(OnboardingStage.ROLE_DETAILS),
        path_for_stage(OnboardingStage.VERIFICATION),
    )

    assert redirect == path_for_stage(OnboardingStage.ROLE_DETAILS)


@pytest.mark.parametrize("path", [*STAGE_PATHS.values(), "/auth/onboarding", "/auth/onboarding/portfolio"])
def test_completed_user_is_sent_home_from_onboarding(path: str) -> None:
    assert decide_redirect(_state(OnboardingStage.COMPLETED), path) == HOME_PATH


def test_completed_user_browses_freely() -> None:
    state = _state(OnboardingStage.COMPLETED)

    assert decide_redirect(state, "/dashboard") is None
    assert decide_redirect(state, "/projects/42") is None
    assert decide_redirect(state, "/auth/login") == HOME_PATH


def test_current_stage_page_passes() -> None:
    state = _state(OnboardingStage.BASIC_INFO)

    assert decide_redirect(state, "/auth/onboarding/basic-info") is None
    assert decide_redirect(state, "/auth/onboarding/basic-info/") is None


@pytest.mark.parametrize("path", ["/dashboard", "/store", "/", "/auth/onboarding/role-selection"])
def test_in_progress_user_cannot_leave_stage_page(path: str) -> None:
    assert decide_redirect(_state(OnboardingStage.BASIC_INFO), path) == "/auth/onboarding/basic-info"


def test_signed_out_visitor_goes_to_login() -> None:
    assert decide_redirect(None, "/dashboard") == "/auth/login?redirect=%2Fdashboard"
    assert decide_redirect(None, "/auth/onboarding/basic-info") == (
        "/auth/login?redirect=%2Fauth%2Fonboarding%2Fbasic-info"
    )


@pytest.mark.parametrize("path", ["/", "/about", "/auth/login", "/auth/register"])
def test_signed_out_visitor_sees_public_pages(path: str) -> None:
    assert decide_redirect(None, path) is None


def test_route_guard_reevaluates_on_user_or_path_change() -> None:
    navigations: list[str] = []
    guard = RouteGuard(navigations.append)
    user = User(id="u1", email="ada@example.com", onboarding=_state(OnboardingStage.ROLE_DETAILS))

    assert guard.sync(user, "/auth/onboarding/verification") == "/auth/onboarding/role-details"
    assert guard.sync(user, "/auth/onboarding/verification") == "/auth/onboarding/role-details"
    assert navigations == ["/auth/onboarding/role-details"]

    assert guard.sync(user, "/auth/onboarding/role-details") is None

    user.onboarding = _state(OnboardingStage.VERIFICATION)
    assert guard.sync(user, "/auth/onboarding/role-details") == "/auth/onboarding/verification"

    assert guard.sync(None, "/dashboard") == "/auth/login?redirect=%2Fdashboard"
    assert navigations == [
        "/auth/onboarding/role-details",
        "/auth/onboarding/verification",
        "/auth/login?redirect=%2Fdashboard",
    ]
