"""Onboarding stage catalog and the stage/page routing table."""

from __future__ import annotations

from enum import Enum


class OnboardingStage(str, Enum):
    """Finite states a new account moves through before using the platform."""

    ROLE_SELECTION = "role-selection"
    BASIC_INFO = "basic-info"
    ROLE_DETAILS = "role-details"
    VERIFICATION = "verification"
    COMPLETED = "completed"


STAGE_ORDER: tuple[OnboardingStage, ...] = tuple(OnboardingStage)

NEXT_STAGE: dict[OnboardingStage, OnboardingStage] = {
    current: following for current, following in zip(STAGE_ORDER, STAGE_ORDER[1:])
}

ONBOARDING_PREFIX = "/auth/onboarding"
LOGIN_PATH = "/auth/login"
HOME_PATH = "/dashboard"

STAGE_PATHS: dict[OnboardingStage, str] = {
    stage: f"{ONBOARDING_PREFIX}/{stage.value}" for stage in STAGE_ORDER
}
PATH_STAGES: dict[str, OnboardingStage] = {path: stage for stage, path in STAGE_PATHS.items()}


def parse_stage(value: object) -> OnboardingStage | None:
    """Return the catalog stage for ``value`` or ``None`` if it is not one."""

    if isinstance(value, OnboardingStage):
        return value
    try:
        return OnboardingStage(value)
    except (TypeError, ValueError):
        return None


def next_stage(stage: OnboardingStage) -> OnboardingStage | None:
    """Return the successor of ``stage``; ``completed`` has none."""

    return NEXT_STAGE.get(stage)


def path_for_stage(stage: OnboardingStage) -> str:
    return STAGE_PATHS[stage]


def stage_for_path(path: str) -> OnboardingStage | None:
    return PATH_STAGES.get(normalize_path(path))


def normalize_path(path: str) -> str:
    """Drop query string, fragment and trailing slash so paths compare equal."""

    bare = path.split("?", 1)[0].split("#", 1)[0]
    if len(bare) > 1:
        bare = bare.rstrip("/")
    return bare or "/"


def is_onboarding_path(path: str) -> bool:
    bare = normalize_path(path)
    return bare == ONBOARDING_PREFIX or bare.startswith(ONBOARDING_PREFIX + "/")


def is_valid_transition(current: object, target: object) -> bool:
    """
    Return whether moving from ``current`` to ``target`` is allowed.

    Moving forward by exactly one stage or back to any earlier-or-equal stage
    is allowed. Skipping ahead, or naming a stage outside the catalog, is not.
    """

    current_stage = parse_stage(current)
    target_stage = parse_stage(target)
    if current_stage is None or target_stage is None:
        return False

    current_index = STAGE_ORDER.index(current_stage)
    target_index = STAGE_ORDER.index(target_stage)
    return target_index <= current_index + 1
