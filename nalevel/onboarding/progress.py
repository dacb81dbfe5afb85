"""Per-session holder of a user's onboarding progress."""

from __future__ import annotations

import asyncio
import copy
import dataclasses
import logging
from typing import Any, Callable, Mapping

from nalevel.metrics.prometheus_exporter import persistence_failures_total, stage_completions_total
from nalevel.onboarding.drafts import DraftStore
from nalevel.onboarding.stages import (
    STAGE_ORDER,
    OnboardingStage,
    is_valid_transition,
    next_stage,
    parse_stage,
    path_for_stage,
)
from nalevel.onboarding.state import OnboardingState
from nalevel.users.models import User, UserGateway

logger = logging.getLogger(__name__)

Navigate = Callable[[str], None]


class OnboardingError(RuntimeError):
    """Base class for onboarding failures surfaced to the submitting form."""


class InvalidStageTransitionError(OnboardingError):
    """Raised when a submission would skip ahead or names an unknown stage."""


class OnboardingCompletedError(OnboardingError):
    """Raised when a write is attempted after onboarding has finished."""


class SubmissionInProgressError(OnboardingError):
    """Raised when a stage is submitted while another submission is pending."""


class StagePersistenceError(OnboardingError):
    """Raised when the user backend rejects the updated onboarding state."""


class OnboardingProgressStore:
    """Single source of truth for one user's onboarding progress in a session."""

    def __init__(
        self,
        user: User,
        gateway: UserGateway,
        navigate: Navigate,
        drafts: DraftStore | None = None,
    ) -> None:
        self._user = dataclasses.replace(user, onboarding=user.onboarding.copy())
        self._gateway = gateway
        self._navigate = navigate
        self._drafts = drafts
        self._submit_lock = asyncio.Lock()
        self._closed = False

    @property
    def state(self) -> OnboardingState:
        return self._user.onboarding.copy()

    @property
    def current_stage(self) -> OnboardingStage:
        return self._user.onboarding.stage

    @property
    def completed_stages(self) -> frozenset[OnboardingStage]:
        return frozenset(self._user.onboarding.completed)

    @property
    def stage_data(self) -> dict[str, Any]:
        return copy.deepcopy(self._user.onboarding.data)

    @property
    def is_submitting(self) -> bool:
        return self._submit_lock.locked()

    def close(self) -> None:
        """Detach the store; responses arriving afterwards are discarded."""

        self._closed = True

    async def complete_stage(
        self,
        stage: OnboardingStage | str,
        data: Mapping[str, Any] | None = None,
    ) -> OnboardingState:
        """
        Mark ``stage`` as done, persist the new state and navigate to the next page.

        The held state only changes after the gateway accepts the update. If the
        gateway fails, ``StagePersistenceError`` is raised and the store stays at
        the stage it was at before the call.
        """

        if self._submit_lock.locked():
            raise SubmissionInProgressError("A submission for this onboarding session is already pending.")

        async with self._submit_lock:
            current = self._user.onboarding
            if current.is_completed:
                raise OnboardingCompletedError("Onboarding is already completed.")

            submitted = parse_stage(stage)
            if submitted is None:
                raise InvalidStageTransitionError(f"Unknown onboarding stage: {stage!r}")
            target = next_stage(submitted)
            if target is None or not is_valid_transition(current.stage, target):
                raise InvalidStageTransitionError(
                    f"Cannot complete {submitted.value!r} while at {current.stage.value!r}.",
                )

            # Resubmitting an earlier stage refreshes its data without moving the user back.
            if STAGE_ORDER.index(target) < STAGE_ORDER.index(current.stage):
                target = current.stage

            candidate = current.copy()
            candidate.stage = target
            if submitted not in candidate.completed:
                candidate.completed.append(submitted)
            candidate.data[submitted.value] = copy.deepcopy(dict(data)) if data is not None else {}
            updated_user = dataclasses.replace(self._user, onboarding=candidate)

            try:
                await self._gateway.update_user(updated_user)
            except Exception as exc:
                persistence_failures_total.inc()
                logger.error(
                    "Failed to persist onboarding stage %s for user %s: %s",
                    submitted.value,
                    self._user.id,
                    exc,
                )
                raise StagePersistenceError(
                    "Could not save your progress. Please try again.",
                ) from exc

            if self._closed:
                logger.info("Discarding onboarding update for user %s: session closed.", self._user.id)
                return current.copy()

            self._user = updated_user
            if self._drafts is not None:
                try:
                    self._drafts.clear_draft(submitted)
                except OSError as exc:
                    logger.warning("Could not clear draft of stage %s for user %s: %s", submitted.value, self._user.id, exc)
            stage_completions_total.labels(stage=submitted.value).inc()
            logger.info("User %s completed stage %s, now at %s.", self._user.id, submitted.value, target.value)

        self._navigate(path_for_stage(target))
        return candidate.copy()
