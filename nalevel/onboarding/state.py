"""Serializable onboarding progress of a single account."""

from __future__ import annotations

import copy
import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Mapping

from nalevel.onboarding.stages import OnboardingStage, parse_stage

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class OnboardingState:
    """Current stage, the stages already passed, and per-stage form data."""

    stage: OnboardingStage = OnboardingStage.ROLE_SELECTION
    completed: List[OnboardingStage] = field(default_factory=list)
    data: Dict[str, Any] = field(default_factory=dict)

    @property
    def is_completed(self) -> bool:
        return self.stage is OnboardingStage.COMPLETED

    def has_completed(self, stage: OnboardingStage) -> bool:
        return stage in self.completed

    def copy(self) -> "OnboardingState":
        return OnboardingState(
            stage=self.stage,
            completed=list(self.completed),
            data=copy.deepcopy(self.data),
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "stage": self.stage.value,
            "completed": [stage.value for stage in self.completed],
            "data": copy.deepcopy(self.data),
        }

    @classmethod
    def from_dict(cls, payload: Mapping[str, Any] | None) -> "OnboardingState":
        """Rebuild state from stored JSON, tolerating unknown stage names."""

        payload = payload or {}
        stage = parse_stage(payload.get("stage"))
        if stage is None:
            if payload.get("stage"):
                logger.warning("Unknown onboarding stage %r, falling back to start.", payload.get("stage"))
            stage = OnboardingStage.ROLE_SELECTION

        completed: list[OnboardingStage] = []
        for value in payload.get("completed") or []:
            parsed = parse_stage(value)
            if parsed is not None and parsed not in completed:
                completed.append(parsed)

        data = payload.get("data") or {}
        return cls(stage=stage, completed=completed, data=dict(data) if isinstance(data, Mapping) else {})
