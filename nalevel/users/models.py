"""Account model shared by the local repository and the backend client."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, List, Mapping, Optional, Protocol

from nalevel.onboarding.state import OnboardingState


class UserRole(str, Enum):
    """Roles an account can hold on the platform."""

    ACTOR = "actor"
    PRODUCER = "producer"
    CREW = "crew"
    PROJECT_OWNER = "project-owner"
    VENDOR = "vendor"
    NGO = "ngo"
    ADMIN = "admin"
    VOLUNTEER = "volunteer"
    BENEFICIARY = "beneficiary"
    DONOR = "donor"
    PARTNER = "partner"
    SELLER = "seller"
    EMPLOYEE = "employee"


@dataclass(slots=True)
class User:
    """Account record; the onboarding subsystem only reads it and requests updates."""

    id: str
    email: str
    roles: List[str] = field(default_factory=list)
    onboarding: OnboardingState = field(default_factory=OnboardingState)
    is_verified: bool = False
    active_role: Optional[str] = None
    session_token: Optional[str] = None

    @property
    def has_completed_onboarding(self) -> bool:
        return self.onboarding.is_completed

    def to_dict(self) -> dict[str, Any]:
        """Return the backend wire representation (camelCase keys)."""

        return {
            "id": self.id,
            "email": self.email,
            "roles": list(self.roles),
            "isVerified": self.is_verified,
            "activeRole": self.active_role,
            "onboarding": self.onboarding.to_dict(),
            "hasCompletedOnboarding": self.has_completed_onboarding,
        }

    @classmethod
    def from_dict(cls, payload: Mapping[str, Any]) -> "User":
        return cls(
            id=str(payload.get("id") or payload.get("_id") or ""),
            email=payload.get("email", ""),
            roles=[str(role) for role in payload.get("roles") or []],
            onboarding=OnboardingState.from_dict(payload.get("onboarding")),
            is_verified=bool(payload.get("isVerified", False)),
            active_role=payload.get("activeRole"),
        )


class UserGateway(Protocol):
    """Persistence collaborator that owns user records."""

    async def get_user(self, user_id: str) -> User | None:
        ...

    async def get_by_session(self, token: str) -> User | None:
        ...

    async def update_user(self, user: User) -> None:
        """Persist ``user``; raise on network or validation failure."""
        ...
