"""SQLAlchemy models describing the account tables."""

from __future__ import annotations

from datetime import datetime

from sqlalchemy import JSON, Boolean, DateTime, String
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column

from nalevel.onboarding.stages import OnboardingStage


class Base(DeclarativeBase):
    """Base class for ORM models."""


class TimestampMixin:
    """Creation and modification timestamps."""

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=datetime.utcnow
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=datetime.utcnow,
        onupdate=datetime.utcnow,
    )


class UserRecord(TimestampMixin, Base):
    """Platform account together with its onboarding progress."""

    __tablename__ = "users"

    id: Mapped[str] = mapped_column(String(36), primary_key=True)
    email: Mapped[str] = mapped_column(String(320), unique=True, index=True)
    session_token: Mapped[str | None] = mapped_column(String(128), unique=True, index=True)
    roles: Mapped[list] = mapped_column(JSON, default=list)
    is_verified: Mapped[bool] = mapped_column(Boolean, default=False)
    active_role: Mapped[str | None] = mapped_column(String(32))
    onboarding_stage: Mapped[str] = mapped_column(
        String(32),
        default=OnboardingStage.ROLE_SELECTION.value,
    )
    onboarding_completed: Mapped[list] = mapped_column(JSON, default=list)
    onboarding_data: Mapped[dict] = mapped_column(JSON, default=dict)
