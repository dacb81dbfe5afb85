"""SQL-backed user repository used when the service owns its accounts."""

from __future__ import annotations

import logging
import secrets
import uuid

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from nalevel.db import models
from nalevel.onboarding.state import OnboardingState
from nalevel.users.models import User

logger = logging.getLogger(__name__)


class UserAlreadyExistsError(RuntimeError):
    """Raised when registering an email that already has an account."""


class UserNotFoundError(LookupError):
    """Raised when updating an account that does not exist."""


def _to_user(record: models.UserRecord) -> User:
    return User(
        id=record.id,
        email=record.email,
        roles=list(record.roles or []),
        onboarding=OnboardingState.from_dict(
            {
                "stage": record.onboarding_stage,
                "completed": record.onboarding_completed,
                "data": record.onboarding_data,
            },
        ),
        is_verified=record.is_verified,
        active_role=record.active_role,
        session_token=record.session_token,
    )


class SqlUserRepository:
    """Facade over the ``users`` table implementing the user gateway."""

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]) -> None:
        self._session_factory = session_factory

    async def create_user(self, email: str) -> User:
        """Create an account at the start of onboarding and issue a session token."""

        state = OnboardingState()
        record = models.UserRecord(
            id=str(uuid.uuid4()),
            email=email.strip().lower(),
            session_token=secrets.token_urlsafe(32),
            roles=[],
            onboarding_stage=state.stage.value,
            onboarding_completed=[],
            onboarding_data={},
        )
        async with self._session_factory() as session:
            session.add(record)
            try:
                await session.commit()
            except IntegrityError as exc:
                await session.rollback()
                raise UserAlreadyExistsError(f"Account {email!r} already exists.") from exc
        logger.info("Created user %s", record.id)
        return _to_user(record)

    async def get_user(self, user_id: str) -> User | None:
        async with self._session_factory() as session:
            record = await session.get(models.UserRecord, user_id)
            return _to_user(record) if record else None

    async def get_by_session(self, token: str) -> User | None:
        if not token:
            return None
        stmt = select(models.UserRecord).where(models.UserRecord.session_token == token)
        async with self._session_factory() as session:
            result = await session.execute(stmt)
            record = result.scalar_one_or_none()
            return _to_user(record) if record else None

    async def update_user(self, user: User) -> None:
        """Persist roles, profile flags and onboarding state of ``user``."""

        onboarding = user.onboarding.to_dict()
        async with self._session_factory() as session:
            record = await session.get(models.UserRecord, user.id)
            if record is None:
                raise UserNotFoundError(f"User {user.id} does not exist.")
            record.roles = list(user.roles)
            record.is_verified = user.is_verified
            record.active_role = user.active_role
            record.onboarding_stage = onboarding["stage"]
            record.onboarding_completed = onboarding["completed"]
            record.onboarding_data = onboarding["data"]
            await session.commit()
