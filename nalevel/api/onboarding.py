"""Onboarding API routes."""

from __future__ import annotations

import asyncio
import logging
from pathlib import Path
from typing import Any, Callable, Optional

from fastapi import APIRouter, HTTPException, Query, Request, status
from pydantic import BaseModel

from nalevel.api.auth import CurrentUserDependency, OptionalUserDependency, get_gateway
from nalevel.onboarding.drafts import NO_DRAFT, DraftStore, FileKeyValueStore
from nalevel.onboarding.guard import decide_redirect
from nalevel.onboarding.progress import (
    InvalidStageTransitionError,
    OnboardingCompletedError,
    OnboardingProgressStore,
    StagePersistenceError,
)
from nalevel.onboarding.schemas import BasicInfoForm, RoleDetailsForm, RoleSelectionForm, VerificationForm
from nalevel.onboarding.stages import STAGE_ORDER, OnboardingStage
from nalevel.onboarding.state import OnboardingState
from nalevel.users.client import UserServiceRequestError
from nalevel.users.models import User

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/v1/onboarding", tags=["onboarding"])


class OnboardingStatusResponse(BaseModel):
    stage: OnboardingStage
    completed: list[OnboardingStage]
    data: dict[str, Any]
    has_completed_onboarding: bool

    @classmethod
    def from_state(cls, state: OnboardingState) -> "OnboardingStatusResponse":
        return cls(
            stage=state.stage,
            completed=list(state.completed),
            data=state.data,
            has_completed_onboarding=state.is_completed,
        )


class StageSubmissionResponse(OnboardingStatusResponse):
    redirect: Optional[str] = None


class DraftResponse(BaseModel):
    stage: OnboardingStage
    exists: bool
    draft: Any = None


class GuardResponse(BaseModel):
    redirect: Optional[str] = None


class PageNavigator:
    """Captures the page the store navigates to so it can be returned to the client."""

    def __init__(self) -> None:
        self.location: str | None = None

    def __call__(self, path: str) -> None:
        self.location = path


def draft_store_for(request: Request, user: User) -> DraftStore:
    user_id = user.id or ""
    if user_id.strip(".") == "" or "/" in user_id or "\\" in user_id:
        logger.error("Refusing draft storage for account id %r", user_id)
        raise HTTPException(
            status_code=status.HTTP_502_BAD_GATEWAY,
            detail="User backend returned an unusable account id.",
        )
    root = Path(request.app.state.settings.draft_root)
    return DraftStore(FileKeyValueStore(root / f"{user_id}.json"))


def _submission_lock(request: Request, user_id: str) -> asyncio.Lock:
    locks: dict[str, asyncio.Lock] = request.app.state.submission_locks
    if user_id not in locks:
        locks[user_id] = asyncio.Lock()
    return locks[user_id]


async def _reload_user(request: Request, user_id: str) -> User:
    try:
        user = await get_gateway(request).get_user(user_id)
    except UserServiceRequestError as exc:
        logger.error("Could not reload user %s before submission: %s", user_id, exc)
        raise HTTPException(status_code=status.HTTP_502_BAD_GATEWAY, detail=str(exc)) from exc
    if user is None:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Unauthorized")
    return user


async def _submit_stage(
    request: Request,
    user: User,
    stage: OnboardingStage,
    payload: dict[str, Any],
    prepare: Callable[[User], None] | None = None,
) -> StageSubmissionResponse:
    """
    Run one stage submission for ``user``.

    Submissions of one user are serialised, and the store is built from the
    user as stored once the lock is held. The copy resolved for the request
    may predate a submission that finished in the meantime.
    """

    lock = _submission_lock(request, user.id)
    if lock.locked():
        raise HTTPException(
            status_code=status.HTTP_429_TOO_MANY_REQUESTS,
            detail="A submission for this onboarding session is already pending.",
        )
    async with lock:
        current = await _reload_user(request, user.id)
        if prepare is not None:
            prepare(current)
        navigator = PageNavigator()
        store = OnboardingProgressStore(
            current,
            get_gateway(request),
            navigator,
            drafts=draft_store_for(request, current),
        )
        try:
            state = await store.complete_stage(stage, payload)
        except (InvalidStageTransitionError, OnboardingCompletedError) as exc:
            raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(exc)) from exc
        except StagePersistenceError as exc:
            raise HTTPException(status_code=status.HTTP_502_BAD_GATEWAY, detail=str(exc)) from exc

    response = StageSubmissionResponse.from_state(state)
    response.redirect = navigator.location
    return response


@router.post("/start", response_model=StageSubmissionResponse)
async def start_onboarding(
    form: RoleSelectionForm,
    request: Request,
    user: User = CurrentUserDependency,
) -> StageSubmissionResponse:
    """Record the selected roles and leave the role-selection stage."""

    payload = form.to_payload()

    def select_roles(current: User) -> None:
        current.roles = list(payload["roles"])
        if current.active_role not in current.roles:
            current.active_role = current.roles[0]

    return await _submit_stage(request, user, OnboardingStage.ROLE_SELECTION, payload, prepare=select_roles)


@router.get("/status", response_model=OnboardingStatusResponse)
async def get_onboarding_status(user: User = CurrentUserDependency) -> OnboardingStatusResponse:
    return OnboardingStatusResponse.from_state(user.onboarding)


@router.put("/basic-info", response_model=StageSubmissionResponse)
async def set_basic_info(
    form: BasicInfoForm,
    request: Request,
    user: User = CurrentUserDependency,
) -> StageSubmissionResponse:
    return await _submit_stage(request, user, OnboardingStage.BASIC_INFO, form.to_payload())


@router.put("/role-details", response_model=StageSubmissionResponse)
async def set_role_details(
    form: RoleDetailsForm,
    request: Request,
    user: User = CurrentUserDependency,
) -> StageSubmissionResponse:
    return await _submit_stage(request, user, OnboardingStage.ROLE_DETAILS, form.to_payload())


@router.put("/verification", response_model=StageSubmissionResponse)
async def set_verification_data(
    form: VerificationForm,
    request: Request,
    user: User = CurrentUserDependency,
) -> StageSubmissionResponse:
    return await _submit_stage(request, user, OnboardingStage.VERIFICATION, form.to_payload())


@router.post("/complete")
async def complete_onboarding(user: User = CurrentUserDependency) -> dict[str, str]:
    """Confirm that every stage has been passed."""

    state = user.onboarding
    if not state.is_completed:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="Onboarding not at completion stage.")
    missing = [stage.value for stage in STAGE_ORDER[:-1] if not state.has_completed(stage)]
    if missing:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail=f"Onboarding stages are incomplete: {', '.join(missing)}",
        )
    return {"message": "Onboarding completed"}


@router.get("/drafts/{stage}", response_model=DraftResponse)
async def load_draft(
    stage: OnboardingStage,
    request: Request,
    user: User = CurrentUserDependency,
) -> DraftResponse:
    draft = draft_store_for(request, user).load_draft(stage)
    if draft is NO_DRAFT:
        return DraftResponse(stage=stage, exists=False)
    return DraftResponse(stage=stage, exists=True, draft=draft)


@router.put("/drafts/{stage}", response_model=DraftResponse)
async def save_draft(
    stage: OnboardingStage,
    draft: dict[str, Any],
    request: Request,
    user: User = CurrentUserDependency,
) -> DraftResponse:
    draft_store_for(request, user).save_draft(stage, draft)
    return DraftResponse(stage=stage, exists=True, draft=draft)


@router.get("/guard", response_model=GuardResponse)
async def check_route(
    path: str = Query(..., min_length=1),
    user: User | None = OptionalUserDependency,
) -> GuardResponse:
    """Tell a client-side page shell where ``path`` must redirect, if anywhere."""

    state = user.onboarding if user is not None else None
    return GuardResponse(redirect=decide_redirect(state, path))
