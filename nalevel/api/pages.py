"""Page routes and the request middleware that guards them."""

from __future__ import annotations

import logging
from typing import Any, Awaitable, Callable

from fastapi import APIRouter, Request, Response, status
from fastapi.responses import RedirectResponse

from nalevel.api.auth import CurrentUserDependency, resolve_user
from nalevel.api.onboarding import draft_store_for
from nalevel.metrics.prometheus_exporter import redirects_total
from nalevel.onboarding.drafts import NO_DRAFT
from nalevel.onboarding.guard import decide_redirect, redirect_reason
from nalevel.onboarding.stages import ONBOARDING_PREFIX, OnboardingStage
from nalevel.users.models import User

logger = logging.getLogger(__name__)

router = APIRouter(tags=["pages"])

NON_PAGE_PREFIXES = ("/api/", "/health", "/metrics", "/docs", "/redoc", "/openapi.json")

SECURITY_HEADERS = {
    "Content-Security-Policy": (
        "default-src 'self'; "
        "script-src 'self' 'unsafe-inline' https://cdnjs.cloudflare.com; "
        "style-src 'self' 'unsafe-inline'; "
        "img-src 'self' data: blob:; "
        "font-src 'self' data:; "
        "frame-src 'none'; "
        "object-src 'none'; "
        "connect-src 'self'"
    ),
    "Strict-Transport-Security": "max-age=63072000; includeSubDomains; preload",
    "X-Content-Type-Options": "nosniff",
    "X-Frame-Options": "DENY",
    "X-XSS-Protection": "1; mode=block",
    "Referrer-Policy": "strict-origin-when-cross-origin",
    "Permissions-Policy": "geolocation=(), microphone=(), camera=()",
}


def apply_security_headers(response: Response) -> Response:
    for key, value in SECURITY_HEADERS.items():
        response.headers.setdefault(key, value)
    return response


def is_page_request(request: Request) -> bool:
    if request.method != "GET":
        return False
    return not request.url.path.startswith(NON_PAGE_PREFIXES)


async def onboarding_guard_middleware(
    request: Request,
    call_next: Callable[[Request], Awaitable[Response]],
) -> Response:
    """Redirect page requests that do not match the visitor's onboarding stage."""

    if is_page_request(request):
        user = await resolve_user(request)
        state = user.onboarding if user is not None else None
        target = decide_redirect(state, request.url.path)
        if target is not None:
            redirects_total.labels(reason=redirect_reason(state)).inc()
            logger.debug("Guard redirect %s -> %s", request.url.path, target)
            return apply_security_headers(
                RedirectResponse(target, status_code=status.HTTP_307_TEMPORARY_REDIRECT),
            )
    response = await call_next(request)
    return apply_security_headers(response)


@router.get(ONBOARDING_PREFIX + "/{stage}")
async def onboarding_page(
    stage: OnboardingStage,
    request: Request,
    user: User = CurrentUserDependency,
) -> dict[str, Any]:
    """Context the page shell of ``stage`` renders: progress and any saved draft."""

    draft = draft_store_for(request, user).load_draft(stage)
    return {
        "stage": stage.value,
        "onboarding": user.onboarding.to_dict(),
        "roles": list(user.roles),
        "draft": None if draft is NO_DRAFT else draft,
    }
