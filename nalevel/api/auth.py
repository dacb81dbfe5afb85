"""Session resolution helpers and route dependencies."""

from __future__ import annotations

import logging

from fastapi import Depends, HTTPException, Request, status

from nalevel.users.client import UserServiceRequestError
from nalevel.users.models import User, UserGateway

logger = logging.getLogger(__name__)


def get_gateway(request: Request) -> UserGateway:
    return request.app.state.gateway


def session_token(request: Request) -> str | None:
    """Return the session token from the cookie or a bearer Authorization header."""

    token = request.cookies.get(request.app.state.settings.session_cookie_name)
    if token:
        return token
    authorization = request.headers.get("Authorization", "")
    scheme, _, credentials = authorization.partition(" ")
    if scheme.lower() == "bearer" and credentials:
        return credentials.strip()
    return None


async def resolve_user(request: Request) -> User | None:
    """
    Look up the signed-in user, or ``None`` for anonymous requests.

    Session validation is owned by the user backend; when it cannot be reached
    the request is treated as signed out.
    """

    token = session_token(request)
    if not token:
        return None
    try:
        return await get_gateway(request).get_by_session(token)
    except UserServiceRequestError as exc:
        logger.error("Session validation error: %s", exc)
        return None


async def get_optional_user(request: Request) -> User | None:
    return await resolve_user(request)


async def require_user(user: User | None = Depends(get_optional_user)) -> User:
    """Ensure the request carries a valid session."""

    if user is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Unauthorized",
        )
    return user


CurrentUserDependency = Depends(require_user)
OptionalUserDependency = Depends(get_optional_user)
