"""Connectivity checks for external services."""

from __future__ import annotations

import asyncio
from dataclasses import dataclass
from typing import Awaitable, Callable

from nalevel.config.settings import get_settings
from nalevel.users.client import BackendUserClient


@dataclass(slots=True)
class IntegrationCheckResult:
    """Structured result describing the integration check outcome."""

    name: str
    success: bool
    message: str


async def _run_check(
    name: str,
    factory: Callable[[], Awaitable[bool]],
    success_message: str,
) -> IntegrationCheckResult:
    try:
        result = await factory()
    except Exception as exc:  # pragma: no cover - defensive branch
        return IntegrationCheckResult(name=name, success=False, message=str(exc))

    if result:
        return IntegrationCheckResult(name=name, success=True, message=success_message)
    return IntegrationCheckResult(
        name=name,
        success=False,
        message="Service responded with non-success status.",
    )


async def check_user_backend() -> IntegrationCheckResult:
    """Ping the user backend and return the result."""

    client = BackendUserClient(get_settings())

    async def _ping() -> bool:
        try:
            return await client.ping()
        finally:
            await client.close()

    return await _run_check(
        name="User backend",
        factory=_ping,
        success_message="User backend is reachable.",
    )


async def run_all_checks() -> list[IntegrationCheckResult]:
    """Execute all integration checks concurrently."""

    return list(await asyncio.gather(check_user_backend()))
