"""FastAPI entrypoint and HTTP routes."""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator

from fastapi import FastAPI, HTTPException, Request, Response, status
from prometheus_client import CONTENT_TYPE_LATEST, generate_latest
from pydantic import BaseModel, Field

from nalevel import __version__
from nalevel.api import onboarding, pages
from nalevel.config.settings import Settings, get_settings
from nalevel.db.session import create_engine, create_session_factory, init_db
from nalevel.monitoring.logging import configure_logging
from nalevel.users.client import BackendUserClient
from nalevel.users.repository import SqlUserRepository, UserAlreadyExistsError

logger = logging.getLogger(__name__)


class RegisterRequest(BaseModel):
    email: str = Field(min_length=3, max_length=320, pattern=r"^[^@\s]+@[^@\s]+$")


def _lifespan(settings: Settings):
    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        if settings.user_backend == "remote":
            client = BackendUserClient(settings)
            app.state.gateway = client
            app.state.repository = None
            try:
                yield
            finally:
                await client.close()
            return

        engine = create_engine(settings.database_url)
        await init_db(engine)
        repository = SqlUserRepository(create_session_factory(engine))
        app.state.gateway = repository
        app.state.repository = repository
        try:
            yield
        finally:
            await engine.dispose()

    return lifespan


def create_app(settings: Settings | None = None) -> FastAPI:
    """Initialise the FastAPI application."""

    settings = settings or get_settings()
    configure_logging(settings)
    app = FastAPI(
        title="Nalevel Onboarding API",
        version=__version__,
        docs_url="/docs" if settings.environment != "prod" else None,
        redoc_url="/redoc" if settings.environment != "prod" else None,
        lifespan=_lifespan(settings),
    )
    app.state.settings = settings
    app.state.submission_locks = {}

    app.middleware("http")(pages.onboarding_guard_middleware)
    app.include_router(onboarding.router)
    app.include_router(pages.router)

    @app.get("/health", tags=["system"])
    async def health_check() -> dict[str, str]:
        """Simple health endpoint used for readiness probes."""

        return {"status": "ok"}

    @app.get("/metrics", tags=["system"])
    async def metrics() -> Response:
        return Response(content=generate_latest(), media_type=CONTENT_TYPE_LATEST)

    @app.post("/api/v1/auth/register", status_code=status.HTTP_201_CREATED, tags=["auth"])
    async def register(body: RegisterRequest, request: Request, response: Response) -> dict[str, str]:
        """Create a local account that starts onboarding at role selection."""

        repository: SqlUserRepository | None = request.app.state.repository
        if repository is None:
            raise HTTPException(
                status_code=status.HTTP_404_NOT_FOUND,
                detail="Registration is handled by the user backend.",
            )
        try:
            user = await repository.create_user(body.email)
        except UserAlreadyExistsError as exc:
            raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(exc)) from exc

        response.set_cookie(
            key=settings.session_cookie_name,
            value=user.session_token or "",
            httponly=True,
            secure=settings.environment == "prod",
            samesite="lax",
            path="/",
            max_age=7 * 24 * 60 * 60,
        )
        logger.info("Registered user %s", user.id)
        return {"id": user.id, "stage": user.onboarding.stage.value}

    return app


app = create_app()
