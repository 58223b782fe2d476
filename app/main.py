"""Kindred Collective API: organisations, members and invites."""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from app.auth.router import router as auth_router
from app.config import Settings, get_settings
from app.db.database import init_db
from app.errors import register_exception_handlers
from app.invites.router import router as invites_router
from app.organisations.router import router as organisations_router


def configure_logging(debug: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if debug else logging.INFO,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )


@asynccontextmanager
async def lifespan(app: FastAPI):
    init_db()
    yield


def create_app(settings: Settings | None = None) -> FastAPI:
    """Build the API with its middleware, error handlers and routers.

    Args:
        settings: Overrides the environment settings.

    Returns:
        FastAPI: Configured application.
    """
    settings = settings or get_settings()
    configure_logging(settings.debug)

    application = FastAPI(
        title=settings.app_name,
        description="Brand and supplier organisations, their members and team invites",
        version="0.1.0",
        lifespan=lifespan,
        debug=settings.debug,
    )
    application.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    register_exception_handlers(application)

    application.include_router(auth_router, prefix="/api/auth", tags=["auth"])
    application.include_router(
        organisations_router, prefix="/api/organisations", tags=["organisations"]
    )
    # Invite routes span /api/organisations/{id}/invites, /api/invites and /api/onboarding
    application.include_router(invites_router, prefix="/api", tags=["invites"])

    @application.get("/health")
    async def health_check():
        return {"status": "healthy", "app": settings.app_name, "environment": settings.environment}

    return application


app = create_app()
