"""FastAPI application wiring for the account service."""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Response
from fastapi.middleware.cors import CORSMiddleware
from prometheus_client import CONTENT_TYPE_LATEST, generate_latest

from .api.routes import router as v1_router
from .config import Settings, get_settings
from .domain.service import AccountService
from .repository.factory import open_repository
from .security.passwords import PasswordHasher
from .security.tokens import TokenCodec

logger = logging.getLogger(__name__)


def configure_logging(settings: Settings) -> None:
    logging.basicConfig(
        level=settings.log_level,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


def create_app(settings: Settings | None = None) -> FastAPI:
    """Build the application; tests pass explicit settings instead of the environment."""
    settings = settings or get_settings()

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """Open the account store and build the services for the app lifecycle."""
        with open_repository(settings) as repository:
            codec = TokenCodec.from_settings(settings)
            app.state.settings = settings
            app.state.token_codec = codec
            app.state.account_service = AccountService(
                repository,
                hasher=PasswordHasher(rounds=settings.bcrypt_rounds),
                codec=codec,
                password_min_length=settings.password_min_length,
                revoke_sessions_on_block=settings.revoke_sessions_on_block,
            )
            logger.info("%s %s ready (store=%s)", settings.app_name, settings.version, settings.store_backend)
            yield

    app = FastAPI(title=settings.app_name, version=settings.version, lifespan=lifespan)

    # CORS for local frontend dev
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["http://localhost:5173", "http://127.0.0.1:5173"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
        max_age=600,
    )

    @app.get("/healthz", tags=["health"])
    def healthz() -> dict[str, str]:
        """Return a minimal readiness indicator used by orchestration systems."""
        return {"status": "ok"}

    @app.get("/metrics", tags=["health"])
    def metrics() -> Response:
        return Response(content=generate_latest(), media_type=CONTENT_TYPE_LATEST)

    app.include_router(v1_router)
    return app


configure_logging(get_settings())
app = create_app()
