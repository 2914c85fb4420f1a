"""FastAPI application factory.

Main entry point for the kalimat HTTP API. Run with:

    uvicorn kalimat.web.api:create_app --factory
"""

from __future__ import annotations

from contextlib import asynccontextmanager
from typing import AsyncGenerator

import structlog
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from kalimat import __version__
from kalimat.config.app_config import AppConfig, StoreConfig, load_app_config
from kalimat.core.auth import LocalTokenVerifier, SupabaseTokenVerifier, TokenVerifier
from kalimat.db.backends import Backend, PostgrestBackend, open_backend
from kalimat.db.database import init_db
from kalimat.errors import StoreError
from kalimat.quran.client import QuranApiClient
from kalimat.web.deps import Services
from kalimat.web.routes import (
    entities_router,
    functions_router,
    health_router,
    learning_router,
    quran_router,
)

logger = structlog.get_logger(__name__)


def build_verifier(store: StoreConfig) -> TokenVerifier:
    """Token verifier matching the configured store."""
    if store.kind == "sqlite":
        return LocalTokenVerifier(store.db_path)
    key = store.get_anon_key() or store.get_service_key()
    if not store.url or not key:
        raise StoreError("*", "connect", "SUPABASE_URL and a key are required for token verification")
    return SupabaseTokenVerifier(store.url, key)


def build_services(
    config: AppConfig | None = None,
    backend: Backend | None = None,
    verifier: TokenVerifier | None = None,
    quran_api: QuranApiClient | None = None,
) -> Services:
    """Assemble the app's collaborators, creating the local schema when needed."""
    config = config or load_app_config()
    if backend is None:
        if config.store.kind == "sqlite":
            init_db(config.store.db_path)
        backend = open_backend(config.store, elevated=True)
    return Services(
        config=config,
        backend=backend,
        verifier=verifier or build_verifier(config.store),
        quran_api=quran_api or QuranApiClient(config.quran_api),
    )


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Lifespan context manager for startup/shutdown events."""
    services: Services = app.state.services
    logger.info(
        "api_startup",
        store=services.config.store.kind,
        quran_api=services.config.quran_api.base_url,
    )
    yield
    if isinstance(services.backend, PostgrestBackend):
        services.backend.close()
    logger.info("api_shutdown")


def create_app(services: Services | None = None) -> FastAPI:
    """Create and configure the FastAPI application.

    Args:
        services: Prebuilt collaborators (default: built from app config)

    Returns:
        Configured FastAPI app instance
    """
    app = FastAPI(
        title="Kalimat API",
        description="Quranic vocabulary learning API",
        version=__version__,
        docs_url="/docs",
        redoc_url="/redoc",
        lifespan=lifespan,
    )
    app.state.services = services or build_services()

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.include_router(health_router)
    app.include_router(functions_router)
    app.include_router(entities_router)
    app.include_router(learning_router)
    app.include_router(quran_router)

    return app
