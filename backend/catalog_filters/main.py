from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from catalog_filters.api.routes.catalog import router as catalog_router
from catalog_filters.api.routes.facets import router as facets_router
from catalog_filters.api.routes.filter_sessions import router as filter_sessions_router
from catalog_filters.api.routes.health import router as health_router
from catalog_filters.core.config import settings
from catalog_filters.core.logging import configure_logging, get_logger
from catalog_filters.services.runtime import FilterRuntime, build_runtime

logger = get_logger(__name__)


def _allowed_origins() -> list:
    allowed_origins = ["http://localhost:8081", "http://localhost:19006", "http://localhost:3000"]
    if settings.ALLOWED_ORIGINS and settings.ALLOWED_ORIGINS != "*":
        return [str(origin).strip() for origin in settings.ALLOWED_ORIGINS.split(",")] + allowed_origins
    if settings.ALLOWED_ORIGINS == "*":
        return ["*"]
    return allowed_origins


def create_app(runtime: Optional[FilterRuntime] = None) -> FastAPI:
    configure_logging()

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        # Startup: build collaborators from settings unless the caller injected them
        active = runtime if runtime is not None else build_runtime()
        app.state.runtime = active
        app.state.controller = active.controller
        app.state.registry = active.registry
        app.state.listing = active.listing
        logger.info("filter engine started (cache backend=%s)", settings.CACHE_BACKEND)
        yield
        # Shutdown
        await active.aclose()
        logger.info("filter engine stopped")

    app = FastAPI(title=settings.PROJECT_NAME, lifespan=lifespan)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=_allowed_origins(),
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.include_router(health_router, tags=["Health"])
    app.include_router(
        filter_sessions_router, prefix=f"{settings.API_V1_STR}/filter-sessions", tags=["Filter Sessions"]
    )
    app.include_router(facets_router, prefix=f"{settings.API_V1_STR}/facets", tags=["Facets"])
    app.include_router(catalog_router, prefix=f"{settings.API_V1_STR}/catalog", tags=["Catalog"])
    return app


app = create_app()
