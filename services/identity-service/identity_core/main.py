"""FastAPI application wiring for the identity core."""

from __future__ import annotations

from contextlib import asynccontextmanager

from fastapi import FastAPI, Response
from prometheus_client import CONTENT_TYPE_LATEST, generate_latest
from psycopg_pool import ConnectionPool

from .api.routes import router as v1_router
from .config import get_settings
from .directory import PostgresRoleDirectory, PostgresTenantDirectory
from .domain.resolver import AuthorityResolver
from .domain.service import IdentityService
from .logging import configure_logging
from .repository import IdentityRepository

settings = get_settings()


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Initialise shared resources (Postgres pool, resolver, service) for the app lifecycle."""
    configure_logging(level=settings.log_level)
    pool = ConnectionPool(settings.database_url, open=False)
    pool.open()
    resolver = AuthorityResolver(
        PostgresRoleDirectory(pool),
        PostgresTenantDirectory(pool),
        default_timeout=settings.directory_timeout_seconds,
        max_workers=settings.directory_max_workers,
    )
    app.state.pool = pool
    app.state.identity_service = IdentityService(IdentityRepository(pool), resolver)
    try:
        yield
    finally:
        resolver.close()
        pool.close()


app = FastAPI(title=settings.app_name, version=settings.version, lifespan=lifespan)


@app.get("/healthz", tags=["health"])
def healthz() -> dict[str, str]:
    """Return a minimal readiness indicator used by orchestration systems."""
    return {"status": "ok"}


@app.get("/metrics")
def metrics() -> Response:
    """Expose Prometheus counters, including authorization resolution diagnostics."""
    return Response(content=generate_latest(), media_type=CONTENT_TYPE_LATEST)


app.include_router(v1_router)
