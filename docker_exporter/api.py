"""
HTTP surface of the exporter.

Serves the cached exposition document. Requests only read the snapshot cache;
collection runs on its own schedule and is never started by a scrape.
"""
import logging
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.responses import PlainTextResponse, Response
from starlette.exceptions import HTTPException as StarletteHTTPException

from docker_exporter import __version__
from docker_exporter.cache import SnapshotCache
from docker_exporter.docker_client import DockerRuntimeClient
from docker_exporter.formatter import CONTENT_TYPE
from docker_exporter.models import Snapshot
from docker_exporter.scheduler import CollectionScheduler

logger = logging.getLogger(__name__)

METRICS_PATH = '/metrics'
NOT_READY_BODY = 'Metrics not yet available\n'
NOT_FOUND_BODY = 'Not found\n'


def render_snapshot(snapshot: Snapshot) -> str:
    """Snapshot document followed by its completion timestamp comment."""
    return (
        f"{snapshot.document}"
        f"# Last collection completed at {snapshot.completed_at:.3f} (seconds since epoch)\n"
    )


def create_app(
    cache: SnapshotCache,
    scheduler: Optional[CollectionScheduler] = None,
    runtime: Optional[DockerRuntimeClient] = None
) -> FastAPI:
    """
    Build the FastAPI application.

    Args:
        cache: Snapshot cache to serve from
        scheduler: Started on application startup and stopped on shutdown
        runtime: Closed on application shutdown

    Returns:
        FastAPI app
    """

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        if scheduler is not None:
            scheduler.start()
        try:
            yield
        finally:
            if scheduler is not None:
                scheduler.shutdown()
            if runtime is not None:
                runtime.close()

    app = FastAPI(
        title="Docker Stats Exporter",
        version=__version__,
        docs_url=None,
        redoc_url=None,
        openapi_url=None,
        redirect_slashes=False,
        lifespan=lifespan,
    )

    @app.exception_handler(StarletteHTTPException)
    async def http_exception_handler(request: Request, exc: StarletteHTTPException):
        """Plain text errors instead of FastAPI's JSON bodies."""
        if exc.status_code == 404:
            return PlainTextResponse(NOT_FOUND_BODY, status_code=404)
        return PlainTextResponse(f"{exc.detail}\n", status_code=exc.status_code, headers=exc.headers)

    @app.get(METRICS_PATH)
    async def metrics_endpoint():
        """Prometheus metrics endpoint."""
        snapshot = cache.read()
        if snapshot is None:
            logger.debug("Scrape before first completed collection")
            return PlainTextResponse(NOT_READY_BODY, status_code=503)
        return Response(content=render_snapshot(snapshot), media_type=CONTENT_TYPE)

    return app
