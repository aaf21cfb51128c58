"""FastAPI application factory for the chart tile server.

The factory loads the chart registry synchronously before returning the
application, so the server never accepts a request against a partially
built index. The registry is attached to ``app.state`` and reaches the
endpoints through a dependency; there is no module-level application or
registry.

Example:
    Run with uvicorn using the factory:
        $ uvicorn charttiles.main:create_app --factory --port 8080

    Or build an app around an existing registry:
        >>> from charttiles.main import create_app
        >>> app = create_app(settings, registry=registry)
"""

from __future__ import annotations

import contextlib
from typing import TYPE_CHECKING, Any

import fastapi
from fastapi.middleware import cors

from charttiles.api import charts, tiles
from charttiles.archives import registry as chart_registry
from charttiles.core import config
from charttiles.core import errors
from charttiles.core import logging_setup

if TYPE_CHECKING:
    from collections.abc import AsyncIterator

LOGGER = logging_setup.get_logger(__name__)


def create_app(
    settings: config.Settings | None = None,
    registry: chart_registry.ChartRegistry | None = None,
) -> fastapi.FastAPI:
    """Create and configure the FastAPI application.

    Sets up CORS middleware, includes the chart and tile routers and adds
    a health check endpoint. When no registry is given it is built from
    settings before the app is returned.

    Args:
        settings: Application settings, defaults to get_settings().
        registry: Pre-built chart registry, mostly for tests.

    Returns:
        Configured FastAPI application instance ready for ASGI server.

    Raises:
        SourceDirectoryMissing: If ``require_charts`` is set and no chart
            could be loaded.
    """
    if settings is None:
        settings = config.get_settings()
    if registry is None:
        registry = chart_registry.ChartRegistry.from_settings(settings)

    if not len(registry):
        if settings.require_charts:
            raise errors.SourceDirectoryMissing(
                settings.archive_dir,
                "No chart archives available, run the conversion first",
            )
        LOGGER.warning("Starting with an empty chart registry")

    @contextlib.asynccontextmanager
    async def lifespan(_app: fastapi.FastAPI) -> AsyncIterator[None]:
        for entry in registry:
            LOGGER.info("Serving chart %s from %s", entry.name, entry.summary.path)
        yield
        registry.close()

    app = fastapi.FastAPI(title="Chart Tiles", version="0.1.0", lifespan=lifespan)
    app.state.registry = registry
    app.dependency_overrides[config.get_settings] = lambda: settings

    app.include_router(charts.router)
    app.include_router(tiles.router)

    app.add_middleware(
        cors.CORSMiddleware,  # type: ignore[arg-type]
        allow_origins=settings.allow_origins,
        allow_methods=["GET"],
        allow_headers=["*"],
    )

    @app.get("/health")
    async def health() -> dict[str, Any]:  # type: ignore[misc]
        """Health check endpoint for monitoring and load balancers.

        Returns:
            Dictionary with status "ok" and the loaded charts with their
            archive paths.
        """
        return {
            "status": "ok",
            "charts": [
                {"name": entry.name, "path": str(entry.summary.path)}
                for entry in registry
            ],
        }

    return app
