"""XYZ vector tile endpoints backed by MBTiles chart archives.

Two address forms are served:

- ``/{chart_name}/{z}/{x}/{y}.pbf`` selects a chart explicitly.
- ``/{z}/{x}/{y}.pbf`` uses the first registered chart, for clients built
  against the earlier single-archive server.

The second form has no lookup logic of its own: both handlers go through
the same helper, the legacy one without a chart name, so both forms share
the order of checks, coordinate conversion and error mapping.

Rows in the URL follow the slippy-map convention used by MapLibre and
Mapbox GL. Tiles are returned as stored by tippecanoe (gzip-compressed
Mapbox Vector Tiles) with a long-lived cache directive, since a packaged
tile never changes.

Example:
    Request a tile from a named chart:
        >>> response = client.get("/US5MA1SK/12/1238/1515.pbf")
        >>> response.headers["content-type"]
        'application/x-protobuf'

    Use in MapLibre GL JS:
        >>> map.addSource('enc', {
        ...     type: 'vector',
        ...     tiles: ['http://localhost:8080/US5MA1SK/{z}/{x}/{y}.pbf']
        ... });
"""

from __future__ import annotations

from typing import Annotated

import fastapi
from fastapi import responses

from charttiles.archives import registry as chart_registry
from charttiles.core import config
from charttiles.core import errors
from charttiles.core import logging_setup
from charttiles.services import tiles as tile_service

LOGGER = logging_setup.get_logger(__name__)

MVT_MEDIA_TYPE = "application/x-protobuf"
TILE_EXTENSIONS = frozenset({"pbf", "mvt"})

router = fastapi.APIRouter(tags=["tiles"])

TileIndex = Annotated[int, fastapi.Path(ge=0)]


def _get_registry(request: fastapi.Request) -> chart_registry.ChartRegistry:
    """Resolve the chart registry built at application startup.

    Args:
        request: Incoming request, whose app carries the registry.

    Returns:
        The registry the application was created with.
    """
    return request.app.state.registry


def _tile_response(
    registry: chart_registry.ChartRegistry,
    settings: config.Settings,
    chart_name: str | None,
    z: int,
    x: int,
    y: int,
    ext: str,
) -> responses.Response:
    """Look up one tile and frame it, or map the failure onto HTTP.

    ``chart_name`` None selects the first registered chart, so the check
    order (extension, coordinate, chart) is the same for both routes.
    """
    if ext not in TILE_EXTENSIONS:
        raise fastapi.HTTPException(
            status_code=404,
            detail="Unsupported tile format",
        )

    try:
        tile = tile_service.fetch_tile(registry, chart_name, z, x, y)
    except errors.TileNotFound:
        return responses.Response(status_code=404)
    except errors.ChartNotFound as exc:
        LOGGER.info("%s", exc)
        raise fastapi.HTTPException(status_code=404, detail=str(exc)) from exc
    except errors.InvalidTileCoordinate as exc:
        raise fastapi.HTTPException(status_code=400, detail=str(exc)) from exc
    except errors.StorageError as exc:
        raise fastapi.HTTPException(
            status_code=500,
            detail="Storage error",
        ) from exc

    headers = {"Cache-Control": f"public, max-age={settings.tile_cache_max_age}"}
    if tile.gzipped:
        headers["Content-Encoding"] = "gzip"

    return responses.Response(
        content=tile.data,
        media_type=MVT_MEDIA_TYPE,
        headers=headers,
    )


@router.get("/{chart_name}/{z}/{x}/{y}.{ext}")
def chart_tile(
    chart_name: str,
    z: TileIndex,
    x: TileIndex,
    y: TileIndex,
    ext: str,
    registry: chart_registry.ChartRegistry = fastapi.Depends(_get_registry),  # noqa: B008
    settings: config.Settings = fastapi.Depends(config.get_settings),  # noqa: B008
) -> responses.Response:
    """Serve one vector tile from a named chart.

    Args:
        chart_name: Registered chart name (archive file stem).
        z: Zoom level.
        x: Tile column.
        y: Tile row, slippy-map convention (row 0 is north).
        ext: Tile extension, ``pbf`` or ``mvt``.
        registry: Chart registry (injected via FastAPI Depends).
        settings: Application settings (injected via FastAPI Depends).

    Returns:
        The tile bytes with MVT content framing, or an empty 404 when the
        chart has no data at that coordinate.

    Raises:
        HTTPException: 404 for an unknown chart or extension, 400 for a
            coordinate outside the zoom grid or above the maximum zoom,
            500 for a storage failure.
    """
    return _tile_response(registry, settings, chart_name, z, x, y, ext)


@router.get("/{z}/{x}/{y}.{ext}")
def default_chart_tile(
    z: TileIndex,
    x: TileIndex,
    y: TileIndex,
    ext: str,
    registry: chart_registry.ChartRegistry = fastapi.Depends(_get_registry),  # noqa: B008
    settings: config.Settings = fastapi.Depends(config.get_settings),  # noqa: B008
) -> responses.Response:
    """Serve a tile from the first registered chart.

    Kept for clients of the single-archive server. Takes the same path
    as chart_tile() with no chart name, so an empty registry is only
    reported once the coordinate itself has been accepted.

    Raises:
        HTTPException: 404 "No charts available" when no charts are
            loaded, otherwise whatever chart_tile() raises.
    """
    return _tile_response(registry, settings, None, z, x, y, ext)
