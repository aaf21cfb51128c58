"""Tile lookup across a registry of chart archives.

This module is the transport-independent core of the tile server. A
request names an optional chart and a slippy-map (XYZ) coordinate; the
engine resolves the chart, converts the row into the archive's TMS
convention exactly once, and queries the archive. Each outcome has its
own exception so the HTTP layer can map it without inspecting messages.

The engine holds no state between calls: everything it needs comes from
the registry passed in.

Example:
    Fetch a tile for an explicit chart and for the default chart:
        >>> payload = fetch_tile(registry, "US5MA1SK", 12, 1238, 1515)
        >>> payload.gzipped
        True
        >>> fetch_tile(registry, None, 12, 1238, 1515).data == payload.data
        True
"""

from __future__ import annotations

import dataclasses
import sqlite3
from typing import TYPE_CHECKING

from charttiles.archives import models
from charttiles.core import errors
from charttiles.core import logging_setup

if TYPE_CHECKING:
    from charttiles.archives import registry as chart_registry

LOGGER = logging_setup.get_logger(__name__)

GZIP_MAGIC = b"\x1f\x8b"


@dataclasses.dataclass(frozen=True)
class TilePayload:
    """A tile found in an archive.

    Attributes:
        chart: Name of the chart the tile came from.
        coordinate: Archive-convention coordinate that was queried.
        data: Raw tile bytes as stored.
    """

    chart: str
    coordinate: models.TileCoordinate
    data: bytes

    @property
    def gzipped(self) -> bool:
        """Whether the payload is gzip-framed, as tippecanoe writes it."""
        return self.data[:2] == GZIP_MAGIC


def resolve_chart(
    registry: chart_registry.ChartRegistry,
    chart_name: str | None,
) -> chart_registry.ChartEntry:
    """Find the chart a request refers to.

    Args:
        registry: Loaded chart registry.
        chart_name: Requested chart, or None for the first registered chart.

    Returns:
        The matching registry entry.

    Raises:
        ChartNotFound: If the name is unknown, or no name was given and the
            registry is empty.
    """
    if chart_name is None:
        entry = registry.first()
        if entry is None:
            raise errors.ChartNotFound(None)
        return entry
    return registry.get(chart_name)


def fetch_tile(
    registry: chart_registry.ChartRegistry,
    chart_name: str | None,
    zoom: int,
    column: int,
    row: int,
) -> TilePayload:
    """Resolve a chart and return the tile at a slippy-map coordinate.

    Args:
        registry: Loaded chart registry.
        chart_name: Requested chart, or None for the first registered chart.
        zoom: Zoom level.
        column: Tile column.
        row: Tile row in the slippy (XYZ) convention.

    Returns:
        The stored tile.

    Raises:
        InvalidTileCoordinate: If the coordinate lies outside the zoom grid.
        ChartNotFound: If the chart cannot be resolved.
        TileNotFound: If the chart has no tile there.
        StorageError: If the archive query fails.
    """
    requested = models.TileCoordinate(zoom, column, row, "slippy")
    if not requested.is_valid():
        raise errors.InvalidTileCoordinate(f"Tile coordinate out of range: {requested}")

    entry = resolve_chart(registry, chart_name)
    coordinate = requested.to_archive()

    LOGGER.debug("Tile request %s %s -> %s", entry.name, requested, coordinate)
    try:
        data = entry.archive.get_tile(
            coordinate.zoom, coordinate.column, coordinate.row
        )
    except sqlite3.Error as exc:
        LOGGER.error(
            "Storage error reading %s at %s (requested %s): %s",
            entry.name,
            coordinate,
            requested,
            exc,
        )
        raise errors.StorageError(entry.name, coordinate, str(exc)) from exc

    if data is None:
        raise errors.TileNotFound(entry.name, coordinate)

    return TilePayload(chart=entry.name, coordinate=coordinate, data=data)
