"""Error taxonomy shared by the conversion pipeline and the tile server.

Every failure the system distinguishes has its own exception type so that
callers can decide per unit of work (one layer, one chart, one archive,
one request) whether to skip, continue, or map the condition onto an HTTP
status. All of them derive from ChartTilesError.

Example:
    Map serving failures onto HTTP outcomes:
        >>> try:
        ...     payload = tiles.fetch_tile(registry, "US5MA1SK", 12, 1238, 1515)
        ... except errors.TileNotFound:
        ...     ...  # 404 without a body
        ... except errors.ChartNotFound:
        ...     ...  # 404 with a detail message
        ... except errors.StorageError:
        ...     ...  # 500
"""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    import pathlib
    from collections.abc import Sequence

    from charttiles.archives import models


class ChartTilesError(Exception):
    """Base class for all chart pipeline and serving errors."""


class ArchiveInvalid(ChartTilesError):
    """An archive does not expose the expected MBTiles schema.

    Attributes:
        path: Archive file that failed validation.
        tables: Table and view names that could be discovered in the file,
            empty when the file is not a SQLite database at all.
        reason: Underlying error message.
    """

    def __init__(
        self,
        path: pathlib.Path,
        tables: Sequence[str],
        reason: str,
    ) -> None:
        self.path = path
        self.tables = list(tables)
        self.reason = reason
        listing = ", ".join(self.tables) if self.tables else "none"
        super().__init__(
            f"Invalid archive {path}: {reason} (available tables: {listing})"
        )


class ChartNotFound(ChartTilesError):
    """A request named a chart that is not registered."""

    def __init__(self, name: str | None) -> None:
        self.name = name
        if name is None:
            super().__init__("No charts available")
        else:
            super().__init__(f"Chart '{name}' not found")


class InvalidTileCoordinate(ChartTilesError, ValueError):
    """A tile coordinate lies outside the grid of its zoom level."""


class TileNotFound(ChartTilesError):
    """A registered chart has no tile at the requested coordinate."""

    def __init__(self, chart: str, coordinate: models.TileCoordinate) -> None:
        self.chart = chart
        self.coordinate = coordinate
        super().__init__(f"Tile not found in {chart} at {coordinate}")


class StorageError(ChartTilesError):
    """Querying an archive failed at the storage layer."""

    def __init__(
        self,
        chart: str,
        coordinate: models.TileCoordinate | None,
        reason: str,
    ) -> None:
        self.chart = chart
        self.coordinate = coordinate
        self.reason = reason
        super().__init__(f"Storage error in {chart} at {coordinate}: {reason}")


class ExtractionFailure(ChartTilesError):
    """The extraction utility failed for one source file or layer."""

    def __init__(
        self,
        source: pathlib.Path,
        layer: str | None,
        reason: str,
    ) -> None:
        self.source = source
        self.layer = layer
        self.reason = reason
        target = f"{source}:{layer}" if layer else str(source)
        super().__init__(f"Extraction failed for {target}: {reason}")


class PackagingFailure(ChartTilesError):
    """The packaging utility failed for one chart."""

    def __init__(self, chart: str, reason: str) -> None:
        self.chart = chart
        self.reason = reason
        super().__init__(f"Packaging failed for {chart}: {reason}")


class SourceDirectoryMissing(ChartTilesError):
    """There is no input to convert, or no archives to serve."""

    def __init__(self, path: pathlib.Path, reason: str | None = None) -> None:
        self.path = path
        super().__init__(reason or f"Directory not found: {path}")
