"""Data models for charts, tile coordinates and extracted features.

This module defines the core data structures shared by the conversion
pipeline and the tile server: the summary of a loaded chart archive, tile
coordinates under the two competing row conventions, packaging zoom
ranges, and the typed attribute map carried by every extracted S-57
feature.

Tile rows come in two flavours. Clients address tiles in the *slippy*
(XYZ) convention where row 0 is the northernmost row; MBTiles stores them
in the TMS convention where row 0 is the southernmost. For zoom ``z`` the
two are related by ``archive_row = (2**z - 1) - slippy_row``, which is its
own inverse. The column is identical in both.

Example:
    Convert a client request into the archive convention:
        >>> from charttiles.archives.models import TileCoordinate
        >>> coord = TileCoordinate(zoom=3, column=5, row=0)
        >>> coord.to_archive()
        TileCoordinate(zoom=3, column=5, row=7, scheme='archive')

    Stamp provenance onto a GeoJSON feature:
        >>> feature = Feature.from_geojson(
        ...     {"type": "Feature", "geometry": None,
        ...      "properties": {"DRVAL1": 5.0, "DRVAL2": 10.0}}
        ... )
        >>> feature.attributes.stamp_provenance(layer="DEPARE", chart="US5MA1SK")
        >>> feature.to_geojson()["properties"]["layer"]
        'DEPARE'
"""

from __future__ import annotations

import dataclasses
import pathlib
from typing import Any, Literal

RowScheme = Literal["slippy", "archive"]
AttributeValue = str | int | float | list[Any] | None

STRING_ATTRIBUTES = (
    "OBJNAM",
    "NOBJNM",
    "INFORM",
    "NINFOM",
    "SIGGRP",
)
NUMERIC_ATTRIBUTES = (
    "SCAMIN",
    "SCAMAX",
    "DRVAL1",
    "DRVAL2",
    "VALSOU",
    "VALDCO",
    "HEIGHT",
    "ELEVAT",
    "VERCLR",
    "LITCHR",
    "SIGPER",
    "VALNMR",
    "STATUS",
    "CATPOS",
)
LIST_ATTRIBUTES = ("COLOUR",)
PROVENANCE_ATTRIBUTES = ("layer", "chart")

# Deepest zoom accepted in a tile address. Keeps rows well inside the
# 64-bit integer columns of an MBTiles archive.
MAX_ZOOM = 30


def grid_size(zoom: int) -> int:
    """Return the number of tile rows (and columns) at a zoom level."""
    return 1 << zoom


def to_archive_row(zoom: int, row: int) -> int:
    """Flip a tile row between the slippy and archive conventions.

    The transform is an involution, so the same function converts in both
    directions.

    Args:
        zoom: Zoom level of the tile.
        row: Row in either convention.

    Returns:
        The row in the opposite convention.
    """
    return grid_size(zoom) - 1 - row


@dataclasses.dataclass(frozen=True)
class TileCoordinate:
    """A (zoom, column, row) tile address under one row convention.

    Attributes:
        zoom: Zoom level, from 0 to MAX_ZOOM.
        column: Tile column, identical in both conventions.
        row: Tile row, interpreted according to ``scheme``.
        scheme: ``"slippy"`` for client-facing rows (north at row 0) or
            ``"archive"`` for MBTiles/TMS rows (south at row 0).
    """

    zoom: int
    column: int
    row: int
    scheme: RowScheme = "slippy"

    def is_valid(self) -> bool:
        """Whether the zoom is supported and column and row fall inside its grid."""
        if not 0 <= self.zoom <= MAX_ZOOM:
            return False
        size = grid_size(self.zoom)
        return 0 <= self.column < size and 0 <= self.row < size

    def to_archive(self) -> TileCoordinate:
        """Return this coordinate in the archive (TMS) convention."""
        if self.scheme == "archive":
            return self
        return TileCoordinate(
            self.zoom,
            self.column,
            to_archive_row(self.zoom, self.row),
            "archive",
        )

    def to_slippy(self) -> TileCoordinate:
        """Return this coordinate in the slippy (XYZ) convention."""
        if self.scheme == "slippy":
            return self
        return TileCoordinate(
            self.zoom,
            self.column,
            to_archive_row(self.zoom, self.row),
            "slippy",
        )

    def __str__(self) -> str:
        return f"{self.scheme} z={self.zoom} x={self.column} y={self.row}"


@dataclasses.dataclass(frozen=True)
class ZoomRange:
    """Zoom levels requested from the packaging utility.

    Leaving ``max_zoom`` unset asks the packager to guess an appropriate
    maximum zoom from feature density.
    """

    min_zoom: int | None = None
    max_zoom: int | None = None

    def __post_init__(self) -> None:
        if (
            self.min_zoom is not None
            and self.max_zoom is not None
            and self.min_zoom > self.max_zoom
        ):
            raise ValueError(
                f"min_zoom {self.min_zoom} is greater than "
                f"max_zoom {self.max_zoom}"
            )


@dataclasses.dataclass(frozen=True)
class ChartSummary:
    """Read-only description of a loaded chart archive.

    Attributes:
        name: Unique chart name, the archive file stem.
        path: Location of the archive on disk.
        tile_count: Number of tiles stored in the archive.
        zoom_levels: Distinct zoom levels present, ascending.
        metadata: MBTiles metadata key/value pairs.
    """

    name: str
    path: pathlib.Path
    tile_count: int
    zoom_levels: tuple[int, ...]
    metadata: dict[str, str] = dataclasses.field(default_factory=dict)


@dataclasses.dataclass
class FeatureAttributes:
    """Typed attribute map of one extracted S-57 feature.

    Well-known S-57 attributes get dedicated fields; everything else lands
    in ``extra`` untouched. ``layer`` and ``chart`` hold provenance, which
    is only ever added, never overwritten.
    """

    OBJNAM: str | None = None
    NOBJNM: str | None = None
    INFORM: str | None = None
    NINFOM: str | None = None
    SIGGRP: str | None = None
    SCAMIN: float | None = None
    SCAMAX: float | None = None
    DRVAL1: float | None = None
    DRVAL2: float | None = None
    VALSOU: float | None = None
    VALDCO: float | None = None
    HEIGHT: float | None = None
    ELEVAT: float | None = None
    VERCLR: float | None = None
    LITCHR: float | None = None
    SIGPER: float | None = None
    VALNMR: float | None = None
    STATUS: float | None = None
    CATPOS: float | None = None
    COLOUR: list[Any] | str | None = None
    layer: str | None = None
    chart: str | None = None
    extra: dict[str, AttributeValue] = dataclasses.field(default_factory=dict)

    @classmethod
    def from_properties(
        cls,
        properties: dict[str, AttributeValue] | None,
    ) -> FeatureAttributes:
        """Build an attribute map from a GeoJSON ``properties`` object.

        A property explicitly set to null is kept in ``extra`` so that it
        round-trips.
        """
        known = {
            *STRING_ATTRIBUTES,
            *NUMERIC_ATTRIBUTES,
            *LIST_ATTRIBUTES,
            *PROVENANCE_ATTRIBUTES,
        }
        fields: dict[str, Any] = {}
        extra: dict[str, AttributeValue] = {}
        for key, value in (properties or {}).items():
            if key in known and value is not None:
                fields[key] = value
            else:
                extra[key] = value
        return cls(**fields, extra=extra)

    def stamp_provenance(self, *, layer: str, chart: str) -> None:
        """Record the originating layer and chart without clobbering data."""
        if self.layer is None and "layer" not in self.extra:
            self.layer = layer
        if self.chart is None and "chart" not in self.extra:
            self.chart = chart

    def to_properties(self) -> dict[str, AttributeValue]:
        """Flatten back into a GeoJSON ``properties`` object."""
        properties: dict[str, AttributeValue] = {}
        for field in dataclasses.fields(self):
            if field.name == "extra":
                continue
            value = getattr(self, field.name)
            if value is not None:
                properties[field.name] = value
        properties.update(self.extra)
        return properties


@dataclasses.dataclass
class Feature:
    """One GeoJSON feature with typed attributes."""

    geometry: dict[str, Any] | None
    attributes: FeatureAttributes
    id: str | int | None = None

    @classmethod
    def from_geojson(cls, payload: dict[str, Any]) -> Feature:
        return cls(
            geometry=payload.get("geometry"),
            attributes=FeatureAttributes.from_properties(
                payload.get("properties")
            ),
            id=payload.get("id"),
        )

    def to_geojson(self) -> dict[str, Any]:
        payload: dict[str, Any] = {
            "type": "Feature",
            "geometry": self.geometry,
            "properties": self.attributes.to_properties(),
        }
        if self.id is not None:
            payload["id"] = self.id
        return payload


@dataclasses.dataclass
class LayerExtract:
    """Features extracted from one named layer of one source cell.

    Attributes:
        name: Layer name as reported by the extraction utility.
        object_type: S-57 object class acronym the layer carries.
        features: Extracted features.
    """

    name: str
    object_type: str
    features: list[Feature] = dataclasses.field(default_factory=list)

    @property
    def feature_count(self) -> int:
        return len(self.features)

    def to_geojson(self) -> dict[str, Any]:
        """Return the layer as a GeoJSON FeatureCollection."""
        return {
            "type": "FeatureCollection",
            "features": [feature.to_geojson() for feature in self.features],
        }
