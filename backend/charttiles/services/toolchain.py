"""Adapters for the external chart conversion utilities.

The conversion pipeline needs three capabilities: list the layers of an
S-57 cell, extract one layer as GeoJSON, and package a set of GeoJSON
files into a single MBTiles archive. ChartToolchain describes them;
GdalTippecanoeToolchain implements them with GDAL's ``ogrinfo`` and
``ogr2ogr`` and Mapbox ``tippecanoe``. Tests substitute their own
implementation so the orchestration logic can run without the binaries.

Example:
    The commands executed for one cell:
        $ ogrinfo -ro -so US5MA1SK.000
        $ ogr2ogr -f GeoJSON -oo SPLIT_MULTIPOINT=ON -oo ADD_SOUNDG_DEPTH=ON \\
        $    work/US5MA1SK/US5MA1SK_SOUNDG.raw.geojson US5MA1SK.000 SOUNDG
        $ tippecanoe -o dist/mbtiles/US5MA1SK.mbtiles --force -l s57 \\
        $    -n US5MA1SK --drop-densest-as-needed -zg work/US5MA1SK/*.geojson
"""

from __future__ import annotations

import json
import re
from typing import TYPE_CHECKING, Protocol

from charttiles.archives import models
from charttiles.core import errors
from charttiles.core import logging_setup
from charttiles.utils import commands

if TYPE_CHECKING:
    import pathlib
    from collections.abc import Sequence

    from charttiles.core import config

LOGGER = logging_setup.get_logger(__name__)

_LAYER_LINE = re.compile(r"^\d+:\s+(?P<name>.+?)(?:\s+\([^()]*\))?\s*$")


class ChartToolchain(Protocol):
    """Capabilities the conversion pipeline needs from external tools."""

    def list_layers(self, source: pathlib.Path) -> list[str]: ...

    def extract_layer(
        self,
        source: pathlib.Path,
        layer: str,
        workdir: pathlib.Path,
    ) -> list[models.Feature]: ...

    def package_chart(
        self,
        chart_name: str,
        geometry_files: Sequence[pathlib.Path],
        zoom_range: models.ZoomRange,
        destination: pathlib.Path,
    ) -> pathlib.Path: ...


def parse_layer_listing(listing: str) -> list[str]:
    """Extract layer names from ``ogrinfo -so`` output.

    Layer lines look like ``12: DEPARE (Polygon)``; everything else (driver
    banners, warnings) is ignored.

    Args:
        listing: Standard output of ogrinfo.

    Returns:
        Layer names in the order ogrinfo reported them.
    """
    layers = []
    for line in listing.splitlines():
        match = _LAYER_LINE.match(line.strip())
        if match:
            layers.append(match.group("name"))
    return layers


def build_package_command(
    tippecanoe_bin: str,
    destination: pathlib.Path,
    chart_name: str,
    source_layer: str,
    zoom_range: models.ZoomRange,
    geometry_files: Sequence[pathlib.Path],
) -> list[str]:
    """Assemble the tippecanoe invocation for one chart.

    All layer files are packaged into the single named ``source_layer``;
    features keep their ``layer`` attribute for styling. ``--force`` makes
    re-packaging overwrite a previous archive of the same chart.
    """
    command = [
        tippecanoe_bin,
        "-o",
        str(destination),
        "--force",
        "-l",
        source_layer,
        "-n",
        chart_name,
        "--drop-densest-as-needed",
    ]
    if zoom_range.min_zoom is not None:
        command.extend(["-Z", str(zoom_range.min_zoom)])
    if zoom_range.max_zoom is None:
        command.append("-zg")
    else:
        command.extend(["-z", str(zoom_range.max_zoom)])
    command.extend(str(path) for path in geometry_files)
    return command


class GdalTippecanoeToolchain:
    """ChartToolchain backed by GDAL command-line utilities and tippecanoe."""

    def __init__(
        self,
        *,
        ogrinfo_bin: str = "ogrinfo",
        ogr2ogr_bin: str = "ogr2ogr",
        tippecanoe_bin: str = "tippecanoe",
        source_layer: str = "s57",
    ) -> None:
        self.ogrinfo_bin = ogrinfo_bin
        self.ogr2ogr_bin = ogr2ogr_bin
        self.tippecanoe_bin = tippecanoe_bin
        self.source_layer = source_layer

    @classmethod
    def from_settings(cls, settings: config.Settings) -> GdalTippecanoeToolchain:
        return cls(
            ogrinfo_bin=settings.ogrinfo_bin,
            ogr2ogr_bin=settings.ogr2ogr_bin,
            tippecanoe_bin=settings.tippecanoe_bin,
            source_layer=settings.source_layer,
        )

    def list_layers(self, source: pathlib.Path) -> list[str]:
        """List the layers of a source cell in metadata-only mode.

        Raises:
            ExtractionFailure: If ogrinfo fails.
        """
        try:
            listing = commands.run_command(
                [self.ogrinfo_bin, "-ro", "-so", str(source)]
            )
        except commands.CommandError as exc:
            raise errors.ExtractionFailure(source, None, str(exc)) from exc
        return parse_layer_listing(listing)

    def extract_layer(
        self,
        source: pathlib.Path,
        layer: str,
        workdir: pathlib.Path,
    ) -> list[models.Feature]:
        """Extract one layer to GeoJSON and load its features.

        The raw ogr2ogr output is removed before returning, whatever the
        outcome.

        Raises:
            ExtractionFailure: If ogr2ogr fails or writes unreadable or
                malformed output.
        """
        raw_path = workdir / f"{source.stem}_{layer}.raw.geojson"
        raw_path.unlink(missing_ok=True)
        command = [
            self.ogr2ogr_bin,
            "-f",
            "GeoJSON",
            "-oo",
            "SPLIT_MULTIPOINT=ON",
            "-oo",
            "ADD_SOUNDG_DEPTH=ON",
            str(raw_path),
            str(source),
            layer,
        ]
        try:
            commands.run_command(command)
            with raw_path.open(encoding="utf-8") as handle:
                collection = json.load(handle)
        except commands.CommandError as exc:
            raise errors.ExtractionFailure(source, layer, str(exc)) from exc
        except (OSError, ValueError) as exc:
            raise errors.ExtractionFailure(
                source, layer, f"unreadable GeoJSON output: {exc}"
            ) from exc
        finally:
            raw_path.unlink(missing_ok=True)

        try:
            return [
                models.Feature.from_geojson(feature)
                for feature in collection.get("features") or []
            ]
        except (AttributeError, TypeError) as exc:
            raise errors.ExtractionFailure(
                source, layer, f"malformed GeoJSON feature: {exc}"
            ) from exc

    def package_chart(
        self,
        chart_name: str,
        geometry_files: Sequence[pathlib.Path],
        zoom_range: models.ZoomRange,
        destination: pathlib.Path,
    ) -> pathlib.Path:
        """Package layer files into one MBTiles archive.

        Raises:
            PackagingFailure: If tippecanoe fails.
        """
        command = build_package_command(
            self.tippecanoe_bin,
            destination,
            chart_name,
            self.source_layer,
            zoom_range,
            geometry_files,
        )
        LOGGER.debug("Running %s", " ".join(command))
        try:
            commands.run_command(command)
        except commands.CommandError as exc:
            raise errors.PackagingFailure(chart_name, str(exc)) from exc
        return destination
