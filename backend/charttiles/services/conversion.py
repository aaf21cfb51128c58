"""Offline conversion of S-57 chart cells into per-chart MBTiles archives.

Each source cell becomes one archive named after the file stem, in
isolation from every other cell: its layers are listed, extracted one by
one, stamped with ``layer`` and ``chart`` provenance, written as transient
GeoJSON, and packaged together into a single vector layer. Layers without
features are dropped before they ever reach disk.

Failures stay inside their unit of work. A layer that fails to extract is
skipped and the remaining layers continue; a chart that fails to package is
skipped and the batch continues. Only a missing source directory stops the
whole run. The outcome of a batch is a ConversionReport listing what was
produced and what was skipped, with the reason.

Example:
    Convert every cell in a directory:
        >>> from charttiles.core.config import get_settings
        >>> from charttiles.services.conversion import ConversionOrchestrator

        >>> settings = get_settings()
        >>> orchestrator = ConversionOrchestrator.from_settings(settings)
        >>> report = orchestrator.convert(settings.source_dir)
        >>> [chart.name for chart in report.succeeded]
        ['US5MA1SK', 'US5MA1SM']
        >>> [(item.source.name, item.layer, item.reason) for item in report.skipped]
        [('US5MA1SN.000', None, 'Packaging failed for US5MA1SN: ...')]
"""

from __future__ import annotations

import dataclasses
import json
import shutil
from concurrent import futures
from typing import TYPE_CHECKING

from charttiles.archives import models
from charttiles.core import errors
from charttiles.core import logging_setup
from charttiles.services import toolchain as chart_toolchain

if TYPE_CHECKING:
    import pathlib
    from collections.abc import Sequence

    from charttiles.core import config

LOGGER = logging_setup.get_logger(__name__)

SOURCE_SUFFIXES = (".000", ".s57")
ARCHIVE_SUFFIX = ".mbtiles"


@dataclasses.dataclass(frozen=True)
class ConvertedChart:
    """A chart that was packaged successfully."""

    name: str
    source: pathlib.Path
    archive: pathlib.Path
    layers: tuple[str, ...]
    feature_count: int


@dataclasses.dataclass(frozen=True)
class SkippedItem:
    """A source, or one layer of it, that did not make it into an archive.

    ``layer`` is None when the whole source was skipped.
    """

    source: pathlib.Path
    reason: str
    layer: str | None = None


@dataclasses.dataclass
class ConversionReport:
    """Accumulated outcome of converting one or more sources."""

    succeeded: list[ConvertedChart] = dataclasses.field(default_factory=list)
    skipped: list[SkippedItem] = dataclasses.field(default_factory=list)

    def merge(self, other: ConversionReport) -> ConversionReport:
        self.succeeded.extend(other.succeeded)
        self.skipped.extend(other.skipped)
        return self


def is_source_file(path: pathlib.Path) -> bool:
    """Whether a path looks like an S-57 cell."""
    return path.is_file() and path.suffix.lower() in SOURCE_SUFFIXES


def discover_sources(
    input_dir: pathlib.Path,
    *,
    recursive: bool = False,
) -> list[pathlib.Path]:
    """Find the S-57 cells to convert.

    Args:
        input_dir: Directory holding ``.000``/``.s57`` files.
        recursive: Descend into sub-directories.

    Returns:
        Eligible source files sorted by path, possibly empty.

    Raises:
        SourceDirectoryMissing: If input_dir does not exist.
    """
    if not input_dir.is_dir():
        raise errors.SourceDirectoryMissing(
            input_dir, f"Source directory not found: {input_dir}"
        )

    candidates = input_dir.rglob("*") if recursive else input_dir.iterdir()
    sources = sorted(path for path in candidates if is_source_file(path))
    if not sources:
        LOGGER.warning("No S-57 files (%s) found in %s", ", ".join(SOURCE_SUFFIXES), input_dir)
    else:
        LOGGER.info("Found %d S-57 file(s) in %s", len(sources), input_dir)
    return sources


def chart_name_for(source: pathlib.Path) -> str:
    """Derive the chart name from a source file (its stem)."""
    return source.stem


class ConversionOrchestrator:
    """Drives the extract-then-package sequence for each source cell.

    Attributes:
        toolchain: Provider of layer listing, extraction and packaging.
        output_dir: Where ``<chart>.mbtiles`` archives are written.
        work_dir: Parent of the per-chart scratch directories.
        zoom_range: Zoom levels requested from the packager.
        max_workers: Number of charts converted concurrently.
        recursive: Whether source discovery descends into sub-directories.
    """

    def __init__(
        self,
        toolchain: chart_toolchain.ChartToolchain,
        *,
        output_dir: pathlib.Path,
        work_dir: pathlib.Path,
        zoom_range: models.ZoomRange | None = None,
        max_workers: int = 1,
        recursive: bool = False,
    ) -> None:
        self.toolchain = toolchain
        self.output_dir = output_dir
        self.work_dir = work_dir
        self.zoom_range = zoom_range or models.ZoomRange()
        self.max_workers = max(1, max_workers)
        self.recursive = recursive

    @classmethod
    def from_settings(
        cls,
        settings: config.Settings,
        toolchain: chart_toolchain.ChartToolchain | None = None,
    ) -> ConversionOrchestrator:
        """Build an orchestrator from settings, creating its directories."""
        settings.ensure_directories()
        return cls(
            toolchain or chart_toolchain.GdalTippecanoeToolchain.from_settings(settings),
            output_dir=settings.output_dir,
            work_dir=settings.work_dir,
            zoom_range=models.ZoomRange(settings.min_zoom, settings.max_zoom),
            max_workers=settings.conversion_workers,
            recursive=settings.recursive_sources,
        )

    def chart_workdir(self, source: pathlib.Path) -> pathlib.Path:
        return self.work_dir / chart_name_for(source)

    def archive_path(self, chart_name: str) -> pathlib.Path:
        return self.output_dir / f"{chart_name}{ARCHIVE_SUFFIX}"

    def discover_sources(self, input_dir: pathlib.Path) -> list[pathlib.Path]:
        return discover_sources(input_dir, recursive=self.recursive)

    def enumerate_layers(self, source: pathlib.Path) -> list[str]:
        """List a source's layers.

        Raises:
            ExtractionFailure: If the listing itself fails.
        """
        layers = self.toolchain.list_layers(source)
        if layers:
            LOGGER.info("%s: found layers %s", source.name, ", ".join(layers))
        else:
            LOGGER.warning("%s: no layers found", source.name)
        return layers

    def extract_layer(
        self,
        source: pathlib.Path,
        layer: str,
    ) -> models.LayerExtract | None:
        """Extract one layer and stamp provenance onto its features.

        Returns:
            The layer's features, or None when it has none; an empty layer
            is a normal outcome and leaves nothing on disk.

        Raises:
            ExtractionFailure: If the extraction utility fails.
        """
        chart_name = chart_name_for(source)
        features = self.toolchain.extract_layer(
            source, layer, self.chart_workdir(source)
        )
        if not features:
            LOGGER.debug("%s: layer %s has no features, skipped", chart_name, layer)
            return None

        for feature in features:
            feature.attributes.stamp_provenance(layer=layer, chart=chart_name)
        LOGGER.info("%s: layer %s extracted %d feature(s)", chart_name, layer, len(features))
        return models.LayerExtract(name=layer, object_type=layer, features=features)

    def write_layer(
        self,
        source: pathlib.Path,
        extract: models.LayerExtract,
    ) -> pathlib.Path:
        """Write a tagged layer as an intermediate GeoJSON file."""
        path = self.chart_workdir(source) / f"{chart_name_for(source)}_{extract.name}.geojson"
        with path.open("w", encoding="utf-8") as handle:
            json.dump(extract.to_geojson(), handle)
        return path

    def package_archive(
        self,
        chart_name: str,
        geometry_files: Sequence[pathlib.Path],
        zoom_range: models.ZoomRange | None = None,
    ) -> pathlib.Path:
        """Package all non-empty layer files of a chart into its archive.

        Re-running overwrites the previous archive of the same chart.

        Raises:
            PackagingFailure: If the packaging utility fails.
        """
        self.output_dir.mkdir(parents=True, exist_ok=True)
        archive = self.toolchain.package_chart(
            chart_name,
            list(geometry_files),
            zoom_range or self.zoom_range,
            self.archive_path(chart_name),
        )
        LOGGER.info("%s: packaged %d layer file(s) into %s", chart_name, len(geometry_files), archive)
        return archive

    def convert_source(self, source: pathlib.Path) -> ConversionReport:
        """Convert one source cell; never raises for per-item failures."""
        report = ConversionReport()
        chart_name = chart_name_for(source)
        LOGGER.info("Processing %s", source)

        try:
            layers = self.enumerate_layers(source)
        except errors.ExtractionFailure as exc:
            LOGGER.error("%s: layer listing failed: %s", source, exc.reason)
            report.skipped.append(SkippedItem(source, str(exc)))
            return report

        if not layers:
            report.skipped.append(SkippedItem(source, "no layers found"))
            return report

        workdir = self.chart_workdir(source)
        try:
            try:
                if workdir.exists():
                    shutil.rmtree(workdir)
                workdir.mkdir(parents=True)
            except OSError as exc:
                LOGGER.error("%s: could not prepare %s: %s", chart_name, workdir, exc)
                report.skipped.append(
                    SkippedItem(source, f"could not prepare work directory: {exc}")
                )
                return report

            geometry_files: list[pathlib.Path] = []
            packaged_layers: list[str] = []
            feature_count = 0
            for layer in layers:
                try:
                    extract = self.extract_layer(source, layer)
                except errors.ExtractionFailure as exc:
                    LOGGER.error(
                        "%s: extraction of layer %s failed, skipping: %s",
                        source,
                        layer,
                        exc.reason,
                    )
                    report.skipped.append(SkippedItem(source, str(exc), layer))
                    continue
                if extract is None:
                    continue
                try:
                    geometry_files.append(self.write_layer(source, extract))
                except OSError as exc:
                    LOGGER.error(
                        "%s: could not write layer %s, skipping: %s",
                        source,
                        layer,
                        exc,
                    )
                    report.skipped.append(
                        SkippedItem(source, f"could not write layer file: {exc}", layer)
                    )
                    continue
                packaged_layers.append(layer)
                feature_count += extract.feature_count

            if not geometry_files:
                LOGGER.warning("%s: no features in any layer, not packaged", chart_name)
                report.skipped.append(SkippedItem(source, "no features extracted"))
                return report

            try:
                archive = self.package_archive(chart_name, geometry_files)
            except errors.PackagingFailure as exc:
                LOGGER.error("%s: packaging failed, skipping chart: %s", chart_name, exc.reason)
                report.skipped.append(SkippedItem(source, str(exc)))
                return report

            report.succeeded.append(
                ConvertedChart(
                    name=chart_name,
                    source=source,
                    archive=archive,
                    layers=tuple(packaged_layers),
                    feature_count=feature_count,
                )
            )
            return report
        finally:
            shutil.rmtree(workdir, ignore_errors=True)

    def convert_sources(self, sources: Sequence[pathlib.Path]) -> ConversionReport:
        """Convert several cells, in parallel when max_workers > 1.

        A chart name is owned by the first source that yields it; later
        sources with the same stem are skipped rather than overwriting its
        archive or sharing its work directory. Reports are merged in
        source order regardless of completion order.
        """
        report = ConversionReport()
        owners: dict[str, pathlib.Path] = {}
        unique: list[pathlib.Path] = []
        for source in sources:
            chart_name = chart_name_for(source)
            owner = owners.get(chart_name)
            if owner is None:
                owners[chart_name] = source
                unique.append(source)
                continue
            LOGGER.warning(
                "%s: chart name %s already taken by %s, skipping",
                source,
                chart_name,
                owner,
            )
            report.skipped.append(
                SkippedItem(source, f"duplicate chart name {chart_name} (already from {owner})")
            )
        sources = unique

        if self.max_workers == 1 or len(sources) <= 1:
            for source in sources:
                report.merge(self.convert_source(source))
            return report

        with futures.ThreadPoolExecutor(max_workers=self.max_workers) as pool:
            for partial in pool.map(self.convert_source, sources):
                report.merge(partial)
        return report

    def convert(self, input_dir: pathlib.Path) -> ConversionReport:
        """Discover and convert every cell under a directory.

        Raises:
            SourceDirectoryMissing: If input_dir does not exist.
        """
        sources = self.discover_sources(input_dir)
        report = self.convert_sources(sources)
        LOGGER.info(
            "Conversion finished: %d chart(s) packaged, %d item(s) skipped",
            len(report.succeeded),
            len(report.skipped),
        )
        return report
