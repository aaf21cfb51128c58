"""Startup-time index of every servable chart archive.

The registry scans a directory for ``*.mbtiles`` files, opens each one via
MBTilesArchive and keeps the ones that validate. A broken archive is logged
and left out; it never stops the rest from loading. When the directory does
not exist at all, a single legacy archive at a fixed path is tried instead.

The registry is built once, before the server accepts requests, and is
immutable afterwards. It is passed explicitly to the application factory
rather than looked up from module state.

Example:
    Build a registry and look up a chart:
        >>> from charttiles.archives.registry import ChartRegistry
        >>> registry = ChartRegistry.load(
        ...     Path("dist/mbtiles"), legacy_archive=Path("dist/s57.mbtiles")
        ... )
        >>> registry.names()
        ['US5MA1SK', 'US5MA1SM']
        >>> registry.get("US5MA1SK").summary.tile_count
        4821
"""

from __future__ import annotations

import dataclasses
import sqlite3
import types
from typing import TYPE_CHECKING

from charttiles.archives import mbtiles
from charttiles.archives import models
from charttiles.core import errors
from charttiles.core import logging_setup

if TYPE_CHECKING:
    import pathlib
    from collections.abc import Iterable, Iterator, Mapping

    from charttiles.core import config

LOGGER = logging_setup.get_logger(__name__)

ARCHIVE_SUFFIX = ".mbtiles"


@dataclasses.dataclass(frozen=True)
class ChartEntry:
    """An opened archive together with its summary."""

    archive: mbtiles.MBTilesArchive
    summary: models.ChartSummary

    @property
    def name(self) -> str:
        return self.summary.name


def _summarize(archive: mbtiles.MBTilesArchive) -> models.ChartSummary:
    return models.ChartSummary(
        name=archive.name,
        path=archive.path,
        tile_count=archive.get_tile_count(),
        zoom_levels=tuple(archive.get_zoom_levels()),
        metadata=archive.get_metadata(),
    )


def _open_entry(path: pathlib.Path) -> ChartEntry | None:
    """Open one archive, returning None (and logging) if it is unusable."""
    LOGGER.info("Loading chart archive %s", path)
    try:
        archive = mbtiles.MBTilesArchive.open(path)
    except errors.ArchiveInvalid as exc:
        LOGGER.error(
            "Skipping chart %s: %s (available tables: %s)",
            path.stem,
            exc.reason,
            ", ".join(exc.tables) or "none",
        )
        return None
    except (OSError, sqlite3.Error) as exc:
        LOGGER.error("Skipping chart %s: failed to open %s: %s", path.stem, path, exc)
        return None

    entry = ChartEntry(archive=archive, summary=_summarize(archive))
    LOGGER.info(
        "Loaded chart %s: %d tiles, zoom levels %s",
        entry.name,
        entry.summary.tile_count,
        list(entry.summary.zoom_levels) or "none",
    )
    return entry


def discover_archives(
    archive_dir: pathlib.Path,
    legacy_archive: pathlib.Path | None = None,
) -> list[pathlib.Path]:
    """List the archive files a registry should try to load.

    Args:
        archive_dir: Directory holding one ``.mbtiles`` file per chart.
        legacy_archive: Single archive used only when archive_dir is absent.

    Returns:
        Archive paths sorted by file name, the legacy archive alone, or an
        empty list.
    """
    if archive_dir.is_dir():
        archives = sorted(
            (
                path
                for path in archive_dir.iterdir()
                if path.is_file() and path.suffix.lower() == ARCHIVE_SUFFIX
            ),
            key=lambda path: path.name,
        )
        if not archives:
            LOGGER.warning("No %s files found in %s", ARCHIVE_SUFFIX, archive_dir)
        return archives

    LOGGER.warning(
        "Archive directory %s does not exist, falling back to single-archive mode",
        archive_dir,
    )
    if legacy_archive is not None and legacy_archive.is_file():
        return [legacy_archive]

    LOGGER.warning("No chart archives found")
    return []


class ChartRegistry:
    """Immutable mapping from chart name to an opened archive.

    Iteration and names() follow registration order, which is the order
    archives were discovered in; first() is the chart used by requests
    that do not name one.
    """

    def __init__(self, entries: Iterable[ChartEntry] = ()) -> None:
        charts: dict[str, ChartEntry] = {}
        for entry in entries:
            if entry.name in charts:
                LOGGER.warning(
                    "Duplicate chart name %s from %s ignored",
                    entry.name,
                    entry.summary.path,
                )
                continue
            charts[entry.name] = entry
        self._charts: Mapping[str, ChartEntry] = types.MappingProxyType(charts)

    @classmethod
    def load(
        cls,
        archive_dir: pathlib.Path,
        legacy_archive: pathlib.Path | None = None,
    ) -> ChartRegistry:
        """Scan, open and validate archives, skipping the broken ones."""
        entries = [
            entry
            for entry in map(
                _open_entry, discover_archives(archive_dir, legacy_archive)
            )
            if entry is not None
        ]
        registry = cls(entries)
        LOGGER.info("Loaded %d chart archive(s)", len(registry))
        return registry

    @classmethod
    def from_settings(cls, settings: config.Settings) -> ChartRegistry:
        return cls.load(settings.archive_dir, settings.legacy_archive_path)

    @property
    def charts(self) -> Mapping[str, ChartEntry]:
        return self._charts

    def names(self) -> list[str]:
        return list(self._charts)

    def first(self) -> ChartEntry | None:
        """Return the first registered chart, or None when empty."""
        return next(iter(self._charts.values()), None)

    def get(self, name: str) -> ChartEntry:
        """Look up a chart by name.

        Raises:
            ChartNotFound: If no chart with that name is registered.
        """
        try:
            return self._charts[name]
        except KeyError:
            raise errors.ChartNotFound(name) from None

    def summaries(self) -> list[models.ChartSummary]:
        return [entry.summary for entry in self._charts.values()]

    def close(self) -> None:
        """Close every archive handle."""
        for entry in self._charts.values():
            entry.archive.close()

    def __len__(self) -> int:
        return len(self._charts)

    def __iter__(self) -> Iterator[ChartEntry]:
        return iter(self._charts.values())

    def __contains__(self, name: object) -> bool:
        return name in self._charts
