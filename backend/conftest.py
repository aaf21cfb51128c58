"""Pytest configuration and shared fixtures for the chart tile tests.

Exposes the backend directory for ``charttiles`` imports and provides a
factory that writes small but real MBTiles archives with sqlite3.
"""

from __future__ import annotations

import gzip
import pathlib
import sqlite3
import sys
from collections.abc import Callable, Mapping

import pytest

BACKEND_ROOT = pathlib.Path(__file__).resolve().parent

if str(BACKEND_ROOT) not in sys.path:
    sys.path.insert(0, str(BACKEND_ROOT))

TileKey = tuple[int, int, int]
MakeArchive = Callable[..., pathlib.Path]


def write_mbtiles(
    path: pathlib.Path,
    tiles: Mapping[TileKey, bytes],
    metadata: Mapping[str, str] | None = None,
) -> pathlib.Path:
    """Write an MBTiles archive; tile keys are (zoom, column, tms_row)."""
    path.parent.mkdir(parents=True, exist_ok=True)
    path.unlink(missing_ok=True)
    conn = sqlite3.connect(path)
    try:
        conn.execute("CREATE TABLE metadata (name TEXT, value TEXT)")
        conn.execute(
            "CREATE TABLE tiles (zoom_level INTEGER, tile_column INTEGER, "
            "tile_row INTEGER, tile_data BLOB)"
        )
        conn.executemany(
            "INSERT INTO metadata (name, value) VALUES (?, ?)",
            list((metadata or {"name": path.stem, "format": "pbf"}).items()),
        )
        conn.executemany(
            "INSERT INTO tiles VALUES (?, ?, ?, ?)",
            [(z, x, row, data) for (z, x, row), data in tiles.items()],
        )
        conn.commit()
    finally:
        conn.close()
    return path


def gzip_tile(label: str) -> bytes:
    """Return a deterministic gzip-framed payload standing in for an MVT."""
    return gzip.compress(label.encode("utf-8"), mtime=0)


@pytest.fixture
def make_archive() -> MakeArchive:
    """Factory fixture writing an MBTiles archive to a given path."""
    return write_mbtiles


@pytest.fixture
def make_tile() -> Callable[[str], bytes]:
    """Factory fixture returning gzip-framed stand-in tile payloads."""
    return gzip_tile
