"""Read-only access to a single MBTiles chart archive.

An MBTiles archive is a SQLite database with a ``metadata`` table of
string key/value pairs and a ``tiles`` table (or view) keyed by
``zoom_level``, ``tile_column`` and ``tile_row``. Rows are stored in the
TMS convention; callers are expected to convert slippy rows before calling
get_tile().

The archive is validated when it is opened. Metadata, tile count and zoom
levels never change for the lifetime of the handle, so they are read once;
tile lookups go to SQLite every time.

Example:
    Open an archive and read one tile:
        >>> from charttiles.archives.mbtiles import MBTilesArchive
        >>> with MBTilesArchive.open(Path("dist/mbtiles/US5MA1SK.mbtiles")) as archive:
        ...     archive.get_tile_count()
        ...     archive.get_tile(0, 0, 0)
"""

from __future__ import annotations

import sqlite3
import threading
from typing import TYPE_CHECKING

from charttiles.core import errors

if TYPE_CHECKING:
    import pathlib
    import types

_VALIDATION_QUERIES = (
    "SELECT name, value FROM metadata LIMIT 0",
    "SELECT zoom_level, tile_column, tile_row, tile_data FROM tiles LIMIT 0",
)


def _connect(path: pathlib.Path) -> sqlite3.Connection:
    """Open a read-only SQLite connection shareable between threads."""
    uri = f"{path.resolve().as_uri()}?mode=ro"
    return sqlite3.connect(uri, uri=True, check_same_thread=False)


def _list_tables(conn: sqlite3.Connection) -> list[str]:
    """Return table and view names, or nothing if the file is unreadable."""
    try:
        rows = conn.execute(
            "SELECT name FROM sqlite_master "
            "WHERE type IN ('table', 'view') ORDER BY name"
        ).fetchall()
    except sqlite3.Error:
        return []
    return [str(row[0]) for row in rows]


class MBTilesArchive:
    """An opened, validated MBTiles archive.

    Instances are created with open(). All read methods are safe to call
    from concurrent request threads; SQLite access is serialised per
    archive.
    """

    def __init__(
        self,
        path: pathlib.Path,
        conn: sqlite3.Connection,
        metadata: dict[str, str],
        tile_count: int,
        zoom_levels: list[int],
    ) -> None:
        self.path = path
        self._conn = conn
        self._lock = threading.Lock()
        self._metadata = metadata
        self._tile_count = tile_count
        self._zoom_levels = zoom_levels

    @classmethod
    def open(cls, path: pathlib.Path) -> MBTilesArchive:
        """Open and validate an archive.

        Args:
            path: Location of the ``.mbtiles`` file.

        Returns:
            A ready-to-query archive.

        Raises:
            ArchiveInvalid: If the file is not a SQLite database or lacks the
                ``metadata``/``tiles`` schema. The handle is closed first.
            FileNotFoundError: If the file does not exist.
        """
        if not path.is_file():
            raise FileNotFoundError(path)

        conn = _connect(path)
        try:
            for query in _VALIDATION_QUERIES:
                conn.execute(query)
            metadata = {
                str(name): "" if value is None else str(value)
                for name, value in conn.execute(
                    "SELECT name, value FROM metadata"
                )
            }
            (tile_count,) = conn.execute("SELECT COUNT(*) FROM tiles").fetchone()
            zoom_levels = [
                int(row[0])
                for row in conn.execute(
                    "SELECT DISTINCT zoom_level FROM tiles ORDER BY zoom_level"
                )
            ]
        except sqlite3.Error as exc:
            tables = _list_tables(conn)
            conn.close()
            raise errors.ArchiveInvalid(path, tables, str(exc)) from exc

        return cls(path, conn, metadata, int(tile_count), zoom_levels)

    @property
    def name(self) -> str:
        return self.path.stem

    def get_metadata(self) -> dict[str, str]:
        """Return a copy of the archive's metadata key/value pairs."""
        return dict(self._metadata)

    def get_tile_count(self) -> int:
        return self._tile_count

    def get_zoom_levels(self) -> list[int]:
        """Return the distinct zoom levels present, ascending."""
        return list(self._zoom_levels)

    def get_tile(self, zoom: int, column: int, row: int) -> bytes | None:
        """Fetch the payload stored at an archive-convention coordinate.

        Args:
            zoom: Zoom level.
            column: Tile column.
            row: Tile row in the archive (TMS) convention.

        Returns:
            The raw tile payload, or None if the archive has no such tile.

        Raises:
            sqlite3.Error: If the lookup itself fails.
        """
        with self._lock:
            result = self._conn.execute(
                "SELECT tile_data FROM tiles "
                "WHERE zoom_level = ? AND tile_column = ? AND tile_row = ?",
                (zoom, column, row),
            ).fetchone()
        if result is None or result[0] is None:
            return None
        return bytes(result[0])

    def close(self) -> None:
        with self._lock:
            self._conn.close()

    def __enter__(self) -> MBTilesArchive:
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: types.TracebackType | None,
    ) -> None:
        self.close()

    def __repr__(self) -> str:
        return f"MBTilesArchive({str(self.path)!r})"
