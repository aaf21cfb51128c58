"""Application settings and configuration management.

This module provides Pydantic-based settings management that loads
configuration from environment variables or a .env file. Settings cover
both halves of the system: where the tile server finds its MBTiles
archives, and where the offline conversion pipeline reads S-57 source
cells, writes intermediate GeoJSON and places finished archives.

Example:
    Settings can be accessed via the cached get_settings() function:
        >>> from charttiles.core.config import get_settings
        >>> settings = get_settings()
        >>> print(settings.archive_dir)

    Environment variables can override defaults:
        >>> ARCHIVE_DIR=/srv/charts/mbtiles
        >>> SOURCE_DIR=/data/enc
        >>> MAX_ZOOM=14
"""

import functools
import pathlib

import pydantic
import pydantic_settings


class Settings(pydantic_settings.BaseSettings):
    """Runtime configuration pulled from environment variables or defaults.

    All settings can be overridden via environment variables or .env file.
    Conversion directories are created on demand via ensure_directories().

    Attributes:
        archive_dir: Directory scanned for ``*.mbtiles`` chart archives.
        legacy_archive_path: Single archive served when archive_dir is absent.
        source_dir: Directory holding raw S-57 cells (``.000``/``.s57``).
        output_dir: Directory the conversion pipeline writes archives to.
        work_dir: Scratch directory for transient per-layer GeoJSON.
        source_layer: Name of the single vector layer inside each archive.
        min_zoom: Lowest zoom packaged, None lets tippecanoe decide.
        max_zoom: Highest zoom packaged, None lets tippecanoe guess (-zg).
        conversion_workers: Number of charts converted concurrently.
        recursive_sources: Whether source discovery descends into subfolders.
        ogrinfo_bin: Executable used to list layers of a source cell.
        ogr2ogr_bin: Executable used to extract one layer to GeoJSON.
        tippecanoe_bin: Executable used to package GeoJSON into MBTiles.
        tile_cache_max_age: Seconds clients may cache a served tile.
        allow_origins: List of allowed CORS origins (["*"] allows all).
        require_charts: Refuse to start the server with an empty registry.
        host: Interface the tile server binds to.
        port: Port the tile server listens on.
        log_level: Root logging level.
        log_json: Emit structured JSON log lines instead of plain text.

    Example:
        Create settings with custom values:
            >>> settings = Settings(
            ...     source_dir=Path("/data/enc"),
            ...     output_dir=Path("/srv/charts/mbtiles"),
            ...     max_zoom=14,
            ... )
            >>> settings.ensure_directories()
    """

    archive_dir: pathlib.Path = pathlib.Path("dist/mbtiles")
    legacy_archive_path: pathlib.Path = pathlib.Path("dist/s57.mbtiles")
    source_dir: pathlib.Path = pathlib.Path("data/s57")
    output_dir: pathlib.Path = pathlib.Path("dist/mbtiles")
    work_dir: pathlib.Path = pathlib.Path("dist/geojson")
    source_layer: str = "s57"
    min_zoom: pydantic.NonNegativeInt | None = None
    max_zoom: pydantic.NonNegativeInt | None = None
    conversion_workers: pydantic.PositiveInt = 1
    recursive_sources: bool = False
    ogrinfo_bin: str = "ogrinfo"
    ogr2ogr_bin: str = "ogr2ogr"
    tippecanoe_bin: str = "tippecanoe"
    tile_cache_max_age: pydantic.NonNegativeInt = 86400
    allow_origins: list[str] = ["*"]
    require_charts: bool = False
    host: str = "0.0.0.0"
    port: int = 8080
    log_level: str = "INFO"
    log_json: bool = False

    model_config = pydantic_settings.SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
    )

    def ensure_directories(self) -> None:
        """Create the conversion output and working directories.

        The tile server only reads, so archive_dir is never created here:
        its absence is what triggers the legacy single-archive fallback.
        """
        self.output_dir.mkdir(parents=True, exist_ok=True)
        self.work_dir.mkdir(parents=True, exist_ok=True)


@functools.lru_cache
def get_settings() -> Settings:
    """Get cached settings instance.

    Settings are loaded from environment variables or .env file and cached
    for the lifetime of the process. Subsequent calls return the same
    cached instance.

    Returns:
        Settings instance with all configuration values populated.

    Example:
        The settings are cached, so multiple calls return the same instance:
            >>> settings1 = get_settings()
            >>> settings2 = get_settings()
            >>> assert settings1 is settings2  # Same instance
    """
    return Settings()
