"""Chart archive access: data models, the MBTiles loader and the registry.

This package holds everything that reads packaged charts from disk. The
MBTiles loader opens and validates one archive; the registry scans a
directory of them at startup and exposes an immutable, name-keyed index
consumed by the tile endpoints.

Example:
    Build the registry used by the application factory:
        >>> from charttiles.archives.registry import ChartRegistry
        >>> registry = ChartRegistry.from_settings(settings)
"""
