"""Package initializer for the nautical chart tile pipeline and server.

This package turns IHO S-57 electronic navigational chart cells into
vector tiles and serves them to web map clients.

- Converts each S-57 cell into its own MBTiles archive by orchestrating
  GDAL (ogrinfo/ogr2ogr) and tippecanoe, tagging every feature with the
  layer and chart it came from
- Loads a directory of archives at startup into an immutable registry,
  skipping archives that fail validation
- Serves tiles over FastAPI, translating slippy-map rows into the TMS rows
  MBTiles stores, with a default-chart route for single-archive clients

See DESIGN.md and module sub-docstrings for details on architecture and usage.
"""
