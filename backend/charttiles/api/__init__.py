"""API router subpackage for the chart tile server.

Each module exposes its own APIRouter for composition in the application
factory.

Submodules:
    - tiles: Vector tile endpoints, explicit-chart and default-chart forms.
    - charts: Listing of loaded charts with metadata and zoom levels.
"""
