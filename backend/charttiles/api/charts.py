"""Chart listing endpoint.

Describes every chart in the registry: its MBTiles metadata, how many
tiles it holds and which zoom levels actually contain tiles. Useful to
check what the server loaded and to set up map sources.

Example:
    List the loaded charts:
        >>> response = client.get("/charts")
        >>> response.json()
        [{"name": "US5MA1SK", "metadata": {"format": "pbf", ...},
          "tileCount": 4821, "zoomLevels": [0, 1, 2, ...]}]
"""

from typing import Any

import fastapi

from charttiles.api import tiles as api_tiles
from charttiles.archives import registry as chart_registry

router = fastapi.APIRouter(tags=["charts"])


@router.get("/charts")
def list_charts(
    registry: chart_registry.ChartRegistry = fastapi.Depends(api_tiles._get_registry),  # noqa: B008
) -> list[dict[str, Any]]:
    """List all loaded charts in registration order.

    Args:
        registry: Chart registry (injected via FastAPI Depends).

    Returns:
        One dictionary per chart with ``name``, ``metadata``, ``tileCount``
        and ``zoomLevels``.
    """
    return [
        {
            "name": summary.name,
            "metadata": dict(summary.metadata),
            "tileCount": summary.tile_count,
            "zoomLevels": list(summary.zoom_levels),
        }
        for summary in registry.summaries()
    ]
