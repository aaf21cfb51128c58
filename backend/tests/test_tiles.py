"""Endpoint tests for vector tile serving.

This module includes tests for:
    - The explicit ``/{chart}/{z}/{x}/{y}.pbf`` form, including slippy to
      TMS row conversion and response framing headers,
    - The default-chart ``/{z}/{x}/{y}.pbf`` form, which must behave exactly
      like an explicit request for the first registered chart, errors
      included,
    - Mapping of missing tiles, unknown charts, bad coordinates and storage
      failures onto distinct HTTP outcomes.

Registries are built from real MBTiles files in tmp_path and injected into
the application factory.

See Also:
    - backend/charttiles/api/tiles.py for the endpoints,
    - backend/charttiles/services/tiles.py for the lookup engine.
"""

from __future__ import annotations

import sqlite3
from typing import TYPE_CHECKING

import pytest
from fastapi import testclient

from charttiles import main
from charttiles.archives import registry as chart_registry
from charttiles.core import config

if TYPE_CHECKING:
    import pathlib
    from collections.abc import Callable, Iterator


@pytest.fixture
def registry(
    tmp_path: pathlib.Path,
    make_archive: Callable[..., pathlib.Path],
    make_tile: Callable[[str], bytes],
) -> Iterator[chart_registry.ChartRegistry]:
    archive_dir = tmp_path / "mbtiles"
    make_archive(
        archive_dir / "alpha.mbtiles",
        {(0, 0, 0): make_tile("alpha-0"), (3, 5, 7): make_tile("alpha-3-5-0")},
    )
    make_archive(
        archive_dir / "beta.mbtiles",
        {(0, 0, 0): make_tile("beta-0"), (3, 5, 7): make_tile("beta-3-5-0")},
    )
    loaded = chart_registry.ChartRegistry.load(archive_dir)
    yield loaded
    loaded.close()


@pytest.fixture
def client(registry: chart_registry.ChartRegistry) -> testclient.TestClient:
    settings = config.Settings(tile_cache_max_age=3600)
    return testclient.TestClient(main.create_app(settings, registry=registry))


def test_explicit_chart_tile(client: testclient.TestClient) -> None:
    """Slippy row 0 at zoom 3 is served from archive row 7."""
    response = client.get("/alpha/3/5/0.pbf")
    assert response.status_code == 200
    assert response.headers["content-type"] == "application/x-protobuf"
    assert response.headers["content-encoding"] == "gzip"
    assert response.headers["cache-control"] == "public, max-age=3600"


def test_gzip_payload_decodes_to_stored_tile(
    registry: chart_registry.ChartRegistry,
) -> None:
    """Stored gzip bytes are sent as-is and flagged with Content-Encoding."""
    app = main.create_app(config.Settings(), registry=registry)
    client = testclient.TestClient(app)
    response = client.get("/beta/3/5/0.pbf", headers={"Accept-Encoding": "identity"})
    assert response.status_code == 200
    assert response.headers["content-encoding"] == "gzip"
    assert response.content == b"beta-3-5-0"


def test_mvt_extension_is_accepted(client: testclient.TestClient) -> None:
    assert client.get("/alpha/0/0/0.mvt").status_code == 200


def test_unsupported_extension(client: testclient.TestClient) -> None:
    response = client.get("/alpha/0/0/0.png")
    assert response.status_code == 404
    assert response.json()["detail"] == "Unsupported tile format"


def test_missing_tile_returns_empty_404(client: testclient.TestClient) -> None:
    """Slippy row 7 maps to archive row 0, which holds nothing."""
    response = client.get("/alpha/3/5/7.pbf")
    assert response.status_code == 404
    assert response.content == b""


def test_unknown_chart_is_distinguishable_from_missing_tile(
    client: testclient.TestClient,
) -> None:
    response = client.get("/gamma/3/5/0.pbf")
    assert response.status_code == 404
    assert response.json() == {"detail": "Chart 'gamma' not found"}


@pytest.mark.parametrize("path", ["/alpha/a/0/0.pbf", "/alpha/0/0/-1.pbf", "/x/0/0.pbf"])
def test_malformed_coordinates_are_client_errors(
    client: testclient.TestClient,
    path: str,
) -> None:
    assert client.get(path).status_code == 422


def test_coordinate_outside_grid_is_bad_request(client: testclient.TestClient) -> None:
    response = client.get("/alpha/3/8/0.pbf")
    assert response.status_code == 400
    assert "out of range" in response.json()["detail"]


def test_default_chart_matches_first_chart(client: testclient.TestClient) -> None:
    """Legacy form output is byte-identical to an explicit alpha request."""
    legacy = client.get("/3/5/0.pbf", headers={"Accept-Encoding": "identity"})
    explicit = client.get("/alpha/3/5/0.pbf", headers={"Accept-Encoding": "identity"})
    assert legacy.status_code == explicit.status_code == 200
    assert legacy.content == explicit.content
    assert legacy.headers == explicit.headers


@pytest.mark.parametrize("suffix", ["3/5/7.pbf", "3/8/0.pbf", "0/0/0.png", "3/5/-1.pbf"])
def test_default_chart_errors_match_explicit_form(
    client: testclient.TestClient,
    suffix: str,
) -> None:
    """Error mapping is identical for both address forms."""
    legacy = client.get(f"/{suffix}")
    explicit = client.get(f"/alpha/{suffix}")
    assert legacy.status_code == explicit.status_code
    assert legacy.content == explicit.content


def test_default_chart_with_empty_registry() -> None:
    app = main.create_app(config.Settings(), registry=chart_registry.ChartRegistry())
    client = testclient.TestClient(app)
    response = client.get("/0/0/0.pbf")
    assert response.status_code == 404
    assert response.json() == {"detail": "No charts available"}


def test_storage_error_returns_500(
    registry: chart_registry.ChartRegistry,
    client: testclient.TestClient,
    monkeypatch: pytest.MonkeyPatch,
) -> None:
    archive = registry.get("alpha").archive

    def broken_get_tile(zoom: int, column: int, row: int) -> bytes | None:
        raise sqlite3.DatabaseError("database disk image is malformed")

    monkeypatch.setattr(archive, "get_tile", broken_get_tile)
    response = client.get("/alpha/0/0/0.pbf")
    assert response.status_code == 500
    assert response.json() == {"detail": "Storage error"}


@pytest.mark.parametrize("path", ["/alpha/64/0/0.pbf", "/64/0/0.pbf", "/alpha/31/0/0.pbf"])
def test_zoom_above_maximum_is_bad_request(client: testclient.TestClient, path: str) -> None:
    """Zoom levels whose rows cannot be stored are rejected, not crashed on."""
    response = client.get(path)
    assert response.status_code == 400
    assert "out of range" in response.json()["detail"]


def test_default_chart_with_empty_registry_checks_coordinate_first() -> None:
    """Both address forms reject an out-of-grid coordinate before the chart."""
    app = main.create_app(config.Settings(), registry=chart_registry.ChartRegistry())
    client = testclient.TestClient(app)
    legacy = client.get("/0/5/5.pbf")
    explicit = client.get("/alpha/0/5/5.pbf")
    assert legacy.status_code == explicit.status_code == 400
    assert legacy.json() == explicit.json()
