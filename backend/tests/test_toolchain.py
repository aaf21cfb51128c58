"""Tests for the GDAL and tippecanoe command-line adapter.

The commands are never executed: commands.run_command is monkeypatched to
record the argument lists and to fake what the utilities write.
"""

from __future__ import annotations

import json
import pathlib

import pytest

from charttiles.archives import models
from charttiles.core import config
from charttiles.core import errors
from charttiles.services import toolchain
from charttiles.utils import commands

OGRINFO_LISTING = """\
INFO: Open of `US5MA1SK.000'
      using driver `S57' successful.
1: DSID (None)
2: DEPARE (Polygon)
3: SOUNDG (3D Multi Point)
4: M_QUAL
Warning 1: Unrecognised attribute
"""


def test_parse_layer_listing() -> None:
    assert toolchain.parse_layer_listing(OGRINFO_LISTING) == [
        "DSID",
        "DEPARE",
        "SOUNDG",
        "M_QUAL",
    ]


def test_parse_layer_listing_empty() -> None:
    assert toolchain.parse_layer_listing("") == []


def test_build_package_command_guessed_max_zoom() -> None:
    command = toolchain.build_package_command(
        "tippecanoe",
        pathlib.Path("out/alpha.mbtiles"),
        "alpha",
        "s57",
        models.ZoomRange(),
        [pathlib.Path("w/alpha_DEPARE.geojson"), pathlib.Path("w/alpha_LIGHTS.geojson")],
    )
    assert command == [
        "tippecanoe",
        "-o",
        str(pathlib.Path("out/alpha.mbtiles")),
        "--force",
        "-l",
        "s57",
        "-n",
        "alpha",
        "--drop-densest-as-needed",
        "-zg",
        str(pathlib.Path("w/alpha_DEPARE.geojson")),
        str(pathlib.Path("w/alpha_LIGHTS.geojson")),
    ]
    assert "--no-tile-compression" not in command


def test_build_package_command_explicit_zooms() -> None:
    command = toolchain.build_package_command(
        "tippecanoe",
        pathlib.Path("alpha.mbtiles"),
        "alpha",
        "charts",
        models.ZoomRange(2, 14),
        [],
    )
    assert command[-4:] == ["-Z", "2", "-z", "14"]
    assert "-zg" not in command
    assert command[command.index("-l") + 1] == "charts"


@pytest.fixture
def adapter() -> toolchain.GdalTippecanoeToolchain:
    return toolchain.GdalTippecanoeToolchain()


def test_from_settings_uses_configured_binaries() -> None:
    settings = config.Settings(
        ogrinfo_bin="/opt/gdal/bin/ogrinfo",
        ogr2ogr_bin="/opt/gdal/bin/ogr2ogr",
        tippecanoe_bin="/opt/tippecanoe",
        source_layer="charts",
    )
    adapter = toolchain.GdalTippecanoeToolchain.from_settings(settings)
    assert adapter.ogrinfo_bin == "/opt/gdal/bin/ogrinfo"
    assert adapter.ogr2ogr_bin == "/opt/gdal/bin/ogr2ogr"
    assert adapter.tippecanoe_bin == "/opt/tippecanoe"
    assert adapter.source_layer == "charts"


def test_list_layers(
    adapter: toolchain.GdalTippecanoeToolchain,
    monkeypatch: pytest.MonkeyPatch,
) -> None:
    calls: list[list[str]] = []

    def fake_run(command: list[str]) -> str:
        calls.append(command)
        return OGRINFO_LISTING

    monkeypatch.setattr(commands, "run_command", fake_run)
    layers = adapter.list_layers(pathlib.Path("US5MA1SK.000"))
    assert layers == ["DSID", "DEPARE", "SOUNDG", "M_QUAL"]
    assert calls == [["ogrinfo", "-ro", "-so", "US5MA1SK.000"]]


def test_list_layers_failure(
    adapter: toolchain.GdalTippecanoeToolchain,
    monkeypatch: pytest.MonkeyPatch,
) -> None:
    def fake_run(command: list[str]) -> str:
        raise commands.CommandError("Unable to open datasource", command, 1)

    monkeypatch.setattr(commands, "run_command", fake_run)
    with pytest.raises(errors.ExtractionFailure) as excinfo:
        adapter.list_layers(pathlib.Path("broken.000"))
    assert excinfo.value.layer is None
    assert "Unable to open datasource" in excinfo.value.reason


def test_extract_layer_loads_features_and_removes_raw_output(
    adapter: toolchain.GdalTippecanoeToolchain,
    monkeypatch: pytest.MonkeyPatch,
    tmp_path: pathlib.Path,
) -> None:
    collection = {
        "type": "FeatureCollection",
        "features": [
            {
                "type": "Feature",
                "geometry": {"type": "Point", "coordinates": [-70.9, 42.3, 4.1]},
                "properties": {"DEPTH": 4.1, "SCAMIN": 22000},
            }
        ],
    }
    calls: list[list[str]] = []

    def fake_run(command: list[str]) -> str:
        calls.append(command)
        pathlib.Path(command[7]).write_text(json.dumps(collection), encoding="utf-8")
        return ""

    monkeypatch.setattr(commands, "run_command", fake_run)
    features = adapter.extract_layer(pathlib.Path("US5MA1SK.000"), "SOUNDG", tmp_path)

    raw_path = tmp_path / "US5MA1SK_SOUNDG.raw.geojson"
    assert calls == [
        [
            "ogr2ogr",
            "-f",
            "GeoJSON",
            "-oo",
            "SPLIT_MULTIPOINT=ON",
            "-oo",
            "ADD_SOUNDG_DEPTH=ON",
            str(raw_path),
            "US5MA1SK.000",
            "SOUNDG",
        ]
    ]
    assert len(features) == 1
    assert features[0].attributes.SCAMIN == 22000
    assert features[0].attributes.extra == {"DEPTH": 4.1}
    assert not raw_path.exists()


def test_extract_layer_with_no_features(
    adapter: toolchain.GdalTippecanoeToolchain,
    monkeypatch: pytest.MonkeyPatch,
    tmp_path: pathlib.Path,
) -> None:
    def fake_run(command: list[str]) -> str:
        pathlib.Path(command[7]).write_text(
            '{"type": "FeatureCollection", "features": []}', encoding="utf-8"
        )
        return ""

    monkeypatch.setattr(commands, "run_command", fake_run)
    assert adapter.extract_layer(pathlib.Path("a.000"), "WRECKS", tmp_path) == []
    assert list(tmp_path.iterdir()) == []


def test_extract_layer_command_failure(
    adapter: toolchain.GdalTippecanoeToolchain,
    monkeypatch: pytest.MonkeyPatch,
    tmp_path: pathlib.Path,
) -> None:
    def fake_run(command: list[str]) -> str:
        raise commands.CommandError("ERROR 1: bad record", command, 1)

    monkeypatch.setattr(commands, "run_command", fake_run)
    with pytest.raises(errors.ExtractionFailure) as excinfo:
        adapter.extract_layer(pathlib.Path("a.000"), "M_QUAL", tmp_path)
    assert excinfo.value.layer == "M_QUAL"
    assert "bad record" in str(excinfo.value)


def test_extract_layer_unreadable_output(
    adapter: toolchain.GdalTippecanoeToolchain,
    monkeypatch: pytest.MonkeyPatch,
    tmp_path: pathlib.Path,
) -> None:
    def fake_run(command: list[str]) -> str:
        pathlib.Path(command[7]).write_text("{truncated", encoding="utf-8")
        return ""

    monkeypatch.setattr(commands, "run_command", fake_run)
    with pytest.raises(errors.ExtractionFailure, match="unreadable GeoJSON output"):
        adapter.extract_layer(pathlib.Path("a.000"), "DEPARE", tmp_path)
    assert list(tmp_path.iterdir()) == []


def test_package_chart(
    adapter: toolchain.GdalTippecanoeToolchain,
    monkeypatch: pytest.MonkeyPatch,
    tmp_path: pathlib.Path,
) -> None:
    calls: list[list[str]] = []

    def fake_run(command: list[str]) -> str:
        calls.append(command)
        return ""

    monkeypatch.setattr(commands, "run_command", fake_run)
    destination = tmp_path / "alpha.mbtiles"
    result = adapter.package_chart(
        "alpha",
        [tmp_path / "alpha_DEPARE.geojson"],
        models.ZoomRange(max_zoom=12),
        destination,
    )
    assert result == destination
    assert calls[0][:3] == ["tippecanoe", "-o", str(destination)]
    assert calls[0][-3:] == ["-z", "12", str(tmp_path / "alpha_DEPARE.geojson")]


def test_package_chart_failure(
    adapter: toolchain.GdalTippecanoeToolchain,
    monkeypatch: pytest.MonkeyPatch,
    tmp_path: pathlib.Path,
) -> None:
    def fake_run(command: list[str]) -> str:
        raise commands.CommandError("Executable not found: tippecanoe", command)

    monkeypatch.setattr(commands, "run_command", fake_run)
    with pytest.raises(errors.PackagingFailure) as excinfo:
        adapter.package_chart("alpha", [], models.ZoomRange(), tmp_path / "alpha.mbtiles")
    assert excinfo.value.chart == "alpha"
    assert "Executable not found" in excinfo.value.reason


@pytest.mark.parametrize(
    "payload",
    [
        '{"type": "FeatureCollection", "features": [1]}',
        '{"type": "FeatureCollection", "features": [{"properties": "OBJNAM"}]}',
        "[]",
    ],
)
def test_extract_layer_malformed_features(
    adapter: toolchain.GdalTippecanoeToolchain,
    monkeypatch: pytest.MonkeyPatch,
    tmp_path: pathlib.Path,
    payload: str,
) -> None:
    def fake_run(command: list[str]) -> str:
        pathlib.Path(command[7]).write_text(payload, encoding="utf-8")
        return ""

    monkeypatch.setattr(commands, "run_command", fake_run)
    with pytest.raises(errors.ExtractionFailure, match="malformed GeoJSON feature") as excinfo:
        adapter.extract_layer(pathlib.Path("a.000"), "DEPARE", tmp_path)
    assert excinfo.value.layer == "DEPARE"
    assert list(tmp_path.iterdir()) == []
