from __future__ import annotations

import json
from pathlib import Path

import pytest
from click.testing import CliRunner

from shared.errors import CorrelationConsistencyError
from sonar.cli import cli

CAPTURE = [
    {"id": "phone", "rssi": -60, "name": "Kim's Phone", "manufacturer_data": "4c000c00"},
    {"id": "shadow", "rssi": -63, "manufacturer_data": "4c001200"},
    {"id": "shadow", "rssi": -58, "manufacturer_data": "4c001200"},
    {"id": "mac", "rssi": -70, "name": "Kim's Mac", "manufacturer_data": "4c000a00"},
    {"id": "buds", "rssi": -68, "manufacturer_data": "4c000700"},
    {"id": "tile", "rssi": -85, "manufacturer_data": "cdab01"},
]


@pytest.fixture
def capture(tmp_path: Path) -> Path:
    path = tmp_path / "capture.jsonl"
    path.write_text("\n".join(json.dumps(line) for line in CAPTURE) + "\n", encoding="utf-8")
    return path


def test_replay_end_to_end(tmp_path: Path, capture: Path) -> None:
    out = tmp_path / "report.json"
    result = CliRunner().invoke(cli, ["replay", str(capture), "--output", str(out)], obj={})

    assert result.exit_code == 0, result.output
    assert "Kim's Phone" in result.output
    data = json.loads(out.read_text(encoding="utf-8"))
    groups = {tuple(g["identifiers"]): g for g in data["family_groups"]}
    assert set(groups) == {("phone", "shadow"), ("mac",), ("buds",)}
    assert groups[("buds",)]["label"] == "AirPods"
    assert data["summary"]["detections"] == 6
    assert data["unknown_vendor_ids"] == ["abcd"]


def test_replay_quiet_prints_nothing(capture: Path) -> None:
    result = CliRunner().invoke(cli, ["--quiet", "replay", str(capture)], obj={})

    assert result.exit_code == 0
    assert "Kim's Phone" not in result.output


def test_missing_config_exits_1(capture: Path, tmp_path: Path) -> None:
    result = CliRunner().invoke(
        cli, ["--config", str(tmp_path / "nope.toml"), "replay", str(capture)], obj={}
    )
    assert result.exit_code == 1


def test_bad_catalog_path_exits_1(capture: Path, tmp_path: Path) -> None:
    config = tmp_path / "sonar.toml"
    config.write_text(f'[sonar]\ndevices_path = "{(tmp_path / "none.json").as_posix()}"\n')

    result = CliRunner().invoke(cli, ["--config", str(config), "replay", str(capture)], obj={})

    assert result.exit_code == 1


def test_consistency_fault_exits_2(capture: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    def _broken(self, records):
        raise CorrelationConsistencyError("broken partition", missing=["x"])

    monkeypatch.setattr("sonar.analyzers.correlation.IdentityCorrelator.correlate", _broken)

    result = CliRunner().invoke(cli, ["--quiet", "replay", str(capture)], obj={})

    assert result.exit_code == 2


def test_vendors_merge(tmp_path: Path) -> None:
    source = tmp_path / "company_ids.json"
    target = tmp_path / "manufacturers.json"
    source.write_text(json.dumps([{"code": 76, "name": "Apple, Inc."}]), encoding="utf-8")
    target.write_text(json.dumps({"0075": "Samsung"}), encoding="utf-8")

    result = CliRunner().invoke(
        cli, ["vendors", "merge", str(source), "--target", str(target)], obj={}
    )

    assert result.exit_code == 0, result.output
    assert json.loads(target.read_text(encoding="utf-8")) == {
        "004c": "Apple, Inc.",
        "0075": "Samsung",
    }
    assert "1 new" in result.output
