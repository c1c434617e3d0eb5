from __future__ import annotations

from pathlib import Path

import pytest

from shared.config import SonarConfig
from shared.errors import ConfigError


def test_defaults() -> None:
    config = SonarConfig()
    assert config.sonar.rssi_tolerance_db == 10
    assert config.sonar.family_vendor == "Apple"
    assert config.global_settings.log_level == "WARNING"


def test_load_reads_sections_and_ignores_unknown_keys(tmp_path: Path) -> None:
    path = tmp_path / "sonar.toml"
    path.write_text(
        '[global]\nlog_level = "DEBUG"\nfuture_key = 1\n\n'
        '[sonar]\nscan_minutes = 2.5\nrssi_tolerance_db = 8\nwatch = true\n',
        encoding="utf-8",
    )

    config = SonarConfig.load(path)

    assert config.global_settings.log_level == "DEBUG"
    assert config.sonar.scan_minutes == 2.5
    assert config.sonar.rssi_tolerance_db == 8
    assert config.sonar.watch is True
    assert config.to_dict()["sonar"]["family_vendor"] == "Apple"


def test_explicit_missing_file_raises(tmp_path: Path) -> None:
    with pytest.raises(FileNotFoundError):
        SonarConfig.load(tmp_path / "missing.toml")


def test_invalid_toml_raises_config_error(tmp_path: Path) -> None:
    path = tmp_path / "sonar.toml"
    path.write_text("[sonar\n", encoding="utf-8")

    with pytest.raises(ConfigError):
        SonarConfig.load(path)


@pytest.mark.parametrize(
    "body",
    [
        "[sonar]\nrssi_tolerance_db = -1\n",
        "[sonar]\nrssi_tolerance_db = \"ten\"\n",
        "[sonar]\nscan_minutes = -2\n",
        "[sonar]\nfamily_vendor = \"\"\n",
        "sonar = 3\n",
    ],
)
def test_invalid_values_rejected(tmp_path: Path, body: str) -> None:
    path = tmp_path / "sonar.toml"
    path.write_text(body, encoding="utf-8")

    with pytest.raises(ConfigError):
        SonarConfig.load(path)
