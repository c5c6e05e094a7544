from pathlib import Path

import pytest
import yaml

from posterforge import config as config_module
from posterforge.config import DEFAULT_CONFIG, get_config_path, load_config, write_default_config
from posterforge.errors import InvalidInputError


def test_missing_config_returns_defaults(tmp_path: Path) -> None:
    cfg = load_config(tmp_path / "absent.yaml")
    assert cfg == DEFAULT_CONFIG
    assert cfg is not DEFAULT_CONFIG


def test_user_values_are_deep_merged(tmp_path: Path) -> None:
    path = tmp_path / "config.yaml"
    path.write_text(
        yaml.safe_dump({"output_format": "jpeg", "fonts": {"Display": "/fonts/display.ttf"}}),
        encoding="utf-8",
    )

    cfg = load_config(path)

    assert cfg["output_format"] == "jpeg"
    assert cfg["fonts"] == {"Display": "/fonts/display.ttf"}
    assert cfg["quality"] == DEFAULT_CONFIG["quality"]
    assert DEFAULT_CONFIG["fonts"] == {}


def test_non_mapping_config_is_rejected(tmp_path: Path) -> None:
    path = tmp_path / "config.yaml"
    path.write_text("- a\n- b\n", encoding="utf-8")
    with pytest.raises(InvalidInputError):
        load_config(path)


def test_write_default_config_respects_force(tmp_path: Path) -> None:
    path = tmp_path / "nested" / "config.yaml"

    assert write_default_config(path) == path
    assert yaml.safe_load(path.read_text(encoding="utf-8")) == DEFAULT_CONFIG

    path.write_text("output_format: jpeg\n", encoding="utf-8")
    write_default_config(path)
    assert load_config(path)["output_format"] == "jpeg"
    write_default_config(path, force=True)
    assert load_config(path)["output_format"] == "png"


def test_config_path_uses_xdg_on_linux(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
    monkeypatch.setattr(config_module.platform, "system", lambda: "Linux")
    monkeypatch.setenv("XDG_CONFIG_HOME", str(tmp_path))

    assert get_config_path() == tmp_path / "PosterForge" / "config.yaml"
