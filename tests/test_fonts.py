from pathlib import Path
import shutil

import pytest
from PIL import ImageFont

from posterforge.constants import BUNDLED_FONTS
from posterforge.errors import FontLoadError, InvalidInputError
from posterforge.render.typography import FontRegistry, _system_font_candidates


def _system_ttf() -> Path:
    for path in _system_font_candidates():
        if path.is_file() and path.suffix.lower() in {".ttf", ".otf"}:
            return path
    pytest.skip("no .ttf/.otf font installed on this machine")


def test_register_font_is_idempotent_and_listed_once() -> None:
    source = _system_ttf()
    registry = FontRegistry()

    registry.register_font("Display", source)
    registry.register_font("Display", source)

    assert registry.list_fonts() == ["Display"]
    assert registry.is_font_registered("Display")
    assert registry.get_font("Display") == source.read_bytes()


def test_register_font_validates_inputs(tmp_path: Path) -> None:
    registry = FontRegistry()
    with pytest.raises(InvalidInputError):
        registry.register_font("", tmp_path / "a.ttf")
    with pytest.raises(InvalidInputError):
        registry.register_font("Name", tmp_path / "font.woff")
    with pytest.raises(FontLoadError) as excinfo:
        registry.register_font("Missing", tmp_path / "missing.ttf")
    assert excinfo.value.font_name == "Missing"


def test_register_font_rejects_corrupt_data(tmp_path: Path) -> None:
    broken = tmp_path / "broken.ttf"
    broken.write_bytes(b"definitely not a font")

    with pytest.raises(FontLoadError):
        FontRegistry().register_font("Broken", broken)


def test_init_bundled_fonts_reports_every_entry(tmp_path: Path) -> None:
    registry = FontRegistry(bundled_dir=tmp_path)

    report = registry.init_bundled_fonts()

    assert len(report.loaded) + len(report.failed) == len(BUNDLED_FONTS)
    assert report.loaded == []
    assert {item.name for item in report.failed} == set(BUNDLED_FONTS)


def test_init_bundled_fonts_loads_present_files(tmp_path: Path) -> None:
    source = _system_ttf()
    shutil.copyfile(source, tmp_path / "Oswald-Bold.ttf")
    registry = FontRegistry(bundled_dir=tmp_path)

    report = registry.init_bundled_fonts()

    assert report.loaded == ["Oswald-Bold"]
    assert len(report.failed) == len(BUNDLED_FONTS) - 1
    assert registry.is_font_registered("Oswald-Bold")


def test_clear_fonts_and_default() -> None:
    registry = FontRegistry()
    assert registry.get_default_font() == "sans-serif"
    assert registry.list_bundled_fonts() == list(BUNDLED_FONTS)
    registry.clear_fonts()
    assert registry.list_fonts() == []
    assert registry.get_font("Oswald-Bold") is None


def test_load_font_falls_back_unless_strict() -> None:
    registry = FontRegistry()

    font = registry.load_font("Nope", 24)
    assert font.getlength("abc") > 0

    with pytest.raises(InvalidInputError):
        registry.load_font("Nope", 24, strict=True)


def test_load_font_uses_registered_bytes() -> None:
    registry = FontRegistry()
    registry.register_font("Display", _system_ttf())

    font = registry.load_font("Display", 40, strict=True)

    assert isinstance(font, ImageFont.FreeTypeFont)
    assert font.size == 40
