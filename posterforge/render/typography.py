from __future__ import annotations

import io
import logging
import os
import platform
import threading
from importlib import resources
from pathlib import Path

from PIL import ImageFont

from posterforge.constants import BUNDLED_FONTS, DEFAULT_FONT, FONT_EXTENSIONS
from posterforge.errors import FontLoadError, InvalidInputError
from posterforge.models import BundledFontsReport, FontFailure, RegisteredFont

_log = logging.getLogger(__name__)


def bundled_fonts_dir() -> Path:
    return Path(str(resources.files("posterforge") / "assets" / "fonts"))


def _system_font_candidates() -> list[Path]:
    system = platform.system().lower()
    if "windows" in system:
        windows_dir = Path(os.environ.get("WINDIR", r"C:\Windows"))
        return [
            windows_dir / "Fonts" / "arial.ttf",
            windows_dir / "Fonts" / "segoeui.ttf",
        ]
    if "darwin" in system:
        return [
            Path("/System/Library/Fonts/Helvetica.ttc"),
            Path("/Library/Fonts/Arial.ttf"),
            Path("/System/Library/Fonts/Supplemental/Arial.ttf"),
        ]
    return [
        Path("/usr/share/fonts/truetype/dejavu/DejaVuSans.ttf"),
        Path("/usr/share/fonts/dejavu/DejaVuSans.ttf"),
        Path("/usr/share/fonts/truetype/liberation/LiberationSans-Regular.ttf"),
    ]


def load_fallback_font(size: int) -> ImageFont.FreeTypeFont | ImageFont.ImageFont:
    for candidate in _system_font_candidates():
        if not candidate.exists():
            continue
        try:
            return ImageFont.truetype(str(candidate), size=size)
        except OSError:
            continue
    return ImageFont.load_default(size=size)


class FontRegistry:
    """Process-wide table of font family name -> font bytes.

    Registration and clearing are explicit; lookups never touch the disk.
    """

    def __init__(self, bundled_dir: Path | None = None, bundled: dict[str, str] | None = None) -> None:
        self._fonts: dict[str, RegisteredFont] = {}
        self._lock = threading.RLock()
        self._bundled_dir = bundled_dir
        self._bundled = dict(BUNDLED_FONTS if bundled is None else bundled)

    def register_font(self, name: str, path: str | Path) -> None:
        if not name or not isinstance(name, str):
            raise InvalidInputError("Font name must be a non-empty string")
        if not path or not str(path).strip():
            raise InvalidInputError("Font path must be a non-empty string")
        font_path = Path(path)
        if font_path.suffix.lower() not in FONT_EXTENSIONS:
            raise InvalidInputError("Font file must be .ttf or .otf format")
        if not font_path.is_file():
            raise FontLoadError(name, f"File not found: {font_path}")
        try:
            data = font_path.read_bytes()
        except OSError as exc:
            raise FontLoadError(name, str(exc)) from exc
        try:
            ImageFont.truetype(io.BytesIO(data), size=12)
        except OSError as exc:
            raise FontLoadError(name, f"Unreadable font data: {exc}") from exc

        with self._lock:
            self._fonts[name] = RegisteredFont(name=name, source_path=font_path, data=data)
        _log.debug("font registered name=%s path=%s", name, font_path)

    def get_font(self, name: str) -> bytes | None:
        with self._lock:
            font = self._fonts.get(name)
        return font.data if font else None

    def is_font_registered(self, name: str) -> bool:
        with self._lock:
            return name in self._fonts

    def list_fonts(self) -> list[str]:
        with self._lock:
            return list(self._fonts)

    def get_default_font(self) -> str:
        return DEFAULT_FONT

    def list_bundled_fonts(self) -> list[str]:
        return list(self._bundled)

    def init_bundled_fonts(self) -> BundledFontsReport:
        """Register every bundled font; failures are reported, never raised."""
        report = BundledFontsReport()
        font_dir = self._bundled_dir or bundled_fonts_dir()
        for name, file_name in self._bundled.items():
            font_path = font_dir / file_name
            if not font_path.is_file():
                reason = f"File not found: {font_path}"
                report.failed.append(FontFailure(name=name, reason=reason))
                _log.error("bundled font file not found name=%s path=%s", name, font_path)
                continue
            try:
                self.register_font(name, font_path)
            except (FontLoadError, InvalidInputError) as exc:
                report.failed.append(FontFailure(name=name, reason=exc.message or type(exc).__name__))
                _log.error("failed to load bundled font name=%s: %s", name, exc)
                continue
            report.loaded.append(name)
        return report

    def clear_fonts(self) -> None:
        with self._lock:
            self._fonts.clear()

    def load_font(self, family: str, size: int, *, strict: bool = False) -> ImageFont.FreeTypeFont | ImageFont.ImageFont:
        """Pillow font for ``family`` at ``size`` px, falling back unless ``strict``."""
        data = self.get_font(family)
        if data is None:
            if strict:
                raise InvalidInputError(
                    f"Font '{family}' is not registered. "
                    "Register it with register_font() or init_bundled_fonts() before use."
                )
            _log.warning("font not registered, using fallback requested=%s fallback=%s", family, DEFAULT_FONT)
            return load_fallback_font(size)
        return ImageFont.truetype(io.BytesIO(data), size=size)
