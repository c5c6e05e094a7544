from __future__ import annotations

import re
from dataclasses import dataclass

from posterforge.errors import InvalidInputError

_HEX_RE = re.compile(r"#([0-9a-fA-F]{2})([0-9a-fA-F]{2})([0-9a-fA-F]{2})")
_RGBA_RE = re.compile(
    r"rgba?\(\s*(\d{1,3})\s*,\s*(\d{1,3})\s*,\s*(\d{1,3})\s*(?:,\s*(\d*\.?\d+)\s*)?\)"
)


@dataclass(frozen=True, slots=True)
class RgbColor:
    r: int
    g: int
    b: int


@dataclass(frozen=True, slots=True)
class RgbaColor:
    r: int
    g: int
    b: int
    alpha: float = 1.0

    def to_pil(self) -> tuple[int, int, int, int]:
        return (self.r, self.g, self.b, int(round(self.alpha * 255)))


def is_valid_hex_color(value: str) -> bool:
    return isinstance(value, str) and _HEX_RE.fullmatch(value) is not None


def hex_to_rgb(value: str) -> RgbColor:
    match = _HEX_RE.fullmatch(value) if isinstance(value, str) else None
    if match is None:
        raise InvalidInputError(f"Invalid hex color format: {value}. Expected format: #rrggbb")
    return RgbColor(*(int(part, 16) for part in match.groups()))


def hex_to_rgba(value: str) -> RgbaColor:
    rgb = hex_to_rgb(value)
    return RgbaColor(rgb.r, rgb.g, rgb.b, 1.0)


def parse_rgba(value: str) -> RgbaColor | None:
    """Parse ``rgb(r,g,b)`` / ``rgba(r,g,b,a)``; ``None`` when it is not that form."""
    match = _RGBA_RE.fullmatch(value) if isinstance(value, str) else None
    if match is None:
        return None
    r, g, b = (int(part) for part in match.groups()[:3])
    alpha = float(match.group(4)) if match.group(4) is not None else 1.0
    if max(r, g, b) > 255 or alpha > 1.0:
        return None
    return RgbaColor(r, g, b, alpha)


def parse_color(value: str) -> RgbaColor:
    rgba = parse_rgba(value)
    if rgba is not None:
        return rgba
    if not is_valid_hex_color(value):
        raise InvalidInputError(
            f"Invalid color: {value}. Expected format: #rrggbb or rgba(r,g,b,a)"
        )
    return hex_to_rgba(value)


def is_valid_color(value: str) -> bool:
    return is_valid_hex_color(value) or parse_rgba(value) is not None
