from __future__ import annotations

from dataclasses import dataclass
from typing import Union

from PIL import Image, ImageChops

from posterforge.constants import MAX_DIMENSION, MAX_GRADIENT_STOPS, MIN_DIMENSION, MIN_GRADIENT_STOPS
from posterforge.errors import InvalidInputError
from posterforge.models import CanvasFill, GradientFill, GradientStop, SolidFill
from posterforge.render.colors import hex_to_rgb, is_valid_hex_color

# linear gradient vectors in bounding-box fractions (x1, y1, x2, y2)
_LINEAR_VECTORS: dict[str, tuple[float, float, float, float]] = {
    "to-bottom": (0.0, 0.0, 0.0, 1.0),
    "to-right": (0.0, 0.0, 1.0, 0.0),
    "to-bottom-right": (0.0, 0.0, 1.0, 1.0),
}


@dataclass(frozen=True, slots=True)
class LinearGradient:
    x1: float
    y1: float
    x2: float
    y2: float
    stops: tuple[GradientStop, ...]


@dataclass(frozen=True, slots=True)
class RadialGradient:
    cx: float
    cy: float
    r: float
    stops: tuple[GradientStop, ...]


GradientGeometry = Union[LinearGradient, RadialGradient]


def validate_dimensions(width: int, height: int) -> None:
    if isinstance(width, bool) or isinstance(height, bool) or not isinstance(width, int) or not isinstance(height, int):
        raise InvalidInputError("Canvas dimensions must be integers")
    if width < MIN_DIMENSION or height < MIN_DIMENSION:
        raise InvalidInputError(f"Canvas dimensions must be at least {MIN_DIMENSION}px")
    if width > MAX_DIMENSION or height > MAX_DIMENSION:
        raise InvalidInputError(f"Canvas dimensions must not exceed {MAX_DIMENSION}px")


def validate_gradient_stops(stops: tuple[GradientStop, ...] | list[GradientStop]) -> None:
    if len(stops) < MIN_GRADIENT_STOPS:
        raise InvalidInputError(f"Gradient must have at least {MIN_GRADIENT_STOPS} color stops")
    if len(stops) > MAX_GRADIENT_STOPS:
        raise InvalidInputError(f"Gradient must have at most {MAX_GRADIENT_STOPS} color stops")
    for stop in stops:
        if not is_valid_hex_color(stop.color):
            raise InvalidInputError(f"Invalid hex color: {stop.color}. Expected format: #rrggbb")
        if not 0 <= stop.position <= 100:
            raise InvalidInputError(
                f"Gradient stop position must be between 0 and 100, got: {stop.position}"
            )


def build_gradient_geometry(fill: GradientFill) -> GradientGeometry:
    """Vector description of a gradient fill, in bounding-box fractions."""
    stops = tuple(fill.stops)
    if fill.direction == "radial":
        return RadialGradient(cx=0.5, cy=0.5, r=0.5, stops=stops)
    try:
        x1, y1, x2, y2 = _LINEAR_VECTORS[fill.direction]
    except KeyError:
        raise InvalidInputError(f"Unknown gradient direction: {fill.direction}") from None
    return LinearGradient(x1=x1, y1=y1, x2=x2, y2=y2, stops=stops)


def _color_ramp(stops: tuple[GradientStop, ...]) -> list[tuple[int, int, int]]:
    # offsets never decrease: a stop placed before an earlier one snaps to it
    offsets: list[float] = []
    for stop in stops:
        offset = min(100.0, max(0.0, float(stop.position)))
        offsets.append(max(offset, offsets[-1]) if offsets else offset)
    colors = [hex_to_rgb(stop.color) for stop in stops]

    ramp: list[tuple[int, int, int]] = []
    for index in range(256):
        t = index / 255.0 * 100.0
        if t <= offsets[0]:
            c = colors[0]
            ramp.append((c.r, c.g, c.b))
            continue
        if t >= offsets[-1]:
            c = colors[-1]
            ramp.append((c.r, c.g, c.b))
            continue
        segment = 0
        while segment < len(offsets) - 2 and t > offsets[segment + 1]:
            segment += 1
        start, end = offsets[segment], offsets[segment + 1]
        a, b = colors[segment], colors[segment + 1]
        k = 1.0 if end <= start else (t - start) / (end - start)
        ramp.append(
            (
                int(round(a.r + (b.r - a.r) * k)),
                int(round(a.g + (b.g - a.g) * k)),
                int(round(a.b + (b.b - a.b) * k)),
            )
        )
    return ramp


def _linear_field(geometry: LinearGradient, width: int, height: int) -> Image.Image:
    dx = geometry.x2 - geometry.x1
    dy = geometry.y2 - geometry.y1
    # linear_gradient() runs black to white top to bottom; TRANSPOSE turns it left to right
    vertical = Image.linear_gradient("L").resize((width, height), Image.Resampling.BILINEAR)
    horizontal = (
        Image.linear_gradient("L")
        .transpose(Image.Transpose.TRANSPOSE)
        .resize((width, height), Image.Resampling.BILINEAR)
    )
    if dx and dy:
        return ImageChops.add(horizontal, vertical, scale=2.0)
    if dx:
        return horizontal
    return vertical


def _radial_field(geometry: RadialGradient, width: int, height: int) -> Image.Image:
    # Pillow's radial field reaches white at half its size, i.e. r = 0.5
    field = Image.radial_gradient("L")
    scale = geometry.r / 0.5
    size = (max(1, int(round(width * scale))), max(1, int(round(height * scale))))
    field = field.resize(size, Image.Resampling.BILINEAR)
    canvas = Image.new("L", (width, height), color=255)
    left = int(round(width * geometry.cx - size[0] / 2))
    top = int(round(height * geometry.cy - size[1] / 2))
    canvas.paste(field, (left, top))
    return canvas


def rasterize_gradient(geometry: GradientGeometry, width: int, height: int) -> Image.Image:
    if isinstance(geometry, LinearGradient):
        field = _linear_field(geometry, width, height)
    elif isinstance(geometry, RadialGradient):
        field = _radial_field(geometry, width, height)
    else:
        raise InvalidInputError(f"Unsupported gradient geometry: {type(geometry).__name__}")
    ramp = _color_ramp(geometry.stops)
    channels = [field.point([color[channel] for color in ramp]) for channel in range(3)]
    return Image.merge("RGB", channels).convert("RGBA")


def create_canvas(width: int, height: int, fill: CanvasFill) -> Image.Image:
    """Background raster of ``width`` x ``height`` filled solid or with a gradient."""
    validate_dimensions(width, height)

    if isinstance(fill, SolidFill):
        if not is_valid_hex_color(fill.color):
            raise InvalidInputError(f"Invalid hex color: {fill.color}. Expected format: #rrggbb")
        rgb = hex_to_rgb(fill.color)
        return Image.new("RGBA", (width, height), color=(rgb.r, rgb.g, rgb.b, 255))

    if isinstance(fill, GradientFill):
        validate_gradient_stops(fill.stops)
        return rasterize_gradient(build_gradient_geometry(fill), width, height)

    raise InvalidInputError(f"Unsupported canvas fill: {type(fill).__name__}")
