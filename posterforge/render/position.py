from __future__ import annotations

from dataclasses import dataclass

from posterforge.errors import InvalidInputError

# anchor -> (fraction of width, fraction of height)
_ANCHOR_FRACTIONS: dict[str, tuple[float, float]] = {
    "top-left": (0.0, 0.0),
    "top-center": (0.5, 0.0),
    "top-right": (1.0, 0.0),
    "center-left": (0.0, 0.5),
    "center": (0.5, 0.5),
    "center-right": (1.0, 0.5),
    "bottom-left": (0.0, 1.0),
    "bottom-center": (0.5, 1.0),
    "bottom-right": (1.0, 1.0),
}


@dataclass(frozen=True, slots=True)
class Point:
    x: float
    y: float


def anchor_fractions(anchor: str) -> tuple[float, float]:
    try:
        return _ANCHOR_FRACTIONS[anchor]
    except KeyError:
        raise InvalidInputError(f"Unknown anchor: {anchor}") from None


def resolve_position(
    anchor: str,
    offset_x: float,
    offset_y: float,
    canvas_width: int,
    canvas_height: int,
) -> Point:
    """Convert an anchor plus pixel offsets into absolute canvas coordinates.

    The result is not clamped; a placement outside the canvas is allowed.

    >>> resolve_position("center", 0, -100, 1080, 1350)
    Point(x=540.0, y=575.0)
    """
    fx, fy = anchor_fractions(anchor)
    return Point(x=canvas_width * fx + offset_x, y=canvas_height * fy + offset_y)


def place_box(anchor: str, point: Point, box_width: int, box_height: int) -> tuple[int, int]:
    """Top-left corner that puts the box's own ``anchor`` point on ``point``."""
    fx, fy = anchor_fractions(anchor)
    return int(round(point.x - box_width * fx)), int(round(point.y - box_height * fy))
