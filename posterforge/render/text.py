from __future__ import annotations

import logging
import re
from typing import Callable, Union

from PIL import Image, ImageDraw, ImageFont

from posterforge.constants import MIN_FONT_SIZE
from posterforge.render.colors import parse_color
from posterforge.render.effects import composite_at, drop_shadow
from posterforge.render.position import anchor_fractions, resolve_position
from posterforge.render.typography import FontRegistry, load_fallback_font
from posterforge.template_schema import TextField

_log = logging.getLogger(__name__)

Font = Union[ImageFont.FreeTypeFont, ImageFont.ImageFont]
FontFactory = Callable[[int], Font]

_WORD_START_RE = re.compile(r"(^|\s)(\S)")
_ALIGN_FRACTIONS = {"left": 0.0, "center": 0.5, "right": 1.0}


def apply_text_transform(text: str, transform: str | None) -> str:
    if transform == "uppercase":
        return text.upper()
    if transform == "lowercase":
        return text.lower()
    if transform == "capitalize":
        return _WORD_START_RE.sub(lambda match: match.group(1) + match.group(2).upper(), text)
    return text


def _advances(text: str, font: Font, letter_spacing: float) -> list[float]:
    """x offset of each character when ``letter_spacing`` is added between them."""
    offsets = []
    cursor = 0.0
    for char in text:
        offsets.append(cursor)
        cursor += font.getlength(char) + letter_spacing
    return offsets


def measure_text(text: str, font: Font, *, letter_spacing: float = 0.0, stroke_width: int = 0) -> float:
    if not text:
        return 0.0
    if letter_spacing:
        width = sum(font.getlength(char) for char in text) + letter_spacing * (len(text) - 1)
    else:
        width = font.getlength(text)
    return width + stroke_width * 2


def fit_font_size(
    text: str,
    size: int,
    max_width: float | None,
    factory: FontFactory,
    *,
    letter_spacing: float = 0.0,
    stroke_width: int = 0,
) -> tuple[Font, int]:
    """Largest font size <= ``size`` whose rendered width fits ``max_width``; never below 1."""
    font = factory(size)
    if not max_width:
        return font, size
    while size > MIN_FONT_SIZE and measure_text(text, font, letter_spacing=letter_spacing, stroke_width=stroke_width) > max_width:
        size -= 1
        font = factory(size)
    return font, size


def _font_factory(fonts: FontRegistry, family: str, size: int, strict: bool) -> FontFactory:
    # first lookup raises (strict) or logs the fallback once
    first = fonts.load_font(family, size, strict=strict)
    if fonts.is_font_registered(family):
        return lambda new_size: first if new_size == size else fonts.load_font(family, new_size)
    return lambda new_size: first if new_size == size else load_fallback_font(new_size)


def _line_height(font: Font) -> int:
    if isinstance(font, ImageFont.FreeTypeFont):
        ascent, descent = font.getmetrics()
        return ascent + descent
    return font.getbbox("Ag")[3]


def _draw_run(
    draw: ImageDraw.ImageDraw,
    origin: tuple[float, float],
    text: str,
    font: Font,
    *,
    fill: tuple[int, int, int, int],
    letter_spacing: float,
    stroke_width: int = 0,
    stroke_fill: tuple[int, int, int, int] | None = None,
) -> None:
    x, y = origin
    if not letter_spacing:
        draw.text((x, y), text, font=font, fill=fill, stroke_width=stroke_width, stroke_fill=stroke_fill)
        return
    for char, offset in zip(text, _advances(text, font, letter_spacing)):
        draw.text((x + offset, y), char, font=font, fill=fill, stroke_width=stroke_width, stroke_fill=stroke_fill)


def render_text_field(
    canvas: Image.Image,
    field: TextField,
    value: str,
    fonts: FontRegistry,
    *,
    strict_font: bool = False,
) -> None:
    """Draw one text field onto ``canvas``.

    Horizontal alignment follows ``style.align`` (or the anchor column when
    unset); vertical alignment follows the anchor row.
    """
    style = field.style
    text = apply_text_transform(value, style.text_transform)
    size = max(MIN_FONT_SIZE, int(round(style.font_size)))
    spacing = float(style.letter_spacing or 0.0)
    stroke_width = int(round(style.stroke.width)) if style.stroke else 0

    factory = _font_factory(fonts, style.font_family, size, strict_font)
    font, fitted_size = fit_font_size(
        text,
        size,
        style.max_width,
        factory,
        letter_spacing=spacing,
        stroke_width=stroke_width,
    )
    if fitted_size != size:
        _log.debug("text shrunk to fit id=%s size=%s->%s", field.id, size, fitted_size)

    point = resolve_position(
        field.position.anchor,
        field.position.offset_x,
        field.position.offset_y,
        canvas.width,
        canvas.height,
    )
    anchor_fx, anchor_fy = anchor_fractions(field.position.anchor)
    fx = _ALIGN_FRACTIONS[style.align] if style.align else anchor_fx

    width = measure_text(text, font, letter_spacing=spacing, stroke_width=stroke_width)
    height = _line_height(font) + stroke_width * 2
    left = point.x - width * fx + stroke_width
    top = point.y - height * anchor_fy + stroke_width

    fill = parse_color(style.color).to_pil()
    layer = Image.new("RGBA", canvas.size, color=(0, 0, 0, 0))
    draw = ImageDraw.Draw(layer)
    if stroke_width > 0 and style.stroke is not None:
        stroke_fill = parse_color(style.stroke.color).to_pil()
        # strokes first; the fill pass draws over them
        _draw_run(
            draw,
            (left, top),
            text,
            font,
            fill=stroke_fill,
            letter_spacing=spacing,
            stroke_width=stroke_width,
            stroke_fill=stroke_fill,
        )
    _draw_run(draw, (left, top), text, font, fill=fill, letter_spacing=spacing)

    if style.shadow is not None:
        shadow = style.shadow
        shadow_layer, pad = drop_shadow(layer.getchannel("A"), shadow.color, shadow.blur)
        composite_at(
            canvas,
            shadow_layer,
            int(round(shadow.offset_x)) - pad,
            int(round(shadow.offset_y)) - pad,
        )
    canvas.alpha_composite(layer)
