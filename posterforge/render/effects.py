from __future__ import annotations

import math

from PIL import Image, ImageFilter

from posterforge.render.colors import parse_color


def composite_at(image: Image.Image, layer: Image.Image, x: int, y: int) -> None:
    """Alpha-composite ``layer`` onto ``image`` at (x, y); parts off the canvas are clipped."""
    if x >= image.width or y >= image.height or x + layer.width <= 0 or y + layer.height <= 0:
        return
    overlay = Image.new("RGBA", image.size, color=(0, 0, 0, 0))
    overlay.paste(layer, (x, y))
    image.alpha_composite(overlay)


def shadow_padding(blur: float) -> int:
    return int(math.ceil(max(0.0, blur) * 2))


def drop_shadow(alpha: Image.Image, color: str, blur: float) -> tuple[Image.Image, int]:
    """Blurred, colorized copy of an alpha mask, grown by ``shadow_padding(blur)`` on each side.

    Returns the shadow layer and the padding so callers can offset it back.
    """
    rgba = parse_color(color)
    pad = shadow_padding(blur)
    mask = Image.new("L", (alpha.width + pad * 2, alpha.height + pad * 2), color=0)
    mask.paste(alpha, (pad, pad))
    if rgba.alpha < 1.0:
        mask = mask.point(lambda value: int(round(value * rgba.alpha)))
    if blur > 0:
        mask = mask.filter(ImageFilter.GaussianBlur(radius=blur / 2.0))
    layer = Image.new("RGBA", mask.size, color=(rgba.r, rgba.g, rgba.b, 0))
    layer.putalpha(mask)
    return layer, pad
