from __future__ import annotations

import logging

from PIL import Image, ImageChops, ImageDraw

from posterforge.render.colors import parse_color
from posterforge.render.effects import composite_at, drop_shadow
from posterforge.render.image_modes import cover_fit
from posterforge.render.position import place_box, resolve_position
from posterforge.template_schema import CircleMask, MaskShape, PhotoField, RoundedRectMask

_log = logging.getLogger(__name__)

# masks are drawn this many times larger, then downsampled for smooth edges
_SUPERSAMPLE = 4


def shape_mask(width: int, height: int, mask: MaskShape | None, *, grow: float = 0.0) -> Image.Image:
    """L-mode coverage mask for ``mask`` over a ``width`` x ``height`` box.

    ``grow`` enlarges a rounded-rect corner radius, so a border drawn around
    a masked photo keeps the same corner center.
    """
    if mask is None or not isinstance(mask, (CircleMask, RoundedRectMask)):
        return Image.new("L", (width, height), color=255)

    scale = _SUPERSAMPLE
    big = Image.new("L", (width * scale, height * scale), color=0)
    draw = ImageDraw.Draw(big)
    if isinstance(mask, CircleMask):
        diameter = min(width, height) * scale
        left = (big.width - diameter) / 2.0
        top = (big.height - diameter) / 2.0
        draw.ellipse((left, top, left + diameter - 1, top + diameter - 1), fill=255)
    else:
        radius = min(mask.radius + grow, width / 2.0, height / 2.0) * scale
        draw.rounded_rectangle((0, 0, big.width - 1, big.height - 1), radius=radius, fill=255)
    return big.resize((width, height), Image.Resampling.LANCZOS)


def render_photo(photo: Image.Image, field: PhotoField) -> tuple[Image.Image, int]:
    """Fit, mask and border a photo for one field.

    Returns the RGBA sprite and the border inset: the fitted photo starts
    ``inset`` pixels into the sprite on both axes.
    """
    width, height = field.size.width, field.size.height
    fitted = cover_fit(photo.convert("RGBA"), width, height)
    coverage = shape_mask(width, height, field.mask)
    fitted.putalpha(ImageChops.multiply(fitted.getchannel("A"), coverage))

    inset = int(round(field.border.width)) if field.border else 0
    if inset <= 0:
        return fitted, 0

    outer_width, outer_height = width + inset * 2, height + inset * 2
    border_mask = shape_mask(outer_width, outer_height, field.mask, grow=inset)
    rgba = parse_color(field.border.color).to_pil()
    sprite = Image.new("RGBA", (outer_width, outer_height), color=rgba)
    sprite.putalpha(ImageChops.multiply(sprite.getchannel("A"), border_mask))
    sprite.alpha_composite(fitted, (inset, inset))
    return sprite, inset


def composite_photo(canvas: Image.Image, photo: Image.Image, field: PhotoField) -> None:
    """Place ``photo`` on ``canvas`` so the field's anchor point lands on its resolved position."""
    point = resolve_position(
        field.position.anchor,
        field.position.offset_x,
        field.position.offset_y,
        canvas.width,
        canvas.height,
    )
    left, top = place_box(field.position.anchor, point, field.size.width, field.size.height)
    sprite, inset = render_photo(photo, field)
    sprite_left, sprite_top = left - inset, top - inset

    if field.shadow is not None:
        shadow = field.shadow
        layer, pad = drop_shadow(sprite.getchannel("A"), shadow.color, shadow.blur)
        composite_at(
            canvas,
            layer,
            sprite_left - pad + int(round(shadow.offset_x)),
            sprite_top - pad + int(round(shadow.offset_y)),
        )
    composite_at(canvas, sprite, sprite_left, sprite_top)
    _log.debug("photo composited id=%s box=(%s, %s, %s, %s)", field.id, left, top, field.size.width, field.size.height)
