from __future__ import annotations

import io
import logging

from PIL import Image

from posterforge.constants import DEFAULT_JPEG_QUALITY, MAX_DIMENSION, OUTPUT_FORMATS, RESIZE_FITS
from posterforge.errors import InvalidInputError
from posterforge.models import OutputOptions, ResizeOptions

_log = logging.getLogger(__name__)


def _crop_to_ratio(image: Image.Image, target_ratio: float) -> Image.Image:
    width, height = image.size
    if height == 0:
        return image
    ratio = width / float(height)
    if abs(ratio - target_ratio) < 0.0001:
        return image

    if ratio > target_ratio:
        new_width = max(1, int(round(height * target_ratio)))
        left = (width - new_width) // 2
        box = (left, 0, left + new_width, height)
    else:
        new_height = max(1, int(round(width / target_ratio)))
        top = (height - new_height) // 2
        box = (0, top, width, top + new_height)
    return image.crop(box)


def _pad_to_ratio(image: Image.Image, target_ratio: float) -> Image.Image:
    width, height = image.size
    if height == 0:
        return image
    ratio = width / float(height)
    if abs(ratio - target_ratio) < 0.0001:
        return image

    # transparent padding; JPEG encoding flattens it to black
    if ratio > target_ratio:
        new_height = int(round(width / target_ratio))
        canvas = Image.new("RGBA", (width, max(height, new_height)), color=(0, 0, 0, 0))
        top = (canvas.height - height) // 2
        canvas.paste(image, (0, top))
        return canvas

    new_width = int(round(height * target_ratio))
    canvas = Image.new("RGBA", (max(width, new_width), height), color=(0, 0, 0, 0))
    left = (canvas.width - width) // 2
    canvas.paste(image, (left, 0))
    return canvas


def cover_fit(image: Image.Image, width: int, height: int) -> Image.Image:
    """Center-crop ``image`` to the target ratio, then scale it to exactly ``width`` x ``height``."""
    if image.size == (width, height):
        return image
    if image.width < width or image.height < height:
        _log.warning("upscaling image from %sx%s to cover %sx%s", image.width, image.height, width, height)
    cropped = _crop_to_ratio(image, width / float(height))
    return cropped.resize((width, height), Image.Resampling.LANCZOS)


def _target_size(image: Image.Image, resize: ResizeOptions) -> tuple[int, int]:
    width, height = image.size
    if resize.width and resize.height:
        return resize.width, resize.height
    if resize.width:
        return resize.width, max(1, int(round(height * resize.width / float(width))))
    if resize.height:
        return max(1, int(round(width * resize.height / float(height)))), resize.height
    return width, height


def apply_resize(image: Image.Image, resize: ResizeOptions | None) -> Image.Image:
    if resize is None or (not resize.width and not resize.height):
        return image
    target_width, target_height = _target_size(image, resize)
    if (target_width, target_height) == image.size:
        return image
    fit = resize.fit
    if fit == "fill" or not (resize.width and resize.height):
        return image.resize((target_width, target_height), Image.Resampling.LANCZOS)
    if fit == "cover":
        return cover_fit(image, target_width, target_height)
    if fit == "contain":
        padded = _pad_to_ratio(image.convert("RGBA"), target_width / float(target_height))
        return padded.resize((target_width, target_height), Image.Resampling.LANCZOS)
    raise InvalidInputError(f"unsupported resize fit: {fit}")


def validate_output_options(options: OutputOptions | None) -> OutputOptions:
    options = options or OutputOptions()
    image_format = (options.format or "").lower()
    if image_format not in OUTPUT_FORMATS:
        raise InvalidInputError(
            f"Unsupported output format: {options.format}. Expected one of: {', '.join(OUTPUT_FORMATS)}"
        )
    if options.quality is not None:
        if isinstance(options.quality, bool) or not isinstance(options.quality, int) or not 1 <= options.quality <= 100:
            raise InvalidInputError(f"Output quality must be an integer between 1 and 100, got: {options.quality}")
    resize = options.resize
    if resize is not None:
        if resize.fit not in RESIZE_FITS:
            raise InvalidInputError(f"Unsupported resize fit: {resize.fit}. Expected one of: {', '.join(RESIZE_FITS)}")
        for label, value in (("width", resize.width), ("height", resize.height)):
            if value is None:
                continue
            if isinstance(value, bool) or not isinstance(value, int) or not 1 <= value <= MAX_DIMENSION:
                raise InvalidInputError(f"Resize {label} must be an integer between 1 and {MAX_DIMENSION}")
    return OutputOptions(
        format="jpeg" if image_format == "jpg" else image_format,
        quality=options.quality,
        resize=resize,
    )


def encode_image(image: Image.Image, options: OutputOptions) -> bytes:
    """Encode to PNG or JPEG. JPEG drops alpha and defaults to quality 85."""
    pil_format = OUTPUT_FORMATS[options.format.lower()]
    buffer = io.BytesIO()
    if pil_format == "JPEG":
        quality = options.quality if options.quality is not None else DEFAULT_JPEG_QUALITY
        image.convert("RGB").save(buffer, format="JPEG", quality=quality, optimize=True)
    else:
        image.save(buffer, format="PNG", optimize=True)
    return buffer.getvalue()
