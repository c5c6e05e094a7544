from __future__ import annotations

import logging
from pathlib import Path
from typing import Any, Mapping

from PIL import Image

from posterforge.constants import (
    FETCH_TIMEOUT_S,
    FONT_EXTENSIONS,
    MAX_IMAGE_BYTES,
    STAGE_COMPOSITING_PHOTO,
    STAGE_CREATING_BACKGROUND,
    STAGE_DONE,
    STAGE_ENCODING_OUTPUT,
    STAGE_LOADING_TEMPLATE,
    STAGE_PROCESSING_PHOTO,
    STAGE_RENDERING_TEXT,
)
from posterforge.decoders.image_loader import load_image
from posterforge.errors import ImageProcessingError, InvalidInputError
from posterforge.models import (
    ComposePosterRequest,
    ComposePosterResult,
    OutputOptions,
    PosterMetadata,
    ProgressCallback,
)
from posterforge.render.canvas import create_canvas, validate_dimensions
from posterforge.render.image_modes import apply_resize, cover_fit, encode_image, validate_output_options
from posterforge.render.photo import composite_photo
from posterforge.render.text import render_text_field
from posterforge.render.typography import FontRegistry
from posterforge.template_loader import TemplateRegistry
from posterforge.template_schema import ImageBackground, PosterTemplate

_log = logging.getLogger(__name__)


def missing_fields(template: PosterTemplate, data: Mapping[str, Any]) -> list[str]:
    """Text field ids with no value in ``data``; whitespace-only counts as missing."""
    missing = []
    for field in template.text:
        value = data.get(field.id)
        if value is None or not str(value).strip():
            missing.append(field.id)
    return missing


class PosterComposer:
    """Renders posters from registered templates.

    The composer only reads the registries it is given; every call works on
    its own images, so one instance can serve concurrent callers.
    """

    def __init__(
        self,
        templates: TemplateRegistry,
        fonts: FontRegistry,
        *,
        strict_font: bool = False,
        assets_dir: str | Path | None = None,
        image_timeout: float = FETCH_TIMEOUT_S,
        max_image_bytes: int = MAX_IMAGE_BYTES,
    ) -> None:
        self.templates = templates
        self.fonts = fonts
        self.strict_font = strict_font
        self.assets_dir = Path(assets_dir) if assets_dir else None
        self.image_timeout = image_timeout
        self.max_image_bytes = max_image_bytes

    def compose(self, request: ComposePosterRequest) -> ComposePosterResult:
        return self.compose_poster(
            request.template_id,
            request.photo_bytes,
            request.data,
            request.output_options,
            request.on_progress,
            strict_font=request.strict_font,
        )

    def compose_poster(
        self,
        template_id: str,
        photo_bytes: bytes,
        data: Mapping[str, Any],
        output_options: OutputOptions | None = None,
        on_progress: ProgressCallback | None = None,
        *,
        strict_font: bool | None = None,
    ) -> ComposePosterResult:
        """Render ``template_id`` with ``data`` and the athlete photo.

        Validation happens before any drawing: unknown template, then every
        missing text value at once, then the photo itself.
        """
        strict = self.strict_font if strict_font is None else strict_font

        def report(stage: tuple[str, int]) -> None:
            name, percent = stage
            _log.debug("compose stage template=%s stage=%s percent=%s", template_id, name, percent)
            if on_progress is not None:
                on_progress(name, percent)

        report(STAGE_LOADING_TEMPLATE)
        template = self.templates.load_template(template_id)
        data = dict(data or {})
        missing = missing_fields(template, data)
        if missing:
            raise InvalidInputError(f"Missing required fields: {', '.join(missing)}", fields=missing)
        if not isinstance(photo_bytes, (bytes, bytearray, memoryview)):
            raise InvalidInputError(f"Photo must be raw image bytes, got {type(photo_bytes).__name__}")
        photo = load_image(photo_bytes, timeout=self.image_timeout, max_bytes=self.max_image_bytes)
        if photo.width <= 0 or photo.height <= 0:
            raise InvalidInputError("Photo has no pixels")
        options = validate_output_options(output_options)

        try:
            report(STAGE_CREATING_BACKGROUND)
            canvas = self._background(template)

            report(STAGE_PROCESSING_PHOTO)
            photo = photo.convert("RGBA")

            report(STAGE_COMPOSITING_PHOTO)
            for field in template.photos:
                composite_photo(canvas, photo, field)

            report(STAGE_RENDERING_TEXT)
            for field in template.text:
                render_text_field(canvas, field, str(data[field.id]), self.fonts, strict_font=strict)

            report(STAGE_ENCODING_OUTPUT)
            output = apply_resize(canvas, options.resize)
            image_bytes = encode_image(output, options)
        except (OSError, ValueError) as exc:
            raise ImageProcessingError(f"Failed to render poster: {exc}") from exc

        report(STAGE_DONE)
        metadata = PosterMetadata(
            width=output.width,
            height=output.height,
            format=options.format,
            byte_size=len(image_bytes),
        )
        _log.info(
            "poster composed template=%s size=%sx%s format=%s bytes=%s",
            template.id,
            metadata.width,
            metadata.height,
            metadata.format,
            metadata.byte_size,
        )
        return ComposePosterResult(image_bytes=image_bytes, metadata=metadata)

    def _background(self, template: PosterTemplate) -> Image.Image:
        width, height = template.canvas.width, template.canvas.height
        background = template.background
        if isinstance(background, ImageBackground):
            validate_dimensions(width, height)
            if self.assets_dir is None:
                raise InvalidInputError(
                    f"Template '{template.id}' uses an image background but no assets directory is configured"
                )
            path = self.assets_dir / background.path
            image = load_image(path, timeout=self.image_timeout, max_bytes=self.max_image_bytes)
            return cover_fit(image.convert("RGBA"), width, height)
        return create_canvas(width, height, background.to_fill())


def build_composer(config: Mapping[str, Any]) -> PosterComposer:
    """Wire registries and a composer from a config mapping (see ``posterforge.config``)."""
    fonts = FontRegistry()
    report = fonts.init_bundled_fonts()
    if report.failed:
        _log.warning(
            "bundled fonts unavailable: %s",
            ", ".join(item.name for item in report.failed),
        )
    fonts_dir = config.get("fonts_dir")
    if fonts_dir:
        font_root = Path(fonts_dir).expanduser()
        if not font_root.is_dir():
            raise InvalidInputError(f"Font directory not found: {font_root}")
        for path in sorted(font_root.iterdir()):
            if path.is_file() and path.suffix.lower() in FONT_EXTENSIONS:
                fonts.register_font(path.stem, path)
    for name, path in (config.get("fonts") or {}).items():
        fonts.register_font(str(name), Path(str(path)).expanduser())

    templates = TemplateRegistry()
    templates.register_bundled_templates()
    templates_dir = config.get("templates_dir")
    if templates_dir:
        templates.register_directory(Path(templates_dir).expanduser())

    assets_dir = config.get("assets_dir")
    return PosterComposer(
        templates,
        fonts,
        strict_font=bool(config.get("strict_font", False)),
        assets_dir=Path(assets_dir).expanduser() if assets_dir else None,
        image_timeout=float(config.get("fetch_timeout") or FETCH_TIMEOUT_S),
        max_image_bytes=int(config.get("max_image_bytes") or MAX_IMAGE_BYTES),
    )
