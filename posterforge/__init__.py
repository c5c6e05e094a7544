"""Template-driven tournament poster rendering."""

from posterforge.compose import PosterComposer, build_composer
from posterforge.errors import (
    FontLoadError,
    ImageProcessingError,
    InvalidInputError,
    PosterError,
    TemplateNotFoundError,
    TemplateValidationError,
)
from posterforge.models import (
    ComposePosterRequest,
    ComposePosterResult,
    OutputOptions,
    PosterMetadata,
    ResizeOptions,
)
from posterforge.render.typography import FontRegistry
from posterforge.template_loader import TemplateRegistry
from posterforge.template_schema import PosterTemplate, validate_template

__version__ = "0.1.0"

__all__ = [
    "ComposePosterRequest",
    "ComposePosterResult",
    "FontLoadError",
    "FontRegistry",
    "ImageProcessingError",
    "InvalidInputError",
    "OutputOptions",
    "PosterComposer",
    "PosterError",
    "PosterMetadata",
    "PosterTemplate",
    "ResizeOptions",
    "TemplateNotFoundError",
    "TemplateRegistry",
    "TemplateValidationError",
    "build_composer",
    "validate_template",
]
