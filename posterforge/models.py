from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Callable, Literal, Union

GradientDirection = Literal["to-bottom", "to-right", "to-bottom-right", "radial"]
ResizeFit = Literal["contain", "cover", "fill"]
ProgressCallback = Callable[[str, int], None]


@dataclass(frozen=True, slots=True)
class GradientStop:
    color: str
    position: float


@dataclass(frozen=True, slots=True)
class SolidFill:
    color: str


@dataclass(frozen=True, slots=True)
class GradientFill:
    direction: GradientDirection
    stops: tuple[GradientStop, ...]


CanvasFill = Union[SolidFill, GradientFill]


@dataclass(frozen=True, slots=True)
class ImageMetadata:
    width: int
    height: int
    format: str


@dataclass(slots=True)
class RegisteredFont:
    name: str
    source_path: Path
    data: bytes


@dataclass(frozen=True, slots=True)
class FontFailure:
    name: str
    reason: str


@dataclass(slots=True)
class BundledFontsReport:
    loaded: list[str] = field(default_factory=list)
    failed: list[FontFailure] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {
            "loaded": list(self.loaded),
            "failed": [{"name": item.name, "reason": item.reason} for item in self.failed],
        }


@dataclass(frozen=True, slots=True)
class ResizeOptions:
    width: int | None = None
    height: int | None = None
    fit: ResizeFit = "cover"


@dataclass(frozen=True, slots=True)
class OutputOptions:
    format: str = "png"
    quality: int | None = None
    resize: ResizeOptions | None = None


@dataclass(frozen=True, slots=True)
class PosterMetadata:
    width: int
    height: int
    format: str
    byte_size: int

    def to_dict(self) -> dict[str, Any]:
        return {
            "width": self.width,
            "height": self.height,
            "format": self.format,
            "byte_size": self.byte_size,
        }


@dataclass(slots=True)
class ComposePosterResult:
    image_bytes: bytes
    metadata: PosterMetadata


@dataclass(slots=True)
class ComposePosterRequest:
    template_id: str
    photo_bytes: bytes
    data: dict[str, str]
    output_options: OutputOptions | None = None
    on_progress: ProgressCallback | None = None
    strict_font: bool | None = None
