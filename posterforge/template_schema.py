from __future__ import annotations

from dataclasses import dataclass, field
from typing import Annotated, Any, Literal, Optional, Union

from pydantic import AfterValidator, BaseModel, ConfigDict, Field, ValidationError, field_validator, model_validator
from pydantic.alias_generators import to_camel

from posterforge.constants import (
    MAX_BLUR,
    MAX_BORDER_WIDTH,
    MAX_DIMENSION,
    MAX_FONT_SIZE,
    MAX_GRADIENT_STOPS,
    MAX_LETTER_SPACING,
    MAX_STROKE_WIDTH,
    MIN_FONT_SIZE,
    MIN_GRADIENT_STOPS,
)
from posterforge.models import GradientFill, GradientStop as FillStop, SolidFill
from posterforge.render.colors import is_valid_color, is_valid_hex_color

Anchor = Literal[
    "top-left",
    "top-center",
    "top-right",
    "center-left",
    "center",
    "center-right",
    "bottom-left",
    "bottom-center",
    "bottom-right",
]
VERSION_PATTERN = r"^\d{1,3}\.\d{1,3}\.\d{1,3}$"
Dimension = Annotated[int, Field(strict=True, gt=0, le=MAX_DIMENSION)]


def _check_color(value: str) -> str:
    if not is_valid_color(value):
        raise ValueError("Color must be a valid hex (#rrggbb) or rgb(a) value")
    return value


def _check_hex(value: str) -> str:
    if not is_valid_hex_color(value):
        raise ValueError("Color must be a valid hex color (#rrggbb)")
    return value


ColorStr = Annotated[str, AfterValidator(_check_color)]
HexColor = Annotated[str, AfterValidator(_check_hex)]


class _Model(BaseModel):
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        frozen=True,
        extra="forbid",
    )


class TemplatePosition(_Model):
    anchor: Anchor
    offset_x: float = 0
    offset_y: float = 0


class Size(_Model):
    width: Dimension
    height: Dimension


class NoMask(_Model):
    type: Literal["none"]


class CircleMask(_Model):
    type: Literal["circle"]


class RoundedRectMask(_Model):
    type: Literal["rounded-rect"]
    radius: float = Field(gt=0)


MaskShape = Annotated[Union[NoMask, CircleMask, RoundedRectMask], Field(discriminator="type")]


class Border(_Model):
    width: float = Field(ge=0, le=MAX_BORDER_WIDTH)
    color: ColorStr


class Shadow(_Model):
    blur: float = Field(ge=0, le=MAX_BLUR)
    offset_x: float = 0
    offset_y: float = 0
    color: ColorStr


class Stroke(_Model):
    width: float = Field(ge=0, le=MAX_STROKE_WIDTH)
    color: ColorStr


class TextStyle(_Model):
    font_family: str = Field(min_length=1)
    font_size: float = Field(ge=MIN_FONT_SIZE, le=MAX_FONT_SIZE)
    color: ColorStr
    align: Optional[Literal["left", "center", "right"]] = None
    letter_spacing: Optional[float] = Field(default=None, ge=-MAX_LETTER_SPACING, le=MAX_LETTER_SPACING)
    text_transform: Optional[Literal["none", "uppercase", "lowercase", "capitalize"]] = None
    stroke: Optional[Stroke] = None
    shadow: Optional[Shadow] = None
    max_width: Optional[float] = Field(default=None, gt=0)


class TextField(_Model):
    id: str = Field(min_length=1)
    position: TemplatePosition
    style: TextStyle
    placeholder: Optional[str] = None


class PhotoField(_Model):
    id: str = Field(min_length=1)
    position: TemplatePosition
    size: Size
    mask: Optional[MaskShape] = None
    border: Optional[Border] = None
    shadow: Optional[Shadow] = None


class GradientStop(_Model):
    color: HexColor
    position: float = Field(ge=0, le=100)


class SolidBackground(_Model):
    type: Literal["solid"]
    color: HexColor

    def to_fill(self) -> SolidFill:
        return SolidFill(color=self.color)


class GradientBackground(_Model):
    type: Literal["gradient"]
    direction: Literal["to-bottom", "to-right", "to-bottom-right", "radial"]
    stops: list[GradientStop] = Field(min_length=MIN_GRADIENT_STOPS, max_length=MAX_GRADIENT_STOPS)

    def to_fill(self) -> GradientFill:
        return GradientFill(
            direction=self.direction,
            stops=tuple(FillStop(color=stop.color, position=stop.position) for stop in self.stops),
        )


class ImageBackground(_Model):
    type: Literal["image"]
    path: str = Field(min_length=1)

    @field_validator("path")
    @classmethod
    def relative_path(cls, value: str) -> str:
        if not value.strip():
            raise ValueError("path must be a non-empty string")
        if value.startswith(("/", "\\")) or (len(value) > 1 and value[1] == ":"):
            raise ValueError("path must be a relative path, not absolute")
        if ".." in value.replace("\\", "/").split("/"):
            raise ValueError('path cannot contain ".." (path traversal)')
        return value


Background = Annotated[
    Union[SolidBackground, GradientBackground, ImageBackground],
    Field(discriminator="type"),
]


class Canvas(_Model):
    width: Dimension
    height: Dimension


class PosterTemplate(_Model):
    id: str = Field(min_length=1)
    name: str = Field(min_length=1)
    description: str
    version: str = Field(pattern=VERSION_PATTERN)
    canvas: Canvas
    background: Background
    photos: list[PhotoField] = Field(min_length=1)
    text: list[TextField] = Field(default_factory=list)

    @model_validator(mode="after")
    def unique_field_ids(self) -> "PosterTemplate":
        for kind, fields in (("photos", self.photos), ("text", self.text)):
            seen: set[str] = set()
            for item in fields:
                if item.id in seen:
                    raise ValueError(f"duplicate {kind} field id: {item.id}")
                seen.add(item.id)
        return self

    @property
    def required_fields(self) -> list[str]:
        return [item.id for item in self.text]

    def summary(self) -> dict[str, str]:
        return {"id": self.id, "name": self.name, "description": self.description}


@dataclass(frozen=True, slots=True)
class TemplateIssue:
    path: str
    message: str

    def __str__(self) -> str:
        return f"{self.path}: {self.message}" if self.path else self.message


@dataclass(slots=True)
class TemplateValidationResult:
    template: PosterTemplate | None = None
    issues: list[TemplateIssue] = field(default_factory=list)

    @property
    def valid(self) -> bool:
        return self.template is not None and not self.issues


def _issues_from_error(error: ValidationError) -> list[TemplateIssue]:
    issues: list[TemplateIssue] = []
    for item in error.errors(include_url=False):
        path = ".".join(str(part) for part in item.get("loc", ()))
        message = str(item.get("msg") or "invalid value")
        issues.append(TemplateIssue(path=path, message=message))
    return issues


def validate_template(candidate: Any) -> TemplateValidationResult:
    """Validate a template mapping (or model), collecting every issue at once."""
    if isinstance(candidate, PosterTemplate):
        candidate = candidate.model_dump(by_alias=True, exclude_none=True)
    if not isinstance(candidate, dict):
        return TemplateValidationResult(issues=[TemplateIssue(path="", message="Template must be an object")])
    try:
        template = PosterTemplate.model_validate(candidate)
    except ValidationError as exc:
        return TemplateValidationResult(issues=_issues_from_error(exc))
    return TemplateValidationResult(template=template)


def is_valid_template(candidate: Any) -> bool:
    return validate_template(candidate).valid
