from __future__ import annotations

from typing import Any


class PosterError(Exception):
    """Base error for the poster engine.

    Every error carries a machine-readable ``code`` and an HTTP-style
    ``status_code`` so the calling layer can map it without inspecting types.
    """

    code = "INTERNAL_ERROR"
    status_code = 500

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message

    def to_dict(self) -> dict[str, Any]:
        return {
            "name": type(self).__name__,
            "message": self.message,
            "code": self.code,
            "status_code": self.status_code,
        }


class InvalidInputError(PosterError):
    code = "INVALID_INPUT"
    status_code = 400

    def __init__(self, message: str, fields: list[str] | None = None) -> None:
        super().__init__(message)
        self.fields = list(fields or [])

    def to_dict(self) -> dict[str, Any]:
        payload = super().to_dict()
        if self.fields:
            payload["fields"] = list(self.fields)
        return payload


class TemplateNotFoundError(PosterError):
    code = "TEMPLATE_NOT_FOUND"
    status_code = 404

    def __init__(self, template_id: str) -> None:
        super().__init__(f"Template not found: {template_id}")
        self.template_id = template_id


class TemplateValidationError(PosterError):
    code = "TEMPLATE_VALIDATION_ERROR"
    status_code = 400

    def __init__(self, message: str, issues: list[Any]) -> None:
        super().__init__(message)
        self.issues = list(issues)

    def to_dict(self) -> dict[str, Any]:
        payload = super().to_dict()
        payload["issues"] = [str(issue) for issue in self.issues]
        return payload


class FontLoadError(PosterError):
    code = "FONT_LOAD_ERROR"
    status_code = 500

    def __init__(self, font_name: str, reason: str) -> None:
        super().__init__(f"Failed to load font '{font_name}': {reason}")
        self.font_name = font_name
        self.reason = reason


class ImageProcessingError(PosterError):
    code = "IMAGE_PROCESSING_ERROR"
    status_code = 500
