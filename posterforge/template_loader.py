from __future__ import annotations

import json
import logging
import threading
from importlib import resources
from pathlib import Path
from typing import Any, Mapping

import yaml

from posterforge.constants import BUNDLED_TEMPLATES
from posterforge.errors import InvalidInputError, TemplateNotFoundError, TemplateValidationError
from posterforge.template_schema import PosterTemplate, validate_template

_log = logging.getLogger(__name__)

TEMPLATE_SUFFIXES = (".yaml", ".yml", ".json")


def list_builtin_templates() -> list[str]:
    files = resources.files("posterforge.templates")
    names = []
    for item in files.iterdir():
        if item.name.endswith(TEMPLATE_SUFFIXES):
            names.append(Path(item.name).stem)
    return sorted(set(names))


def _parse(text: str, suffix: str, label: str) -> dict[str, Any]:
    try:
        if suffix == ".json":
            data = json.loads(text)
        else:
            data = yaml.safe_load(text)
    except (json.JSONDecodeError, yaml.YAMLError) as exc:
        raise InvalidInputError(f"Unable to parse template file {label}: {exc}") from exc
    if not isinstance(data, dict):
        raise InvalidInputError(f"template file is not a mapping: {label}")
    return data


def read_template_file(path: Path) -> dict[str, Any]:
    """Parse a YAML/JSON template file into a raw mapping (not yet validated)."""
    try:
        text = path.read_text(encoding="utf-8")
    except OSError as exc:
        raise InvalidInputError(f"Unable to read template file {path}: {exc}") from exc
    return _parse(text, path.suffix.lower(), str(path))


def _load_builtin(name: str) -> dict[str, Any]:
    pkg = resources.files("posterforge.templates")
    for suffix in TEMPLATE_SUFFIXES:
        candidate = pkg / f"{name}{suffix}"
        if candidate.is_file():
            return _parse(candidate.read_text(encoding="utf-8"), suffix, f"{name}{suffix}")
    raise TemplateNotFoundError(name)


def _validated(candidate: Mapping[str, Any], label: str) -> PosterTemplate:
    result = validate_template(dict(candidate))
    if result.template is None:
        raise TemplateValidationError(f"Invalid template {label}", result.issues)
    return result.template


def load_template_file(path: str | Path) -> PosterTemplate:
    """Read and validate a single YAML/JSON template file."""
    file_path = Path(path)
    if not file_path.is_file():
        raise InvalidInputError(f"Template file not found: {file_path}")
    return _validated(read_template_file(file_path), str(file_path))


def load_builtin_template(name: str) -> PosterTemplate:
    return _validated(_load_builtin(name), name)


class TemplateRegistry:
    """Templates keyed by id. Registration overwrites; lookups are O(1)."""

    def __init__(self) -> None:
        self._templates: dict[str, PosterTemplate] = {}
        self._lock = threading.RLock()

    def register_template(self, template: PosterTemplate | Mapping[str, Any]) -> PosterTemplate:
        if not isinstance(template, PosterTemplate):
            if not isinstance(template, Mapping):
                raise InvalidInputError(f"Unsupported template type: {type(template).__name__}")
            template = _validated(template, str(template.get("id") or "<unnamed>"))
        with self._lock:
            replaced = template.id in self._templates
            self._templates[template.id] = template
        _log.info("template registered id=%s replaced=%s", template.id, replaced)
        return template

    def load_template(self, template_id: str) -> PosterTemplate:
        with self._lock:
            template = self._templates.get(template_id)
        if template is None:
            raise TemplateNotFoundError(template_id)
        return template

    def is_template_registered(self, template_id: str) -> bool:
        with self._lock:
            return template_id in self._templates

    def list_templates(self) -> list[dict[str, str]]:
        with self._lock:
            return [template.summary() for template in self._templates.values()]

    def clear_templates(self) -> None:
        with self._lock:
            self._templates.clear()

    def register_bundled_templates(self) -> list[str]:
        registered = []
        for name in BUNDLED_TEMPLATES:
            registered.append(self.register_template(load_builtin_template(name)).id)
        return registered

    def register_directory(self, directory: str | Path) -> list[str]:
        """Register every template file in ``directory`` (non-recursive, sorted)."""
        root = Path(directory)
        if not root.is_dir():
            raise InvalidInputError(f"Template directory not found: {root}")
        registered = []
        for path in sorted(root.iterdir()):
            if path.is_file() and path.suffix.lower() in TEMPLATE_SUFFIXES:
                registered.append(self.register_template(load_template_file(path)).id)
        return registered
