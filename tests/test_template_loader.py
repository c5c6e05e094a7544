import copy
import json
from pathlib import Path

import pytest
import yaml

from posterforge.errors import InvalidInputError, TemplateNotFoundError, TemplateValidationError
from posterforge.template_loader import (
    TemplateRegistry,
    _load_builtin,
    load_builtin_template,
    load_template_file,
)


def test_register_twice_keeps_one_listing_entry() -> None:
    registry = TemplateRegistry()
    template = load_builtin_template("classic")

    registry.register_template(template)
    registry.register_template(template)

    assert registry.list_templates() == [
        {"id": "classic", "name": "Classic Tournament", "description": template.description}
    ]


def test_register_replaces_by_id() -> None:
    registry = TemplateRegistry()
    raw = copy.deepcopy(_load_builtin("classic"))
    registry.register_template(raw)
    raw["name"] = "Classic v2"
    registry.register_template(raw)

    assert registry.load_template("classic").name == "Classic v2"
    assert len(registry.list_templates()) == 1


def test_load_unknown_template_raises_not_found() -> None:
    registry = TemplateRegistry()
    with pytest.raises(TemplateNotFoundError) as excinfo:
        registry.load_template("nope")
    assert excinfo.value.status_code == 404
    assert excinfo.value.code == "TEMPLATE_NOT_FOUND"


def test_register_invalid_mapping_raises_with_issues() -> None:
    raw = copy.deepcopy(_load_builtin("classic"))
    raw["canvas"]["width"] = 0
    raw["version"] = "one"

    with pytest.raises(TemplateValidationError) as excinfo:
        TemplateRegistry().register_template(raw)

    assert len(excinfo.value.issues) >= 2
    assert excinfo.value.to_dict()["code"] == "TEMPLATE_VALIDATION_ERROR"


def test_bundled_registration_and_clear() -> None:
    registry = TemplateRegistry()

    assert registry.register_bundled_templates() == ["classic", "modern"]
    assert registry.is_template_registered("modern")

    registry.clear_templates()
    assert registry.list_templates() == []
    assert not registry.is_template_registered("classic")


def test_register_directory_reads_yaml_and_json(tmp_path: Path) -> None:
    raw = copy.deepcopy(_load_builtin("classic"))
    raw["id"] = "from-yaml"
    (tmp_path / "a.yaml").write_text(yaml.safe_dump(raw), encoding="utf-8")
    raw["id"] = "from-json"
    (tmp_path / "b.json").write_text(json.dumps(raw), encoding="utf-8")
    (tmp_path / "notes.txt").write_text("ignored", encoding="utf-8")

    registry = TemplateRegistry()
    assert registry.register_directory(tmp_path) == ["from-yaml", "from-json"]
    assert {item["id"] for item in registry.list_templates()} == {"from-yaml", "from-json"}


def test_load_template_file_errors(tmp_path: Path) -> None:
    with pytest.raises(InvalidInputError):
        load_template_file(tmp_path / "missing.yaml")

    broken = tmp_path / "broken.yaml"
    broken.write_text("- just\n- a list\n", encoding="utf-8")
    with pytest.raises(InvalidInputError):
        load_template_file(broken)

    with pytest.raises(InvalidInputError):
        TemplateRegistry().register_directory(tmp_path / "nowhere")
