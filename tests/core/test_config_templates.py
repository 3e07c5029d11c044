from __future__ import annotations

from pathlib import Path

import pytest

from preserve_utils.core import config_templates
from preserve_utils.core.config import parse_toml
from preserve_utils.core.config_templates import (
    ConfigTemplate,
    ConfigTemplateError,
)


def test_convert_template_round_trips_to_disk(tmp_path: Path) -> None:
    template = config_templates.get_template("convert")
    assert isinstance(template, ConfigTemplate)

    contents = template.read_text()
    assert "[execution]" in contents
    assert "max_workers" in contents

    target = tmp_path / "convert.toml"
    assert template.write(target) == target
    assert target.read_text(encoding="utf-8") == contents
    with pytest.raises(ConfigTemplateError):
        template.write(target)
    assert template.write(target, overwrite=True) == target


def test_packaged_templates_are_valid_toml() -> None:
    for template in config_templates.iter_templates():
        parsed = parse_toml(template.read_text(), source=template.filename)
        assert parsed


def test_iter_templates_lists_convert_and_settings() -> None:
    names = {template.name for template in config_templates.iter_templates()}
    assert names == {"convert", "conversion_settings"}


@pytest.mark.parametrize("unknown", ["missing", "", "convert_markdown"])
def test_get_template_unknown_raises(unknown: str) -> None:
    with pytest.raises(ConfigTemplateError):
        config_templates.get_template(unknown)


def test_unreadable_template_raises() -> None:
    template = ConfigTemplate(
        name="ghost",
        filename="ghost.toml",
        description="",
        package="preserve_utils.convert",
    )

    with pytest.raises(ConfigTemplateError, match="ghost"):
        template.read_text()
