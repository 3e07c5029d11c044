"""TOML templates shipped inside the package for ``config init`` commands."""

from __future__ import annotations

from dataclasses import dataclass
from importlib import resources
from pathlib import Path
from typing import Iterable

from .config import TomlConfigError, write_toml_template

__all__ = [
    "ConfigTemplate",
    "ConfigTemplateError",
    "get_template",
    "iter_templates",
]


class ConfigTemplateError(RuntimeError):
    """A template is unknown, unreadable or cannot be written."""


@dataclass(frozen=True)
class ConfigTemplate:
    name: str
    filename: str
    description: str
    package: str

    def read_text(self) -> str:
        resource = resources.files(self.package) / self.filename
        try:
            return resource.read_text(encoding="utf-8")
        except (OSError, ModuleNotFoundError) as exc:
            raise ConfigTemplateError(
                f"Template '{self.name}' ({self.filename}) is missing from "
                f"{self.package}."
            ) from exc

    def write(
        self, path: Path, *, overwrite: bool = False, mode: int = 0o600
    ) -> Path:
        """Copy the template to ``path`` and return it."""

        text = self.read_text()
        try:
            return write_toml_template(
                path, template=text, overwrite=overwrite, mode=mode
            )
        except TomlConfigError as exc:
            raise ConfigTemplateError(str(exc)) from exc


_CONVERT_PACKAGE = "preserve_utils.convert"

_TEMPLATES = {
    template.name: template
    for template in (
        ConfigTemplate(
            name="convert",
            filename="template.toml",
            description="Run defaults for `preserve convert`.",
            package=_CONVERT_PACKAGE,
        ),
        ConfigTemplate(
            name="conversion_settings",
            filename="conversion_settings.toml",
            description=(
                "Target format per file class and format; seeds the format "
                "resolution table."
            ),
            package=_CONVERT_PACKAGE,
        ),
    )
}


def get_template(name: str) -> ConfigTemplate:
    template = _TEMPLATES.get(name)
    if template is None:
        raise ConfigTemplateError(f"Unknown config template '{name}'.")
    return template


def iter_templates() -> Iterable[ConfigTemplate]:
    return tuple(_TEMPLATES.values())
