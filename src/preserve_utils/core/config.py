"""TOML reading, validation and template writing for preserve-utils."""

from __future__ import annotations

import tomllib
from pathlib import Path
from typing import Any, Mapping, MutableMapping

__all__ = [
    "TomlConfigError",
    "load_toml",
    "parse_toml",
    "merge_defaults",
    "write_toml_template",
]


class TomlConfigError(RuntimeError):
    """A TOML document is missing, malformed or carries unknown keys."""


def parse_toml(
    text: str, *, source: str = "<string>"
) -> Mapping[str, Any]:
    """Parse TOML ``text``; ``source`` names it in error messages."""

    try:
        return tomllib.loads(text)
    except tomllib.TOMLDecodeError as exc:
        raise TomlConfigError(f"Invalid TOML in {source}: {exc}") from exc


def load_toml(path: Path) -> Mapping[str, Any]:
    try:
        text = path.read_text(encoding="utf-8")
    except FileNotFoundError as exc:
        raise TomlConfigError(f"Config file not found: {path}") from exc
    except (OSError, UnicodeDecodeError) as exc:
        raise TomlConfigError(f"Could not read {path}: {exc}") from exc
    return parse_toml(text, source=str(path))


def merge_defaults(
    base: MutableMapping[str, Any],
    override: Mapping[str, Any],
    *,
    path: str = "",
) -> None:
    """Overlay ``override`` onto the defaults in ``base``, in place.

    Every key must already exist in ``base``, so typos in a config file are
    reported instead of ignored. Nested tables merge key by key; any other
    value replaces the default.
    """

    for key, value in override.items():
        dotted = path + key
        if key not in base:
            raise TomlConfigError(f"Unknown configuration key '{dotted}'.")
        default = base[key]
        if not isinstance(default, MutableMapping):
            base[key] = value
        elif isinstance(value, Mapping):
            merge_defaults(default, value, path=dotted + ".")
        else:
            raise TomlConfigError(
                f"Expected table for '{dotted}', found "
                f"{type(value).__name__}."
            )


def write_toml_template(
    path: Path,
    *,
    template: str,
    overwrite: bool = False,
    mode: int = 0o600,
) -> Path:
    """Write ``template`` to ``path``; an existing file needs ``overwrite``."""

    if path.exists() and not overwrite:
        raise TomlConfigError(f"Config already exists: {path}")
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(template, encoding="utf-8")
    try:
        path.chmod(mode)
    except PermissionError:  # pragma: no cover - depends on filesystem
        pass
    return path
