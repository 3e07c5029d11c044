"""Load persisted conversion settings into resolution-table entries."""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Any, Mapping, Optional

from ..core import (
    ConfigTemplateError,
    TomlConfigError,
    get_template,
    load_toml,
    parse_toml,
)
from .resolution import (
    FolderOverride,
    FormatResolutionTable,
    SettingsEntry,
    folder_key,
)

SETTINGS_TEMPLATE = "conversion_settings"


class SettingsError(RuntimeError):
    """Raised when the conversion settings file is missing or malformed."""


@dataclass(frozen=True)
class ConversionSettings:
    """Parsed settings: class/format rows plus per-folder overrides."""

    entries: tuple[SettingsEntry, ...]
    folders: tuple[FolderOverride, ...] = ()


def load_settings(path: Optional[Path] = None) -> ConversionSettings:
    """Read settings from ``path`` or the packaged defaults."""

    try:
        if path is None:
            template = get_template(SETTINGS_TEMPLATE)
            data = parse_toml(template.read_text(), source=template.filename)
            source = template.filename
        else:
            data = load_toml(path)
            source = str(path)
    except (TomlConfigError, ConfigTemplateError) as exc:
        raise SettingsError(str(exc)) from exc
    return parse_settings(data, source=source)


def parse_settings(
    data: Mapping[str, Any], *, source: str = "settings"
) -> ConversionSettings:
    classes = data.get("classes")
    if not isinstance(classes, list) or not classes:
        raise SettingsError(f"{source}: expected a non-empty [[classes]] list")

    entries: list[SettingsEntry] = []
    seen_classes: set[str] = set()
    for index, raw in enumerate(classes):
        where = f"{source}: classes[{index}]"
        if not isinstance(raw, Mapping):
            raise SettingsError(f"{where} must be a table")
        name = _require_string(raw, "name", where)
        default = _require_string(raw, "default", where)
        if name in seen_classes:
            raise SettingsError(f"{where}: duplicate class '{name}'")
        seen_classes.add(name)
        entries.append(SettingsEntry(class_name=name, class_default=default))

        formats = raw.get("formats", [])
        if not isinstance(formats, list):
            raise SettingsError(f"{where}.formats must be an array of tables")
        for position, fmt_raw in enumerate(formats):
            entries.append(
                _parse_format(
                    fmt_raw,
                    class_name=name,
                    class_default=default,
                    where=f"{where}.formats[{position}]",
                )
            )
    return ConversionSettings(
        entries=tuple(entries),
        folders=_parse_folders(data.get("folders", []), source=source),
    )


def _parse_format(
    raw: Any, *, class_name: str, class_default: str, where: str
) -> SettingsEntry:
    if not isinstance(raw, Mapping):
        raise SettingsError(f"{where} must be a table")
    name = _require_string(raw, "name", where)
    codes = _require_codes(raw, where, allow_empty=True)
    default = raw.get("default")
    if default is not None and (not isinstance(default, str) or not default):
        raise SettingsError(f"{where}.default must be a non-empty string")
    keep = raw.get("keep", False)
    if not isinstance(keep, bool):
        raise SettingsError(f"{where}.keep must be true or false")
    return SettingsEntry(
        class_name=class_name,
        class_default=class_default,
        format_name=name,
        format_default=default,
        format_codes=codes,
        keep_original=keep,
    )


def _parse_folders(raw: Any, *, source: str) -> tuple[FolderOverride, ...]:
    if not isinstance(raw, list):
        raise SettingsError(f"{source}: folders must be an array of tables")
    folders: list[FolderOverride] = []
    seen: set[str] = set()
    for index, item in enumerate(raw):
        where = f"{source}: folders[{index}]"
        if not isinstance(item, Mapping):
            raise SettingsError(f"{where} must be a table")
        path = item.get("path")
        if not isinstance(path, str):
            raise SettingsError(f"{where}.path must be a string")
        key = folder_key(path)
        if key in seen:
            raise SettingsError(f"{where}: duplicate folder '{path}'")
        seen.add(key)
        folders.append(
            FolderOverride(
                folder=key,
                codes=frozenset(_require_codes(item, where)),
                target=_require_string(item, "default", where),
            )
        )
    return tuple(folders)


def _require_codes(
    raw: Mapping[str, Any], where: str, *, allow_empty: bool = False
) -> tuple[str, ...]:
    codes = raw.get("codes", [])
    if (
        not isinstance(codes, list)
        or (not codes and not allow_empty)
        or not all(isinstance(code, str) and code for code in codes)
    ):
        raise SettingsError(f"{where}.codes must be a list of format codes")
    return tuple(codes)


def _require_string(raw: Mapping[str, Any], key: str, where: str) -> str:
    value = raw.get(key)
    if not isinstance(value, str) or not value.strip():
        raise SettingsError(f"{where}.{key} must be a non-empty string")
    return value.strip()


def seeded_table(
    path: Optional[Path] = None,
    *,
    settings: Optional[ConversionSettings] = None,
) -> FormatResolutionTable:
    """Return a new table seeded from ``settings`` or the settings file."""

    loaded = settings if settings is not None else load_settings(path)
    table = FormatResolutionTable()
    table.seed(loaded.entries, folders=loaded.folders)
    return table


__all__ = [
    "ConversionSettings",
    "SETTINGS_TEMPLATE",
    "SettingsError",
    "load_settings",
    "parse_settings",
    "seeded_table",
]
