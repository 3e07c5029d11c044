"""Run configuration loader for the convert command."""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Mapping, MutableMapping, Optional

from preserve_utils.core import config as core_config
from preserve_utils.core import workspace as workspace_mod

from .manager import DEFAULT_MAX_WORKERS

CONFIG_FILENAME = "convert.toml"
CONFIG_ENV = "PRESERVE_CONVERT_CONFIG"
ENV_PREFIX = "PRESERVE_CONVERT_"

_DEFAULT_TIMEOUT = 600.0
_DEFAULT_REPORT = "conversion_report.json"
_DEFAULT_ARCHIVE = "converted.zip"
_DEFAULT_LOG_LEVEL = "INFO"
_TRUE = {"1", "true", "yes", "on"}
_FALSE = {"0", "false", "no", "off"}


class PreserveConfigError(RuntimeError):
    """Raised when configuration parsing or validation fails."""


@dataclass(frozen=True)
class ConvertConfig:
    """Fully resolved configuration for a conversion run.

    ``settings_file`` is ``None`` when the packaged conversion settings are
    used. ``timeout`` is ``None`` when converter calls may run indefinitely.
    """

    output_dir: Path
    settings_file: Optional[Path]
    report_file: Path
    max_workers: int
    timeout: Optional[float]
    verify: bool
    archive_enabled: bool
    archive_file: Path
    log_level: str


@dataclass(frozen=True)
class ConfigOverrides:
    """CLI-sourced overrides applied on top of file/env options."""

    output_dir: Optional[Path] = None
    settings_file: Optional[Path] = None
    report_file: Optional[Path] = None
    max_workers: Optional[int] = None
    timeout: Optional[float] = None
    verify: Optional[bool] = None
    archive_enabled: Optional[bool] = None
    log_level: Optional[str] = None


@dataclass(frozen=True)
class LoadResult:
    config: ConvertConfig
    layout: workspace_mod.WorkspaceLayout
    config_path: Optional[Path]


def load_config(
    *,
    config_path: Optional[Path] = None,
    overrides: Optional[ConfigOverrides] = None,
    env: Optional[Mapping[str, str]] = None,
    workspace_path: Optional[Path] = None,
) -> LoadResult:
    """Load configuration applying precedence CLI > env > TOML > defaults."""

    overrides = overrides or ConfigOverrides()
    env_map = os.environ if env is None else env

    try:
        layout = workspace_mod.ensure_workspace(
            env=env_map, path=workspace_path
        )
    except workspace_mod.WorkspaceError as exc:
        raise PreserveConfigError(str(exc)) from exc
    default_path = layout.path_for("config") / CONFIG_FILENAME

    requested_path = _resolve_config_path(
        config_path=config_path,
        env_map=env_map,
        default_path=default_path,
    )

    options = _default_table()
    loaded_path: Optional[Path] = None
    if requested_path.exists():
        loaded_path = requested_path
        try:
            parsed = core_config.load_toml(requested_path)
            core_config.merge_defaults(options, parsed)
        except core_config.TomlConfigError as exc:
            raise PreserveConfigError(str(exc)) from exc
    elif config_path is not None or _env_string(env_map, "CONFIG"):
        raise PreserveConfigError(f"Config file not found: {requested_path}")

    paths = options["paths"]
    execution = options["execution"]
    archive = options["archive"]

    output_dir = _resolve_path(
        _pick_first(
            overrides.output_dir,
            _env_path(env_map, "OUTPUT_DIR"),
            _coerce_optional_path(paths["output_dir"], "paths.output_dir"),
        ),
        base=layout.home,
        default=layout.path_for("converted"),
    )
    settings_candidate = _pick_first(
        overrides.settings_file,
        _env_path(env_map, "SETTINGS_FILE"),
        _coerce_optional_path(paths["settings_file"], "paths.settings_file"),
    )
    settings_file = (
        _resolve_path(settings_candidate, base=layout.path_for("config"))
        if settings_candidate is not None
        else None
    )
    report_file = _resolve_path(
        _pick_first(
            overrides.report_file,
            _env_path(env_map, "REPORT_FILE"),
            _coerce_optional_path(paths["report_file"], "paths.report_file"),
        ),
        base=layout.path_for("reports"),
        default=layout.path_for("reports") / _DEFAULT_REPORT,
    )

    max_workers = _positive_int(
        _pick_first(
            overrides.max_workers,
            _env_int(env_map, "MAX_WORKERS"),
            execution["max_workers"],
        ),
        "execution.max_workers",
    )
    timeout = _timeout(
        _pick_first(
            overrides.timeout,
            _env_float(env_map, "TIMEOUT"),
            execution["timeout"],
        )
    )
    verify = _boolean(
        _pick_first(
            overrides.verify,
            _env_bool(env_map, "VERIFY"),
            execution["verify"],
        ),
        "execution.verify",
    )
    archive_enabled = _boolean(
        _pick_first(
            overrides.archive_enabled,
            _env_bool(env_map, "ARCHIVE"),
            archive["enabled"],
        ),
        "archive.enabled",
    )
    archive_name = archive["filename"]
    if not isinstance(archive_name, str) or not archive_name.strip():
        raise PreserveConfigError(
            "archive.filename must be a non-empty string."
        )
    archive_file = _resolve_path(
        Path(archive_name.strip()), base=layout.path_for("reports")
    )
    log_level = _log_level(
        _pick_first(
            overrides.log_level,
            _env_string(env_map, "LOG_LEVEL"),
            options["logging"]["level"],
        )
    )

    config = ConvertConfig(
        output_dir=output_dir,
        settings_file=settings_file,
        report_file=report_file,
        max_workers=max_workers,
        timeout=timeout,
        verify=verify,
        archive_enabled=archive_enabled,
        archive_file=archive_file,
        log_level=log_level,
    )
    return LoadResult(config=config, layout=layout, config_path=loaded_path)


def _default_table() -> MutableMapping[str, MutableMapping[str, Any]]:
    return {
        "paths": {
            "output_dir": "",
            "settings_file": "",
            "report_file": "",
        },
        "execution": {
            "max_workers": DEFAULT_MAX_WORKERS,
            "timeout": _DEFAULT_TIMEOUT,
            "verify": False,
        },
        "archive": {"enabled": False, "filename": _DEFAULT_ARCHIVE},
        "logging": {"level": _DEFAULT_LOG_LEVEL},
    }


def _resolve_config_path(
    *,
    config_path: Optional[Path],
    env_map: Mapping[str, str],
    default_path: Path,
) -> Path:
    if config_path is not None:
        return config_path.expanduser()
    env_candidate = env_map.get(CONFIG_ENV)
    if env_candidate and env_candidate.strip():
        return Path(env_candidate.strip()).expanduser()
    return default_path


def _coerce_optional_path(value: object, key: str) -> Optional[Path]:
    if value is None:
        return None
    if isinstance(value, Path):
        return value
    if isinstance(value, str):
        raw = value.strip()
        return Path(raw) if raw else None
    raise PreserveConfigError(f"{key} must be a string when provided.")


def _resolve_path(
    candidate: Optional[Path],
    *,
    base: Path,
    default: Optional[Path] = None,
) -> Path:
    if candidate is None:
        if default is None:
            raise PreserveConfigError("A path value is required.")
        return default
    expanded = candidate.expanduser()
    if not expanded.is_absolute():
        return (base / expanded).resolve()
    return expanded.resolve()


def _positive_int(value: object, key: str) -> int:
    if isinstance(value, bool) or not isinstance(value, int):
        raise PreserveConfigError(f"{key} must be an integer.")
    if value < 1:
        raise PreserveConfigError(f"{key} must be at least 1.")
    return value


def _timeout(value: object) -> Optional[float]:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise PreserveConfigError("execution.timeout must be a number.")
    if value < 0:
        raise PreserveConfigError("execution.timeout must not be negative.")
    # Zero disables the per-invocation timeout.
    return float(value) if value else None


def _boolean(value: object, key: str) -> bool:
    if not isinstance(value, bool):
        raise PreserveConfigError(f"{key} must be true or false.")
    return value


def _log_level(value: object) -> str:
    if not isinstance(value, str) or not value.strip():
        raise PreserveConfigError(
            "logging.level must be a non-empty string."
        )
    return value.strip().upper()


def _env_string(env_map: Mapping[str, str], key: str) -> Optional[str]:
    raw = env_map.get(f"{ENV_PREFIX}{key}")
    if raw is None:
        return None
    value = raw.strip()
    return value or None


def _env_path(env_map: Mapping[str, str], key: str) -> Optional[Path]:
    raw = _env_string(env_map, key)
    return Path(raw).expanduser() if raw is not None else None


def _env_int(env_map: Mapping[str, str], key: str) -> Optional[int]:
    raw = _env_string(env_map, key)
    if raw is None:
        return None
    try:
        return int(raw)
    except ValueError as exc:
        raise PreserveConfigError(
            f"{ENV_PREFIX}{key} must be an integer, got '{raw}'."
        ) from exc


def _env_float(env_map: Mapping[str, str], key: str) -> Optional[float]:
    raw = _env_string(env_map, key)
    if raw is None:
        return None
    try:
        return float(raw)
    except ValueError as exc:
        raise PreserveConfigError(
            f"{ENV_PREFIX}{key} must be a number, got '{raw}'."
        ) from exc


def _env_bool(env_map: Mapping[str, str], key: str) -> Optional[bool]:
    raw = _env_string(env_map, key)
    if raw is None:
        return None
    lowered = raw.lower()
    if lowered in _TRUE:
        return True
    if lowered in _FALSE:
        return False
    raise PreserveConfigError(
        f"{ENV_PREFIX}{key} must be a boolean, got '{raw}'."
    )


def _pick_first(*candidates: Any) -> Any:
    for candidate in candidates:
        if candidate is not None:
            return candidate
    return None


__all__ = [
    "CONFIG_ENV",
    "CONFIG_FILENAME",
    "ConfigOverrides",
    "ConvertConfig",
    "ENV_PREFIX",
    "LoadResult",
    "PreserveConfigError",
    "load_config",
]
