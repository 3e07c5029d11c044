"""JSON-lines logging for preserve-utils commands.

Each command configures one namespaced logger (``preserve_utils.convert``)
with a rotating file in the workspace ``logs`` directory. Engine modules log
through child loggers and attach structured fields with ``extra=``; those
fields end up under the ``extra`` key of each JSON line.
"""

from __future__ import annotations

import json
import logging
import sys
import tempfile
from datetime import datetime, timezone
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Any, Optional

__all__ = [
    "JsonLogFormatter",
    "configure_logger",
]

_FILE_MARKER = "_preserve_utils_file"
_CONSOLE_MARKER = "_preserve_utils_console"
_FALLBACK_DIRNAME = "preserve-utils-logs"
_CONSOLE_FORMAT = "%(levelname)s [%(threadName)s] %(message)s"

# Attributes every LogRecord carries; anything else came in through extra=.
_STANDARD_ATTRS = frozenset(
    vars(logging.LogRecord("", logging.INFO, "", 0, "", None, None))
) | {"message", "asctime", "taskName"}


class JsonLogFormatter(logging.Formatter):
    """One JSON object per record, with ``extra=`` fields nested."""

    def format(self, record: logging.LogRecord) -> str:  # noqa: D401
        created = datetime.fromtimestamp(record.created, tz=timezone.utc)
        document: dict[str, Any] = {
            "timestamp": created.isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "thread": record.threadName,
            "message": record.getMessage(),
        }
        fields = {
            key: value
            for key, value in vars(record).items()
            if key not in _STANDARD_ATTRS
        }
        if fields:
            document["extra"] = fields
        if record.exc_info:
            document["exception"] = self.formatException(record.exc_info)
        if record.stack_info:
            document["stack"] = record.stack_info
        return json.dumps(document, ensure_ascii=True, default=_json_default)


def _json_default(value: Any) -> Any:
    if isinstance(value, Path):
        return str(value)
    if isinstance(value, (set, frozenset)):
        return sorted(value, key=str)
    return repr(value)


def configure_logger(
    name: str,
    *,
    log_dir: Path,
    level: str = "INFO",
    verbose: bool = False,
    max_bytes: int = 5 * 1024 * 1024,
    backup_count: int = 3,
    filename: Optional[str] = None,
) -> tuple[logging.Logger, Path]:
    """Attach a JSON log file to ``name`` and return ``(logger, log_path)``.

    The file receives records at ``level`` (or everything when ``verbose``).
    ``verbose`` also mirrors records to stderr. Calling this again for the
    same logger reuses its handlers instead of stacking new ones. When
    ``log_dir`` cannot be written, the log lands in a temp directory and the
    returned path says where.
    """

    logger = logging.getLogger(name)
    logger.setLevel(logging.DEBUG)
    logger.propagate = False

    log_name = filename or name.rsplit(".", 1)[-1] + ".log"
    handler = _find_handler(logger, _FILE_MARKER)
    if handler is None:
        handler = _open_file_handler(
            _touch_log_file(_writable_dir(log_dir), log_name),
            max_bytes=max_bytes,
            backup_count=backup_count,
        )
        logger.addHandler(handler)
    else:
        target = _touch_log_file(_writable_dir(log_dir), log_name)
        handler.baseFilename = str(target)  # type: ignore[attr-defined]
    handler.setLevel(logging.DEBUG if verbose else _level_number(level))

    console = _find_handler(logger, _CONSOLE_MARKER)
    if verbose:
        if console is None:
            console = logging.StreamHandler(stream=sys.stderr)
            console.setFormatter(logging.Formatter(_CONSOLE_FORMAT))
            setattr(console, _CONSOLE_MARKER, True)
            logger.addHandler(console)
        console.setLevel(logging.DEBUG)
    elif console is not None:
        logger.removeHandler(console)
        console.close()

    return logger, Path(handler.baseFilename)  # type: ignore[attr-defined]


def _find_handler(
    logger: logging.Logger, marker: str
) -> Optional[logging.Handler]:
    for handler in logger.handlers:
        if getattr(handler, marker, False):
            return handler
    return None


def _level_number(level: str) -> int:
    value = logging.getLevelName(level.upper())
    return value if isinstance(value, int) else logging.INFO


def _open_file_handler(
    path: Path, *, max_bytes: int, backup_count: int
) -> RotatingFileHandler:
    try:
        handler = RotatingFileHandler(
            path,
            maxBytes=max_bytes,
            backupCount=backup_count,
            encoding="utf-8",
        )
    except PermissionError:
        fallback = _touch_log_file(
            _writable_dir(_fallback_log_dir()), path.name
        )
        handler = RotatingFileHandler(
            fallback,
            maxBytes=max_bytes,
            backupCount=backup_count,
            encoding="utf-8",
        )
    handler.setFormatter(JsonLogFormatter())
    setattr(handler, _FILE_MARKER, True)
    return handler


def _writable_dir(log_dir: Path) -> Path:
    try:
        log_dir.mkdir(parents=True, exist_ok=True)
    except PermissionError:
        log_dir = _fallback_log_dir()
        log_dir.mkdir(parents=True, exist_ok=True)
    _restrict(log_dir, 0o700)
    return log_dir


def _touch_log_file(log_dir: Path, filename: str) -> Path:
    path = log_dir / filename
    try:
        path.touch(exist_ok=True)
    except PermissionError:
        path = _writable_dir(_fallback_log_dir()) / filename
        path.touch(exist_ok=True)
    _restrict(path, 0o600)
    return path


def _restrict(path: Path, mode: int) -> None:
    try:
        path.chmod(mode)
    except PermissionError:  # pragma: no cover - depends on filesystem
        pass


def _fallback_log_dir() -> Path:
    return Path(tempfile.gettempdir()) / _FALLBACK_DIRNAME
