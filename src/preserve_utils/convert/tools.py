"""Helpers for driving external conversion tools."""

from __future__ import annotations

import logging
import subprocess
import sys
from pathlib import Path
from typing import Any, Optional, Sequence

from .models import ConversionError

logger = logging.getLogger(__name__)

_OUTPUT_TAIL = 400


def windows_startupinfo() -> tuple[Any, int]:
    """Return ``(startupinfo, creationflags)`` that hide console windows."""

    if sys.platform != "win32":
        return None, 0
    startupinfo = subprocess.STARTUPINFO()  # type: ignore[attr-defined]
    startupinfo.dwFlags |= subprocess.STARTF_USESHOWWINDOW  # type: ignore[attr-defined]
    startupinfo.wShowWindow = subprocess.SW_HIDE  # type: ignore[attr-defined]
    return startupinfo, subprocess.CREATE_NO_WINDOW  # type: ignore[attr-defined]


def run_tool(
    command: Sequence[str],
    *,
    timeout: Optional[float],
    cwd: Optional[Path] = None,
) -> subprocess.CompletedProcess[str]:
    """Run ``command`` and raise :class:`ConversionError` unless it exits 0."""

    startupinfo, creationflags = windows_startupinfo()
    logger.debug(
        "Running external tool",
        extra={"command": list(command), "timeout": timeout},
    )
    try:
        result = subprocess.run(
            list(command),
            capture_output=True,
            text=True,
            timeout=timeout,
            check=False,
            cwd=str(cwd) if cwd is not None else None,
            startupinfo=startupinfo,
            creationflags=creationflags,
        )
    except subprocess.TimeoutExpired as exc:
        raise ConversionError(
            f"{command[0]} timed out after {timeout:g}s"
        ) from exc
    except OSError as exc:
        raise ConversionError(f"Could not start {command[0]}: {exc}") from exc

    if result.returncode != 0:
        detail = (result.stderr or result.stdout or "").strip()
        raise ConversionError(
            "{0} exited with status {1}: {2}".format(
                command[0], result.returncode, detail[-_OUTPUT_TAIL:]
            )
        )
    return result


def tool_version(command: Sequence[str], *, timeout: float = 5) -> str:
    """Return the first line printed by a ``--version`` style command.

    Errors yield an empty string; version strings are informational only.
    """

    startupinfo, creationflags = windows_startupinfo()
    try:
        result = subprocess.run(
            list(command),
            capture_output=True,
            text=True,
            timeout=timeout,
            check=False,
            startupinfo=startupinfo,
            creationflags=creationflags,
        )
    except (subprocess.TimeoutExpired, OSError) as exc:
        logger.debug(
            "Version query failed",
            extra={"command": list(command), "error": str(exc)},
        )
        return ""
    lines = (result.stdout or result.stderr or "").strip().splitlines()
    return lines[0].strip() if lines else ""


def expect_output(path: Path, tool: str) -> Path:
    """Return ``path`` if the tool left a non-empty file there."""

    if not path.is_file() or path.stat().st_size == 0:
        raise ConversionError(
            f"{tool} reported success but wrote no output to {path}"
        )
    return path


__all__ = [
    "expect_output",
    "run_tool",
    "tool_version",
    "windows_startupinfo",
]
