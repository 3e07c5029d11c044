"""Host capability checks for converter variants."""

from __future__ import annotations

import importlib.util
import logging
import shutil
import sys
from typing import Optional

from .variants import ConverterVariant

logger = logging.getLogger(__name__)

WINDOWS = "windows"
LINUX = "linux"
DARWIN = "darwin"
ALL_OPERATING_SYSTEMS = frozenset({WINDOWS, LINUX, DARWIN})


def current_host_os(platform: Optional[str] = None) -> str:
    """Normalise ``sys.platform`` into one of the catalog OS names."""

    value = (platform or sys.platform).lower()
    if value.startswith("win") or value == "cygwin":
        return WINDOWS
    if value.startswith("linux"):
        return LINUX
    if value == "darwin":
        return DARWIN
    return value


def is_usable(variant: ConverterVariant, host_os: str) -> bool:
    """Return whether ``variant`` can run on ``host_os`` right now.

    A dependency check that raises counts as a failed check.
    """

    if not variant.operating_systems:
        return False
    if host_os not in variant.operating_systems:
        return False
    try:
        return bool(variant.dependency_check())
    except Exception:
        logger.debug(
            "Dependency check raised; treating converter as unusable",
            exc_info=True,
            extra={"converter": variant.name, "host_os": host_os},
        )
        return False


def executable_available(*names: str) -> bool:
    """True when every executable in ``names`` resolves on ``PATH``."""

    return all(shutil.which(name) is not None for name in names)


def first_executable(*candidates: str) -> Optional[str]:
    """Return the first of ``candidates`` found on ``PATH``."""

    for candidate in candidates:
        resolved = shutil.which(candidate)
        if resolved is not None:
            return resolved
    return None


def module_available(name: str) -> bool:
    """True when the top-level module ``name`` can be imported."""

    try:
        return importlib.util.find_spec(name) is not None
    except (ImportError, ValueError):
        return False


__all__ = [
    "ALL_OPERATING_SYSTEMS",
    "DARWIN",
    "LINUX",
    "WINDOWS",
    "current_host_os",
    "executable_available",
    "first_executable",
    "is_usable",
    "module_available",
]
