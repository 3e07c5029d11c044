"""Target-format lookup seeded from the conversion settings."""

from __future__ import annotations

import logging
import threading
from contextlib import contextmanager
from dataclasses import dataclass
from typing import Iterable, Iterator, Optional

from .models import (
    TableLockedError,
    TableNotSeededError,
    UnresolvableTargetError,
)

logger = logging.getLogger(__name__)

# Target recorded for formats the settings mark as "leave as is".
KEEP_ORIGINAL = "keep-original"


@dataclass(frozen=True)
class SettingsEntry:
    """One persisted settings row.

    Every entry carries its class default. ``format_name`` is set when the
    row describes a specific format; ``format_default`` is that format's
    override, if any.
    """

    class_name: str
    class_default: str
    format_name: Optional[str] = None
    format_default: Optional[str] = None
    format_codes: tuple[str, ...] = ()
    keep_original: bool = False


@dataclass(frozen=True)
class FolderOverride:
    """Target for listed format codes inside one input folder.

    ``folder`` is relative to the batch's input root, with ``/`` separators;
    ``""`` is the root itself. Subfolders are not included.
    """

    folder: str
    codes: frozenset[str]
    target: str


def folder_key(path: str) -> str:
    """Normalise a folder name to the form :class:`FolderOverride` uses."""

    parts = [
        part
        for part in path.replace("\\", "/").split("/")
        if part and part != "."
    ]
    return "/".join(parts)


class FormatResolutionTable:
    """Maps class and format names to the target format code.

    Keys are filled by :meth:`seed` (never overwriting) and changed by
    :meth:`set_override`. Lookups read the current contents on every call.
    Folder overrides, when seeded, win over both keys for the codes they
    list.
    """

    def __init__(self) -> None:
        self._lock = threading.RLock()
        self._targets: dict[str, str] = {}
        self._codes: dict[str, tuple[str, str]] = {}
        self._names: set[str] = set()
        self._folders: dict[str, FolderOverride] = {}
        self._seeded = False
        self._phase_depth = 0

    @property
    def seeded(self) -> bool:
        return self._seeded

    @property
    def locked(self) -> bool:
        return self._phase_depth > 0

    def seed(
        self,
        entries: Iterable[SettingsEntry],
        *,
        folders: Iterable[FolderOverride] = (),
    ) -> None:
        with self._lock:
            for entry in entries:
                self._names.add(entry.class_name)
                self._targets.setdefault(entry.class_name, entry.class_default)
                if entry.format_name:
                    self._names.add(entry.format_name)
                    if entry.keep_original:
                        self._targets.setdefault(
                            entry.format_name, KEEP_ORIGINAL
                        )
                    elif entry.format_default:
                        self._targets.setdefault(
                            entry.format_name, entry.format_default
                        )
                for code in entry.format_codes:
                    self._codes.setdefault(
                        code, (entry.class_name, entry.format_name or "")
                    )
            for override in folders:
                self._folders.setdefault(folder_key(override.folder), override)
            self._seeded = True
        logger.debug(
            "Seeded resolution table",
            extra={
                "keys": len(self._targets),
                "codes": len(self._codes),
                "folders": len(self._folders),
            },
        )

    def resolve(
        self,
        format_name: Optional[str],
        class_name: str,
        *,
        format_code: Optional[str] = None,
        folder: Optional[str] = None,
    ) -> str:
        """Return the target code for a file of ``format_name``/``class_name``.

        A folder override for ``folder`` that lists ``format_code`` wins;
        then the format key; then the class key. Raises
        :class:`UnresolvableTargetError` when none applies.
        """

        with self._lock:
            if not self._seeded:
                raise TableNotSeededError(
                    "resolve() called before the table was seeded"
                )
            if folder is not None and format_code:
                override = self._folders.get(folder_key(folder))
                if override is not None and format_code in override.codes:
                    return override.target
            if format_name and format_name in self._targets:
                return self._targets[format_name]
            if class_name in self._targets:
                return self._targets[class_name]
        raise UnresolvableTargetError(
            "No target format configured for format {0!r} or class "
            "{1!r}".format(format_name, class_name)
        )

    def set_override(self, key: str, code: str) -> None:
        if not key:
            raise ValueError("Override key must be a non-empty string")
        if not code:
            raise ValueError("Override code must be a non-empty string")
        with self._lock:
            if self._phase_depth:
                raise TableLockedError(
                    f"Cannot override {key!r} while a conversion is running"
                )
            previous = self._targets.get(key)
            self._targets[key] = code
        logger.info(
            "Applied target override",
            extra={"key": key, "code": code, "previous": previous},
        )

    def is_known_key(self, key: str) -> bool:
        """Whether ``key`` names a class or format from the settings."""

        with self._lock:
            return key in self._names

    def suggest_key(self, key: str) -> Optional[str]:
        """Return the known key equal to ``key`` ignoring case, if any."""

        folded = key.casefold()
        with self._lock:
            for name in sorted(self._names):
                if name.casefold() == folded:
                    return name
        return None

    def classify(self, code: str) -> Optional[tuple[str, str]]:
        """Return ``(class_name, format_name)`` known for ``code``."""

        with self._lock:
            return self._codes.get(code)

    def targets(self) -> dict[str, str]:
        with self._lock:
            return dict(self._targets)

    def folder_overrides(self) -> tuple[FolderOverride, ...]:
        with self._lock:
            return tuple(self._folders.values())

    @contextmanager
    def conversion_phase(self) -> Iterator["FormatResolutionTable"]:
        """Reject :meth:`set_override` calls until the block exits."""

        with self._lock:
            self._phase_depth += 1
        try:
            yield self
        finally:
            with self._lock:
                self._phase_depth -= 1


__all__ = [
    "FolderOverride",
    "FormatResolutionTable",
    "KEEP_ORIGINAL",
    "SettingsEntry",
    "folder_key",
]
