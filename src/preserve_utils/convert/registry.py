"""Usable-converter registry built once per process."""

from __future__ import annotations

import logging
import threading
from typing import Callable, Optional, Sequence

from .models import ConversionError
from .probe import current_host_os, is_usable
from .variants import ConverterVariant

Probe = Callable[[ConverterVariant, str], bool]

logger = logging.getLogger(__name__)


class ConverterRegistry:
    """Ordered view of the catalog variants usable on this host.

    The catalog is probed on the first call to :meth:`usable_converters`;
    the result, and the version string of every usable variant, is cached
    and never rebuilt.
    """

    def __init__(
        self,
        catalog: Sequence[ConverterVariant],
        *,
        host_os: Optional[str] = None,
        probe: Probe = is_usable,
    ) -> None:
        self._catalog = tuple(catalog)
        self._host_os = host_os or current_host_os()
        self._probe = probe
        self._lock = threading.Lock()
        self._usable: Optional[tuple[ConverterVariant, ...]] = None
        self._excluded: tuple[str, ...] = ()
        self._versions: dict[int, str] = {}

    @property
    def host_os(self) -> str:
        return self._host_os

    @property
    def catalog(self) -> tuple[ConverterVariant, ...]:
        return self._catalog

    def usable_converters(self) -> tuple[ConverterVariant, ...]:
        usable = self._usable
        if usable is not None:
            return usable
        with self._lock:
            if self._usable is None:
                self._build()
            assert self._usable is not None
            return self._usable

    def excluded(self) -> tuple[str, ...]:
        """Names of catalog variants that failed the usability probe."""

        self.usable_converters()
        return self._excluded

    def version_of(self, variant: ConverterVariant) -> str:
        """Version string captured when ``variant`` was found usable."""

        self.usable_converters()
        return self._versions.get(id(variant), "")

    def _build(self) -> None:
        usable: list[ConverterVariant] = []
        excluded: list[str] = []
        for variant in self._catalog:
            if self._probe(variant, self._host_os):
                usable.append(variant)
                self._versions[id(variant)] = _describe(variant)
            else:
                excluded.append(variant.name)
        logger.info(
            "Probed converter catalog",
            extra={
                "host_os": self._host_os,
                "usable": [variant.name for variant in usable],
                "excluded": excluded,
                "versions": {
                    variant.name: self._versions[id(variant)]
                    for variant in usable
                },
            },
        )
        self._excluded = tuple(excluded)
        self._usable = tuple(usable)


def _describe(variant: ConverterVariant) -> str:
    if variant.describe_version is None:
        return ""
    try:
        return variant.describe_version().strip()
    except (OSError, ConversionError) as exc:
        logger.warning(
            "Could not read converter version",
            extra={"converter": variant.name, "error": str(exc)},
        )
        return ""


_DEFAULT: Optional[ConverterRegistry] = None
_DEFAULT_LOCK = threading.Lock()


def default_registry() -> ConverterRegistry:
    """Return the process-wide registry over the built-in catalog."""

    global _DEFAULT
    if _DEFAULT is None:
        with _DEFAULT_LOCK:
            if _DEFAULT is None:
                from .catalog import builtin_catalog

                _DEFAULT = ConverterRegistry(builtin_catalog())
    return _DEFAULT


__all__ = ["ConverterRegistry", "Probe", "default_registry"]
