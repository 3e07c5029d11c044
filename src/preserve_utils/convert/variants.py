"""Capability descriptors for external converters."""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Callable, Mapping, Optional


@dataclass(frozen=True)
class ConversionJob:
    """One converter invocation: turn ``source`` into ``target_code``.

    ``output_stem`` is the file name (without extension) the converter must
    use below ``destination_dir``; the manager keeps it unique per directory.
    """

    source: Path
    source_code: str
    target_code: str
    destination_dir: Path
    output_stem: str
    timeout: Optional[float] = None

    def output_path(self, extension: str) -> Path:
        return self.destination_dir / f"{self.output_stem}.{extension}"


# ``invoke(job)`` writes the converted file below ``job.destination_dir`` and
# returns its path. Failures are raised as ``ConversionError``.
Invoker = Callable[[ConversionJob], Path]
DependencyCheck = Callable[[], bool]


@dataclass(frozen=True, eq=False)
class ConverterVariant:
    """One external-tool-backed conversion capability.

    ``capabilities`` maps a source format code to the target codes the
    variant can produce from it. ``max_concurrency`` caps simultaneous
    invocations across the worker pool; ``None`` leaves the pool size as the
    only limit.
    """

    name: str
    operating_systems: frozenset[str]
    dependency_check: DependencyCheck
    capabilities: Mapping[str, frozenset[str]]
    invoke: Invoker
    max_concurrency: Optional[int] = None
    describe_version: Optional[Callable[[], str]] = None

    def supports(self, source_code: str, target_code: str) -> bool:
        return target_code in self.capabilities.get(source_code, frozenset())


def capability_map(
    *groups: tuple[tuple[str, ...], tuple[str, ...]],
) -> Mapping[str, frozenset[str]]:
    """Merge ``(sources, targets)`` groups into a capability mapping."""

    merged: dict[str, set[str]] = {}
    for sources, targets in groups:
        for source in sources:
            merged.setdefault(source, set()).update(targets)
    return {source: frozenset(targets) for source, targets in merged.items()}


__all__ = [
    "ConversionJob",
    "ConverterVariant",
    "DependencyCheck",
    "Invoker",
    "capability_map",
]
