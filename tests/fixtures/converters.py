"""In-process converter stand-ins used instead of external tools."""

from __future__ import annotations

import threading
import time
from dataclasses import dataclass, field
from pathlib import Path
from typing import Mapping, Optional, Sequence

from preserve_utils.convert.models import ConversionError, IdentifiedFile
from preserve_utils.convert.probe import ALL_OPERATING_SYSTEMS
from preserve_utils.convert.variants import (
    ConversionJob,
    ConverterVariant,
    capability_map,
)


@dataclass(eq=False)
class StubConverter:
    """Builds a :class:`ConverterVariant` that records every invocation.

    Successful calls write ``<output_stem>.<name>.out`` below the
    destination directory; ``jobs`` keeps every job received.
    ``fail_with`` turns every call into a ``ConversionError``.
    """

    name: str
    capabilities: Mapping[str, Sequence[str]]
    fail_with: Optional[str] = None
    available: bool = True
    operating_systems: frozenset[str] = ALL_OPERATING_SYSTEMS
    max_concurrency: Optional[int] = None
    delay: float = 0.0
    version: Optional[str] = None
    calls: list[tuple[Path, str, Path]] = field(default_factory=list)
    jobs: list[ConversionJob] = field(default_factory=list)
    active: int = 0
    peak: int = 0

    def __post_init__(self) -> None:
        self._lock = threading.Lock()
        self.variant = ConverterVariant(
            name=self.name,
            operating_systems=frozenset(self.operating_systems),
            dependency_check=lambda: self.available,
            capabilities=capability_map(
                *(
                    ((source,), tuple(targets))
                    for source, targets in self.capabilities.items()
                )
            ),
            invoke=self._invoke,
            max_concurrency=self.max_concurrency,
            describe_version=(
                (lambda: self.version) if self.version is not None else None
            ),
        )

    def _invoke(self, job: ConversionJob) -> Path:
        with self._lock:
            self.calls.append(
                (job.source, job.target_code, job.destination_dir)
            )
            self.jobs.append(job)
            self.active += 1
            self.peak = max(self.peak, self.active)
        try:
            if self.delay:
                time.sleep(self.delay)
            if self.fail_with is not None:
                raise ConversionError(self.fail_with)
            job.destination_dir.mkdir(parents=True, exist_ok=True)
            output = job.output_path(f"{self.name}.out")
            output.write_text(f"{job.target_code}\n", encoding="utf-8")
            return output
        finally:
            with self._lock:
                self.active -= 1


def identified(
    path: Path,
    code: str,
    class_name: str,
    format_name: str = "",
) -> IdentifiedFile:
    return IdentifiedFile(
        path=path,
        format_code=code,
        class_name=class_name,
        format_name=format_name,
    )
