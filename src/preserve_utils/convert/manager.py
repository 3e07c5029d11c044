"""Batch conversion: resolve, select, invoke, and record per-file outcomes."""

from __future__ import annotations

import logging
import tempfile
import threading
from concurrent.futures import ThreadPoolExecutor, as_completed
from contextlib import nullcontext
from dataclasses import dataclass
from pathlib import Path, PurePosixPath
from typing import Callable, Iterable, Optional, Sequence

from .models import (
    AttemptRecord,
    ConversionError,
    ConversionOutcome,
    ConversionStatus,
    ConversionStep,
    ErrorKind,
    IdentifiedFile,
    TableNotSeededError,
    UnresolvableTargetError,
)
from .registry import ConverterRegistry
from .resolution import KEEP_ORIGINAL, FormatResolutionTable, folder_key
from .routes import Hop, Route, plan_routes
from .variants import ConversionJob, ConverterVariant

# Returns the format code identified for a produced output file.
Verifier = Callable[[Path], str]
OutcomeCallback = Callable[[ConversionOutcome], None]

DEFAULT_MAX_WORKERS = 4


class _Canceled(Exception):
    """Stops a route when the batch is canceled between attempts."""


@dataclass(frozen=True)
class BatchSummary:
    """Aggregated counts for one ``convert_all`` run."""

    outcomes: tuple[ConversionOutcome, ...]

    def _count(self, status: ConversionStatus) -> int:
        return sum(1 for outcome in self.outcomes if outcome.status is status)

    @property
    def success_count(self) -> int:
        return self._count(ConversionStatus.SUCCESS)

    @property
    def skipped_count(self) -> int:
        return self._count(ConversionStatus.SKIPPED)

    @property
    def failure_count(self) -> int:
        return self._count(ConversionStatus.FAILED)

    @property
    def canceled_count(self) -> int:
        return self._count(ConversionStatus.CANCELED)

    @property
    def exit_code(self) -> int:
        return 1 if self.failure_count else 0


class ConversionManager:
    """Convert identified files with the usable converters of a registry.

    Files are processed by a bounded thread pool. Variants that declare
    ``max_concurrency`` are additionally gated by a semaphore shared by all
    workers of this manager.

    Each file follows the shortest conversion route first. Within a hop the
    candidates are tried in registry order; a hop whose candidates all fail
    rules out every route through it, and the next route is tried.
    """

    def __init__(
        self,
        registry: ConverterRegistry,
        table: FormatResolutionTable,
        *,
        output_dir: Path,
        input_root: Optional[Path] = None,
        max_workers: int = DEFAULT_MAX_WORKERS,
        timeout: Optional[float] = None,
        verify: Optional[Verifier] = None,
        logger: Optional[logging.Logger] = None,
    ) -> None:
        if max_workers < 1:
            raise ValueError("max_workers must be at least 1")
        self._registry = registry
        self._table = table
        self._output_dir = output_dir
        self._input_root = input_root
        self._max_workers = max_workers
        self._timeout = timeout
        self._verify = verify
        self._logger = logger or logging.getLogger(__name__)
        self._semaphores: dict[int, threading.BoundedSemaphore] = {}
        self._semaphore_lock = threading.Lock()

    def convert_all(
        self,
        files: Iterable[IdentifiedFile],
        *,
        cancel_event: Optional[threading.Event] = None,
        on_outcome: Optional[OutcomeCallback] = None,
    ) -> tuple[ConversionOutcome, ...]:
        """Return one outcome per file, in the order ``files`` were given.

        Per-file problems never raise; they are recorded on the outcome.
        Setting ``cancel_event`` stops new files and attempts from starting.
        """

        batch = tuple(files)
        if not self._table.seeded:
            raise TableNotSeededError(
                "The resolution table must be seeded before converting"
            )
        cancel = cancel_event or threading.Event()
        usable = self._registry.usable_converters()
        stems = self.output_stems(batch)

        self._logger.info(
            "Starting conversion batch",
            extra={
                "file_count": len(batch),
                "converters": [variant.name for variant in usable],
                "max_workers": self._max_workers,
                "output_dir": str(self._output_dir),
            },
        )

        results: list[Optional[ConversionOutcome]] = [None] * len(batch)
        with self._table.conversion_phase():
            with ThreadPoolExecutor(
                max_workers=self._max_workers,
                thread_name_prefix="preserve-convert",
            ) as pool:
                futures = {
                    pool.submit(
                        self._convert_one, item, stems[index], usable, cancel
                    ): index
                    for index, item in enumerate(batch)
                }
                for future in as_completed(futures):
                    outcome = future.result()
                    results[futures[future]] = outcome
                    if on_outcome is not None:
                        on_outcome(outcome)

        outcomes = tuple(
            outcome for outcome in results if outcome is not None
        )
        summary = BatchSummary(outcomes)
        self._logger.info(
            "Completed conversion batch",
            extra={
                "success_count": summary.success_count,
                "skipped_count": summary.skipped_count,
                "failure_count": summary.failure_count,
                "canceled_count": summary.canceled_count,
            },
        )
        return outcomes

    def destination_for(self, item: IdentifiedFile) -> Path:
        """Directory that receives the converted copy of ``item``."""

        folder = self.folder_of(item)
        if folder is None:
            return self._output_dir
        return self._output_dir.joinpath(*PurePosixPath(folder).parts)

    def folder_of(self, item: IdentifiedFile) -> Optional[str]:
        """``item``'s folder relative to the input root, if it has one."""

        if self._input_root is None:
            return None
        try:
            relative = item.path.parent.relative_to(self._input_root)
        except ValueError:
            return None
        return folder_key(relative.as_posix())

    def output_stems(self, files: Sequence[IdentifiedFile]) -> list[str]:
        """Output file names (without extension) for ``files``.

        Files sharing a stem in one destination directory first get their
        source extension appended (``photo_JPG``); stems that still clash
        get their position in the clash (``photo_JPG_0``).
        """

        stems = [item.path.stem for item in files]
        for group in self._clashes(files, stems):
            for index in group:
                suffix = files[index].path.suffix.lstrip(".").upper()
                if suffix:
                    stems[index] = f"{stems[index]}_{suffix}"
        for group in self._clashes(files, stems):
            for position, index in enumerate(group):
                stems[index] = f"{stems[index]}_{position}"
        return stems

    def _clashes(
        self, files: Sequence[IdentifiedFile], stems: Sequence[str]
    ) -> list[list[int]]:
        groups: dict[tuple[Path, str], list[int]] = {}
        for index, item in enumerate(files):
            key = (self.destination_for(item), stems[index].casefold())
            groups.setdefault(key, []).append(index)
        return [group for group in groups.values() if len(group) > 1]

    def _convert_one(
        self,
        item: IdentifiedFile,
        stem: str,
        usable: Sequence[ConverterVariant],
        cancel: threading.Event,
    ) -> ConversionOutcome:
        if cancel.is_set():
            return _canceled(item, None, ())

        try:
            target = self._table.resolve(
                item.format_name,
                item.class_name,
                format_code=item.format_code,
                folder=self.folder_of(item),
            )
        except UnresolvableTargetError as exc:
            self._logger.error(
                "No target format configured",
                extra={
                    "source": str(item.path),
                    "class_name": item.class_name,
                    "format_name": item.format_name,
                },
            )
            return ConversionOutcome(
                source=item,
                status=ConversionStatus.FAILED,
                error_kind=ErrorKind.UNRESOLVABLE_TARGET,
                reason=str(exc),
            )

        if target == KEEP_ORIGINAL or target == item.format_code:
            reason = (
                "Format is kept as is."
                if target == KEEP_ORIGINAL
                else "File is already in the target format."
            )
            self._logger.info(
                "Skipped file",
                extra={"source": str(item.path), "reason": reason},
            )
            return ConversionOutcome(
                source=item,
                status=ConversionStatus.SKIPPED,
                target_code=None if target == KEEP_ORIGINAL else target,
                reason=reason,
            )

        destination = self.destination_for(item)
        attempts: list[AttemptRecord] = []
        broken: set[tuple[str, str]] = set()

        for route in plan_routes(usable, item.format_code, target):
            if any(hop.key in broken for hop in route):
                continue
            if cancel.is_set():
                return _canceled(item, target, tuple(attempts))
            try:
                output, steps = self._follow(
                    item, route, stem, destination, attempts, broken, cancel
                )
            except _Canceled:
                return _canceled(item, target, tuple(attempts))
            if output is None:
                continue

            self._logger.info(
                "Converted file",
                extra={
                    "source": str(item.path),
                    "converter": steps[-1].converter,
                    "route": [step.tool for step in steps],
                    "target_code": target,
                    "output_path": str(output),
                },
            )
            return ConversionOutcome(
                source=item,
                status=ConversionStatus.SUCCESS,
                target_code=target,
                output_path=output,
                converter=steps[-1].converter,
                attempts=tuple(attempts),
                steps=steps,
            )

        if attempts:
            reason = "All converters failed for {0} -> {1}".format(
                item.format_code, target
            )
        else:
            reason = "No usable converter for {0} -> {1}".format(
                item.format_code, target
            )
        self._logger.error(
            "Failed to convert file",
            extra={
                "source": str(item.path),
                "target_code": target,
                "attempted": [attempt.converter for attempt in attempts],
            },
        )
        return ConversionOutcome(
            source=item,
            status=ConversionStatus.FAILED,
            target_code=target,
            attempts=tuple(attempts),
            error_kind=ErrorKind.NO_USABLE_CONVERTER,
            reason=reason,
        )

    def _follow(
        self,
        item: IdentifiedFile,
        route: Route,
        stem: str,
        destination: Path,
        attempts: list[AttemptRecord],
        broken: set[tuple[str, str]],
        cancel: threading.Event,
    ) -> tuple[Optional[Path], tuple[ConversionStep, ...]]:
        """Run every hop of ``route``; intermediates go to a scratch dir."""

        scratch = (
            tempfile.TemporaryDirectory(prefix="preserve-route-")
            if len(route) > 1
            else nullcontext(None)
        )
        with scratch as scratch_dir:
            current = item.path
            steps: list[ConversionStep] = []
            for position, hop in enumerate(route):
                final = position == len(route) - 1
                job = ConversionJob(
                    source=current,
                    source_code=hop.source_code,
                    target_code=hop.target_code,
                    destination_dir=(
                        destination if final else Path(scratch_dir)
                    ),
                    output_stem=stem,
                    timeout=self._timeout,
                )
                produced = self._run_hop(job, hop, attempts, cancel)
                if produced is None:
                    broken.add(hop.key)
                    return None, ()
                current, step = produced
                steps.append(step)
            return current, tuple(steps)

    def _run_hop(
        self,
        job: ConversionJob,
        hop: Hop,
        attempts: list[AttemptRecord],
        cancel: threading.Event,
    ) -> Optional[tuple[Path, ConversionStep]]:
        for variant in hop.candidates:
            if cancel.is_set():
                raise _Canceled()
            try:
                output = self._invoke(variant, job)
            except Exception as exc:
                attempts.append(
                    AttemptRecord(
                        converter=variant.name,
                        reason=str(exc),
                        source_code=hop.source_code,
                        target_code=hop.target_code,
                        kind=ErrorKind.CONVERSION_FAILURE,
                    )
                )
                self._logger.warning(
                    "Converter attempt failed",
                    extra={
                        "source": str(job.source),
                        "converter": variant.name,
                        "source_code": hop.source_code,
                        "target_code": hop.target_code,
                        "error": str(exc),
                    },
                )
                continue
            return output, ConversionStep(
                converter=variant.name,
                source_code=hop.source_code,
                target_code=hop.target_code,
                version=self._registry.version_of(variant),
            )
        return None

    def _invoke(self, variant: ConverterVariant, job: ConversionJob) -> Path:
        gate = self._semaphore_for(variant)
        with gate if gate is not None else nullcontext():
            output = Path(variant.invoke(job))
        if self._verify is not None:
            identified = self._verify(output)
            if identified != job.target_code:
                raise ConversionError(
                    "Output identified as {0}, expected {1}".format(
                        identified or "unknown", job.target_code
                    )
                )
        return output

    def _semaphore_for(
        self, variant: ConverterVariant
    ) -> Optional[threading.BoundedSemaphore]:
        if variant.max_concurrency is None:
            return None
        key = id(variant)
        with self._semaphore_lock:
            semaphore = self._semaphores.get(key)
            if semaphore is None:
                semaphore = threading.BoundedSemaphore(
                    max(1, variant.max_concurrency)
                )
                self._semaphores[key] = semaphore
            return semaphore


def _canceled(
    item: IdentifiedFile,
    target: Optional[str],
    attempts: tuple[AttemptRecord, ...],
) -> ConversionOutcome:
    return ConversionOutcome(
        source=item,
        status=ConversionStatus.CANCELED,
        target_code=target,
        attempts=attempts,
        error_kind=ErrorKind.CANCELED,
        reason="Batch was canceled before the file was converted.",
    )


__all__ = [
    "BatchSummary",
    "ConversionManager",
    "DEFAULT_MAX_WORKERS",
    "OutcomeCallback",
    "Verifier",
]
