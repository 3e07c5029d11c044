"""Data model shared by the conversion engine."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Optional


class ConversionError(RuntimeError):
    """Raised by a converter invocation that did not produce valid output."""


class UnresolvableTargetError(LookupError):
    """Raised when neither a format nor a class entry maps to a target."""


class TableNotSeededError(RuntimeError):
    """Raised when the resolution table is read before it was seeded."""


class TableLockedError(RuntimeError):
    """Raised when the resolution table is written during a conversion run."""


class ConversionStatus(Enum):
    """Final state of one file in a batch."""

    SUCCESS = "success"
    FAILED = "failed"
    SKIPPED = "skipped"
    CANCELED = "canceled"


class ErrorKind(Enum):
    """Why a file did not reach its target format.

    ``CONVERSION_FAILURE`` tags individual attempts; a file whose attempts all
    failed ends as ``NO_USABLE_CONVERTER``.
    """

    UNRESOLVABLE_TARGET = "unresolvable_target"
    NO_USABLE_CONVERTER = "no_usable_converter"
    CONVERSION_FAILURE = "conversion_failure"
    CANCELED = "canceled"


@dataclass(frozen=True)
class IdentifiedFile:
    """A file as reported by the identification step."""

    path: Path
    format_code: str
    class_name: str
    format_name: str = ""


@dataclass(frozen=True)
class AttemptRecord:
    """One failed converter invocation on the way to the target."""

    converter: str
    reason: str
    source_code: str = ""
    target_code: str = ""
    kind: ErrorKind = ErrorKind.CONVERSION_FAILURE


@dataclass(frozen=True)
class ConversionStep:
    """One successful hop of a conversion route."""

    converter: str
    source_code: str
    target_code: str
    version: str = ""

    @property
    def tool(self) -> str:
        """Converter name and version, as documented in the report."""

        return f"{self.converter} {self.version}".strip()


@dataclass(frozen=True)
class ConversionOutcome:
    """Result of converting (or declining to convert) a single file.

    ``steps`` lists every hop of the route that produced ``output_path``;
    ``converter`` names the last one.
    """

    source: IdentifiedFile
    status: ConversionStatus
    target_code: Optional[str] = None
    output_path: Optional[Path] = None
    converter: Optional[str] = None
    attempts: tuple[AttemptRecord, ...] = field(default_factory=tuple)
    error_kind: Optional[ErrorKind] = None
    reason: Optional[str] = None
    steps: tuple[ConversionStep, ...] = field(default_factory=tuple)

    @property
    def succeeded(self) -> bool:
        return self.status is ConversionStatus.SUCCESS

    @property
    def attempted_converters(self) -> tuple[str, ...]:
        return tuple(attempt.converter for attempt in self.attempts)

    @property
    def converters(self) -> tuple[str, ...]:
        return tuple(step.converter for step in self.steps)

    @property
    def last_error(self) -> Optional[str]:
        if self.attempts:
            return self.attempts[-1].reason
        return self.reason


__all__ = [
    "AttemptRecord",
    "ConversionError",
    "ConversionOutcome",
    "ConversionStep",
    "ConversionStatus",
    "ErrorKind",
    "IdentifiedFile",
    "TableLockedError",
    "TableNotSeededError",
    "UnresolvableTargetError",
]
