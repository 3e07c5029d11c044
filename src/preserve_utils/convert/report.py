"""JSON documentation of a conversion batch."""

from __future__ import annotations

import json
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Mapping, Optional, Sequence

from .manager import BatchSummary
from .models import ConversionOutcome

REPORT_VERSION = 2


def build_report(
    outcomes: Sequence[ConversionOutcome],
    *,
    generated_at: Optional[datetime] = None,
    metadata: Optional[Mapping[str, Any]] = None,
) -> dict[str, Any]:
    """Return the report document for ``outcomes`` as plain data."""

    summary = BatchSummary(tuple(outcomes))
    document: dict[str, Any] = {
        "version": REPORT_VERSION,
        "generated_at": _timestamp(generated_at or datetime.now(timezone.utc)),
        "summary": {
            "total": len(summary.outcomes),
            "success": summary.success_count,
            "skipped": summary.skipped_count,
            "failed": summary.failure_count,
            "canceled": summary.canceled_count,
        },
        "files": [_outcome_entry(outcome) for outcome in outcomes],
    }
    if metadata:
        document["metadata"] = {
            key: _plain(value) for key, value in metadata.items()
        }
    return document


def write_report(
    outcomes: Sequence[ConversionOutcome],
    path: Path,
    *,
    generated_at: Optional[datetime] = None,
    metadata: Optional[Mapping[str, Any]] = None,
) -> Path:
    document = build_report(
        outcomes, generated_at=generated_at, metadata=metadata
    )
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(
        json.dumps(document, indent=2, ensure_ascii=False) + "\n",
        encoding="utf-8",
    )
    return path


def _outcome_entry(outcome: ConversionOutcome) -> dict[str, Any]:
    source = outcome.source
    return {
        "source": str(source.path),
        "format_code": source.format_code,
        "class_name": source.class_name,
        "format_name": source.format_name,
        "status": outcome.status.value,
        "target_code": outcome.target_code,
        "output_path": (
            str(outcome.output_path) if outcome.output_path else None
        ),
        "converter": outcome.converter,
        "tools": [step.tool for step in outcome.steps],
        "steps": [
            {
                "converter": step.converter,
                "version": step.version,
                "source_code": step.source_code,
                "target_code": step.target_code,
            }
            for step in outcome.steps
        ],
        "error_kind": (
            outcome.error_kind.value if outcome.error_kind else None
        ),
        "reason": outcome.reason,
        "attempts": [
            {
                "converter": attempt.converter,
                "kind": attempt.kind.value,
                "source_code": attempt.source_code,
                "target_code": attempt.target_code,
                "reason": attempt.reason,
            }
            for attempt in outcome.attempts
        ],
    }


def _timestamp(value: datetime) -> str:
    stamp = value.astimezone(timezone.utc).replace(microsecond=0)
    return stamp.isoformat().replace("+00:00", "Z")


def _plain(value: Any) -> Any:
    if isinstance(value, Path):
        return str(value)
    if isinstance(value, datetime):
        return _timestamp(value)
    return value


__all__ = ["REPORT_VERSION", "build_report", "write_report"]
