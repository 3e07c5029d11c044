"""Compress successfully converted outputs after a batch."""

from __future__ import annotations

import logging
import zipfile
from dataclasses import dataclass
from pathlib import Path
from typing import Sequence

from .models import ConversionOutcome

logger = logging.getLogger(__name__)


class ArchiveError(RuntimeError):
    """Raised when the output archive cannot be written."""


@dataclass(frozen=True)
class ArchiveResult:
    path: Path
    members: tuple[str, ...]


def compress_outputs(
    outcomes: Sequence[ConversionOutcome],
    destination: Path,
    *,
    root: Path,
) -> ArchiveResult:
    """Zip the outputs of successful outcomes into ``destination``.

    Members are stored relative to ``root``; outputs outside it are stored
    under their file name. Failed, skipped and canceled outcomes are ignored
    since their outputs, if any, are unreliable.
    """

    members: list[str] = []
    seen: set[str] = set()
    destination.parent.mkdir(parents=True, exist_ok=True)
    try:
        with zipfile.ZipFile(
            destination, "w", compression=zipfile.ZIP_DEFLATED
        ) as zf:
            for outcome in outcomes:
                output = outcome.output_path
                if not outcome.succeeded or output is None:
                    continue
                if not output.is_file():
                    logger.warning(
                        "Converted output disappeared before archiving",
                        extra={"output_path": str(output)},
                    )
                    continue
                arcname = _arcname(output, root)
                if arcname in seen:
                    continue
                seen.add(arcname)
                zf.write(output, arcname=arcname)
                members.append(arcname)
    except OSError as exc:
        raise ArchiveError(
            f"Could not write archive {destination}: {exc}"
        ) from exc

    logger.info(
        "Wrote output archive",
        extra={"archive": str(destination), "member_count": len(members)},
    )
    return ArchiveResult(path=destination, members=tuple(members))


def _arcname(path: Path, root: Path) -> str:
    try:
        return path.resolve().relative_to(root.resolve()).as_posix()
    except ValueError:
        return path.name


__all__ = ["ArchiveError", "ArchiveResult", "compress_outputs"]
