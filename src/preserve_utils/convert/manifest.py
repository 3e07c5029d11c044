"""Read identification manifests into :class:`IdentifiedFile` records.

Two JSON shapes are accepted:

* the native form written by other preserve-utils tooling::

    {"files": [{"path": "...", "format_code": "fmt/43",
                "class_name": "Image", "format_name": "JPEG"}]}

* ``sf -json`` output from siegfried::

    {"files": [{"filename": "...",
                "matches": [{"id": "fmt/43", "format": "JPEG ..."}]}]}

Class and format names missing from an entry are looked up from the
format code in the seeded resolution table.
"""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any, Callable, Mapping, Optional

from .models import ConversionError, IdentifiedFile
from .resolution import FormatResolutionTable
from .tools import run_tool

UNKNOWN_CLASS = "Unknown"

logger = logging.getLogger(__name__)


class ManifestError(RuntimeError):
    """Raised when a manifest cannot be read or has an unexpected shape."""


def load_manifest(
    path: Path, table: Optional[FormatResolutionTable] = None
) -> tuple[IdentifiedFile, ...]:
    """Return the files listed in the manifest at ``path``.

    Relative file paths are resolved against the manifest's directory.
    """

    try:
        payload = json.loads(path.read_text(encoding="utf-8"))
    except FileNotFoundError as exc:
        raise ManifestError(f"Manifest not found: {path}") from exc
    except (OSError, UnicodeDecodeError) as exc:
        raise ManifestError(f"Could not read manifest {path}: {exc}") from exc
    except json.JSONDecodeError as exc:
        raise ManifestError(f"Invalid JSON in manifest {path}: {exc}") from exc
    return parse_manifest(payload, base_dir=path.parent, table=table)


def parse_manifest(
    payload: Any,
    *,
    base_dir: Path,
    table: Optional[FormatResolutionTable] = None,
) -> tuple[IdentifiedFile, ...]:
    if not isinstance(payload, Mapping):
        raise ManifestError("Manifest must be a JSON object")
    entries = payload.get("files")
    if not isinstance(entries, list):
        raise ManifestError("Manifest must contain a 'files' array")

    files = []
    for index, entry in enumerate(entries):
        if not isinstance(entry, Mapping):
            raise ManifestError(f"files[{index}] must be an object")
        if "matches" in entry or "filename" in entry:
            files.append(_from_siegfried(entry, index, base_dir, table))
        else:
            files.append(_from_native(entry, index, base_dir, table))
    logger.debug(
        "Loaded identification manifest",
        extra={"file_count": len(files), "base_dir": str(base_dir)},
    )
    return tuple(files)


def _from_native(
    entry: Mapping[str, Any],
    index: int,
    base_dir: Path,
    table: Optional[FormatResolutionTable],
) -> IdentifiedFile:
    path = _string(entry, "path", index, required=True)
    code = _string(entry, "format_code", index, required=True)
    class_name = _string(entry, "class_name", index)
    format_name = _string(entry, "format_name", index)
    return _build(base_dir, path, code, class_name, format_name, table)


def _from_siegfried(
    entry: Mapping[str, Any],
    index: int,
    base_dir: Path,
    table: Optional[FormatResolutionTable],
) -> IdentifiedFile:
    path = _string(entry, "filename", index, required=True)
    matches = entry.get("matches")
    if not isinstance(matches, list) or not matches:
        raise ManifestError(
            f"files[{index}].matches must be a non-empty array"
        )
    first = matches[0]
    if not isinstance(first, Mapping):
        raise ManifestError(f"files[{index}].matches[0] must be an object")
    code = first.get("id")
    if not isinstance(code, str) or not code:
        raise ManifestError(f"files[{index}].matches[0].id is missing")
    label = first.get("format")
    return _build(
        base_dir,
        path,
        code,
        "",
        "",
        table,
        fallback_format=label if isinstance(label, str) else "",
    )


def _build(
    base_dir: Path,
    raw_path: str,
    code: str,
    class_name: str,
    format_name: str,
    table: Optional[FormatResolutionTable],
    *,
    fallback_format: str = "",
) -> IdentifiedFile:
    path = Path(raw_path).expanduser()
    if not path.is_absolute():
        path = base_dir / path
    known = table.classify(code) if table is not None else None
    if known is not None:
        class_name = class_name or known[0]
        format_name = format_name or known[1]
    format_name = format_name or fallback_format.strip()
    return IdentifiedFile(
        path=path.resolve(),
        format_code=code,
        class_name=class_name or UNKNOWN_CLASS,
        format_name=format_name,
    )


def _string(
    entry: Mapping[str, Any], key: str, index: int, *, required: bool = False
) -> str:
    value = entry.get(key)
    if value is None:
        if required:
            raise ManifestError(f"files[{index}].{key} is required")
        return ""
    if not isinstance(value, str):
        raise ManifestError(f"files[{index}].{key} must be a string")
    if required and not value.strip():
        raise ManifestError(f"files[{index}].{key} must not be empty")
    return value.strip()


def siegfried_identifier(
    *, executable: str = "sf", timeout: Optional[float] = 60
) -> Callable[[Path], str]:
    """Return a callable that identifies one file with siegfried.

    The callable returns the PRONOM code of the first match and raises
    :class:`ConversionError` when siegfried fails or reports no match.
    """

    def _identify(path: Path) -> str:
        result = run_tool([executable, "-json", str(path)], timeout=timeout)
        try:
            files = parse_manifest(
                json.loads(result.stdout), base_dir=path.parent
            )
        except (json.JSONDecodeError, ManifestError) as exc:
            raise ConversionError(
                f"Unexpected siegfried output for {path.name}: {exc}"
            ) from exc
        if not files:
            raise ConversionError(f"siegfried did not report {path.name}")
        return files[0].format_code

    return _identify


__all__ = [
    "ManifestError",
    "UNKNOWN_CLASS",
    "load_manifest",
    "parse_manifest",
    "siegfried_identifier",
]
