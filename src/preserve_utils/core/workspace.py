"""The preserve-utils workspace: config, logs and conversion runs."""

from __future__ import annotations

import os
import tempfile
from dataclasses import dataclass
from pathlib import Path
from types import MappingProxyType
from typing import Iterator, Mapping

WORKSPACE_ENV = "PRESERVE_UTILS_DATA_HOME"
DEFAULT_WORKSPACE = Path.home() / ".preserve-utils-data"

# ``converted`` receives converter output unless the run names another
# directory; ``reports`` holds the JSON report and the optional zip archive.
SUBDIRECTORIES = ("config", "logs", "converted", "reports")


class WorkspaceError(RuntimeError):
    """Raised when the workspace layout cannot be prepared."""


@dataclass(frozen=True)
class WorkspaceLayout:
    """Workspace root, its subdirectories and which of them were just made."""

    home: Path
    directories: Mapping[str, Path]
    created: Mapping[str, bool]

    def path_for(self, key: str) -> Path:
        if key not in self.directories:
            raise KeyError(f"Unknown workspace directory '{key}'.")
        return self.directories[key]

    def items(self) -> tuple[tuple[str, Path], ...]:
        return tuple(self.directories.items())


def ensure_workspace(
    *,
    env: Mapping[str, str] | None = None,
    path: Path | None = None,
    create: bool = True,
) -> WorkspaceLayout:
    """Return the workspace layout, creating it unless ``create=False``.

    The root is ``path``, else ``$PRESERVE_UTILS_DATA_HOME``, else
    ``~/.preserve-utils-data``. Only the last one may fall back to a temp
    directory when it cannot be created.
    """

    environ = os.environ if env is None else env
    denied: PermissionError | None = None
    first: Path | None = None
    for root in _candidate_roots(environ, path, create):
        first = first or root
        try:
            return _build_layout(root, create=create)
        except PermissionError as exc:
            denied = exc
    raise WorkspaceError(f"Unable to prepare workspace at {first}") from denied


def _candidate_roots(
    environ: Mapping[str, str], path: Path | None, create: bool
) -> Iterator[Path]:
    if path is not None:
        yield _absolute(path)
        return
    configured = (environ.get(WORKSPACE_ENV) or "").strip()
    if configured:
        yield _absolute(Path(configured))
        return
    default = _absolute(DEFAULT_WORKSPACE)
    yield default
    fallback = _fallback_base()
    if create and fallback != default:
        yield fallback


def _absolute(path: Path) -> Path:
    expanded = path.expanduser()
    try:
        return expanded.resolve()
    except FileNotFoundError:
        return expanded.absolute()


def _fallback_base() -> Path:
    return Path(tempfile.gettempdir()) / "preserve-utils-data"


def _build_layout(root: Path, *, create: bool) -> WorkspaceLayout:
    if root.exists() and not root.is_dir():
        raise WorkspaceError(
            f"Configured workspace exists and is not a directory: {root}"
        )

    directories = {name: root / name for name in SUBDIRECTORIES}
    if create:
        created = {"home": _ensure_dir(root)}
        created.update(
            (name, _ensure_dir(target)) for name, target in directories.items()
        )
    else:
        for name, target in directories.items():
            if target.exists() and not target.is_dir():
                raise WorkspaceError(
                    f"Workspace entry '{name}' is a file, expected a "
                    f"directory: {target}"
                )
        created = dict.fromkeys(("home", *directories), False)

    return WorkspaceLayout(
        home=root,
        directories=MappingProxyType(directories),
        created=MappingProxyType(created),
    )


def _ensure_dir(path: Path) -> bool:
    """Create ``path`` (mode 0700) and report whether it is new."""

    if path.exists():
        if not path.is_dir():
            raise WorkspaceError(f"Expected a directory at {path}")
        return False
    path.mkdir(parents=True, exist_ok=True)
    try:
        path.chmod(0o700)
    except (PermissionError, NotImplementedError):
        pass
    return True
