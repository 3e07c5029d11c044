"""``preserve init``: create the workspace and show where everything lives."""

from __future__ import annotations

import argparse
import sys
from pathlib import Path
from typing import Sequence

from preserve_utils.core.workspace import (
    WORKSPACE_ENV,
    WorkspaceError,
    WorkspaceLayout,
    ensure_workspace,
)


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="preserve init",
        description=(
            "Create the workspace used by `preserve convert`: config, logs, "
            "converted output and run reports."
        ),
    )
    parser.add_argument(
        "--path",
        type=Path,
        help=f"Workspace root (defaults to ${WORKSPACE_ENV} or "
        "~/.preserve-utils-data).",
    )
    parser.add_argument(
        "--quiet",
        action="store_true",
        help="Print nothing on success.",
    )
    return parser


def describe(layout: WorkspaceLayout) -> str:
    def state(key: str) -> str:
        return "created" if layout.created.get(key) else "exists"

    width = max(len(name) for name in layout.directories)
    lines = [
        f"Workspace ready at {layout.home} ({state('home')})",
        "Subdirectories:",
    ]
    lines.extend(
        f"  {name:<{width}}  {path} ({state(name)})"
        for name, path in layout.items()
    )
    return "\n".join(lines)


def main(argv: Sequence[str] | None = None) -> int:
    args = _build_parser().parse_args(argv)
    try:
        layout = ensure_workspace(path=args.path)
    except WorkspaceError as exc:
        print(exc, file=sys.stderr)
        return 1
    if not args.quiet:
        print(describe(layout))
    return 0


if __name__ == "__main__":  # pragma: no cover - module CLI guard
    raise SystemExit(main())
