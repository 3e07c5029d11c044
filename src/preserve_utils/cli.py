"""``preserve``: one entry point for the workspace and conversion commands.

Each subcommand lives in its own module with a ``main(argv)`` function; this
dispatcher imports it on demand so ``preserve --help`` stays fast and does
not require optional converter dependencies.
"""

from __future__ import annotations

import sys
from dataclasses import dataclass
from importlib import import_module, metadata
from typing import Mapping, Optional, Sequence

DISTRIBUTION = "preserve-utils"


@dataclass(frozen=True)
class Subcommand:
    """A ``preserve`` subcommand backed by ``module.main``.

    ``leading_args`` are inserted before the user's arguments, which lets a
    top-level alias reach a nested command of another module.
    """

    name: str
    summary: str
    module: str
    leading_args: tuple[str, ...] = ()

    @property
    def prog(self) -> str:
        return f"preserve {self.name}"

    def run(self, argv: Sequence[str]) -> int:
        entry = getattr(import_module(self.module), "main")
        forwarded = [*self.leading_args, *argv]
        saved_argv = sys.argv
        sys.argv = [self.prog, *forwarded]
        try:
            result = entry(forwarded)
        except SystemExit as exc:
            return _exit_status(exc.code)
        finally:
            sys.argv = saved_argv
        return result if isinstance(result, int) else 0


SUBCOMMANDS: tuple[Subcommand, ...] = (
    Subcommand(
        "init",
        "Create the workspace (config, logs, converted, reports).",
        "preserve_utils.workspace.cli",
    ),
    Subcommand(
        "convert",
        "Convert files listed in a manifest into archival target formats.",
        "preserve_utils.convert.cli",
    ),
    Subcommand(
        "converters",
        "Show the built-in converters and whether this host can run them.",
        "preserve_utils.convert.cli",
        leading_args=("converters",),
    ),
)

COMMANDS: Mapping[str, Subcommand] = {cmd.name: cmd for cmd in SUBCOMMANDS}


def command_table() -> str:
    width = max(len(cmd.name) for cmd in SUBCOMMANDS)
    rows = [f"  {cmd.name:<{width}}  {cmd.summary}" for cmd in SUBCOMMANDS]
    return "\n".join(["Available commands:", *rows])


def usage() -> str:
    return (
        "Usage: preserve <command> [args...]\n"
        "`preserve list` shows commands; `preserve help <command>` describes "
        "one.\n\n" + command_table()
    )


def _version() -> str:
    try:
        return metadata.version(DISTRIBUTION)
    except metadata.PackageNotFoundError:
        return "unknown"


def _unknown(name: str) -> int:
    print(f"Unknown command '{name}'.", file=sys.stderr)
    print(command_table(), file=sys.stderr)
    return 2


def _describe(name: str) -> int:
    command = COMMANDS.get(name)
    if command is None:
        return _unknown(name)
    print(f"{command.name}: {command.summary}")
    print(f"Options: `{command.prog} --help`.")
    return 0


def main(argv: Optional[Sequence[str]] = None) -> int:
    args = list(sys.argv[1:] if argv is None else argv)
    if not args:
        print(usage())
        return 2

    head, rest = args[0], args[1:]
    if head in ("-h", "--help") or (head == "help" and not rest):
        print(usage())
        return 0
    if head == "help":
        return _describe(rest[0])
    if head in ("-V", "--version", "version"):
        print(_version())
        return 0
    if head == "list":
        print(command_table())
        return 0

    command = COMMANDS.get(head)
    if command is None:
        return _unknown(head)
    return command.run(rest)


def _exit_status(code: object) -> int:
    if code is None:
        return 0
    if isinstance(code, int):
        return code
    print(code, file=sys.stderr)
    return 1


if __name__ == "__main__":  # pragma: no cover - module CLI guard
    raise SystemExit(main())
