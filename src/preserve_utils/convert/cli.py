"""CLI entry point for the archival conversion engine."""

from __future__ import annotations

import argparse
import logging
import sys
import threading
from pathlib import Path
from typing import Optional, Sequence

from dotenv import load_dotenv
from rich import box
from rich.console import Console
from rich.markup import escape
from rich.progress import (
    BarColumn,
    MofNCompleteColumn,
    Progress,
    TextColumn,
    TimeElapsedColumn,
)
from rich.table import Table

from preserve_utils.core import config_templates
from preserve_utils.core import workspace as workspace_mod
from preserve_utils.core.config_templates import ConfigTemplateError
from preserve_utils.core.logging import configure_logger
from preserve_utils.core.workspace import WorkspaceError

from .archive import ArchiveError, compress_outputs
from .config import (
    CONFIG_FILENAME,
    ConfigOverrides,
    ConvertConfig,
    PreserveConfigError,
    load_config,
)
from .manager import BatchSummary, ConversionManager
from .manifest import ManifestError, load_manifest, siegfried_identifier
from .models import ConversionOutcome, ConversionStatus
from .registry import ConverterRegistry, default_registry
from .report import write_report
from .settings import SETTINGS_TEMPLATE, SettingsError, seeded_table

SETTINGS_FILENAME = "conversion_settings.toml"

_STATUS_STYLES = {
    ConversionStatus.SUCCESS: "green",
    ConversionStatus.SKIPPED: "cyan",
    ConversionStatus.FAILED: "red",
    ConversionStatus.CANCELED: "yellow",
}


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="preserve convert",
        description=(
            "Convert identified files into archival target formats using the "
            "converters available on this host."
        ),
        epilog=(
            "Run `preserve convert config init` to scaffold convert.toml, "
            "`preserve convert config init --settings` for the conversion "
            "settings, and `preserve convert converters` to list converters."
        ),
    )
    parser.add_argument(
        "manifest",
        type=Path,
        help=(
            "Identification manifest (JSON): native preserve-utils form or "
            "siegfried `sf -json` output."
        ),
    )
    parser.add_argument(
        "--config",
        type=Path,
        help=(
            "Path to a TOML config file (defaults to the workspace config "
            "directory)."
        ),
    )
    parser.add_argument(
        "--workspace",
        type=Path,
        help="Override the workspace root used to resolve default paths.",
    )
    parser.add_argument(
        "--output-dir",
        type=Path,
        help="Directory that receives converted files.",
    )
    parser.add_argument(
        "--input-root",
        type=Path,
        help=(
            "Mirror each file's directory below this root inside the output "
            "directory."
        ),
    )
    parser.add_argument(
        "--settings",
        type=Path,
        help="Conversion settings TOML (defaults to the packaged settings).",
    )
    parser.add_argument(
        "--report",
        type=Path,
        help="Where to write the JSON outcome report.",
    )
    parser.add_argument(
        "--workers",
        type=int,
        help="Number of files converted in parallel.",
    )
    parser.add_argument(
        "--timeout",
        type=float,
        help="Seconds before a converter call is abandoned (0 disables).",
    )
    parser.add_argument(
        "--verify",
        action=argparse.BooleanOptionalAction,
        default=None,
        help="Re-identify outputs with siegfried and fail on a mismatch.",
    )
    parser.add_argument(
        "--archive",
        action=argparse.BooleanOptionalAction,
        default=None,
        help="Zip successfully converted files after the run.",
    )
    parser.add_argument(
        "--override",
        action="append",
        default=[],
        metavar="KEY=CODE",
        help=(
            "Set the target code for a class or format name for this run. "
            "May be repeated."
        ),
    )
    parser.add_argument(
        "--log-level",
        help="Set the logging level for the run (defaults to INFO).",
    )
    parser.add_argument(
        "--verbose",
        action="store_true",
        help="Mirror debug logs to stderr.",
    )
    parser.add_argument(
        "--quiet",
        action="store_true",
        help="Hide the progress bar.",
    )
    return parser


def main(argv: Sequence[str] | None = None) -> int:
    args_list = list(argv) if argv is not None else list(sys.argv[1:])

    if args_list[:1] == ["config"]:
        return _handle_config(args_list[1:])
    if args_list[:1] == ["converters"]:
        return _handle_converters(args_list[1:])

    parser = _build_parser()
    args = parser.parse_args(args_list)

    load_dotenv()

    try:
        overrides = _parse_overrides(args.override)
    except ValueError as exc:
        parser.error(str(exc))

    try:
        load_result = load_config(
            config_path=args.config,
            overrides=ConfigOverrides(
                output_dir=args.output_dir,
                settings_file=args.settings,
                report_file=args.report,
                max_workers=args.workers,
                timeout=args.timeout,
                verify=args.verify,
                archive_enabled=args.archive,
                log_level=args.log_level,
            ),
            workspace_path=args.workspace,
        )
    except PreserveConfigError as exc:
        parser.error(str(exc))

    config = load_result.config
    logger, log_path = configure_logger(
        "preserve_utils.convert",
        log_dir=load_result.layout.path_for("logs"),
        level=config.log_level,
        verbose=args.verbose,
    )
    logger.debug("convert CLI invoked")

    console = Console()
    err_console = Console(stderr=True)

    try:
        table = seeded_table(config.settings_file)
        for key, code in overrides:
            if not table.is_known_key(key):
                _warn_unknown_key(
                    err_console, logger, key, table.suggest_key(key)
                )
            table.set_override(key, code)
        files = load_manifest(args.manifest.expanduser(), table)
    except (SettingsError, ManifestError) as exc:
        err_console.print(f"[red]{escape(str(exc))}[/]")
        return 1
    if table.folder_overrides() and args.input_root is None:
        err_console.print(
            "[yellow]Folder overrides in the conversion settings apply "
            "only with --input-root; ignoring them.[/]"
        )

    registry = default_registry()
    for name in registry.excluded():
        err_console.print(
            f"[yellow]Dependencies for {escape(name)} not present; "
            "converter disabled.[/]"
        )
    if not registry.usable_converters():
        err_console.print(
            "[yellow]No converters are usable on this host; every file "
            "that needs conversion will fail.[/]"
        )

    manager = ConversionManager(
        registry,
        table,
        output_dir=config.output_dir,
        input_root=(
            args.input_root.expanduser().resolve()
            if args.input_root is not None
            else None
        ),
        max_workers=config.max_workers,
        timeout=config.timeout,
        verify=(
            siegfried_identifier(timeout=config.timeout)
            if config.verify
            else None
        ),
        logger=logger,
    )

    outcomes = _run_batch(manager, files, console=console, quiet=args.quiet)
    summary = BatchSummary(outcomes)

    report_path = write_report(
        outcomes,
        config.report_file,
        metadata={
            "manifest": args.manifest,
            "output_dir": config.output_dir,
            "host_os": registry.host_os,
            "converters": {
                v.name: registry.version_of(v)
                for v in registry.usable_converters()
            },
        },
    )

    archive_path: Optional[Path] = None
    if config.archive_enabled:
        try:
            archive_path = compress_outputs(
                outcomes, config.archive_file, root=config.output_dir
            ).path
        except ArchiveError as exc:
            err_console.print(f"[red]{escape(str(exc))}[/]")
            return 1

    _print_summary(
        console,
        summary,
        config=config,
        log_path=log_path,
        report_path=report_path,
        archive_path=archive_path,
    )
    return summary.exit_code


def _parse_overrides(raw: Sequence[str]) -> list[tuple[str, str]]:
    pairs = []
    for item in raw:
        key, sep, code = item.partition("=")
        if not sep or not key.strip() or not code.strip():
            raise ValueError(
                f"--override expects KEY=CODE, got '{item}'."
            )
        pairs.append((key.strip(), code.strip()))
    return pairs


def _warn_unknown_key(
    console: Console,
    logger: logging.Logger,
    key: str,
    suggestion: Optional[str],
) -> None:
    hint = f" Did you mean '{escape(suggestion)}'?" if suggestion else ""
    console.print(
        f"[yellow]Override key '{escape(key)}' matches no class or format "
        f"in the conversion settings.{hint}[/]"
    )
    logger.warning(
        "Override key matches no class or format",
        extra={"key": key, "suggestion": suggestion},
    )


def _run_batch(
    manager: ConversionManager,
    files: Sequence,
    *,
    console: Console,
    quiet: bool,
) -> tuple[ConversionOutcome, ...]:
    cancel = threading.Event()
    result: dict[str, tuple[ConversionOutcome, ...]] = {}
    failure: list[BaseException] = []

    progress = Progress(
        TextColumn("[progress.description]{task.description}"),
        BarColumn(),
        MofNCompleteColumn(),
        TimeElapsedColumn(),
        console=console,
        transient=True,
        disable=quiet,
    )

    with progress:
        task = progress.add_task("Converting", total=len(files))

        def _advance(_outcome: ConversionOutcome) -> None:
            progress.advance(task)

        def _worker() -> None:
            try:
                result["outcomes"] = manager.convert_all(
                    files, cancel_event=cancel, on_outcome=_advance
                )
            except BaseException as exc:  # re-raised on the main thread
                failure.append(exc)

        runner = threading.Thread(
            target=_worker, name="preserve-batch", daemon=True
        )
        runner.start()
        try:
            while runner.is_alive():
                runner.join(timeout=0.2)
        except KeyboardInterrupt:
            cancel.set()
            console.print(
                "[bold yellow]Canceling: waiting for running conversions "
                "to finish.[/]"
            )
            runner.join()

    if failure:
        raise failure[0]
    return result["outcomes"]


def _print_summary(
    console: Console,
    summary: BatchSummary,
    *,
    config: ConvertConfig,
    log_path: Path,
    report_path: Path,
    archive_path: Optional[Path],
) -> None:
    overview = Table(title="Conversion summary", box=box.SIMPLE)
    overview.add_column("Metric", style="bold")
    overview.add_column("Value", justify="right")
    overview.add_row("Files", str(len(summary.outcomes)))
    overview.add_row("Converted", str(summary.success_count))
    overview.add_row("Skipped", str(summary.skipped_count))
    overview.add_row("Failed", str(summary.failure_count))
    if summary.canceled_count:
        overview.add_row("Canceled", str(summary.canceled_count))
    console.print(overview)

    problems = [
        outcome
        for outcome in summary.outcomes
        if outcome.status
        in (ConversionStatus.FAILED, ConversionStatus.CANCELED)
    ]
    if problems:
        detail = Table(title="Not converted", box=box.SIMPLE)
        detail.add_column("File")
        detail.add_column("Status")
        detail.add_column("Target")
        detail.add_column("Tried")
        detail.add_column("Reason")
        for outcome in problems:
            style = _STATUS_STYLES[outcome.status]
            detail.add_row(
                escape(outcome.source.path.name),
                f"[{style}]{outcome.status.value}[/]",
                outcome.target_code or "-",
                ", ".join(outcome.attempted_converters) or "-",
                escape(outcome.last_error or ""),
            )
        console.print(detail)

    console.print(f"Output dir: {escape(str(config.output_dir))}")
    console.print(f"Report:     {escape(str(report_path))}")
    if archive_path is not None:
        console.print(f"Archive:    {escape(str(archive_path))}")
    console.print(f"Log file:   {escape(str(log_path))}")


def _handle_converters(argv: Sequence[str]) -> int:
    parser = argparse.ArgumentParser(
        prog="preserve convert converters",
        description=(
            "List the built-in converters and whether they are usable."
        ),
    )
    parser.parse_args(argv)
    load_dotenv()
    print_converters(default_registry(), Console())
    return 0


def print_converters(registry: ConverterRegistry, console: Console) -> None:
    usable = set(id(v) for v in registry.usable_converters())
    table = Table(title=f"Converters ({registry.host_os})", box=box.SIMPLE)
    table.add_column("Priority", justify="right")
    table.add_column("Name", style="bold")
    table.add_column("Status")
    table.add_column("Sources", justify="right")
    table.add_column("Cap", justify="right")
    table.add_column("Version")
    for position, variant in enumerate(registry.catalog, start=1):
        is_usable = id(variant) in usable
        status = "[green]usable[/]" if is_usable else "[red]missing[/]"
        version = registry.version_of(variant) if is_usable else ""
        table.add_row(
            str(position),
            variant.name,
            status,
            str(len(variant.capabilities)),
            str(variant.max_concurrency or "-"),
            escape(version) or "-",
        )
    console.print(table)


def _handle_config(argv: Sequence[str]) -> int:
    parser = _build_config_parser()
    args = parser.parse_args(argv)

    return _handle_config_init(args)


def _build_config_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="preserve convert config",
        description="Manage configuration files for the convert command.",
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    init_parser = subparsers.add_parser(
        "init",
        help="Write the default convert.toml template.",
    )
    init_parser.add_argument(
        "--path",
        type=Path,
        help=(
            "Destination for the TOML file (defaults to the workspace "
            "config directory)."
        ),
    )
    init_parser.add_argument(
        "--workspace",
        type=Path,
        help=(
            "Workspace root override used when resolving the default config "
            "path."
        ),
    )
    init_parser.add_argument(
        "--settings",
        action="store_true",
        help="Write the conversion settings template instead.",
    )
    init_parser.add_argument(
        "--force",
        action="store_true",
        help="Overwrite the destination if it already exists.",
    )
    return parser


def _handle_config_init(args: argparse.Namespace) -> int:
    filename = SETTINGS_FILENAME if args.settings else CONFIG_FILENAME
    try:
        target = _resolve_config_target(args, filename)
    except WorkspaceError as exc:
        sys.stderr.write(str(exc) + "\n")
        return 1

    name = SETTINGS_TEMPLATE if args.settings else "convert"
    template = config_templates.get_template(name)
    try:
        written = template.write(target, overwrite=args.force)
    except ConfigTemplateError as exc:
        sys.stderr.write(str(exc) + "\n")
        return 1

    sys.stdout.write(f"Wrote {template.filename} to {written}\n")
    return 0


def _resolve_config_target(args: argparse.Namespace, filename: str) -> Path:
    if args.path is not None:
        candidate = args.path.expanduser()
        if not candidate.is_absolute():
            candidate = (Path.cwd() / candidate).resolve()
        return candidate

    layout = workspace_mod.ensure_workspace(path=args.workspace)
    return layout.path_for("config") / filename


if __name__ == "__main__":  # pragma: no cover - module CLI guard
    raise SystemExit(main())
