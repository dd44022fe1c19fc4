"""Typer-powered command line for ``macstrap``.

``macstrap run`` walks the bootstrap phases in order; ``macstrap plan`` shows
what a run would install without touching the machine. The hidden ``job``
command is the root-side entry point used by the privilege escalator.
"""
from __future__ import annotations

import json
import signal
import sys
import textwrap
from collections.abc import Iterator, Mapping, Sequence
from contextlib import contextmanager
from dataclasses import dataclass
from functools import partial
from pathlib import Path
from types import FrameType
from typing import NoReturn

import typer
from rich.console import Console
from rich.table import Table

from . import __version__
from .catalog import BackendKind, CatalogError
from .config import AppConfig, ConfigError, load_config
from .errors import Interrupted, MacstrapError
from .exit_codes import ExitCode
from .inventory import InventoryReader
from .jobs import run_job
from .logging import OperationScope, StructuredLogger
from .phases import BootstrapReport, PhaseOutcome, PhaseStatus, run_phases
from .privilege import ElevatedJob, JobPayloadError, PrivilegeEscalator
from .reconcile import plan as plan_actions
from .reporting import Reporter
from .steps import PHASE_IDS, build_phase_context, build_providers, default_phases

console = Console()

CONFIG_FILE_OPTION = typer.Option(
    None,
    "--config-file",
    dir_okay=False,
    help="Override the path to macstrap's YAML config file.",
)
JSON_OPTION = typer.Option(
    False,
    "--json",
    help="Emit JSON instead of tables.",
)
YES_OPTION = typer.Option(
    False,
    "--yes",
    "-y",
    help="Skip the welcome prompt (required when stdin is not a terminal).",
)
DRY_RUN_OPTION = typer.Option(
    False,
    "--dry-run",
    help="Report the actions that would run without changing the machine.",
)
ONLY_OPTION = typer.Option(
    None,
    "--only",
    metavar="PHASE[,PHASE...]",
    help=f"Comma-separated phases to run ({', '.join(PHASE_IDS)}).",
)
SKIP_OPTION = typer.Option(
    None,
    "--skip",
    metavar="PHASE[,PHASE...]",
    help="Comma-separated phases to leave out.",
)

WELCOME_TITLE = "🎯  macstrap – Preferences & Apps"
WELCOME_CHECKLIST = [
    "Sign in to the Mac App Store",
    "Review the configuration (macstrap config show)",
    "Ensure a stable internet connection",
]

app = typer.Typer(
    add_completion=False,
    help=textwrap.dedent(
        """
        Bootstrap a macOS workstation.

        Applies system preferences, installs Homebrew packages, App Store apps
        and Installomator labels, lays out the Dock, enables Touch ID for sudo
        and sets up Oh My Zsh. Re-running only does what is still missing.
        """
    ).strip(),
)
config_app = typer.Typer(help="Inspect the effective configuration.")
app.add_typer(config_app, name="config")


@dataclass
class RuntimeContext:
    """Aggregated runtime objects shared by commands."""

    config: AppConfig
    logger: StructuredLogger
    escalator: PrivilegeEscalator


def _ensure_runtime(ctx: typer.Context, config_file: Path | None) -> RuntimeContext:
    runtime = ctx.obj
    if isinstance(runtime, RuntimeContext):
        return runtime
    try:
        config = load_config(config_file=config_file)
    except ConfigError as exc:
        console.print(f"[red]{exc}[/red]")
        raise typer.Exit(code=exc.exit_code) from exc
    runtime = RuntimeContext(
        config=config,
        logger=StructuredLogger(config.logs_dir),
        escalator=PrivilegeEscalator(),
    )
    ctx.obj = runtime
    return runtime


def _get_runtime(ctx: typer.Context) -> RuntimeContext:
    runtime = ctx.obj
    if isinstance(runtime, RuntimeContext):
        return runtime
    return _ensure_runtime(ctx, None)


@app.callback(invoke_without_command=True)
def _root(  # noqa: D401 - Typer displays help for us, docstring optional.
    ctx: typer.Context,
    version: bool = typer.Option(
        False,
        "--version",
        "-V",
        help="Show the macstrap version and exit.",
    ),
    config_file: Path | None = CONFIG_FILE_OPTION,
) -> None:
    """Entry point callback invoked for every CLI execution."""
    if version:
        runtime = _ensure_runtime(ctx, config_file)
        with runtime.logger.operation(
            "root --version",
            args={"version": True},
            target={"kind": "meta", "scope": "version"},
        ) as op:
            console.print(f"macstrap {__version__}")
            op.success("Reported CLI version.", changed=0)
        raise typer.Exit(code=0)

    # The elevated child runs as root; it must not create root-owned logs
    # in the operator's home directory.
    if ctx.invoked_subcommand == "job":
        return

    _ensure_runtime(ctx, config_file)

    if ctx.invoked_subcommand is None:
        console.print(ctx.get_help())
        raise typer.Exit(code=0)


def _command_error(
    op: OperationScope,
    message: str,
    *,
    rc: int = 2,
    errors: Sequence[str] | None = None,
) -> NoReturn:
    """Emit a structured error and terminate the command."""
    console.print(f"[red]{message}[/red]")
    op.error(message, errors=list(errors or [message]), rc=rc)
    raise typer.Exit(code=rc)


def _parse_phase_list(raw: str | None) -> list[str]:
    if not raw:
        return []
    return [token.strip() for token in raw.split(",") if token.strip()]


def _resolve_selection(
    op: OperationScope,
    only: str | None,
    skip: str | None,
) -> set[str] | None:
    """Return the phases to run, or ``None`` for all of them."""
    requested = _parse_phase_list(only)
    skipped = _parse_phase_list(skip)
    unknown = sorted(set(requested + skipped) - set(PHASE_IDS))
    if unknown:
        allowed = ", ".join(PHASE_IDS)
        _command_error(
            op,
            f"Unknown phase(s): {', '.join(unknown)}. Allowed: {allowed}.",
            rc=ExitCode.VALIDATION,
        )
    if not requested and not skipped:
        return None
    selected = set(requested or PHASE_IDS) - set(skipped)
    if not selected:
        _command_error(op, "No phases left to run after --only/--skip.", rc=ExitCode.VALIDATION)
    return selected


@contextmanager
def _interrupt_guard() -> Iterator[None]:
    """Turn SIGTERM/SIGHUP into :class:`Interrupted` for the duration of a run."""

    def _handler(signum: int, frame: FrameType | None) -> None:
        raise Interrupted(f"Received {signal.Signals(signum).name}.")

    previous = {sig: signal.signal(sig, _handler) for sig in (signal.SIGTERM, signal.SIGHUP)}
    try:
        yield
    finally:
        for sig, handler in previous.items():
            signal.signal(sig, handler)


def _record_outcome(op: OperationScope, outcome: PhaseOutcome) -> None:
    op.add_step(
        f"phase.{outcome.phase}",
        status=outcome.status.value,
        detail={"message": outcome.message, "warnings": list(outcome.warnings)},
    )


def _welcome(reporter: Reporter) -> bool:
    reporter.banner(WELCOME_TITLE, WELCOME_CHECKLIST)
    return typer.confirm("Continue?", default=True)


def _finish_run(op: OperationScope, report: BootstrapReport, *, dry_run: bool) -> int:
    exit_code = report.summary.exit_code
    context: Mapping[str, object] = {
        "exit_code": exit_code,
        "dry_run": dry_run,
        "totals": {status.value: count for status, count in report.summary.totals.items()},
    }
    failed = [
        f"{outcome.phase}: {outcome.message}"
        for outcome in report.outcomes
        if outcome.status is PhaseStatus.FAILED
    ]
    warnings = [
        f"{outcome.phase}: {warning}"
        for outcome in report.outcomes
        for warning in outcome.warnings
    ]
    if exit_code != ExitCode.OK:
        op.error(
            "Bootstrap finished with failed phases.",
            errors=failed,
            context=context,
            rc=exit_code,
        )
    elif warnings:
        op.warning("Bootstrap finished with warnings.", warnings=warnings, context=context)
    else:
        op.success("Bootstrap complete.", context=context)
    return exit_code


@app.command("run")
def run_command(
    ctx: typer.Context,
    yes: bool = YES_OPTION,
    dry_run: bool = DRY_RUN_OPTION,
    only: str | None = ONLY_OPTION,
    skip: str | None = SKIP_OPTION,
    json_output: bool = JSON_OPTION,
) -> None:
    """Bootstrap this Mac, installing only what is missing."""
    runtime = _get_runtime(ctx)
    reporter = Reporter(console, quiet=json_output)

    with runtime.logger.operation(
        "run",
        args={"yes": yes, "dry_run": dry_run, "only": only, "skip": skip, "json": json_output},
        target={"kind": "machine"},
    ) as op:
        selected = _resolve_selection(op, only, skip)
        if not yes:
            if not sys.stdin.isatty():
                _command_error(
                    op,
                    "Refusing to run without a terminal; pass --yes to confirm.",
                    rc=ExitCode.VALIDATION,
                )
            if not _welcome(reporter):
                console.print("Aborted.")
                op.success("Run cancelled by operator.", changed=0)
                raise typer.Exit(code=0)

        try:
            with _interrupt_guard():
                if not dry_run:
                    reporter.info("Checking sudo access…")
                    if not runtime.escalator.cache_credentials():
                        _command_error(op, "sudo authentication failed.", rc=ExitCode.ENVIRONMENT)
                context = build_phase_context(
                    runtime.config,
                    reporter=reporter,
                    escalator=runtime.escalator,
                    dry_run=dry_run,
                )
                report = run_phases(
                    context,
                    default_phases(),
                    selected=selected,
                    on_outcome=partial(_record_outcome, op),
                )
        except (Interrupted, KeyboardInterrupt):
            reporter.restore_terminal()
            _command_error(op, "Interrupted", rc=ExitCode.INTERRUPTED)
        except MacstrapError as exc:
            _command_error(op, str(exc), rc=exc.exit_code)

        if json_output:
            console.print_json(data=report.to_dict())
        else:
            reporter.summary(report)
            if dry_run:
                console.print("[yellow]Dry run[/yellow]: no changes were made.")
            elif report.summary.exit_code == ExitCode.OK:
                console.print("\n[green bold]✨  All done! Consider rebooting.[/green bold]")
        exit_code = _finish_run(op, report, dry_run=dry_run)

    if exit_code != ExitCode.OK:
        raise typer.Exit(code=exit_code)


@app.command("plan")
def plan_command(
    ctx: typer.Context,
    json_output: bool = JSON_OPTION,
) -> None:
    """Show what a run would install or skip, without changing anything."""
    runtime = _get_runtime(ctx)

    with runtime.logger.operation(
        "plan",
        args={"json": json_output},
        target={"kind": "machine"},
    ) as op:
        try:
            catalogs = runtime.config.catalogs.build()
        except CatalogError as exc:
            _command_error(op, str(exc), rc=exc.exit_code)

        providers = build_providers(runtime.config, dry_run=True)
        inventory = InventoryReader(homebrew=providers.homebrew, store=providers.mas)
        snapshots = []
        if len(catalogs.packages):
            snapshots.extend(
                inventory.snapshot(kind) for kind in (BackendKind.FORMULA, BackendKind.CASK)
            )
        if len(catalogs.app_store):
            snapshots.append(inventory.snapshot(BackendKind.STORE))

        sections = {
            "packages": plan_actions(catalogs.packages, snapshots),
            "app-store": plan_actions(catalogs.app_store, snapshots),
            "installomator-labels": plan_actions(catalogs.labels, snapshots),
            "dock": plan_actions(catalogs.dock, snapshots),
        }
        payload = {
            "plan": {
                section: [
                    {
                        "name": action.item.name,
                        "label": action.item.label,
                        "kind": action.item.kind.value,
                        "action": action.kind,
                    }
                    for action in actions
                ]
                for section, actions in sections.items()
            },
            "warnings": list(inventory.warnings),
        }
        pending = sum(
            1 for actions in sections.values() for action in actions if not action.is_skip
        )

        if json_output:
            console.print_json(data=payload)
        else:
            table = Table(show_header=True, header_style="bold magenta")
            table.add_column("Phase", style="bold")
            table.add_column("Item")
            table.add_column("Kind")
            table.add_column("Action")
            for section, actions in sections.items():
                for action in actions:
                    style = "dim" if action.is_skip else "green"
                    table.add_row(
                        section,
                        action.item.label,
                        action.item.kind.value,
                        f"[{style}]{action.kind}[/{style}]",
                    )
            console.print(table)
            for warning in inventory.warnings:
                console.print(f"[yellow]{warning}[/yellow]")
            console.print(f"{pending} item(s) to install.")

        context = {"pending": pending}
        if inventory.warnings:
            op.warning(
                "Planned with partial inventory.",
                warnings=inventory.warnings,
                context=context,
            )
        else:
            op.success("Reported install plan.", changed=0, context=context)


@app.command("phases")
def phases_command(
    ctx: typer.Context,
    json_output: bool = JSON_OPTION,
) -> None:
    """List bootstrap phases in execution order with their dependencies."""
    runtime = _get_runtime(ctx)
    entries = [
        {"id": phase.id, "title": phase.title, "depends_on": list(phase.depends_on)}
        for phase in default_phases()
    ]

    with runtime.logger.operation(
        "phases",
        args={"json": json_output},
        target={"kind": "phases"},
    ) as op:
        if json_output:
            console.print_json(data={"phases": entries})
            op.success("Reported phases as JSON.", changed=0)
            return

        table = Table(show_header=True, header_style="bold magenta")
        table.add_column("Phase", style="bold")
        table.add_column("Title")
        table.add_column("Depends on")
        for entry in entries:
            table.add_row(entry["id"], entry["title"], ", ".join(entry["depends_on"]) or "-")
        console.print(table)
        op.success("Reported phases.", changed=0)


@config_app.command("show")
def config_show(
    ctx: typer.Context,
    json_output: bool = typer.Option(
        False,
        "--json",
        help="Emit configuration as JSON instead of a table.",
    ),
) -> None:
    """Display the effective configuration after merges."""
    runtime = _get_runtime(ctx)
    data = runtime.config.to_dict()

    with runtime.logger.operation(
        "config show",
        args={"json": json_output},
        target={"kind": "config"},
    ) as op:
        if json_output:
            console.print_json(data=data)
            op.success("Rendered configuration as JSON.", changed=0)
            return

        table = Table(show_header=True, header_style="bold magenta")
        table.add_column("Key", style="bold")
        table.add_column("Value")

        for key, value in data.items():
            if isinstance(value, dict):
                rendered = json.dumps(value, indent=2, sort_keys=True)
            else:
                rendered = str(value)
            table.add_row(key, rendered)

        console.print(table)
        op.success("Rendered configuration table.", changed=0)


@app.command("job", hidden=True)
def job_command() -> None:
    """Run one elevated job read as JSON from stdin."""
    reporter = Reporter(console)
    try:
        job = ElevatedJob.from_json(sys.stdin.read())
    except JobPayloadError as exc:
        reporter.error(str(exc))
        raise typer.Exit(code=exc.exit_code) from exc

    try:
        with _interrupt_guard():
            rc = run_job(job, reporter=reporter)
    except (Interrupted, KeyboardInterrupt):
        reporter.restore_terminal()
        reporter.error("Interrupted")
        raise typer.Exit(code=ExitCode.INTERRUPTED) from None
    raise typer.Exit(code=int(rc))


def main() -> None:
    """Console script entry point."""
    app()


__all__ = ["RuntimeContext", "app", "main"]
