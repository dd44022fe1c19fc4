"""Root-side handlers for :class:`~macstrap.privilege.ElevatedJob` payloads."""
from __future__ import annotations

from collections.abc import Callable, Mapping
from pathlib import Path

from .catalog import BackendKind, build_label_catalog
from .errors import Interrupted, MacstrapError, PrerequisiteMissing
from .executor import ActionExecutor, FailurePolicy
from .exit_codes import ExitCode
from .inventory import InventorySnapshot
from .mutators import EditOutcome, ensure_line_in_file
from .privilege import ElevatedJob, JobPayloadError
from .providers.installomator import InstallomatorProvider
from .reconcile import plan
from .reporting import Reporter

JOB_INSTALLOMATOR_LABELS = "installomator-labels"
JOB_PAM_LINE = "pam-line"
PAM_PREVIEW_LINES = 5

JobHandler = Callable[[Mapping[str, object], bool, Reporter], int]


def _require_str(params: Mapping[str, object], key: str) -> str:
    value = params.get(key)
    if not isinstance(value, str) or not value:
        raise JobPayloadError(f"Job parameter '{key}' must be a non-empty string.")
    return value


def _require_str_list(params: Mapping[str, object], key: str) -> list[str]:
    value = params.get(key, [])
    if not isinstance(value, list) or not all(isinstance(entry, str) for entry in value):
        raise JobPayloadError(f"Job parameter '{key}' must be a list of strings.")
    return list(value)


def _installomator_labels(params: Mapping[str, object], dry_run: bool, reporter: Reporter) -> int:
    provider = InstallomatorProvider(
        path=Path(_require_str(params, "installomator")),
        flags=tuple(_require_str_list(params, "flags")),
        dry_run=dry_run,
    )
    catalog = build_label_catalog(_require_str_list(params, "labels"))
    if not provider.is_installed() and not dry_run:
        raise PrerequisiteMissing(f"Installomator not found at {provider.path}.")

    reporter.info(f"Running Installomator labels: {' '.join(item.name for item in catalog)}")
    executor = ActionExecutor(
        provider.install_label,
        policy=FailurePolicy.FAIL_FAST,
        progress=reporter.progress,
    )
    report = executor.execute(plan(catalog, InventorySnapshot(kind=BackendKind.LABEL)))
    reporter.success(f"Installomator installs complete ({report.attempted} label(s)).")
    return ExitCode.OK


def _pam_line(params: Mapping[str, object], dry_run: bool, reporter: Reporter) -> int:
    path = Path(_require_str(params, "path"))
    line = _require_str(params, "line")
    pattern = params.get("pattern")
    if pattern is not None and not isinstance(pattern, str):
        raise JobPayloadError("Job parameter 'pattern' must be a string.")

    edit = ensure_line_in_file(path, line, pattern=pattern, dry_run=dry_run)
    if edit.outcome is EditOutcome.NOOP:
        reporter.info(f"{path} already contains the line → nothing to do.")
        return ExitCode.OK

    if dry_run:
        reporter.info(f"Would back up {path} → {edit.backup_path}")
        reporter.success(f"Would insert '{line}' into {path}.")
        return ExitCode.OK

    reporter.info(f"Backup saved → {edit.backup_path}")
    reporter.success(f"Inserted '{line}' into {path}.")
    if not reporter.quiet:
        head = path.read_text(encoding="utf-8").splitlines()[:PAM_PREVIEW_LINES]
        reporter.info(f"Top of {path}:")
        for entry in head:
            reporter.console.print(f"  {entry}", highlight=False, markup=False)
    return ExitCode.OK


HANDLERS: dict[str, JobHandler] = {
    JOB_INSTALLOMATOR_LABELS: _installomator_labels,
    JOB_PAM_LINE: _pam_line,
}


def run_job(job: ElevatedJob, *, reporter: Reporter | None = None) -> int:
    """Dispatch *job* to its handler and return a process exit code."""
    reporter = reporter or Reporter()
    handler = HANDLERS.get(job.kind)
    if handler is None:
        reporter.error(f"Unknown elevated job kind '{job.kind}'.")
        return ExitCode.VALIDATION
    try:
        return handler(job.params, job.dry_run, reporter)
    except Interrupted:
        raise
    except MacstrapError as exc:
        reporter.error(str(exc))
        return exc.exit_code


__all__ = ["HANDLERS", "JOB_INSTALLOMATOR_LABELS", "JOB_PAM_LINE", "run_job"]
