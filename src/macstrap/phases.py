"""Phase sequencer: run bootstrap phases in order and aggregate outcomes.

A phase that fails marks its dependents ``blocked``; phases that do not
depend on it still run. The overall exit code is the highest exit code any
phase reported, so a run where every phase finished (even with best-effort
item failures) exits ``0``.
"""
from __future__ import annotations

import time
import traceback
from collections.abc import Callable, Collection, Iterable, Mapping, Sequence
from dataclasses import dataclass, field, replace
from enum import Enum
from typing import TYPE_CHECKING, Any

from .errors import BatchAborted, Interrupted, MacstrapError
from .executor import ActionResult, BatchReport
from .exit_codes import ExitCode

if TYPE_CHECKING:
    from .catalog import Catalogs
    from .config import AppConfig
    from .inventory import InventoryReader
    from .privilege import PrivilegeEscalator
    from .reporting import Reporter
    from .steps import Providers


class PhaseStatus(str, Enum):
    """Outcome of one phase."""

    OK = "ok"
    WARNING = "warning"
    FAILED = "failed"
    BLOCKED = "blocked"
    SKIPPED = "skipped"

    @property
    def is_failure(self) -> bool:
        """Return ``True`` when dependents must not run."""
        return self in (PhaseStatus.FAILED, PhaseStatus.BLOCKED)

    @property
    def is_warning(self) -> bool:
        """Return ``True`` when the phase finished with warnings."""
        return self is PhaseStatus.WARNING


@dataclass(slots=True, frozen=True)
class PhaseContext:
    """Everything a phase body needs."""

    config: AppConfig
    catalogs: Catalogs
    providers: Providers
    escalator: PrivilegeEscalator
    inventory: InventoryReader
    reporter: Reporter
    dry_run: bool = False


@dataclass(slots=True, frozen=True)
class PhaseOutcome:
    """Result of running (or not running) a phase."""

    phase: str
    status: PhaseStatus
    message: str
    exit_code: int = ExitCode.OK
    report: BatchReport | None = None
    warnings: Sequence[str] = field(default_factory=tuple)
    duration_ms: int | None = None
    data: Mapping[str, Any] | None = None

    def to_dict(self) -> dict[str, object]:
        """Return a serialisable representation."""
        return {
            "phase": self.phase,
            "status": self.status.value,
            "message": self.message,
            "exit_code": int(self.exit_code),
            "warnings": list(self.warnings),
            "duration_ms": self.duration_ms,
            "report": self.report.to_dict() if self.report is not None else None,
            "data": dict(self.data) if self.data else None,
        }


@dataclass(slots=True, frozen=True)
class PhaseDefinition:
    """Metadata + callable for a phase."""

    id: str
    title: str
    run: Callable[[PhaseContext], PhaseOutcome]
    depends_on: tuple[str, ...] = ()


@dataclass(slots=True, frozen=True)
class BootstrapSummary:
    """Aggregated summary derived from phase outcomes."""

    exit_code: int
    totals: Mapping[PhaseStatus, int]


@dataclass(slots=True, frozen=True)
class BootstrapReport:
    """Complete report for a bootstrap run."""

    outcomes: Sequence[PhaseOutcome]
    summary: BootstrapSummary
    metadata: Mapping[str, Any] | None = None

    def item_failures(self) -> list[tuple[str, ActionResult]]:
        """Return ``(phase, result)`` for every failed catalog item."""
        failures: list[tuple[str, ActionResult]] = []
        for outcome in self.outcomes:
            if outcome.report is not None:
                failures.extend((outcome.phase, result) for result in outcome.report.failures)
        return failures

    def to_dict(self) -> dict[str, object]:
        """Return a serialisable representation."""
        return {
            "exit_code": int(self.summary.exit_code),
            "totals": {status.value: count for status, count in self.summary.totals.items()},
            "phases": [outcome.to_dict() for outcome in self.outcomes],
            "metadata": dict(self.metadata) if self.metadata else {},
        }


def aggregate_outcomes(outcomes: Iterable[PhaseOutcome]) -> BootstrapSummary:
    """Compute per-status totals and the overall exit code."""
    totals = {status: 0 for status in PhaseStatus}
    worst = int(ExitCode.OK)
    for outcome in outcomes:
        totals[outcome.status] += 1
        worst = max(worst, int(outcome.exit_code))
    return BootstrapSummary(exit_code=worst, totals=totals)


def batch_outcome(
    phase: str,
    report: BatchReport,
    *,
    success_message: str,
    extra_warnings: Sequence[str] = (),
) -> PhaseOutcome:
    """Translate a best-effort batch report into a phase outcome."""
    totals = report.totals
    counts = ", ".join(f"{count} {status.value}" for status, count in totals.items() if count)
    warnings = [*extra_warnings, *report.warnings]
    warnings.extend(
        f"{result.item.label}: {result.detail}"
        for result in report.results
        if result.detail and result.detail != "already present"
    )
    status = PhaseStatus.WARNING if warnings or report.failures else PhaseStatus.OK
    message = f"{success_message} ({counts})" if counts else success_message
    return PhaseOutcome(
        phase=phase,
        status=status,
        message=message,
        report=report,
        warnings=tuple(warnings),
    )


def _duration_ms(start: float) -> int:
    return int((time.perf_counter() - start) * 1000)


def _unexpected_failure(phase: PhaseDefinition, exc: Exception, duration_ms: int) -> PhaseOutcome:
    return PhaseOutcome(
        phase=phase.id,
        status=PhaseStatus.FAILED,
        message=f"Phase '{phase.id}' raised an unexpected error: {exc}",
        exit_code=ExitCode.PROVIDER,
        duration_ms=duration_ms,
        data={"exception": repr(exc), "traceback": traceback.format_exc()},
        warnings=("unhandled-exception",),
    )


def _run_single_phase(phase: PhaseDefinition, context: PhaseContext) -> PhaseOutcome:
    start = time.perf_counter()
    try:
        outcome = phase.run(context)
    except Interrupted:
        raise
    except BatchAborted as exc:
        return PhaseOutcome(
            phase=phase.id,
            status=PhaseStatus.FAILED,
            message=str(exc),
            exit_code=exc.exit_code,
            report=exc.report,
            duration_ms=_duration_ms(start),
        )
    except MacstrapError as exc:
        return PhaseOutcome(
            phase=phase.id,
            status=PhaseStatus.FAILED,
            message=str(exc),
            exit_code=exc.exit_code,
            duration_ms=_duration_ms(start),
        )
    except Exception as exc:  # pragma: no cover - defensive catch
        return _unexpected_failure(phase, exc, _duration_ms(start))
    if outcome.phase != phase.id:
        outcome = replace(outcome, phase=phase.id)
    if outcome.duration_ms is None:
        outcome = replace(outcome, duration_ms=_duration_ms(start))
    return outcome


def run_phases(
    context: PhaseContext,
    phases: Sequence[PhaseDefinition],
    *,
    selected: Collection[str] | None = None,
    on_outcome: Callable[[PhaseOutcome], None] | None = None,
) -> BootstrapReport:
    """Run *phases* in order, skipping unselected ones and blocking dependents.

    A dependency that was not selected counts as satisfied; only a failed or
    blocked dependency blocks.
    """
    start = time.perf_counter()
    outcomes: list[PhaseOutcome] = []
    by_id: dict[str, PhaseOutcome] = {}
    for phase in phases:
        if selected is not None and phase.id not in selected:
            outcome = PhaseOutcome(
                phase=phase.id, status=PhaseStatus.SKIPPED, message="not selected"
            )
        else:
            failed_deps = [
                dep for dep in phase.depends_on if dep in by_id and by_id[dep].status.is_failure
            ]
            if failed_deps:
                joined = ", ".join(failed_deps)
                outcome = PhaseOutcome(
                    phase=phase.id,
                    status=PhaseStatus.BLOCKED,
                    message=f"blocked by failed phase(s): {joined}",
                )
                _announce(context.reporter, outcome)
            else:
                context.reporter.info(f"── {phase.title}")
                outcome = _run_single_phase(phase, context)
                _announce(context.reporter, outcome)
        outcomes.append(outcome)
        by_id[phase.id] = outcome
        if on_outcome is not None:
            on_outcome(outcome)

    summary = aggregate_outcomes(outcomes)
    metadata = {
        "duration_ms": _duration_ms(start),
        "phase_count": len(outcomes),
        "dry_run": context.dry_run,
    }
    return BootstrapReport(outcomes=tuple(outcomes), summary=summary, metadata=metadata)


def _announce(reporter: Reporter, outcome: PhaseOutcome) -> None:
    if outcome.status is PhaseStatus.FAILED:
        reporter.error(outcome.message)
    elif outcome.status is PhaseStatus.WARNING:
        for warning in outcome.warnings:
            reporter.warning(warning)
        reporter.success(outcome.message)
    elif outcome.status is PhaseStatus.OK:
        reporter.success(outcome.message)
    elif outcome.status is PhaseStatus.BLOCKED:
        reporter.warning(f"{outcome.phase}: {outcome.message}")


__all__ = [
    "BootstrapReport",
    "BootstrapSummary",
    "PhaseContext",
    "PhaseDefinition",
    "PhaseOutcome",
    "PhaseStatus",
    "aggregate_outcomes",
    "batch_outcome",
    "run_phases",
]
