"""Action executor: apply a plan item-by-item under a failure policy."""
from __future__ import annotations

from collections.abc import Callable, Mapping, Sequence
from dataclasses import dataclass, field
from enum import Enum
from typing import Literal

from .catalog import CatalogItem
from .errors import BatchAborted, Interrupted, MacstrapError
from .reconcile import PlannedAction

ProgressStage = Literal["start", "done", "failed", "skipped", "unavailable"]
ProgressCallback = Callable[[int, int, CatalogItem, ProgressStage], None]
Installer = Callable[[CatalogItem], object]


class FailurePolicy(str, Enum):
    """How a batch reacts to a failed item."""

    BEST_EFFORT = "best-effort"
    FAIL_FAST = "fail-fast"


class ActionStatus(str, Enum):
    """Outcome of attempting a single catalog item."""

    SKIPPED = "skipped"
    SUCCEEDED = "succeeded"
    FAILED = "failed"


class SkipItem(MacstrapError):
    """Raised by an installer to skip an item that cannot apply here."""


@dataclass(frozen=True, slots=True)
class ActionResult:
    """Outcome of one planned action."""

    item: CatalogItem
    status: ActionStatus
    detail: str | None = None

    def to_dict(self) -> dict[str, object]:
        """Return a serialisable representation."""
        return {
            "name": self.item.name,
            "label": self.item.label,
            "kind": self.item.kind.value,
            "status": self.status.value,
            "detail": self.detail,
        }


@dataclass(slots=True)
class BatchReport:
    """Aggregated results for one executed plan."""

    policy: FailurePolicy
    results: list[ActionResult] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)
    aborted: bool = False

    @property
    def totals(self) -> Mapping[ActionStatus, int]:
        """Return the number of results per status."""
        counts = {status: 0 for status in ActionStatus}
        for result in self.results:
            counts[result.status] += 1
        return counts

    @property
    def failures(self) -> list[ActionResult]:
        """Return failed results, in execution order."""
        return [result for result in self.results if result.status is ActionStatus.FAILED]

    @property
    def attempted(self) -> int:
        """Return the number of non-skip attempts."""
        totals = self.totals
        return totals[ActionStatus.SUCCEEDED] + totals[ActionStatus.FAILED]

    def to_dict(self) -> dict[str, object]:
        """Return a serialisable representation."""
        return {
            "policy": self.policy.value,
            "aborted": self.aborted,
            "totals": {status.value: count for status, count in self.totals.items()},
            "results": [result.to_dict() for result in self.results],
            "warnings": list(self.warnings),
        }


@dataclass(frozen=True, slots=True)
class Finalizer:
    """Post-batch action such as upgrade-all or cleanup."""

    name: str
    run: Callable[[], object]


class ActionExecutor:
    """Apply planned actions against a backend installer.

    Best-effort batches record failures and keep going, then always run
    their finalizers. Fail-fast batches stop at the first failure and raise
    :class:`BatchAborted` carrying the partial report.
    """

    def __init__(
        self,
        install: Installer,
        *,
        policy: FailurePolicy = FailurePolicy.BEST_EFFORT,
        progress: ProgressCallback | None = None,
        finalizers: Sequence[Finalizer] = (),
    ) -> None:
        """Store the backend installer and execution policy."""
        self._install = install
        self.policy = policy
        self._progress = progress
        self._finalizers = tuple(finalizers)

    def execute(self, actions: Sequence[PlannedAction]) -> BatchReport:
        """Run *actions* in order and return the batch report."""
        report = BatchReport(policy=self.policy)
        total = len(actions)
        for index, action in enumerate(actions, start=1):
            item = action.item
            if action.is_skip:
                report.results.append(
                    ActionResult(item=item, status=ActionStatus.SKIPPED, detail="already present")
                )
                self._notify(index, total, item, "skipped")
                continue

            result = self._attempt(index, total, item)
            report.results.append(result)
            if result.status is ActionStatus.FAILED and self.policy is FailurePolicy.FAIL_FAST:
                report.aborted = True
                raise BatchAborted(
                    f"Install failed: {item.label} ({result.detail}); "
                    f"{total - index} remaining item(s) not attempted.",
                    report,
                )

        if self.policy is FailurePolicy.BEST_EFFORT:
            self._run_finalizers(report)
        return report

    def _attempt(self, index: int, total: int, item: CatalogItem) -> ActionResult:
        self._notify(index, total, item, "start")
        try:
            self._install(item)
        except Interrupted:
            raise
        except SkipItem as exc:
            self._notify(index, total, item, "unavailable")
            return ActionResult(item=item, status=ActionStatus.SKIPPED, detail=str(exc))
        except (MacstrapError, OSError) as exc:
            self._notify(index, total, item, "failed")
            return ActionResult(item=item, status=ActionStatus.FAILED, detail=str(exc))
        except Exception as exc:  # noqa: BLE001 - one bad item must not end the batch
            self._notify(index, total, item, "failed")
            return ActionResult(
                item=item,
                status=ActionStatus.FAILED,
                detail=f"unexpected {type(exc).__name__}: {exc}",
            )
        self._notify(index, total, item, "done")
        return ActionResult(item=item, status=ActionStatus.SUCCEEDED)

    def _run_finalizers(self, report: BatchReport) -> None:
        for finalizer in self._finalizers:
            try:
                finalizer.run()
            except Interrupted:
                raise
            except (MacstrapError, OSError) as exc:
                report.warnings.append(f"{finalizer.name} failed: {exc}")
            except Exception as exc:  # noqa: BLE001 - finalizers only ever warn
                report.warnings.append(f"{finalizer.name} failed: {type(exc).__name__}: {exc}")

    def _notify(self, index: int, total: int, item: CatalogItem, stage: ProgressStage) -> None:
        if self._progress is not None:
            self._progress(index, total, item, stage)


__all__ = [
    "ActionExecutor",
    "ActionResult",
    "ActionStatus",
    "BatchReport",
    "FailurePolicy",
    "Finalizer",
    "Installer",
    "ProgressCallback",
    "ProgressStage",
    "SkipItem",
]
