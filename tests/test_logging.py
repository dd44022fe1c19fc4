"""Tests for the structured operation log."""
from __future__ import annotations

import json
from pathlib import Path

import pytest

from macstrap.logging import StructuredLogger


def _records(logger: StructuredLogger) -> list[dict[str, object]]:
    lines = logger.operations_log_path.read_text(encoding="utf-8").splitlines()
    return [json.loads(line) for line in lines]


def test_operation_records_steps_and_result(tmp_path: Path) -> None:
    """Each operation appends one JSON line with its steps and result."""
    logger = StructuredLogger(tmp_path / "logs")

    with logger.operation("run", args={"dry_run": True}, target={"kind": "machine"}) as op:
        op.add_step("phase.homebrew", status="ok", detail={"message": "Homebrew ready."})
        op.add_step("phase.packages", status="warning")
        op.warning("Bootstrap finished with warnings.", warnings=["packages: vlc: failed"])

    (record,) = _records(logger)
    assert record["op"] == "run"
    assert record["args"] == {"dry_run": True}
    assert [step["name"] for step in record["steps"]] == ["phase.homebrew", "phase.packages"]
    assert record["steps"][0]["detail"] == {"message": "Homebrew ready."}
    assert record["result"]["status"] == "warning"
    assert record["result"]["warnings"] == ["packages: vlc: failed"]
    assert record["result"]["rc"] == 0


def test_operation_without_result_records_error_on_exception(tmp_path: Path) -> None:
    """An exception escaping the scope is logged as an error before propagating."""
    logger = StructuredLogger(tmp_path / "logs")

    with pytest.raises(RuntimeError):
        with logger.operation("plan"):
            raise RuntimeError("brew exploded")

    (record,) = _records(logger)
    assert record["result"]["status"] == "error"
    assert "brew exploded" in record["result"]["message"]


def test_error_defaults_and_sanitises_context(tmp_path: Path) -> None:
    """Errors default to the message and context values become JSON-safe."""
    logger = StructuredLogger(tmp_path / "logs")

    with logger.operation("run") as op:
        op.error("sudo failed", context={"pam": Path("/etc/pam.d/sudo"), "ids": {7}}, rc=3)

    (record,) = _records(logger)
    result = record["result"]
    assert result["errors"] == ["sudo failed"]
    assert result["rc"] == 3
    assert result["context"] == {"pam": "/etc/pam.d/sudo", "ids": "{7}"}


def test_logger_disables_when_directory_unavailable(
    tmp_path: Path,
    monkeypatch: pytest.MonkeyPatch,
) -> None:
    """The logger turns itself off instead of failing the run."""
    log_dir = tmp_path / "logs"
    original_mkdir = Path.mkdir

    def fail_mkdir(self: Path, *args: object, **kwargs: object) -> None:
        if self == log_dir:
            raise PermissionError("no access")
        original_mkdir(self, *args, **kwargs)

    monkeypatch.setattr(Path, "mkdir", fail_mkdir)

    logger = StructuredLogger(log_dir)
    assert logger.enabled is False

    with logger.operation("phases") as op:
        op.success("done")


def test_logger_disables_after_write_failure(
    tmp_path: Path,
    monkeypatch: pytest.MonkeyPatch,
) -> None:
    """A failed append disables later writes without raising."""
    logger = StructuredLogger(tmp_path / "logs")
    original_open = Path.open

    def fail_open(self: Path, *args: object, **kwargs: object) -> object:
        if self == logger.operations_log_path:
            raise OSError("disk full")
        return original_open(self, *args, **kwargs)

    monkeypatch.setattr(Path, "open", fail_open)

    with logger.operation("run") as op:
        op.success("done")
    assert logger.enabled is False

    with logger.operation("run") as op:
        op.success("done again")
