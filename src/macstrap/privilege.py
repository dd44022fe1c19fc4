"""Privilege escalation and console-user resolution.

Root-only work is packaged as an :class:`ElevatedJob`: a typed, JSON
serialisable request that the elevated side dispatches through a fixed
handler table. When the orchestrator already runs as root the job executes
in-process; otherwise the package re-invokes itself under ``sudo`` and feeds
the job on stdin, so no shell text ever crosses the privilege boundary.
"""
from __future__ import annotations

import json
import os
import pwd
import subprocess
import sys
from collections.abc import Callable, Mapping, Sequence
from dataclasses import dataclass, field
from pathlib import Path
from types import MappingProxyType
from typing import TYPE_CHECKING

from .errors import MacstrapError, PrerequisiteMissing
from .exit_codes import ExitCode

if TYPE_CHECKING:
    from .reporting import Reporter

CONSOLE_DEVICE = Path("/dev/console")


class JobPayloadError(MacstrapError):
    """Raised when an elevated job payload is malformed."""

    exit_code = ExitCode.VALIDATION


@dataclass(frozen=True, slots=True)
class ElevatedJob:
    """A root-only unit of work identified by kind plus plain-data params."""

    kind: str
    params: Mapping[str, object] = field(default_factory=lambda: MappingProxyType({}))
    dry_run: bool = False

    def to_dict(self) -> dict[str, object]:
        """Return a serialisable representation."""
        return {"kind": self.kind, "params": dict(self.params), "dry_run": self.dry_run}

    def to_json(self) -> str:
        """Return the JSON payload written to the elevated child's stdin."""
        return json.dumps(self.to_dict(), sort_keys=True)

    @classmethod
    def from_json(cls, payload: str) -> ElevatedJob:
        """Parse and validate a payload produced by :meth:`to_json`."""
        try:
            data = json.loads(payload)
        except json.JSONDecodeError as exc:
            raise JobPayloadError(f"Elevated job payload is not valid JSON: {exc}") from exc
        if not isinstance(data, dict):
            raise JobPayloadError("Elevated job payload must be a JSON object.")
        kind = data.get("kind")
        params = data.get("params", {})
        dry_run = data.get("dry_run", False)
        if not isinstance(kind, str) or not kind:
            raise JobPayloadError("Elevated job payload requires a non-empty 'kind'.")
        if not isinstance(params, dict):
            raise JobPayloadError("Elevated job 'params' must be an object.")
        if not isinstance(dry_run, bool):
            raise JobPayloadError("Elevated job 'dry_run' must be a boolean.")
        return cls(kind=kind, params=MappingProxyType(params), dry_run=dry_run)


@dataclass(frozen=True, slots=True)
class ConsoleUser:
    """The user owning the GUI session."""

    name: str
    uid: int
    home: Path


JobRunner = Callable[[ElevatedJob, "Reporter | None"], int]
CommandRunner = Callable[..., subprocess.CompletedProcess[str]]


def _default_job_runner(job: ElevatedJob, reporter: Reporter | None) -> int:
    from .jobs import run_job

    return run_job(job, reporter=reporter)


class PrivilegeEscalator:
    """Run jobs as root and commands as the console user."""

    def __init__(
        self,
        *,
        sudo_bin: str = "sudo",
        python: str | None = None,
        job_runner: JobRunner | None = None,
        runner: CommandRunner | None = None,
        console_device: Path = CONSOLE_DEVICE,
    ) -> None:
        """Store the sudo binary, interpreter and the in-process job runner."""
        self.sudo_bin = sudo_bin
        self.python = python or sys.executable
        self._job_runner = job_runner or _default_job_runner
        self._runner = runner or subprocess.run
        self.console_device = console_device

    def is_elevated(self) -> bool:
        """Return ``True`` when the effective user is root."""
        return os.geteuid() == 0

    def job_command(self) -> list[str]:
        """Return the command that re-invokes macstrap as root to run one job."""
        return [self.sudo_bin, "--", self.python, "-m", "macstrap", "job"]

    def run_elevated(self, job: ElevatedJob, *, reporter: Reporter | None = None) -> int:
        """Execute *job* with root privileges and return its exit code.

        In-process jobs print through *reporter*. The sudo child's stdout is
        sent to our stderr so stdout only ever carries the caller's output.
        """
        if self.is_elevated():
            return self._job_runner(job, reporter)
        try:
            result = self._runner(
                self.job_command(),
                input=job.to_json(),
                stdout=sys.stderr,
                text=True,
                check=False,
            )
        except FileNotFoundError as exc:
            raise PrerequisiteMissing(f"{self.sudo_bin} not found: {exc}") from exc
        return int(result.returncode)

    def elevated_command(self, command: Sequence[str]) -> list[str]:
        """Prefix *command* with sudo unless already root."""
        if self.is_elevated():
            return list(command)
        return [self.sudo_bin, "--", *command]

    def cache_credentials(self) -> bool:
        """Prompt for the sudo password once so later escalations are quiet."""
        if self.is_elevated():
            return True
        try:
            result = self._runner([self.sudo_bin, "-v"], check=False)
        except FileNotFoundError as exc:
            raise PrerequisiteMissing(f"{self.sudo_bin} not found: {exc}") from exc
        return result.returncode == 0

    def resolve_console_user(self) -> ConsoleUser:
        """Return the owner of the console device.

        Raises :class:`PrerequisiteMissing` when nobody is logged in to the
        GUI (the console belongs to root) or the home directory is unknown.
        """
        try:
            uid = self.console_device.stat().st_uid
        except OSError as exc:
            raise PrerequisiteMissing(f"Cannot read console owner: {exc}") from exc
        if uid == 0:
            raise PrerequisiteMissing("No GUI user logged in; cannot configure the Dock.")
        try:
            entry = pwd.getpwuid(uid)
        except KeyError as exc:
            raise PrerequisiteMissing(f"Console owner uid {uid} has no passwd entry.") from exc
        if not entry.pw_name or entry.pw_name == "root":
            raise PrerequisiteMissing("No GUI user logged in; cannot configure the Dock.")
        home = Path(entry.pw_dir) if entry.pw_dir else None
        if home is None or not home.is_dir():
            raise PrerequisiteMissing(f"Could not determine home directory for {entry.pw_name}.")
        return ConsoleUser(name=entry.pw_name, uid=uid, home=home)

    def as_console_user(self, user: ConsoleUser, command: Sequence[str]) -> list[str]:
        """Return *command* wrapped to run as *user*."""
        if os.geteuid() == user.uid:
            return list(command)
        return [self.sudo_bin, "-u", user.name, "--", *command]


__all__ = [
    "CONSOLE_DEVICE",
    "ConsoleUser",
    "ElevatedJob",
    "JobPayloadError",
    "JobRunner",
    "PrivilegeEscalator",
]
