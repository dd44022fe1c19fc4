"""Subprocess helper shared by the tool providers."""
from __future__ import annotations

import subprocess
import sys
from collections.abc import Mapping, Sequence
from pathlib import Path

from ..errors import ProviderError


def run_command(
    args: Sequence[str],
    *,
    error_cls: type[ProviderError],
    error_prefix: str | None = None,
    check: bool = True,
    capture_output: bool = True,
    dry_run: bool = False,
    env: Mapping[str, str] | None = None,
    cwd: Path | None = None,
    input_text: str | None = None,
) -> subprocess.CompletedProcess[str]:
    """Run *args* and raise *error_cls* on a missing binary or non-zero exit.

    With ``capture_output=False`` the child writes straight to the terminal,
    which is how long-running installers show their own progress. Its stdout
    is pointed at our stderr so ``--json`` output on stdout stays parseable.
    """
    command = [str(arg) for arg in args]
    if dry_run:
        return subprocess.CompletedProcess(command, returncode=0, stdout="", stderr="")
    streams: dict[str, object] = {} if capture_output else {"stdout": sys.stderr}
    try:
        result = subprocess.run(  # noqa: S603
            command,
            capture_output=capture_output,
            text=True,
            check=False,
            env=dict(env) if env is not None else None,
            cwd=str(cwd) if cwd is not None else None,
            input=input_text,
            **streams,
        )
    except FileNotFoundError as exc:
        raise error_cls(f"{command[0]} not found: {exc}") from exc
    if check and result.returncode != 0:
        stdout = getattr(result, "stdout", "") or ""
        stderr = getattr(result, "stderr", "") or ""
        message = stderr.strip() or stdout.strip() or "no output"
        prefix = error_prefix or " ".join(command[:2])
        raise error_cls(f"{prefix} failed (exit {result.returncode}): {message}")
    return result


def output_lines(result: subprocess.CompletedProcess[str]) -> list[str]:
    """Return the non-blank stdout lines of *result*."""
    return [line.strip() for line in (result.stdout or "").splitlines() if line.strip()]


__all__ = ["output_lines", "run_command"]
