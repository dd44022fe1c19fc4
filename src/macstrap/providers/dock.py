"""Dock provider backed by ``dockutil``, always acting as the console user."""
from __future__ import annotations

import shutil
import subprocess
from collections.abc import Callable, Sequence
from dataclasses import dataclass
from pathlib import Path

from ..errors import DockError
from ._process import run_command

AsUser = Callable[[Sequence[str]], list[str]]


def _identity(command: Sequence[str]) -> list[str]:
    return list(command)


@dataclass(slots=True)
class DockProvider:
    """Rebuild a user's Dock with ``dockutil``.

    Every mutation passes ``--no-restart``; the Dock is restarted once at the
    end via :meth:`restart`. ``as_user`` wraps each command so it runs under
    the console user's identity even when the orchestrator is root.
    """

    dockutil_bin: str = "dockutil"
    killall_bin: str = "killall"
    dry_run: bool = False

    def locate(self) -> str | None:
        """Return the ``dockutil`` executable path when installed."""
        return shutil.which(self.dockutil_bin)

    def clear(self, home: Path, *, as_user: AsUser = _identity) -> None:
        """Remove every persistent Dock item for the user owning *home*."""
        self._dockutil(["--remove", "all", "--no-restart", str(home)], as_user=as_user)

    def add(
        self,
        path: str | Path,
        home: Path,
        *,
        view: str | None = None,
        as_user: AsUser = _identity,
    ) -> None:
        """Append *path* to the Dock of the user owning *home*."""
        args = ["--add", str(path)]
        if view:
            args.extend(["--view", view])
        args.extend(["--no-restart", str(home)])
        self._dockutil(args, as_user=as_user)

    def restart(self, *, as_user: AsUser = _identity) -> None:
        """Restart the Dock so queued changes show up."""
        run_command(
            as_user([self.killall_bin, "Dock"]),
            error_cls=DockError,
            error_prefix="killall Dock",
            dry_run=self.dry_run,
        )

    def _dockutil(
        self, args: Sequence[str], *, as_user: AsUser
    ) -> subprocess.CompletedProcess[str]:
        return run_command(
            as_user([self.dockutil_bin, *args]),
            error_cls=DockError,
            error_prefix=f"dockutil {args[0]}",
            dry_run=self.dry_run,
        )


__all__ = ["AsUser", "DockProvider"]
