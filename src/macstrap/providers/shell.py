"""Oh My Zsh provider: install on first run, fast-forward afterwards."""
from __future__ import annotations

import os
import shutil
from dataclasses import dataclass
from pathlib import Path

from ..errors import PrerequisiteMissing, ShellError
from ..net import fetch_text
from ._process import run_command

DEFAULT_INSTALL_URL = "https://raw.githubusercontent.com/ohmyzsh/ohmyzsh/master/tools/install.sh"


@dataclass(slots=True)
class ShellFrameworkProvider:
    """Manage an Oh My Zsh checkout."""

    install_dir: Path
    install_url: str = DEFAULT_INSTALL_URL
    git_bin: str = "git"
    dry_run: bool = False

    def is_installed(self) -> bool:
        """Return ``True`` when the checkout directory exists."""
        return self.install_dir.is_dir()

    def install(self) -> None:
        """Run the upstream installer unattended.

        ``RUNZSH=no`` stops the installer from replacing this process with a
        new shell; ``CHSH=yes`` keeps the login-shell switch.
        """
        if self.dry_run:
            return
        script = fetch_text(self.install_url)
        env = dict(os.environ)
        env.update({"RUNZSH": "no", "CHSH": "yes", "ZSH": str(self.install_dir)})
        run_command(
            ["/bin/bash", "-c", script],
            error_cls=ShellError,
            error_prefix="Oh My Zsh installer",
            capture_output=False,
            env=env,
        )

    def update(self) -> None:
        """Pull the checkout with ``git pull --rebase --autostash``."""
        if shutil.which(self.git_bin) is None:
            raise PrerequisiteMissing("git not available; cannot update Oh My Zsh.")
        run_command(
            [self.git_bin, "-C", str(self.install_dir), "pull", "--rebase", "--autostash"],
            error_cls=ShellError,
            error_prefix="git pull",
            capture_output=False,
            dry_run=self.dry_run,
        )


__all__ = ["DEFAULT_INSTALL_URL", "ShellFrameworkProvider"]
