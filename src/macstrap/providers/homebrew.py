"""Homebrew provider: bootstrap, inventory and formula/cask installs."""
from __future__ import annotations

import os
import shutil
import subprocess
from collections.abc import Sequence
from dataclasses import dataclass, field
from pathlib import Path

from ..catalog import BackendKind, CatalogItem
from ..errors import HomebrewError, ItemInstallFailed
from ..net import fetch_text
from ._process import output_lines, run_command

DEFAULT_INSTALL_URL = "https://raw.githubusercontent.com/Homebrew/install/HEAD/install.sh"
DEFAULT_SEARCH_PATHS = ("/opt/homebrew/bin/brew", "/usr/local/bin/brew")


@dataclass(slots=True)
class HomebrewProvider:
    """Drive the ``brew`` CLI."""

    brew_bin: str = "brew"
    search_paths: Sequence[str] = DEFAULT_SEARCH_PATHS
    install_url: str = DEFAULT_INSTALL_URL
    dry_run: bool = False
    _resolved: str | None = field(default=None, init=False, repr=False)

    def locate(self) -> str | None:
        """Return the ``brew`` executable, checking PATH then known prefixes."""
        found = shutil.which(self.brew_bin)
        if found:
            return found
        for candidate in self.search_paths:
            if os.access(candidate, os.X_OK):
                return candidate
        return None

    def is_installed(self) -> bool:
        """Return ``True`` when ``brew`` can be found."""
        return self.locate() is not None

    def brew(self) -> str:
        """Return the executable to invoke, falling back to the configured name."""
        if self._resolved is None:
            self._resolved = self.locate()
        return self._resolved or self.brew_bin

    @property
    def prefix_bin(self) -> Path:
        """Return the directory that holds ``brew``."""
        located = self.locate()
        if located:
            return Path(located).parent
        return Path(self.search_paths[0]).parent if self.search_paths else Path("/usr/local/bin")

    def shellenv_line(self) -> str:
        """Return the profile line that loads Homebrew's environment."""
        return f'eval "$({self.prefix_bin / "brew"} shellenv)"'

    def ensure_on_path(self) -> bool:
        """Prepend the Homebrew bin directory to PATH for this process."""
        bin_dir = str(self.prefix_bin)
        entries = os.environ.get("PATH", "").split(os.pathsep)
        if bin_dir in entries:
            return False
        os.environ["PATH"] = os.pathsep.join([bin_dir, *[entry for entry in entries if entry]])
        self._resolved = None
        return True

    def install_homebrew(self) -> None:
        """Fetch and run the official installer script."""
        if self.dry_run:
            return
        script = fetch_text(self.install_url)
        run_command(
            ["/bin/bash", "-c", script],
            error_cls=HomebrewError,
            error_prefix="Homebrew installer",
            capture_output=False,
        )
        self._resolved = None

    def update(self) -> None:
        """Run ``brew update``."""
        self._brew(["update"], capture_output=False)

    def upgrade(self) -> None:
        """Run ``brew upgrade``."""
        self._brew(["upgrade"], capture_output=False)

    def cleanup(self) -> None:
        """Run ``brew cleanup``."""
        self._brew(["cleanup"], capture_output=False)

    def list_formulae(self) -> list[str]:
        """Return installed formula names."""
        return output_lines(self._brew(["list", "--formula", "-1"], query=True))

    def list_casks(self) -> list[str]:
        """Return installed cask names."""
        return output_lines(self._brew(["list", "--cask", "-1"], query=True))

    def install_command(self, item: CatalogItem) -> list[str]:
        """Return the ``brew install`` arguments for *item*."""
        if item.kind is BackendKind.FORMULA:
            return ["install", item.name]
        if item.kind is BackendKind.CASK:
            args = ["install", "--cask"]
            if item.option("no_quarantine"):
                args.append("--no-quarantine")
            args.append(item.name)
            return args
        raise HomebrewError(f"Homebrew cannot install {item.kind.value} item '{item.name}'.")

    def install(self, item: CatalogItem) -> None:
        """Install a formula or cask."""
        args = self.install_command(item)
        try:
            self._brew(args, capture_output=False)
        except HomebrewError as exc:
            raise ItemInstallFailed(item.name, str(exc)) from exc

    def _brew(
        self,
        args: Sequence[str],
        *,
        query: bool = False,
        capture_output: bool = True,
    ) -> subprocess.CompletedProcess[str]:
        joined = " ".join(args[:2])
        return run_command(
            [self.brew(), *args],
            error_cls=HomebrewError,
            error_prefix=f"brew {joined}",
            capture_output=capture_output,
            dry_run=self.dry_run and not query,
        )


__all__ = ["DEFAULT_INSTALL_URL", "DEFAULT_SEARCH_PATHS", "HomebrewProvider"]
