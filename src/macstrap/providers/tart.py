"""Tart provider: install the latest release binary straight from GitHub."""
from __future__ import annotations

import os
import platform
import shutil
import tarfile
from collections.abc import Callable, Sequence
from dataclasses import dataclass
from pathlib import Path

from ..errors import TartError
from ..net import download
from ._process import run_command

DEFAULT_URL = "https://github.com/cirruslabs/tart/releases/latest/download/tart.tar.gz"
DEFAULT_INSTALL_DIRS = ("/opt/homebrew/bin", "/usr/local/bin")

Elevate = Callable[[Sequence[str]], list[str]]


def find_binary(root: Path, name: str = "tart", *, max_depth: int = 2) -> Path | None:
    """Return the first regular file called *name* within *max_depth* levels."""
    for depth in range(1, max_depth + 1):
        pattern = "/".join(["*"] * (depth - 1) + [name])
        for candidate in sorted(root.glob(pattern)):
            if candidate.is_file() and not candidate.is_symlink():
                return candidate
    return None


@dataclass(slots=True)
class TartProvider:
    """Download, unpack and install the ``tart`` binary."""

    url: str = DEFAULT_URL
    install_dirs: Sequence[str] = DEFAULT_INSTALL_DIRS
    binary_name: str = "tart"
    dry_run: bool = False

    def locate(self) -> str | None:
        """Return the installed ``tart`` path when on PATH."""
        return shutil.which(self.binary_name)

    def install_dir(self) -> Path:
        """Pick the Homebrew prefix on Apple Silicon, else the last fallback."""
        if platform.machine() == "arm64":
            for candidate in self.install_dirs[:-1]:
                if Path(candidate).is_dir():
                    return Path(candidate)
        return Path(self.install_dirs[-1])

    def fetch(self, workdir: Path) -> Path:
        """Download and extract the release tarball, returning the binary path."""
        tarball = workdir / "tart.tar.gz"
        if self.dry_run:
            return workdir / self.binary_name
        download(self.url, tarball)
        try:
            with tarfile.open(tarball, "r:gz") as archive:
                archive.extractall(workdir, filter="data")
        except (tarfile.TarError, OSError) as exc:
            raise TartError(f"Failed to extract tart: {exc}") from exc
        binary = find_binary(workdir, self.binary_name)
        if binary is None:
            raise TartError("Could not locate tart binary in the release archive.")
        binary.chmod(0o755)
        return binary

    def install(self, binary: Path, *, elevate: Elevate) -> Path:
        """Install *binary* into :meth:`install_dir`, escalating when not writable."""
        target_dir = self.install_dir()
        target = target_dir / self.binary_name
        command = ["install", "-m", "0755", str(binary), str(target)]
        if not os.access(target_dir, os.W_OK):
            command = elevate(command)
        run_command(
            command,
            error_cls=TartError,
            error_prefix="install tart",
            dry_run=self.dry_run,
        )
        return target


__all__ = ["DEFAULT_INSTALL_DIRS", "DEFAULT_URL", "TartProvider", "find_binary"]
