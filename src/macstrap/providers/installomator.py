"""Installomator provider: release discovery, pkg install and label runs."""
from __future__ import annotations

import os
from collections.abc import Callable, Sequence
from dataclasses import dataclass
from pathlib import Path

from packaging.version import InvalidVersion, Version

from ..catalog import BackendKind, CatalogItem
from ..errors import InstallomatorError, ItemInstallFailed
from ..net import download, resolve_redirect
from ._process import run_command

DEFAULT_PATH = Path("/usr/local/Installomator/Installomator.sh")
DEFAULT_RELEASES_URL = "https://github.com/Installomator/Installomator/releases/latest"
DEFAULT_DOWNLOAD_URL = (
    "https://github.com/Installomator/Installomator/releases/download/"
    "{tag}/Installomator-{version}.pkg"
)
DEFAULT_FLAGS = ("DEBUG=0", "NOTIFY=silent")

Elevate = Callable[[Sequence[str]], list[str]]


@dataclass(frozen=True, slots=True)
class InstallomatorRelease:
    """Latest release as resolved from the releases redirect."""

    tag: str
    version: str
    pkg_url: str


def parse_release_url(
    final_url: str, download_template: str = DEFAULT_DOWNLOAD_URL
) -> InstallomatorRelease:
    """Extract the release tag from a ``.../releases/tag/<tag>`` URL."""
    marker = "/tag/"
    if marker not in final_url:
        raise InstallomatorError(
            f"Could not resolve the latest Installomator release tag (got {final_url})."
        )
    tag = final_url.split(marker, 1)[1].strip("/").split("/", 1)[0]
    if not tag:
        raise InstallomatorError(f"Empty release tag in {final_url}.")
    version = tag[1:] if tag[:1] in ("v", "V") else tag
    try:
        Version(version)
    except InvalidVersion as exc:
        raise InstallomatorError(f"Unexpected Installomator release tag '{tag}'.") from exc
    return InstallomatorRelease(
        tag=tag,
        version=version,
        pkg_url=download_template.format(tag=tag, version=version),
    )


@dataclass(slots=True)
class InstallomatorProvider:
    """Install Installomator itself and run deployment labels through it."""

    path: Path = DEFAULT_PATH
    releases_url: str = DEFAULT_RELEASES_URL
    download_url: str = DEFAULT_DOWNLOAD_URL
    installer_bin: str = "installer"
    flags: Sequence[str] = DEFAULT_FLAGS
    dry_run: bool = False

    def is_installed(self) -> bool:
        """Return ``True`` when the Installomator script is executable."""
        return self.path.is_file() and os.access(self.path, os.X_OK)

    def resolve_latest(self) -> InstallomatorRelease:
        """Return the latest release by following the ``releases/latest`` redirect."""
        return parse_release_url(resolve_redirect(self.releases_url), self.download_url)

    def download(self, release: InstallomatorRelease, directory: Path) -> Path:
        """Download the release pkg into *directory*."""
        dest = directory / f"Installomator-{release.version}.pkg"
        if self.dry_run:
            return dest
        return download(release.pkg_url, dest)

    def install_pkg(self, pkg: Path, *, elevate: Elevate) -> None:
        """Install *pkg* to the boot volume with root privileges."""
        run_command(
            elevate([self.installer_bin, "-pkg", str(pkg), "-target", "/"]),
            error_cls=InstallomatorError,
            error_prefix="installer",
            capture_output=False,
            dry_run=self.dry_run,
        )

    def install_label(self, item: CatalogItem) -> None:
        """Run Installomator for one deployment label."""
        if item.kind is not BackendKind.LABEL:
            raise InstallomatorError(f"Installomator cannot install {item.kind.value} item.")
        try:
            run_command(
                [f"./{self.path.name}", item.name, *self.flags],
                error_cls=InstallomatorError,
                error_prefix=f"Installomator {item.name}",
                capture_output=False,
                dry_run=self.dry_run,
                cwd=self.path.parent,
            )
        except InstallomatorError as exc:
            raise ItemInstallFailed(item.name, str(exc)) from exc


__all__ = [
    "DEFAULT_DOWNLOAD_URL",
    "DEFAULT_FLAGS",
    "DEFAULT_PATH",
    "DEFAULT_RELEASES_URL",
    "InstallomatorProvider",
    "InstallomatorRelease",
    "parse_release_url",
]
