"""Error taxonomy shared by the orchestration engine and providers."""
from __future__ import annotations

from typing import TYPE_CHECKING

from .exit_codes import ExitCode

if TYPE_CHECKING:
    from .executor import BatchReport


class MacstrapError(RuntimeError):
    """Base class for errors that carry a CLI exit code."""

    exit_code: int = ExitCode.PROVIDER


class InventoryUnavailable(MacstrapError):
    """Raised when a backend cannot report what is already installed."""


class ItemInstallFailed(MacstrapError):
    """Raised when a single catalog item fails to install."""

    def __init__(self, item: str, message: str) -> None:
        """Store the failing item's identifier alongside the message."""
        super().__init__(message)
        self.item = item


class PrerequisiteMissing(MacstrapError):
    """Raised when a tool, user session, or file a phase relies on is absent."""

    exit_code = ExitCode.ENVIRONMENT


class ConfigEditFailed(MacstrapError):
    """Raised when a backup or atomic rewrite of a config file fails."""


class Interrupted(MacstrapError):
    """Raised when the run receives a termination signal."""

    exit_code = ExitCode.INTERRUPTED


class BatchAborted(MacstrapError):
    """Raised when a fail-fast batch stops on its first failure."""

    def __init__(self, message: str, report: BatchReport) -> None:
        """Store the partial report alongside the message."""
        super().__init__(message)
        self.report = report


class ProviderError(MacstrapError):
    """Base class for failures reported by an external tool."""


class HomebrewError(ProviderError):
    """Raised when ``brew`` operations fail."""


class MasError(ProviderError):
    """Raised when ``mas`` operations fail."""


class InstallomatorError(ProviderError):
    """Raised when Installomator bootstrap or label runs fail."""


class DockError(ProviderError):
    """Raised when ``dockutil`` operations fail."""


class DefaultsError(ProviderError):
    """Raised when ``defaults write`` fails."""


class ShellError(ProviderError):
    """Raised when the shell framework install/update fails."""


class TartError(ProviderError):
    """Raised when the tart binary cannot be installed."""


class DownloadError(ProviderError):
    """Raised when a release artefact cannot be fetched."""


__all__ = [
    "BatchAborted",
    "ConfigEditFailed",
    "DefaultsError",
    "DockError",
    "DownloadError",
    "HomebrewError",
    "InstallomatorError",
    "Interrupted",
    "InventoryUnavailable",
    "ItemInstallFailed",
    "MacstrapError",
    "MasError",
    "PrerequisiteMissing",
    "ProviderError",
    "ShellError",
    "TartError",
]
