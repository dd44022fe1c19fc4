"""Providers wrapping the external tools a bootstrap run drives."""
from __future__ import annotations

from .dock import DockProvider
from .homebrew import HomebrewProvider
from .installomator import InstallomatorProvider, InstallomatorRelease
from .mas import MasProvider
from .shell import ShellFrameworkProvider
from .tart import TartProvider

__all__ = [
    "DockProvider",
    "HomebrewProvider",
    "InstallomatorProvider",
    "InstallomatorRelease",
    "MasProvider",
    "ShellFrameworkProvider",
    "TartProvider",
]
