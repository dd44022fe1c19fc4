"""Mac App Store provider backed by the ``mas`` CLI."""
from __future__ import annotations

import shutil
import subprocess
from collections.abc import Sequence
from dataclasses import dataclass

from ..catalog import BackendKind, CatalogItem
from ..errors import ItemInstallFailed, MasError
from ._process import output_lines, run_command


@dataclass(slots=True)
class MasProvider:
    """Drive the ``mas`` CLI."""

    mas_bin: str = "mas"
    dry_run: bool = False

    def is_available(self) -> bool:
        """Return ``True`` when ``mas`` is on PATH."""
        return shutil.which(self.mas_bin) is not None

    def list_installed(self) -> list[str]:
        """Return the numeric IDs of installed apps.

        ``mas list`` prints ``<id>  <name> (<version>)``; only the first token
        of each line is kept.
        """
        result = self._mas(["list"], query=True)
        return [line.split()[0] for line in output_lines(result)]

    def install(self, item: CatalogItem) -> None:
        """Install the app identified by *item*."""
        if item.kind is not BackendKind.STORE:
            raise MasError(f"mas cannot install {item.kind.value} item '{item.name}'.")
        try:
            self._mas(["install", item.name], capture_output=False)
        except MasError as exc:
            raise ItemInstallFailed(item.name, str(exc)) from exc

    def upgrade(self) -> None:
        """Run ``mas upgrade``."""
        self._mas(["upgrade"], capture_output=False)

    def _mas(
        self,
        args: Sequence[str],
        *,
        query: bool = False,
        capture_output: bool = True,
    ) -> subprocess.CompletedProcess[str]:
        return run_command(
            [self.mas_bin, *args],
            error_cls=MasError,
            error_prefix=f"mas {args[0]}",
            capture_output=capture_output,
            dry_run=self.dry_run and not query,
        )


__all__ = ["MasProvider"]
