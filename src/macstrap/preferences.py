"""System preference writes via ``defaults`` followed by a UI restart."""
from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass
from types import MappingProxyType
from typing import Literal

from .catalog import BackendKind, CatalogItem
from .errors import DefaultsError
from .executor import ActionExecutor, BatchReport, FailurePolicy, Finalizer, ProgressCallback
from .providers._process import run_command
from .reconcile import PlannedAction

ValueType = Literal["bool", "string", "int", "float"]
VALUE_TYPES: tuple[str, ...] = ("bool", "string", "int", "float")
DEFAULT_RESTART_PROCESSES = ("Dock", "Finder", "SystemUIServer")


@dataclass(frozen=True, slots=True)
class PreferenceSetting:
    """One ``defaults write`` call."""

    domain: str
    key: str
    type: ValueType
    value: bool | str | int | float

    @property
    def rendered_value(self) -> str:
        """Return the value as ``defaults`` expects it on the command line."""
        if self.type == "bool":
            return "true" if self.value else "false"
        return str(self.value)

    def command(self, defaults_bin: str = "defaults") -> list[str]:
        """Return the full ``defaults write`` invocation."""
        return [defaults_bin, "write", self.domain, self.key, f"-{self.type}", self.rendered_value]

    def to_dict(self) -> dict[str, object]:
        """Return a serialisable representation."""
        return {"domain": self.domain, "key": self.key, "type": self.type, "value": self.value}


class PreferencesWriter:
    """Apply a fixed batch of preference writes, then restart affected UI."""

    def __init__(
        self,
        *,
        defaults_bin: str = "defaults",
        killall_bin: str = "killall",
        restart_processes: Sequence[str] = DEFAULT_RESTART_PROCESSES,
        dry_run: bool = False,
    ) -> None:
        """Store tool names and the processes to restart afterwards."""
        self.defaults_bin = defaults_bin
        self.killall_bin = killall_bin
        self.restart_processes = tuple(restart_processes)
        self.dry_run = dry_run

    def write(self, setting: PreferenceSetting) -> None:
        """Run one ``defaults write``."""
        run_command(
            setting.command(self.defaults_bin),
            error_cls=DefaultsError,
            error_prefix=f"defaults write {setting.domain} {setting.key}",
            dry_run=self.dry_run,
        )

    def restart(self) -> None:
        """Restart the UI processes; a process that is not running is fine."""
        if not self.restart_processes:
            return
        run_command(
            [self.killall_bin, *self.restart_processes],
            error_cls=DefaultsError,
            check=False,
            dry_run=self.dry_run,
        )

    def apply(
        self,
        settings: Sequence[PreferenceSetting],
        *,
        progress: ProgressCallback | None = None,
    ) -> BatchReport:
        """Write every setting best-effort and restart the UI once at the end."""
        actions = [PlannedAction(kind="install", item=_as_item(setting)) for setting in settings]
        executor = ActionExecutor(
            self._write_item,
            policy=FailurePolicy.BEST_EFFORT,
            progress=progress,
            finalizers=(Finalizer("restart UI", self.restart),),
        )
        return executor.execute(actions)

    def _write_item(self, item: CatalogItem) -> None:
        setting = item.option("setting")
        if not isinstance(setting, PreferenceSetting):
            raise DefaultsError(f"No preference attached to {item.name}.")
        self.write(setting)


def _as_item(setting: PreferenceSetting) -> CatalogItem:
    return CatalogItem(
        name=f"{setting.domain}:{setting.key}",
        kind=BackendKind.PREFERENCE,
        display_name=f"{setting.domain} {setting.key}",
        options=MappingProxyType({"setting": setting}),
    )


__all__ = [
    "DEFAULT_RESTART_PROCESSES",
    "PreferenceSetting",
    "PreferencesWriter",
    "VALUE_TYPES",
    "ValueType",
]
