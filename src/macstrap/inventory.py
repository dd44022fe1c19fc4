"""Inventory reader: what each backend already has installed."""
from __future__ import annotations

from collections.abc import Callable, Iterable
from dataclasses import dataclass, field
from typing import Protocol

from .catalog import BackendKind
from .errors import InventoryUnavailable, ProviderError


class FormulaCaskLister(Protocol):
    """Subset of the Homebrew provider used for inventory queries."""

    def list_formulae(self) -> list[str]:
        """Return installed formula names."""
        ...

    def list_casks(self) -> list[str]:
        """Return installed cask names."""
        ...


class StoreLister(Protocol):
    """Subset of the app-store provider used for inventory queries."""

    def list_installed(self) -> list[str]:
        """Return installed app IDs."""
        ...


def normalize_identifier(kind: BackendKind, value: str) -> str:
    """Return the comparison key for *value* under *kind*'s matching rule."""
    text = value.strip()
    if kind in (BackendKind.FORMULA, BackendKind.CASK):
        # Tap-qualified names (user/tap/name) list as their short name.
        return text.rsplit("/", 1)[-1]
    if kind is BackendKind.STORE:
        return str(int(text)) if text.isdigit() else text
    return text


@dataclass(frozen=True, slots=True)
class InventorySnapshot:
    """Point-in-time set of identifiers already satisfied for one backend."""

    kind: BackendKind
    present: frozenset[str] = frozenset()
    partial: bool = False
    warnings: tuple[str, ...] = ()

    @classmethod
    def from_identifiers(cls, kind: BackendKind, identifiers: Iterable[str]) -> InventorySnapshot:
        """Build a snapshot, normalising every identifier for *kind*."""
        present = frozenset(
            normalize_identifier(kind, identifier)
            for identifier in identifiers
            if identifier.strip()
        )
        return cls(kind=kind, present=present)

    @classmethod
    def unavailable(cls, kind: BackendKind, reason: str) -> InventorySnapshot:
        """Return the empty snapshot used when a backend cannot answer."""
        return cls(kind=kind, partial=True, warnings=(reason,))

    def contains(self, identifier: str) -> bool:
        """Return ``True`` when *identifier* is present under the backend rule."""
        return normalize_identifier(self.kind, identifier) in self.present


@dataclass(slots=True)
class InventoryReader:
    """Query each backend for its current installed set.

    Query failures never propagate: the reader returns an empty snapshot
    flagged ``partial`` so the reconciler treats every item as missing.
    Re-installing is safe because the backends are idempotent, but the
    operator may see redundant prompts, so a warning is always attached.
    """

    homebrew: FormulaCaskLister | None = None
    store: StoreLister | None = None
    on_warning: Callable[[str], None] | None = None
    warnings: list[str] = field(default_factory=list)

    def snapshot(self, kind: BackendKind) -> InventorySnapshot:
        """Return the inventory snapshot for *kind*."""
        try:
            identifiers = self._query(kind)
        except (InventoryUnavailable, ProviderError, OSError) as exc:
            message = f"PartialInventory: cannot read installed {kind.value} list ({exc})."
            self.warnings.append(message)
            if self.on_warning is not None:
                self.on_warning(message)
            return InventorySnapshot.unavailable(kind, message)
        return InventorySnapshot.from_identifiers(kind, identifiers)

    def _query(self, kind: BackendKind) -> list[str]:
        if kind is BackendKind.FORMULA:
            return self._require_homebrew().list_formulae()
        if kind is BackendKind.CASK:
            return self._require_homebrew().list_casks()
        if kind is BackendKind.STORE:
            if self.store is None:
                raise InventoryUnavailable("no app store backend configured")
            return self.store.list_installed()
        # Labels and dock entries have no queryable inventory.
        return []

    def _require_homebrew(self) -> FormulaCaskLister:
        if self.homebrew is None:
            raise InventoryUnavailable("no Homebrew backend configured")
        return self.homebrew


__all__ = ["InventoryReader", "InventorySnapshot", "normalize_identifier"]
