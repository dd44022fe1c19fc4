"""Reconciler: turn a catalog plus inventory into an ordered action plan."""
from __future__ import annotations

from collections.abc import Iterable, Sequence
from dataclasses import dataclass
from typing import Literal

from .catalog import BackendKind, Catalog, CatalogItem
from .inventory import InventorySnapshot

ActionKind = Literal["skip", "install"]


@dataclass(frozen=True, slots=True)
class PlannedAction:
    """Single step of a plan: skip an item already present or install it."""

    kind: ActionKind
    item: CatalogItem

    @property
    def is_skip(self) -> bool:
        """Return ``True`` for already-satisfied items."""
        return self.kind == "skip"


def plan(
    catalog: Catalog | Iterable[CatalogItem],
    snapshot: InventorySnapshot | Iterable[InventorySnapshot],
) -> list[PlannedAction]:
    """Return one action per catalog item, in catalog order.

    An item is skipped iff its identifier is in the snapshot for its backend
    kind. Mixed catalogs (formula + cask) may pass one snapshot per kind;
    items whose kind has no snapshot are planned for install.
    """
    snapshots = _index_snapshots(snapshot)
    actions: list[PlannedAction] = []
    for item in catalog:
        inventory = snapshots.get(item.kind)
        if inventory is not None and inventory.contains(item.name):
            actions.append(PlannedAction(kind="skip", item=item))
        else:
            actions.append(PlannedAction(kind="install", item=item))
    return actions


def pending(actions: Sequence[PlannedAction]) -> list[CatalogItem]:
    """Return the items a plan will attempt."""
    return [action.item for action in actions if not action.is_skip]


def _index_snapshots(
    snapshot: InventorySnapshot | Iterable[InventorySnapshot],
) -> dict[BackendKind, InventorySnapshot]:
    if isinstance(snapshot, InventorySnapshot):
        return {snapshot.kind: snapshot}
    return {entry.kind: entry for entry in snapshot}


__all__ = ["ActionKind", "PlannedAction", "pending", "plan"]
