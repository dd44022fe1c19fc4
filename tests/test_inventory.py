"""Tests for the inventory reader."""
from __future__ import annotations

from macstrap.catalog import BackendKind
from macstrap.errors import HomebrewError
from macstrap.inventory import InventoryReader, InventorySnapshot, normalize_identifier


class DummyBrew:
    def __init__(self, formulae: list[str], casks: list[str], fail: bool = False) -> None:
        self.formulae = formulae
        self.casks = casks
        self.fail = fail

    def list_formulae(self) -> list[str]:
        if self.fail:
            raise HomebrewError("brew list failed (exit 1): boom")
        return self.formulae

    def list_casks(self) -> list[str]:
        return self.casks


class DummyStore:
    def list_installed(self) -> list[str]:
        return ["0497799835", "409183694"]


def test_normalize_identifier_rules() -> None:
    """Tap-qualified names shorten and store IDs compare as integers."""
    assert normalize_identifier(BackendKind.FORMULA, "hashicorp/tap/terraform") == "terraform"
    assert normalize_identifier(BackendKind.CASK, " iterm2 ") == "iterm2"
    assert normalize_identifier(BackendKind.STORE, "0497799835") == "497799835"
    assert normalize_identifier(BackendKind.LABEL, "jamfcpr") == "jamfcpr"


def test_snapshot_reads_each_backend() -> None:
    """Formula, cask and store snapshots come from their providers."""
    reader = InventoryReader(homebrew=DummyBrew(["wget", "git"], ["iterm2"]), store=DummyStore())

    formulae = reader.snapshot(BackendKind.FORMULA)
    casks = reader.snapshot(BackendKind.CASK)
    store = reader.snapshot(BackendKind.STORE)

    assert formulae.present == frozenset({"wget", "git"})
    assert casks.contains("iterm2")
    assert store.contains("497799835")
    assert not formulae.partial
    assert reader.warnings == []


def test_snapshot_failure_returns_partial_with_warning() -> None:
    """A failing query yields an empty snapshot plus a warning."""
    seen: list[str] = []
    reader = InventoryReader(homebrew=DummyBrew([], [], fail=True), on_warning=seen.append)

    snapshot = reader.snapshot(BackendKind.FORMULA)

    assert snapshot.partial is True
    assert snapshot.present == frozenset()
    assert "PartialInventory" in snapshot.warnings[0]
    assert seen == reader.warnings
    assert len(seen) == 1


def test_missing_backend_is_partial() -> None:
    """No configured store backend counts as unavailable inventory."""
    reader = InventoryReader()

    assert reader.snapshot(BackendKind.STORE).partial is True
    assert reader.snapshot(BackendKind.CASK).partial is True


def test_label_and_dock_snapshots_are_empty() -> None:
    """Backends without inventory report nothing installed."""
    reader = InventoryReader()

    snapshot = reader.snapshot(BackendKind.LABEL)

    assert snapshot == InventorySnapshot(kind=BackendKind.LABEL)
    assert reader.warnings == []
