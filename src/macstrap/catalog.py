"""Catalog models and parsers for the operator-edited install lists.

Catalogs arrive from configuration as plain strings in compact formats:

* packages: ``name:kind[:flag]`` where kind is ``formula`` or ``cask``;
* app store: ``id:displayName``;
* deployment labels: ``label``;
* dock: ``path|displayName``.

They are parsed once at startup into immutable :class:`Catalog` objects that
the reconciler consumes read-only.
"""
from __future__ import annotations

from collections.abc import Callable, Iterable, Iterator, Mapping
from dataclasses import dataclass, field
from enum import Enum
from types import MappingProxyType

from .errors import MacstrapError
from .exit_codes import ExitCode

NO_QUARANTINE_FLAG = "no-quarantine"
PACKAGE_FLAGS = frozenset({NO_QUARANTINE_FLAG})


class CatalogError(MacstrapError):
    """Raised when a catalog entry cannot be parsed."""

    exit_code = ExitCode.VALIDATION


class BackendKind(str, Enum):
    """External backend responsible for an item."""

    FORMULA = "formula"
    CASK = "cask"
    STORE = "store"
    LABEL = "label"
    DOCK = "dock"
    PREFERENCE = "preference"


@dataclass(frozen=True, slots=True)
class CatalogItem:
    """One desired installable or configurable unit."""

    name: str
    kind: BackendKind
    display_name: str | None = None
    options: Mapping[str, object] = field(
        default_factory=lambda: MappingProxyType({}),
        hash=False,
    )

    @property
    def label(self) -> str:
        """Return the human-facing name for progress output."""
        return self.display_name or self.name

    def option(self, key: str, default: object | None = None) -> object | None:
        """Return a backend option value."""
        return self.options.get(key, default)


@dataclass(frozen=True, slots=True)
class Catalog:
    """Ordered collection of items with unique names."""

    name: str
    items: tuple[CatalogItem, ...] = ()

    def __post_init__(self) -> None:
        """Reject duplicate identifiers within the catalog."""
        seen: set[str] = set()
        for item in self.items:
            if item.name in seen:
                raise CatalogError(f"Duplicate entry '{item.name}' in {self.name} catalog.")
            seen.add(item.name)

    def __iter__(self) -> Iterator[CatalogItem]:
        return iter(self.items)

    def __len__(self) -> int:
        return len(self.items)

    def of_kind(self, kind: BackendKind) -> Catalog:
        """Return the subset of items handled by *kind*, order preserved."""
        return Catalog(
            name=f"{self.name}:{kind.value}",
            items=tuple(item for item in self.items if item.kind is kind),
        )


def parse_package_entry(entry: str) -> CatalogItem:
    """Parse ``name:kind[:flag]`` into a formula or cask item."""
    parts = [part.strip() for part in entry.strip().split(":")]
    if len(parts) < 2 or len(parts) > 3 or not parts[0]:
        raise CatalogError(f"Invalid package entry '{entry}'; expected name:kind[:flag].")
    name, kind_text = parts[0], parts[1]
    try:
        kind = BackendKind(kind_text)
    except ValueError as exc:
        raise CatalogError(
            f"Invalid package kind '{kind_text}' in '{entry}'; expected formula or cask."
        ) from exc
    if kind not in (BackendKind.FORMULA, BackendKind.CASK):
        raise CatalogError(f"Package kind must be formula or cask in '{entry}'.")

    options: dict[str, object] = {}
    if len(parts) == 3 and parts[2]:
        flag = parts[2]
        if flag not in PACKAGE_FLAGS:
            raise CatalogError(f"Unknown package flag '{flag}' in '{entry}'.")
        if kind is not BackendKind.CASK:
            raise CatalogError(f"Flag '{flag}' only applies to casks ('{entry}').")
        options["no_quarantine"] = True
    return CatalogItem(name=name, kind=kind, options=MappingProxyType(options))


def parse_store_entry(entry: str) -> CatalogItem:
    """Parse ``id:displayName`` into an app-store item."""
    app_id, sep, display = entry.strip().partition(":")
    app_id = app_id.strip()
    if not app_id.isdigit():
        raise CatalogError(f"Invalid app store entry '{entry}'; ID must be numeric.")
    return CatalogItem(
        name=str(int(app_id)),
        kind=BackendKind.STORE,
        display_name=display.strip() if sep and display.strip() else None,
    )


def parse_label_entry(entry: str) -> CatalogItem:
    """Parse a deployment label."""
    label = entry.strip()
    if not label or any(char.isspace() for char in label):
        raise CatalogError(f"Invalid deployment label '{entry}'.")
    return CatalogItem(name=label, kind=BackendKind.LABEL)


def parse_dock_entry(entry: str) -> CatalogItem:
    """Parse ``path|displayName`` into a dock item."""
    path, sep, display = entry.partition("|")
    path = path.strip()
    if not path.startswith("/"):
        raise CatalogError(f"Invalid dock entry '{entry}'; path must be absolute.")
    return CatalogItem(
        name=path,
        kind=BackendKind.DOCK,
        display_name=display.strip() if sep and display.strip() else None,
    )


def _build(
    name: str,
    entries: Iterable[str],
    parser: Callable[[str], CatalogItem],
) -> Catalog:
    items: list[CatalogItem] = []
    for index, entry in enumerate(entries):
        if not isinstance(entry, str):
            raise CatalogError(f"{name} catalog entry #{index} must be a string.")
        items.append(parser(entry))
    return Catalog(name=name, items=tuple(items))


def build_package_catalog(entries: Iterable[str]) -> Catalog:
    """Return the Homebrew formula/cask catalog."""
    return _build("packages", entries, parse_package_entry)


def build_store_catalog(entries: Iterable[str]) -> Catalog:
    """Return the app-store catalog."""
    return _build("app-store", entries, parse_store_entry)


def build_label_catalog(entries: Iterable[str]) -> Catalog:
    """Return the deployment-label catalog."""
    return _build("labels", entries, parse_label_entry)


def build_dock_catalog(entries: Iterable[str]) -> Catalog:
    """Return the dock layout catalog."""
    return _build("dock", entries, parse_dock_entry)


@dataclass(frozen=True, slots=True)
class Catalogs:
    """The four catalogs a bootstrap run reconciles."""

    packages: Catalog
    app_store: Catalog
    labels: Catalog
    dock: Catalog


def build_catalogs(
    *,
    packages: Iterable[str] = (),
    app_store: Iterable[str] = (),
    labels: Iterable[str] = (),
    dock: Iterable[str] = (),
) -> Catalogs:
    """Parse every catalog, failing on the first invalid entry."""
    return Catalogs(
        packages=build_package_catalog(packages),
        app_store=build_store_catalog(app_store),
        labels=build_label_catalog(labels),
        dock=build_dock_catalog(dock),
    )


__all__ = [
    "BackendKind",
    "Catalog",
    "CatalogError",
    "CatalogItem",
    "Catalogs",
    "NO_QUARANTINE_FLAG",
    "build_catalogs",
    "build_dock_catalog",
    "build_label_catalog",
    "build_package_catalog",
    "build_store_catalog",
    "parse_dock_entry",
    "parse_label_entry",
    "parse_package_entry",
    "parse_store_entry",
]
