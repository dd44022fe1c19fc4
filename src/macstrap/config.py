"""Configuration loader for macstrap.

Values are read from several sources, later ones winning:

1. Built-in defaults (the stock workstation catalogs and settings).
2. ``~/.config/macstrap/config.yml`` (or an override path).
3. Environment variables prefixed with ``MACSTRAP_``.
4. Explicit overrides supplied programmatically (reserved for CLI flags).

Environment keys use double underscores to express nesting, e.g.::

    export MACSTRAP_TART__ENABLED=false
    export MACSTRAP_CATALOGS__LABELS="[jamfcpr, Prune]"

Values are coerced via PyYAML's ``safe_load`` so that booleans, numbers and
flow-style lists are parsed naturally. Lists replace the default list rather
than extending it. The result is exposed as immutable dataclasses.
"""
from __future__ import annotations

import os
from collections.abc import Mapping, MutableMapping, Sequence
from dataclasses import dataclass
from pathlib import Path
from typing import cast

import yaml

from .catalog import CatalogError, Catalogs, build_catalogs
from .errors import MacstrapError
from .exit_codes import ExitCode
from .preferences import VALUE_TYPES, PreferenceSetting, ValueType

ENV_PREFIX = "MACSTRAP_"
CONFIG_ENV_VAR = f"{ENV_PREFIX}CONFIG_FILE"
RESERVED_ENV_KEYS = {CONFIG_ENV_VAR}


class ConfigError(MacstrapError):
    """Raised when configuration parsing fails."""

    exit_code = ExitCode.VALIDATION


@dataclass(frozen=True)
class CatalogsConfig:
    """Raw catalog entries as written by the operator."""

    packages: tuple[str, ...] = ()
    app_store: tuple[str, ...] = ()
    labels: tuple[str, ...] = ()
    dock: tuple[str, ...] = ()

    def build(self) -> Catalogs:
        """Parse the entries into :class:`~macstrap.catalog.Catalogs`."""
        return build_catalogs(
            packages=self.packages,
            app_store=self.app_store,
            labels=self.labels,
            dock=self.dock,
        )

    def to_dict(self) -> dict[str, object]:
        """Return a serialisable representation."""
        return {
            "packages": list(self.packages),
            "app_store": list(self.app_store),
            "labels": list(self.labels),
            "dock": list(self.dock),
        }


@dataclass(frozen=True)
class PreferencesConfig:
    """``defaults write`` batch and the processes restarted afterwards."""

    settings: tuple[PreferenceSetting, ...] = ()
    restart: tuple[str, ...] = ()

    def to_dict(self) -> dict[str, object]:
        """Return a serialisable representation."""
        return {
            "settings": [setting.to_dict() for setting in self.settings],
            "restart": list(self.restart),
        }


@dataclass(frozen=True)
class HomebrewConfig:
    """Homebrew binary discovery and bootstrap settings."""

    brew_bin: str
    search_paths: tuple[str, ...]
    install_url: str
    shellenv_profile: Path

    def to_dict(self) -> dict[str, object]:
        """Return a serialisable representation."""
        return {
            "brew_bin": self.brew_bin,
            "search_paths": list(self.search_paths),
            "install_url": self.install_url,
            "shellenv_profile": str(self.shellenv_profile),
        }


@dataclass(frozen=True)
class MasConfig:
    """Mac App Store CLI settings."""

    mas_bin: str = "mas"

    def to_dict(self) -> dict[str, object]:
        """Return a serialisable representation."""
        return {"mas_bin": self.mas_bin}


@dataclass(frozen=True)
class InstallomatorConfig:
    """Installomator install location, release URLs and label flags."""

    path: Path
    releases_url: str
    download_url: str
    installer_bin: str
    flags: tuple[str, ...]

    def to_dict(self) -> dict[str, object]:
        """Return a serialisable representation."""
        return {
            "path": str(self.path),
            "releases_url": self.releases_url,
            "download_url": self.download_url,
            "installer_bin": self.installer_bin,
            "flags": list(self.flags),
        }


@dataclass(frozen=True)
class DockConfig:
    """Dock layout tooling."""

    dockutil_bin: str = "dockutil"
    downloads_stack: bool = True

    def to_dict(self) -> dict[str, object]:
        """Return a serialisable representation."""
        return {"dockutil_bin": self.dockutil_bin, "downloads_stack": self.downloads_stack}


@dataclass(frozen=True)
class PamConfig:
    """Touch ID for sudo: PAM file, line and presence pattern."""

    file: Path
    line: str
    pattern: str
    module_glob: str

    def to_dict(self) -> dict[str, object]:
        """Return a serialisable representation."""
        return {
            "file": str(self.file),
            "line": self.line,
            "pattern": self.pattern,
            "module_glob": self.module_glob,
        }


@dataclass(frozen=True)
class ShellConfig:
    """Oh My Zsh checkout and the synced profile to link."""

    install_dir: Path
    install_url: str
    profile_source: Path
    profile_target: Path

    def to_dict(self) -> dict[str, object]:
        """Return a serialisable representation."""
        return {
            "install_dir": str(self.install_dir),
            "install_url": self.install_url,
            "profile_source": str(self.profile_source),
            "profile_target": str(self.profile_target),
        }


@dataclass(frozen=True)
class TartConfig:
    """Tart release download settings."""

    enabled: bool
    url: str
    install_dirs: tuple[str, ...]

    def to_dict(self) -> dict[str, object]:
        """Return a serialisable representation."""
        return {"enabled": self.enabled, "url": self.url, "install_dirs": list(self.install_dirs)}


@dataclass(frozen=True)
class AppConfig:
    """Resolved configuration values for macstrap."""

    config_file: Path
    logs_dir: Path
    catalogs: CatalogsConfig
    preferences: PreferencesConfig
    homebrew: HomebrewConfig
    mas: MasConfig
    installomator: InstallomatorConfig
    dock: DockConfig
    pam: PamConfig
    shell: ShellConfig
    tart: TartConfig

    def to_dict(self) -> dict[str, object]:
        """Return a JSON-serialisable representation of the config."""
        return {
            "config_file": str(self.config_file),
            "logs_dir": str(self.logs_dir),
            "catalogs": self.catalogs.to_dict(),
            "preferences": self.preferences.to_dict(),
            "homebrew": self.homebrew.to_dict(),
            "mas": self.mas.to_dict(),
            "installomator": self.installomator.to_dict(),
            "dock": self.dock.to_dict(),
            "pam": self.pam.to_dict(),
            "shell": self.shell.to_dict(),
            "tart": self.tart.to_dict(),
        }


def _pref(domain: str, key: str, type_: str, value: object) -> dict[str, object]:
    return {"domain": domain, "key": key, "type": type_, "value": value}


DEFAULTS: dict[str, object] = {
    "config_file": "~/.config/macstrap/config.yml",
    "logs_dir": "~/Library/Logs/macstrap",
    "catalogs": {
        "packages": [
            "alfred:cask",
            "arc:cask",
            "bbedit:cask",
            "bettertouchtool:cask",
            "coderunner:cask",
            "git-credential-manager:cask",
            "github:cask",
            "little-snitch:cask",
            "postman:cask",
            "proxyman:cask",
            "suspicious-package:cask",
            "telegram:cask",
            "vlc:cask",
            "antigravity:cask",
            "betterdisplay:cask",
            "chatgpt:cask",
            "discord:cask",
            "iterm2:cask",
            "keeper-password-manager:cask",
            "sf-symbols:cask",
            "visual-studio-code:cask",
            "windows-app:cask",
            "autoconf:formula",
            "bat:formula",
            "ca-certificates:formula",
            "fd:formula",
            "jq:formula",
            "libgit2:formula",
            "libssh2:formula",
            "m4:formula",
            "oniguruma:formula",
            "openssl@3:formula",
            "pkgconf:formula",
            "pyenv:formula",
            "readline:formula",
            "terraform:formula",
            "xmlstarlet:formula",
            "mas:formula",
            "dockutil:formula",
        ],
        "app_store": [
            "1006087419:SnippetsLab",
            "497799835:Xcode",
            "409183694:Keynote",
            "409201541:Pages",
            "409203825:Numbers",
            "429449079:Patterns - The Regex App",
            "1487860882:iMazing Profile Editor",
            "1157491961:PLIST Editor",
            "1133234759:MUT",
            "425424353:The Unarchiver",
            "1037126344:Apple Configurator",
        ],
        "labels": ["jamfconnectconfiguration", "jamfcpr", "Prune", "jamfpppcutility"],
        "dock": [
            "/System/Library/CoreServices/Finder.app|Finder",
            "/Applications/Microsoft Outlook.app|Microsoft Outlook",
            "/Applications/Daylite.app|Daylite",
            "/Applications/Slack.app|Slack",
            "/Applications/ChatGPT.app|ChatGPT",
            "/Applications/Arc.app|Arc",
            "/Applications/Photos.app|Photos",
            "/Applications/Messages.app|Messages",
            "/Applications/iTerm.app|iTerm",
            "/Applications/Antigravity.app|Antigravity",
            "/Applications/Visual Studio Code.app|Visual Studio Code",
            "/Applications/CodeRunner.app|CodeRunner",
            "/Applications/Notes.app|Notes",
            "/Applications/Reminders.app|Reminders",
        ],
    },
    "preferences": {
        "settings": [
            _pref("com.apple.dock", "orientation", "string", "bottom"),
            _pref("com.apple.dock", "autohide", "bool", True),
            _pref("com.apple.dock", "show-recents", "bool", False),
            _pref("com.apple.dock", "mru-spaces", "bool", False),
            _pref("com.apple.finder", "ShowPathbar", "bool", True),
            _pref("com.apple.finder", "ShowStatusBar", "bool", True),
            _pref("com.apple.finder", "FXPreferredGroupBy", "string", "Kind"),
            _pref("com.apple.finder", "FXRemoveOldTrashItems", "bool", True),
            _pref("com.apple.finder", "QLEnableTextSelection", "bool", True),
            _pref("com.apple.finder", "FXEnableExtensionChangeWarning", "bool", False),
            _pref("com.apple.finder", "FXPreferredViewStyle", "string", "Clmv"),
            _pref("NSGlobalDomain", "AppleShowAllExtensions", "bool", True),
            _pref("NSGlobalDomain", "NSNavPanelExpandedStateForSaveMode", "bool", True),
            _pref("NSGlobalDomain", "PMPrintingExpandedStateForPrint", "bool", True),
            _pref("NSGlobalDomain", "PMPrintingExpandedStateForPrint2", "bool", True),
            _pref("NSGlobalDomain", "NSAutomaticQuoteSubstitutionEnabled", "bool", False),
            _pref("NSGlobalDomain", "NSAutomaticDashSubstitutionEnabled", "bool", False),
            _pref("com.apple.TimeMachine", "DoNotOfferNewDisksForBackup", "bool", True),
            _pref("com.apple.desktopservices", "DSDontWriteNetworkStores", "bool", True),
        ],
        "restart": ["Dock", "Finder", "SystemUIServer"],
    },
    "homebrew": {
        "brew_bin": "brew",
        "search_paths": ["/opt/homebrew/bin/brew", "/usr/local/bin/brew"],
        "install_url": "https://raw.githubusercontent.com/Homebrew/install/HEAD/install.sh",
        "shellenv_profile": "~/.zprofile",
    },
    "mas": {"mas_bin": "mas"},
    "installomator": {
        "path": "/usr/local/Installomator/Installomator.sh",
        "releases_url": "https://github.com/Installomator/Installomator/releases/latest",
        "download_url": (
            "https://github.com/Installomator/Installomator/releases/download/"
            "{tag}/Installomator-{version}.pkg"
        ),
        "installer_bin": "installer",
        "flags": ["DEBUG=0", "NOTIFY=silent"],
    },
    "dock": {"dockutil_bin": "dockutil", "downloads_stack": True},
    "pam": {
        "file": "/etc/pam.d/sudo",
        "line": "auth       sufficient     pam_tid.so",
        "pattern": r"^\s*auth\s+sufficient\s+pam_tid\.so\s*$",
        "module_glob": "/usr/lib/pam/pam_tid.so*",
    },
    "shell": {
        "install_dir": None,  # $ZSH or ~/.oh-my-zsh when absent
        "install_url": "https://raw.githubusercontent.com/ohmyzsh/ohmyzsh/master/tools/install.sh",
        "profile_source": (
            "~/Library/Mobile Documents/com~apple~CloudDocs/Documents/profiles/.zshrc"
        ),
        "profile_target": "~/.zshrc",
    },
    "tart": {
        "enabled": True,
        "url": "https://github.com/cirruslabs/tart/releases/latest/download/tart.tar.gz",
        "install_dirs": ["/opt/homebrew/bin", "/usr/local/bin"],
    },
}

ALLOWED_TOP_LEVEL_KEYS = set(DEFAULTS.keys())
SECTION_KEYS: dict[str, set[str]] = {
    name: set(cast(Mapping[str, object], value).keys())
    for name, value in DEFAULTS.items()
    if isinstance(value, Mapping)
}
PREFERENCE_KEYS = {"domain", "key", "type", "value"}


def load_config(
    config_file: str | os.PathLike[str] | None = None,
    *,
    env: Mapping[str, str] | None = None,
    overrides: Mapping[str, object] | None = None,
) -> AppConfig:
    """Load and merge configuration sources into an :class:`AppConfig`."""
    merged: dict[str, object] = _deep_copy(DEFAULTS)
    resolved_env = dict(os.environ if env is None else env)

    config_default = _expect_str(merged["config_file"], "config_file")
    config_path = _determine_config_path(config_default, config_file, resolved_env)

    file_values = _load_yaml_file(config_path)
    if file_values:
        _deep_merge(merged, file_values)

    env_values = _build_env_overrides(resolved_env)
    if env_values:
        _deep_merge(merged, env_values)

    if overrides:
        _deep_merge(merged, dict(overrides))

    merged["config_file"] = str(config_path)

    _validate_structure(merged)

    return _build_app_config(merged, resolved_env)


def _determine_config_path(
    default_path: str,
    cli_override: str | os.PathLike[str] | None,
    env: Mapping[str, str],
) -> Path:
    if cli_override:
        return Path(cli_override).expanduser()
    if CONFIG_ENV_VAR in env:
        return Path(env[CONFIG_ENV_VAR]).expanduser()
    return Path(default_path).expanduser()


def _load_yaml_file(path: Path) -> dict[str, object]:
    if not path.exists():
        return {}
    try:
        data = yaml.safe_load(path.read_text(encoding="utf-8")) or {}
    except yaml.YAMLError as exc:  # pragma: no cover - PyYAML owns detailed error
        raise ConfigError(f"Failed to parse config file {path}: {exc}") from exc
    if not isinstance(data, Mapping):
        raise ConfigError(f"Config file {path} must contain a mapping at the top level.")
    return _as_dict(data, f"file:{path}")


def _validate_structure(raw: Mapping[str, object]) -> None:
    unknown_keys = set(raw.keys()) - ALLOWED_TOP_LEVEL_KEYS
    if unknown_keys:
        joined = ", ".join(sorted(unknown_keys))
        raise ConfigError(f"Unknown configuration keys: {joined}.")

    for section, allowed in SECTION_KEYS.items():
        section_map = _as_dict(raw.get(section), section)
        unknown = set(section_map.keys()) - allowed
        if unknown:
            joined = ", ".join(sorted(unknown))
            raise ConfigError(f"Unknown {section} configuration keys: {joined}.")

    catalogs = _as_dict(raw.get("catalogs"), "catalogs")
    for name in SECTION_KEYS["catalogs"]:
        _str_tuple(catalogs.get(name), f"catalogs.{name}")

    preferences = _as_dict(raw.get("preferences"), "preferences")
    settings = _as_sequence(preferences.get("settings") or [], "preferences.settings")
    for index, entry in enumerate(settings):
        _build_preference(_as_dict(entry, f"preferences.settings[{index}]"), index)

    tart = _as_dict(raw.get("tart"), "tart")
    if not _str_tuple(tart.get("install_dirs"), "tart.install_dirs"):
        raise ConfigError("tart.install_dirs must list at least one directory.")


def _build_app_config(raw: Mapping[str, object], env: Mapping[str, str]) -> AppConfig:
    catalogs_map = _as_dict(raw.get("catalogs"), "catalogs")
    catalogs = CatalogsConfig(
        packages=_str_tuple(catalogs_map.get("packages"), "catalogs.packages"),
        app_store=_str_tuple(catalogs_map.get("app_store"), "catalogs.app_store"),
        labels=_str_tuple(catalogs_map.get("labels"), "catalogs.labels"),
        dock=_str_tuple(catalogs_map.get("dock"), "catalogs.dock"),
    )
    try:
        catalogs.build()
    except CatalogError as exc:
        raise ConfigError(str(exc)) from exc

    prefs_map = _as_dict(raw.get("preferences"), "preferences")
    settings_raw = _as_sequence(prefs_map.get("settings") or [], "preferences.settings")
    preferences = PreferencesConfig(
        settings=tuple(
            _build_preference(_as_dict(entry, f"preferences.settings[{index}]"), index)
            for index, entry in enumerate(settings_raw)
        ),
        restart=_str_tuple(prefs_map.get("restart"), "preferences.restart"),
    )

    brew_map = _as_dict(raw.get("homebrew"), "homebrew")
    homebrew = HomebrewConfig(
        brew_bin=_expect_str(brew_map.get("brew_bin"), "homebrew.brew_bin"),
        search_paths=_str_tuple(brew_map.get("search_paths"), "homebrew.search_paths"),
        install_url=_expect_str(brew_map.get("install_url"), "homebrew.install_url"),
        shellenv_profile=_to_path(brew_map.get("shellenv_profile")),
    )

    mas_map = _as_dict(raw.get("mas"), "mas")
    mas = MasConfig(mas_bin=_expect_str(mas_map.get("mas_bin"), "mas.mas_bin"))

    inst_map = _as_dict(raw.get("installomator"), "installomator")
    installomator = InstallomatorConfig(
        path=_to_path(inst_map.get("path")),
        releases_url=_expect_str(inst_map.get("releases_url"), "installomator.releases_url"),
        download_url=_expect_str(inst_map.get("download_url"), "installomator.download_url"),
        installer_bin=_expect_str(inst_map.get("installer_bin"), "installomator.installer_bin"),
        flags=_str_tuple(inst_map.get("flags"), "installomator.flags"),
    )

    dock_map = _as_dict(raw.get("dock"), "dock")
    dock = DockConfig(
        dockutil_bin=_expect_str(dock_map.get("dockutil_bin"), "dock.dockutil_bin"),
        downloads_stack=_expect_bool(dock_map.get("downloads_stack"), "dock.downloads_stack"),
    )

    pam_map = _as_dict(raw.get("pam"), "pam")
    pam = PamConfig(
        file=_to_path(pam_map.get("file")),
        line=_expect_str(pam_map.get("line"), "pam.line"),
        pattern=_expect_str(pam_map.get("pattern"), "pam.pattern"),
        module_glob=_expect_str(pam_map.get("module_glob"), "pam.module_glob"),
    )

    shell_map = _as_dict(raw.get("shell"), "shell")
    install_dir_value = shell_map.get("install_dir") or env.get("ZSH") or "~/.oh-my-zsh"
    shell = ShellConfig(
        install_dir=_to_path(install_dir_value),
        install_url=_expect_str(shell_map.get("install_url"), "shell.install_url"),
        profile_source=_to_path(shell_map.get("profile_source")),
        profile_target=_to_path(shell_map.get("profile_target")),
    )

    tart_map = _as_dict(raw.get("tart"), "tart")
    tart = TartConfig(
        enabled=_expect_bool(tart_map.get("enabled"), "tart.enabled"),
        url=_expect_str(tart_map.get("url"), "tart.url"),
        install_dirs=_str_tuple(tart_map.get("install_dirs"), "tart.install_dirs"),
    )

    return AppConfig(
        config_file=_to_path(raw.get("config_file")),
        logs_dir=_to_path(raw.get("logs_dir")),
        catalogs=catalogs,
        preferences=preferences,
        homebrew=homebrew,
        mas=mas,
        installomator=installomator,
        dock=dock,
        pam=pam,
        shell=shell,
        tart=tart,
    )


def _build_preference(mapping: Mapping[str, object], index: int) -> PreferenceSetting:
    label = f"preferences.settings[{index}]"
    unknown = set(mapping.keys()) - PREFERENCE_KEYS
    if unknown:
        joined = ", ".join(sorted(unknown))
        raise ConfigError(f"Unknown keys for {label}: {joined}.")
    domain = _expect_str(mapping.get("domain"), f"{label}.domain")
    key = _expect_str(mapping.get("key"), f"{label}.key")
    value_type = _expect_str(mapping.get("type"), f"{label}.type")
    if value_type not in VALUE_TYPES:
        allowed = ", ".join(VALUE_TYPES)
        raise ConfigError(f"Unsupported {label}.type '{value_type}'. Allowed: {allowed}.")
    value = mapping.get("value")
    if value_type == "bool":
        value = _expect_bool(value, f"{label}.value")
    elif value_type == "int":
        if isinstance(value, bool) or not isinstance(value, int):
            raise ConfigError(f"Expected {label}.value to be an integer. Got {value!r}.")
    elif value_type == "float":
        if isinstance(value, bool) or not isinstance(value, (int, float)):
            raise ConfigError(f"Expected {label}.value to be a number. Got {value!r}.")
        value = float(value)
    else:
        if value is None or isinstance(value, (Mapping, list)):
            raise ConfigError(f"Expected {label}.value to be a string. Got {value!r}.")
        value = str(value)
    return PreferenceSetting(
        domain=domain,
        key=key,
        type=cast(ValueType, value_type),
        value=cast("bool | str | int | float", value),
    )


def _build_env_overrides(env: Mapping[str, str]) -> dict[str, object]:
    overrides: dict[str, object] = {}
    for key, value in env.items():
        if key in RESERVED_ENV_KEYS:
            continue
        if not key.startswith(ENV_PREFIX):
            continue
        suffix = key[len(ENV_PREFIX) :]
        path_segments = [segment.lower() for segment in suffix.split("__") if segment]
        if not path_segments:
            continue
        _assign_nested(overrides, path_segments, _coerce_value(value))
    return overrides


def _assign_nested(tree: MutableMapping[str, object], path: list[str], value: object) -> None:
    current: MutableMapping[str, object] = tree
    for segment in path[:-1]:
        existing = current.get(segment)
        if existing is None:
            new_child: MutableMapping[str, object] = {}
            current[segment] = new_child
            current = new_child
            continue
        if isinstance(existing, MutableMapping):
            current = cast(MutableMapping[str, object], existing)
            continue
        raise ConfigError(
            "Environment overrides conflict with existing scalar value at "
            f"{'.'.join(path)}"
        )
    current[path[-1]] = value


def _deep_merge(target: MutableMapping[str, object], overrides: Mapping[str, object]) -> None:
    for key, value in overrides.items():
        existing = target.get(key)
        if isinstance(existing, MutableMapping) and isinstance(value, Mapping):
            _deep_merge(existing, _as_dict(value, f"merge.{key}"))
            continue
        target[key] = value


def _deep_copy(source: Mapping[str, object]) -> dict[str, object]:
    result: dict[str, object] = {}
    for key, value in source.items():
        if isinstance(value, Mapping):
            result[key] = _deep_copy(_as_dict(value, f"copy.{key}"))
        elif isinstance(value, list):
            result[key] = [
                _deep_copy(_as_dict(item, f"copy.{key}")) if isinstance(item, Mapping) else item
                for item in value
            ]
        else:
            result[key] = value
    return result


def _as_sequence(value: object, label: str) -> Sequence[object]:
    if isinstance(value, (str, bytes)) or not isinstance(value, Sequence):
        raise ConfigError(f"Expected {label} to be a sequence. Got {type(value).__name__}.")
    return value


def _str_tuple(value: object | None, label: str) -> tuple[str, ...]:
    if value is None:
        return ()
    items = _as_sequence(value, label)
    result: list[str] = []
    for index, item in enumerate(items):
        if isinstance(item, bool) or not isinstance(item, (str, int)):
            raise ConfigError(f"Expected {label}[{index}] to be a string. Got {item!r}.")
        result.append(str(item))
    return tuple(result)


def _coerce_value(raw: str) -> object:
    raw = raw.strip()
    try:
        parsed = yaml.safe_load(raw)
    except yaml.YAMLError:  # pragma: no cover - treat as string if parsing fails
        return raw
    return parsed


def _to_path(value: object) -> Path:
    if value is None:
        raise ConfigError("Expected a filesystem path, received None.")
    if isinstance(value, Path):
        return value.expanduser()
    if isinstance(value, str):
        return Path(value).expanduser()
    raise ConfigError(f"Cannot convert value {value!r} to Path.")


def _expect_bool(value: object | None, label: str) -> bool:
    if isinstance(value, bool):
        return value
    raise ConfigError(f"Expected {label} to be a boolean. Got {value!r}.")


def _expect_str(value: object, key: str) -> str:
    if isinstance(value, str):
        return value
    raise ConfigError(f"Expected {key} to resolve to a string. Got {value!r}.")


def _as_dict(value: object | None, label: str) -> dict[str, object]:
    if value is None:
        return {}
    if not isinstance(value, Mapping):
        raise ConfigError(f"Expected {label} to be a mapping. Got {type(value).__name__}.")
    result: dict[str, object] = {}
    for key, item in value.items():
        if not isinstance(key, str):
            raise ConfigError(f"Mapping {label} must use string keys. Got {key!r}.")
        result[key] = item
    return result


__all__ = [
    "AppConfig",
    "CatalogsConfig",
    "ConfigError",
    "DockConfig",
    "HomebrewConfig",
    "InstallomatorConfig",
    "MasConfig",
    "PamConfig",
    "PreferencesConfig",
    "ShellConfig",
    "TartConfig",
    "load_config",
]
