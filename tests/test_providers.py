"""Tests for the external tool providers."""
from __future__ import annotations

import io
import subprocess
import sys
import tarfile
from collections.abc import Sequence
from pathlib import Path
from typing import Any

import pytest

from macstrap.catalog import BackendKind, CatalogItem, parse_package_entry
from macstrap.errors import (
    DefaultsError,
    HomebrewError,
    InstallomatorError,
    ItemInstallFailed,
    MasError,
    PrerequisiteMissing,
)
from macstrap.preferences import PreferenceSetting, PreferencesWriter
from macstrap.providers import (
    DockProvider,
    HomebrewProvider,
    InstallomatorProvider,
    MasProvider,
    ShellFrameworkProvider,
    TartProvider,
)
from macstrap.providers import tart as tart_module
from macstrap.providers._process import output_lines, run_command
from macstrap.providers.installomator import InstallomatorRelease, parse_release_url


class DummyResult:
    """Simple stand-in for ``subprocess.CompletedProcess``."""

    def __init__(self, returncode: int = 0, stdout: str = "", stderr: str = "") -> None:
        """Initialise the dummy result."""
        self.returncode = returncode
        self.stdout = stdout
        self.stderr = stderr


def test_run_command_raises_with_exit_code(monkeypatch: pytest.MonkeyPatch) -> None:
    """Non-zero exits include the prefix, code and stderr."""
    monkeypatch.setattr(
        subprocess,
        "run",
        lambda *args, **kwargs: DummyResult(returncode=1, stderr="Error: No available formula\n"),
    )

    with pytest.raises(HomebrewError, match=r"brew install failed \(exit 1\): Error: No available"):
        run_command(["brew", "install", "nope"], error_cls=HomebrewError)


def test_run_command_missing_binary(monkeypatch: pytest.MonkeyPatch) -> None:
    """A missing executable becomes a provider error."""
    def fake_run(*args: Any, **kwargs: Any) -> DummyResult:
        raise FileNotFoundError(2, "No such file or directory")

    monkeypatch.setattr(subprocess, "run", fake_run)

    with pytest.raises(MasError, match="mas not found"):
        run_command(["mas", "list"], error_cls=MasError)


def test_run_command_dry_run_skips_process(monkeypatch: pytest.MonkeyPatch) -> None:
    """Dry runs never spawn a process."""
    def fake_run(*args: Any, **kwargs: Any) -> DummyResult:
        raise AssertionError("subprocess.run should not be called")

    monkeypatch.setattr(subprocess, "run", fake_run)

    result = run_command(["brew", "upgrade"], error_cls=HomebrewError, dry_run=True)

    assert result.returncode == 0
    assert output_lines(result) == []


def test_run_command_passthrough_output_goes_to_stderr(monkeypatch: pytest.MonkeyPatch) -> None:
    """Uncaptured tool output is kept off stdout; captured queries are untouched."""
    seen: list[dict[str, Any]] = []

    def fake_run(command: Sequence[str], **kwargs: Any) -> DummyResult:
        seen.append(kwargs)
        return DummyResult()

    monkeypatch.setattr(subprocess, "run", fake_run)

    run_command(["brew", "update"], error_cls=HomebrewError, capture_output=False)
    run_command(["brew", "list"], error_cls=HomebrewError)

    assert seen[0]["stdout"] is sys.stderr
    assert "stdout" not in seen[1]
    assert seen[1]["capture_output"] is True


def test_item_installs_raise_item_install_failed(monkeypatch: pytest.MonkeyPatch) -> None:
    """A failed per-item install names the item and keeps the tool's message."""
    monkeypatch.setattr(
        subprocess,
        "run",
        lambda *args, **kwargs: DummyResult(returncode=1, stderr="Error: No available formula"),
    )
    monkeypatch.setattr(HomebrewProvider, "locate", lambda self: "/opt/homebrew/bin/brew")

    with pytest.raises(ItemInstallFailed, match=r"brew install nope failed \(exit 1\)") as excinfo:
        HomebrewProvider().install(parse_package_entry("nope:formula"))
    assert excinfo.value.item == "nope"
    assert isinstance(excinfo.value.__cause__, HomebrewError)

    with pytest.raises(ItemInstallFailed, match=r"mas install failed \(exit 1\)"):
        MasProvider().install(CatalogItem(name="409183694", kind=BackendKind.STORE))


def test_homebrew_install_commands() -> None:
    """Formulae, casks and the no-quarantine flag map to brew arguments."""
    provider = HomebrewProvider()

    assert provider.install_command(parse_package_entry("wget:formula")) == ["install", "wget"]
    assert provider.install_command(parse_package_entry("iterm2:cask:no-quarantine")) == [
        "install",
        "--cask",
        "--no-quarantine",
        "iterm2",
    ]
    with pytest.raises(HomebrewError):
        provider.install_command(CatalogItem(name="123", kind=BackendKind.STORE))


def test_homebrew_lists_run_even_in_dry_run(monkeypatch: pytest.MonkeyPatch) -> None:
    """Inventory queries are read-only and always execute."""
    seen: list[list[str]] = []

    def fake_run(command: Sequence[str], **kwargs: Any) -> DummyResult:
        seen.append(list(command))
        if "--cask" in command:
            return DummyResult(stdout="iterm2\nvlc\n")
        return DummyResult(stdout="git\n\nwget\n")

    monkeypatch.setattr(subprocess, "run", fake_run)
    provider = HomebrewProvider(brew_bin="/opt/homebrew/bin/brew", dry_run=True)
    monkeypatch.setattr(HomebrewProvider, "locate", lambda self: "/opt/homebrew/bin/brew")

    assert provider.list_formulae() == ["git", "wget"]
    assert provider.list_casks() == ["iterm2", "vlc"]
    provider.install(parse_package_entry("jq:formula"))
    assert seen == [
        ["/opt/homebrew/bin/brew", "list", "--formula", "-1"],
        ["/opt/homebrew/bin/brew", "list", "--cask", "-1"],
    ]


def test_homebrew_shellenv_and_path(monkeypatch: pytest.MonkeyPatch) -> None:
    """The shellenv line points at the located prefix and PATH gains it once."""
    monkeypatch.setattr(HomebrewProvider, "locate", lambda self: "/opt/homebrew/bin/brew")
    monkeypatch.setenv("PATH", "/usr/bin:/bin")
    provider = HomebrewProvider()

    assert provider.shellenv_line() == 'eval "$(/opt/homebrew/bin/brew shellenv)"'
    assert provider.ensure_on_path() is True
    assert provider.ensure_on_path() is False


def test_mas_list_and_install(monkeypatch: pytest.MonkeyPatch) -> None:
    """``mas list`` lines reduce to their IDs; installs pass the ID."""
    seen: list[list[str]] = []

    def fake_run(command: Sequence[str], **kwargs: Any) -> DummyResult:
        seen.append(list(command))
        return DummyResult(stdout="497799835  Xcode (16.0)\n409183694  Keynote (14.2)\n")

    monkeypatch.setattr(subprocess, "run", fake_run)
    provider = MasProvider()

    assert provider.list_installed() == ["497799835", "409183694"]
    provider.install(CatalogItem(name="1295203466", kind=BackendKind.STORE))
    assert seen[-1] == ["mas", "install", "1295203466"]
    with pytest.raises(MasError):
        provider.install(CatalogItem(name="wget", kind=BackendKind.FORMULA))


def test_parse_release_url() -> None:
    """The tag comes from the final redirect URL and fills the pkg template."""
    release = parse_release_url(
        "https://github.com/Installomator/Installomator/releases/tag/v10.6"
    )

    assert release == InstallomatorRelease(
        tag="v10.6",
        version="10.6",
        pkg_url=(
            "https://github.com/Installomator/Installomator/releases/download/"
            "v10.6/Installomator-10.6.pkg"
        ),
    )


@pytest.mark.parametrize(
    "url",
    [
        "https://github.com/Installomator/Installomator/releases",
        "https://github.com/Installomator/Installomator/releases/tag/",
        "https://github.com/Installomator/Installomator/releases/tag/nightly-build",
    ],
)
def test_parse_release_url_rejects_unexpected(url: str) -> None:
    """Missing or non-version tags are errors."""
    with pytest.raises(InstallomatorError):
        parse_release_url(url)


def test_installomator_label_runs_from_script_dir(
    monkeypatch: pytest.MonkeyPatch,
    tmp_path: Path,
) -> None:
    """Labels run as ``./Installomator.sh <label> <flags>`` inside its directory."""
    seen: list[dict[str, Any]] = []

    def fake_run(command: Sequence[str], **kwargs: Any) -> DummyResult:
        seen.append({"command": list(command), "cwd": kwargs.get("cwd")})
        return DummyResult()

    monkeypatch.setattr(subprocess, "run", fake_run)
    script = tmp_path / "Installomator.sh"
    provider = InstallomatorProvider(path=script)

    provider.install_label(CatalogItem(name="jamfcpr", kind=BackendKind.LABEL))
    provider.install_pkg(tmp_path / "i.pkg", elevate=lambda cmd: ["sudo", *cmd])

    assert seen[0] == {
        "command": ["./Installomator.sh", "jamfcpr", "DEBUG=0", "NOTIFY=silent"],
        "cwd": str(tmp_path),
    }
    assert seen[1]["command"] == [
        "sudo",
        "installer",
        "-pkg",
        str(tmp_path / "i.pkg"),
        "-target",
        "/",
    ]
    assert provider.is_installed() is False


def test_dock_commands_use_no_restart(monkeypatch: pytest.MonkeyPatch) -> None:
    """Mutations pass --no-restart and run through the user wrapper."""
    seen: list[list[str]] = []
    monkeypatch.setattr(
        subprocess,
        "run",
        lambda command, **kwargs: seen.append(list(command)) or DummyResult(),
    )
    provider = DockProvider()
    home = Path("/Users/ada")

    def as_user(command: Sequence[str]) -> list[str]:
        return ["sudo", "-u", "ada", "--", *command]

    provider.clear(home, as_user=as_user)
    provider.add("/Applications/Safari.app", home, as_user=as_user)
    provider.add("/Users/ada/Downloads", home, view="grid", as_user=as_user)
    provider.restart(as_user=as_user)

    assert seen == [
        ["sudo", "-u", "ada", "--", "dockutil", "--remove", "all", "--no-restart", "/Users/ada"],
        [
            "sudo", "-u", "ada", "--", "dockutil",
            "--add", "/Applications/Safari.app", "--no-restart", "/Users/ada",
        ],
        [
            "sudo", "-u", "ada", "--", "dockutil",
            "--add", "/Users/ada/Downloads", "--view", "grid", "--no-restart", "/Users/ada",
        ],
        ["sudo", "-u", "ada", "--", "killall", "Dock"],
    ]


def test_shell_update_requires_git(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
    """Updating without git is a missing prerequisite."""
    monkeypatch.setattr("macstrap.providers.shell.shutil.which", lambda name: None)
    provider = ShellFrameworkProvider(install_dir=tmp_path / ".oh-my-zsh")

    assert provider.is_installed() is False
    with pytest.raises(PrerequisiteMissing):
        provider.update()


def test_shell_update_pulls_checkout(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
    """An existing checkout is fast-forwarded with rebase and autostash."""
    seen: list[list[str]] = []
    monkeypatch.setattr("macstrap.providers.shell.shutil.which", lambda name: "/usr/bin/git")
    monkeypatch.setattr(
        subprocess,
        "run",
        lambda command, **kwargs: seen.append(list(command)) or DummyResult(),
    )
    install_dir = tmp_path / ".oh-my-zsh"
    install_dir.mkdir()

    ShellFrameworkProvider(install_dir=install_dir).update()

    assert seen == [["git", "-C", str(install_dir), "pull", "--rebase", "--autostash"]]


def test_tart_find_binary_and_install_dir(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
    """The binary is found inside the bundle and arm64 prefers the first dir."""
    bundle = tmp_path / "tart.app" / "Contents" / "MacOS"
    bundle.mkdir(parents=True)
    (tmp_path / "nested").mkdir()
    (tmp_path / "nested" / "tart").write_bytes(b"\x7fELF")

    assert tart_module.find_binary(tmp_path) == tmp_path / "nested" / "tart"
    assert tart_module.find_binary(tmp_path / "tart.app") is None

    brew_bin = tmp_path / "brew-bin"
    brew_bin.mkdir()
    provider = TartProvider(install_dirs=(str(brew_bin), "/usr/local/bin"))
    monkeypatch.setattr(tart_module.platform, "machine", lambda: "arm64")
    assert provider.install_dir() == brew_bin
    monkeypatch.setattr(tart_module.platform, "machine", lambda: "x86_64")
    assert provider.install_dir() == Path("/usr/local/bin")


def test_tart_fetch_extracts_archive(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
    """The downloaded tarball is unpacked and the binary made executable."""
    def fake_download(url: str, dest: Path) -> Path:
        payload = b"#!/bin/sh\n"
        with tarfile.open(dest, "w:gz") as archive:
            info = tarfile.TarInfo("tart.app/tart")
            info.size = len(payload)
            archive.addfile(info, io.BytesIO(payload))
        return dest

    monkeypatch.setattr(tart_module, "download", fake_download)

    binary = TartProvider().fetch(tmp_path)

    assert binary == tmp_path / "tart.app" / "tart"
    assert binary.stat().st_mode & 0o777 == 0o755


def test_preference_setting_command() -> None:
    """Booleans render as true/false for ``defaults``."""
    setting = PreferenceSetting("com.apple.dock", "autohide", "bool", True)

    assert setting.command() == [
        "defaults",
        "write",
        "com.apple.dock",
        "autohide",
        "-bool",
        "true",
    ]
    assert PreferenceSetting("com.apple.dock", "tilesize", "int", 36).rendered_value == "36"


def test_preferences_writer_is_best_effort(monkeypatch: pytest.MonkeyPatch) -> None:
    """A failed write is recorded and the UI restart still happens once."""
    seen: list[list[str]] = []

    def fake_run(command: Sequence[str], **kwargs: Any) -> DummyResult:
        seen.append(list(command))
        if "broken" in command:
            return DummyResult(returncode=1, stderr="Rep argument is not a dictionary")
        return DummyResult()

    monkeypatch.setattr(subprocess, "run", fake_run)
    writer = PreferencesWriter()

    report = writer.apply(
        [
            PreferenceSetting("com.apple.dock", "broken", "bool", False),
            PreferenceSetting("com.apple.finder", "ShowPathbar", "bool", True),
        ]
    )

    assert [result.status.value for result in report.results] == ["failed", "succeeded"]
    assert seen[-1] == ["killall", "Dock", "Finder", "SystemUIServer"]
    assert len(seen) == 3


def test_preferences_writer_rejects_item_without_setting() -> None:
    """Items without an attached setting fail loudly."""
    writer = PreferencesWriter(dry_run=True)

    with pytest.raises(DefaultsError):
        writer._write_item(CatalogItem(name="x", kind=BackendKind.PREFERENCE))
