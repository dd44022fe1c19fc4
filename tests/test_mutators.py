"""Tests for idempotent file edits."""
from __future__ import annotations

import os
import shutil
from datetime import datetime
from pathlib import Path

import pytest

from macstrap.errors import ConfigEditFailed
from macstrap.mutators import (
    EditOutcome,
    append_line_if_absent,
    backup_path_for,
    ensure_line_in_file,
    insert_after_header,
    link_file,
)

PAM_LINE = "auth       sufficient     pam_tid.so"
PAM_PATTERN = r"^\s*auth\s+sufficient\s+pam_tid\.so\s*$"
SUDO_FILE = (
    "# sudo: auth account password session\n"
    "#\n"
    "\n"
    "auth       include        sudo_local\n"
    "auth       sufficient     pam_smartcard.so\n"
)
STAMP = datetime(2026, 10, 18, 9, 30, 0)


def test_insert_after_three_line_header(tmp_path: Path) -> None:
    """The line lands right after the comment block and a backup is kept."""
    target = tmp_path / "sudo"
    target.write_text(SUDO_FILE, encoding="utf-8")

    edit = ensure_line_in_file(target, PAM_LINE, pattern=PAM_PATTERN, now=STAMP)

    lines = target.read_text(encoding="utf-8").splitlines()
    assert edit.outcome is EditOutcome.INSERTED
    assert lines.index(PAM_LINE) == 3
    assert lines[4] == "auth       include        sudo_local"
    assert edit.backup_path == tmp_path / "sudo.bak.20261018093000"
    assert edit.backup_path.read_bytes() == SUDO_FILE.encode("utf-8")


def test_second_run_is_noop(tmp_path: Path) -> None:
    """An existing matching line leaves the file and backups alone."""
    target = tmp_path / "sudo"
    target.write_text(SUDO_FILE, encoding="utf-8")
    ensure_line_in_file(target, PAM_LINE, pattern=PAM_PATTERN, now=STAMP)
    before = target.read_bytes()

    edit = ensure_line_in_file(target, PAM_LINE, pattern=PAM_PATTERN, now=datetime(2027, 1, 1))

    assert edit.outcome is EditOutcome.NOOP
    assert edit.changed is False
    assert target.read_bytes() == before
    assert sorted(path.name for path in tmp_path.glob("sudo.bak.*")) == ["sudo.bak.20261018093000"]


def test_pattern_tolerates_spacing(tmp_path: Path) -> None:
    """A line with different whitespace still counts as present."""
    target = tmp_path / "sudo"
    target.write_text("# header\nauth sufficient pam_tid.so\n", encoding="utf-8")

    assert ensure_line_in_file(target, PAM_LINE, pattern=PAM_PATTERN).outcome is EditOutcome.NOOP


def test_all_header_file_appends() -> None:
    """A file with only comments gets the line at the end."""
    lines = ["# one\n", "# two"]

    assert insert_after_header(lines, "auth x") == ["# one\n", "# two\n", "auth x\n"]


def test_missing_file_raises(tmp_path: Path) -> None:
    """Editing a missing file is a config edit failure."""
    with pytest.raises(ConfigEditFailed, match="not found"):
        ensure_line_in_file(tmp_path / "missing", PAM_LINE)


def test_backup_failure_leaves_file_untouched(
    tmp_path: Path,
    monkeypatch: pytest.MonkeyPatch,
) -> None:
    """No rewrite happens when the backup cannot be written."""
    target = tmp_path / "sudo"
    target.write_text(SUDO_FILE, encoding="utf-8")

    def fail_copy(*args: object, **kwargs: object) -> None:
        raise PermissionError("read-only")

    monkeypatch.setattr(shutil, "copy2", fail_copy)

    with pytest.raises(ConfigEditFailed, match="Failed to back up"):
        ensure_line_in_file(target, PAM_LINE, pattern=PAM_PATTERN, now=STAMP)
    assert target.read_text(encoding="utf-8") == SUDO_FILE


def test_non_utf8_file_is_edit_failure(tmp_path: Path) -> None:
    """Undecodable content is reported as an edit failure and left alone."""
    target = tmp_path / "sudo"
    raw = b"# sudo\n\xff\xfe auth include sudo_local\n"
    target.write_bytes(raw)

    with pytest.raises(ConfigEditFailed, match="not valid UTF-8"):
        ensure_line_in_file(target, PAM_LINE, pattern=PAM_PATTERN, now=STAMP)
    assert target.read_bytes() == raw
    assert list(tmp_path.glob("sudo.bak.*")) == []


def test_dry_run_reports_without_writing(tmp_path: Path) -> None:
    """Dry runs describe the edit and touch nothing."""
    target = tmp_path / "sudo"
    target.write_text(SUDO_FILE, encoding="utf-8")

    edit = ensure_line_in_file(target, PAM_LINE, pattern=PAM_PATTERN, now=STAMP, dry_run=True)

    assert edit.outcome is EditOutcome.INSERTED
    assert edit.backup_path == backup_path_for(target, STAMP)
    assert not edit.backup_path.exists()
    assert target.read_text(encoding="utf-8") == SUDO_FILE


def test_rewrite_preserves_mode(tmp_path: Path) -> None:
    """The rewritten file keeps the original permission bits."""
    target = tmp_path / "sudo"
    target.write_text(SUDO_FILE, encoding="utf-8")
    os.chmod(target, 0o444)

    ensure_line_in_file(target, PAM_LINE, pattern=PAM_PATTERN, now=STAMP)

    assert target.stat().st_mode & 0o777 == 0o444


def test_append_line_if_absent(tmp_path: Path) -> None:
    """Profile lines are appended once, keyed by the needle."""
    profile = tmp_path / ".zprofile"
    profile.write_text("export EDITOR=vim", encoding="utf-8")
    line = 'eval "$(/opt/homebrew/bin/brew shellenv)"'

    first = append_line_if_absent(profile, line, needle="/opt/homebrew")
    second = append_line_if_absent(profile, line, needle="/opt/homebrew")

    assert first is EditOutcome.INSERTED
    assert second is EditOutcome.NOOP
    assert profile.read_text(encoding="utf-8") == f"export EDITOR=vim\n{line}\n"


def test_append_line_creates_missing_file(tmp_path: Path) -> None:
    """A missing profile is created with just the line."""
    profile = tmp_path / "home" / ".zprofile"

    assert append_line_if_absent(profile, "source ~/.zshrc") is EditOutcome.INSERTED
    assert profile.read_text(encoding="utf-8") == "source ~/.zshrc\n"


def test_link_file_replaces_target(tmp_path: Path) -> None:
    """Links replace existing files and are idempotent."""
    source = tmp_path / "dotfiles" / ".zshrc"
    source.parent.mkdir()
    source.write_text("# shared\n", encoding="utf-8")
    target = tmp_path / ".zshrc"
    target.write_text("# local\n", encoding="utf-8")

    assert link_file(source, target) is EditOutcome.INSERTED
    assert target.is_symlink()
    assert target.read_text(encoding="utf-8") == "# shared\n"
    assert link_file(source, target) is EditOutcome.NOOP
