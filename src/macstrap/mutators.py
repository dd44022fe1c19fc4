"""Narrow, idempotent file edits: PAM line insertion, profile lines, links."""
from __future__ import annotations

import os
import re
import shutil
import tempfile
from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from pathlib import Path

from .errors import ConfigEditFailed

BACKUP_TIMESTAMP_FORMAT = "%Y%m%d%H%M%S"
_HEADER_LINE = re.compile(r"^\s*(#.*)?$")


class EditOutcome(str, Enum):
    """Result of an idempotent edit."""

    NOOP = "noop"
    INSERTED = "inserted"


@dataclass(frozen=True, slots=True)
class LineEdit:
    """Describe an ``ensure_line_in_file`` call and what it did."""

    path: Path
    line: str
    outcome: EditOutcome
    backup_path: Path | None = None

    @property
    def changed(self) -> bool:
        """Return ``True`` when the file was rewritten."""
        return self.outcome is EditOutcome.INSERTED


def backup_path_for(path: Path, now: datetime | None = None) -> Path:
    """Return the timestamped backup path for *path*."""
    stamp = (now or datetime.now()).strftime(BACKUP_TIMESTAMP_FORMAT)
    return path.with_name(f"{path.name}.bak.{stamp}")


def line_present(lines: list[str], line: str, pattern: str | re.Pattern[str] | None) -> bool:
    """Return ``True`` when a line matches *pattern* (or equals *line*)."""
    if pattern is None:
        wanted = line.rstrip()
        return any(existing.rstrip("\r\n").rstrip() == wanted for existing in lines)
    regex = re.compile(pattern) if isinstance(pattern, str) else pattern
    return any(regex.fullmatch(existing.rstrip("\r\n")) for existing in lines)


def insert_after_header(lines: list[str], line: str) -> list[str]:
    """Insert *line* after the leading comment/blank block of *lines*."""
    index = 0
    while index < len(lines) and _HEADER_LINE.match(lines[index].rstrip("\r\n")):
        index += 1
    new_line = line if line.endswith("\n") else f"{line}\n"
    updated = list(lines)
    if index == len(updated) and updated and not updated[-1].endswith("\n"):
        updated[-1] = f"{updated[-1]}\n"
    updated.insert(index, new_line)
    return updated


def ensure_line_in_file(
    path: Path,
    line: str,
    *,
    pattern: str | re.Pattern[str] | None = None,
    now: datetime | None = None,
    dry_run: bool = False,
) -> LineEdit:
    """Insert *line* into *path* once, backing the file up first.

    Presence is decided by a full-line match of *pattern* (or exact equality
    with *line* when no pattern is given). A backup failure aborts before the
    file is touched, and the rewrite goes through a temporary file plus
    ``os.replace`` so the target is never left truncated.
    """
    try:
        with path.open(encoding="utf-8", newline="") as handle:
            text = handle.read()
    except FileNotFoundError as exc:
        raise ConfigEditFailed(f"Config file not found: {path}") from exc
    except OSError as exc:
        raise ConfigEditFailed(f"Cannot read {path}: {exc}") from exc
    except UnicodeDecodeError as exc:
        raise ConfigEditFailed(f"{path} is not valid UTF-8: {exc}") from exc

    lines = text.splitlines(keepends=True)
    if line_present(lines, line, pattern):
        return LineEdit(path=path, line=line, outcome=EditOutcome.NOOP)

    backup = backup_path_for(path, now)
    if dry_run:
        return LineEdit(path=path, line=line, outcome=EditOutcome.INSERTED, backup_path=backup)

    try:
        shutil.copy2(path, backup)
    except OSError as exc:
        raise ConfigEditFailed(f"Failed to back up {path} to {backup}: {exc}") from exc

    _atomic_write(path, "".join(insert_after_header(lines, line)))
    return LineEdit(path=path, line=line, outcome=EditOutcome.INSERTED, backup_path=backup)


def _atomic_write(path: Path, content: str) -> None:
    original = path.stat()
    tmp_fd, tmp_name = tempfile.mkstemp(dir=str(path.parent), prefix=f".{path.name}.")
    tmp_path = Path(tmp_name)
    try:
        with os.fdopen(tmp_fd, "w", encoding="utf-8", newline="") as handle:
            handle.write(content)
            handle.flush()
            os.fsync(handle.fileno())
        os.chmod(tmp_path, original.st_mode & 0o7777)
        if os.geteuid() == 0:
            os.chown(tmp_path, original.st_uid, original.st_gid)
        os.replace(tmp_path, path)
    except OSError as exc:
        raise ConfigEditFailed(f"Failed to rewrite {path}: {exc}") from exc
    finally:
        tmp_path.unlink(missing_ok=True)


def append_line_if_absent(
    path: Path,
    line: str,
    *,
    needle: str | None = None,
    dry_run: bool = False,
) -> EditOutcome:
    """Append *line* to *path* unless *needle* (default: *line*) already occurs."""
    marker = needle if needle is not None else line
    existing = ""
    if path.exists():
        existing = path.read_text(encoding="utf-8")
        if marker in existing:
            return EditOutcome.NOOP
    if dry_run:
        return EditOutcome.INSERTED
    path.parent.mkdir(parents=True, exist_ok=True)
    prefix = "" if not existing or existing.endswith("\n") else "\n"
    with path.open("a", encoding="utf-8") as handle:
        handle.write(f"{prefix}{line}\n")
    return EditOutcome.INSERTED


def link_file(source: Path, target: Path, *, dry_run: bool = False) -> EditOutcome:
    """Point *target* at *source* with a symlink, replacing whatever is there."""
    if target.is_symlink() and Path(os.readlink(target)) == source:
        return EditOutcome.NOOP
    if dry_run:
        return EditOutcome.INSERTED
    target.parent.mkdir(parents=True, exist_ok=True)
    staging = target.with_name(f".{target.name}.macstrap-link")
    staging.unlink(missing_ok=True)
    staging.symlink_to(source)
    os.replace(staging, target)
    return EditOutcome.INSERTED


__all__ = [
    "BACKUP_TIMESTAMP_FORMAT",
    "EditOutcome",
    "LineEdit",
    "append_line_if_absent",
    "backup_path_for",
    "ensure_line_in_file",
    "insert_after_header",
    "line_present",
    "link_file",
]
