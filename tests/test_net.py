"""Tests for the HTTP helpers."""
from __future__ import annotations

import io
import urllib.error
import urllib.request
from pathlib import Path
from typing import Any

import pytest

from macstrap import net
from macstrap.errors import DownloadError


class DummyResponse(io.BytesIO):
    """Minimal ``urlopen`` response."""

    def __init__(self, body: bytes = b"", url: str = "") -> None:
        """Initialise the dummy response."""
        super().__init__(body)
        self._url = url

    def geturl(self) -> str:
        return self._url


def test_resolve_redirect_returns_final_url(monkeypatch: pytest.MonkeyPatch) -> None:
    """The final URL after redirects is returned; HEAD is used."""
    seen: list[str] = []

    def fake_urlopen(request: urllib.request.Request, timeout: float) -> DummyResponse:
        seen.append(request.get_method())
        return DummyResponse(url="https://github.com/o/r/releases/tag/v10.6")

    monkeypatch.setattr(urllib.request, "urlopen", fake_urlopen)

    assert net.resolve_redirect("https://github.com/o/r/releases/latest").endswith("/tag/v10.6")
    assert seen == ["HEAD"]


def test_download_retries_then_succeeds(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
    """Transient failures and empty bodies are retried."""
    attempts: list[int] = []

    def fake_urlopen(request: Any, timeout: float) -> DummyResponse:
        attempts.append(1)
        if len(attempts) == 1:
            raise urllib.error.URLError("connection reset")
        if len(attempts) == 2:
            return DummyResponse(b"")
        return DummyResponse(b"xar!pkg")

    monkeypatch.setattr(urllib.request, "urlopen", fake_urlopen)
    dest = tmp_path / "Installomator.pkg"

    assert net.download("https://example.invalid/i.pkg", dest, delay=0) == dest
    assert dest.read_bytes() == b"xar!pkg"
    assert len(attempts) == 3


def test_download_gives_up(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
    """After the last attempt the partial file is removed and an error raised."""
    monkeypatch.setattr(urllib.request, "urlopen", lambda request, timeout: DummyResponse(b""))
    dest = tmp_path / "tart.tar.gz"

    with pytest.raises(DownloadError, match="after 2 attempt"):
        net.download("https://example.invalid/tart.tar.gz", dest, retries=2, delay=0)
    assert not dest.exists()


def test_fetch_text_wraps_errors(monkeypatch: pytest.MonkeyPatch) -> None:
    """Network errors surface as download errors."""
    def fake_urlopen(request: Any, timeout: float) -> DummyResponse:
        raise urllib.error.URLError("no route to host")

    monkeypatch.setattr(urllib.request, "urlopen", fake_urlopen)

    with pytest.raises(DownloadError, match="Failed to fetch"):
        net.fetch_text("https://example.invalid/install.sh")
