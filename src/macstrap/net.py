"""Small HTTP helpers for installer scripts and release artefacts."""
from __future__ import annotations

import shutil
import time
import urllib.error
import urllib.request
from pathlib import Path

from .errors import DownloadError

DEFAULT_TIMEOUT = 60
USER_AGENT = "macstrap"


def _request(url: str, *, method: str = "GET") -> urllib.request.Request:
    return urllib.request.Request(url, method=method, headers={"User-Agent": USER_AGENT})


def resolve_redirect(url: str, *, timeout: float = DEFAULT_TIMEOUT) -> str:
    """Follow redirects for *url* with a HEAD request and return the final URL."""
    try:
        with urllib.request.urlopen(_request(url, method="HEAD"), timeout=timeout) as resp:
            return str(resp.geturl())
    except (urllib.error.URLError, OSError) as exc:
        raise DownloadError(f"Cannot resolve {url}: {exc}") from exc


def fetch_text(url: str, *, timeout: float = DEFAULT_TIMEOUT) -> str:
    """Return the body of *url* decoded as UTF-8."""
    try:
        with urllib.request.urlopen(_request(url), timeout=timeout) as resp:
            return resp.read().decode("utf-8")
    except (urllib.error.URLError, OSError, UnicodeDecodeError) as exc:
        raise DownloadError(f"Failed to fetch {url}: {exc}") from exc


def download(
    url: str,
    dest: Path,
    *,
    retries: int = 3,
    delay: float = 1.0,
    timeout: float = DEFAULT_TIMEOUT,
) -> Path:
    """Download *url* into *dest*, retrying transient failures."""
    last_error: Exception | None = None
    for attempt in range(1, max(retries, 1) + 1):
        try:
            with urllib.request.urlopen(_request(url), timeout=timeout) as resp:
                with dest.open("wb") as handle:
                    shutil.copyfileobj(resp, handle)
            if dest.stat().st_size == 0:
                raise DownloadError(f"Downloaded file from {url} is empty.")
            return dest
        except (urllib.error.URLError, OSError, DownloadError) as exc:
            last_error = exc
            dest.unlink(missing_ok=True)
            if attempt < retries:
                time.sleep(delay)
    raise DownloadError(f"Failed to download {url} after {retries} attempt(s): {last_error}")


__all__ = ["download", "fetch_text", "resolve_redirect"]
