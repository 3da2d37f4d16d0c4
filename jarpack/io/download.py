"""
Cached HTTP(S) downloads for jarpack.

Base distributions (prebuilt launcher + runtime per target) and the default
application icon are fetched from fixed URLs and kept in a local cache. A
cache hit is any existing regular file at the expected location; nothing is
revalidated against the server.

Key Features:

- **Retry Logic with Exponential Backoff** - Retries transient failures
  (429, 500, 502, 503, 504) through urllib3.util.Retry.
- **Atomic Writes** - Downloads to a .part file and renames on success so a
  partial file never looks like a cache hit.
- **Per-Location Locking** - Concurrent targets asking for the same file
  download it once; the others wait and reuse it.

Example:

    >>> from pathlib import Path
    >>> from jarpack.io import fetch_cached
    >>> path = fetch_cached(
    ...     "https://example.com/linux_x64_template.zip",
    ...     Path("~/.cache/jarpack/jres/linux_x64_template.zip").expanduser(),
    ... )

Notes:
- All HTTP errors are wrapped in NetworkError and chained
- Timeouts are per-request, not total download time
"""

from __future__ import annotations

from pathlib import Path
import threading
import time

import requests
from requests.adapters import HTTPAdapter
from urllib3.util.retry import Retry

from jarpack import __version__
from jarpack.exceptions import NetworkError

# Stream size per chunk (1 MiB).
DEFAULT_CHUNK = 1024 * 1024

_locks_guard = threading.Lock()
_location_locks: dict[Path, threading.Lock] = {}


def _lock_for(location: Path) -> threading.Lock:
    """Return the lock serializing writes to 'location'."""
    with _locks_guard:
        return _location_locks.setdefault(location, threading.Lock())


def make_session() -> requests.Session:
    """
    Create a requests.Session with sane retry/backoff defaults.

    - Retries on common transient status codes.
    - Applies exponential backoff.
    - Sets a User-Agent identifying jarpack.
    - Requests identity encoding; the payloads are zip/png files that are
      already compressed.
    """
    s = requests.Session()
    retries = Retry(
        total=5,
        backoff_factor=0.5,
        status_forcelist=(429, 500, 502, 503, 504),
        allowed_methods=("GET", "HEAD"),
        raise_on_status=False,
    )
    s.headers.update(
        {
            "User-Agent": f"jarpack/{__version__}",
            "Accept-Encoding": "identity",
        }
    )
    s.mount("http://", HTTPAdapter(max_retries=retries))
    s.mount("https://", HTTPAdapter(max_retries=retries))
    return s


def download_file(url: str, destination: Path, *, timeout: int = 60) -> Path:
    """Download a URL to an exact destination path.

    Writes to <destination>.part, then renames to <destination> on success.

    Args:
        url: Source URL.
        destination: Target file path (parent directories are created).
        timeout: Per-request timeout (seconds).

    Returns:
        The destination path.

    Raises:
        NetworkError: For connection errors or non-2xx responses (after retries).
    """
    from jarpack.logging import get_global_logger

    logger = get_global_logger()
    destination = Path(destination)
    destination.parent.mkdir(parents=True, exist_ok=True)
    tmp = destination.with_name(destination.name + ".part")

    logger.verbose("HTTP", f"GET {url}")
    started_at = time.time()
    try:
        with make_session() as session:
            resp = session.get(url, stream=True, allow_redirects=True, timeout=timeout)
            try:
                resp.raise_for_status()
                logger.debug("HTTP", f"Response: {resp.status_code} {resp.reason}")
                with tmp.open("wb") as f:
                    for chunk in resp.iter_content(chunk_size=DEFAULT_CHUNK):
                        if chunk:
                            f.write(chunk)
            finally:
                resp.close()
    except requests.RequestException as err:
        tmp.unlink(missing_ok=True)
        raise NetworkError(f"download failed for {url}: {err}") from err

    tmp.replace(destination)
    elapsed = time.time() - started_at
    logger.verbose("FILE", f"Downloaded {destination.name} in {elapsed:.1f}s")
    return destination


def fetch_cached(url: str, location: Path, *, timeout: int = 60) -> Path:
    """Return a cached copy of 'url', downloading it on a cache miss.

    Args:
        url: Source URL.
        location: Cache file path for this URL.
        timeout: Per-request timeout (seconds).

    Returns:
        Path to the cached file.

    Raises:
        NetworkError: If the file is not cached and the download fails.
    """
    from jarpack.logging import get_global_logger

    logger = get_global_logger()
    location = Path(location).expanduser().resolve()
    with _lock_for(location):
        if location.is_file():
            logger.verbose("DIST", f"Using cached file: {location}")
            return location
        logger.verbose("DIST", f"Downloading {url}")
        return download_file(url, location, timeout=timeout)
