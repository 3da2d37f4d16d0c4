"""
Tests for jarpack.io.download module.

Tests download functionality including:
- Basic downloads
- Atomic writes
- HTTP errors
- Cache hits and misses
"""

from __future__ import annotations

from pathlib import Path

import pytest
import requests_mock

from jarpack.exceptions import NetworkError
from jarpack.io.download import download_file, fetch_cached, make_session

pytestmark = pytest.mark.unit


def test_download_success(tmp_test_dir: Path) -> None:
    """Test basic successful download to an exact path."""
    url = "https://example.com/dist/linux_x64_template.zip"
    dest = tmp_test_dir / "cache" / "jres" / "linux_x64_template.zip"

    with requests_mock.Mocker() as m:
        m.get(url, content=b"zipdata")
        path = download_file(url, dest)

    assert path == dest
    assert dest.read_bytes() == b"zipdata"


def test_follows_redirect(tmp_test_dir: Path) -> None:
    """Test that redirects are followed."""
    start = "https://example.com/start"
    final = "https://cdn.example.com/payload.zip"
    dest = tmp_test_dir / "payload.zip"

    with requests_mock.Mocker() as m:
        m.get(start, status_code=302, headers={"Location": final})
        m.get(final, content=b"abc")
        download_file(start, dest)

    assert dest.read_bytes() == b"abc"


def test_http_error_raises_network_error(tmp_test_dir: Path) -> None:
    """Test that a 404 raises NetworkError and leaves nothing behind."""
    url = "https://example.com/missing.zip"
    dest = tmp_test_dir / "missing.zip"

    with requests_mock.Mocker() as m:
        m.get(url, status_code=404)
        with pytest.raises(NetworkError, match="download failed"):
            download_file(url, dest)

    assert not dest.exists()
    assert list(tmp_test_dir.glob("*.part")) == []


def test_writes_atomically_no_part_leftovers(tmp_test_dir: Path) -> None:
    """Test that atomic writes don't leave .part files behind."""
    url = "https://example.com/file.bin"

    with requests_mock.Mocker() as m:
        m.get(url, content=b"x" * 10)
        path = download_file(url, tmp_test_dir / "file.bin")

    assert list(tmp_test_dir.glob("*.part")) == []
    assert path.exists()


def test_session_user_agent() -> None:
    """Test that the session identifies jarpack."""
    with make_session() as session:
        assert session.headers["User-Agent"].startswith("jarpack/")


class TestFetchCached:
    """Tests for fetch_cached()."""

    def test_cache_hit_makes_no_request(self, tmp_test_dir: Path) -> None:
        """Test that an existing regular file is returned without downloading."""
        location = tmp_test_dir / "icons" / "default_icon.png"
        location.parent.mkdir(parents=True)
        location.write_bytes(b"cached")

        with requests_mock.Mocker() as m:
            path = fetch_cached("https://example.com/default_icon.png", location)
            assert m.call_count == 0

        assert path.read_bytes() == b"cached"

    def test_cache_miss_downloads(self, tmp_test_dir: Path) -> None:
        """Test that a missing file is downloaded into the cache location."""
        url = "https://example.com/default_icon.png"
        location = tmp_test_dir / "icons" / "default_icon.png"

        with requests_mock.Mocker() as m:
            m.get(url, content=b"fresh")
            path = fetch_cached(url, location)
            assert m.call_count == 1

        assert path == location.resolve()
        assert location.read_bytes() == b"fresh"

