"""Input/Output operations for jarpack.

Modules:

download : module
    Cached HTTP(S) downloads with retries and atomic writes.
archive : module
    Distribution zip extraction and tar.gz creation.
files : module
    Tree copy, move and delete helpers.
manifest : module
    JAR manifest parsing.

Example:
    from pathlib import Path
    from jarpack.io import fetch_cached

    path = fetch_cached(url, Path("~/.cache/jarpack/jres/x.zip").expanduser())
"""

from .archive import create_tar_gz, extract_distribution, make_executable
from .download import download_file, fetch_cached, make_session
from .manifest import parse_manifest, read_manifest_attribute

__all__ = [
    "create_tar_gz",
    "download_file",
    "extract_distribution",
    "fetch_cached",
    "make_executable",
    "make_session",
    "parse_manifest",
    "read_manifest_attribute",
]
