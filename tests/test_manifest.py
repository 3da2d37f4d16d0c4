"""
Tests for jarpack.io.manifest module.

Tests JAR manifest parsing including:
- Main section only
- Continuation lines
- First definition wins
- Malformed lines
- Reading from jar files
"""

from __future__ import annotations

import zipfile

import pytest

from jarpack.exceptions import ConfigError
from jarpack.io.manifest import parse_manifest, read_manifest, read_manifest_attribute

pytestmark = pytest.mark.unit


class TestParseManifest:
    """Tests for parse_manifest()."""

    def test_simple_attributes(self):
        """Test plain key/value lines."""
        attrs = parse_manifest(
            "Manifest-Version: 1.0\r\nMain-Class: com.example.Main\r\n"
        )

        assert attrs == {"Manifest-Version": "1.0", "Main-Class": "com.example.Main"}

    def test_continuation_lines_are_joined(self):
        """Test that lines starting with a space continue the previous value."""
        attrs = parse_manifest(
            "Main-Class: com.example.very.long.package.na\n me.Main\nClass-Path: a.jar\n"
        )

        assert attrs["Main-Class"] == "com.example.very.long.package.name.Main"
        assert attrs["Class-Path"] == "a.jar"

    def test_stops_at_first_blank_line(self):
        """Test that per-entry sections are ignored."""
        attrs = parse_manifest(
            "Manifest-Version: 1.0\n\nName: com/example/\nMain-Class: wrong.Main\n"
        )

        assert "Main-Class" not in attrs
        assert "Name" not in attrs

    def test_first_definition_wins(self):
        """Test that duplicate keys keep their first value."""
        attrs = parse_manifest("Main-Class: first.Main\nMain-Class: second.Main\n")

        assert attrs["Main-Class"] == "first.Main"

    def test_malformed_lines_skipped(self):
        """Test that lines without a key are ignored."""
        attrs = parse_manifest("garbage line\n: no key\nMain-Class: ok.Main\n")

        assert attrs == {"Main-Class": "ok.Main"}


class TestReadManifest:
    """Tests for reading manifests from jar files."""

    def test_read_attribute(self, tmp_path, create_jar):
        """Test reading Main-Class from a jar."""
        jar = create_jar(tmp_path / "app.jar", main_class="org.demo.App")

        assert read_manifest_attribute(jar, "Main-Class") == "org.demo.App"
        assert read_manifest_attribute(jar, "Missing-Key") is None

    def test_keys_are_exact(self, tmp_path, create_jar):
        """Test that attribute lookup is case-sensitive."""
        jar = create_jar(tmp_path / "app.jar", main_class="org.demo.App")

        assert read_manifest_attribute(jar, "main-class") is None

    def test_jar_without_manifest_raises(self, tmp_path):
        """Test that a jar without a manifest raises ConfigError."""
        jar = tmp_path / "plain.jar"
        with zipfile.ZipFile(jar, "w") as zf:
            zf.writestr("a.txt", "x")

        with pytest.raises(ConfigError, match="No manifest"):
            read_manifest_attribute(jar, "Main-Class")

    def test_not_a_jar_raises(self, tmp_path):
        """Test that a corrupt jar raises ConfigError."""
        jar = tmp_path / "broken.jar"
        jar.write_bytes(b"nope")

        with pytest.raises(ConfigError):
            read_manifest(jar)
