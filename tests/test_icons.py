"""
Tests for jarpack.icons module.

Tests icon standardization including:
- Conversion commands per input format
- Default icon fallback for missing or unsupported input
- Failed conversions and unreadable input returning the original file
- Re-standardizing standardized output
- IconSet slot fallback and memoization
"""

from __future__ import annotations

from pathlib import Path
from unittest.mock import patch

import pytest
import requests_mock

from jarpack.descriptor import ApplicationDescriptor
from jarpack.icons import (
    IconSet,
    IconStandardizer,
    conversion_command,
    standard_icon_name,
)

pytestmark = pytest.mark.unit


def _descriptor(source_dir: Path, **kwargs) -> ApplicationDescriptor:
    return ApplicationDescriptor(
        source_dir=source_dir,
        primary_payload="myapp.jar",
        auxiliary_payloads=(),
        name="MyApp",
        version="1.0.0",
        main_class="com.example.Main",
        **kwargs,
    )


class TestConversionCommand:
    """Tests for conversion_command()."""

    def test_raster_is_fitted_on_canvas(self):
        """Test that raster input is shrunk only and centered."""
        cmd = conversion_command("source.png", "standard.png", 64)

        assert cmd == (
            "convert -background none source.png -resize '64x64>' "
            "-gravity center -extent 64x64 standard.png"
        )

    def test_svg_is_rasterized_at_double_size(self):
        """Test that SVG input goes through rsvg-convert first."""
        cmd = conversion_command("source.svg", "standard.png", 64)

        assert cmd.startswith("rsvg-convert -w 128 -h 128 ")
        assert "&& convert -background none rasterized.png" in cmd

    def test_pdf_renders_first_page(self):
        """Test that PDF input renders page 0 at 300 DPI."""
        cmd = conversion_command("source.pdf", "standard.png", 64)

        assert cmd.startswith("convert -density 300 -background none 'source.pdf[0]'")

    def test_unsupported_format(self):
        """Test that an unknown format raises ValueError."""
        with pytest.raises(ValueError, match="Unsupported"):
            conversion_command("source.xyz", "standard.png")

    def test_standard_icon_name(self):
        """Test that the app name is sanitized in output names."""
        assert standard_icon_name("My App-2", "app") == "my_app_2_app_icon.png"


class TestIconStandardizer:
    """Tests for IconStandardizer.standardize()."""

    def test_png_is_converted(self, build_context, fake_tools, tmp_path):
        """Test that a PNG goes through the same conversion as any raster."""
        icon = tmp_path / "icon.png"
        icon.write_bytes(b"png")

        result = IconStandardizer(build_context, "MyApp").standardize(icon)

        assert result.name == "myapp_app_icon.png"
        assert result.read_bytes() == b"IMG:standard.png"
        assert fake_tools.commands[-1].startswith("convert -background none source.png")

    def test_svg_is_converted(self, build_context, fake_tools, tmp_path):
        """Test that SVG input produces a PNG."""
        icon = tmp_path / "icon.svg"
        icon.write_text("<svg/>")

        result = IconStandardizer(build_context, "MyApp").standardize(icon, "document")

        assert result.name == "myapp_document_icon.png"
        assert "rsvg-convert" in fake_tools.commands[-1]

    def test_no_icon_uses_default(self, build_context, settings, fake_tools):
        """Test that no input yields the cached default icon without conversion."""
        result = IconStandardizer(build_context, "MyApp").standardize(None)

        assert result == settings.icon_cache_path().resolve()
        assert fake_tools.commands == []

    def test_unsupported_icon_uses_default(
        self, build_context, settings, tmp_path, recording_logger
    ):
        """Test that an unsupported file falls back to the default with a warning."""
        icon = tmp_path / "icon.xyz"
        icon.write_bytes(b"?")

        result = IconStandardizer(build_context, "MyApp").standardize(icon)

        assert result == settings.icon_cache_path().resolve()
        assert recording_logger.warnings("ICON")

    def test_missing_icon_uses_default(self, build_context, settings, tmp_path):
        """Test that a nonexistent icon file falls back to the default."""
        result = IconStandardizer(build_context, "MyApp").standardize(
            tmp_path / "missing.png"
        )

        assert result == settings.icon_cache_path().resolve()

    def test_failed_conversion_returns_original(
        self, build_context, fake_tools, registry, tmp_path, recording_logger
    ):
        """Test that a conversion failure returns the input and cleans up."""
        fake_tools.fail_on("convert")
        icon = tmp_path / "icon.jpg"
        icon.write_bytes(b"jpg")

        result = IconStandardizer(build_context, "MyApp").standardize(icon)

        assert result == icon
        assert any("failed" in w for w in recording_logger.warnings("ICON"))
        assert registry.live() == []

    def test_unreadable_icon_returns_original(
        self, build_context, fake_tools, registry, tmp_path, recording_logger
    ):
        """Test that an input that cannot be read falls back to the original."""
        icon = tmp_path / "icon.png"
        icon.write_bytes(b"png")

        with patch(
            "jarpack.icons.shutil.copy2",
            side_effect=OSError(5, "Input/output error"),
        ):
            result = IconStandardizer(build_context, "MyApp").standardize(icon)

        assert result == icon
        assert fake_tools.commands == []
        assert any("failed" in w for w in recording_logger.warnings("ICON"))
        assert registry.live() == []

    def test_standardizing_is_idempotent(self, build_context, fake_tools, tmp_path):
        """Test that a standardized icon goes through the same canvas fit again."""
        icon = tmp_path / "icon.png"
        icon.write_bytes(b"png")
        standardizer = IconStandardizer(build_context, "MyApp")

        first = standardizer.standardize(icon)
        second = standardizer.standardize(first)

        size = build_context.settings.icon_size
        expected = (
            f"convert -background none source.png -resize '{size}x{size}>' "
            f"-gravity center -extent {size}x{size} standard.png"
        )
        assert fake_tools.commands == [expected, expected]
        assert second.name == first.name == "myapp_app_icon.png"
        assert second.read_bytes() == first.read_bytes()

    def test_default_icon_unavailable(
        self, build_context, settings, recording_logger
    ):
        """Test that a failed default icon download yields None."""
        settings.icon_cache_path().unlink()

        with requests_mock.Mocker() as m:
            m.get(settings.default_icon_url, status_code=404)
            result = IconStandardizer(build_context, "MyApp").standardize(None)

        assert result is None
        assert recording_logger.warnings("ICON")


class TestIconSet:
    """Tests for IconSet."""

    def test_slots_fall_back_to_app_icon(self, build_context, fake_tools, tmp_path):
        """Test that installer and document slots reuse the app icon."""
        icon = tmp_path / "icon.png"
        icon.write_bytes(b"png")
        icons = IconSet(
            IconStandardizer(build_context, "MyApp"), _descriptor(tmp_path, icon=icon)
        )

        app = icons.app()

        assert icons.installer() == app
        assert icons.document() == app
        assert len(fake_tools.commands) == 1

    def test_distinct_inputs_are_converted_once(
        self, build_context, fake_tools, tmp_path
    ):
        """Test that each slot converts once however often it is asked for."""
        icon = tmp_path / "icon.png"
        icon.write_bytes(b"png")
        install = tmp_path / "install.png"
        install.write_bytes(b"png")
        icons = IconSet(
            IconStandardizer(build_context, "MyApp"),
            _descriptor(tmp_path, icon=icon, install_icon=install),
        )

        first = icons.installer()
        second = icons.installer()
        icons.app()

        assert first == second
        assert first.name == "myapp_installer_icon.png"
        assert len(fake_tools.commands) == 2
