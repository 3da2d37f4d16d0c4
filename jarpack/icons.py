# Copyright 2025 Roger Cibrian
#
# Licensed under the Apache License, Version 2.0 (the "License");
# you may not use this file except in compliance with the License.
# You may obtain a copy of the License at
#
#     http://www.apache.org/licenses/LICENSE-2.0
#
# Unless required by applicable law or agreed to in writing, software
# distributed under the License is distributed on an "AS IS" BASIS,
# WITHOUT WARRANTIES OR CONDITIONS OF ANY KIND, either express or implied.
# See the License for the specific language governing permissions and
# limitations under the License.

"""Icon standardization for jarpack.

Every target consumes icons as a square PNG with transparency. This module
turns whatever the user supplied into that form, using ImageMagick and
rsvg-convert inside the builder container.

Conversion Rules:
    - Raster input is shrunk (never enlarged) to fit the canvas and centered
      on a transparent square
    - SVG is rasterized by rsvg-convert at twice the canvas size, then
      treated as raster
    - PDF page 0 is rendered at 300 DPI, then treated as raster
    - A missing or unsupported input uses the default icon, downloaded once
      and cached
    - A failed conversion or an unreadable input returns the original
      input unchanged

Example:
    ```python
    from jarpack.icons import IconSet, IconStandardizer

    icons = IconSet(IconStandardizer(context, descriptor.name), descriptor)
    app_png = icons.app()
    installer_png = icons.installer()
    ```
"""

from __future__ import annotations

from pathlib import Path
import re
import shlex
import shutil
import threading
from typing import TYPE_CHECKING

from jarpack.exceptions import (
    NetworkError,
    NoToolchainAvailableError,
    PackagingError,
)

if TYPE_CHECKING:
    from jarpack.context import BuildContext
    from jarpack.descriptor import ApplicationDescriptor

SUPPORTED_FORMATS = frozenset(
    {
        "png",
        "jpg",
        "jpeg",
        "gif",
        "bmp",
        "tiff",
        "tif",
        "svg",
        "pdf",
        "ico",
        "icns",
        "webp",
        "avif",
        "heic",
        "heif",
    }
)

VECTOR_FORMATS = frozenset({"svg", "pdf"})

_OUTPUT_NAME = "standard.png"


def icon_format(path: Path) -> str:
    """Lower-cased extension without the dot."""
    return path.suffix.lower().lstrip(".")


def is_supported_icon(path: Path) -> bool:
    return icon_format(path) in SUPPORTED_FORMATS


def standard_icon_name(app_name: str, slot: str) -> str:
    """File name of a standardized icon, e.g. 'my_app_app_icon.png'."""
    base = re.sub(r"[^a-z0-9]", "_", app_name.lower())
    return f"{base}_{slot}_icon.png"


def _fit_to_canvas(
    source: str, output: str, size: int, read_options: str = ""
) -> str:
    return (
        f"convert {read_options}-background none {source} -resize '{size}x{size}>' "
        f"-gravity center -extent {size}x{size} {output}"
    )


def conversion_command(input_name: str, output_name: str, size: int = 512) -> str:
    """Shell command converting 'input_name' to a standardized PNG.

    Args:
        input_name: Input file name inside the container working dir.
        output_name: Output file name inside the container working dir.
        size: Canvas edge length in pixels.

    Returns:
        A command for `sh -c`.

    Raises:
        ValueError: If the input format is not supported.
    """
    fmt = icon_format(Path(input_name))
    if fmt not in SUPPORTED_FORMATS:
        raise ValueError(f"Unsupported icon format: {input_name}")
    src = shlex.quote(input_name)
    out = shlex.quote(output_name)
    if fmt == "svg":
        raster = "rasterized.png"
        return (
            f"rsvg-convert -w {size * 2} -h {size * 2} --keep-aspect-ratio "
            f"--format png --output {raster} {src} && "
            + _fit_to_canvas(raster, out, size)
        )
    if fmt == "pdf":
        return _fit_to_canvas(
            shlex.quote(input_name + "[0]"), out, size, read_options="-density 300 "
        )
    return _fit_to_canvas(src, out, size)


class IconStandardizer:
    """Produces standardized PNG icons for one application.

    Args:
        context: Build context providing registry, runner and downloads.
        app_name: Application name used for output file names.
    """

    def __init__(self, context: BuildContext, app_name: str) -> None:
        self._context = context
        self._app_name = app_name

    def standardize(self, source: Path | None, slot: str = "app") -> Path | None:
        """Return a standardized PNG for 'source'.

        Args:
            source: User-supplied icon, or None.
            slot: Icon role ("app", "installer", "document"), used in the
                output file name.

        Returns:
            The standardized PNG, the original file if conversion failed,
            the cached default icon when there is no usable input, or None
            when even the default icon is unavailable.

        Raises:
            NoToolchainAvailableError: If no container engine is installed.
        """
        from jarpack.logging import get_global_logger

        logger = get_global_logger()
        if source is None:
            return self.default_icon()
        if not source.is_file() or not is_supported_icon(source):
            logger.warning(
                "ICON", f"Icon not found or unsupported, using default: {source}"
            )
            return self.default_icon()

        out_dir = self._context.registry.create("icon-", "-convert")
        target = out_dir / standard_icon_name(self._app_name, slot)
        try:
            converted = self._convert(source, target)
        except NoToolchainAvailableError:
            self._context.registry.release(out_dir)
            raise
        except (PackagingError, OSError) as err:
            logger.debug("ICON", f"Conversion error: {err}")
            converted = False

        if not converted:
            self._context.registry.release(out_dir)
            logger.warning(
                "ICON", f"Conversion of {source.name} failed, using original file"
            )
            return source
        logger.verbose("ICON", f"Standardized {source.name} -> {target.name}")
        return target

    def default_icon(self) -> Path | None:
        """The cached default icon, or None if it cannot be downloaded."""
        from jarpack.logging import get_global_logger

        settings = self._context.settings
        try:
            return self._context.fetch(
                settings.default_icon_url, settings.icon_cache_path()
            )
        except NetworkError as err:
            get_global_logger().warning(
                "ICON", f"Default icon unavailable, packaging without icon: {err}"
            )
            return None

    def _convert(self, source: Path, target: Path) -> bool:
        input_name = f"source.{icon_format(source)}"
        with self._context.new_runner() as runner:
            shutil.copy2(source, runner.working_dir / input_name)
            command = conversion_command(
                input_name, _OUTPUT_NAME, self._context.settings.icon_size
            )
            result = self._context.execute(runner.invoke(command))
            produced = runner.working_dir / _OUTPUT_NAME
            if not result.ok or not produced.is_file():
                return False
            shutil.copy2(produced, target)
        return True


class IconSet:
    """Memoized icon slots for one target build.

    Slots without a distinct input reuse the application icon.

    Args:
        standardizer: Converter used for each distinct input.
        descriptor: Application whose icon inputs are read.
    """

    def __init__(
        self, standardizer: IconStandardizer, descriptor: ApplicationDescriptor
    ) -> None:
        self._standardizer = standardizer
        self._descriptor = descriptor
        self._lock = threading.Lock()
        self._cache: dict[str, Path | None] = {}

    def _slot(self, slot: str, source: Path | None) -> Path | None:
        with self._lock:
            if slot not in self._cache:
                self._cache[slot] = self._standardizer.standardize(source, slot)
            return self._cache[slot]

    def app(self) -> Path | None:
        return self._slot("app", self._descriptor.icon)

    def installer(self) -> Path | None:
        if self._descriptor.install_icon is None:
            return self.app()
        return self._slot("installer", self._descriptor.install_icon)

    def document(self) -> Path | None:
        if self._descriptor.document_icon is None:
            return self.app()
        return self._slot("document", self._descriptor.document_icon)
