"""PNG images prepared for embedding in a PDF document."""

from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import TYPE_CHECKING, Any, Dict

from .config import DecoderConfig
from .errors import ExternalTaskError, MalformedImageError, SplitPreconditionError, UnsupportedFormatError
from .png import ColorType, GrayscaleKey, PaletteAlpha, PNGData, RGBKey, load_png_data
from .primitives import PDFName, PDFReference, PDFStream
from .splitter import colors_for, generate_palette_alpha, split_interleaved_alpha
from .streams import FileBackedStream, InMemoryStream, StreamHandle
from .tasks import run_task

if TYPE_CHECKING:
    from .pdf_writer import ObjectStore

logger = logging.getLogger(__name__)

_COLOR_SPACES = {1: PDFName("DeviceGray"), 3: PDFName("DeviceRGB")}


def _decode_in_worker(path: Path, config: DecoderConfig) -> tuple[PNGData, FileBackedStream]:
    result = FileBackedStream.create_temp(config.runner)
    ok = False
    try:
        metadata = run_task(
            "decode_png",
            config=config.runner,
            path=path.resolve(),
            result_path=result.path,
            strict_crc=config.strict_crc,
        )
        try:
            parsed = PNGData.from_dict(metadata)
        except (KeyError, TypeError, ValueError) as exc:
            raise ExternalTaskError("decode_png", f"invalid metadata returned: {exc}") from exc
        ok = True
    finally:
        if not ok:
            result.close()
    return parsed, result


class PNGImage:
    """Decoded PNG data plus the logic to turn it into a PDF image object.

    *data* is either the PNG file content or a path. Paths are decoded by
    a worker process and the inflated scanlines stay in a temporary file;
    call :meth:`materialize` before anything that needs them in memory.
    """

    def __init__(self, data: bytes | str | os.PathLike, config: DecoderConfig | None = None) -> None:
        self.config = config or DecoderConfig()
        self.config.validate()

        self.img_data: StreamHandle
        if isinstance(data, (bytes, bytearray, memoryview)):
            parsed = load_png_data(bytes(data), strict_crc=self.config.strict_crc)
            self.img_data = InMemoryStream(parsed.image_data or b"")
        else:
            path = Path(data)
            if not path.is_file():
                raise FileNotFoundError(f"PNG file not found: {path}")
            parsed, self.img_data = _decode_in_worker(path, self.config)

        self.width = parsed.width
        self.height = parsed.height
        self.bits = parsed.bit_depth
        self.color_type = parsed.color_type
        self.compression_method = parsed.compression_method
        self.filter_method = parsed.filter_method
        self.interlace_method = parsed.interlace_method
        self.palette = parsed.palette
        self.transparency = parsed.transparency

        self._alpha_channel: bytes | None = None
        self._alpha_split_done = False

    def __repr__(self) -> str:  # pragma: no cover - debugging helper
        return f"PNGImage({self.width}x{self.height}, bits={self.bits}, color_type={self.color_type})"

    @property
    def colors(self) -> int:
        return colors_for(self.color_type)

    def has_alpha_channel(self) -> bool:
        if self.color_type in (ColorType.GRAYSCALE_ALPHA, ColorType.RGB_ALPHA):
            return True
        if self.color_type == ColorType.PALETTE:
            return isinstance(self.transparency, PaletteAlpha) and bool(self.transparency.values)
        return False

    @property
    def alpha_bits(self) -> int:
        # Palette alpha is generated as one byte per pixel whatever the index depth.
        return 8 if self.color_type == ColorType.PALETTE else self.bits

    def materialize(self) -> "PNGImage":
        """Load file-backed image data into memory, releasing the file."""

        if not self.img_data.is_materialized:
            backing = self.img_data
            self.img_data = backing.materialize()
            backing.close()
        return self

    def split_alpha_channel(self) -> None:
        """Separate the alpha plane from the colour data, at most once."""

        if self._alpha_split_done:
            return
        if self.has_alpha_channel():
            if not self.img_data.is_materialized:
                raise SplitPreconditionError(
                    "Image data is file-backed; call materialize() before splitting the alpha channel"
                )
            data = self.img_data.read_bytes()
            if self.color_type == ColorType.PALETTE:
                self._alpha_channel = generate_palette_alpha(data, self.width, self.bits, self.transparency)
            else:
                color, self._alpha_channel = split_interleaved_alpha(data, self.width, self.bits, self.colors)
                self.img_data = InMemoryStream(color)
        self._alpha_split_done = True

    @property
    def alpha_channel(self) -> bytes | None:
        self.split_alpha_channel()
        return self._alpha_channel

    @property
    def min_pdf_version(self) -> float:
        """Minimum PDF version able to display this image."""

        if self.bits > 8:
            # 16 bits per component needs PDF 1.5
            return 1.5
        if self.has_alpha_channel():
            # soft masks need PDF 1.4
            return 1.4
        return 1.0

    def _decode_parms(self, colors: int, bits: int) -> Dict[str, Any]:
        return {
            "Predictor": 15,
            "Colors": colors,
            "BitsPerComponent": bits,
            "Columns": self.width,
        }

    def build_pdf_object(self, store: "ObjectStore") -> PDFReference:
        """Add this image (and its palette and soft mask) to *store*."""

        if self.compression_method != 0:
            raise UnsupportedFormatError("PNG uses an unsupported compression method")
        if self.filter_method != 0:
            raise UnsupportedFormatError("PNG uses an unsupported filter method")
        if self.interlace_method != 0:
            raise UnsupportedFormatError("PNG uses an unsupported interlace method")

        # PDF cannot interleave colour and alpha samples.
        self.split_alpha_channel()

        colors = self.colors
        if colors not in _COLOR_SPACES:
            raise UnsupportedFormatError(f"PNG uses an unsupported number of colors ({colors})")

        stream = PDFStream(self.img_data)
        stream.add_flate(self._decode_parms(colors, self.bits))
        image = store.add(
            {
                "Type": PDFName("XObject"),
                "Subtype": PDFName("Image"),
                "Height": self.height,
                "Width": self.width,
                "BitsPerComponent": self.bits,
            },
            stream=stream,
        )

        if self.color_type == ColorType.PALETTE:
            if not self.palette:
                raise MalformedImageError("Palette image has no PLTE chunk")
            palette_obj = store.add({}, stream=PDFStream(InMemoryStream(self.palette)))
            image.value["ColorSpace"] = [
                PDFName("Indexed"),
                PDFName("DeviceRGB"),
                len(self.palette) // 3 - 1,
                palette_obj.reference,
            ]
        else:
            image.value["ColorSpace"] = _COLOR_SPACES[colors]

        # Colour key masking: two entries (min, max) per colour component.
        if isinstance(self.transparency, GrayscaleKey):
            image.value["Mask"] = [self.transparency.sample, self.transparency.sample]
        elif isinstance(self.transparency, RGBKey):
            rgb = (self.transparency.red, self.transparency.green, self.transparency.blue)
            image.value["Mask"] = [value for value in rgb for _ in range(2)]

        if self._alpha_channel is not None:
            smask_stream = PDFStream(InMemoryStream(self._alpha_channel))
            smask_stream.add_flate(self._decode_parms(1, self.alpha_bits))
            smask = store.add(
                {
                    "Type": PDFName("XObject"),
                    "Subtype": PDFName("Image"),
                    "Height": self.height,
                    "Width": self.width,
                    "BitsPerComponent": self.alpha_bits,
                    "ColorSpace": PDFName("DeviceGray"),
                    "Decode": [0, 1],
                },
                stream=smask_stream,
            )
            image.value["SMask"] = smask.reference

        logger.debug("Built image object %d for %r", image.obj_id, self)
        return image.reference


__all__ = ["PNGImage"]
