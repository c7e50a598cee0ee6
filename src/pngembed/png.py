"""PNG chunk parser extracting the data required for PDF embedding.

The parser walks the chunk stream once and keeps only what a PDF image
object needs: the header fields, the palette, the transparency chunk and
the inflated (still filtered) scanlines. Interlaced images and
non-standard compression or filter methods are rejected as soon as the
header is read.
"""

from __future__ import annotations

import io
import logging
import os
import struct
import zlib
from dataclasses import dataclass, field
from enum import IntEnum
from pathlib import Path
from typing import BinaryIO, Dict, Iterator, Union

from .errors import MalformedImageError, UnsupportedFormatError
from .inflate import Inflater

logger = logging.getLogger(__name__)

PNG_SIGNATURE = b"\x89PNG\r\n\x1a\n"
IHDR_LENGTH = 13


class ColorType(IntEnum):
    GRAYSCALE = 0
    RGB = 2
    PALETTE = 3
    GRAYSCALE_ALPHA = 4
    RGB_ALPHA = 6


# ---------------------------------------------------------------------------
# Transparency (tRNS)
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class NoTransparency:
    def to_dict(self) -> Dict[str, object]:
        return {"kind": "none"}


@dataclass(frozen=True)
class GrayscaleKey:
    """A single gray sample value that is fully transparent."""

    sample: int

    def to_dict(self) -> Dict[str, object]:
        return {"kind": "grayscale", "sample": self.sample}


@dataclass(frozen=True)
class RGBKey:
    """A single RGB sample triple that is fully transparent."""

    red: int
    green: int
    blue: int

    def to_dict(self) -> Dict[str, object]:
        return {"kind": "rgb", "values": [self.red, self.green, self.blue]}


@dataclass(frozen=True)
class PaletteAlpha:
    """Alpha values for the leading palette entries.

    Entries beyond the end of the tRNS table are opaque.
    """

    values: tuple[int, ...] = ()
    default: int = 0xFF

    def alpha_for(self, index: int) -> int:
        if 0 <= index < len(self.values):
            return self.values[index]
        return self.default

    def translation_table(self) -> bytes:
        """256-byte table mapping every possible index byte to its alpha."""

        return bytes(self.alpha_for(index) for index in range(256))

    def to_dict(self) -> Dict[str, object]:
        return {"kind": "palette", "values": list(self.values)}


Transparency = Union[NoTransparency, GrayscaleKey, RGBKey, PaletteAlpha]


def transparency_from_dict(data: Dict[str, object]) -> Transparency:
    kind = data.get("kind", "none")
    if kind == "none":
        return NoTransparency()
    if kind == "grayscale":
        return GrayscaleKey(int(data["sample"]))
    if kind == "rgb":
        red, green, blue = (int(value) for value in data["values"])
        return RGBKey(red, green, blue)
    if kind == "palette":
        return PaletteAlpha(tuple(int(value) for value in data["values"]))
    raise ValueError(f"Unknown transparency kind: {kind!r}")


def _parse_transparency(color_type: int, payload: bytes) -> Transparency | None:
    try:
        if color_type == ColorType.PALETTE:
            return PaletteAlpha(tuple(payload))
        if color_type == ColorType.GRAYSCALE:
            (sample,) = struct.unpack(">H", payload[:2])
            return GrayscaleKey(sample)
        if color_type == ColorType.RGB:
            red, green, blue = struct.unpack(">HHH", payload[:6])
            return RGBKey(red, green, blue)
    except struct.error as exc:
        raise MalformedImageError("Truncated tRNS chunk") from exc
    return None


# ---------------------------------------------------------------------------
# Chunk stream
# ---------------------------------------------------------------------------

@dataclass
class Chunk:
    type: bytes
    data: bytes

    @property
    def length(self) -> int:
        return len(self.data)


def _read_exact(source: BinaryIO, size: int, what: str) -> bytes:
    data = source.read(size)
    if len(data) != size:
        raise MalformedImageError(f"Unexpected end of PNG data while reading {what}")
    return data


def read_signature(source: BinaryIO) -> None:
    if source.read(len(PNG_SIGNATURE)) != PNG_SIGNATURE:
        raise MalformedImageError("File is not a valid PNG image")


def iter_chunks(source: BinaryIO, *, strict_crc: bool = False) -> Iterator[Chunk]:
    """Yield chunks up to and including ``IEND``.

    *source* must be positioned right after the signature.
    """

    while True:
        header = source.read(8)
        if not header:
            raise MalformedImageError("PNG data ended without an IEND chunk")
        if len(header) != 8:
            raise MalformedImageError("Unexpected end of PNG data while reading chunk header")
        length, chunk_type = struct.unpack(">I4s", header)
        data = _read_exact(source, length, f"{chunk_type!r} chunk")
        (crc,) = struct.unpack(">I", _read_exact(source, 4, f"{chunk_type!r} CRC"))

        expected = zlib.crc32(data, zlib.crc32(chunk_type)) & 0xFFFFFFFF
        if crc != expected:
            if strict_crc:
                raise MalformedImageError(f"CRC mismatch in {chunk_type!r} chunk")
            logger.warning("Ignoring CRC mismatch in %r chunk", chunk_type)

        yield Chunk(chunk_type, data)
        if chunk_type == b"IEND":
            return


# ---------------------------------------------------------------------------
# Loader
# ---------------------------------------------------------------------------

@dataclass
class PNGData:
    """Header fields, palette, transparency and inflated scanlines.

    ``image_data`` is ``None`` when the scanlines were written to an
    external sink.
    """

    width: int
    height: int
    bit_depth: int
    color_type: int
    compression_method: int = 0
    filter_method: int = 0
    interlace_method: int = 0
    palette: bytes = b""
    transparency: Transparency = field(default_factory=NoTransparency)
    image_data: bytes | None = None

    def to_dict(self) -> Dict[str, object]:
        return {
            "width": self.width,
            "height": self.height,
            "bit_depth": self.bit_depth,
            "color_type": self.color_type,
            "compression_method": self.compression_method,
            "filter_method": self.filter_method,
            "interlace_method": self.interlace_method,
            "palette": self.palette,
            "transparency": self.transparency.to_dict(),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, object], image_data: bytes | None = None) -> "PNGData":
        return cls(
            width=int(data["width"]),
            height=int(data["height"]),
            bit_depth=int(data["bit_depth"]),
            color_type=int(data["color_type"]),
            compression_method=int(data.get("compression_method", 0)),
            filter_method=int(data.get("filter_method", 0)),
            interlace_method=int(data.get("interlace_method", 0)),
            palette=bytes(data.get("palette", b"")),
            transparency=transparency_from_dict(dict(data.get("transparency", {}))),
            image_data=image_data,
        )


def _parse_header(payload: bytes) -> PNGData:
    if len(payload) != IHDR_LENGTH:
        raise MalformedImageError("Invalid IHDR chunk length")
    width, height, bit_depth, color_type, compression, filter_method, interlace = struct.unpack(
        ">IIBBBBB", payload
    )
    if width == 0 or height == 0:
        raise MalformedImageError("PNG image has zero width or height")
    if compression != 0:
        raise UnsupportedFormatError("PNG uses an unsupported compression method")
    if filter_method != 0:
        raise UnsupportedFormatError("PNG uses an unsupported filter method")
    if interlace != 0:
        raise UnsupportedFormatError("PNG uses an unsupported interlace method")
    return PNGData(
        width=width,
        height=height,
        bit_depth=bit_depth,
        color_type=color_type,
        compression_method=compression,
        filter_method=filter_method,
        interlace_method=interlace,
    )


def load_png_data(
    source: bytes | BinaryIO,
    *,
    sink: BinaryIO | None = None,
    strict_crc: bool = False,
) -> PNGData:
    """Parse a PNG and inflate its image data.

    When *sink* is given the inflated scanlines are written to it and
    ``image_data`` is left as ``None``; otherwise they are returned in
    memory.
    """

    if isinstance(source, (bytes, bytearray, memoryview)):
        source = io.BytesIO(source)

    read_signature(source)

    parsed: PNGData | None = None
    palette = bytearray()
    inflater = Inflater(sink)

    for chunk in iter_chunks(source, strict_crc=strict_crc):
        if parsed is None:
            if chunk.type != b"IHDR":
                raise MalformedImageError("PNG data does not start with an IHDR chunk")
            parsed = _parse_header(chunk.data)
        elif chunk.type == b"IHDR":
            raise MalformedImageError("PNG data contains more than one IHDR chunk")
        elif chunk.type == b"PLTE":
            palette += chunk.data
        elif chunk.type == b"IDAT":
            inflater.feed(chunk.data)
        elif chunk.type == b"tRNS":
            transparency = _parse_transparency(parsed.color_type, chunk.data)
            if transparency is None:
                logger.debug("Ignoring tRNS chunk for color type %d", parsed.color_type)
            else:
                parsed.transparency = transparency
        elif chunk.type == b"IEND":
            break
        else:
            logger.debug("Skipping %r chunk (%d bytes)", chunk.type, chunk.length)

    if parsed is None:
        raise MalformedImageError("PNG data has no IHDR chunk")
    inflater.finish()

    parsed.palette = bytes(palette)
    if sink is None:
        parsed.image_data = inflater.getvalue()
    return parsed


def can_render(blob: bytes | str | os.PathLike) -> bool:
    """Return True when *blob* (bytes or a file path) starts with the PNG signature."""

    if isinstance(blob, (str, os.PathLike)):
        with open(Path(blob), "rb") as handle:
            head = handle.read(len(PNG_SIGNATURE))
    else:
        head = bytes(blob[: len(PNG_SIGNATURE)])
    return head == PNG_SIGNATURE


__all__ = [
    "Chunk",
    "ColorType",
    "GrayscaleKey",
    "NoTransparency",
    "PNGData",
    "PNG_SIGNATURE",
    "PaletteAlpha",
    "RGBKey",
    "Transparency",
    "can_render",
    "iter_chunks",
    "load_png_data",
    "read_signature",
    "transparency_from_dict",
]
