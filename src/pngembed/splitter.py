"""Separate PNG alpha samples into a plane of their own.

PDF image objects carry colour samples only; transparency lives in a
separate soft-mask image. PNG colour types 4 and 6 interleave alpha with
the colour samples and type 3 keeps it in a palette lookup table, so both
have to be turned into an independent 1-sample-per-pixel plane.
"""

from __future__ import annotations

from .errors import UnsupportedFormatError
from .filters import FILTER_NONE, iter_unfiltered, unpack_samples
from .png import ColorType, PaletteAlpha

_COLORS = {
    ColorType.GRAYSCALE: 1,
    ColorType.RGB: 3,
    ColorType.PALETTE: 1,
    ColorType.GRAYSCALE_ALPHA: 1,
    ColorType.RGB_ALPHA: 3,
}


def colors_for(color_type: int) -> int:
    """Number of colour components per pixel, alpha excluded."""

    try:
        return _COLORS[ColorType(color_type)]
    except ValueError:
        raise UnsupportedFormatError(f"PNG uses an unsupported color type ({color_type})") from None


def split_interleaved_alpha(data: bytes, width: int, bit_depth: int, colors: int) -> tuple[bytes, bytes]:
    """Split colour+alpha scanlines into a colour plane and an alpha plane.

    Filter bytes are copied to both planes unchanged: PNG filters work on
    corresponding bytes of neighbouring pixels, so each plane stays a
    validly filtered image on its own.
    """

    if bit_depth not in (8, 16):
        raise UnsupportedFormatError(f"Invalid bit depth {bit_depth} for an image with alpha")

    alpha_bytes = bit_depth // 8
    color_bytes = colors * alpha_bytes
    pixel_bytes = color_bytes + alpha_bytes
    scanline_length = pixel_bytes * width + 1
    scanlines = len(data) // scanline_length

    color = bytearray()
    alpha = bytearray()
    color_row = bytearray(width * color_bytes)
    alpha_row = bytearray(width * alpha_bytes)

    for line in range(scanlines):
        start = line * scanline_length
        pixels = data[start + 1 : start + scanline_length]

        for k in range(color_bytes):
            color_row[k::color_bytes] = pixels[k::pixel_bytes]
        for k in range(alpha_bytes):
            alpha_row[k::alpha_bytes] = pixels[color_bytes + k :: pixel_bytes]

        color.append(data[start])
        color += color_row
        alpha.append(data[start])
        alpha += alpha_row

    return bytes(color), bytes(alpha)


def generate_palette_alpha(data: bytes, width: int, bit_depth: int, transparency: PaletteAlpha) -> bytes:
    """Build an 8-bit alpha plane for a palette image from its tRNS table.

    The indexed scanlines are reconstructed first because the lookup is
    not linear and cannot be applied to filtered bytes. Every alpha
    scanline is written with filter type 0.
    """

    if bit_depth not in (1, 2, 4, 8):
        raise UnsupportedFormatError(f"Invalid bit depth {bit_depth} for a palette image")

    row_bytes = (width * bit_depth + 7) // 8
    table = transparency.translation_table()

    alpha = bytearray()
    for line in iter_unfiltered(data, row_bytes, bpp=1):
        indices = unpack_samples(line, bit_depth, width)
        alpha.append(FILTER_NONE)
        alpha += indices.translate(table)
    return bytes(alpha)


__all__ = ["colors_for", "generate_palette_alpha", "split_interleaved_alpha"]
