"""PNG scanline reconstruction (undoing the per-row filter)."""

from __future__ import annotations

from typing import Iterator

FILTER_NONE = 0
FILTER_SUB = 1
FILTER_UP = 2
FILTER_AVERAGE = 3
FILTER_PAETH = 4


def _paeth(a: int, b: int, c: int) -> int:
    p = a + b - c
    pa = abs(p - a)
    pb = abs(p - b)
    pc = abs(p - c)
    if pa <= pb and pa <= pc:
        return a
    if pb <= pc:
        return b
    return c


def unfilter_scanline(filter_type: int, line: bytes, prev: bytes | None, bpp: int) -> bytearray:
    """Reconstruct one scanline (without its filter byte).

    *bpp* is the distance in bytes to the corresponding byte of the
    previous pixel, at least 1.
    """

    out = bytearray(line)
    if filter_type == FILTER_NONE:
        return out
    if prev is None:
        prev = bytes(len(line))

    if filter_type == FILTER_SUB:
        for i in range(bpp, len(out)):
            out[i] = (out[i] + out[i - bpp]) & 0xFF
    elif filter_type == FILTER_UP:
        for i in range(len(out)):
            out[i] = (out[i] + prev[i]) & 0xFF
    elif filter_type == FILTER_AVERAGE:
        for i in range(len(out)):
            left = out[i - bpp] if i >= bpp else 0
            out[i] = (out[i] + ((left + prev[i]) >> 1)) & 0xFF
    elif filter_type == FILTER_PAETH:
        for i in range(len(out)):
            if i >= bpp:
                left, upper_left = out[i - bpp], prev[i - bpp]
            else:
                left = upper_left = 0
            out[i] = (out[i] + _paeth(left, prev[i], upper_left)) & 0xFF
    else:
        raise ValueError(f"Unknown PNG filter type {filter_type}")
    return out


def iter_unfiltered(data: bytes, row_bytes: int, bpp: int) -> Iterator[bytearray]:
    """Yield reconstructed scanlines from filtered image *data*.

    Every scanline in *data* is ``row_bytes + 1`` long; a trailing partial
    scanline is ignored.
    """

    stride = row_bytes + 1
    prev: bytes | None = None
    for start in range(0, len(data) - stride + 1, stride):
        line = unfilter_scanline(data[start], data[start + 1 : start + stride], prev, bpp)
        yield line
        prev = line


def unpack_samples(line: bytes, bit_depth: int, count: int) -> bytes:
    """Expand packed sub-byte samples to one byte each (values unscaled)."""

    if bit_depth == 8:
        return bytes(line[:count])
    per_byte = 8 // bit_depth
    mask = (1 << bit_depth) - 1
    shifts = [8 - bit_depth * (n + 1) for n in range(per_byte)]
    samples = bytearray()
    for byte in line:
        samples.extend((byte >> shift) & mask for shift in shifts)
    return bytes(samples[:count])


__all__ = [
    "FILTER_AVERAGE",
    "FILTER_NONE",
    "FILTER_PAETH",
    "FILTER_SUB",
    "FILTER_UP",
    "iter_unfiltered",
    "unfilter_scanline",
    "unpack_samples",
]
