from __future__ import annotations

import struct
import zlib
from typing import Callable, Iterable, List, Optional

import pytest

PNG_SIGNATURE = b"\x89PNG\r\n\x1a\n"

_SAMPLES_PER_PIXEL = {0: 1, 2: 3, 3: 1, 4: 2, 6: 4}


def png_chunk(tag: bytes, payload: bytes) -> bytes:
    return struct.pack("!I", len(payload)) + tag + payload + struct.pack(
        "!I", zlib.crc32(tag + payload) & 0xFFFFFFFF
    )


def _filter_row(filter_type: int, row: bytes, prev: bytes, bpp: int) -> bytes:
    if filter_type == 0:
        return row
    if filter_type == 1:
        return bytes((row[i] - (row[i - bpp] if i >= bpp else 0)) & 0xFF for i in range(len(row)))
    if filter_type == 2:
        return bytes((row[i] - prev[i]) & 0xFF for i in range(len(row)))
    raise ValueError(f"test helper does not implement filter {filter_type}")


def default_rows(width: int, height: int, color_type: int, bit_depth: int) -> List[bytes]:
    row_bytes = (width * _SAMPLES_PER_PIXEL[color_type] * bit_depth + 7) // 8
    return [bytes((x * 7 + y * 13) & 0xFF for x in range(row_bytes)) for y in range(height)]


def make_png(
    width: int,
    height: int,
    *,
    color_type: int = 2,
    bit_depth: int = 8,
    rows: Optional[Iterable[bytes]] = None,
    palette: Optional[bytes] = None,
    trns: Optional[bytes] = None,
    interlace: int = 0,
    compression: int = 0,
    filter_type: int = 0,
    idat_chunks: int = 1,
    extra_chunks: Iterable[bytes] = (),
    include_iend: bool = True,
) -> bytes:
    """Build a PNG from unfiltered *rows*, applying *filter_type* to each row."""

    rows = list(rows) if rows is not None else default_rows(width, height, color_type, bit_depth)
    bpp = max(1, _SAMPLES_PER_PIXEL.get(color_type, 1) * bit_depth // 8)
    raw = bytearray()
    prev = bytes(len(rows[0])) if rows else b""
    for row in rows:
        raw.append(filter_type)
        raw += _filter_row(filter_type, row, prev, bpp)
        prev = row
    compressed = zlib.compress(bytes(raw))

    header = struct.pack("!IIBBBBB", width, height, bit_depth, color_type, compression, 0, interlace)
    parts = [PNG_SIGNATURE, png_chunk(b"IHDR", header)]
    parts.extend(extra_chunks)
    if palette is not None:
        parts.append(png_chunk(b"PLTE", palette))
    if trns is not None:
        parts.append(png_chunk(b"tRNS", trns))
    step = -(-len(compressed) // idat_chunks)
    for start in range(0, len(compressed), step):
        parts.append(png_chunk(b"IDAT", compressed[start : start + step]))
    if include_iend:
        parts.append(png_chunk(b"IEND", b""))
    return b"".join(parts)


@pytest.fixture
def png_factory() -> Callable[..., bytes]:
    return make_png


@pytest.fixture
def chunk_factory() -> Callable[[bytes, bytes], bytes]:
    return png_chunk
