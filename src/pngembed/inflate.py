"""Incremental inflation of concatenated IDAT payloads.

PNG stores a single zlib stream split across any number of IDAT chunks.
Feeding each payload to one decompressor as it is read yields the same
bytes as inflating the concatenation, without holding the compressed
stream in memory.
"""

from __future__ import annotations

import io
import zlib
from typing import BinaryIO

from .errors import MalformedImageError


class Inflater:
    """Inflate a zlib stream into *sink* one block at a time."""

    def __init__(self, sink: BinaryIO | None = None) -> None:
        self.sink = sink if sink is not None else io.BytesIO()
        self._decompressor = zlib.decompressobj()
        self.compressed_size = 0
        self.inflated_size = 0

    def feed(self, data: bytes) -> None:
        if not data:
            return
        self.compressed_size += len(data)
        try:
            self._write(self._decompressor.decompress(data))
        except zlib.error as exc:
            raise MalformedImageError(f"Corrupt image data stream: {exc}") from exc

    def finish(self) -> None:
        if self.compressed_size == 0:
            raise MalformedImageError("PNG file has no image data")
        try:
            self._write(self._decompressor.flush())
        except zlib.error as exc:
            raise MalformedImageError(f"Corrupt image data stream: {exc}") from exc
        if not self._decompressor.eof:
            raise MalformedImageError("Image data stream ended before the end of the deflate stream")

    def getvalue(self) -> bytes:
        if not isinstance(self.sink, io.BytesIO):
            raise TypeError("getvalue() is only available for in-memory sinks")
        return self.sink.getvalue()

    def _write(self, chunk: bytes) -> None:
        if chunk:
            self.sink.write(chunk)
            self.inflated_size += len(chunk)


def inflate(data: bytes) -> bytes:
    inflater = Inflater()
    inflater.feed(data)
    inflater.finish()
    return inflater.getvalue()


__all__ = ["Inflater", "inflate"]
