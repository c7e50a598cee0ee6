"""Worker: deflate or inflate the file at *path* into *result_path*."""

from __future__ import annotations

import sys
import zlib
from pathlib import Path
from typing import BinaryIO, Iterator

from . import run_worker

BLOCK_SIZE = 64 * 1024
ACTIONS = ("deflate", "inflate")


def _blocks(source: BinaryIO) -> Iterator[bytes]:
    return iter(lambda: source.read(BLOCK_SIZE), b"")


def _deflate(source: BinaryIO, sink: BinaryIO) -> None:
    codec = zlib.compressobj()
    for block in _blocks(source):
        sink.write(codec.compress(block))
    sink.write(codec.flush())


def _inflate(source: BinaryIO, sink: BinaryIO) -> None:
    codec = zlib.decompressobj()
    for block in _blocks(source):
        sink.write(codec.decompress(block))
    sink.write(codec.flush())
    if not codec.eof:
        raise zlib.error("Input ended before the end of the deflate stream")
    if codec.unused_data:
        raise zlib.error(f"{len(codec.unused_data)} bytes of trailing data after the deflate stream")


def main(path: Path, result_path: Path, action: str) -> bool:
    if action not in ACTIONS:
        return False
    transform = _deflate if action == "deflate" else _inflate
    with open(path, "rb") as source, open(result_path, "wb") as sink:
        transform(source, sink)
    return True


if __name__ == "__main__":
    sys.exit(run_worker(main))
