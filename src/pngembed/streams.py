"""Byte streams held either in memory or in an owned temporary file.

A :class:`FileBackedStream` created by this module owns its file and
removes it when the stream is closed or garbage collected. Transforms
never modify a stream in place; they return a new one.
"""

from __future__ import annotations

import logging
import os
import shutil
import tempfile
import weakref
import zlib
from pathlib import Path
from typing import BinaryIO, Union

from .config import TaskRunnerConfig
from .errors import MalformedImageError
from .tasks import run_task

logger = logging.getLogger(__name__)

COPY_BUFFER_SIZE = 64 * 1024


def _remove_file(path: Path) -> None:
    try:
        os.unlink(path)
    except FileNotFoundError:
        return
    logger.debug("Removed temporary file %s", path)


class InMemoryStream:
    """Stream data that lives entirely in process memory."""

    is_materialized = True

    def __init__(self, data: bytes = b"") -> None:
        self.data = bytes(data)

    def __len__(self) -> int:
        return len(self.data)

    def __repr__(self) -> str:  # pragma: no cover - debugging helper
        return f"InMemoryStream({len(self.data)} bytes)"

    def read_bytes(self) -> bytes:
        return self.data

    def write_to(self, out: BinaryIO) -> None:
        out.write(self.data)

    def materialize(self) -> "InMemoryStream":
        return self

    def deflate_encode(self) -> "InMemoryStream":
        return InMemoryStream(zlib.compress(self.data))

    def inflate_decode(self) -> "InMemoryStream":
        codec = zlib.decompressobj()
        try:
            data = codec.decompress(self.data) + codec.flush()
        except zlib.error as exc:
            raise MalformedImageError(f"Corrupt deflate stream: {exc}") from exc
        if not codec.eof:
            raise MalformedImageError("Deflate stream is truncated")
        if codec.unused_data:
            raise MalformedImageError("Trailing data after the deflate stream")
        return InMemoryStream(data)


class FileBackedStream:
    """Stream data stored in a file, transformed by worker processes."""

    is_materialized = False

    def __init__(
        self,
        path: str | os.PathLike,
        *,
        owns_file: bool = True,
        config: TaskRunnerConfig | None = None,
    ) -> None:
        self.path = Path(path)
        self.config = config or TaskRunnerConfig()
        self._finalizer = weakref.finalize(self, _remove_file, self.path) if owns_file else None

    @classmethod
    def create_temp(cls, config: TaskRunnerConfig | None = None) -> "FileBackedStream":
        """Create an empty temporary file owned by the returned stream."""

        config = config or TaskRunnerConfig()
        fd, name = tempfile.mkstemp(prefix="pngembed-", dir=config.temp_dir)
        os.close(fd)
        logger.debug("Created temporary file %s", name)
        return cls(name, config=config)

    def __len__(self) -> int:
        return self.path.stat().st_size

    def __repr__(self) -> str:  # pragma: no cover - debugging helper
        return f"FileBackedStream({str(self.path)!r})"

    def __enter__(self) -> "FileBackedStream":
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()

    @property
    def owns_file(self) -> bool:
        return self._finalizer is not None

    @property
    def closed(self) -> bool:
        return self._finalizer is not None and not self._finalizer.alive

    def close(self) -> None:
        """Remove the backing file now if this stream owns it."""

        if self._finalizer is not None:
            self._finalizer()

    def read_bytes(self) -> bytes:
        return self.path.read_bytes()

    def write_to(self, out: BinaryIO) -> None:
        with open(self.path, "rb") as handle:
            shutil.copyfileobj(handle, out, COPY_BUFFER_SIZE)

    def materialize(self) -> InMemoryStream:
        return InMemoryStream(self.read_bytes())

    def deflate_encode(self) -> "FileBackedStream | None":
        return self._transform("deflate")

    def inflate_decode(self) -> "FileBackedStream | None":
        return self._transform("inflate")

    def _transform(self, action: str) -> "FileBackedStream | None":
        result = FileBackedStream.create_temp(self.config)
        ok = False
        try:
            ok = bool(
                run_task(
                    "transform_stream",
                    config=self.config,
                    path=self.path,
                    result_path=result.path,
                    action=action,
                )
            )
        finally:
            if not ok:
                result.close()
        return result if ok else None


StreamHandle = Union[InMemoryStream, FileBackedStream]


__all__ = ["FileBackedStream", "InMemoryStream", "StreamHandle"]
