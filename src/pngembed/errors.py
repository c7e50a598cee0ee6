"""Exception hierarchy shared by the decoder, the splitter and the task runner."""

from __future__ import annotations


class PNGEmbedError(Exception):
    """Base class for every error raised by pngembed."""


class MalformedImageError(PNGEmbedError, ValueError):
    """Raised when the PNG byte stream is truncated or structurally broken."""


class UnsupportedFormatError(PNGEmbedError, ValueError):
    """Raised for valid PNG features that cannot be embedded in a PDF."""


class ExternalTaskError(PNGEmbedError, RuntimeError):
    """A worker process failed or produced output that could not be decoded."""

    def __init__(
        self,
        task_name: str,
        message: str,
        *,
        returncode: int | None = None,
        stderr: str = "",
    ) -> None:
        super().__init__(f"{task_name} failed: {message}")
        self.task_name = task_name
        self.returncode = returncode
        self.stderr = stderr


class SplitPreconditionError(PNGEmbedError, RuntimeError):
    """Channel splitting was requested on image data that is not in memory."""


__all__ = [
    "ExternalTaskError",
    "MalformedImageError",
    "PNGEmbedError",
    "SplitPreconditionError",
    "UnsupportedFormatError",
]
