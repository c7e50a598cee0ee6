"""Decode PNG images into the pieces a PDF image object is built from."""

import logging

from .config import DecoderConfig, TaskRunnerConfig
from .errors import (
    ExternalTaskError,
    MalformedImageError,
    PNGEmbedError,
    SplitPreconditionError,
    UnsupportedFormatError,
)
from .image import PNGImage
from .pdf_writer import ObjectStore, build_pdf, write_pdf_to_file
from .png import ColorType, PNGData, can_render, load_png_data
from .streams import FileBackedStream, InMemoryStream

logging.getLogger(__name__).addHandler(logging.NullHandler())

__all__ = [
    "ColorType",
    "DecoderConfig",
    "ExternalTaskError",
    "FileBackedStream",
    "InMemoryStream",
    "MalformedImageError",
    "ObjectStore",
    "PNGData",
    "PNGEmbedError",
    "PNGImage",
    "SplitPreconditionError",
    "TaskRunnerConfig",
    "UnsupportedFormatError",
    "build_pdf",
    "can_render",
    "load_png_data",
    "write_pdf_to_file",
]
