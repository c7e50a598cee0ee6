"""Write a PNG image into a minimal single-page PDF."""

from __future__ import annotations

from io import BytesIO
from pathlib import Path
from typing import Any, BinaryIO, List

from .image import PNGImage
from .primitives import PDFName, PDFObject, PDFStream
from .serializer import write_pdf
from .streams import InMemoryStream

MIN_HEADER_VERSION = 1.3


class ObjectStore:
    """Allocates object numbers for the indirect objects of one document."""

    def __init__(self) -> None:
        self.objects: List[PDFObject] = []

    def add(self, value: Any, stream: PDFStream | None = None) -> PDFObject:
        obj = PDFObject(obj_id=len(self.objects) + 1, value=value, stream=stream)
        self.objects.append(obj)
        return obj

    def __len__(self) -> int:
        return len(self.objects)


def _image_to_pdf_lines(resource_name: str, width: float, height: float) -> List[bytes]:
    return [
        b"q",
        f"{width:.2f} 0 0 {height:.2f} 0 0 cm".encode("latin-1"),
        f"/{resource_name} Do".encode("latin-1"),
        b"Q",
    ]


def _write_image_document(image: PNGImage, out: BinaryIO, width: float | None, height: float | None) -> None:
    page_width = float(width if width is not None else image.width)
    page_height = float(height if height is not None else image.height)

    store = ObjectStore()
    pages = store.add(None)
    image_ref = image.build_pdf_object(store)

    content = b"\n".join(_image_to_pdf_lines("Im1", page_width, page_height)) + b"\n"
    content_stream = PDFStream(InMemoryStream(content))
    content_stream.add_flate()
    content_obj = store.add({}, stream=content_stream)
    page = store.add(
        {
            "Type": PDFName("Page"),
            "Parent": pages.reference,
            "MediaBox": [0, 0, page_width, page_height],
            "Resources": {"XObject": {"Im1": image_ref}},
            "Contents": content_obj.reference,
        }
    )
    pages.value = {"Type": PDFName("Pages"), "Kids": [page.reference], "Count": 1}
    catalog = store.add({"Type": PDFName("Catalog"), "Pages": pages.reference})

    version = max(MIN_HEADER_VERSION, image.min_pdf_version)
    write_pdf(store.objects, {"Root": catalog.reference}, out, version=f"{version:.1f}")


def build_pdf(image: PNGImage, width: float | None = None, height: float | None = None) -> bytes:
    """Return a PDF with one page showing *image*.

    The page defaults to one point per pixel.
    """

    buffer = BytesIO()
    _write_image_document(image, buffer, width, height)
    return buffer.getvalue()


def write_pdf_to_file(
    image: PNGImage, path: str | Path, width: float | None = None, height: float | None = None
) -> None:
    with open(path, "wb") as handle:
        _write_image_document(image, handle, width, height)


__all__ = ["ObjectStore", "build_pdf", "write_pdf_to_file"]
