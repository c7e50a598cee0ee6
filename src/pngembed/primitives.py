"""PDF object model used to hand decoded PNG data to a document.

Only what an image XObject needs is modelled: names, indirect
references, dictionaries (plain ``dict``) and streams whose body is a
:class:`~pngembed.streams.InMemoryStream` or
:class:`~pngembed.streams.FileBackedStream`.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Tuple

from .errors import ExternalTaskError
from .streams import StreamHandle


@dataclass(frozen=True)
class PDFName:
    """Represents a PDF name object (e.g. ``/Image``).

    The value is stored without the leading slash; ``str(name)``
    reintroduces it when serialising.
    """

    value: str

    def __str__(self) -> str:  # pragma: no cover - trivial
        return f"/{self.value}"


@dataclass(frozen=True)
class PDFReference:
    """Object reference (``12 0 R``)."""

    obj_id: int
    generation: int = 0


FLATE_DECODE = PDFName("FlateDecode")


@dataclass
class PDFStream:
    """Unencoded stream body plus the filters to apply when writing."""

    data: StreamHandle
    filters: List[Tuple[PDFName, Optional[Dict[str, Any]]]] = field(default_factory=list)

    def add_flate(self, decode_parms: Optional[Dict[str, Any]] = None) -> None:
        self.filters.append((FLATE_DECODE, decode_parms))

    def encoded(self) -> StreamHandle:
        """Return the body with every filter applied.

        File-backed bodies are compressed by a worker process.
        """

        data = self.data
        for name, _parms in reversed(self.filters):
            if name != FLATE_DECODE:
                raise ValueError(f"Unsupported stream filter: {name}")
            encoded = data.deflate_encode()
            if encoded is None:
                raise ExternalTaskError("transform_stream", "deflate reported failure")
            data = encoded
        return data

    def filter_entries(self) -> Dict[str, Any]:
        if not self.filters:
            return {}
        names = [name for name, _ in self.filters]
        parms = [parms for _, parms in self.filters]
        if len(names) == 1:
            entries: Dict[str, Any] = {"Filter": names[0]}
            if parms[0]:
                entries["DecodeParms"] = parms[0]
            return entries
        entries = {"Filter": names}
        if any(parms):
            entries["DecodeParms"] = list(parms)
        return entries


@dataclass
class PDFObject:
    """An indirect object: a value and, optionally, a stream."""

    obj_id: int
    value: Any
    stream: PDFStream | None = None
    generation: int = 0

    @property
    def reference(self) -> PDFReference:
        return PDFReference(self.obj_id, self.generation)


__all__ = ["FLATE_DECODE", "PDFName", "PDFObject", "PDFReference", "PDFStream"]
