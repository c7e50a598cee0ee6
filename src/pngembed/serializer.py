"""Write PDF objects, image streams and the cross-reference table."""

from __future__ import annotations

from typing import Any, BinaryIO, Iterable, List

from .primitives import PDFName, PDFObject, PDFReference
from .streams import FileBackedStream

# Bytes that may not appear unescaped inside a name token.
_NAME_DELIMITERS = frozenset(b"()<>[]{}/%#")
_STRING_ESCAPES = {ord("\\"): "\\\\", ord("("): "\\(", ord(")"): "\\)", ord("\r"): "\\r", ord("\n"): "\\n"}


def _name_token(name: str) -> bytes:
    raw = name.encode("utf-8")
    escaped = "".join(
        f"#{byte:02X}" if byte in _NAME_DELIMITERS or not 0x21 <= byte <= 0x7E else chr(byte)
        for byte in raw
    )
    return b"/" + escaped.encode("ascii")


def _number_token(value: int | float) -> bytes:
    if isinstance(value, float):
        if value.is_integer():
            return str(int(value)).encode("ascii")
        return f"{value:.6f}".rstrip("0").rstrip(".").encode("ascii")
    return str(value).encode("ascii")


def _serialize_into(parts: List[bytes], value: Any) -> None:
    if isinstance(value, PDFName):
        parts.append(_name_token(value.value))
    elif isinstance(value, PDFReference):
        parts.append(f"{value.obj_id} {value.generation} R".encode("ascii"))
    elif value is None:
        parts.append(b"null")
    elif isinstance(value, bool):
        parts.append(b"true" if value else b"false")
    elif isinstance(value, (int, float)):
        parts.append(_number_token(value))
    elif isinstance(value, str):
        parts.append(b"(" + value.translate(_STRING_ESCAPES).encode("latin-1") + b")")
    elif isinstance(value, bytes):
        parts.append(b"<" + value.hex().encode("ascii") + b">")
    elif isinstance(value, dict):
        parts.append(b"<<")
        for key, item in value.items():
            if isinstance(key, PDFName):
                key = key.value
            if not isinstance(key, str):
                raise TypeError(f"Unsupported key type: {type(key)!r}")
            parts.append(b" " + _name_token(key) + b" ")
            _serialize_into(parts, item)
        parts.append(b" >>")
    elif isinstance(value, (list, tuple)):
        parts.append(b"[")
        for index, item in enumerate(value):
            if index:
                parts.append(b" ")
            _serialize_into(parts, item)
        parts.append(b"]")
    else:
        raise TypeError(f"Unsupported value type: {type(value)!r}")


def serialize(value: Any) -> bytes:
    """Return the PDF syntax for a direct object."""

    parts: List[bytes] = []
    _serialize_into(parts, value)
    return b"".join(parts)


def _write_object(out: BinaryIO, obj: PDFObject) -> None:
    out.write(f"{obj.obj_id} {obj.generation} obj\n".encode("ascii"))
    if obj.stream is None:
        out.write(serialize(obj.value))
        out.write(b"\nendobj\n")
        return

    encoded = obj.stream.encoded()
    try:
        dictionary = dict(obj.value or {})
        dictionary.update(obj.stream.filter_entries())
        dictionary["Length"] = len(encoded)
        out.write(serialize(dictionary))
        out.write(b"\nstream\n")
        encoded.write_to(out)
        out.write(b"\nendstream\nendobj\n")
    finally:
        if isinstance(encoded, FileBackedStream) and encoded is not obj.stream.data:
            encoded.close()


def write_pdf(objects: Iterable[PDFObject], trailer: dict, out: BinaryIO, version: str = "1.4") -> None:
    out.write(f"%PDF-{version}\n%\xE2\xE3\xCF\xD3\n".encode("latin-1"))
    sorted_objects = sorted(objects, key=lambda obj: obj.obj_id)
    offsets = {}
    for obj in sorted_objects:
        offsets[obj.obj_id] = out.tell()
        _write_object(out, obj)

    xref_position = out.tell()
    count = len(sorted_objects) + 1
    out.write(f"xref\n0 {count}\n".encode("ascii"))
    out.write(b"0000000000 65535 f \n")
    for obj in sorted_objects:
        out.write(f"{offsets[obj.obj_id]:010d} 00000 n \n".encode("ascii"))
    trailer_dict = dict(trailer)
    trailer_dict["Size"] = count
    out.write(b"trailer\n")
    out.write(serialize(trailer_dict))
    out.write(b"\nstartxref\n")
    out.write(str(xref_position).encode("ascii") + b"\n%%EOF\n")


__all__ = ["serialize", "write_pdf"]
