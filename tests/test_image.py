from __future__ import annotations

import os
import struct
from pathlib import Path

import pytest

from pngembed import DecoderConfig, ObjectStore, PNGImage, TaskRunnerConfig
from pngembed.errors import MalformedImageError, SplitPreconditionError, UnsupportedFormatError
from pngembed.png import NoTransparency
from pngembed.primitives import PDFName, PDFReference
from pngembed.streams import FileBackedStream, InMemoryStream


def _config(tmp_path: Path) -> DecoderConfig:
    return DecoderConfig(runner=TaskRunnerConfig(temp_dir=tmp_path))


def _write(tmp_path: Path, name: str, data: bytes) -> Path:
    path = tmp_path / name
    path.write_bytes(data)
    return path


def test_rgb_image_end_to_end(png_factory) -> None:
    image = PNGImage(png_factory(10, 10))
    assert (image.width, image.height, image.bits, image.color_type) == (10, 10, 8, 2)
    assert image.palette == b""
    assert image.transparency == NoTransparency()
    assert image.colors == 3
    assert not image.has_alpha_channel()
    assert image.alpha_channel is None
    assert image.min_pdf_version == 1.0
    assert len(image.img_data) == 10 * (1 + 10 * 3)


def test_decode_from_path_uses_worker(tmp_path: Path, png_factory) -> None:
    data = png_factory(12, 9, color_type=6)
    work = tmp_path / "work"
    work.mkdir()
    image = PNGImage(_write(tmp_path, "rgba.png", data), config=_config(work))

    assert isinstance(image.img_data, FileBackedStream)
    assert (image.width, image.height, image.color_type) == (12, 9, 6)
    backing = image.img_data.path
    assert backing.parent == work

    expected = PNGImage(data).img_data.read_bytes()
    image.materialize()
    assert isinstance(image.img_data, InMemoryStream)
    assert image.img_data.read_bytes() == expected
    assert not backing.exists()


def test_decode_from_path_re_raises_format_errors(tmp_path: Path, png_factory) -> None:
    work = tmp_path / "work"
    work.mkdir()
    path = _write(tmp_path, "interlaced.png", png_factory(4, 4, interlace=1))
    with pytest.raises(UnsupportedFormatError, match="interlace"):
        PNGImage(path, config=_config(work))
    assert os.listdir(work) == []


def test_decode_from_missing_path(tmp_path: Path) -> None:
    with pytest.raises(FileNotFoundError):
        PNGImage(tmp_path / "missing.png")


def test_in_memory_format_errors(png_factory) -> None:
    with pytest.raises(UnsupportedFormatError):
        PNGImage(png_factory(4, 4, interlace=1))
    with pytest.raises(MalformedImageError):
        PNGImage(png_factory(4, 4)[:-12])


def test_alpha_split_is_memoized(png_factory) -> None:
    image = PNGImage(png_factory(5, 3, color_type=6))
    original = image.img_data.read_bytes()
    alpha = image.alpha_channel
    assert alpha is not None
    assert len(alpha) == 3 * (1 + 5)
    color = image.img_data.read_bytes()
    assert len(color) + len(alpha) == len(original) + 3

    assert image.alpha_channel is alpha
    image.split_alpha_channel()
    assert image.img_data.read_bytes() == color


def test_split_requires_materialized_data(tmp_path: Path, png_factory) -> None:
    path = _write(tmp_path, "ga.png", png_factory(3, 3, color_type=4))
    image = PNGImage(path, config=_config(tmp_path))
    with pytest.raises(SplitPreconditionError):
        image.split_alpha_channel()
    assert image.materialize().alpha_channel is not None


def test_palette_image_alpha(png_factory) -> None:
    rows = [bytes([0, 1, 2, 3])]
    palette = bytes(range(12))
    opaque = PNGImage(png_factory(4, 1, color_type=3, rows=rows, palette=palette))
    assert not opaque.has_alpha_channel()
    assert opaque.alpha_channel is None

    image = PNGImage(png_factory(4, 1, color_type=3, rows=rows, palette=palette, trns=b"\x00\x10"))
    assert image.has_alpha_channel()
    assert image.alpha_channel == bytes([0, 0x00, 0x10, 0xFF, 0xFF])
    # indexed data is reused as-is for colour
    assert image.img_data.read_bytes() == bytes([0, 0, 1, 2, 3])
    assert image.min_pdf_version == 1.4


def test_min_pdf_version_tiers(png_factory) -> None:
    assert PNGImage(png_factory(2, 2, color_type=6)).min_pdf_version == 1.4
    assert PNGImage(png_factory(2, 2, color_type=4, bit_depth=16)).min_pdf_version == 1.5
    assert PNGImage(png_factory(2, 2, color_type=0, bit_depth=16)).min_pdf_version == 1.5


def test_unknown_color_type(png_factory) -> None:
    image = PNGImage(png_factory(2, 2, color_type=5, rows=[b"\x00\x00", b"\x00\x00"]))
    with pytest.raises(UnsupportedFormatError):
        image.colors
    with pytest.raises(UnsupportedFormatError):
        image.build_pdf_object(ObjectStore())


def test_build_pdf_object_rgba(png_factory) -> None:
    store = ObjectStore()
    ref = PNGImage(png_factory(6, 2, color_type=6)).build_pdf_object(store)
    image = store.objects[ref.obj_id - 1]

    assert image.value["ColorSpace"] == PDFName("DeviceRGB")
    assert image.value["BitsPerComponent"] == 8
    assert image.stream.filters == [
        (PDFName("FlateDecode"), {"Predictor": 15, "Colors": 3, "BitsPerComponent": 8, "Columns": 6})
    ]
    smask = store.objects[image.value["SMask"].obj_id - 1]
    assert smask.value["ColorSpace"] == PDFName("DeviceGray")
    assert smask.value["Decode"] == [0, 1]
    assert smask.stream.filters[0][1]["Colors"] == 1
    assert "Mask" not in image.value


def test_build_pdf_object_color_key_masks(png_factory) -> None:
    gray = PNGImage(png_factory(2, 2, color_type=0, trns=struct.pack(">H", 7)))
    store = ObjectStore()
    image = store.objects[gray.build_pdf_object(store).obj_id - 1]
    assert image.value["ColorSpace"] == PDFName("DeviceGray")
    assert image.value["Mask"] == [7, 7]

    rgb = PNGImage(png_factory(2, 2, color_type=2, trns=struct.pack(">HHH", 1, 2, 3)))
    store = ObjectStore()
    image = store.objects[rgb.build_pdf_object(store).obj_id - 1]
    assert image.value["Mask"] == [1, 1, 2, 2, 3, 3]
    assert "SMask" not in image.value


def test_build_pdf_object_palette(png_factory) -> None:
    palette = bytes(range(9))
    image = PNGImage(
        png_factory(4, 2, color_type=3, bit_depth=2, rows=[b"\x1b", b"\xe4"], palette=palette, trns=b"\x00")
    )
    store = ObjectStore()
    obj = store.objects[image.build_pdf_object(store).obj_id - 1]

    indexed, base, hival, palette_ref = obj.value["ColorSpace"]
    assert (indexed, base, hival) == (PDFName("Indexed"), PDFName("DeviceRGB"), 2)
    assert isinstance(palette_ref, PDFReference)
    assert store.objects[palette_ref.obj_id - 1].stream.data.read_bytes() == palette
    assert obj.stream.filters[0][1]["BitsPerComponent"] == 2

    smask = store.objects[obj.value["SMask"].obj_id - 1]
    assert smask.value["BitsPerComponent"] == 8


def test_palette_image_without_plte_is_malformed(png_factory) -> None:
    image = PNGImage(png_factory(2, 1, color_type=3, rows=[b"\x00\x00"]))
    with pytest.raises(MalformedImageError, match="PLTE"):
        image.build_pdf_object(ObjectStore())


def test_build_pdf_object_refuses_file_backed_alpha(tmp_path: Path, png_factory) -> None:
    path = _write(tmp_path, "rgba.png", png_factory(3, 3, color_type=6))
    image = PNGImage(path, config=_config(tmp_path))
    with pytest.raises(SplitPreconditionError):
        image.build_pdf_object(ObjectStore())
