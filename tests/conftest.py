"""Shared fixtures: synthetic dual-camera assets written with Pillow."""

from __future__ import annotations

import io
import struct
from pathlib import Path
from typing import List, Optional, Sequence, Tuple
import numpy as np
import pytest
from PIL import Image

from depthview.core.contracts import DepthMap


COLOR_SIZE = (64, 48)      # (width, height)
DEPTH_SIZE = (16, 12)


def make_color(width: int = COLOR_SIZE[0], height: int = COLOR_SIZE[1]) -> np.ndarray:
    """Smooth RGB test pattern."""
    x = np.linspace(0, 255, width, dtype=np.float32)
    y = np.linspace(0, 255, height, dtype=np.float32)
    r = np.tile(x, (height, 1))
    g = np.tile(y[:, None], (1, width))
    b = np.full((height, width), 128, dtype=np.float32)
    return np.dstack([r, g, b]).astype(np.uint8)


def make_disparity(width: int = DEPTH_SIZE[0], height: int = DEPTH_SIZE[1]) -> np.ndarray:
    """Left-to-right disparity ramp (far on the left, near on the right)."""
    ramp = np.linspace(0, 255, width, dtype=np.float32)
    return np.tile(ramp, (height, 1)).astype(np.uint8)


def write_mpo(
    path: Path,
    color: np.ndarray,
    aux: np.ndarray,
    orientation: Optional[int] = None,
) -> Path:
    """Write a two-frame MPO: color primary plus grayscale auxiliary."""
    primary = Image.fromarray(color, "RGB")
    kwargs = {"quality": 95}
    if orientation is not None:
        exif = Image.Exif()
        exif[0x0112] = orientation
        kwargs["exif"] = exif
    primary.save(
        path,
        format="MPO",
        save_all=True,
        append_images=[Image.fromarray(aux, "L")],
        **kwargs,
    )
    return path


XMP_HEADER = b"http://ns.adobe.com/xap/1.0/\x00"

# MP Entry attributes: representative baseline primary, undefined secondary
MP_PRIMARY = 0x20030000
MP_UNDEFINED = 0x000000


def apple_depth_xmp(pixel_format: str = "fdis", float_min: float = 0.0, float_max: float = 1.0) -> bytes:
    """Single-quoted Apple depth XMP packet, as some writers emit it."""
    return (
        "<x:xmpmeta xmlns:x='adobe:ns:meta/'>"
        "<rdf:RDF xmlns:rdf='http://www.w3.org/1999/02/22-rdf-syntax-ns#'>"
        "<rdf:Description rdf:about=''"
        " xmlns:depthData='http://ns.apple.com/depthData/1.0/'"
        f" depthData:PixelFormat='{pixel_format}'"
        f" depthData:FloatMinValue='{float_min}'"
        f" depthData:FloatMaxValue='{float_max}'/>"
        "</rdf:RDF></x:xmpmeta>"
    ).encode()


def _jpeg_bytes(array: np.ndarray, mode: str) -> bytes:
    buffer = io.BytesIO()
    Image.fromarray(array, mode).save(buffer, format="JPEG", quality=100)
    return buffer.getvalue()


def _insert_segment(jpeg: bytes, segment: bytes) -> Tuple[bytes, int]:
    """Insert a marker segment after SOI and the JFIF APP0, if present."""
    position = 2
    if jpeg[2:4] == b"\xff\xe0":
        position = 4 + struct.unpack(">H", jpeg[4:6])[0]
    return jpeg[:position] + segment + jpeg[position:], position


def _mpf_segment(entries: Sequence[Tuple[int, int, int]]) -> bytes:
    """APP2 MPF segment with a little-endian MP index IFD."""
    entries_offset = 8 + 2 + 3 * 12 + 4
    tiff = b"II*\x00" + struct.pack("<I", 8)
    tiff += struct.pack("<H", 3)
    tiff += struct.pack("<HHI4s", 0xB000, 7, 4, b"0100")
    tiff += struct.pack("<HHII", 0xB001, 4, 1, len(entries))
    tiff += struct.pack("<HHII", 0xB002, 7, 16 * len(entries), entries_offset)
    tiff += struct.pack("<I", 0)
    for attribute, size, offset in entries:
        tiff += struct.pack("<IIIHH", attribute, size, offset, 0, 0)
    return b"\xff\xe2" + struct.pack(">H", 2 + 4 + len(tiff)) + b"MPF\x00" + tiff


def build_mpo(
    path: Path,
    color: np.ndarray,
    aux_frames: List[Tuple[np.ndarray, Optional[bytes]]],
) -> Path:
    """Write an MPO by hand: color primary plus grayscale frames with optional XMP."""
    secondaries = []
    for samples, xmp in aux_frames:
        frame = _jpeg_bytes(samples, "L")
        if xmp is not None:
            app1 = b"\xff\xe1" + struct.pack(">H", 2 + len(XMP_HEADER) + len(xmp)) + XMP_HEADER + xmp
            frame, _ = _insert_segment(frame, app1)
        secondaries.append(frame)

    primary = _jpeg_bytes(color, "RGB")
    placeholder = _mpf_segment([(0, 0, 0)] * (1 + len(secondaries)))
    _, position = _insert_segment(primary, placeholder)

    # DataOffset is relative to the TIFF header inside the MPF segment
    tiff_position = position + 8
    primary_size = len(primary) + len(placeholder)
    entries = [(MP_PRIMARY, primary_size, 0)]
    offset = primary_size
    for frame in secondaries:
        entries.append((MP_UNDEFINED, len(frame), offset - tiff_position))
        offset += len(frame)

    primary, _ = _insert_segment(primary, _mpf_segment(entries))
    path.write_bytes(primary + b"".join(secondaries))
    return path


def write_jpeg(path: Path, color: np.ndarray, orientation: Optional[int] = None) -> Path:
    """Write a plain JPEG with no auxiliary data."""
    kwargs = {"quality": 95}
    if orientation is not None:
        exif = Image.Exif()
        exif[0x0112] = orientation
        kwargs["exif"] = exif
    Image.fromarray(color, "RGB").save(path, format="JPEG", **kwargs)
    return path


@pytest.fixture
def asset_dir(tmp_path: Path) -> Path:
    """test00 and test01 carry depth data, test02 does not."""
    write_mpo(tmp_path / "test00.jpg", make_color(), make_disparity())
    write_mpo(tmp_path / "test01.jpg", make_color()[:, ::-1].copy(), make_disparity()[:, ::-1].copy())
    write_jpeg(tmp_path / "test02.jpg", make_color())
    return tmp_path


@pytest.fixture
def ramp_depth() -> DepthMap:
    """Normalized horizontal ramp at depth resolution."""
    w, h = DEPTH_SIZE
    return DepthMap(values=np.tile(np.linspace(0, 1, w, dtype=np.float32), (h, 1)))
