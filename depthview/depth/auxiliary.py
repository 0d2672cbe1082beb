"""
Auxiliary depth image extraction.

Dual-camera photos store the disparity map next to the primary image:
- JPEG: as a secondary Multi-Picture Format (MPO) frame, whose XMP
  packet describes how its 8-bit samples map back to float disparity
  or depth
- HEIC: as a depth auxiliary image, described by the depth
  representation info of the container
"""

from __future__ import annotations

import io
import re
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, List, Optional, Set, Tuple
import numpy as np
from numpy.typing import NDArray
from PIL import Image
from defusedxml import ElementTree
import pillow_heif
from loguru import logger

from depthview.core.contracts import AuxiliaryPixelFormat


APPLE_DEPTH_NAMESPACE = "http://ns.apple.com/depthData/1.0/"

HEIF_EXTENSIONS = (".heic", ".heif")

# MP Entry tag in the MPF index IFD
_MP_ENTRY_TAG = 0xB002

# libheif depth representation types
_HEIF_UNIFORM_Z = 2

_XMP_PACKET = re.compile(rb"<x:xmpmeta.*?</x:xmpmeta>", re.DOTALL)


class UnknownPixelFormatError(ValueError):
    """Auxiliary data declares a pixel format we cannot convert."""


@dataclass
class AuxiliaryMetadata:
    """Decoded description of an auxiliary depth frame."""
    pixel_format: AuxiliaryPixelFormat = AuxiliaryPixelFormat.DISPARITY_FLOAT32
    float_min: float = 0.0
    float_max: float = 1.0
    is_depth_data: bool = False


@dataclass
class AuxiliaryFrame:
    """A secondary frame and its metadata."""
    index: int
    samples: NDArray[np.float32]  # H x W, raw stored samples in [0, 1]
    metadata: AuxiliaryMetadata


# ============================================================
# XMP METADATA
# ============================================================

def _split_name(qualified: str) -> Tuple[str, str]:
    """'{namespace}local' -> (namespace, local)."""
    if qualified.startswith("{"):
        namespace, _, local = qualified[1:].partition("}")
        return namespace, local
    return "", qualified


def _xmp_fields(xmp: bytes | str) -> Tuple[Dict[str, str], Set[str]]:
    """
    Collect XMP properties by local name, in attribute or element form.

    Returns:
        (local name -> value, namespaces in use)
    """
    root = ElementTree.fromstring(xmp)

    values: Dict[str, str] = {}
    namespaces: Set[str] = set()
    for element in root.iter():
        namespace, name = _split_name(element.tag)
        namespaces.add(namespace)
        if len(element) == 0 and element.text and element.text.strip():
            values.setdefault(name, element.text.strip())

        for key, value in element.attrib.items():
            namespace, name = _split_name(key)
            namespaces.add(namespace)
            values.setdefault(name, value.strip())

    return values, namespaces


def parse_pixel_format(value: str) -> AuxiliaryPixelFormat:
    """
    Parse a CoreVideo pixel format given as a four-char code or its integer.

    Raises:
        UnknownPixelFormatError: if the value names no known format
    """
    text = value.strip()
    if text.isdigit():
        try:
            text = int(text).to_bytes(4, "big").decode("ascii")
        except (OverflowError, UnicodeDecodeError):
            raise UnknownPixelFormatError(f"Unknown pixel format {value!r}") from None
    for pixel_format in AuxiliaryPixelFormat:
        if pixel_format.value == text:
            return pixel_format
    raise UnknownPixelFormatError(f"Unknown pixel format {value!r}")


def parse_xmp_metadata(xmp: bytes | str) -> AuxiliaryMetadata:
    """
    Parse the XMP packet of an auxiliary frame.

    Missing fields, or a packet that is not well-formed XML, fall back
    to float disparity over [0, 1].

    Raises:
        UnknownPixelFormatError: if PixelFormat is present but unrecognized
    """
    try:
        values, namespaces = _xmp_fields(xmp)
    except (ElementTree.ParseError, ValueError) as e:
        logger.warning(f"Ignoring unreadable auxiliary XMP: {e}")
        return AuxiliaryMetadata()

    metadata = AuxiliaryMetadata(is_depth_data=APPLE_DEPTH_NAMESPACE in namespaces)

    pixel_format = values.get("PixelFormat")
    if pixel_format:
        metadata.pixel_format = parse_pixel_format(pixel_format)

    for name, attr in (("FloatMinValue", "float_min"), ("FloatMaxValue", "float_max")):
        raw = values.get(name)
        if raw is None:
            continue
        try:
            setattr(metadata, attr, float(raw))
        except ValueError:
            logger.warning(f"Ignoring malformed {name} in auxiliary XMP: {raw!r}")

    return metadata


def find_xmp_packet(data: bytes) -> Optional[bytes]:
    """Return the first XMP packet in a JPEG byte stream, if any."""
    match = _XMP_PACKET.search(data)
    return match.group(0) if match else None


# ============================================================
# FRAME DECODING
# ============================================================

def _image_samples(image: Image.Image) -> NDArray[np.float32]:
    """Stored samples of a single-channel image, scaled to [0, 1]."""
    if image.mode in ("I;16", "I;16B", "I;16L", "I"):
        return np.asarray(image, dtype=np.float32) / 65535.0
    return np.asarray(image.convert("L"), dtype=np.float32) / 255.0


def _mpo_frame_ranges(image: Image.Image) -> List[Tuple[int, int, int, str]]:
    """(index, absolute offset, size, mp_type) of each secondary MPO frame."""
    mpinfo = getattr(image, "mpinfo", None)
    n_frames = getattr(image, "n_frames", 1)
    if not mpinfo or _MP_ENTRY_TAG not in mpinfo or n_frames < 2:
        return []

    entries = mpinfo[_MP_ENTRY_TAG]
    ranges = []
    for i in range(1, n_frames):
        # seek() resolves the entry's DataOffset against the MPF header
        try:
            image.seek(i)
        except (EOFError, ValueError, SyntaxError) as e:
            # Pillow reports malformed frame headers as SyntaxError
            logger.warning(f"Skipping unreadable MPO frame {i}: {e}")
            continue
        entry = entries[i]
        mp_type = entry.get("Attribute", {}).get("MPType", "Undefined")
        ranges.append((i, image.offset, entry["Size"], str(mp_type)))
    return ranges


def _read_mpo_frames(path: Path) -> List[AuxiliaryFrame]:
    try:
        with Image.open(path) as image:
            ranges = _mpo_frame_ranges(image)
    except (OSError, EOFError, ValueError) as e:
        logger.warning(f"Cannot open {path.name} for auxiliary data: {e}")
        return []

    if not ranges:
        return []

    data = path.read_bytes()
    frames = []
    for index, offset, size, mp_type in ranges:
        if mp_type.startswith("Large Thumbnail"):
            continue

        frame_bytes = data[offset:offset + size]
        xmp = find_xmp_packet(frame_bytes)
        metadata = parse_xmp_metadata(xmp) if xmp else AuxiliaryMetadata()

        try:
            with Image.open(io.BytesIO(frame_bytes)) as frame:
                samples = _image_samples(frame)
        except OSError as e:
            logger.warning(f"Skipping undecodable auxiliary frame {index} in {path.name}: {e}")
            continue

        frames.append(AuxiliaryFrame(index=index, samples=samples, metadata=metadata))

    return frames


def _heif_metadata(info: Dict) -> AuxiliaryMetadata:
    """Map a HEIF depth representation info to auxiliary metadata."""
    metadata = AuxiliaryMetadata(is_depth_data=True)

    if info.get("representation_type") == _HEIF_UNIFORM_Z:
        metadata.pixel_format = AuxiliaryPixelFormat.DEPTH_FLOAT32
        low, high = info.get("z_near"), info.get("z_far")
    else:
        low, high = info.get("d_min"), info.get("d_max")

    if low is not None and high is not None:
        metadata.float_min = float(low)
        metadata.float_max = float(high)
    return metadata


def _read_heif_frames(path: Path) -> List[AuxiliaryFrame]:
    if not pillow_heif.is_supported(str(path)):
        logger.warning(f"Cannot open {path.name} for auxiliary data: not a HEIF file")
        return []

    try:
        heif_file = pillow_heif.open_heif(str(path), convert_hdr_to_8bit=False)
        depth_images = heif_file.info.get("depth_images") or []
        frames = []
        for index, depth_image in enumerate(depth_images, start=1):
            samples = _image_samples(depth_image.to_pillow())
            metadata = _heif_metadata(depth_image.info.get("metadata") or {})
            frames.append(AuxiliaryFrame(index=index, samples=samples, metadata=metadata))
    except (ValueError, RuntimeError, OSError) as e:
        logger.warning(f"Cannot read depth images of {path.name}: {e}")
        return []

    return frames


def read_auxiliary_frames(path: Path) -> List[AuxiliaryFrame]:
    """
    Extract the auxiliary depth frames of an image file.

    MPO files yield every non-thumbnail secondary frame, HEIC files
    their depth images. Returns an empty list for plain images and
    files that cannot be opened.

    Raises:
        UnknownPixelFormatError: if a frame declares an unknown pixel format
    """
    if path.suffix.lower() in HEIF_EXTENSIONS:
        return _read_heif_frames(path)
    return _read_mpo_frames(path)


def select_depth_frame(frames: List[AuxiliaryFrame]) -> Optional[AuxiliaryFrame]:
    """Prefer a frame tagged with the depth namespace, else the first one."""
    for frame in frames:
        if frame.metadata.is_depth_data:
            return frame
    return frames[0] if frames else None
