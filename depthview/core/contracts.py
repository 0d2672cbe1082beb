"""
Core data contracts for the Depth Mask Viewer.

All components must adhere to these contracts for:
- Immutable input buffers (depth map, color image)
- Deterministic, side-effect free compositing
- Non-fatal failure reporting
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum, IntEnum
from typing import Optional, Tuple
import numpy as np
from numpy.typing import NDArray


# Mask weights in the color image geometry (H x W, float32, [0, 1]).
# 0 = on the focus plane, 1 = far from it.
Mask = NDArray[np.float32]


# ============================================================
# ENUMERATIONS
# ============================================================

class ImageMode(Enum):
    """Display modes. Any mode can be selected from any other."""
    ORIGINAL = 0
    DEPTH = 1
    MASK = 2
    FILTERED = 3


class FilterType(Enum):
    """Mask-driven effects available in FILTERED mode."""
    SPOTLIGHT = 0
    COLOR = 1
    BLUR = 2

    @classmethod
    def from_name(cls, name: str) -> FilterType:
        try:
            return cls[name.strip().upper()]
        except KeyError:
            available = ", ".join(member.name.lower() for member in cls)
            raise ValueError(f"Unknown filter '{name}'. Available: {available}") from None


class Orientation(IntEnum):
    """EXIF orientation codes (TIFF tag 0x0112)."""
    UP = 1
    UP_MIRRORED = 2
    DOWN = 3
    DOWN_MIRRORED = 4
    LEFT_MIRRORED = 5
    RIGHT = 6
    RIGHT_MIRRORED = 7
    LEFT = 8

    @classmethod
    def from_exif(cls, value: Optional[int]) -> Orientation:
        """Map a raw tag value to an orientation, falling back to UP."""
        try:
            return cls(int(value))
        except (TypeError, ValueError):
            return cls.UP


class AuxiliaryPixelFormat(Enum):
    """CoreVideo pixel formats used for auxiliary depth data."""
    DISPARITY_FLOAT16 = "hdis"
    DISPARITY_FLOAT32 = "fdis"
    DEPTH_FLOAT16 = "hdep"
    DEPTH_FLOAT32 = "fdep"

    @property
    def is_disparity(self) -> bool:
        return self.value.endswith("dis")

    @property
    def code(self) -> int:
        """Four-char code packed as a big-endian 32-bit integer."""
        return int.from_bytes(self.value.encode("ascii"), "big")


class DepthErrorKind(Enum):
    """Why the depth source produced no data."""
    ASSET_NOT_FOUND = "asset_not_found"
    NO_DEPTH_DATA = "no_depth_data"
    FORMAT_CONVERSION_FAILURE = "format_conversion_failure"


# ============================================================
# CORE DATA STRUCTURES
# ============================================================

def _freeze(array: NDArray) -> NDArray:
    array = np.array(array, copy=True, order="C")
    array.flags.writeable = False
    return array


@dataclass
class DepthMap:
    """
    Normalized disparity data for one image.

    values: H x W float32 in [0, 1], 0 = farthest, 1 = nearest.
    Read-only after construction.
    """
    values: NDArray[np.float32]
    source_format: AuxiliaryPixelFormat = AuxiliaryPixelFormat.DISPARITY_FLOAT32

    def __post_init__(self):
        if self.values.ndim != 2:
            raise ValueError(f"Depth map must be 2-D, got shape {self.values.shape}")
        self.values = _freeze(self.values.astype(np.float32, copy=False))

    @property
    def width(self) -> int:
        return int(self.values.shape[1])

    @property
    def height(self) -> int:
        return int(self.values.shape[0])

    @property
    def size(self) -> Tuple[int, int]:
        """(width, height), matching OpenCV's dsize convention."""
        return (self.width, self.height)


@dataclass
class ColorImage:
    """
    Original full-resolution image.

    pixels: H x W x 3 (RGB) or H x W x 4 (RGBA) uint8, stored as decoded,
    without the EXIF orientation applied.
    """
    pixels: NDArray[np.uint8]
    orientation: Orientation = Orientation.UP
    name: str = ""

    def __post_init__(self):
        if self.pixels.ndim != 3 or self.pixels.shape[2] not in (3, 4):
            raise ValueError(f"Color image must be H x W x 3|4, got shape {self.pixels.shape}")
        self.pixels = _freeze(self.pixels.astype(np.uint8, copy=False))

    @property
    def width(self) -> int:
        return int(self.pixels.shape[1])

    @property
    def height(self) -> int:
        return int(self.pixels.shape[0])

    @property
    def size(self) -> Tuple[int, int]:
        return (self.width, self.height)

    @property
    def has_alpha(self) -> bool:
        return self.pixels.shape[2] == 4


@dataclass
class RenderedImage:
    """An output surface: pixels plus the orientation to display them with."""
    pixels: NDArray[np.uint8]
    orientation: Orientation = Orientation.UP

    @property
    def size(self) -> Tuple[int, int]:
        return (int(self.pixels.shape[1]), int(self.pixels.shape[0]))

    def oriented(self) -> NDArray[np.uint8]:
        """Return pixels transposed so the image displays upright."""
        p = self.pixels
        o = self.orientation
        if o == Orientation.UP_MIRRORED:
            return p[:, ::-1]
        if o == Orientation.DOWN:
            return np.rot90(p, 2)
        if o == Orientation.DOWN_MIRRORED:
            return p[::-1]
        if o == Orientation.LEFT_MIRRORED:
            return p.swapaxes(0, 1)
        if o == Orientation.RIGHT:
            return np.rot90(p, -1)
        if o == Orientation.RIGHT_MIRRORED:
            return np.rot90(p, 2).swapaxes(0, 1)
        if o == Orientation.LEFT:
            return np.rot90(p, 1)
        return p


# ============================================================
# RESULT TYPES
# ============================================================

@dataclass
class DepthResult:
    """Result from the depth source."""
    depth_map: Optional[DepthMap] = None
    source_format: Optional[AuxiliaryPixelFormat] = None

    success: bool = True
    error_kind: Optional[DepthErrorKind] = None
    error_message: Optional[str] = None

    @classmethod
    def failure(cls, kind: DepthErrorKind, message: str) -> DepthResult:
        return cls(success=False, error_kind=kind, error_message=message)


@dataclass
class ViewerState:
    """
    Snapshot of the display state machine.

    Controls visibility follows the selected mode:
    - depth slider: MASK and FILTERED
    - filter selector: FILTERED only
    """
    image_mode: ImageMode = ImageMode.ORIGINAL
    filter_type: FilterType = FilterType.SPOTLIGHT
    focus: float = 0.5

    current_index: int = 0
    current_name: Optional[str] = None
    has_depth_data: bool = False

    depth_slider_visible: bool = field(default=False, init=False)
    filter_controls_visible: bool = field(default=False, init=False)

    def __post_init__(self):
        self.depth_slider_visible = self.image_mode in (ImageMode.MASK, ImageMode.FILTERED)
        self.filter_controls_visible = self.image_mode == ImageMode.FILTERED
