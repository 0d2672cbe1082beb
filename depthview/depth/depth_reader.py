"""
Depth data reader for dual-camera photographs.

Reads the auxiliary disparity frame embedded in an image asset and
returns it as a normalized depth map (0.0 = far, 1.0 = near).
"""

from __future__ import annotations

from pathlib import Path
from typing import Optional
import numpy as np
from numpy.typing import NDArray
from loguru import logger

from depthview.core.contracts import (
    AuxiliaryPixelFormat,
    DepthErrorKind,
    DepthMap,
    DepthResult,
)
from depthview.depth.auxiliary import (
    AuxiliaryFrame,
    UnknownPixelFormatError,
    read_auxiliary_frames,
    select_depth_frame,
)


def convert_to_disparity(
    values: NDArray[np.float32],
    pixel_format: AuxiliaryPixelFormat,
) -> NDArray[np.float32]:
    """
    Convert decoded auxiliary values to float32 disparity.

    Depth (meters) becomes 1 / depth. Non-positive or non-finite depth
    has no disparity and maps to 0.
    """
    values = values.astype(np.float32, copy=False)
    if pixel_format.is_disparity:
        return values

    disparity = np.zeros_like(values, dtype=np.float32)
    valid = np.isfinite(values) & (values > 0)
    disparity[valid] = 1.0 / values[valid]
    return disparity


def normalize_depth_map(values: NDArray[np.float32]) -> NDArray[np.float32]:
    """
    Stretch disparity to [0, 1] over its finite range.

    Non-finite samples become 0. A flat map normalizes to all zeros.
    """
    values = values.astype(np.float32, copy=True)
    finite = np.isfinite(values)
    if not np.any(finite):
        return np.zeros_like(values)

    lo = float(values[finite].min())
    hi = float(values[finite].max())
    values[~finite] = lo

    if hi - lo <= 0:
        return np.zeros_like(values)

    normalized = (values - lo) / (hi - lo)
    return np.clip(normalized, 0.0, 1.0).astype(np.float32)


class DepthReader:
    """
    Reads the depth data map of a named image asset.

    Failures are never fatal: `depth_data_map()` returns None and
    `read()` reports the reason in the DepthResult.
    """

    def __init__(
        self,
        name: str,
        ext: str,
        asset_dir: Path | str = ".",
    ):
        """
        Initialize depth reader.

        Args:
            name: Asset base name (e.g. "test00")
            ext: File extension without the dot (e.g. "jpg")
            asset_dir: Directory holding the assets
        """
        self.name = name
        self.ext = ext
        self.asset_dir = Path(asset_dir)

    @property
    def path(self) -> Path:
        return self.asset_dir / f"{self.name}.{self.ext}"

    def read(self) -> DepthResult:
        """
        Extract, convert and normalize the auxiliary disparity data.

        Returns:
            DepthResult with the normalized depth map on success
        """
        path = self.path
        if not path.is_file():
            return DepthResult.failure(
                DepthErrorKind.ASSET_NOT_FOUND,
                f"Asset not found: {path}",
            )

        try:
            frames = read_auxiliary_frames(path)
        except UnknownPixelFormatError as e:
            return DepthResult.failure(DepthErrorKind.FORMAT_CONVERSION_FAILURE, str(e))

        frame = select_depth_frame(frames)
        if frame is None:
            return DepthResult.failure(
                DepthErrorKind.NO_DEPTH_DATA,
                f"No auxiliary disparity data in {path.name}",
            )

        values = self._decode(frame)
        normalized = normalize_depth_map(values)
        pixel_format = frame.metadata.pixel_format

        logger.debug(
            f"Read {pixel_format.value} depth data from {path.name} "
            f"(frame {frame.index}, {normalized.shape[1]}x{normalized.shape[0]})"
        )

        return DepthResult(
            depth_map=DepthMap(values=normalized, source_format=pixel_format),
            source_format=pixel_format,
        )

    def depth_data_map(self) -> Optional[DepthMap]:
        """Return the normalized depth map, or None if there is none."""
        result = self.read()
        if not result.success:
            logger.warning(f"No depth data for {self.name}.{self.ext}: {result.error_message}")
            return None
        return result.depth_map

    def _decode(self, frame: AuxiliaryFrame) -> NDArray[np.float32]:
        """Map stored samples back to float disparity."""
        meta = frame.metadata
        values = meta.float_min + frame.samples * (meta.float_max - meta.float_min)
        return convert_to_disparity(values, meta.pixel_format)
