"""
Depth-driven image filters.

Operations:
- Focus mask creation
- Spotlight highlight (darken away from the focus plane)
- Color highlight (desaturate away from the focus plane)
- Variable blur (blur radius grows away from the focus plane)

All filters are:
- Pure functions of (image, mask, orientation)
- Mask-weighted (mask 0 leaves a pixel untouched)
- Non-fatal (missing inputs produce no output)
"""

from __future__ import annotations

from typing import Optional, Tuple
import numpy as np
from numpy.typing import NDArray
import cv2
from loguru import logger

from depthview.core.contracts import (
    ColorImage,
    DepthMap,
    FilterType,
    Mask,
    Orientation,
    RenderedImage,
)


ImageInput = ColorImage | NDArray[np.uint8]


def _pixels_of(image: ImageInput) -> NDArray[np.uint8]:
    return image.pixels if isinstance(image, ColorImage) else image


def _split_alpha(
    pixels: NDArray[np.uint8],
) -> Tuple[NDArray[np.float32], Optional[NDArray[np.uint8]]]:
    """Separate RGB (as float32) from an optional alpha channel."""
    if pixels.shape[2] == 4:
        return pixels[:, :, :3].astype(np.float32), pixels[:, :, 3]
    return pixels.astype(np.float32), None


def _merge_alpha(
    rgb: NDArray[np.float32],
    alpha: Optional[NDArray[np.uint8]],
) -> NDArray[np.uint8]:
    out = np.clip(np.rint(rgb), 0, 255).astype(np.uint8)
    if alpha is not None:
        out = np.dstack([out, alpha])
    return out


class DepthImageFilters:
    """
    Mask-based compositing over a color image.

    Mask semantics:
    - 0.0 on the focus plane (pixel kept as is)
    - 1.0 far from the focus plane (full effect)
    """

    def __init__(
        self,
        slope: float = 4.0,
        band_width: float = 0.1,
        min_brightness: float = 0.0,
        max_blur_radius: float = 15.0,
        blur_levels: int = 6,
    ):
        """
        Initialize depth filters.

        Args:
            slope: Steepness of the mask ramp around the focus band
            band_width: Depth range around the focus that stays fully in focus
            min_brightness: Spotlight floor (0 = black, 1 = no darkening)
            max_blur_radius: Blur radius in pixels at mask weight 1
            blur_levels: Number of pre-blurred levels for the variable blur
        """
        if slope <= 0:
            raise ValueError(f"slope must be positive, got {slope}")
        if blur_levels < 2:
            raise ValueError(f"blur_levels must be at least 2, got {blur_levels}")

        self.slope = slope
        self.band_width = max(band_width, 0.0)
        self.min_brightness = float(np.clip(min_brightness, 0.0, 1.0))
        self.max_blur_radius = max(max_blur_radius, 0.0)
        self.blur_levels = blur_levels

    # ------------------------------------------------------------
    # Mask
    # ------------------------------------------------------------

    def create_mask(
        self,
        depth_map: Optional[DepthMap],
        focus: float,
        scale: float,
        target_size: Optional[Tuple[int, int]] = None,
    ) -> Optional[Mask]:
        """
        Create a focus mask from a depth map.

        The depth map is resampled first so the result lives in the
        color image geometry, then each depth is mapped through a
        smoothstep ramp of its distance from the focus plane.

        Args:
            depth_map: Normalized depth map
            focus: Focus depth in [0, 1] (clamped)
            scale: Color-to-depth size ratio
            target_size: Exact (width, height) to resample to; overrides scale

        Returns:
            H x W float32 mask in [0, 1], or None without a depth map
        """
        if depth_map is None:
            return None

        focus = float(np.clip(focus, 0.0, 1.0))
        depth = depth_map.values

        if target_size is None:
            target_size = (
                max(1, int(round(depth_map.width * scale))),
                max(1, int(round(depth_map.height * scale))),
            )

        if target_size != depth_map.size:
            depth = cv2.resize(np.array(depth), target_size, interpolation=cv2.INTER_LINEAR)

        distance = np.abs(np.clip(depth, 0.0, 1.0) - focus)
        ramp = np.clip(self.slope * (distance - self.band_width / 2), 0.0, 1.0)
        mask = ramp * ramp * (3.0 - 2.0 * ramp)

        return mask.astype(np.float32)

    # ------------------------------------------------------------
    # Filters
    # ------------------------------------------------------------

    def spotlight_highlight(
        self,
        image: Optional[ImageInput],
        mask: Optional[Mask],
        orientation: Orientation = Orientation.UP,
    ) -> Optional[RenderedImage]:
        """
        Darken pixels in proportion to their mask weight.

        Args:
            image: Color image (RGB or RGBA)
            mask: Focus mask in the image geometry
            orientation: Orientation to attach to the output

        Returns:
            Spotlit image, or None if an input is missing
        """
        pixels = self._validate(image, mask, "spotlight")
        if pixels is None:
            return None

        rgb, alpha = _split_alpha(pixels)
        factor = 1.0 - mask * (1.0 - self.min_brightness)
        result = rgb * factor[:, :, np.newaxis]

        return RenderedImage(pixels=_merge_alpha(result, alpha), orientation=orientation)

    def color_highlight(
        self,
        image: Optional[ImageInput],
        mask: Optional[Mask],
        orientation: Orientation = Orientation.UP,
    ) -> Optional[RenderedImage]:
        """
        Desaturate pixels in proportion to their mask weight.

        In-focus pixels keep their color, out-of-focus pixels go gray.
        """
        pixels = self._validate(image, mask, "color highlight")
        if pixels is None:
            return None

        rgb, alpha = _split_alpha(pixels)
        gray = cv2.cvtColor(rgb, cv2.COLOR_RGB2GRAY)[:, :, np.newaxis]

        mask_3d = mask[:, :, np.newaxis]
        result = rgb * (1 - mask_3d) + gray * mask_3d

        return RenderedImage(pixels=_merge_alpha(result, alpha), orientation=orientation)

    def blur(
        self,
        image: Optional[ImageInput],
        mask: Optional[Mask],
        orientation: Orientation = Orientation.UP,
    ) -> Optional[RenderedImage]:
        """
        Apply a spatially varying blur.

        The per-pixel radius is mask * max_blur_radius. A fixed stack of
        Gaussian levels is built and each pixel interpolates linearly
        between the two levels bracketing its radius.
        """
        pixels = self._validate(image, mask, "blur")
        if pixels is None:
            return None

        rgb, alpha = _split_alpha(pixels)
        if self.max_blur_radius <= 0:
            return RenderedImage(pixels=_merge_alpha(rgb, alpha), orientation=orientation)

        last = self.blur_levels - 1
        position = mask * last
        result = np.zeros_like(rgb)

        for level in range(self.blur_levels):
            weight = np.clip(1.0 - np.abs(position - level), 0.0, 1.0)
            if not np.any(weight):
                continue

            radius = self.max_blur_radius * level / last
            layer = rgb if level == 0 else cv2.GaussianBlur(rgb, (0, 0), sigmaX=radius / 2)
            result += layer * weight[:, :, np.newaxis]

        return RenderedImage(pixels=_merge_alpha(result, alpha), orientation=orientation)

    def apply(
        self,
        filter_type: FilterType,
        image: Optional[ImageInput],
        mask: Optional[Mask],
        orientation: Orientation = Orientation.UP,
    ) -> Optional[RenderedImage]:
        """Dispatch to the filter selected by filter_type."""
        filters = {
            FilterType.SPOTLIGHT: self.spotlight_highlight,
            FilterType.COLOR: self.color_highlight,
            FilterType.BLUR: self.blur,
        }
        return filters[filter_type](image, mask, orientation)

    # ------------------------------------------------------------
    # Visualization
    # ------------------------------------------------------------

    @staticmethod
    def depth_to_image(
        depth_map: Optional[DepthMap],
        orientation: Orientation = Orientation.UP,
    ) -> Optional[RenderedImage]:
        """Render a depth map as grayscale RGB at its native resolution."""
        if depth_map is None:
            return None
        return RenderedImage(pixels=_gray_to_rgb(depth_map.values), orientation=orientation)

    @staticmethod
    def mask_to_image(
        mask: Optional[Mask],
        orientation: Orientation = Orientation.UP,
    ) -> Optional[RenderedImage]:
        """Render a mask as grayscale RGB (white = far from focus)."""
        if mask is None:
            return None
        return RenderedImage(pixels=_gray_to_rgb(mask), orientation=orientation)

    def _validate(
        self,
        image: Optional[ImageInput],
        mask: Optional[Mask],
        name: str,
    ) -> Optional[NDArray[np.uint8]]:
        if image is None or mask is None:
            return None

        pixels = _pixels_of(image)
        if pixels.shape[:2] != mask.shape:
            logger.warning(
                f"Skipping {name}: mask {mask.shape} does not match image {pixels.shape[:2]}"
            )
            return None
        return pixels


def _gray_to_rgb(values: NDArray[np.float32]) -> NDArray[np.uint8]:
    gray = np.clip(np.rint(values * 255.0), 0, 255).astype(np.uint8)
    return cv2.cvtColor(gray, cv2.COLOR_GRAY2RGB)
