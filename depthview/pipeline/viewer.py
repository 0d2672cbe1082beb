"""
Depth image viewer state machine.

Display modes (any mode reachable from any other):

    ORIGINAL -> DEPTH -> MASK -> FILTERED
                                   |
                      SPOTLIGHT | COLOR | BLUR

Per image load:
1. Read the depth data map (may be absent)
2. Decode the color image
3. Reset to ORIGINAL

Per parameter change:
1. Derive the mask at color-image resolution
2. Composite the selected filter
"""

from __future__ import annotations

from typing import List, Optional
import numpy as np
from loguru import logger

from depthview.config import ViewerConfig
from depthview.core.contracts import (
    ColorImage,
    DepthMap,
    FilterType,
    ImageMode,
    Mask,
    RenderedImage,
    ViewerState,
)
from depthview.capture.asset_catalog import AssetCatalog
from depthview.depth.depth_reader import DepthReader
from depthview.transforms.depth_filters import DepthImageFilters


class DepthImageViewer:
    """
    Interactive viewer over a catalog of dual-camera images.

    Single-threaded: every call completes synchronously. The only state
    carried between calls is the loaded image pair and the control values.
    """

    def __init__(
        self,
        config: Optional[ViewerConfig] = None,
        catalog: Optional[AssetCatalog] = None,
        filters: Optional[DepthImageFilters] = None,
    ):
        """
        Initialize viewer.

        Args:
            config: Viewer configuration
            catalog: Asset catalog (built from config if omitted)
            filters: Compositor (built from config if omitted)
        """
        self.config = config or ViewerConfig()

        self._catalog = catalog or AssetCatalog(
            asset_dir=self.config.asset_dir,
            base=self.config.base_name,
            ext=self.config.extension,
        )
        self._filters = filters or DepthImageFilters(
            slope=self.config.mask_slope,
            band_width=self.config.mask_band_width,
            min_brightness=self.config.min_brightness,
            max_blur_radius=self.config.max_blur_radius,
            blur_levels=self.config.blur_levels,
        )

        # Loaded inputs (replaced together on each load)
        self._color_image: Optional[ColorImage] = None
        self._depth_map: Optional[DepthMap] = None

        # Controls
        self._image_mode = ImageMode.ORIGINAL
        self._filter_type = FilterType.from_name(self.config.initial_filter)
        self._focus = float(np.clip(self.config.initial_focus, 0.0, 1.0))

        self._available_images: List[str] = self._catalog.available_images()
        self._current = 0
        self._current_name: Optional[str] = None

        logger.info(f"Viewer initialized with {len(self._available_images)} images")

    # ------------------------------------------------------------
    # Properties
    # ------------------------------------------------------------

    @property
    def available_images(self) -> List[str]:
        return list(self._available_images)

    @property
    def current_index(self) -> int:
        return self._current

    @property
    def current_name(self) -> Optional[str]:
        return self._current_name

    @property
    def color_image(self) -> Optional[ColorImage]:
        return self._color_image

    @property
    def depth_map(self) -> Optional[DepthMap]:
        return self._depth_map

    @property
    def focus(self) -> float:
        return self._focus

    @property
    def image_mode(self) -> ImageMode:
        return self._image_mode

    @property
    def filter_type(self) -> FilterType:
        return self._filter_type

    @property
    def state(self) -> ViewerState:
        """Snapshot of the current display state."""
        return ViewerState(
            image_mode=self._image_mode,
            filter_type=self._filter_type,
            focus=self._focus,
            current_index=self._current,
            current_name=self._current_name,
            has_depth_data=self._depth_map is not None,
        )

    # ------------------------------------------------------------
    # Loading
    # ------------------------------------------------------------

    def load_current(
        self,
        name: Optional[str] = None,
        ext: Optional[str] = None,
    ) -> Optional[RenderedImage]:
        """
        Load an image and its depth data, then show it unmodified.

        Args:
            name: Asset name; defaults to the current catalog entry
            ext: File extension; defaults to the configured one

        Returns:
            The ORIGINAL view, or None if nothing could be loaded
        """
        if name is None:
            if not self._available_images:
                logger.warning("No images available to load")
                return None
            name = self._available_images[self._current]

        ext = ext or self.config.extension

        # Read depth from the file the catalog resolved (extension case may differ)
        path = self._catalog.url_for(name, ext)
        if path is not None:
            reader = DepthReader(name=path.stem, ext=path.suffix[1:], asset_dir=path.parent)
        else:
            reader = DepthReader(name=name, ext=ext, asset_dir=self._catalog.asset_dir)
        self._depth_map = reader.depth_data_map()
        self._color_image = self._catalog.load_color_image(name, ext)
        self._current_name = name

        if name in self._available_images:
            self._current = self._available_images.index(name)

        logger.info(
            f"Loaded {name}.{ext} "
            f"(depth data: {'yes' if self._depth_map is not None else 'no'})"
        )

        self._image_mode = ImageMode.ORIGINAL
        return self.update_image_view()

    def next_image(self) -> Optional[RenderedImage]:
        """Advance to the next image, wrapping around."""
        if not self._available_images:
            return None
        self._current = (self._current + 1) % len(self._available_images)
        return self.load_current(self._available_images[self._current])

    # ------------------------------------------------------------
    # Controls
    # ------------------------------------------------------------

    def set_image_mode(self, mode: ImageMode) -> Optional[RenderedImage]:
        self._image_mode = mode
        logger.debug(f"Image mode: {mode.name}")
        return self.update_image_view()

    def set_filter_type(self, filter_type: FilterType) -> Optional[RenderedImage]:
        self._filter_type = filter_type
        logger.debug(f"Filter: {filter_type.name}")
        return self.update_image_view()

    def set_focus(self, value: float) -> Optional[RenderedImage]:
        """Set the focus depth, clamped to [0, 1]."""
        self._focus = float(np.clip(value, 0.0, 1.0))
        return self.update_image_view()

    # ------------------------------------------------------------
    # Rendering
    # ------------------------------------------------------------

    def scale_factor(self) -> float:
        """Ratio of the color image's largest side to the depth map's."""
        if self._color_image is None or self._depth_map is None:
            return 1.0
        max_to = max(self._color_image.size)
        max_from = max(self._depth_map.size)
        return max_to / max_from

    def current_mask(self) -> Optional[Mask]:
        """Mask for the current focus in the color image geometry."""
        if self._depth_map is None or self._color_image is None:
            return None
        return self._filters.create_mask(
            self._depth_map,
            focus=self._focus,
            scale=self.scale_factor(),
            target_size=self._color_image.size,
        )

    def update_image_view(self) -> Optional[RenderedImage]:
        """
        Render the current mode.

        Returns:
            The image to display, or None when the mode has nothing to show
            (no image loaded, or no depth data for DEPTH/MASK/FILTERED)
        """
        image = self._color_image
        if image is None:
            return None

        mode = self._image_mode

        if mode == ImageMode.ORIGINAL:
            return RenderedImage(pixels=image.pixels, orientation=image.orientation)

        if mode == ImageMode.DEPTH:
            return self._filters.depth_to_image(self._depth_map, image.orientation)

        mask = self.current_mask()
        if mask is None:
            return None

        if mode == ImageMode.MASK:
            return self._filters.mask_to_image(mask, image.orientation)

        return self._filters.apply(self._filter_type, image, mask, image.orientation)

