"""
Core data contracts for the Depth Mask Viewer.

Lifecycle:
1. DepthMap and ColorImage are created once per image load
2. Mask and RenderedImage are recomputed on every parameter change
"""

from .contracts import (
    ImageMode,
    FilterType,
    Orientation,
    DepthErrorKind,
    DepthMap,
    ColorImage,
    RenderedImage,
    DepthResult,
    ViewerState,
)
