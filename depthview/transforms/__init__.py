"""
Depth Compositing Module.

Responsibilities:
- Focus mask derivation from depth maps
- Mask-weighted spotlight, color and blur effects
- Depth and mask visualization
"""

from .depth_filters import DepthImageFilters
