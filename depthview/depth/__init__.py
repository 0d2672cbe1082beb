"""
Depth Source Module.

Responsibilities:
- Auxiliary disparity extraction from MPO/JPEG assets
- Depth to disparity conversion
- Normalization to [0, 1]
"""

from .depth_reader import DepthReader, convert_to_disparity, normalize_depth_map
