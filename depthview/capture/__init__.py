"""
Asset Capture Module.

Responsibilities:
- Sequential asset discovery (<base>NN.<ext>)
- Color image decoding with EXIF orientation
"""

from .asset_catalog import AssetCatalog, read_orientation
