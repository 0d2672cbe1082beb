"""
Image asset discovery and color image loading.

Assets follow a sequential naming convention: <base>00.<ext>,
<base>01.<ext>, ... They are discovered with a single directory scan
rather than by trying the next index until a lookup fails.
"""

from __future__ import annotations

import re
from pathlib import Path
from typing import List, Optional
import numpy as np
import cv2
from PIL import Image, UnidentifiedImageError
from pillow_heif import register_heif_opener
from loguru import logger

from depthview.core.contracts import ColorImage, Orientation
from depthview.depth.auxiliary import HEIF_EXTENSIONS


register_heif_opener()


EXIF_ORIENTATION_TAG = 0x0112


def read_orientation(path: Path) -> Orientation:
    """Read the EXIF orientation of an image file (UP if absent)."""
    try:
        with Image.open(path) as image:
            return Orientation.from_exif(image.getexif().get(EXIF_ORIENTATION_TAG))
    except (UnidentifiedImageError, OSError) as e:
        logger.debug(f"No EXIF orientation for {path.name}: {e}")
        return Orientation.UP


class AssetCatalog:
    """
    Catalog of sequentially named image assets in a directory.

    AssetNotFound is an ordinary outcome here: lookups return None.
    """

    def __init__(
        self,
        asset_dir: Path | str = "assets",
        base: str = "test",
        ext: str = "jpg",
    ):
        """
        Initialize asset catalog.

        Args:
            asset_dir: Directory holding the image assets
            base: Name prefix shared by all assets
            ext: File extension without the dot
        """
        self.asset_dir = Path(asset_dir)
        self.base = base
        self.ext = ext

        self._pattern = re.compile(
            rf"^{re.escape(base)}(\d{{2,}})\.{re.escape(ext)}$",
            re.IGNORECASE,
        )

    def available_images(self) -> List[str]:
        """
        List asset names (without extension) ordered by index.

        Returns:
            Names such as ["test00", "test01", ...]
        """
        if not self.asset_dir.is_dir():
            logger.warning(f"Asset directory not found: {self.asset_dir}")
            return []

        indexed = []
        for path in self.asset_dir.iterdir():
            match = self._pattern.match(path.name)
            if match and path.is_file():
                indexed.append((int(match.group(1)), path.stem))

        indexed.sort()
        indices = [index for index, _ in indexed]
        if indices and indices != list(range(indices[0], indices[0] + len(indices))):
            logger.debug(f"Asset indices are not contiguous: {indices}")

        logger.info(f"Found {len(indexed)} '{self.base}' assets in {self.asset_dir}")
        return [name for _, name in indexed]

    def url_for(self, name: str, ext: Optional[str] = None) -> Optional[Path]:
        """Resolve an asset name to its path, or None if it does not exist."""
        path = self.asset_dir / f"{name}.{ext or self.ext}"
        if path.is_file():
            return path

        # Extension match is case-insensitive, like the scan
        wanted = path.name.lower()
        if self.asset_dir.is_dir():
            for candidate in self.asset_dir.iterdir():
                if candidate.name.lower() == wanted and candidate.is_file():
                    return candidate
        return None

    def load_color_image(self, name: str, ext: Optional[str] = None) -> Optional[ColorImage]:
        """
        Decode the primary image of an asset.

        Pixels are returned as stored; the EXIF orientation travels
        alongside instead of being applied.

        Returns:
            ColorImage (RGB or RGBA uint8), or None if missing/undecodable
        """
        path = self.url_for(name, ext)
        if path is None:
            logger.warning(f"Asset not found: {name}.{ext or self.ext}")
            return None

        is_heif = path.suffix.lower() in HEIF_EXTENSIONS
        if is_heif:
            pixels = self._decode_heif(path)
        else:
            # IMREAD_UNCHANGED keeps alpha and ignores EXIF orientation
            decoded = cv2.imread(str(path), cv2.IMREAD_UNCHANGED)
            pixels = None if decoded is None else self._to_rgb(decoded)

        if pixels is None:
            logger.warning(f"Failed to decode {path.name}")
            return None

        orientation = Orientation.UP if is_heif else read_orientation(path)

        logger.debug(
            f"Loaded {path.name}: {pixels.shape[1]}x{pixels.shape[0]}, "
            f"orientation={orientation.name}"
        )
        return ColorImage(pixels=pixels, orientation=orientation, name=name)

    @staticmethod
    def _decode_heif(path: Path) -> Optional[np.ndarray]:
        """Decode a HEIC/HEIF primary image to RGB(A) uint8 through Pillow.

        libheif applies the container's rotation while decoding, so
        the pixels come out upright.
        """
        try:
            with Image.open(path) as image:
                mode = "RGBA" if "A" in image.getbands() else "RGB"
                return np.array(image.convert(mode))
        except (UnidentifiedImageError, OSError, ValueError) as e:
            logger.debug(f"Pillow could not decode {path.name}: {e}")
            return None

    @staticmethod
    def _to_rgb(decoded: np.ndarray) -> np.ndarray:
        """Convert an OpenCV decode result to RGB(A) uint8."""
        if decoded.dtype == np.uint16:
            decoded = (decoded / 257).astype(np.uint8)

        if decoded.ndim == 2:
            return cv2.cvtColor(decoded, cv2.COLOR_GRAY2RGB)
        if decoded.shape[2] == 4:
            return cv2.cvtColor(decoded, cv2.COLOR_BGRA2RGBA)
        return cv2.cvtColor(decoded, cv2.COLOR_BGR2RGB)
