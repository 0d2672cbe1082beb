"""
Configuration for the Depth Mask Viewer.

Settings come from (lowest to highest priority):
1. ViewerConfig defaults
2. Quality preset
3. YAML settings file (config/settings.yaml by default)
4. Command-line arguments

To add a new preset:
1. Add entry to PRESETS dict with your settings
2. Optionally set as ACTIVE_PRESET default
"""

from __future__ import annotations

from dataclasses import dataclass, field, fields
from pathlib import Path
from typing import Any, Dict, Optional
import yaml
from loguru import logger


# === QUALITY PRESETS ===
# Trade blur quality against interactive speed
PRESETS = {
    "QUALITY": {
        "max_blur_radius": 15.0,    # Blur radius at full mask weight
        "blur_levels": 8,           # Pre-blurred levels for variable blur
        "display_max_width": 1920,  # Max window width
    },
    "BALANCED": {
        "max_blur_radius": 15.0,
        "blur_levels": 6,
        "display_max_width": 1280,
    },
    "FAST": {
        "max_blur_radius": 10.0,
        "blur_levels": 4,
        "display_max_width": 960,
    },
}

# Default preset
ACTIVE_PRESET = "BALANCED"

DEFAULT_CONFIG_PATH = Path(__file__).resolve().parent.parent / "config" / "settings.yaml"


@dataclass
class ViewerConfig:
    """Main configuration for the viewer.

    Attributes:
        asset_dir: Directory holding the image assets
        base_name: Shared asset name prefix ("test" -> test00.jpg, ...)
        extension: Asset file extension
        initial_focus: Focus slider start value in [0, 1]
        initial_filter: Filter selected when entering FILTERED mode
        mask_slope: Steepness of the mask ramp
        mask_band_width: Depth band around the focus kept fully in focus
        min_brightness: Spotlight floor (0 = black)
        preset: Quality preset name
        window_name: Display window title
    """
    # Assets
    asset_dir: str = "assets"
    base_name: str = "test"
    extension: str = "jpg"

    # Interaction
    initial_focus: float = 0.5
    initial_filter: str = "spotlight"

    # Mask
    mask_slope: float = 4.0
    mask_band_width: float = 0.1

    # Filters
    min_brightness: float = 0.0

    # Preset (overrides individual quality settings)
    preset: str = ACTIVE_PRESET

    # Display
    window_name: str = "Depth Mask Viewer"

    # Computed from preset (set in __post_init__)
    max_blur_radius: float = field(default=15.0, init=False)
    blur_levels: int = field(default=6, init=False)
    display_max_width: int = field(default=1280, init=False)

    def __post_init__(self):
        """Apply preset settings."""
        if self.preset not in PRESETS:
            available = ", ".join(PRESETS)
            raise ValueError(f"Unknown preset '{self.preset}'. Available: {available}")

        preset = PRESETS[self.preset]
        self.max_blur_radius = preset["max_blur_radius"]
        self.blur_levels = preset["blur_levels"]
        self.display_max_width = preset["display_max_width"]


def _read_yaml(path: Path) -> Dict[str, Any]:
    with open(path) as f:
        data = yaml.safe_load(f)
    return data or {}


def load_config(
    config_path: Optional[str] = None,
    overrides: Optional[Dict[str, Any]] = None,
) -> ViewerConfig:
    """Load configuration from a YAML file plus overrides.

    The YAML file may group keys under `assets`, `mask`, `filters` and
    `display` sections, or list them flat. Unknown keys are ignored
    with a warning.

    Args:
        config_path: Settings file, or None for config/settings.yaml
        overrides: Values that win over the file (e.g. from argparse);
            None values are skipped

    Returns:
        ViewerConfig with all settings
    """
    raw: Dict[str, Any] = {}
    path = Path(config_path) if config_path else DEFAULT_CONFIG_PATH
    if path.exists():
        raw = _read_yaml(path)
        logger.debug(f"Loaded settings from {path}")
    elif config_path:
        logger.warning(f"Config file not found: {config_path}, using defaults")

    flat: Dict[str, Any] = {}
    for key, value in raw.items():
        if isinstance(value, dict):
            flat.update(value)
        else:
            flat[key] = value

    for key, value in (overrides or {}).items():
        if value is not None:
            flat[key] = value

    init_fields = {f.name for f in fields(ViewerConfig) if f.init}
    unknown = sorted(set(flat) - init_fields)
    if unknown:
        logger.warning(f"Ignoring unknown config keys: {', '.join(unknown)}")

    return ViewerConfig(**{k: v for k, v in flat.items() if k in init_fields})
