#!/usr/bin/env python3
"""
Depth Mask Viewer

Main entry point for the interactive depth-map viewer.

Usage:
    python main.py [--config CONFIG_PATH] [--assets ASSET_DIR] [--image NAME]

Keyboard Controls:
    1-4   - Original / Depth / Mask / Filtered mode
    S C B - Spotlight / Color / Blur filter
    N     - Next image (or click the image)
    Q     - Quit
"""

from __future__ import annotations

import argparse
import sys
from pathlib import Path
from typing import Optional

from loguru import logger

from depthview.config import PRESETS, load_config
from depthview.pipeline.viewer import DepthImageViewer
from depthview.ui.opencv_window import OpenCVViewerWindow


# ============================================================
# LOGGING CONFIGURATION
# ============================================================

def setup_logging(log_level: str = "INFO", log_file: Optional[str] = None):
    """Configure logging."""
    logger.remove()  # Remove default handler

    # Console output with colors
    logger.add(
        sys.stderr,
        level=log_level,
        format="<green>{time:HH:mm:ss.SSS}</green> | <level>{level: <8}</level> | <cyan>{module}</cyan>:<cyan>{line}</cyan> | <level>{message}</level>",
        colorize=True,
    )

    # File output
    if log_file:
        Path(log_file).parent.mkdir(parents=True, exist_ok=True)
        logger.add(
            log_file,
            level="DEBUG",
            format="{time:YYYY-MM-DD HH:mm:ss.SSS} | {level: <8} | {module}:{line} | {message}",
            rotation="10 MB",
            retention="7 days",
        )


# ============================================================
# ENTRY POINT
# ============================================================

def parse_args(argv: Optional[list] = None) -> argparse.Namespace:
    """Parse command-line arguments."""
    parser = argparse.ArgumentParser(
        description="Depth Mask Viewer for dual-camera photographs",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=__doc__,
    )

    parser.add_argument(
        "--config", "-c",
        type=str,
        default=None,
        help="Path to configuration file (default: config/settings.yaml)",
    )

    parser.add_argument(
        "--assets", "-a",
        dest="asset_dir",
        type=str,
        default=None,
        help="Directory containing <base>NN.<ext> images",
    )

    parser.add_argument(
        "--base",
        dest="base_name",
        type=str,
        default=None,
        help="Asset name prefix (default: test)",
    )

    parser.add_argument(
        "--image", "-i",
        type=str,
        default=None,
        help="Asset to open first (e.g. test02)",
    )

    parser.add_argument(
        "--preset",
        choices=list(PRESETS.keys()),
        default=None,
        help="Quality preset",
    )

    parser.add_argument(
        "--log-level",
        type=str,
        default="INFO",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        help="Logging level (default: INFO)",
    )

    parser.add_argument(
        "--log-file",
        type=str,
        default=None,
        help="Optional log file path",
    )

    return parser.parse_args(argv)


def main(argv: Optional[list] = None) -> int:
    """Main entry point."""
    args = parse_args(argv)

    # Setup logging
    setup_logging(args.log_level, args.log_file)

    try:
        config = load_config(
            args.config,
            overrides={
                "asset_dir": args.asset_dir,
                "base_name": args.base_name,
                "preset": args.preset,
            },
        )
        viewer = DepthImageViewer(config)
    except ValueError as e:
        logger.error(f"Invalid configuration: {e}")
        return 2

    if not viewer.available_images and args.image is None:
        logger.error(f"No '{config.base_name}NN.{config.extension}' images in {config.asset_dir}")
        return 1

    viewer.load_current(args.image)

    window = OpenCVViewerWindow(
        viewer,
        window_name=config.window_name,
        max_width=config.display_max_width,
    )
    window.run()

    logger.info("Viewer stopped")
    return 0


if __name__ == "__main__":
    sys.exit(main())
