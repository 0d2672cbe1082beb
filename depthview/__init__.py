"""
Depth Mask Viewer

Visualizes the depth data embedded in dual-camera photographs and uses it
to drive mask-based effects over the full-resolution color image.

Pipeline (per parameter change):
1. Read auxiliary disparity data (once per image load)
2. Normalize to a [0, 1] depth map (0 = far, 1 = near)
3. Derive a focus mask at color-image resolution
4. Composite the selected effect (spotlight, color, blur)
"""

__version__ = "0.1.0"
