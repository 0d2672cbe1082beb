"""
Interactive display surface.

Responsibilities:
- Frame display with orientation applied
- Focus slider, mode/filter keys and tap-to-advance
"""

from .opencv_window import OpenCVViewerWindow, handle_key, prepare_display_frame
