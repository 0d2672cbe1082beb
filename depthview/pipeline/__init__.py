"""
Viewer Pipeline Module.

Responsibilities:
- Display-mode state machine (original, depth, mask, filtered)
- Image loading and cycling
- Per-change mask and filter recomputation
"""

from .viewer import DepthImageViewer
