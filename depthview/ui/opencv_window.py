"""
OpenCV window UI.

Controls:
    1-4       - Original / Depth / Mask / Filtered mode
    S / C / B - Spotlight / Color / Blur filter
    N, click  - Next image
    Focus bar - Focus depth (0-100)
    Q, ESC    - Quit
"""

from __future__ import annotations

from typing import Optional, Tuple
import numpy as np
from numpy.typing import NDArray
import cv2
from loguru import logger

from depthview.core.contracts import FilterType, ImageMode, RenderedImage, ViewerState
from depthview.pipeline.viewer import DepthImageViewer


FOCUS_TRACKBAR = "Focus"
FOCUS_STEPS = 100

MODE_KEYS = {
    ord("1"): ImageMode.ORIGINAL,
    ord("2"): ImageMode.DEPTH,
    ord("3"): ImageMode.MASK,
    ord("4"): ImageMode.FILTERED,
}

FILTER_KEYS = {
    ord("s"): FilterType.SPOTLIGHT,
    ord("c"): FilterType.COLOR,
    ord("b"): FilterType.BLUR,
}

QUIT_KEYS = {ord("q"), 27}
NEXT_KEY = ord("n")


def handle_key(
    viewer: DepthImageViewer,
    key: int,
) -> Tuple[bool, bool, Optional[RenderedImage]]:
    """Apply a key press to the viewer.

    Returns:
        (quit_requested, view_changed, rendered view after the change)
    """
    key = key & 0xFF
    if key in QUIT_KEYS:
        return True, False, None
    if key in MODE_KEYS:
        return False, True, viewer.set_image_mode(MODE_KEYS[key])
    if key in FILTER_KEYS:
        return False, True, viewer.set_filter_type(FILTER_KEYS[key])
    if key == NEXT_KEY:
        return False, True, viewer.next_image()
    return False, False, None


def prepare_display_frame(
    rendered: Optional[RenderedImage],
    max_width: int,
    blank_size: Tuple[int, int] = (640, 480),
) -> NDArray[np.uint8]:
    """Orient, downscale and convert a rendered image to BGR for imshow.

    A missing image becomes a black frame, so the display shows nothing
    for that mode instead of the previous frame.
    """
    if rendered is None:
        w, h = blank_size
        return np.zeros((h, w, 3), dtype=np.uint8)

    frame = np.array(rendered.oriented())

    h, w = frame.shape[:2]
    if w > max_width:
        scale = max_width / w
        frame = cv2.resize(frame, None, fx=scale, fy=scale, interpolation=cv2.INTER_AREA)

    if frame.shape[2] == 4:
        return cv2.cvtColor(frame, cv2.COLOR_RGBA2BGR)
    return cv2.cvtColor(frame, cv2.COLOR_RGB2BGR)


class OpenCVViewerWindow:
    """OpenCV-based UI using imshow.

    Uses a trackbar for the focus slider, a mouse click for the tap
    gesture and cv2.waitKey() for the segmented controls.
    """

    def __init__(
        self,
        viewer: DepthImageViewer,
        window_name: str = "Depth Mask Viewer",
        max_width: int = 1280,
    ):
        """
        Initialize OpenCV window.

        Args:
            viewer: Viewer state machine to drive
            window_name: Window title
            max_width: Frames wider than this are downscaled for display
        """
        self.viewer = viewer
        self.window_name = window_name
        self.max_width = max_width

    def setup(self) -> None:
        """Create the window, focus trackbar and mouse handler."""
        cv2.namedWindow(self.window_name, cv2.WINDOW_NORMAL)
        cv2.createTrackbar(
            FOCUS_TRACKBAR, self.window_name,
            int(round(self.viewer.focus * FOCUS_STEPS)), FOCUS_STEPS,
            self._on_focus_changed,
        )
        cv2.setMouseCallback(self.window_name, self._on_mouse)

    def run(self) -> None:
        """Event loop until the user quits or closes the window."""
        self.setup()
        logger.info("Press 1-4 for modes, S/C/B for filters, N or click for next image, Q to quit")

        self._show(self.viewer.update_image_view())

        try:
            while True:
                key = cv2.waitKey(30)
                if key != -1:
                    quit_requested, changed, rendered = handle_key(self.viewer, key)
                    if quit_requested:
                        break
                    if changed:
                        self._show(rendered)

                if cv2.getWindowProperty(self.window_name, cv2.WND_PROP_VISIBLE) < 1:
                    break
        except KeyboardInterrupt:
            logger.info("Interrupted by user")
        finally:
            self.cleanup()

    def cleanup(self) -> None:
        """Destroy the window."""
        cv2.destroyAllWindows()

    def _on_focus_changed(self, position: int) -> None:
        self._show(self.viewer.set_focus(position / FOCUS_STEPS))

    def _on_mouse(self, event: int, x: int, y: int, flags: int, param) -> None:
        # Tap gesture
        if event == cv2.EVENT_LBUTTONUP:
            self._show(self.viewer.next_image())

    def _show(self, rendered: Optional[RenderedImage]) -> None:
        frame = prepare_display_frame(rendered, self.max_width)
        self._draw_info_overlay(frame, self.viewer.state)
        cv2.imshow(self.window_name, frame)

    def _draw_info_overlay(self, frame: NDArray[np.uint8], state: ViewerState) -> None:
        """Draw mode, filter and focus in the top-left corner."""
        text = f"{state.current_name or '-'} | {state.image_mode.name}"
        if state.filter_controls_visible:
            text += f" | {state.filter_type.name}"
        if state.depth_slider_visible:
            text += f" | focus {state.focus:.2f}"
        if not state.has_depth_data and state.image_mode != ImageMode.ORIGINAL:
            text += " | no depth data"

        overlay = frame.copy()
        cv2.rectangle(overlay, (5, 5), (15 + 9 * len(text), 35), (0, 0, 0), -1)
        cv2.addWeighted(overlay, 0.6, frame, 0.4, 0, frame)
        cv2.putText(frame, text, (10, 26), cv2.FONT_HERSHEY_SIMPLEX, 0.5, (0, 255, 0), 1)
