"""
Full-screen snapshots via mss.
"""
from __future__ import annotations
import logging

import cv2
import mss
import numpy as np

from instructor.errors import CaptureError

logger = logging.getLogger(__name__)


class ScreenCapture:
    """Grabs one monitor as a read-only BGR frame."""
    def __init__(self, monitor_index: int = 1):
        self.monitor_index = int(monitor_index)

    def capture_frame(self) -> np.ndarray:
        """
        Take a single snapshot of the configured monitor.

        Returns:
            np.ndarray: HxWx3 uint8 BGR image, marked non-writeable.

        Raises:
            CaptureError: the platform grab failed or the monitor index is invalid.
        """
        try:
            with mss.mss() as sct:
                monitors = sct.monitors
                if self.monitor_index >= len(monitors):
                    raise CaptureError(f"Monitor {self.monitor_index} not available ({len(monitors) - 1} found)")
                shot = sct.grab(monitors[self.monitor_index])
                bgra = np.frombuffer(shot.bgra, dtype=np.uint8).reshape((shot.height, shot.width, 4))
        except CaptureError:
            raise
        except Exception as e:
            logger.warning(f"[capture] screen grab failed: {e}")
            raise CaptureError(f"Screen capture failed: {e}") from e

        frame = cv2.cvtColor(bgra, cv2.COLOR_BGRA2BGR)
        frame.flags.writeable = False
        logger.debug(f"[capture] frame {frame.shape[1]}x{frame.shape[0]}")
        return frame
