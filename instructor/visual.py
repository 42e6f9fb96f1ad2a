"""Visualization helpers.

- draw_verdicts: draw face rectangles coloured by classification with the fused label
- NO_FACE banner when nothing was found
"""
from __future__ import annotations
import cv2
import numpy as np
from typing import List, Optional, Tuple

from instructor.models import NEEDS_HELP, PROCEED_AHEAD, EmotionVerdict, FaceRegion

COLORS = {
    PROCEED_AHEAD: (0, 200, 0),
    NEEDS_HELP: (0, 0, 255),
}
DEFAULT_COLOR = (0, 200, 255)


def draw_verdicts(frame: np.ndarray,
                  faces: List[FaceRegion],
                  verdicts: List[Optional[EmotionVerdict]],
                  thickness: int = 2) -> np.ndarray:
    """Draw bounding boxes and labels on a copy of the frame.

    Args:
        frame: BGR image
        faces: located face regions
        verdicts: one verdict per face (None when classification failed)
        thickness: rectangle line width

    Returns:
        Annotated copy of the frame
    """
    out = frame.copy()
    h, w = out.shape[:2]

    if not faces:
        cv2.putText(out, "NO_FACE", (10, 30), cv2.FONT_HERSHEY_SIMPLEX, 1.0, (0, 0, 255), 2, cv2.LINE_AA)
        return out

    for idx, face in enumerate(faces, start=1):
        verdict = verdicts[idx - 1] if idx - 1 < len(verdicts) else None
        # clamp to image bounds
        x = max(0, min(face.x, w - 1)); y = max(0, min(face.y, h - 1))
        fw = max(0, min(face.width, w - x)); fh = max(0, min(face.height, h - y))

        color: Tuple[int, int, int] = COLORS.get(verdict.classification, DEFAULT_COLOR) if verdict else DEFAULT_COLOR
        cv2.rectangle(out, (x, y), (x + fw, y + fh), color, thickness)
        label = f"#{idx} {verdict.fused_label}" if verdict else f"#{idx} ERROR"
        cv2.putText(out, label, (x, max(0, y - 10)), cv2.FONT_HERSHEY_SIMPLEX, 0.6, color, 2, cv2.LINE_AA)

    return out
