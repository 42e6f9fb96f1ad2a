"""
Face location on screen snapshots with an OpenCV Haar cascade.

- iou / merge_overlapping: greedy duplicate-detection merge (detector order decides ties)
- FaceLocator: grayscale + equalize -> detectMultiScale -> merge -> PNG crops
"""
from __future__ import annotations
import logging
from typing import List, Sequence, Tuple

import cv2
import numpy as np

from instructor.config import Settings
from instructor.errors import DetectionError, StartupResourceError
from instructor.models import FaceRegion

logger = logging.getLogger(__name__)

Box = Tuple[int, int, int, int]  # x, y, w, h


def iou(a: Box, b: Box) -> float:
    """Intersection area over union area of two (x, y, w, h) boxes."""
    ax0, ay0, aw, ah = a
    bx0, by0, bw, bh = b
    ix0, iy0 = max(ax0, bx0), max(ay0, by0)
    ix1, iy1 = min(ax0 + aw, bx0 + bw), min(ay0 + ah, by0 + bh)
    iw, ih = max(0, ix1 - ix0), max(0, iy1 - iy0)
    inter = iw * ih
    union = aw * ah + bw * bh - inter
    if union <= 0:
        return 0.0
    return inter / float(union)


def merge_overlapping(boxes: Sequence[Box], iou_thresh: float = 0.3) -> List[Box]:
    """
    Collapse duplicate detections of the same face.

    Walks boxes in detector order. Every later unconsumed box whose IoU with the
    current box exceeds iou_thresh is consumed; if it is larger it becomes the
    current box for the rest of the scan. Not a global NMS.
    """
    boxes = [tuple(int(v) for v in b) for b in boxes]
    used = [False] * len(boxes)
    merged: List[Box] = []
    for i, box in enumerate(boxes):
        if used[i]:
            continue
        used[i] = True
        current = box
        for j in range(i + 1, len(boxes)):
            if used[j]:
                continue
            if iou(current, boxes[j]) > iou_thresh:
                used[j] = True
                if boxes[j][2] * boxes[j][3] > current[2] * current[3]:
                    current = boxes[j]
        merged.append(current)
    return merged


class FaceLocator:
    """Finds deduplicated face regions in a BGR frame."""
    def __init__(self,
                 cascade,
                 scale_factor: float = 1.1,
                 min_neighbors: int = 5,
                 min_size: int = 30,
                 max_size: int = 500,
                 merge_iou: float = 0.3):
        self.cascade = cascade
        self.scale_factor = scale_factor
        self.min_neighbors = min_neighbors
        self.min_size = (min_size, min_size)
        self.max_size = (max_size, max_size)
        self.merge_iou = merge_iou

    @classmethod
    def from_settings(cls, cascade_path: str, settings: Settings) -> "FaceLocator":
        try:
            cascade = cv2.CascadeClassifier(cascade_path)
        except cv2.error as e:
            raise StartupResourceError(f"Failed to initialize cascade from {cascade_path}: {e}") from e
        if cascade.empty():
            raise StartupResourceError(f"Cascade loaded but is empty; file may be corrupted: {cascade_path}")
        return cls(
            cascade,
            scale_factor=settings.SCALE_FACTOR,
            min_neighbors=settings.MIN_NEIGHBORS,
            min_size=settings.MIN_FACE_SIZE,
            max_size=settings.MAX_FACE_SIZE,
            merge_iou=settings.MERGE_IOU,
        )

    def detect_boxes(self, frame: np.ndarray) -> List[Box]:
        """Raw cascade candidates in source-resolution coordinates."""
        if frame.ndim == 3:
            gray = cv2.cvtColor(frame, cv2.COLOR_BGR2GRAY)
        else:
            gray = frame
        gray = cv2.equalizeHist(gray)
        found = self.cascade.detectMultiScale(
            gray,
            scaleFactor=self.scale_factor,
            minNeighbors=self.min_neighbors,
            flags=cv2.CASCADE_SCALE_IMAGE,
            minSize=self.min_size,
            maxSize=self.max_size,
        )
        return [tuple(int(v) for v in f) for f in found]

    def locate(self, frame: np.ndarray) -> List[FaceRegion]:
        """
        Detect, merge and crop faces.

        Returns:
            List[FaceRegion] in merge order; empty when nothing is found.

        Raises:
            DetectionError: the cascade matcher or crop encoding failed. Callers
            that need an empty result instead (MonitoringSession) catch it, log
            an ERROR record and carry on as if no face was found.
        """
        try:
            candidates = self.detect_boxes(frame)
        except Exception as e:
            logger.warning(f"[faces] detector failed: {e}")
            raise DetectionError(f"Face detection failed: {e}") from e

        boxes = merge_overlapping(candidates, self.merge_iou)
        logger.debug(f"[faces] candidates={len(candidates)} merged={len(boxes)}")

        H, W = frame.shape[:2]
        regions: List[FaceRegion] = []
        for (x, y, w, h) in boxes:
            # clamp to frame bounds
            x0, y0 = max(0, x), max(0, y)
            x1, y1 = min(W, x + w), min(H, y + h)
            if x1 <= x0 or y1 <= y0:
                continue
            chip = frame[y0:y1, x0:x1]
            ok, buf = cv2.imencode(".png", chip)
            if not ok:
                raise DetectionError(f"Failed to encode face crop at ({x0},{y0},{x1 - x0},{y1 - y0})")
            regions.append(FaceRegion(x=x0, y=y0, width=x1 - x0, height=y1 - y0, pixel_data=buf.tobytes()))
        return regions

    def close(self) -> None:
        self.cascade = None
