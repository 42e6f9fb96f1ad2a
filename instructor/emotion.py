"""
Dual-model facial emotion classification with onnxruntime.

Two independent models score each face crop:
  - primary (CNN, 48x48, 7 labels)
  - secondary (FER+, 64x64, 8 labels, Contempt folded into Disgust)
and a fixed fusion rule picks one label per face.
"""
# instructor/emotion.py
from __future__ import annotations
from typing import Tuple
import logging

import cv2
import numpy as np
import onnxruntime as ort

from instructor.errors import ClassificationError, StartupResourceError
from instructor.models import (
    EMOTION_LABELS,
    NEEDS_HELP,
    POSITIVE_LABELS,
    PRIMARY_MODEL,
    PROCEED_AHEAD,
    SECONDARY_MODEL,
    UNCLASSIFIED,
    EmotionVerdict,
)

logger = logging.getLogger(__name__)

PRIMARY_LABELS = EMOTION_LABELS
SECONDARY_LABELS = ("Neutral", "Happy", "Surprise", "Sad", "Angry", "Disgust", "Fear", "Contempt")
PRIMARY_SIZE = 48
SECONDARY_SIZE = 64
UNKNOWN = "Unknown"


def preprocess(face_bgr: np.ndarray, size: int) -> np.ndarray:
    """Gray -> equalize -> cubic resize; returns a (1, 1, size, size) float32 blob of raw 0..255 values."""
    if face_bgr.ndim == 3:
        gray = cv2.cvtColor(face_bgr, cv2.COLOR_BGR2GRAY)
    else:
        gray = face_bgr
    gray = cv2.equalizeHist(gray)
    resized = cv2.resize(gray, (size, size), interpolation=cv2.INTER_CUBIC)
    return resized.astype(np.float32).reshape(1, 1, size, size)


def decode_face(pixel_data: bytes) -> np.ndarray:
    arr = np.frombuffer(pixel_data, dtype=np.uint8)
    img = cv2.imdecode(arr, cv2.IMREAD_COLOR)
    if img is None:
        raise ClassificationError(f"Could not decode face image ({len(pixel_data)} bytes)")
    return img


def _error_label(exc: Exception) -> str:
    return f"Error: {str(exc)[:20]}"


def is_emotion(label: str) -> bool:
    return label in EMOTION_LABELS


def fuse(primary: str, secondary: str) -> Tuple[str, str]:
    """
    Pick the final label.

    The secondary model wins only when it says Happy; everything else
    follows the primary model.

    Returns:
        (fused_label, model_used)
    """
    if secondary == "Happy":
        return secondary, SECONDARY_MODEL
    return primary, PRIMARY_MODEL


def binary_classification(label: str) -> str:
    """Happy/Neutral -> Proceed Ahead, other emotions -> Needs Help, sentinels -> Unclassified."""
    if label in POSITIVE_LABELS:
        return PROCEED_AHEAD
    if is_emotion(label):
        return NEEDS_HELP
    return UNCLASSIFIED


class EmotionClassifier:
    """Owns both inference sessions; close() releases them."""
    def __init__(self, primary_session, secondary_session):
        self.primary_session = primary_session
        self.secondary_session = secondary_session

    @classmethod
    def from_paths(cls, primary_path: str, secondary_path: str) -> "EmotionClassifier":
        providers = ["CPUExecutionProvider"]
        try:
            primary = ort.InferenceSession(primary_path, providers=providers)
            secondary = ort.InferenceSession(secondary_path, providers=providers)
        except Exception as e:
            raise StartupResourceError(f"Failed to load emotion models: {e}") from e
        for name, sess in (("primary", primary), ("secondary", secondary)):
            for inp in sess.get_inputs():
                logger.debug(f"[emotion] {name} input={inp.name} shape={inp.shape}")
        return cls(primary, secondary)

    def _scores(self, session, blob: np.ndarray) -> np.ndarray:
        input_name = session.get_inputs()[0].name
        outputs = session.run(None, {input_name: blob})
        return np.asarray(outputs[0], dtype=np.float32).reshape(-1)

    def _argmax_label(self, scores: np.ndarray, labels: Tuple[str, ...]) -> str:
        if scores.size == 0:
            return UNKNOWN
        idx = int(np.argmax(scores))
        if idx >= len(labels):
            return UNKNOWN
        return labels[idx]

    def predict_primary(self, face_bgr: np.ndarray) -> str:
        try:
            scores = self._scores(self.primary_session, preprocess(face_bgr, PRIMARY_SIZE))
            return self._argmax_label(scores, PRIMARY_LABELS)
        except Exception as e:
            logger.warning(f"[emotion] primary prediction error: {e}")
            return _error_label(e)

    def predict_secondary(self, face_bgr: np.ndarray) -> str:
        try:
            scores = self._scores(self.secondary_session, preprocess(face_bgr, SECONDARY_SIZE))
            label = self._argmax_label(scores, SECONDARY_LABELS)
        except Exception as e:
            logger.warning(f"[emotion] secondary prediction error: {e}")
            return _error_label(e)
        return "Disgust" if label == "Contempt" else label

    def classify(self, pixel_data: bytes) -> EmotionVerdict:
        """
        Classify one encoded face crop.

        Per-model failures become sentinel labels and the verdict falls back to
        whichever model produced an emotion. ClassificationError is raised only
        when the crop cannot be decoded.
        """
        face = decode_face(pixel_data)
        primary = self.predict_primary(face)
        secondary = self.predict_secondary(face)
        if not is_emotion(primary) and is_emotion(secondary):
            fused, model_used = secondary, SECONDARY_MODEL
        else:
            fused, model_used = fuse(primary, secondary)
        verdict = EmotionVerdict(
            primary_label=primary,
            secondary_label=secondary,
            fused_label=fused,
            model_used=model_used,
            classification=binary_classification(fused),
        )
        logger.debug(f"[emotion] primary={primary} secondary={secondary} -> {fused} ({model_used})")
        return verdict

    def close(self) -> None:
        """Drop both sessions. onnxruntime frees native memory when the last reference goes."""
        self.primary_session = None
        self.secondary_session = None
