import threading
import time
import types

import cv2
import numpy as np
import pytest

from instructor.config import Settings
from instructor.emotion import EMOTION_LABELS, SECONDARY_LABELS
from instructor.models import FaceRegion, EmotionVerdict
from instructor.monitor import MonitoringSession


class DummyOnnxSession:
    """Mimics onnxruntime.InferenceSession: returns a one-hot score for `label`."""
    def __init__(self, labels, label=None, error=None):
        self.labels = labels
        self.label = label
        self.error = error
        self.last_blob = None

    def get_inputs(self):
        return [types.SimpleNamespace(name="input", shape=[1, 1, None, None])]

    def run(self, output_names, feed):
        if self.error is not None:
            raise self.error
        self.last_blob = feed["input"]
        scores = np.zeros((1, len(self.labels)), dtype=np.float32)
        scores[0, self.labels.index(self.label)] = 1.0
        return [scores]


def primary_session(label="Neutral", error=None):
    return DummyOnnxSession(list(EMOTION_LABELS), label, error)


def secondary_session(label="Neutral", error=None):
    return DummyOnnxSession(list(SECONDARY_LABELS), label, error)


def make_face(x=10, y=10, w=60, h=60) -> FaceRegion:
    rng = np.random.default_rng(0)
    chip = rng.integers(0, 255, size=(h, w, 3), dtype=np.uint8)
    ok, buf = cv2.imencode(".png", chip)
    assert ok
    return FaceRegion(x=x, y=y, width=w, height=h, pixel_data=buf.tobytes())


def verdict(classification="Needs Help", fused="Sad", model="CNN") -> EmotionVerdict:
    return EmotionVerdict(
        primary_label=fused,
        secondary_label="Neutral",
        fused_label=fused,
        model_used=model,
        classification=classification,
    )


class DummyCapture:
    def __init__(self, error=None):
        self.error = error
        self.calls = 0

    def capture_frame(self):
        self.calls += 1
        if self.error is not None:
            raise self.error
        return np.zeros((120, 160, 3), dtype=np.uint8)


class DummyLocator:
    def __init__(self, faces=None, error=None):
        self.faces = faces if faces is not None else []
        self.error = error
        self.closed = False

    def locate(self, frame):
        if self.error is not None:
            raise self.error
        return list(self.faces)

    def close(self):
        self.closed = True


class DummyClassifier:
    """Returns queued verdicts (or raises queued exceptions); optionally blocks until released."""
    def __init__(self, results=None, gate: threading.Event | None = None):
        self.results = list(results or [])
        self.gate = gate
        self.entered = threading.Event()
        self.closed = False

    def classify(self, pixel_data):
        self.entered.set()
        if self.gate is not None:
            self.gate.wait(5)
        item = self.results.pop(0) if self.results else verdict()
        if isinstance(item, Exception):
            raise item
        return item

    def close(self):
        self.closed = True


@pytest.fixture
def settings(tmp_path):
    return Settings(
        MONITOR_INTERVAL=60,
        FLASH_INTERVAL=60,
        ASSET_DIR=str(tmp_path / "assets"),
        PRIMARY_MODEL_PATH=str(tmp_path / "assets" / "cnn.onnx"),
        SECONDARY_MODEL_PATH=str(tmp_path / "assets" / "ferplus.onnx"),
    )


@pytest.fixture
def make_session(settings):
    """Build a MonitoringSession wired to dummy collaborators; stops it on teardown."""
    created = []

    def _make(faces=None, results=None, capture=None, locator=None, classifier=None, **overrides):
        s = settings.model_copy(update=overrides) if overrides else settings
        loc = locator or DummyLocator(faces=faces)
        clf = classifier or DummyClassifier(results=results)
        sess = MonitoringSession(s, capture=capture or DummyCapture(), loader=lambda _s: (loc, clf))
        sess.dummy_locator = loc
        sess.dummy_classifier = clf
        created.append(sess)
        return sess

    yield _make
    for sess in created:
        sess.stop()


def wait_until(predicate, timeout=3.0):
    end = time.time() + timeout
    while time.time() < end:
        if predicate():
            return True
        time.sleep(0.01)
    return predicate()
