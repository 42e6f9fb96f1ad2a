import numpy as np
import pytest

import instructor.emotion as emotion_mod
from instructor.emotion import EmotionClassifier, binary_classification, fuse, preprocess
from instructor.errors import ClassificationError, StartupResourceError
from conftest import make_face, primary_session, secondary_session


def test_fuse_prefers_secondary_only_for_happy():
    assert fuse("Sad", "Happy") == ("Happy", "FerPlus")
    assert fuse("Happy", "Neutral") == ("Happy", "CNN")
    assert fuse("Angry", "Sad") == ("Angry", "CNN")
    assert fuse("Error: boom", "Happy") == ("Happy", "FerPlus")


@pytest.mark.parametrize("label,expected", [
    ("Happy", "Proceed Ahead"),
    ("Neutral", "Proceed Ahead"),
    ("Sad", "Needs Help"),
    ("Angry", "Needs Help"),
    ("Fear", "Needs Help"),
    ("Surprise", "Needs Help"),
    ("Disgust", "Needs Help"),
    ("Unknown", "Unclassified"),
    ("Error: bad input", "Unclassified"),
])
def test_binary_classification(label, expected):
    assert binary_classification(label) == expected


def test_preprocess_shapes_and_raw_range():
    face = np.random.default_rng(1).integers(0, 255, size=(90, 70, 3), dtype=np.uint8)
    blob = preprocess(face, 48)
    assert blob.shape == (1, 1, 48, 48) and blob.dtype == np.float32
    # equalized, unnormalized intensities
    assert blob.max() > 1.0 and blob.max() <= 255.0
    assert preprocess(face, 64).shape == (1, 1, 64, 64)


def test_classify_sad_primary_happy_secondary():
    clf = EmotionClassifier(primary_session("Sad"), secondary_session("Happy"))
    v = clf.classify(make_face().pixel_data)
    assert (v.primary_label, v.secondary_label) == ("Sad", "Happy")
    assert v.fused_label == "Happy"
    assert v.model_used == "FerPlus"
    assert v.classification == "Proceed Ahead"


def test_classify_uses_primary_otherwise():
    p, s = primary_session("Fear"), secondary_session("Neutral")
    clf = EmotionClassifier(p, s)
    v = clf.classify(make_face().pixel_data)
    assert v.fused_label == "Fear" and v.model_used == "CNN"
    assert v.classification == "Needs Help"
    assert p.last_blob.shape == (1, 1, 48, 48)
    assert s.last_blob.shape == (1, 1, 64, 64)


def test_contempt_maps_to_disgust():
    clf = EmotionClassifier(primary_session("Neutral"), secondary_session("Contempt"))
    assert clf.classify(make_face().pixel_data).secondary_label == "Disgust"


def test_secondary_failure_falls_back_to_primary():
    clf = EmotionClassifier(primary_session("Happy"),
                            secondary_session(error=RuntimeError("onnx runtime exploded badly")))
    v = clf.classify(make_face().pixel_data)
    # message truncated to 20 characters
    assert v.secondary_label == "Error: onnx runtime explode"
    assert v.fused_label == "Happy" and v.model_used == "CNN"
    assert v.classification == "Proceed Ahead"


def test_primary_failure_falls_back_to_secondary():
    clf = EmotionClassifier(primary_session(error=ValueError("bad")), secondary_session("Sad"))
    v = clf.classify(make_face().pixel_data)
    assert v.primary_label == "Error: bad"
    assert v.secondary_label == "Sad"
    assert v.fused_label == "Sad" and v.model_used == "FerPlus"
    assert v.classification == "Needs Help"


def test_both_models_failing_yields_unclassified():
    clf = EmotionClassifier(primary_session(error=ValueError("bad")),
                            secondary_session(error=RuntimeError("worse")))
    v = clf.classify(make_face().pixel_data)
    assert v.primary_label == "Error: bad"
    assert v.secondary_label == "Error: worse"
    assert v.fused_label == "Error: bad" and v.model_used == "CNN"
    assert v.classification == "Unclassified"


def test_out_of_range_argmax_is_unknown():
    class WideSession:
        def get_inputs(self):
            return [type("I", (), {"name": "x"})()]
        def run(self, names, feed):
            scores = np.zeros((1, 10), dtype=np.float32)
            scores[0, 9] = 1.0
            return [scores]

    clf = EmotionClassifier(WideSession(), secondary_session("Sad"))
    v = clf.classify(make_face().pixel_data)
    assert v.primary_label == "Unknown"
    assert v.fused_label == "Sad" and v.model_used == "FerPlus"

    clf = EmotionClassifier(WideSession(), WideSession())
    v = clf.classify(make_face().pixel_data)
    assert v.secondary_label == "Unknown"
    assert v.classification == "Unclassified"


def test_undecodable_face_raises():
    clf = EmotionClassifier(primary_session(), secondary_session())
    with pytest.raises(ClassificationError):
        clf.classify(b"not an image")


def test_from_paths_wraps_load_errors(monkeypatch):
    def boom(path, providers=None):
        raise RuntimeError(f"cannot load {path}")
    monkeypatch.setattr(emotion_mod.ort, "InferenceSession", boom)
    with pytest.raises(StartupResourceError):
        EmotionClassifier.from_paths("a.onnx", "b.onnx")


def test_from_paths_loads_both(monkeypatch):
    loaded = []
    def fake(path, providers=None):
        loaded.append((path, tuple(providers)))
        return primary_session()
    monkeypatch.setattr(emotion_mod.ort, "InferenceSession", fake)
    clf = EmotionClassifier.from_paths("a.onnx", "b.onnx")
    assert [p for p, _ in loaded] == ["a.onnx", "b.onnx"]
    assert loaded[0][1] == ("CPUExecutionProvider",)
    clf.close()
    assert clf.primary_session is None and clf.secondary_session is None
