import threading

import numpy as np
import pytest

from echovision.core.audio import Priority, Speaker
from echovision.core.detection import BoundingBox, Detection, RawObservation, SourceTier, direction_from_box
from echovision.core.inference import InferenceBackend


class FakeBackend(InferenceBackend):
    """Returns canned observations per model id and records which models ran."""

    def __init__(self, outputs=None, failing=()):
        self.outputs = dict(outputs or {})
        self.failing = set(failing)
        self.calls = []
        self._lock = threading.Lock()

    def detect(self, frame, model_id):
        with self._lock:
            self.calls.append(model_id)
        if model_id in self.failing:
            raise RuntimeError(f"{model_id} exploded")
        return list(self.outputs.get(model_id, []))


class FakeSpeaker(Speaker):
    def __init__(self):
        self.spoken = []
        self.pans = []
        self.speaking = False

    def speak(self, text, priority=Priority.NORMAL, pan=0.0):
        self.spoken.append((text, priority))
        self.pans.append(pan)

    @property
    def is_speaking(self):
        return self.speaking

    @property
    def texts(self):
        return [text for text, _ in self.spoken]


def box_at(center_x, width=0.1):
    return BoundingBox(x=center_x - width / 2, y=0.4, width=width, height=0.2)


def obs(label, confidence, center_x=None):
    return RawObservation(label=label, confidence=confidence, box=box_at(center_x) if center_x is not None else None)


def det(label, tier=SourceTier.GENERAL, confidence=0.9, center_x=None, distance=None):
    box = box_at(center_x) if center_x is not None else None
    return Detection(
        label=label,
        confidence=confidence,
        source_tier=tier,
        bounding_box=box,
        direction=direction_from_box(box),
        distance=distance,
    )


@pytest.fixture
def frame():
    return np.full((60, 80, 3), 160, dtype=np.uint8)


@pytest.fixture
def speaker():
    return FakeSpeaker()


@pytest.fixture
def make_backend():
    return FakeBackend
