import threading

import numpy as np
import pytest

from echovision.pipeline.fusion import DetectionFusionEngine
from echovision.session import NarrationSession

from conftest import FakeBackend, obs


class GatedBackend(FakeBackend):
    """Blocks every inference call until the gate opens."""

    def __init__(self, outputs=None):
        super().__init__(outputs)
        self.gate = threading.Event()

    def detect(self, frame, model_id):
        self.gate.wait(timeout=5.0)
        return super().detect(frame, model_id)


CHAIR = {"general": [obs("chair", 0.9, center_x=0.5)]}


@pytest.fixture
def session_for(speaker):
    sessions = []

    def build(backend, **kwargs):
        session = NarrationSession(DetectionFusionEngine(backend), speaker, **kwargs)
        sessions.append((session, backend))
        return session

    yield build
    for session, backend in sessions:
        if isinstance(backend, GatedBackend):
            backend.gate.set()
        session.close()


def test_only_every_nth_frame_is_processed(frame, session_for):
    session = session_for(FakeBackend(CHAIR), process_every=3)
    assert not session.offer_frame(frame)
    assert not session.offer_frame(frame)
    assert session.offer_frame(frame)
    result = session.drain(timeout=5.0)
    assert [d.label for d in result.detections] == ["chair"]
    assert session.tracker.count("chair") == 1


def test_sampled_frame_dropped_while_fusion_busy(frame, session_for):
    backend = GatedBackend(CHAIR)
    session = session_for(backend, process_every=1)
    assert session.offer_frame(frame)
    brightness = session.state.brightness

    dark = np.zeros_like(frame)
    assert not session.offer_frame(dark)
    assert session.dropped_frames == 1
    # Dropped frames never reach the scene monitor
    assert session.state.brightness == brightness

    backend.gate.set()
    session.drain(timeout=5.0)
    assert not session.busy
    assert [d.label for d in session.detections] == ["chair"]


def test_manual_announcement_uses_latest_result(frame, speaker, session_for):
    session = session_for(FakeBackend(CHAIR), process_every=1)
    session.offer_frame(frame)
    session.drain(timeout=5.0)
    session.announce_now(0.0)
    assert speaker.texts == ["There is a chair in front"]


def test_automatic_announcement_after_object_is_stable(frame, speaker, session_for):
    session = session_for(FakeBackend(CHAIR), process_every=1)
    for _ in range(3):
        session.offer_frame(frame)
        session.drain(timeout=5.0)
    assert session.poll(0.0) == []
    assert session.poll(2.0) == []
    scheduled = session.poll(4.0)
    assert [s.text for s in scheduled] == ["There is a chair in front"]
    assert speaker.texts == ["There is a chair in front"]


def test_reset_discards_in_flight_pass(frame, session_for):
    backend = GatedBackend(CHAIR)
    session = session_for(backend, process_every=1)
    session.offer_frame(frame)
    session.reset()
    assert not session.busy
    backend.gate.set()
    assert session.drain(timeout=5.0) is None
    assert session.detections == ()
    assert session.tracker.snapshot() == {}
    assert session.frame_count == 0
