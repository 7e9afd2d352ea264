import pytest

from echovision.pipeline.stability import StabilityTracker

from conftest import det


def test_counter_rises_and_falls_without_reaching_threshold():
    tracker = StabilityTracker(threshold=3)
    history = []
    for labels in (["cup"], ["cup"], []):
        tracker.update(labels)
        history.append(tracker.count("cup"))
    assert history == [1, 2, 1]
    assert not tracker.is_stable("cup")


def test_label_becomes_stable_after_three_frames():
    tracker = StabilityTracker()
    for _ in range(3):
        tracker.update({"chair"})
    detections = [det("chair"), det("cup")]
    assert [d.label for d in tracker.stable_detections(detections)] == ["chair"]


def test_labels_are_case_insensitive():
    tracker = StabilityTracker()
    tracker.update({"Cup"})
    tracker.update({"cup"})
    tracker.update({"CUP"})
    assert tracker.is_stable("cup")


def test_absent_labels_are_pruned_at_zero():
    tracker = StabilityTracker()
    tracker.update({"cup"})
    tracker.update(set())
    assert tracker.snapshot() == {}
    tracker.update(set())
    assert tracker.count("cup") == 0


def test_counts_capped_so_departed_objects_lose_stability():
    tracker = StabilityTracker(threshold=3)
    for _ in range(10):
        tracker.update({"chair"})
    assert tracker.count("chair") == 3
    tracker.update(set())
    assert not tracker.is_stable("chair")


def test_custom_threshold_in_query():
    tracker = StabilityTracker()
    tracker.update({"cup"})
    assert tracker.stable_detections([det("cup")], threshold=1)


def test_reset_and_validation():
    tracker = StabilityTracker()
    tracker.update({"cup"})
    tracker.reset()
    assert tracker.snapshot() == {}
    with pytest.raises(ValueError):
        StabilityTracker(threshold=0)
