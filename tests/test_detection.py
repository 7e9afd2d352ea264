from echovision.core.detection import (
    BoundingBox,
    Detection,
    Direction,
    RawObservation,
    SourceTier,
    direction_from_box,
)

from conftest import box_at


def test_direction_from_box_thresholds():
    assert direction_from_box(box_at(0.2)) is Direction.LEFT
    assert direction_from_box(box_at(0.5)) is Direction.CENTER
    assert direction_from_box(box_at(0.8)) is Direction.RIGHT
    assert direction_from_box(None) is Direction.CENTER


def test_direction_boundaries_are_center():
    assert direction_from_box(BoundingBox(0.33, 0.0, 0.0, 0.1)) is Direction.CENTER
    assert direction_from_box(BoundingBox(0.67, 0.0, 0.0, 0.1)) is Direction.CENTER


def test_direction_phrases():
    assert Direction.LEFT.phrase == "on your left"
    assert Direction.CENTER.phrase == "in front"
    assert Direction.RIGHT.phrase == "on your right"


def test_from_xyxy_clamps_negative_size():
    box = BoundingBox.from_xyxy(0.6, 0.2, 0.4, 0.5)
    assert box.width == 0.0
    assert box.height == 0.5


def test_from_observation_sets_tier_and_direction():
    observation = RawObservation("Knife", 0.8, BoundingBox.from_xyxy(0.0, 0.0, 0.2, 0.2))
    detection = Detection.from_observation(observation, SourceTier.HAZARD, label="knife")
    assert detection.label == "knife"
    assert detection.direction is Direction.LEFT
    assert detection.is_hazard
    assert detection.announcement_key == "knife|left"


def test_key_is_case_insensitive():
    a = Detection("Cup", 0.9, SourceTier.GENERAL)
    b = Detection("cup", 0.4, SourceTier.GENERAL)
    assert a.key == b.key
