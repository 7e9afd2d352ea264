import pytest

from echovision.core.detection import Detection, SourceTier
from echovision.narration.composer import AnnouncementComposer
from echovision.pipeline.fusion import DetectionFusionEngine, merge_detections
from echovision.pipeline.lighting import LightingQuality

from conftest import obs


@pytest.fixture
def engine_for(make_backend):
    engines = []

    def build(outputs, **kwargs):
        backend = make_backend(outputs, failing=kwargs.pop("failing", ()))
        engine = DetectionFusionEngine(backend, **kwargs)
        engines.append(engine)
        return engine, backend

    yield build
    for engine in engines:
        engine.close()


def test_hazards_replace_lower_tiers_but_scene_still_runs(frame, engine_for):
    engine, backend = engine_for({
        "hazard": [obs("Stairs", 0.8, center_x=0.5)],
        "general": [obs("chair", 0.9, center_x=0.1)],
        "personal": [obs("my_keys", 0.95)],
        "scene": [obs("living_room", 0.7)],
    })
    result = engine.fuse(frame)
    assert [d.label for d in result.detections] == ["stairs"]
    assert result.detections[0].source_tier is SourceTier.HAZARD
    assert result.hazard_only
    assert result.scene == "living room"
    assert "general" not in backend.calls
    assert "personal" not in backend.calls


def test_low_confidence_hazard_does_not_short_circuit(frame, engine_for):
    engine, _ = engine_for({
        "hazard": [obs("knife", 0.59, center_x=0.5)],
        "general": [obs("chair", 0.9, center_x=0.5)],
    })
    result = engine.fuse(frame)
    assert [d.label for d in result.detections] == ["chair"]
    assert not result.hazard_only


def test_case_insensitive_duplicates_keep_first_tier():
    obstacle = Detection("Cup", 0.4, SourceTier.OBSTACLE)
    general = Detection("cup", 0.9, SourceTier.GENERAL)
    merged = merge_detections([[obstacle], [general]])
    assert len(merged) == 1
    assert merged[0].source_tier is SourceTier.OBSTACLE


def test_fused_duplicates_collapse(frame, engine_for):
    engine, _ = engine_for({
        "general": [obs("Cup", 0.9, center_x=0.5)],
        "classifier": [obs("coffee mug", 0.4)],
    })
    result = engine.fuse(frame)
    assert [(d.label, d.confidence) for d in result.detections] == [("cup", 0.9)]


def test_results_sorted_by_confidence_and_truncated():
    groups = [[Detection(f"item{i}", i / 20, SourceTier.GENERAL) for i in range(15)]]
    merged = merge_detections(groups, limit=10)
    assert len(merged) == 10
    assert merged[0].label == "item14"
    assert [d.confidence for d in merged] == sorted((d.confidence for d in merged), reverse=True)


def test_obstacle_detector_only_runs_when_enabled(frame, engine_for):
    outputs = {"obstacle": [obs("box", 0.8, center_x=0.5)]}
    disabled, disabled_backend = engine_for(outputs)
    assert disabled.fuse(frame).detections == ()
    assert "obstacle" not in disabled_backend.calls

    enabled, _ = engine_for(outputs, obstacle_enabled=True)
    result = enabled.fuse(frame)
    assert [d.source_tier for d in result.detections] == [SourceTier.OBSTACLE]


def test_personal_items_filtered(frame, engine_for):
    engine, _ = engine_for({
        "personal": [
            obs("background", 0.99),
            obs("my_keys", 0.9),
            obs("my_wallet", 0.8),
            obs("my_glasses", 0.75),
            obs("my_phone", 0.72),
            obs("my_bag", 0.5),
        ],
    })
    labels = [d.label for d in engine.fuse(frame).detections]
    assert labels == ["my_keys", "my_wallet", "my_glasses"]


def test_failing_detector_degrades_to_empty(frame, engine_for):
    engine, _ = engine_for(
        {"general": [obs("chair", 0.9, center_x=0.5)]},
        failing=("hazard", "personal", "scene"),
    )
    result = engine.fuse(frame)
    assert [d.label for d in result.detections] == ["chair"]
    assert result.scene is None


def test_fusion_and_composition_are_repeatable(frame, engine_for):
    engine, _ = engine_for({
        "general": [obs("chair", 0.9, center_x=0.1), obs("bottle", 0.8, center_x=0.9)],
        "classifier": [obs("notebook computer", 0.7)],
        "personal": [obs("my_keys", 0.9)],
        "scene": [obs("office", 0.8)],
    })

    def narrate():
        result = engine.fuse(frame)
        composition = AnnouncementComposer().compose(
            result.detections, False, result.scene, LightingQuality.GOOD, now=0.0
        )
        return result, composition.texts

    first_result, first_texts = narrate()
    second_result, second_texts = narrate()
    assert first_result == second_result
    assert first_texts == second_texts
    assert first_texts
