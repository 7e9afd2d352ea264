import numpy as np
import pytest

from echovision.pipeline.lighting import (
    LightingQuality,
    SceneMonitor,
    classify_lighting,
    measure_brightness,
)


def _gray_frame(level, shape=(100, 100, 3)):
    return np.full(shape, int(round(level * 255)), dtype=np.uint8)


@pytest.mark.parametrize(
    "brightness, expected",
    [
        (0.15, LightingQuality.TOO_DARK),
        (0.2, LightingQuality.DIM),
        (0.25, LightingQuality.DIM),
        (0.4, LightingQuality.GOOD),
        (0.5, LightingQuality.GOOD),
    ],
)
def test_lighting_thresholds(brightness, expected):
    assert classify_lighting(brightness) is expected


def test_just_below_boundaries():
    assert classify_lighting(0.1999) is LightingQuality.TOO_DARK
    assert classify_lighting(0.3999) is LightingQuality.DIM


def test_brightness_uses_perceptual_weights_in_bgr_order():
    blue = np.zeros((10, 10, 3), dtype=np.uint8)
    blue[..., 0] = 255
    red = np.zeros((10, 10, 3), dtype=np.uint8)
    red[..., 2] = 255
    assert measure_brightness(blue) == pytest.approx(0.114)
    assert measure_brightness(red) == pytest.approx(0.299)


def test_brightness_samples_only_the_center():
    frame = np.zeros((100, 100, 3), dtype=np.uint8)
    frame[40:60, 40:60] = 255
    assert measure_brightness(frame) == pytest.approx(1.0)


def test_grayscale_and_float_frames():
    assert measure_brightness(np.full((20, 20), 128, dtype=np.uint8)) == pytest.approx(128 / 255)
    assert measure_brightness(np.full((20, 20, 3), 0.5, dtype=np.float32)) == pytest.approx(0.5)


def test_first_frame_is_stable():
    monitor = SceneMonitor()
    state = monitor.analyze(_gray_frame(0.5))
    assert state.is_camera_stable
    assert state.lighting_quality is LightingQuality.GOOD


def test_large_brightness_jump_marks_camera_unstable():
    monitor = SceneMonitor()
    monitor.assess(0.5)
    assert not monitor.assess(0.8).is_camera_stable
    assert monitor.assess(0.85).is_camera_stable


def test_delta_equal_to_threshold_is_stable():
    monitor = SceneMonitor(motion_threshold=0.25)
    monitor.assess(0.5)
    assert monitor.assess(0.75).is_camera_stable


def test_scene_survives_frame_updates_and_reset_clears():
    monitor = SceneMonitor()
    monitor.set_scene("kitchen")
    state = monitor.assess(0.3)
    assert state.current_scene == "kitchen"
    assert state.lighting_quality is LightingQuality.DIM
    monitor.reset()
    assert monitor.state.current_scene is None
    assert monitor.assess(0.9).is_camera_stable
