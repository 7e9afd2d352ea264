"""Camera stability and lighting quality from central-crop luminance."""
from __future__ import annotations

import logging
from dataclasses import dataclass, replace
from enum import Enum
from typing import Optional

import numpy as np

from echovision.core import config

logger = logging.getLogger(__name__)

# ITU-R BT.601 luma weights, in BGR channel order (OpenCV frames)
_BGR_WEIGHTS = np.array([0.114, 0.587, 0.299], dtype=np.float64)


class LightingQuality(str, Enum):
    GOOD = "good"
    DIM = "dim"
    TOO_DARK = "too_dark"


@dataclass(frozen=True)
class SceneState:
    current_scene: Optional[str] = None
    is_camera_stable: bool = True
    lighting_quality: LightingQuality = LightingQuality.GOOD
    brightness: float = 1.0

    def with_scene(self, scene: Optional[str]) -> "SceneState":
        return replace(self, current_scene=scene)


def classify_lighting(
    brightness: float,
    too_dark: float = config.TOO_DARK_THRESHOLD,
    dim: float = config.DIM_THRESHOLD,
) -> LightingQuality:
    if brightness < too_dark:
        return LightingQuality.TOO_DARK
    if brightness < dim:
        return LightingQuality.DIM
    return LightingQuality.GOOD


def central_crop(frame: np.ndarray, start: float = config.CROP_START, end: float = config.CROP_END) -> np.ndarray:
    h, w = frame.shape[:2]
    y1, y2 = int(h * start), max(int(h * end), int(h * start) + 1)
    x1, x2 = int(w * start), max(int(w * end), int(w * start) + 1)
    return frame[y1:y2, x1:x2]


def measure_brightness(frame: np.ndarray) -> float:
    """Average perceptual luminance of the central crop, normalized to [0, 1]."""
    crop = central_crop(frame).astype(np.float64)
    if crop.size == 0:
        return 0.0
    scale = 255.0 if np.issubdtype(frame.dtype, np.integer) else 1.0
    if crop.ndim == 2:
        luminance = crop
    else:
        luminance = crop[..., :3] @ _BGR_WEIGHTS
    return float(np.clip(luminance.mean() / scale, 0.0, 1.0))


class SceneMonitor:
    """Tracks camera shake and lighting across sampled frames.

    Only the previous frame's brightness is retained. A large brightness jump
    between samples is taken as a sign the camera moved.
    """

    def __init__(
        self,
        motion_threshold: float = config.MOTION_DELTA_THRESHOLD,
        too_dark: float = config.TOO_DARK_THRESHOLD,
        dim: float = config.DIM_THRESHOLD,
    ):
        self.motion_threshold = motion_threshold
        self.too_dark = too_dark
        self.dim = dim
        self._previous_brightness: Optional[float] = None
        self.state = SceneState()

    def assess(self, brightness: float) -> SceneState:
        if self._previous_brightness is None:
            stable = True
        else:
            stable = abs(brightness - self._previous_brightness) <= self.motion_threshold
        self._previous_brightness = brightness

        quality = classify_lighting(brightness, self.too_dark, self.dim)
        if not stable or quality is not self.state.lighting_quality:
            logger.debug("Capture conditions: brightness=%.2f stable=%s lighting=%s", brightness, stable, quality.value)
        self.state = SceneState(
            current_scene=self.state.current_scene,
            is_camera_stable=stable,
            lighting_quality=quality,
            brightness=brightness,
        )
        return self.state

    def analyze(self, frame: np.ndarray) -> SceneState:
        return self.assess(measure_brightness(frame))

    def set_scene(self, scene: Optional[str]) -> SceneState:
        self.state = self.state.with_scene(scene)
        return self.state

    def reset(self) -> None:
        self._previous_brightness = None
        self.state = SceneState()
