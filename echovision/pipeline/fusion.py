"""Detection fusion across the hazard, obstacle, general and personal tiers."""
from __future__ import annotations

import logging
from concurrent.futures import Future, ThreadPoolExecutor
from dataclasses import dataclass
from typing import Callable, Iterable, List, Optional, Sequence, Tuple, TypeVar

import numpy as np

from echovision.core import config
from echovision.core.depth import DistanceEstimator
from echovision.core.detection import Detection, SourceTier
from echovision.core.inference import InferenceBackend
from echovision.pipeline.general_objects import GeneralObjectDetector, clean_label

logger = logging.getLogger(__name__)

T = TypeVar("T")


@dataclass(frozen=True)
class FusionResult:
    """Fused detections for one frame, highest confidence first."""

    detections: Tuple[Detection, ...] = ()
    scene: Optional[str] = None
    hazard_only: bool = False

    @property
    def labels(self) -> set[str]:
        return {d.key for d in self.detections}


def merge_detections(groups: Iterable[Sequence[Detection]], limit: int = config.FUSION_MAX_DETECTIONS) -> List[Detection]:
    """Concatenate tier outputs in priority order, drop repeated labels, rank by confidence."""
    seen: set[str] = set()
    unique: List[Detection] = []
    for group in groups:
        for detection in group:
            if detection.key in seen:
                continue
            seen.add(detection.key)
            unique.append(detection)
    # sorted() is stable, so equal confidences keep tier order
    return sorted(unique, key=lambda d: d.confidence, reverse=True)[:limit]


class DetectionFusionEngine:
    """Runs every detector for a frame concurrently and joins them into one ranked list.

    Hazards short-circuit the pipeline: when the hazard detector reports anything
    above its threshold, that set is the whole result and the lower tiers are not
    run. The scene classifier always runs alongside for context.
    """

    def __init__(
        self,
        backend: InferenceBackend,
        general_detector: Optional[GeneralObjectDetector] = None,
        obstacle_enabled: bool = config.OBSTACLE_DETECTOR_ENABLED,
        distance_estimator: Optional[DistanceEstimator] = None,
        hazard_confidence: float = config.HAZARD_CONFIDENCE,
        obstacle_confidence: float = config.OBSTACLE_CONFIDENCE,
        personal_confidence: float = config.PERSONAL_CONFIDENCE,
        personal_limit: int = config.PERSONAL_MAX_RESULTS,
        max_detections: int = config.FUSION_MAX_DETECTIONS,
        max_workers: int = config.FUSION_WORKERS,
    ):
        self.backend = backend
        self.general_detector = general_detector or GeneralObjectDetector(backend)
        self.obstacle_enabled = obstacle_enabled
        self.distance_estimator = distance_estimator
        self.hazard_confidence = hazard_confidence
        self.obstacle_confidence = obstacle_confidence
        self.personal_confidence = personal_confidence
        self.personal_limit = personal_limit
        self.max_detections = max_detections
        self._executor = ThreadPoolExecutor(max_workers=max(1, max_workers), thread_name_prefix="fusion")

    # ------------------------------------------------------------------
    # Individual tiers
    # ------------------------------------------------------------------
    def detect_hazards(self, frame: np.ndarray) -> List[Detection]:
        return [
            Detection.from_observation(obs, SourceTier.HAZARD, label=clean_label(obs.label))
            for obs in self.backend.detect(frame, "hazard")
            if obs.confidence >= self.hazard_confidence
        ]

    def detect_obstacles(self, frame: np.ndarray) -> List[Detection]:
        if not self.obstacle_enabled:
            return []
        return [
            Detection.from_observation(obs, SourceTier.OBSTACLE, label=clean_label(obs.label))
            for obs in self.backend.detect(frame, "obstacle")
            if obs.confidence >= self.obstacle_confidence
        ]

    def detect_personal_items(self, frame: np.ndarray) -> List[Detection]:
        items: List[Detection] = []
        for obs in self.backend.detect(frame, "personal"):
            if len(items) >= self.personal_limit:
                break
            if obs.confidence < self.personal_confidence or obs.label.lower() == "background":
                continue
            # Classifier output: no box, always straight ahead
            items.append(
                Detection(label=obs.label.lower(), confidence=float(obs.confidence), source_tier=SourceTier.PERSONAL)
            )
        return items

    def classify_scene(self, frame: np.ndarray) -> Optional[str]:
        observations = self.backend.detect(frame, "scene")
        if not observations:
            return None
        top = max(observations, key=lambda obs: obs.confidence)
        return clean_label(top.label) or None

    # ------------------------------------------------------------------
    def _submit(self, name: str, fn: Callable[[np.ndarray], T], frame: np.ndarray) -> "Future[T]":
        return self._executor.submit(self._guarded, name, fn, frame)

    @staticmethod
    def _guarded(name: str, fn: Callable[[np.ndarray], T], frame: np.ndarray):
        try:
            return fn(frame)
        except Exception:  # noqa: BLE001
            logger.exception("%s detector failed; treating as empty", name)
            return None

    @staticmethod
    def _join(future: "Future", default):
        result = future.result()
        return default if result is None else result

    def fuse(self, frame: np.ndarray) -> FusionResult:
        scene_future = self._submit("scene", self.classify_scene, frame)
        hazards = self._join(self._submit("hazard", self.detect_hazards, frame), [])

        if hazards:
            logger.info("Hazard detected: %s", [d.label for d in hazards])
            detections = merge_detections([hazards], self.max_detections)
            scene = scene_future.result()
            return FusionResult(tuple(self._with_distance(frame, detections)), scene, hazard_only=True)

        futures = [
            self._submit("obstacle", self.detect_obstacles, frame),
            self._submit("general", self.general_detector.detect, frame),
            self._submit("personal", self.detect_personal_items, frame),
        ]
        # Nothing is published until every tier has returned
        groups = [self._join(future, []) for future in futures]
        scene = scene_future.result()

        detections = merge_detections(groups, self.max_detections)
        if detections:
            logger.debug(
                "Fused detections: %s",
                ["%s %d%%" % (d.label, int(d.confidence * 100)) for d in detections],
            )
        return FusionResult(tuple(self._with_distance(frame, detections)), scene)

    def _with_distance(self, frame: np.ndarray, detections: List[Detection]) -> List[Detection]:
        if self.distance_estimator is None or not detections:
            return detections
        try:
            return self.distance_estimator.annotate(frame, detections)
        except Exception:  # noqa: BLE001
            logger.exception("Distance estimation failed; announcing without distances")
            return detections

    def close(self) -> None:
        self._executor.shutdown(wait=True)


__all__ = ["DetectionFusionEngine", "FusionResult", "merge_detections"]
