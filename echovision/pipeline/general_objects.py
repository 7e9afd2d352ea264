"""General-object tier: box detector plus a whole-frame classifier fallback.

The box detector's vocabulary misses many small desk objects, so the
whole-frame classifier always runs too and contributes labels from a fixed
everyday-object vocabulary.
"""
from __future__ import annotations

import logging
from typing import Iterable, List, Optional

import numpy as np

from echovision.core import config
from echovision.core.detection import Detection, RawObservation, SourceTier
from echovision.core.inference import InferenceBackend

logger = logging.getLogger(__name__)

EVERYDAY_KEYWORDS = (
    "laptop", "computer", "keyboard", "mouse", "monitor", "screen", "television",
    "lamp", "pen", "pencil", "bottle", "cup", "mug", "glass", "book", "phone",
    "remote", "clock", "door", "table", "desk", "chair", "bed", "couch", "sofa",
    "backpack", "bag", "scissors", "plate", "bowl", "spoon", "fork", "umbrella",
    "wallet", "watch", "sink", "toilet", "refrigerator", "microwave", "oven",
)

# Classifier labels that contain a keyword but name something else
KEYWORD_FALSE_FRIENDS = frozenset({
    "king penguin", "mousetrap", "carpenter's kit", "pendulum", "bagel",
    "bedlington terrier", "forklift", "bookshop",
})

SYNONYMS = {
    "notebook": "laptop",
    "notebook computer": "laptop",
    "desktop computer": "computer",
    "computer keyboard": "keyboard",
    "typewriter keyboard": "keyboard",
    "computer mouse": "mouse",
    "coffee mug": "cup",
    "mug": "cup",
    "beer glass": "glass",
    "water bottle": "bottle",
    "pop bottle": "bottle",
    "wine bottle": "bottle",
    "table lamp": "lamp",
    "ballpoint": "pen",
    "ballpoint pen": "pen",
    "fountain pen": "pen",
    "cellular telephone": "phone",
    "cell phone": "phone",
    "dial telephone": "phone",
    "remote control": "remote",
    "wall clock": "clock",
    "analog clock": "clock",
    "digital clock": "clock",
    "sliding door": "door",
    "dining table": "table",
    "folding chair": "chair",
    "rocking chair": "chair",
    "barber chair": "chair",
    "studio couch": "couch",
    "four-poster": "bed",
    "screen": "monitor",
    "digital watch": "watch",
    "microwave oven": "microwave",
}

EXCLUDED_CLASSES = frozenset({
    # vehicles
    "bicycle", "car", "motorcycle", "motorbike", "airplane", "aeroplane", "bus", "train",
    "truck", "boat", "traffic light", "fire hydrant", "stop sign", "parking meter",
    # animals
    "bird", "cat", "dog", "horse", "sheep", "cow", "elephant", "bear", "zebra", "giraffe",
    # sports equipment
    "frisbee", "skis", "snowboard", "sports ball", "kite", "baseball bat",
    "baseball glove", "skateboard", "surfboard", "tennis racket",
})


def clean_label(label: str) -> str:
    return " ".join(label.replace("_", " ").split()).lower()


def normalize_classifier_label(label: str) -> Optional[str]:
    """Return the everyday-object name for a classifier label, or None if off-vocabulary."""
    cleaned = clean_label(label)
    if cleaned in SYNONYMS:
        return SYNONYMS[cleaned]
    if cleaned in KEYWORD_FALSE_FRIENDS:
        return None
    if not any(keyword in cleaned for keyword in EVERYDAY_KEYWORDS):
        return None
    return cleaned


class GeneralObjectDetector:
    """Runs the ``general`` box detector and the ``classifier`` model for one frame."""

    def __init__(
        self,
        backend: InferenceBackend,
        box_model: str = "general",
        classifier_model: str = "classifier",
        box_confidence: float = config.GENERAL_CONFIDENCE,
        classifier_confidence: float = config.CLASSIFIER_CONFIDENCE,
        classifier_limit: int = config.CLASSIFIER_MAX_RESULTS,
        excluded: Iterable[str] = EXCLUDED_CLASSES,
    ):
        self.backend = backend
        self.box_model = box_model
        self.classifier_model = classifier_model
        self.box_confidence = box_confidence
        self.classifier_confidence = classifier_confidence
        self.classifier_limit = classifier_limit
        self.excluded = frozenset(label.lower() for label in excluded)

    def _box_detections(self, frame: np.ndarray) -> List[Detection]:
        detections = []
        for obs in self.backend.detect(frame, self.box_model):
            label = clean_label(obs.label)
            if obs.confidence < self.box_confidence or label in self.excluded:
                continue
            detections.append(Detection.from_observation(obs, SourceTier.GENERAL, label=label))
        return detections

    def _classifier_detections(self, frame: np.ndarray) -> List[Detection]:
        detections: List[Detection] = []
        for obs in self.backend.detect(frame, self.classifier_model):
            if len(detections) >= self.classifier_limit:
                break
            if obs.confidence < self.classifier_confidence:
                continue
            label = normalize_classifier_label(obs.label)
            if label is None:
                continue
            detections.append(self._whole_frame(obs, label))
        return detections

    @staticmethod
    def _whole_frame(obs: RawObservation, label: str) -> Detection:
        # Classifier sees the whole frame, so there is no box to place it with
        return Detection(label=label, confidence=float(obs.confidence), source_tier=SourceTier.GENERAL)

    def detect(self, frame: np.ndarray) -> List[Detection]:
        boxed = self._box_detections(frame)
        classified = self._classifier_detections(frame)
        if boxed or classified:
            logger.debug(
                "General objects: boxes=%s classifier=%s",
                [d.label for d in boxed],
                [d.label for d in classified],
            )
        return boxed + classified
