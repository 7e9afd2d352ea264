"""Inference backends producing raw observations per model id."""
from __future__ import annotations

import logging
import threading
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional, Union

import numpy as np

from echovision.core import config
from echovision.core.detection import BoundingBox, RawObservation

logger = logging.getLogger(__name__)


class InferenceBackend(ABC):
    """Runs a named model on a frame.

    Implementations must return an empty list for a model that is missing or
    failed to load instead of raising.
    """

    @abstractmethod
    def detect(self, frame: np.ndarray, model_id: str) -> List[RawObservation]:  # pragma: no cover - interface only
        raise NotImplementedError

    def is_available(self, model_id: str) -> bool:
        return True


class UltralyticsBackend(InferenceBackend):
    """YOLO detectors and classifiers loaded lazily from ``config.MODEL_PATHS``."""

    def __init__(
        self,
        model_paths: Optional[Mapping[str, Union[str, Path]]] = None,
        device: Optional[str] = None,
        classifier_top_k: int = config.CLASSIFIER_TOP_K,
    ):
        self.model_paths: Dict[str, Union[str, Path]] = dict(model_paths or config.MODEL_PATHS)
        self.device = device or config.INFERENCE_DEVICE
        self.classifier_top_k = classifier_top_k
        self._models: Dict[str, Any] = {}
        self._failed: set[str] = set()
        self._lock = threading.Lock()

    def _ensure_model(self, model_id: str):
        with self._lock:
            if model_id in self._models:
                return self._models[model_id]
            if model_id in self._failed:
                return None

            path = self.model_paths.get(model_id)
            if path is None:
                logger.warning("No weights configured for model '%s'", model_id)
                self._failed.add(model_id)
                return None
            # Bare names like "yolov8n.pt" are resolved by ultralytics itself
            if isinstance(path, Path) and not path.exists():
                logger.warning("Model '%s' not found at %s; detector disabled", model_id, path)
                self._failed.add(model_id)
                return None

            try:
                from ultralytics import YOLO

                logger.info("Loading %s model from: %s", model_id, path)
                model = YOLO(str(path))
            except Exception as exc:  # noqa: BLE001
                logger.error("Failed to load %s model: %s", model_id, exc)
                self._failed.add(model_id)
                return None

            self._models[model_id] = model
            logger.info("%s model loaded", model_id)
            return model

    def is_available(self, model_id: str) -> bool:
        return self._ensure_model(model_id) is not None

    def detect(self, frame: np.ndarray, model_id: str) -> List[RawObservation]:
        model = self._ensure_model(model_id)
        if model is None:
            return []

        results = model(frame, device=self.device, verbose=False)
        if not results:
            return []
        result = results[0]

        if getattr(result, "probs", None) is not None:
            return self._parse_classification(result, model.names, self.classifier_top_k)
        return self._parse_boxes(result, model.names)

    @staticmethod
    def _parse_boxes(result, names) -> List[RawObservation]:
        observations: List[RawObservation] = []
        boxes = result.boxes
        if boxes is None:
            return observations
        for box in boxes:
            cls_id = int(box.cls[0])
            label = names.get(cls_id, f"cls_{cls_id}")
            conf = float(box.conf[0])
            x1, y1, x2, y2 = (float(v) for v in box.xyxyn[0])
            observations.append(
                RawObservation(label=label, confidence=conf, box=BoundingBox.from_xyxy(x1, y1, x2, y2))
            )
        return observations

    @staticmethod
    def _parse_classification(result, names, top_k: int = config.CLASSIFIER_TOP_K) -> List[RawObservation]:
        # probs.top5 would cut the list below the classifier cap
        data = result.probs.data
        scores = np.asarray(data.cpu().numpy() if hasattr(data, "cpu") else data, dtype=float).ravel()
        order = np.argsort(-scores, kind="stable")[:top_k]
        return [
            RawObservation(label=names.get(int(cls_id), f"cls_{cls_id}"), confidence=float(scores[cls_id]))
            for cls_id in order
        ]


__all__ = ["InferenceBackend", "UltralyticsBackend"]
