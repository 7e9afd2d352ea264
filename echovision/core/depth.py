"""Distance estimation for boxed detections using a monocular depth model."""
from __future__ import annotations

import logging
from dataclasses import replace
from typing import Any, List, Optional, Sequence

import numpy as np

from echovision.core import config
from echovision.core.detection import Detection

logger = logging.getLogger(__name__)


def relative_depth_to_feet(closeness: float, max_feet: float = config.DEPTH_MAX_FEET) -> float:
    """Convert normalized inverse depth (1 = nearest) into a rough distance in feet."""
    closeness = min(1.0, max(0.0, float(closeness)))
    return max(1.0, (1.0 - closeness) * max_feet)


class DistanceEstimator:
    """Attaches approximate distances to detections that carry a bounding box."""

    def __init__(self, device: str | None = None, model_name: str | None = None):
        self.device = device or "cpu"
        self.model_name = model_name or config.DEPTH_MODEL
        self.processor = None
        self.model = None
        self._torch: Any | None = None

    def _ensure_loaded(self):
        if self.processor is not None and self.model is not None:
            return
        try:
            import os
            import warnings
            os.environ['TRANSFORMERS_VERBOSITY'] = 'error'
            warnings.filterwarnings('ignore', category=FutureWarning)
            import torch  # pylint: disable=import-error
            from transformers import (  # pylint: disable=import-error
                DPTForDepthEstimation,
                DPTImageProcessor,
            )
        except ImportError as exc:
            raise RuntimeError(
                "Distance estimation requires the optional 'advanced' dependencies."
                " Install them via 'pip install .[advanced]' before passing --depth."
            ) from exc

        if self.device == "cpu" and torch.cuda.is_available():
            self.device = "cuda"

        logger.info("Loading depth estimation model (%s)", self.device)
        processor = DPTImageProcessor.from_pretrained(self.model_name)
        model = DPTForDepthEstimation.from_pretrained(self.model_name)
        model = model.to(self.device)
        model.eval()

        self.processor = processor
        self.model = model
        self._torch = torch
        logger.info("Depth estimation model ready")

    def compute_depth(self, frame: np.ndarray) -> np.ndarray:
        """Return a map the size of ``frame`` where 1.0 is nearest and 0.0 farthest."""
        import cv2

        self._ensure_loaded()
        assert self.processor is not None and self.model is not None  # For type checkers
        rgb = cv2.cvtColor(frame, cv2.COLOR_BGR2RGB)
        inputs = self.processor(images=rgb, return_tensors="pt").to(self.device)
        assert self._torch is not None
        with self._torch.no_grad():
            outputs = self.model(**inputs)
            pred = outputs.predicted_depth
        depth = pred.squeeze().cpu().numpy()
        depth = cv2.resize(depth, (frame.shape[1], frame.shape[0]))
        depth = depth - depth.min()
        if depth.max() > 0:
            depth = depth / depth.max()
        return depth

    @staticmethod
    def distance_for(depth_map: np.ndarray, detection: Detection) -> Optional[float]:
        box = detection.bounding_box
        if box is None:
            return None
        h, w = depth_map.shape[:2]
        x1 = int(max(0.0, box.x) * w)
        y1 = int(max(0.0, box.y) * h)
        x2 = int(min(1.0, box.x + box.width) * w)
        y2 = int(min(1.0, box.y + box.height) * h)
        region = depth_map[y1:max(y2, y1 + 1), x1:max(x2, x1 + 1)]
        if region.size == 0:
            return None
        # Median is robust to background pixels at the box edges
        return round(relative_depth_to_feet(float(np.median(region))), 1)

    def annotate(self, frame: np.ndarray, detections: Sequence[Detection]) -> List[Detection]:
        if not any(d.bounding_box is not None for d in detections):
            return list(detections)
        depth_map = self.compute_depth(frame)
        return [replace(d, distance=self.distance_for(depth_map, d)) for d in detections]
