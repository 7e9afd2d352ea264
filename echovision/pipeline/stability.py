"""Rolling per-label presence counters that filter out flickering detections."""
from __future__ import annotations

import logging
from typing import Dict, Iterable, List, Optional, Sequence

from echovision.core import config
from echovision.core.detection import Detection

logger = logging.getLogger(__name__)


class StabilityTracker:
    """Counts how many recent sampled frames each label appeared in.

    A label gains one point per frame it is present in and loses one per frame
    it is missing from; entries that drop to zero are pruned. Counts are capped
    at ``max_count`` so a long-visible object loses stability soon after it
    leaves the view.
    """

    def __init__(self, threshold: int = config.STABILITY_THRESHOLD, max_count: Optional[int] = None):
        if threshold < 1:
            raise ValueError("threshold must be at least 1")
        self.threshold = threshold
        self.max_count = max(max_count or threshold, threshold)
        self._counts: Dict[str, int] = {}

    def update(self, labels: Iterable[str]) -> None:
        present = {label.lower() for label in labels}
        for label in present:
            self._counts[label] = min(self._counts.get(label, 0) + 1, self.max_count)
        for label in list(self._counts):
            if label in present:
                continue
            remaining = self._counts[label] - 1
            if remaining <= 0:
                del self._counts[label]
            else:
                self._counts[label] = remaining

    def count(self, label: str) -> int:
        return self._counts.get(label.lower(), 0)

    def is_stable(self, label: str, threshold: Optional[int] = None) -> bool:
        return self.count(label) >= (threshold or self.threshold)

    def stable_detections(self, detections: Sequence[Detection], threshold: Optional[int] = None) -> List[Detection]:
        return [d for d in detections if self.is_stable(d.label, threshold)]

    def snapshot(self) -> Dict[str, int]:
        return dict(self._counts)

    def reset(self) -> None:
        self._counts.clear()
