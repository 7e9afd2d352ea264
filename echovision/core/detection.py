"""Detection values shared by the fusion engine and the narration layer.

Bounding boxes are normalized to the source frame and stored as
``(x, y, width, height)`` with each value in ``[0.0, 1.0]``.
"""
from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Optional

from echovision.core import config


class Direction(str, Enum):
    """Horizontal position of a detection relative to the camera."""

    LEFT = "left"
    CENTER = "center"
    RIGHT = "right"

    @property
    def phrase(self) -> str:
        return _DIRECTION_PHRASES[self]


_DIRECTION_PHRASES = {
    Direction.LEFT: "on your left",
    Direction.CENTER: "in front",
    Direction.RIGHT: "on your right",
}


class SourceTier(str, Enum):
    """Detector family a detection came from, highest priority first."""

    HAZARD = "hazard"
    OBSTACLE = "obstacle"
    GENERAL = "general"
    PERSONAL = "personal"


@dataclass(frozen=True)
class BoundingBox:
    x: float
    y: float
    width: float
    height: float

    @property
    def center_x(self) -> float:
        return self.x + self.width / 2

    @classmethod
    def from_xyxy(cls, x1: float, y1: float, x2: float, y2: float) -> "BoundingBox":
        return cls(x=x1, y=y1, width=max(0.0, x2 - x1), height=max(0.0, y2 - y1))


@dataclass(frozen=True)
class RawObservation:
    """One labeled output of a single model invocation."""

    label: str
    confidence: float
    box: Optional[BoundingBox] = None


def direction_from_box(box: Optional[BoundingBox]) -> Direction:
    """Map a box's horizontal center to left / center / right."""
    if box is None:
        return Direction.CENTER
    center_x = box.center_x
    if center_x < config.DIRECTION_LEFT_THRESHOLD:
        return Direction.LEFT
    if center_x > config.DIRECTION_RIGHT_THRESHOLD:
        return Direction.RIGHT
    return Direction.CENTER


@dataclass(frozen=True)
class Detection:
    """A fused detection ready for narration."""

    label: str
    confidence: float
    source_tier: SourceTier
    bounding_box: Optional[BoundingBox] = None
    direction: Direction = Direction.CENTER
    distance: Optional[float] = None

    @classmethod
    def from_observation(
        cls,
        observation: RawObservation,
        tier: SourceTier,
        label: Optional[str] = None,
    ) -> "Detection":
        return cls(
            label=label if label is not None else observation.label,
            confidence=float(observation.confidence),
            source_tier=tier,
            bounding_box=observation.box,
            direction=direction_from_box(observation.box),
        )

    @property
    def key(self) -> str:
        """Case-insensitive identity used for deduplication and stability."""
        return self.label.lower()

    @property
    def announcement_key(self) -> str:
        return f"{self.key}|{self.direction.value}"

    @property
    def is_hazard(self) -> bool:
        return self.source_tier is SourceTier.HAZARD

    @property
    def is_personal(self) -> bool:
        return self.source_tier is SourceTier.PERSONAL
