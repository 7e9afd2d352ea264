"""Read-only user preferences consumed by the narration pipeline."""
from __future__ import annotations

from dataclasses import dataclass

from echovision.core import config


@dataclass(frozen=True)
class Settings:
    """Preference snapshot. Owned by the host application, never mutated here."""

    speech_rate: float = config.SPEECH_RATE
    announce_distance: bool = config.ANNOUNCE_DISTANCE
    haptic_feedback: bool = config.HAPTIC_FEEDBACK

    @property
    def slow_speech(self) -> bool:
        # Rate slider runs 0.3 (slow) to 0.7 (fast)
        return self.speech_rate < 0.4


DEFAULT_SETTINGS = Settings()
