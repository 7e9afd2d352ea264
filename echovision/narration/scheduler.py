"""Timer-driven and on-demand announcement cycles over one speech channel."""
from __future__ import annotations

import logging
from collections import deque
from dataclasses import dataclass
from typing import Callable, Deque, Iterable, List, Optional, Sequence, Tuple

from echovision.core import config
from echovision.core.audio import Priority, Speaker
from echovision.core.detection import Detection
from echovision.core.settings import DEFAULT_SETTINGS, Settings
from echovision.narration.composer import AnnouncementComposer, Utterance
from echovision.pipeline.lighting import SceneState
from echovision.pipeline.stability import StabilityTracker

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ScheduledUtterance:
    text: str
    priority: Priority
    due: float
    keys: Tuple[str, ...] = ()
    pan: float = 0.0


class AnnouncementScheduler:
    """Feeds composed utterances to the speaker.

    The automatic path fires every ``interval`` seconds, narrates only stable
    detections and skips the cycle while speech is still playing. The manual
    path runs whenever the user asks, uses the raw detections and never waits.
    Utterances of one cycle are spaced ``spacing`` seconds apart; call
    :meth:`pump` regularly from the same thread to release them.
    """

    def __init__(
        self,
        composer: AnnouncementComposer,
        speaker: Speaker,
        tracker: StabilityTracker,
        settings: Settings = DEFAULT_SETTINGS,
        interval: float = config.ANNOUNCE_INTERVAL_SECONDS,
        spacing: float = config.UTTERANCE_SPACING_SECONDS,
        hold_after: float = config.ANNOUNCE_COOLDOWN_SECONDS,
        haptics: Optional[Callable[[], None]] = None,
    ):
        self.composer = composer
        self.speaker = speaker
        self.tracker = tracker
        self.settings = settings
        self.interval = interval
        self.spacing = spacing
        self.hold_after = hold_after
        self.haptics = haptics
        self._pending: Deque[ScheduledUtterance] = deque()
        self._next_auto: Optional[float] = None
        self.skipped_cycles = 0

    @property
    def pending(self) -> List[ScheduledUtterance]:
        return list(self._pending)

    def start(self, now: float) -> None:
        self._next_auto = now + self.interval

    def tick(self, now: float, detections: Sequence[Detection], state: SceneState) -> List[ScheduledUtterance]:
        """Run the automatic cycle if the timer is due."""
        if self._next_auto is None:
            self.start(now)
            return []
        if now < self._next_auto:
            return []
        # Missed periods are not replayed
        while self._next_auto <= now:
            self._next_auto += self.interval
        return self.run_automatic(now, detections, state)

    def run_automatic(self, now: float, detections: Sequence[Detection], state: SceneState) -> List[ScheduledUtterance]:
        if self.speaker.is_speaking or self._pending:
            self.skipped_cycles += 1
            logger.debug("Speech busy, skipping automatic cycle")
            return []

        prompt = self.composer.corrective_prompt(state)
        if prompt is not None:
            return self._dispatch([prompt], (), now)

        stable = self.tracker.stable_detections(detections)
        composition = self.composer.compose(
            stable,
            stability_filter=True,
            scene=state.current_scene,
            lighting_quality=state.lighting_quality,
            now=now,
        )
        if not composition:
            return []
        return self._dispatch(composition.utterances, composition.keys, now)

    def announce_now(self, now: float, detections: Sequence[Detection], state: SceneState) -> List[ScheduledUtterance]:
        """Manual trigger: narrate the unfiltered detections immediately."""
        if self._pending:
            logger.debug("Manual announcement replaces %d pending utterances", len(self._pending))
            self._drop_pending()

        prompt = self.composer.corrective_prompt(state)
        if prompt is not None:
            return self._dispatch([prompt], (), now)

        composition = self.composer.compose(
            list(detections),
            stability_filter=False,
            scene=state.current_scene,
            lighting_quality=state.lighting_quality,
            now=now,
        )
        return self._dispatch(composition.utterances, composition.keys, now)

    def _drop_pending(self) -> None:
        # Items never spoken must not stay on cool-down
        for item in self._pending:
            self.composer.recent.release(item.keys)
        self._pending.clear()

    def _dispatch(self, utterances: Sequence[Utterance], keys: Iterable[str], now: float) -> List[ScheduledUtterance]:
        scheduled = [
            ScheduledUtterance(u.text, u.priority, now + index * self.spacing, u.keys, u.pan)
            for index, u in enumerate(utterances)
        ]
        if not scheduled:
            return scheduled
        keys = tuple(keys)
        if keys:
            # Suppress this cycle's items until well after its last utterance
            self.composer.recent.hold(keys, scheduled[-1].due + self.hold_after)
        self._pending.extend(scheduled)
        self.pump(now)
        return scheduled

    def pump(self, now: float) -> int:
        """Send every utterance whose delay has elapsed to the speaker."""
        sent = 0
        while self._pending and self._pending[0].due <= now:
            self._speak(self._pending.popleft())
            sent += 1
        return sent

    def _speak(self, item: ScheduledUtterance) -> None:
        if item.priority >= Priority.CRITICAL and self.haptics is not None and self.settings.haptic_feedback:
            try:
                self.haptics()
            except Exception:  # noqa: BLE001
                logger.exception("Haptic feedback failed")
        logger.info("Announcing: %s", item.text)
        self.speaker.speak(item.text, item.priority, item.pan)

    def reset(self) -> None:
        self._pending.clear()
        self._next_auto = None
        self.skipped_cycles = 0
        self.composer.reset()


__all__ = ["AnnouncementScheduler", "ScheduledUtterance"]
