"""Per-session narration state: frame sampling, fusion hand-off and announcement timing."""
from __future__ import annotations

import logging
from concurrent.futures import Future, ThreadPoolExecutor, wait
from typing import Callable, List, Optional, Tuple

import numpy as np

from echovision.core import config
from echovision.core.audio import Speaker
from echovision.core.detection import Detection
from echovision.core.settings import DEFAULT_SETTINGS, Settings
from echovision.narration.composer import AnnouncementComposer
from echovision.narration.scheduler import AnnouncementScheduler, ScheduledUtterance
from echovision.pipeline.fusion import DetectionFusionEngine, FusionResult
from echovision.pipeline.lighting import SceneMonitor, SceneState
from echovision.pipeline.stability import StabilityTracker

logger = logging.getLogger(__name__)


class NarrationSession:
    """Owns all detection state for one capture session.

    Only every ``process_every``-th frame is sampled, and a sampled frame is
    dropped while the previous fusion pass is still running. Fusion happens on
    a worker thread; its result is applied in :meth:`poll` on the caller's
    thread, which is also where the scheduler runs, so no state here needs a
    lock.
    """

    def __init__(
        self,
        engine: DetectionFusionEngine,
        speaker: Speaker,
        settings: Settings = DEFAULT_SETTINGS,
        process_every: int = config.PROCESS_EVERY_N_FRAMES,
        monitor: Optional[SceneMonitor] = None,
        tracker: Optional[StabilityTracker] = None,
        composer: Optional[AnnouncementComposer] = None,
        haptics: Optional[Callable[[], None]] = None,
    ):
        self.engine = engine
        self.speaker = speaker
        self.settings = settings
        self.process_every = max(1, process_every)
        self.monitor = monitor or SceneMonitor()
        self.tracker = tracker or StabilityTracker()
        self.composer = composer or AnnouncementComposer(settings=settings)
        self.scheduler = AnnouncementScheduler(
            self.composer,
            speaker,
            self.tracker,
            settings=settings,
            haptics=haptics,
        )

        self._worker = ThreadPoolExecutor(max_workers=1, thread_name_prefix="fusion-pass")
        self._in_flight: Optional[Future] = None
        self.frame_count = 0
        self.dropped_frames = 0
        self.detections: Tuple[Detection, ...] = ()

    @property
    def busy(self) -> bool:
        return self._in_flight is not None

    @property
    def state(self) -> SceneState:
        return self.monitor.state

    def offer_frame(self, frame: np.ndarray) -> bool:
        """Hand a camera frame to the session. Returns True if a fusion pass started."""
        self.frame_count += 1
        if self.frame_count % self.process_every != 0:
            return False
        if self.busy:
            self.dropped_frames += 1
            logger.debug("Fusion busy, dropping sampled frame %d", self.frame_count)
            return False

        self.monitor.analyze(frame)
        self._in_flight = self._worker.submit(self.engine.fuse, frame)
        return True

    def collect(self) -> Optional[FusionResult]:
        """Apply a finished fusion pass, if any."""
        future = self._in_flight
        if future is None or not future.done():
            return None
        self._in_flight = None
        try:
            result = future.result()
        except Exception:  # noqa: BLE001
            logger.exception("Fusion pass failed")
            return None
        self._apply(result)
        return result

    def _apply(self, result: FusionResult) -> None:
        self.detections = result.detections
        self.tracker.update(result.labels)
        self.monitor.set_scene(result.scene)

    def poll(self, now: float) -> List[ScheduledUtterance]:
        """Consumer-thread step: apply results, run the timer, release due speech."""
        self.collect()
        scheduled = self.scheduler.tick(now, self.detections, self.state)
        self.scheduler.pump(now)
        return scheduled

    def announce_now(self, now: float) -> List[ScheduledUtterance]:
        self.collect()
        logger.info("Manual announcement requested")
        return self.scheduler.announce_now(now, self.detections, self.state)

    def drain(self, timeout: Optional[float] = None) -> Optional[FusionResult]:
        """Block until the in-flight pass (if any) finishes and apply it."""
        future = self._in_flight
        if future is None:
            return None
        wait([future], timeout=timeout)
        return self.collect()

    def reset(self) -> None:
        # A pass still running has its result ignored
        self._in_flight = None
        self.frame_count = 0
        self.detections = ()
        self.tracker.reset()
        self.monitor.reset()
        self.scheduler.reset()
        logger.info("Narration session reset")

    def close(self) -> None:
        self.reset()
        self._worker.shutdown(wait=True)
        self.engine.close()


__all__ = ["NarrationSession"]
