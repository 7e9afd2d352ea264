"""Main controller - camera loop, preview overlay and keyboard trigger."""
from __future__ import annotations

import logging
import time
from collections.abc import Sequence
from dataclasses import dataclass
from typing import Optional

try:
    import cv2
except ModuleNotFoundError as exc:
    raise RuntimeError(
        "OpenCV is required to run the NarrationController."
    ) from exc

from echovision.core import config
from echovision.core.audio import AudioPlayer, Priority, SilentSpeaker, Speaker
from echovision.core.depth import DistanceEstimator
from echovision.core.detection import Detection
from echovision.core.inference import InferenceBackend, UltralyticsBackend
from echovision.core.settings import DEFAULT_SETTINGS, Settings
from echovision.pipeline.fusion import DetectionFusionEngine
from echovision.session import NarrationSession


logger = logging.getLogger(__name__)


@dataclass
class OverlayMessage:
    """temp message to show on screen"""
    text: str
    expires_at: float


class NarrationController:
    WINDOW_NAME = "EchoVision"

    def __init__(
        self,
        camera_index: Optional[int] = None,
        audio_enabled: Optional[bool] = None,
        obstacles_enabled: Optional[bool] = None,
        depth_enabled: Optional[bool] = None,
        settings: Settings = DEFAULT_SETTINGS,
        backend: Optional[InferenceBackend] = None,
    ):
        self.camera_index = camera_index if camera_index is not None else config.DEFAULT_CAMERA_INDEX
        default_audio = config.AUDIO_ENABLED
        self.audio_enabled = default_audio if audio_enabled is None else (audio_enabled and default_audio)
        self.settings = settings

        self.speaker: Speaker
        if self.audio_enabled:
            try:
                self.speaker = AudioPlayer(settings=settings)
            except Exception as exc:  # noqa: BLE001
                logger.warning("Audio player initialization failed: %s", exc)
                self.speaker = SilentSpeaker()
        else:
            self.speaker = SilentSpeaker()

        use_depth = config.DEPTH_ENABLED if depth_enabled is None else depth_enabled
        engine = DetectionFusionEngine(
            backend or UltralyticsBackend(),
            obstacle_enabled=config.OBSTACLE_DETECTOR_ENABLED if obstacles_enabled is None else obstacles_enabled,
            distance_estimator=DistanceEstimator() if use_depth else None,
        )
        self.session = NarrationSession(engine, self.speaker, settings=settings)

        self.overlays: list[OverlayMessage] = []
        self.fps_counter = 0
        self.fps_last_time = time.time()
        self.fps_value = 0.0

    def _add_overlay(self, text: str, duration: float = 4.0) -> None:
        expiry = time.time() + duration
        self.overlays.append(OverlayMessage(text=text, expires_at=expiry))

    def _active_overlays(self) -> list[str]:
        now = time.time()
        active: list[OverlayMessage] = []
        messages: list[str] = []
        for overlay in self.overlays:
            if overlay.expires_at > now:
                active.append(overlay)
                messages.append(overlay.text)
        self.overlays = active
        return messages

    def _update_fps(self) -> None:
        self.fps_counter += 1
        if self.fps_counter >= 20:
            now = time.time()
            elapsed = now - self.fps_last_time
            if elapsed > 0:
                self.fps_value = self.fps_counter / elapsed
            self.fps_counter = 0
            self.fps_last_time = now

    def _info_lines(self) -> list[str]:
        state = self.session.state
        lines = [f"Light:{state.lighting_quality.value} Stable:{'yes' if state.is_camera_stable else 'no'}"]
        if state.current_scene:
            lines.append(f"Scene: {state.current_scene}")
        for det in self.session.detections[:4]:
            stable = "*" if self.session.tracker.is_stable(det.label) else ""
            lines.append(f"{det.label}{stable} {det.confidence * 100:.0f}% {det.direction.value}")
        return lines

    def _draw_detections(self, frame, detections: Sequence[Detection]) -> None:
        h, w = frame.shape[:2]
        for det in detections:
            box = det.bounding_box
            if box is None:
                continue
            color = config.BOX_COLORS.get(det.source_tier.value, (255, 255, 255))
            x1, y1 = int(box.x * w), int(box.y * h)
            x2, y2 = int((box.x + box.width) * w), int((box.y + box.height) * h)
            cv2.rectangle(frame, (x1, y1), (x2, y2), color, config.BOUNDING_BOX_THICKNESS)
            cv2.putText(
                frame,
                f"{det.label} {det.confidence * 100:.0f}%",
                (x1, max(20, y1 - 10)),
                cv2.FONT_HERSHEY_SIMPLEX,
                0.5,
                color,
                1,
            )

    def _draw_overlay_text(self, frame, info_lines: Sequence[str], extra_lines: Sequence[str]) -> None:
        h, w = frame.shape[:2]
        header_y = 20
        if config.DISPLAY_FPS:
            fps_text = f"FPS:{self.fps_value:.0f}" if self.fps_value else "FPS:--"
            cv2.putText(frame, fps_text, (w - 60, header_y), cv2.FONT_HERSHEY_SIMPLEX, 0.4, (0, 255, 0), 1)

        lines_to_draw: list[str] = list(info_lines) + list(extra_lines)

        bottom_y = h - 5
        cv2.putText(frame, config.HINT_TEXT, (5, bottom_y), cv2.FONT_HERSHEY_SIMPLEX, 0.35, (200, 200, 200), 1)

        bottom_y -= 18
        for line in reversed(lines_to_draw[-6:]):
            cv2.putText(frame, line, (5, bottom_y), cv2.FONT_HERSHEY_SIMPLEX, 0.4, (255, 255, 255), 1)
            bottom_y -= 16

    def run(self) -> None:
        logger.info("Starting EchoVision controller (camera %s)", self.camera_index)
        cv2.namedWindow(self.WINDOW_NAME, cv2.WINDOW_NORMAL)

        capture = cv2.VideoCapture(self.camera_index)
        if not capture.isOpened():
            logger.error("Unable to open camera index %s", self.camera_index)
            self.session.close()
            self.speaker.shutdown()
            return

        if config.FRAME_WIDTH:
            capture.set(cv2.CAP_PROP_FRAME_WIDTH, config.FRAME_WIDTH)
        if config.FRAME_HEIGHT:
            capture.set(cv2.CAP_PROP_FRAME_HEIGHT, config.FRAME_HEIGHT)

        self._add_overlay("System Ready.", duration=3.0)
        self.speaker.speak("EchoVision ready.", Priority.NORMAL)

        try:
            while True:
                ret, frame = capture.read()
                if not ret:
                    logger.warning("Camera frame grab failed, stopping controller")
                    break

                now = time.monotonic()
                self.session.offer_frame(frame)
                self.session.poll(now)

                display_frame = frame.copy()
                self._draw_detections(display_frame, self.session.detections)
                self._update_fps()
                self._draw_overlay_text(display_frame, self._info_lines(), self._active_overlays())
                cv2.imshow(self.WINDOW_NAME, display_frame)

                key = cv2.waitKey(1) & 0xFF
                if key == ord("q"):
                    logger.info("Quit requested by user")
                    break

                if key in (ord(" "), ord("a"), ord("A")):
                    self._add_overlay("Announcing...", duration=2.0)
                    self.session.announce_now(time.monotonic())
                elif key in (ord("t"), ord("T")):
                    self._add_overlay("TTS Test", duration=2.0)
                    self.speaker.speak("Audio check one two three.", Priority.NORMAL)

            logger.info("Controller loop exited")
        finally:
            capture.release()
            cv2.destroyAllWindows()
            self.session.close()
            self.speaker.shutdown()


__all__ = ["NarrationController"]
