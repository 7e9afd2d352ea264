"""TTS using gTTS + pygame, one serialized speech channel with priority preemption."""
from __future__ import annotations

import logging
import os
import tempfile
import time
from abc import ABC, abstractmethod
from enum import IntEnum
from pathlib import Path
from queue import Empty, Full, Queue
from threading import Event, Thread
from typing import Optional, Tuple

from echovision.core import config
from echovision.core.settings import DEFAULT_SETTINGS, Settings

os.environ.setdefault("PYGAME_HIDE_SUPPORT_PROMPT", "1")

logger = logging.getLogger(__name__)


class Priority(IntEnum):
    LOW = 0
    NORMAL = 1
    HIGH = 2
    CRITICAL = 3


def stereo_volumes(pan: float) -> Tuple[float, float]:
    """Left and right channel volume for a pan in [-1, 1]."""
    pan = min(1.0, max(-1.0, float(pan)))
    return min(1.0, 1.0 - pan), min(1.0, 1.0 + pan)


class Speaker(ABC):
    """Speech channel. ``CRITICAL`` interrupts the current utterance, others wait.

    ``pan`` runs from -1.0 (left ear) to 1.0 (right ear).
    """

    @abstractmethod
    def speak(self, text: str, priority: Priority = Priority.NORMAL, pan: float = 0.0) -> None:  # pragma: no cover - interface only
        raise NotImplementedError

    @property
    @abstractmethod
    def is_speaking(self) -> bool:  # pragma: no cover - interface only
        raise NotImplementedError

    def shutdown(self) -> None:
        return


class SilentSpeaker(Speaker):
    """Logs utterances instead of playing them (audio disabled)."""

    def speak(self, text: str, priority: Priority = Priority.NORMAL, pan: float = 0.0) -> None:
        logger.info("Speech [%s, pan %.1f]: %s", priority.name.lower(), pan, text)

    @property
    def is_speaking(self) -> bool:
        return False


class AudioPlayer(Speaker):
    """Plays TTS in background thread so video doesnt freeze."""

    def __init__(self, settings: Settings = DEFAULT_SETTINGS, language: str = config.TTS_LANGUAGE):
        self.settings = settings
        self.language = language
        self._pygame_initialized = False
        self.queue: Queue[Optional[Tuple[str, Priority, float]]] = Queue(maxsize=config.TTS_QUEUE_SIZE)
        self._stop = Event()
        self._interrupt = Event()
        self._playing = Event()
        self.worker_thread = Thread(target=self._worker, daemon=True)
        self.worker_thread.start()
        logger.info("Audio player ready (slow=%s)", self.settings.slow_speech)

    @property
    def is_speaking(self) -> bool:
        return self._playing.is_set() or not self.queue.empty()

    def _worker(self):
        while not self._stop.is_set():
            try:
                item = self.queue.get(timeout=0.5)
                if item is None:  # Poison pill
                    self.queue.task_done()
                    break

                text, priority, pan = item
                self._interrupt.clear()
                logger.debug("Playing audio (%s): %s", priority.name.lower(), text)

                self._playing.set()
                try:
                    self._ensure_pygame()
                    self._speak_gtts(text, pan)
                finally:
                    self._playing.clear()
                    self.queue.task_done()
            except Empty:
                continue
            except Exception as exc:  # noqa: BLE001
                if not self._stop.is_set():
                    logger.exception("Audio playback error: %s", exc)

    def _should_cut(self) -> bool:
        return self._stop.is_set() or self._interrupt.is_set()

    def _speak_gtts(self, text: str, pan: float = 0.0):
        temp_path: Path | None = None
        try:
            from gtts import gTTS
            import pygame

            tts = gTTS(text=text, lang=self.language, slow=self.settings.slow_speech)
            with tempfile.NamedTemporaryFile(delete=False, suffix=".mp3") as fp:
                temp_path = Path(fp.name)

            tts.save(temp_path.as_posix())
            if self._should_cut():
                return
            if pan:
                self._play_panned(pygame, temp_path, pan)
                return
            pygame.mixer.music.load(temp_path.as_posix())
            pygame.mixer.music.play()
            while pygame.mixer.music.get_busy():
                if self._should_cut():
                    pygame.mixer.music.stop()
                    break
                time.sleep(0.05)

            try:
                pygame.mixer.music.unload()
            except Exception:  # noqa: BLE001
                pygame.mixer.music.stop()
        except ImportError:
            logger.error("gTTS or pygame not installed. Cannot play audio.")
        except Exception as exc:  # noqa: BLE001
            logger.error("gTTS playback failed: %s", exc)
        finally:
            if temp_path is not None:
                temp_path.unlink(missing_ok=True)

    def _play_panned(self, pygame, path: Path, pan: float) -> None:
        # music stream has no per-ear volume, a Sound channel does
        sound = pygame.mixer.Sound(path.as_posix())
        channel = sound.play()
        if channel is None:
            logger.warning("No free mixer channel for panned speech")
            return
        channel.set_volume(*stereo_volumes(pan))
        while channel.get_busy():
            if self._should_cut():
                channel.stop()
                break
            time.sleep(0.05)

    def _ensure_pygame(self):
        if self._pygame_initialized:
            return
        try:
            import pygame

            if not pygame.mixer.get_init():
                pygame.mixer.init(frequency=22050, size=-16, channels=2, buffer=4096)
            self._pygame_initialized = True
        except Exception as exc:  # noqa: BLE001
            logger.exception("Failed to initialize pygame mixer: %s", exc)
            raise

    def _drain_queue(self) -> int:
        dropped = 0
        while True:
            try:
                item = self.queue.get_nowait()
            except Empty:
                return dropped
            self.queue.task_done()
            if item is not None:
                dropped += 1

    def speak(self, text: str, priority: Priority = Priority.NORMAL, pan: float = 0.0):
        if priority >= Priority.CRITICAL:
            dropped = self._drain_queue()
            self._interrupt.set()
            if dropped:
                logger.debug("Critical speech dropped %d queued utterances", dropped)
        try:
            self.queue.put_nowait((text, priority, pan))
        except Full:
            logger.warning("Audio queue full, skipping message")

    def shutdown(self):
        self._stop.set()
        try:
            self.queue.put_nowait(None)
        except Full:
            logger.debug("Audio queue full during shutdown; waiting for worker")
            self._drain_queue()
            self.queue.put(None)
        self.worker_thread.join(timeout=2.0)
        if self._pygame_initialized:
            try:
                import pygame

                pygame.mixer.quit()
            except Exception:  # noqa: BLE001
                logger.debug("pygame mixer shutdown failed", exc_info=True)
