"""Turns fused detections into short spoken sentences."""
from __future__ import annotations

import logging
from collections import OrderedDict
from dataclasses import dataclass
from typing import Dict, Iterable, List, Optional, Sequence, Tuple

from echovision.core import config
from echovision.core.audio import Priority
from echovision.core.detection import Detection, Direction
from echovision.core.settings import DEFAULT_SETTINGS, Settings
from echovision.pipeline.lighting import LightingQuality, SceneState

logger = logging.getLogger(__name__)

NO_OBJECTS_TEXT = "No objects detected. Try moving camera closer or improving lighting"
HOLD_STILL_TEXT = "Please hold camera still"
TOO_DARK_TEXT = "Lighting is too dim. Please turn on lights or move to brighter area"
DIM_WARNING_TEXT = "Lighting is dim"

_VOWELS = "aeiou"
_SINGULAR_ENDINGS = ("ss", "us", "is")


@dataclass(frozen=True)
class Utterance:
    text: str
    priority: Priority = Priority.NORMAL
    keys: Tuple[str, ...] = ()
    pan: float = 0.0


@dataclass(frozen=True)
class Composition:
    utterances: Tuple[Utterance, ...] = ()

    @property
    def keys(self) -> Tuple[str, ...]:
        return tuple(key for u in self.utterances for key in u.keys)

    @property
    def texts(self) -> List[str]:
        return [u.text for u in self.utterances]

    @property
    def is_critical(self) -> bool:
        return any(u.priority >= Priority.CRITICAL for u in self.utterances)

    def __bool__(self) -> bool:
        return bool(self.utterances)


class RecentlyAnnounced:
    """``label|direction`` keys suppressed from narration until their expiry time."""

    def __init__(self, cooldown: float = config.ANNOUNCE_COOLDOWN_SECONDS):
        self.cooldown = cooldown
        self._expiry: Dict[str, float] = {}

    def mark(self, key: str, now: float) -> None:
        self.hold([key], now + self.cooldown)

    def hold(self, keys: Iterable[str], until: float) -> None:
        # Never shortens an existing hold
        for key in keys:
            self._expiry[key] = max(self._expiry.get(key, until), until)

    def release(self, keys: Iterable[str]) -> None:
        for key in keys:
            self._expiry.pop(key, None)

    def expire(self, now: float) -> None:
        for key in [k for k, until in self._expiry.items() if until <= now]:
            del self._expiry[key]

    def contains(self, key: str, now: float) -> bool:
        until = self._expiry.get(key)
        if until is None:
            return False
        if until <= now:
            del self._expiry[key]
            return False
        return True

    def clear(self) -> None:
        self._expiry.clear()

    def __len__(self) -> int:
        return len(self._expiry)


def is_plural(label: str) -> bool:
    word = label.split()[-1] if label.split() else label
    return len(word) > 2 and word.endswith("s") and not word.endswith(_SINGULAR_ENDINGS)


def article_for(label: str) -> str:
    return "an" if label[:1].lower() in _VOWELS else "a"


def with_article(label: str) -> str:
    if is_plural(label):
        return label
    return f"{article_for(label)} {label}"


def capitalize_first(text: str) -> str:
    return text[:1].upper() + text[1:]


def pan_for(direction: Direction, amount: float = config.SPEECH_PAN) -> float:
    if direction is Direction.LEFT:
        return -amount
    if direction is Direction.RIGHT:
        return amount
    return 0.0


def clean_object_label(label: str) -> str:
    return label.replace("_", " ").strip()


def clean_personal_label(label: str, prefix: str = config.PERSONAL_PREFIX) -> str:
    """``my_car_keys`` -> ``your car keys``."""
    if label.lower().startswith(prefix):
        label = "your " + label[len(prefix):]
    return label.replace("_", " ").strip()


def merge_utterances(utterances: Sequence[Utterance], soft_cap: int = config.MERGE_SOFT_CAP) -> List[Utterance]:
    """Join neighbouring utterances of equal priority while the result stays under ``soft_cap``."""
    merged: List[Utterance] = []
    for utterance in utterances:
        if merged and merged[-1].priority == utterance.priority:
            candidate = f"{merged[-1].text}. {utterance.text}"
            if len(candidate) <= soft_cap:
                previous = merged[-1]
                pan = previous.pan if previous.pan == utterance.pan else 0.0
                merged[-1] = Utterance(candidate, utterance.priority, previous.keys + utterance.keys, pan)
                continue
        merged.append(utterance)
    return merged


class AnnouncementComposer:
    """Builds the ordered utterances for one announcement cycle.

    Hazards are exclusive: when any hazard is eligible only hazard warnings are
    produced. Otherwise everyday objects are grouped by direction, followed by
    personal items, the scene (when no objects were named) and a dim-lighting
    warning. Every emitted item is put on cool-down.
    """

    def __init__(
        self,
        settings: Settings = DEFAULT_SETTINGS,
        recent: Optional[RecentlyAnnounced] = None,
        max_hazards: int = config.MAX_HAZARDS,
        max_personal: int = config.MAX_PERSONAL_ITEMS,
        max_per_direction: int = config.MAX_ITEMS_PER_DIRECTION,
        max_direction_groups: int = config.MAX_DIRECTION_GROUPS,
        merge_soft_cap: int = config.MERGE_SOFT_CAP,
    ):
        self.settings = settings
        self.recent = recent if recent is not None else RecentlyAnnounced()
        self.max_hazards = max_hazards
        self.max_personal = max_personal
        self.max_per_direction = max_per_direction
        self.max_direction_groups = max_direction_groups
        self.merge_soft_cap = merge_soft_cap

    # ------------------------------------------------------------------
    @staticmethod
    def corrective_prompt(state: SceneState) -> Optional[Utterance]:
        """Spoken guidance that replaces narration under bad capture conditions."""
        if not state.is_camera_stable:
            return Utterance(HOLD_STILL_TEXT, Priority.HIGH)
        if state.lighting_quality is LightingQuality.TOO_DARK:
            return Utterance(TOO_DARK_TEXT, Priority.HIGH)
        return None

    def _describe(self, detection: Detection, label: str) -> str:
        text = with_article(label)
        if self.settings.announce_distance and detection.distance is not None:
            feet = int(round(detection.distance))
            text += f" {feet} {'foot' if feet == 1 else 'feet'} away"
        return text

    def _partition(self, detections: Sequence[Detection], now: float):
        hazard_in_view = False
        hazards: List[Detection] = []
        personal: List[Detection] = []
        everyday: List[Detection] = []
        seen: set[str] = set()
        for detection in detections:
            if detection.is_hazard:
                hazard_in_view = True
            if detection.key in seen:
                continue
            if self.recent.contains(detection.announcement_key, now):
                continue
            seen.add(detection.key)
            if detection.is_hazard:
                hazards.append(detection)
            elif detection.is_personal:
                personal.append(detection)
            else:
                everyday.append(detection)
        return hazard_in_view, hazards, personal, everyday

    def _hazard_lines(self, hazards: Sequence[Detection]) -> List[Utterance]:
        return [
            Utterance(
                f"Warning! Be careful of {self._describe(h, clean_object_label(h.label))} {h.direction.phrase}",
                Priority.CRITICAL,
                keys=(h.announcement_key,),
                pan=pan_for(h.direction),
            )
            for h in hazards[: self.max_hazards]
        ]

    def _object_lines(self, objects: Sequence[Detection]) -> List[Utterance]:
        groups: "OrderedDict[Direction, List[Detection]]" = OrderedDict()
        for obj in objects:
            if obj.direction not in groups and len(groups) >= self.max_direction_groups:
                continue
            groups.setdefault(obj.direction, []).append(obj)

        lines: List[Utterance] = []
        for direction, members in groups.items():
            members = members[: self.max_per_direction]
            phrases = [self._describe(m, clean_object_label(m.label)) for m in members]
            if len(phrases) == 1:
                verb = "are" if is_plural(clean_object_label(members[0].label)) else "is"
                text = f"There {verb} {phrases[0]} {direction.phrase}"
            elif len(phrases) == 2:
                text = f"{capitalize_first(phrases[0])} and {phrases[1]} {direction.phrase}"
            else:
                text = f"{capitalize_first(', '.join(phrases))} {direction.phrase}"
            keys = tuple(m.announcement_key for m in members)
            lines.append(Utterance(text, keys=keys, pan=pan_for(direction)))
        return lines

    def _personal_lines(self, items: Sequence[Detection]) -> List[Utterance]:
        return [
            Utterance(
                capitalize_first(f"{clean_personal_label(item.label)}, {item.direction.phrase}"),
                keys=(item.announcement_key,),
                pan=pan_for(item.direction),
            )
            for item in items[: self.max_personal]
        ]

    def _scene_line(self, scene: str, now: float) -> Optional[Utterance]:
        name = clean_object_label(scene)
        key = config.SCENE_KEY_PREFIX + name.lower()
        if self.recent.contains(key, now):
            return None
        return Utterance(f"You are in {with_article(name)}", keys=(key,))

    def compose(
        self,
        detections: Sequence[Detection],
        stability_filter: bool,
        scene: Optional[str],
        lighting_quality: LightingQuality,
        now: float,
    ) -> Composition:
        """Return this cycle's utterances; ``stability_filter`` marks the automatic path."""
        hazard_in_view, hazards, personal, everyday = self._partition(detections, now)

        if hazard_in_view:
            # Silent while every hazard in view is on cool-down
            return self._finish(self._hazard_lines(hazards), now)

        object_lines = self._object_lines(everyday)
        lines = object_lines + self._personal_lines(personal)

        if not object_lines and scene:
            scene_line = self._scene_line(scene, now)
            if scene_line is not None:
                lines.append(scene_line)

        if not lines and not stability_filter:
            # The user asked explicitly, so silence would be confusing
            lines.append(Utterance(NO_OBJECTS_TEXT))

        if lines and lighting_quality is LightingQuality.DIM:
            lines.append(Utterance(DIM_WARNING_TEXT))

        return self._finish(lines, now)

    def _finish(self, lines: List[Utterance], now: float) -> Composition:
        for line in lines:
            for key in line.keys:
                self.recent.mark(key, now)
        merged = merge_utterances(lines, self.merge_soft_cap)
        if merged:
            logger.debug("Composed %d utterances from %d lines", len(merged), len(lines))
        return Composition(tuple(merged))

    def reset(self) -> None:
        self.recent.clear()


__all__ = [
    "AnnouncementComposer",
    "Composition",
    "RecentlyAnnounced",
    "Utterance",
    "merge_utterances",
    "pan_for",
]
