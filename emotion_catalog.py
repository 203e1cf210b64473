"""Emotion catalog used by every practice modality."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, Iterable, Iterator, List, Optional, Sequence, Tuple


TIER_SEQUENCE: Tuple[str, ...] = ("basic", "complex", "subtle")


@dataclass(frozen=True)
class EmotionDefinition:
    """Immutable representation of a supported emotion label."""

    id: str
    label: str
    asset: str
    tier: str


_DEFINITIONS: Tuple[EmotionDefinition, ...] = (
    EmotionDefinition("happy", "Happy", "emotions/happy.png", "basic"),
    EmotionDefinition("sad", "Sad", "emotions/sad.png", "basic"),
    EmotionDefinition("angry", "Angry", "emotions/angry.png", "basic"),
    EmotionDefinition("surprised", "Surprised", "emotions/surprised.png", "complex"),
    EmotionDefinition("fear", "Fear", "emotions/fear.png", "complex"),
    EmotionDefinition("disgusted", "Disgusted", "emotions/disgusted.png", "complex"),
    EmotionDefinition("confused", "Confused", "emotions/confused.png", "subtle"),
    EmotionDefinition("excited", "Excited", "emotions/excited.png", "subtle"),
    EmotionDefinition("disappointed", "Disappointed", "emotions/disappointed.png", "subtle"),
    EmotionDefinition("proud", "Proud", "emotions/proud.png", "subtle"),
)


class EmotionCatalog:
    """Lookup table mapping emotion ids to presentation metadata and tier."""

    def __init__(self, definitions: Iterable[EmotionDefinition] = _DEFINITIONS) -> None:
        self._definitions: Tuple[EmotionDefinition, ...] = tuple(definitions)
        self._by_id: Dict[str, EmotionDefinition] = {
            definition.id: definition for definition in self._definitions
        }

    # ------------------------------------------------------------------
    def sequence(self) -> Sequence[str]:
        """Return emotion ids ordered from lowest to highest cognitive load."""

        return tuple(definition.id for definition in self._definitions)

    def get(self, emotion_id: str) -> Optional[EmotionDefinition]:
        return self._by_id.get(emotion_id)

    def __contains__(self, emotion_id: object) -> bool:
        return emotion_id in self._by_id

    def tier_of(self, emotion_id: str) -> str:
        definition = self._by_id.get(emotion_id)
        if definition is None:
            raise KeyError(emotion_id)
        return definition.tier

    def tier_members(self, tier: str) -> Tuple[str, ...]:
        """Return the ids belonging to ``tier`` in catalog order."""

        return tuple(d.id for d in self._definitions if d.tier == tier)

    def tiers(self) -> List[Tuple[str, Tuple[str, ...]]]:
        return [(tier, self.tier_members(tier)) for tier in TIER_SEQUENCE]

    def label_map(self) -> Dict[str, str]:
        return {d.id: d.label for d in self._definitions}

    def clearest(self, count: int = 2) -> Tuple[str, ...]:
        """Return the ``count`` lowest-load emotions (first members of the basic tier)."""

        return self.tier_members(TIER_SEQUENCE[0])[:count]

    # ------------------------------------------------------------------
    def __iter__(self) -> Iterator[EmotionDefinition]:
        return iter(self._definitions)

    def __len__(self) -> int:
        return len(self._definitions)


EMOTION_CATALOG = EmotionCatalog()
"""Shared read-only catalog instance."""

BASIC_EMOTIONS = EMOTION_CATALOG.tier_members("basic")
COMPLEX_EMOTIONS = EMOTION_CATALOG.tier_members("complex")
SUBTLE_EMOTIONS = EMOTION_CATALOG.tier_members("subtle")
