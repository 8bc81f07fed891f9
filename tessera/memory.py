"""Translation-memory lookup with edit-distance fuzzy matching."""

from __future__ import annotations

import math
import re
from typing import Dict, Iterable, List, Optional, Sequence

from .languages import languages_match
from .structures import FuzzyMatch, TranslationMemoryUnit

TAG_PATTERN = re.compile(r"<[^>]*>")
WHITESPACE_PATTERN = re.compile(r"\s+")

DEFAULT_FUZZY_THRESHOLD = 70
DEFAULT_AUTO_APPLY_THRESHOLD = 95


def normalize_text(text: str) -> str:
    """Lowercase, drop markup tags and collapse whitespace."""

    stripped = TAG_PATTERN.sub("", text or "")
    return WHITESPACE_PATTERN.sub(" ", stripped.lower()).strip()


def edit_distance(first: str, second: str) -> int:
    """Levenshtein distance (single-character insert, delete, substitute)."""

    if len(first) < len(second):
        first, second = second, first
    previous = list(range(len(second) + 1))
    for i, left in enumerate(first, start=1):
        current = [i]
        for j, right in enumerate(second, start=1):
            if left == right:
                current.append(previous[j - 1])
            else:
                current.append(
                    1 + min(previous[j - 1], previous[j], current[j - 1])
                )
        previous = current
    return previous[-1]


def _round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


def similarity(first: str, second: str) -> int:
    """Score two normalised strings from 0 to 100."""

    longer, shorter = (first, second) if len(first) >= len(second) else (second, first)
    if not longer:
        return 100
    distance = edit_distance(longer, shorter)
    return _round_half_up(100 * (len(longer) - distance) / len(longer))


def _best_possible_score(first: str, second: str) -> int:
    """Upper bound on ``similarity``: distance is at least the length gap."""

    longer = max(len(first), len(second))
    if not longer:
        return 100
    return _round_half_up(100 * min(len(first), len(second)) / longer)


class TranslationMemory:
    """An in-memory store of translation units."""

    def __init__(self, units: Iterable[TranslationMemoryUnit] = ()) -> None:
        self.units: List[TranslationMemoryUnit] = list(units)
        self._normalized: List[str] = [normalize_text(u.source_text) for u in self.units]

    def __len__(self) -> int:
        return len(self.units)

    def add(self, unit: TranslationMemoryUnit) -> None:
        self.units.append(unit)
        self._normalized.append(normalize_text(unit.source_text))

    def find_matches(
        self,
        text: str,
        target_lang: str,
        fuzzy_threshold: int = DEFAULT_FUZZY_THRESHOLD,
    ) -> List[FuzzyMatch]:
        """Rank units for ``text`` in ``target_lang``, best first.

        Units whose language does not share the target's base language are
        ignored. Scores below ``fuzzy_threshold`` are dropped. Candidates whose
        length alone rules them out skip the edit-distance computation.
        """

        query = normalize_text(text)
        matches: List[FuzzyMatch] = []
        for unit, candidate in zip(self.units, self._normalized):
            if not languages_match(unit.target_lang, target_lang):
                continue
            if candidate == query:
                matches.append(FuzzyMatch(unit=unit, score=100, match_type="exact"))
                continue
            if _best_possible_score(query, candidate) < fuzzy_threshold:
                continue
            score = similarity(query, candidate)
            if score >= fuzzy_threshold:
                matches.append(FuzzyMatch(unit=unit, score=score, match_type="fuzzy"))

        matches.sort(key=lambda match: match.score, reverse=True)
        return matches

    def best_match(
        self,
        text: str,
        target_lang: str,
        auto_apply_threshold: int = DEFAULT_AUTO_APPLY_THRESHOLD,
    ) -> Optional[FuzzyMatch]:
        """Top match if it is good enough to use without review."""

        matches = self.find_matches(text, target_lang, auto_apply_threshold)
        return matches[0] if matches else None

    def apply(
        self,
        texts: Sequence[str],
        target_lang: str,
        auto_apply_threshold: int = DEFAULT_AUTO_APPLY_THRESHOLD,
    ) -> Dict[int, str]:
        """Map input positions to memory translations that can be auto-applied."""

        applied: Dict[int, str] = {}
        for index, text in enumerate(texts):
            match = self.best_match(text, target_lang, auto_apply_threshold)
            if match is not None:
                applied[index] = match.target_text
        return applied


def find_matches(
    text: str,
    target_lang: str,
    units: Iterable[TranslationMemoryUnit],
    fuzzy_threshold: int = DEFAULT_FUZZY_THRESHOLD,
) -> List[FuzzyMatch]:
    """One-off lookup against a plain list of units."""

    return TranslationMemory(units).find_matches(text, target_lang, fuzzy_threshold)
