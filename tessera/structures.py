"""Core data structures for the Tessera templating engine."""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, List, Mapping, Optional, Sequence, Tuple

from .languages import normalize_language_code

SEGMENT_ID_PREFIX = "T"
SEGMENT_PLACEHOLDER_PATTERN = re.compile(r"\{(T\d+)\}")


def segment_placeholder(segment_id: str) -> str:
    """Return the template placeholder for a segment id (``T7`` -> ``{T7}``)."""

    return "{" + segment_id + "}"


@dataclass(frozen=True)
class SourceRow:
    """A single input cell awaiting extraction.

    ``row_index`` is the row's position in the document matrix.
    """

    row_index: int
    content: str


@dataclass(frozen=True)
class ExtractedSegment:
    """One translatable substring pulled out of a row."""

    segment_id: str
    row_index: int
    text: str

    @property
    def placeholder(self) -> str:
        return segment_placeholder(self.segment_id)


@dataclass(frozen=True)
class Template:
    """Row content with every segment replaced by its placeholder.

    ``pieces`` holds the literal text around each placeholder the segmenter
    emitted, so ``len(pieces) == len(segment_ids) + 1``. Text in the source
    that merely looks like a placeholder lives inside a piece and is never
    filled.
    """

    row_index: int
    template: str
    segment_ids: Tuple[str, ...] = ()
    pieces: Tuple[str, ...] = ()

    @classmethod
    def from_pieces(
        cls,
        row_index: int,
        pieces: Sequence[str],
        segment_ids: Sequence[str],
    ) -> "Template":
        if len(pieces) != len(segment_ids) + 1:
            raise ValueError(
                f"Row {row_index}: {len(pieces)} pieces for {len(segment_ids)} segments."
            )
        parts = [pieces[0]]
        for segment_id, piece in zip(segment_ids, pieces[1:]):
            parts.append(segment_placeholder(segment_id))
            parts.append(piece)
        return cls(
            row_index=row_index,
            template="".join(parts),
            segment_ids=tuple(segment_ids),
            pieces=tuple(pieces),
        )


class IdAllocator:
    """Hands out sequential segment ids for one segmentation pass.

    The allocator is owned by the caller. Two passes that must not collide
    use two allocators; a pass that must be reproducible starts from a fresh
    (or reset) allocator.
    """

    def __init__(self, start: int = 1) -> None:
        self._start = start
        self._next = start

    def allocate(self) -> str:
        segment_id = f"{SEGMENT_ID_PREFIX}{self._next}"
        self._next += 1
        return segment_id

    def reset(self) -> None:
        self._next = self._start

    @property
    def issued(self) -> int:
        """Number of ids handed out since the last reset."""

        return self._next - self._start


@dataclass
class SegmentationResult:
    """Segments and templates produced by one segmentation pass."""

    segments: List[ExtractedSegment] = field(default_factory=list)
    templates: List[Template] = field(default_factory=list)

    def templates_by_row(self) -> Dict[int, Template]:
        return {item.row_index: item for item in self.templates}

    def ids_by_row(self) -> Dict[int, List[str]]:
        mapping: Dict[int, List[str]] = {}
        for segment in self.segments:
            mapping.setdefault(segment.row_index, []).append(segment.segment_id)
        return mapping

    def texts_by_id(self) -> Dict[str, str]:
        return {segment.segment_id: segment.text for segment in self.segments}


@dataclass(frozen=True)
class Occurrence:
    """Where a unique string was found."""

    document_index: int
    row_index: int
    segment_id: str


@dataclass
class UniqueStringRecord:
    """A canonical text and every place it occurs."""

    text: str
    occurrences: List[Occurrence] = field(default_factory=list)


@dataclass
class GlossaryEntry:
    """One glossary concept, keyed by language code."""

    translations: Dict[str, str]

    def __post_init__(self) -> None:
        self.translations = {
            normalize_language_code(code): value
            for code, value in self.translations.items()
        }

    def get(self, language: str) -> Optional[str]:
        value = self.translations.get(normalize_language_code(language))
        if value is None or not value.strip():
            return None
        return value.strip()

    @classmethod
    def from_mapping(cls, data: Mapping[str, str]) -> "GlossaryEntry":
        return cls(translations=dict(data))


@dataclass(frozen=True)
class TranslationMemoryUnit:
    """A stored source/target pair from a translation memory."""

    source_text: str
    target_lang: str
    target_text: str
    source_lang: Optional[str] = None


@dataclass(frozen=True)
class FuzzyMatch:
    """A translation-memory candidate and its similarity score (0-100)."""

    unit: TranslationMemoryUnit
    score: int
    match_type: str

    @property
    def target_text(self) -> str:
        return self.unit.target_text


class TranslationOrigin(Enum):
    """Where a translated string came from."""

    GLOSSARY = "glossary"
    MEMORY = "memory"
    MACHINE = "machine"
    FAILED = "failed"


@dataclass(frozen=True)
class TranslationOutcome:
    """The translation chosen for one unique string and one language."""

    text: str
    origin: TranslationOrigin
    error: Optional[str] = None
