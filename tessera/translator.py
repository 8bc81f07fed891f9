"""High-level orchestration of one translation pass."""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field
from typing import Any, Collection, Dict, List, Mapping, Optional, Sequence

from .configuration import TesseraConfig
from .dedup import UniqueStringIndex
from .errors import ErrorCategory, ErrorRecord
from .glossary import find_predefined_translation, translate_with_glossary
from .memory import (
    DEFAULT_AUTO_APPLY_THRESHOLD,
    DEFAULT_FUZZY_THRESHOLD,
    TranslationMemory,
)
from .merge import MergeResult, TemplateRebuilder, find_verbatim_rows
from .policy import OverwritePolicy, resolve_language_policies
from .providers import TranslationProvider
from .segmenter import Segmenter
from .structures import (
    FuzzyMatch,
    GlossaryEntry,
    SegmentationResult,
    SourceRow,
    TranslationOrigin,
    TranslationOutcome,
)

logger = logging.getLogger(__name__)


@dataclass
class TranslationSummary:
    """Report returned after a pass."""

    document_count: int
    total_rows: int
    total_segments: int
    unique_strings: int
    saved_requests: int
    source_language: str
    target_languages: List[str]
    provider_name: str
    glossary_hits: int
    memory_hits: int
    machine_translations: int
    failures: int
    elapsed_seconds: float
    errors: List[ErrorRecord] = field(default_factory=list)
    review_suggestions: int = 0

    @property
    def error_messages(self) -> List[str]:
        return [record.message for record in self.errors]


@dataclass
class BatchResult:
    """Everything a pass produced, ready for per-document rebuilds."""

    segmentations: List[SegmentationResult]
    index: UniqueStringIndex
    outcomes: Dict[str, Dict[str, TranslationOutcome]]
    tables: List[Dict[str, Dict[str, str]]]
    summary: TranslationSummary
    review_matches: Dict[str, Dict[str, List[FuzzyMatch]]] = field(default_factory=dict)

    @property
    def translations(self) -> Dict[str, Dict[str, str]]:
        """``[language][unique text] -> translated text``."""

        return {
            language: {text: outcome.text for text, outcome in by_text.items()}
            for language, by_text in self.outcomes.items()
        }


class TranslationRunner:
    """Coordinates extraction, deduplication, translation and rebuilding."""

    def __init__(
        self,
        *,
        source_language: str,
        target_languages: Sequence[str],
        provider: TranslationProvider,
        glossary: Sequence[GlossaryEntry] = (),
        memory: Optional[TranslationMemory] = None,
        do_not_translate: Sequence[str] = (),
        auto_apply_threshold: int = DEFAULT_AUTO_APPLY_THRESHOLD,
        fuzzy_threshold: int = DEFAULT_FUZZY_THRESHOLD,
        policies: Optional[Mapping[str, OverwritePolicy]] = None,
        source_column: int = 3,
        verbatim_field_types: Sequence[str] = ("URL",),
        field_type_column: int = 2,
    ) -> None:
        self.source_language = source_language
        self.target_languages = list(target_languages)
        self.provider = provider
        self.glossary = list(glossary)
        self.memory = memory
        self.auto_apply_threshold = auto_apply_threshold
        self.fuzzy_threshold = fuzzy_threshold
        self.segmenter = Segmenter(do_not_translate)
        self.policies = dict(policies or resolve_language_policies(self.target_languages))
        self.rebuilder = TemplateRebuilder(source_column=source_column)
        self.verbatim_field_types = list(verbatim_field_types)
        self.field_type_column = field_type_column

    @classmethod
    def from_settings(
        cls,
        settings: TesseraConfig,
        provider: TranslationProvider,
        *,
        glossary: Sequence[GlossaryEntry] = (),
        memory: Optional[TranslationMemory] = None,
    ) -> "TranslationRunner":
        return cls(
            source_language=settings.SOURCE_LANGUAGE or "en",
            target_languages=settings.TARGET_LANGUAGES,
            provider=provider,
            glossary=glossary,
            memory=memory,
            do_not_translate=settings.DO_NOT_TRANSLATE,
            auto_apply_threshold=settings.TM_AUTO_APPLY_THRESHOLD,
            fuzzy_threshold=settings.TM_FUZZY_THRESHOLD,
            policies=settings.LANGUAGE_MODES,
            source_column=settings.SOURCE_COLUMN,
            verbatim_field_types=settings.VERBATIM_FIELD_TYPES,
            field_type_column=settings.FIELD_TYPE_COLUMN,
        )

    def run(self, documents: Sequence[Sequence[SourceRow]]) -> BatchResult:
        start_time = time.time()

        segmentations = self.segmenter.segment_documents(documents)
        index = UniqueStringIndex.build(segmentations)
        logger.info(
            "Prepared %s documents: %s segments, %s unique strings.",
            len(documents),
            index.occurrence_count,
            index.unique_count,
        )

        errors: List[ErrorRecord] = []
        counts = {origin: 0 for origin in TranslationOrigin}
        outcomes: Dict[str, Dict[str, TranslationOutcome]] = {}
        review_matches: Dict[str, Dict[str, List[FuzzyMatch]]] = {}

        for language in self.target_languages:
            outcomes[language] = {}
            for text in index.texts():
                outcome = self.translate_text(text, language)
                outcomes[language][text] = outcome
                counts[outcome.origin] += 1
                if outcome.origin in (TranslationOrigin.MACHINE, TranslationOrigin.FAILED):
                    matches = self.review_matches_for(text, language)
                    if matches:
                        review_matches.setdefault(language, {})[text] = matches
                if outcome.origin is TranslationOrigin.FAILED:
                    errors.append(
                        ErrorRecord(
                            category=ErrorCategory.TRANSLATION,
                            message=f"Could not translate {text[:80]!r} to {language}.",
                            details=outcome.error,
                        )
                    )

        translations = {
            language: {text: outcome.text for text, outcome in by_text.items()}
            for language, by_text in outcomes.items()
        }
        tables = index.distribute(translations)

        summary = TranslationSummary(
            document_count=len(documents),
            total_rows=sum(len(rows) for rows in documents),
            total_segments=index.occurrence_count,
            unique_strings=index.unique_count,
            saved_requests=index.saved_requests,
            source_language=self.source_language,
            target_languages=list(self.target_languages),
            provider_name=self.provider.name,
            glossary_hits=counts[TranslationOrigin.GLOSSARY],
            memory_hits=counts[TranslationOrigin.MEMORY],
            machine_translations=counts[TranslationOrigin.MACHINE],
            failures=counts[TranslationOrigin.FAILED],
            elapsed_seconds=time.time() - start_time,
            errors=errors,
            review_suggestions=sum(len(by_text) for by_text in review_matches.values()),
        )
        return BatchResult(
            segmentations=segmentations,
            index=index,
            outcomes=outcomes,
            tables=tables,
            summary=summary,
            review_matches=review_matches,
        )

    def translate_text(self, text: str, target_language: str) -> TranslationOutcome:
        """Resolve one unique string: glossary term, then memory, then provider."""

        is_term = (
            find_predefined_translation(
                text, self.source_language, target_language, self.glossary
            )
            is not None
        )
        if not is_term and self.memory is not None:
            match = self.memory.best_match(text, target_language, self.auto_apply_threshold)
            if match is not None:
                logger.debug("Memory match (%s) for %r", match.score, text[:80])
                return TranslationOutcome(text=match.target_text, origin=TranslationOrigin.MEMORY)

        return translate_with_glossary(
            text,
            self.source_language,
            target_language,
            self.glossary,
            self.provider,
        )

    def review_matches_for(self, text: str, target_language: str) -> List[FuzzyMatch]:
        """Memory matches below auto-apply that a reviewer may still want to see."""

        if self.memory is None:
            return []
        return self.memory.find_matches(text, target_language, self.fuzzy_threshold)

    def rebuild(
        self,
        result: BatchResult,
        document_index: int,
        original: Sequence[Sequence[Any]],
        *,
        existing_columns: Optional[Mapping[str, Optional[int]]] = None,
        verbatim_rows: Optional[Collection[int]] = None,
    ) -> MergeResult:
        """Merge one document's translations into a copy of its matrix.

        Without ``verbatim_rows`` the rows whose field type is listed in
        ``verbatim_field_types`` are copied untranslated.
        """

        if verbatim_rows is None:
            verbatim_rows = find_verbatim_rows(
                original,
                self.verbatim_field_types,
                type_column=self.field_type_column,
                header_row=self.rebuilder.header_row,
            )

        return self.rebuilder.rebuild_segmentation(
            result.segmentations[document_index],
            result.tables[document_index],
            original,
            policies=self.policies,
            existing_columns=existing_columns,
            verbatim_rows=verbatim_rows,
        )
