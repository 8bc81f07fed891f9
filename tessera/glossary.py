"""Glossary substitution and restoration around machine translation."""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field
from typing import Callable, Dict, List, Optional, Pattern, Sequence, Tuple

from .structures import GlossaryEntry, TranslationOrigin, TranslationOutcome

logger = logging.getLogger(__name__)

GLOSSARY_PLACEHOLDER = "__GLOSS_{index}__"
FULL_MATCH_TOKEN = "__GLOSSARY_FULL__"
FAILURE_SENTINEL = "[Translation failed: {reason}]"

TranslateFn = Callable[[str, str, str], str]


def failure_sentinel(reason: object) -> str:
    """Visible marker written in place of a translation that failed."""

    return FAILURE_SENTINEL.format(reason=reason)


def is_failure_sentinel(text: object) -> bool:
    return isinstance(text, str) and text.startswith("[Translation failed:")


@dataclass
class GlossarySubstitution:
    """Text prepared for translation plus the placeholders it contains."""

    original_text: str
    processed_text: str
    substitutions: Dict[str, str] = field(default_factory=dict)
    full_match: Optional[str] = None

    @property
    def has_substitutions(self) -> bool:
        return bool(self.substitutions)

    @property
    def is_full_match(self) -> bool:
        return self.full_match is not None


def find_predefined_translation(
    text: str,
    source_lang: str,
    target_lang: str,
    glossary: Sequence[GlossaryEntry] = (),
) -> Optional[str]:
    """Return the glossary translation when ``text`` is exactly a glossary term.

    The comparison is trimmed and case-insensitive.
    """

    needle = (text or "").strip().casefold()
    if not needle:
        return None
    for entry in glossary:
        source_value = entry.get(source_lang)
        if source_value is None or source_value.casefold() != needle:
            continue
        target_value = entry.get(target_lang)
        if target_value is not None:
            return target_value
    return None


def _term_pairs(
    source_lang: str,
    target_lang: str,
    glossary: Sequence[GlossaryEntry],
) -> List[Tuple[str, str]]:
    pairs = []
    for entry in glossary:
        source_value = entry.get(source_lang)
        target_value = entry.get(target_lang)
        if source_value and target_value:
            pairs.append((source_value, target_value))
    # Longest first so phrases win over the words inside them.
    pairs.sort(key=lambda pair: len(pair[0]), reverse=True)
    return pairs


def _term_pattern(term: str) -> Pattern[str]:
    escaped = re.escape(term)
    if re.search(r"\s", term):
        return re.compile(escaped)
    return re.compile(rf"(?<!\w){escaped}(?!\w)")


def apply_glossary_substitutions(
    text: str,
    source_lang: str,
    target_lang: str,
    glossary: Sequence[GlossaryEntry] = (),
) -> GlossarySubstitution:
    """Swap glossary terms in ``text`` for opaque placeholders.

    A whole-text glossary match short-circuits with ``full_match`` set.
    Otherwise every embedded occurrence of a glossary term gets its own
    ``__GLOSS_<n>__`` token. Matches never overlap: once a span has been
    replaced, shorter terms only search the text around it.
    """

    text = (text or "").strip()
    if not text or not glossary:
        return GlossarySubstitution(original_text=text, processed_text=text)

    full = find_predefined_translation(text, source_lang, target_lang, glossary)
    if full is not None:
        return GlossarySubstitution(
            original_text=text,
            processed_text=FULL_MATCH_TOKEN,
            substitutions={FULL_MATCH_TOKEN: full},
            full_match=full,
        )

    pieces: List[Tuple[str, bool]] = [(text, False)]
    substitutions: Dict[str, str] = {}
    for source_term, target_term in _term_pairs(source_lang, target_lang, glossary):
        pattern = _term_pattern(source_term)
        updated: List[Tuple[str, bool]] = []
        for value, replaced in pieces:
            if replaced:
                updated.append((value, replaced))
                continue
            cursor = 0
            for match in pattern.finditer(value):
                if match.start() > cursor:
                    updated.append((value[cursor:match.start()], False))
                placeholder = GLOSSARY_PLACEHOLDER.format(index=len(substitutions))
                substitutions[placeholder] = target_term
                updated.append((placeholder, True))
                cursor = match.end()
            if cursor < len(value):
                updated.append((value[cursor:], False))
        pieces = updated

    return GlossarySubstitution(
        original_text=text,
        processed_text="".join(value for value, _ in pieces),
        substitutions=substitutions,
    )


def restore_glossary_substitutions(text: str, substitutions: Dict[str, str]) -> str:
    """Put glossary translations back in place of their placeholders."""

    result = text
    for placeholder, translation in substitutions.items():
        result = result.replace(placeholder, translation)
    return result


def translate_with_glossary(
    text: str,
    source_lang: str,
    target_lang: str,
    glossary: Sequence[GlossaryEntry],
    translate: TranslateFn,
) -> TranslationOutcome:
    """Translate one segment, consulting the glossary first.

    ``translate(text, source_lang, target_lang)`` is only called when the
    segment is not a whole glossary term. Its failures come back as a
    failure sentinel rather than an exception.
    """

    substitution = apply_glossary_substitutions(text, source_lang, target_lang, glossary)
    if substitution.is_full_match:
        return TranslationOutcome(
            text=substitution.full_match or "", origin=TranslationOrigin.GLOSSARY
        )

    try:
        translated = translate(substitution.processed_text, source_lang, target_lang)
    except Exception as exc:
        logger.warning(
            "Translation to %s failed for %r: %s", target_lang, text[:80], exc
        )
        return TranslationOutcome(
            text=failure_sentinel(exc),
            origin=TranslationOrigin.FAILED,
            error=str(exc),
        )

    return TranslationOutcome(
        text=restore_glossary_substitutions(translated, substitution.substitutions),
        origin=TranslationOrigin.MACHINE,
    )
