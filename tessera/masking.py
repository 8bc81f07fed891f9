"""Do-not-translate term protection."""

from __future__ import annotations

import html
import re
from dataclasses import dataclass
from typing import Dict, Iterable, List, Optional, Sequence, Tuple

CURLY_PLACEHOLDER_PATTERN = re.compile(r"\{[^}]+\}")
ENTITY_PATTERN = re.compile(r"&(?:#[0-9]+;?|#[xX][0-9a-fA-F]+;?|[A-Za-z][A-Za-z0-9]*;?)")

DNT_MARKER_OPEN = "<<<__DNT__"
DNT_MARKER_CLOSE = "__>>>"
# Also strips envelopes whose closing half was lost in translation.
DNT_MARKER_PATTERN = re.compile(r"<<<__DNT__(.*?)(?:__>>>|$)", re.DOTALL)

SUGGESTION_WORD_PATTERN = re.compile(r"(?:^|[.!?]\s+|\s+)([^\W\d_][\w'-]*)")


@dataclass(frozen=True)
class Run:
    """A contiguous piece of text, either protected or open for extraction."""

    text: str
    protected: bool = False


@dataclass(frozen=True)
class MaskedText:
    """Result of masking one piece of content."""

    original: str
    masked: str
    runs: Tuple[Run, ...]
    terms: Tuple[str, ...]

    @property
    def remainder(self) -> str:
        """The unprotected text, trimmed."""

        return "".join(run.text for run in self.runs if not run.protected).strip()


def detect_placeholders(text: str) -> List[str]:
    """Find curly brace tokens such as ``{name}`` or ``{00|Job Title}``."""

    return CURLY_PLACEHOLDER_PATTERN.findall(text or "")


def resolve_terms(text: str, terms: Iterable[str] = ()) -> List[str]:
    """Combine the configured terms with tokens detected in ``text``.

    Terms are deduplicated case-insensitively and the first spelling wins,
    so the same word is never protected twice.
    """

    resolved: List[str] = []
    seen = set()
    for term in list(terms) + detect_placeholders(text):
        if not term or not term.strip():
            continue
        key = term.lower()
        if key in seen:
            continue
        seen.add(key)
        resolved.append(term)
    return resolved


def split_protected(text: str, terms: Sequence[str]) -> List[Run]:
    """Split ``text`` into protected and unprotected runs.

    Terms are applied in order and match case-insensitively; a later term
    only looks inside runs that are still unprotected.
    """

    runs = [Run(text or "")]
    for term in terms:
        pattern = re.compile(re.escape(term), re.IGNORECASE)
        updated: List[Run] = []
        for run in runs:
            if run.protected:
                updated.append(run)
                continue
            cursor = 0
            for match in pattern.finditer(run.text):
                if match.start() > cursor:
                    updated.append(Run(run.text[cursor:match.start()]))
                updated.append(Run(match.group(0), protected=True))
                cursor = match.end()
            if cursor < len(run.text):
                updated.append(Run(run.text[cursor:]))
        runs = updated
    return [run for run in runs if run.text]


def split_protected_markup(text: str, terms: Sequence[str]) -> List[Run]:
    """Split entity-encoded markup text into protected and unprotected runs.

    Terms match what the text displays (``R&amp;D`` matches ``R&D``) while
    every run keeps its encoded source slice. A match that stops inside a
    character reference claims the whole reference.
    """

    spans: List[Tuple[int, int]] = []
    decoded: List[str] = []
    position = 0
    while position < len(text):
        match = ENTITY_PATTERN.match(text, position) if text[position] == "&" else None
        end = match.end() if match else position + 1
        for char in html.unescape(text[position:end]):
            decoded.append(char)
            spans.append((position, end))
        position = end

    runs: List[Run] = []
    consumed = 0
    raw_cursor = 0
    for run in split_protected("".join(decoded), terms):
        consumed += len(run.text)
        raw_end = spans[consumed - 1][1]
        if raw_end > raw_cursor:
            runs.append(Run(text[raw_cursor:raw_end], protected=run.protected))
            raw_cursor = raw_end
    if raw_cursor < len(text):
        runs.append(Run(text[raw_cursor:]))
    return runs


def wrap_marker(term: str) -> str:
    return f"{DNT_MARKER_OPEN}{term}{DNT_MARKER_CLOSE}"


def unmask(text: str) -> str:
    """Strip marker envelopes, leaving the literal terms behind.

    Templates never carry envelopes; the merge engine runs this over
    translated text, which may echo a masked string back.
    """

    return DNT_MARKER_PATTERN.sub(r"\1", text or "")


class Masker:
    """Protects do-not-translate terms before segmentation.

    ``mask`` returns both the enveloped string and the runs it encodes. The
    segmenter builds templates from the runs, so protected terms stay
    literal in every template; ``unmask`` only has to clean envelopes that
    come back inside translated text.
    """

    def __init__(self, terms: Sequence[str] = ()) -> None:
        self.terms = list(terms)

    def terms_for(self, content: str) -> List[str]:
        return resolve_terms(content, self.terms)

    def mask(
        self,
        text: str,
        terms: Optional[Sequence[str]] = None,
        *,
        markup: bool = False,
    ) -> MaskedText:
        """Mask ``text``; ``terms`` defaults to the terms resolved from it.

        With ``markup`` the text is an entity-encoded slice of a markup
        document and terms are matched against its decoded form.
        """

        active = list(terms) if terms is not None else self.terms_for(text)
        if markup:
            runs = split_protected_markup(text or "", active)
        else:
            runs = split_protected(text, active)
        masked = "".join(
            wrap_marker(run.text) if run.protected else run.text for run in runs
        )
        return MaskedText(
            original=text or "",
            masked=masked,
            runs=tuple(runs),
            terms=tuple(active),
        )


# --- Term suggestions -----------------------------------------------------


@dataclass
class TermSuggestion:
    """A candidate do-not-translate term found in extracted text."""

    word: str
    frequency: int
    likely_proper_noun: bool


def _is_mixed_case(word: str) -> bool:
    return bool(
        re.match(r"^[A-Z][a-z]*[A-Z]", word) or re.match(r"^[a-z]+[A-Z]", word)
    )


def suggest_terms(
    texts: Iterable[str],
    existing: Iterable[str] = (),
    min_length: int = 3,
) -> List[TermSuggestion]:
    """Collect unique words from extracted texts as DNT suggestions.

    Likely proper nouns come first, then higher frequency, then alphabetical.
    """

    excluded = {term.lower() for term in existing}
    found: Dict[str, TermSuggestion] = {}

    for text in texts:
        if not text or not text.strip():
            continue
        for match in SUGGESTION_WORD_PATTERN.finditer(text):
            word = match.group(1)
            lowered = word.lower()
            if len(word) < min_length or lowered in excluded:
                continue

            context = match.group(0)[: -len(word)]
            sentence_start = match.start() == 0 or any(c in context for c in ".!?")
            capitalised = word[0].isupper()
            all_caps = len(word) >= 2 and word.isalpha() and word.isupper()
            proper = (
                (capitalised and not sentence_start)
                or _is_mixed_case(word)
                or all_caps
            )

            suggestion = found.get(lowered)
            if suggestion is None:
                found[lowered] = TermSuggestion(word, 1, proper)
            else:
                suggestion.frequency += 1
                suggestion.likely_proper_noun = suggestion.likely_proper_noun or proper

    return sorted(
        found.values(),
        key=lambda s: (not s.likely_proper_noun, -s.frequency, s.word.casefold()),
    )


def filter_suggestions(
    suggestions: Sequence[TermSuggestion],
    query: str,
    limit: int = 8,
) -> List[TermSuggestion]:
    """Prefix-filter suggestions for an autocomplete box."""

    if not query.strip():
        return []
    prefix = query.lower()
    return [s for s in suggestions if s.word.lower().startswith(prefix)][:limit]
