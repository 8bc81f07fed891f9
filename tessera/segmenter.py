"""Text extraction and placeholder templating."""

from __future__ import annotations

import html
import logging
from typing import List, Sequence, Tuple

from .errors import MarkupParseError
from .markup import iter_text_nodes, looks_like_markup, parse_markup, serialize
from .masking import Masker
from .structures import (
    ExtractedSegment,
    IdAllocator,
    SegmentationResult,
    SourceRow,
    Template,
)

logger = logging.getLogger(__name__)

PRIVATE_USE_START = 0xE000


def _split_whitespace(value: str) -> Tuple[str, str, str]:
    """Return (leading whitespace, trimmed text, trailing whitespace)."""

    stripped = value.strip()
    if not stripped:
        return value, "", ""
    leading = value[: len(value) - len(value.lstrip())]
    trailing = value[len(value.rstrip()):]
    return leading, stripped, trailing


def _slot_marker(content: str) -> str:
    """A character absent from ``content``, used to mark segment slots."""

    code = PRIVATE_USE_START
    while chr(code) in content:
        code += 1
    return chr(code)


class Segmenter:
    """Turns row content into extracted segments and templates."""

    def __init__(self, do_not_translate: Sequence[str] = ()) -> None:
        self.masker = Masker(do_not_translate)

    def segment_rows(
        self,
        rows: Sequence[SourceRow],
        allocator: IdAllocator,
    ) -> SegmentationResult:
        """Segment rows in order, drawing ids from ``allocator``."""

        result = SegmentationResult()
        for row in rows:
            segments, template = self.segment_row(row, allocator)
            result.segments.extend(segments)
            result.templates.append(template)
        return result

    def segment_documents(
        self,
        documents: Sequence[Sequence[SourceRow]],
    ) -> List[SegmentationResult]:
        """Segment each document with its own fresh allocator."""

        return [self.segment_rows(rows, IdAllocator()) for rows in documents]

    def segment_row(
        self,
        row: SourceRow,
        allocator: IdAllocator,
    ) -> Tuple[List[ExtractedSegment], Template]:
        content = row.content or ""
        terms = self.masker.terms_for(content)
        slot = _slot_marker(content)
        segments: List[ExtractedSegment] = []

        if looks_like_markup(content):
            try:
                root = parse_markup(content)
            except MarkupParseError as exc:
                logger.warning(
                    "Row %s: markup could not be parsed, nothing extracted (%s)",
                    row.row_index,
                    exc,
                )
                return [], Template.from_pieces(row.row_index, [content], [])

            for node in iter_text_nodes(root):
                if not node.has_visible_text:
                    continue
                node.text = self._template_text(
                    node.text, terms, slot, row.row_index, allocator, segments, markup=True
                )
            rendered = serialize(root)
        else:
            rendered = self._template_text(
                content, terms, slot, row.row_index, allocator, segments
            )

        return segments, Template.from_pieces(
            row.row_index,
            rendered.split(slot),
            [segment.segment_id for segment in segments],
        )

    def _template_text(
        self,
        text: str,
        terms: Sequence[str],
        slot: str,
        row_index: int,
        allocator: IdAllocator,
        segments: List[ExtractedSegment],
        *,
        markup: bool = False,
    ) -> str:
        """Replace each unprotected run of ``text`` with a ``slot`` marker."""

        masked = self.masker.mask(text, terms, markup=markup)
        parts: List[str] = []
        for run in masked.runs:
            visible = html.unescape(run.text) if markup else run.text
            if run.protected or not visible.strip():
                parts.append(run.text)
                continue
            leading, stripped, trailing = _split_whitespace(run.text)
            segment_id = allocator.allocate()
            segments.append(
                ExtractedSegment(segment_id=segment_id, row_index=row_index, text=stripped)
            )
            parts.append(f"{leading}{slot}{trailing}")
        return "".join(parts)
