"""Rebuilding translated documents from templates."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import (
    Any,
    Collection,
    Dict,
    FrozenSet,
    List,
    Mapping,
    Optional,
    Sequence,
    Tuple,
    Union,
)

from .errors import ErrorCategory, ErrorRecord
from .glossary import is_failure_sentinel
from .languages import detect_language_columns, normalize_language_code
from .masking import unmask
from .policy import (
    DEFAULT_POLICY,
    OverwritePolicy,
    Reason,
    decide_source_copy,
    decide_translation_write,
    is_blank,
    is_translation_formula,
)
from .structures import SEGMENT_PLACEHOLDER_PATTERN, SegmentationResult, Template

logger = logging.getLogger(__name__)

Matrix = List[List[Any]]


def fill_template(
    template: Union[str, Template],
    segment_ids: Sequence[str],
    values: Mapping[str, Optional[str]],
) -> Tuple[str, List[str]]:
    """Substitute each segment placeholder with its value in a single pass.

    Returns the filled text and the ids that had no value (filled with an
    empty string). A ``Template`` with ``pieces`` is filled slot by slot,
    so literal text shaped like a placeholder stays as it is. A bare string
    is scanned instead: only the first placeholder of each listed id is
    replaced. Text coming from ``values`` is never rescanned.
    """

    missing = [segment_id for segment_id in segment_ids if segment_id not in values]

    if isinstance(template, Template):
        if template.pieces:
            parts = [template.pieces[0]]
            for segment_id, piece in zip(template.segment_ids, template.pieces[1:]):
                parts.append(values.get(segment_id) or "")
                parts.append(piece)
            return "".join(parts), missing
        template = template.template

    wanted = set(segment_ids)
    used = set()

    def substitute(match):
        segment_id = match.group(1)
        if segment_id not in wanted or segment_id in used:
            return match.group(0)
        used.add(segment_id)
        return values.get(segment_id) or ""

    return SEGMENT_PLACEHOLDER_PATTERN.sub(substitute, template), missing


@dataclass(frozen=True)
class DecisionRecord:
    """One audited cell decision."""

    row_index: int
    language: str
    written: bool
    reason: Reason
    content: str = ""
    source_copy: bool = False


@dataclass
class MergeReport:
    """Audit trail and counters for one rebuild."""

    decisions: List[DecisionRecord] = field(default_factory=list)
    warnings: List[ErrorRecord] = field(default_factory=list)
    added_columns: Dict[str, int] = field(default_factory=dict)
    skipped_languages: List[str] = field(default_factory=list)
    translated_cells: int = 0
    preserved_cells: int = 0
    failed_cells: int = 0

    @property
    def source_copies(self) -> List[DecisionRecord]:
        """Cells filled with untranslated source content."""

        return [r for r in self.decisions if r.source_copy and r.written]

    @property
    def verbatim_copies(self) -> List[DecisionRecord]:
        return [r for r in self.source_copies if r.reason is Reason.VERBATIM_FIELD]

    @property
    def source_copied_rows(self) -> int:
        return len({record.row_index for record in self.source_copies})


@dataclass
class MergeResult:
    matrix: Matrix
    report: MergeReport


def _preview(value: object, limit: int = 100) -> str:
    return str(value)[:limit]


def _cell(row: Sequence[Any], column: int) -> Any:
    return row[column] if column < len(row) else None


class TemplateRebuilder:
    """Merges per-language translations back into a document matrix.

    The matrix is a list of rows; ``header_row`` holds column labels and
    every later row is a data row whose index matches ``SourceRow.row_index``.
    """

    def __init__(self, *, source_column: int = 3, header_row: int = 0) -> None:
        self.source_column = source_column
        self.header_row = header_row

    def rebuild(
        self,
        templates: Mapping[int, Union[str, Template]],
        ids_by_row: Mapping[int, Sequence[str]],
        translations: Mapping[str, Mapping[str, str]],
        original: Sequence[Sequence[Any]],
        *,
        policies: Mapping[str, OverwritePolicy],
        existing_columns: Optional[Mapping[str, Optional[int]]] = None,
        verbatim_rows: Collection[int] = frozenset(),
    ) -> MergeResult:
        """Return a new matrix with every target language merged in.

        ``translations`` is ``[language][segment id] -> text``. Languages with
        no translations at all are skipped. The input matrix is never touched.
        """

        matrix: Matrix = [list(row) if row is not None else [] for row in original]
        report = MergeReport()
        if not matrix:
            return MergeResult(matrix=matrix, report=report)

        while len(matrix) <= self.header_row:
            matrix.append([])
        header = matrix[self.header_row]
        detected = detect_language_columns(header)
        explicit = {
            normalize_language_code(code): column
            for code, column in (existing_columns or {}).items()
            if column is not None and column >= 0
        }
        normalized_policies = {
            normalize_language_code(code): OverwritePolicy.parse(value)
            for code, value in policies.items()
        }

        for language, by_id in translations.items():
            code = normalize_language_code(language)
            if not by_id:
                logger.info("Skipping %s: no translations provided", language)
                report.skipped_languages.append(language)
                continue

            column = explicit.get(code, detected.get(code))
            existing_language = column is not None
            if column is None:
                width = max(len(row) for row in matrix)
                header.extend([""] * (width - len(header)))
                column = len(header)
                header.append(language)
                report.added_columns[language] = column
                logger.info("Adding language column %s at %s", language, column)

            policy = normalized_policies.get(code, DEFAULT_POLICY)
            self._merge_language(
                matrix,
                original,
                language=language,
                column=column,
                existing_language=existing_language,
                policy=policy,
                templates=templates,
                ids_by_row=ids_by_row,
                translations=by_id,
                verbatim_rows=verbatim_rows,
                report=report,
            )

        return MergeResult(matrix=matrix, report=report)

    def rebuild_segmentation(
        self,
        segmentation: SegmentationResult,
        translations: Mapping[str, Mapping[str, str]],
        original: Sequence[Sequence[Any]],
        **kwargs: Any,
    ) -> MergeResult:
        """Convenience wrapper taking a segmentation result directly."""

        return self.rebuild(
            segmentation.templates_by_row(),
            segmentation.ids_by_row(),
            translations,
            original,
            **kwargs,
        )

    def _merge_language(
        self,
        matrix: Matrix,
        original: Sequence[Sequence[Any]],
        *,
        language: str,
        column: int,
        existing_language: bool,
        policy: OverwritePolicy,
        templates: Mapping[int, Union[str, Template]],
        ids_by_row: Mapping[int, Sequence[str]],
        translations: Mapping[str, str],
        verbatim_rows: Collection[int],
        report: MergeReport,
    ) -> None:
        for row_index in range(self.header_row + 1, len(matrix)):
            row = matrix[row_index]
            if len(row) <= column:
                row.extend([""] * (column + 1 - len(row)))
            current = row[column]
            ids = list(ids_by_row.get(row_index) or ())

            if not ids:
                source = _cell(original[row_index] or [], self.source_column)
                has_source = not is_blank(source)
                decision = decide_source_copy(
                    verbatim_eligible=row_index in verbatim_rows,
                    existing_language=existing_language,
                    policy=policy,
                    target_empty=is_blank(current),
                    has_source=has_source,
                )
                if decision.write:
                    row[column] = source
                if has_source:
                    report.decisions.append(
                        DecisionRecord(
                            row_index=row_index,
                            language=language,
                            written=decision.write,
                            reason=decision.reason,
                            content=_preview(source),
                            source_copy=True,
                        )
                    )
                    logger.debug(
                        "Row %s, %s: %s source (%s)",
                        row_index,
                        language,
                        "copied" if decision.write else "kept",
                        decision.reason.value,
                    )
                continue

            filled, missing = fill_template(templates.get(row_index, ""), ids, translations)
            for segment_id in missing:
                message = (
                    f"Row {row_index}, {language}: no translation for segment "
                    f"{segment_id}; left empty."
                )
                logger.warning(message)
                report.warnings.append(
                    ErrorRecord(
                        category=ErrorCategory.MISSING_TRANSLATION,
                        message=message,
                        details=segment_id,
                    )
                )
            filled = unmask(filled)

            decision = decide_translation_write(policy=policy, current_value=current)
            if decision.write:
                row[column] = filled
                report.translated_cells += 1
                if any(is_failure_sentinel(translations.get(i)) for i in ids):
                    report.failed_cells += 1
            else:
                report.preserved_cells += 1
            report.decisions.append(
                DecisionRecord(
                    row_index=row_index,
                    language=language,
                    written=decision.write,
                    reason=decision.reason,
                    content=_preview(filled if decision.write else current),
                )
            )


def find_verbatim_rows(
    matrix: Sequence[Sequence[Any]],
    field_types: Collection[str] = ("URL",),
    *,
    type_column: int = 2,
    header_row: int = 0,
) -> FrozenSet[int]:
    """Rows whose field-type cell names a type that is copied untranslated."""

    wanted = {value.strip().upper() for value in field_types}
    return frozenset(
        row_index
        for row_index in range(header_row + 1, len(matrix))
        if str(_cell(matrix[row_index] or [], type_column) or "").strip().upper() in wanted
    )


def filter_rows_for_fill_mode(
    rows: Sequence[Any],
    original: Sequence[Sequence[Any]],
    languages: Sequence[str],
    existing_columns: Mapping[str, Optional[int]],
    policies: Mapping[str, OverwritePolicy],
) -> Tuple[List[Any], int]:
    """Drop rows that every target language would preserve anyway.

    A row is skipped only when each language is an existing ``fill-empty``
    column whose cell already holds real content. ``rows`` are objects with
    a ``row_index`` attribute (``SourceRow``).
    """

    columns = {
        normalize_language_code(code): column
        for code, column in existing_columns.items()
    }
    modes = {normalize_language_code(code): policy for code, policy in policies.items()}

    keep: List[Any] = []
    skipped = 0
    for row in rows:
        needs_translation = False
        for language in languages:
            code = normalize_language_code(language)
            column = columns.get(code)
            if column is None or modes.get(code) is not OverwritePolicy.FILL_EMPTY:
                needs_translation = True
                break
            cells = original[row.row_index] if row.row_index < len(original) else []
            value = _cell(cells or [], column)
            if is_blank(value) or is_translation_formula(value):
                needs_translation = True
                break
        if needs_translation:
            keep.append(row)
        else:
            skipped += 1
    return keep, skipped
