"""Deduplication of extracted strings across rows and documents."""

from __future__ import annotations

from typing import Dict, Iterator, List, Mapping, Sequence

from .structures import (
    ExtractedSegment,
    Occurrence,
    SegmentationResult,
    UniqueStringRecord,
)


class UniqueStringIndex:
    """Maps each distinct extracted text to every place it occurs.

    The key is the segment text alone, so the same words inside different
    markup still collapse to one record.
    """

    def __init__(self) -> None:
        self._records: Dict[str, UniqueStringRecord] = {}
        self.document_count = 0

    @classmethod
    def build(cls, documents: Sequence[SegmentationResult]) -> "UniqueStringIndex":
        index = cls()
        for document_index, result in enumerate(documents):
            index.add_document(document_index, result.segments)
        return index

    def add_document(
        self,
        document_index: int,
        segments: Sequence[ExtractedSegment],
    ) -> None:
        self.document_count = max(self.document_count, document_index + 1)
        for segment in segments:
            self.add(document_index, segment)

    def add(self, document_index: int, segment: ExtractedSegment) -> None:
        record = self._records.get(segment.text)
        if record is None:
            record = UniqueStringRecord(text=segment.text)
            self._records[segment.text] = record
        record.occurrences.append(
            Occurrence(
                document_index=document_index,
                row_index=segment.row_index,
                segment_id=segment.segment_id,
            )
        )

    def __len__(self) -> int:
        return len(self._records)

    def __iter__(self) -> Iterator[UniqueStringRecord]:
        return iter(self._records.values())

    def __contains__(self, text: object) -> bool:
        return text in self._records

    def get(self, text: str) -> UniqueStringRecord | None:
        return self._records.get(text)

    def texts(self) -> List[str]:
        """Unique texts in first-seen order."""

        return list(self._records)

    @property
    def unique_count(self) -> int:
        return len(self._records)

    @property
    def occurrence_count(self) -> int:
        return sum(len(record.occurrences) for record in self._records.values())

    @property
    def saved_requests(self) -> int:
        """Translation requests avoided per target language."""

        return self.occurrence_count - self.unique_count

    def distribute(
        self,
        translations: Mapping[str, Mapping[str, str]],
    ) -> List[Dict[str, Dict[str, str]]]:
        """Fan ``[language][text]`` translations out to every occurrence.

        Returns one ``[language][segment id]`` table per document. Texts with
        no translation are left out so the merge step can report them.
        """

        tables: List[Dict[str, Dict[str, str]]] = [
            {language: {} for language in translations}
            for _ in range(self.document_count)
        ]
        for language, by_text in translations.items():
            for text, translated in by_text.items():
                record = self._records.get(text)
                if record is None:
                    continue
                for occurrence in record.occurrences:
                    tables[occurrence.document_index][language][occurrence.segment_id] = translated
        return tables
