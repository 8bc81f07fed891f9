# tests/test_dedup.py
"""Tests for tessera.dedup - unique strings across rows and documents"""

import pytest

from tessera.dedup import UniqueStringIndex
from tessera.segmenter import Segmenter
from tessera.structures import Occurrence, SourceRow


@pytest.fixture
def segmentations():
    documents = [
        [SourceRow(1, "Hello"), SourceRow(2, "<b>Hello</b>")],
        [SourceRow(1, "  Hello "), SourceRow(2, "Bye")],
    ]
    return Segmenter().segment_documents(documents)


class TestUniqueStringIndex:
    def test_identical_text_collapses_to_one_record(self, segmentations):
        index = UniqueStringIndex.build(segmentations)

        record = index.get("Hello")
        assert record is not None
        assert record.occurrences == [
            Occurrence(document_index=0, row_index=1, segment_id="T1"),
            Occurrence(document_index=0, row_index=2, segment_id="T2"),
            Occurrence(document_index=1, row_index=1, segment_id="T1"),
        ]

    def test_counts_for_savings(self, segmentations):
        index = UniqueStringIndex.build(segmentations)

        assert len(index) == 2
        assert index.unique_count == 2
        assert index.occurrence_count == 4
        assert index.saved_requests == 2
        assert index.texts() == ["Hello", "Bye"]
        assert "Bye" in index

    def test_distribute_shares_one_translation(self, segmentations):
        index = UniqueStringIndex.build(segmentations)

        tables = index.distribute({"fr-FR": {"Hello": "Bonjour", "Bye": "Au revoir"}})

        assert tables[0] == {"fr-FR": {"T1": "Bonjour", "T2": "Bonjour"}}
        assert tables[1] == {"fr-FR": {"T1": "Bonjour", "T2": "Au revoir"}}

    def test_distribute_leaves_untranslated_text_out(self, segmentations):
        index = UniqueStringIndex.build(segmentations)

        tables = index.distribute({"de-DE": {"Hello": "Hallo"}})

        assert tables[1] == {"de-DE": {"T1": "Hallo"}}

    def test_empty_index(self):
        index = UniqueStringIndex.build([])
        assert index.unique_count == 0
        assert index.distribute({"fr-FR": {}}) == []
