# tests/test_segmenter.py
"""Tests for tessera.segmenter - extraction and placeholder templating"""

import logging

import pytest

import tessera.segmenter as segmenter_module
from tessera.errors import MarkupParseError
from tessera.merge import fill_template
from tessera.segmenter import Segmenter
from tessera.structures import IdAllocator, SourceRow


def segment(content, terms=(), row_index=1):
    result = Segmenter(terms).segment_rows([SourceRow(row_index, content)], IdAllocator())
    return result, result.templates[0]


# =============================================================================
# Plain text
# =============================================================================

class TestPlainText:
    def test_trimmed_text_becomes_one_segment(self):
        result, template = segment("  Hello world  ")

        assert [(s.segment_id, s.text) for s in result.segments] == [("T1", "Hello world")]
        assert template.template == "  {T1}  "
        assert template.segment_ids == ("T1",)

    def test_fully_protected_content_is_left_unchanged(self):
        result, template = segment("ACME", ["acme"])

        assert result.segments == []
        assert template.template == "ACME"

    def test_protected_edges_stay_literal(self):
        result, template = segment("ACME rocks", ["ACME"])

        assert [s.text for s in result.segments] == ["rocks"]
        assert template.template == "ACME {T1}"

    def test_curly_tokens_are_protected_automatically(self):
        result, template = segment("Hello {name}!")

        assert [s.text for s in result.segments] == ["Hello", "!"]
        assert template.template == "{T1} {name}{T2}"

    def test_literal_placeholder_token_is_not_a_slot(self):
        result, template = segment("{T1} Hello")

        assert [(s.segment_id, s.text) for s in result.segments] == [("T1", "Hello")]
        assert template.template == "{T1} {T1}"
        assert template.pieces == ("{T1} ", "")
        assert fill_template(template, ["T1"], {"T1": "Bonjour"}) == ("{T1} Bonjour", [])

    def test_blank_content(self):
        result, template = segment("   ")
        assert result.segments == []
        assert template.template == "   "


# =============================================================================
# Markup
# =============================================================================

class TestMarkup:
    def test_one_segment_per_text_node(self):
        result, template = segment("<p>Hello <b>world</b></p>")

        assert [s.text for s in result.segments] == ["Hello", "world"]
        assert template.template == "<p>{T1} <b>{T2}</b></p>"

    def test_protected_term_inside_text_node(self):
        result, template = segment("<p>Powered by ACME Cloud</p>", ["ACME Cloud"])

        assert [s.text for s in result.segments] == ["Powered by"]
        assert template.template == "<p>{T1} ACME Cloud</p>"

    def test_entity_and_whitespace_only_nodes_are_not_extracted(self):
        result, template = segment("<p>&nbsp;</p>\n<p>Text</p>")

        assert [s.text for s in result.segments] == ["Text"]
        assert template.template == "<p>&nbsp;</p>\n<p>{T1}</p>"

    def test_entities_stay_in_segment_text(self):
        result, _ = segment("<p>Tom &amp; Jerry</p>")
        assert result.segments[0].text == "Tom &amp; Jerry"

    def test_protected_term_matches_decoded_entities(self):
        result, template = segment("<p>R&amp;D team</p>", ["R&D"])

        assert [s.text for s in result.segments] == ["team"]
        assert template.template == "<p>R&amp;D {T1}</p>"

    def test_encoded_text_around_a_protected_term_stays_encoded(self):
        result, template = segment("<p>Ask R&amp;D &amp; QA</p>", ["R&D"])

        assert [s.text for s in result.segments] == ["Ask", "&amp; QA"]
        assert template.template == "<p>{T1} R&amp;D {T2}</p>"

    def test_unparsable_markup_degrades_to_no_extraction(self, monkeypatch, caplog):
        def boom(text):
            raise MarkupParseError("broken")

        monkeypatch.setattr(segmenter_module, "parse_markup", boom)
        with caplog.at_level(logging.WARNING, logger="tessera.segmenter"):
            result, template = segment("<p>Hello</p>")

        assert result.segments == []
        assert template.template == "<p>Hello</p>"
        assert "could not be parsed" in caplog.text

    @pytest.mark.parametrize("content", ["<p>x<b", "<div>Hi <span"])
    def test_truncated_markup_degrades_to_no_extraction(self, content, caplog):
        with caplog.at_level(logging.WARNING, logger="tessera.segmenter"):
            result, template = segment(content)

        assert result.segments == []
        assert template.template == content
        assert "could not be parsed" in caplog.text

    def test_unterminated_comment_is_never_extracted(self):
        result, template = segment("<p>a</p><!--")

        assert all("<!--" not in s.text for s in result.segments)
        rebuilt, _ = fill_template(template, template.segment_ids, result.texts_by_id())
        assert rebuilt == "<p>a</p><!--"


# =============================================================================
# Properties
# =============================================================================

class TestProperties:
    @pytest.mark.parametrize(
        "content",
        [
            "Plain text",
            "  padded  ",
            '<p class="a">Tom &amp; Jerry</p>\n<p>Second <i>line</i></p>',
            "<ul><li>One<li>Two</ul>",
            "Hi {name}, bye",
            "<div><!-- keep --> Text <br> more </div>",
            "{T1} Hello",
            "<p>{T1} Hello</p>",
            "<p>Order {T2} then {T1}</p>",
        ],
    )
    def test_round_trip_with_original_text(self, content):
        result, template = segment(content)

        rebuilt, missing = fill_template(
            template, template.segment_ids, result.texts_by_id()
        )
        assert missing == []
        assert rebuilt == content

    def test_protected_term_never_inside_a_segment(self):
        content = "<p>Use ACME daily</p><p>acme is great</p>"
        result, template = segment(content, ["ACME"])

        assert all("acme" not in s.text.lower() for s in result.segments)
        assert "ACME" in template.template
        assert "acme is" not in template.template
        assert "acme" in template.template
        assert "<<<__DNT__" not in template.template

    def test_ids_follow_row_order(self):
        rows = [SourceRow(1, "One"), SourceRow(2, "<p>Two <b>Three</b></p>"), SourceRow(3, "Four")]
        result = Segmenter().segment_rows(rows, IdAllocator())

        assert [(s.segment_id, s.row_index) for s in result.segments] == [
            ("T1", 1),
            ("T2", 2),
            ("T3", 2),
            ("T4", 3),
        ]
        assert result.ids_by_row() == {1: ["T1"], 2: ["T2", "T3"], 3: ["T4"]}

    def test_deterministic_with_fresh_allocator(self):
        rows = [SourceRow(1, "<p>Hi <b>ACME</b> team</p>"), SourceRow(2, "Bye")]
        segmenter = Segmenter(["ACME"])

        first = segmenter.segment_rows(rows, IdAllocator())
        allocator = IdAllocator()
        allocator.allocate()
        allocator.reset()
        second = segmenter.segment_rows(rows, allocator)

        assert first == second

    def test_each_document_gets_its_own_ids(self):
        documents = [[SourceRow(1, "A")], [SourceRow(1, "B")]]
        results = Segmenter().segment_documents(documents)

        assert [r.segments[0].segment_id for r in results] == ["T1", "T1"]
