# tests/test_glossary.py
"""Tests for tessera.glossary - substitution, restoration and short-circuit"""

import pytest

from tessera.glossary import (
    FULL_MATCH_TOKEN,
    apply_glossary_substitutions,
    find_predefined_translation,
    is_failure_sentinel,
    restore_glossary_substitutions,
    translate_with_glossary,
)
from tessera.structures import GlossaryEntry, TranslationOrigin


@pytest.fixture
def glossary():
    return [
        GlossaryEntry({"en": "Sign in", "fr-FR": "Se connecter"}),
        GlossaryEntry({"en": "account", "fr-FR": "compte"}),
        GlossaryEntry({"en": "user account", "fr-FR": "compte utilisateur"}),
        GlossaryEntry({"en": "Dashboard", "de-DE": "Übersicht"}),
    ]


def never_translate(text, source_lang, target_lang):
    pytest.fail(f"translate should not be called for {text!r}")


# =============================================================================
# Exact matches
# =============================================================================

class TestPredefinedTranslation:
    def test_trimmed_case_insensitive_match(self, glossary):
        assert find_predefined_translation("  sign IN ", "en", "fr-FR", glossary) == "Se connecter"

    def test_language_codes_are_normalised(self, glossary):
        assert find_predefined_translation("Sign in", "EN", "fr_fr", glossary) == "Se connecter"

    def test_missing_target_is_no_match(self, glossary):
        assert find_predefined_translation("Dashboard", "en", "fr-FR", glossary) is None
        assert find_predefined_translation("", "en", "fr-FR", glossary) is None


# =============================================================================
# Embedded substitution
# =============================================================================

class TestSubstitution:
    def test_longest_term_first_without_overlap(self, glossary):
        result = apply_glossary_substitutions(
            "Open your user account and account settings", "en", "fr-FR", glossary
        )

        assert result.processed_text == "Open your __GLOSS_0__ and __GLOSS_1__ settings"
        assert result.substitutions == {
            "__GLOSS_0__": "compte utilisateur",
            "__GLOSS_1__": "compte",
        }

    def test_single_words_respect_word_boundaries(self, glossary):
        result = apply_glossary_substitutions("Check accounts", "en", "fr-FR", glossary)
        assert result.has_substitutions is False
        assert result.processed_text == "Check accounts"

    def test_each_occurrence_gets_its_own_placeholder(self, glossary):
        result = apply_glossary_substitutions("account or account", "en", "fr-FR", glossary)
        assert result.processed_text == "__GLOSS_0__ or __GLOSS_1__"

    def test_full_match_short_circuits(self, glossary):
        result = apply_glossary_substitutions("Sign in", "en", "fr-FR", glossary)
        assert result.is_full_match
        assert result.processed_text == FULL_MATCH_TOKEN

    def test_restore_is_literal(self):
        text = "Ouvrir __GLOSS_0__ (__GLOSS_1__)"
        restored = restore_glossary_substitutions(
            text, {"__GLOSS_0__": "compte $1", "__GLOSS_1__": r"a\b"}
        )
        assert restored == r"Ouvrir compte $1 (a\b)"


# =============================================================================
# Glossary-assisted translation
# =============================================================================

class TestTranslateWithGlossary:
    def test_full_match_never_calls_translate(self, glossary):
        outcome = translate_with_glossary(" Sign In ", "en", "fr-FR", glossary, never_translate)

        assert outcome.text == "Se connecter"
        assert outcome.origin is TranslationOrigin.GLOSSARY

    def test_placeholders_are_restored_after_translation(self, glossary):
        sent = []

        def fake_translate(text, source_lang, target_lang):
            sent.append(text)
            return f"[{target_lang}] {text}"

        outcome = translate_with_glossary(
            "Open your user account", "en", "fr-FR", glossary, fake_translate
        )

        assert sent == ["Open your __GLOSS_0__"]
        assert outcome.text == "[fr-FR] Open your compte utilisateur"
        assert outcome.origin is TranslationOrigin.MACHINE

    def test_failure_becomes_visible_sentinel(self, glossary):
        def failing(text, source_lang, target_lang):
            raise RuntimeError("quota exceeded")

        outcome = translate_with_glossary("Open your account", "en", "fr-FR", glossary, failing)

        assert outcome.origin is TranslationOrigin.FAILED
        assert outcome.text == "[Translation failed: quota exceeded]"
        assert outcome.error == "quota exceeded"
        assert is_failure_sentinel(outcome.text)
