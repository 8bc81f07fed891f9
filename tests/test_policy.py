# tests/test_policy.py
"""Tests for tessera.policy and tessera.languages"""

import pytest

from tessera.languages import (
    base_language,
    detect_language_columns,
    languages_match,
    match_glossary_language,
    normalize_language_code,
)
from tessera.policy import (
    LegacyOverwriteMode,
    OverwritePolicy,
    Reason,
    decide_source_copy,
    decide_translation_write,
    is_blank,
    is_translation_formula,
    resolve_language_policies,
)


# =============================================================================
# Policy parsing and resolution
# =============================================================================

class TestPolicyParsing:
    def test_parse_accepts_underscores_and_case(self):
        assert OverwritePolicy.parse("FILL_EMPTY") is OverwritePolicy.FILL_EMPTY
        assert OverwritePolicy.parse(OverwritePolicy.KEEP) is OverwritePolicy.KEEP

    def test_parse_rejects_unknown_values(self):
        with pytest.raises(ValueError, match="Unknown overwrite policy"):
            OverwritePolicy.parse("sometimes")

    @pytest.mark.parametrize(
        "legacy,expected",
        [
            ("keep-all", OverwritePolicy.KEEP),
            ("overwrite-empty", OverwritePolicy.FILL_EMPTY),
            ("replace-empty", OverwritePolicy.FILL_EMPTY),
            ("overwrite-all", OverwritePolicy.OVERWRITE_ALL),
            ("overwrite", OverwritePolicy.OVERWRITE_ALL),
        ],
    )
    def test_legacy_modes_map_to_policies(self, legacy, expected):
        assert LegacyOverwriteMode.parse(legacy).to_policy() is expected

    def test_explicit_policy_wins_over_legacy(self):
        resolved = resolve_language_policies(
            ["fr-FR", "de-DE"], {"fr_fr": "keep"}, "overwrite-all"
        )
        assert resolved == {
            "fr-FR": OverwritePolicy.KEEP,
            "de-DE": OverwritePolicy.OVERWRITE_ALL,
        }

    def test_default_is_fill_empty(self):
        assert resolve_language_policies(["it-IT"]) == {"it-IT": OverwritePolicy.FILL_EMPTY}


# =============================================================================
# Cell checks
# =============================================================================

class TestCellChecks:
    def test_blank(self):
        assert is_blank(None)
        assert is_blank("   ")
        assert not is_blank(0)
        assert not is_blank("x")

    @pytest.mark.parametrize(
        "value,expected",
        [
            ("=TRANSLATE(D2)", True),
            ("  =COPILOT(D2, \"fr\")", True),
            ("TRANSLATE(D2)", True),
            ("Translate this", False),
            (None, False),
            (42, False),
        ],
    )
    def test_formula_detection(self, value, expected):
        assert is_translation_formula(value) is expected


# =============================================================================
# Decision table
# =============================================================================

class TestDecideSourceCopy:
    @pytest.mark.parametrize(
        "verbatim,existing,policy,target_empty,has_source,write,reason",
        [
            (True, True, OverwritePolicy.KEEP, False, False, False, Reason.NO_SOURCE),
            (True, True, OverwritePolicy.KEEP, False, True, True, Reason.VERBATIM_FIELD),
            (True, False, OverwritePolicy.FILL_EMPTY, True, True, True, Reason.VERBATIM_FIELD),
            (False, False, OverwritePolicy.KEEP, True, True, True, Reason.NEW_COLUMN),
            (False, False, OverwritePolicy.KEEP, False, True, False, Reason.NEW_COLUMN),
            (False, True, OverwritePolicy.FILL_EMPTY, True, True, True, Reason.FILL_EMPTY_TARGET_EMPTY),
            (False, True, OverwritePolicy.FILL_EMPTY, False, True, False, Reason.FILL_EMPTY_TARGET_FILLED),
            (False, True, OverwritePolicy.OVERWRITE_ALL, False, True, True, Reason.OVERWRITE_ALL),
            (False, True, OverwritePolicy.KEEP, True, True, False, Reason.KEEP),
        ],
    )
    def test_table(self, verbatim, existing, policy, target_empty, has_source, write, reason):
        decision = decide_source_copy(
            verbatim_eligible=verbatim,
            existing_language=existing,
            policy=policy,
            target_empty=target_empty,
            has_source=has_source,
        )
        assert decision.write is write
        assert decision.reason is reason


class TestDecideTranslationWrite:
    @pytest.mark.parametrize("policy", list(OverwritePolicy))
    def test_blank_and_formula_cells_are_always_written(self, policy):
        assert decide_translation_write(policy=policy, current_value="").write
        formula = decide_translation_write(policy=policy, current_value="=TRANSLATE(D2)")
        assert formula.write
        assert formula.reason is Reason.FORMULA_REPLACED

    @pytest.mark.parametrize(
        "policy,write",
        [
            (OverwritePolicy.KEEP, False),
            (OverwritePolicy.FILL_EMPTY, False),
            (OverwritePolicy.OVERWRITE_ALL, True),
        ],
    )
    def test_real_content(self, policy, write):
        assert decide_translation_write(policy=policy, current_value="Bonjour").write is write


# =============================================================================
# Language codes
# =============================================================================

class TestLanguages:
    @pytest.mark.parametrize(
        "code,expected",
        [("EN_gb", "en-GB"), ("fr-fr", "fr-FR"), ("DE", "de"), ("zh-Hans-CN", "zh-hans-cn"), ("", "")],
    )
    def test_normalize(self, code, expected):
        assert normalize_language_code(code) == expected

    def test_base_language_matching(self):
        assert base_language("fr-CA") == "fr"
        assert languages_match("fr-CA", "fr-FR")
        assert languages_match("FR_fr", "fr-FR")
        assert not languages_match("de-DE", "fr-FR")

    def test_detect_language_columns(self):
        header = ["Key", "Type", "Field", "en-GB", "Text FR-fr", None]
        assert detect_language_columns(header) == {"en-GB": 3, "fr-FR": 4}

    @pytest.mark.parametrize(
        "code,targets,expected",
        [
            ("fr-FR", ["de-DE", "fr-FR"], "fr-FR"),
            ("fr", ["de-DE", "fr-FR"], "fr-FR"),
            ("French", ["fr-FR"], "fr-FR"),
            ("zh-Hans", ["zh-CN"], "zh-CN"),
            ("ja", ["fr-FR"], None),
            ("", ["fr-FR"], None),
        ],
    )
    def test_match_glossary_language(self, code, targets, expected):
        names = {"fr": "French", "de": "German"}
        assert match_glossary_language(code, targets, names) == expected
