"""Overwrite policy resolution and the per-cell decision table."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Dict, Iterable, Mapping, Optional, Union

from .languages import normalize_language_code

FORMULA_PREFIXES = ("=TRANSLATE(", "=COPILOT(", "TRANSLATE(", "COPILOT(")


class OverwritePolicy(str, Enum):
    """How existing content in a target language column is treated."""

    KEEP = "keep"
    FILL_EMPTY = "fill-empty"
    OVERWRITE_ALL = "overwrite-all"

    @classmethod
    def parse(cls, value: Union[str, "OverwritePolicy"]) -> "OverwritePolicy":
        if isinstance(value, cls):
            return value
        normalized = str(value).strip().lower().replace("_", "-")
        try:
            return cls(normalized)
        except ValueError as exc:
            raise ValueError(
                f"Unknown overwrite policy {value!r}; expected one of "
                + ", ".join(policy.value for policy in cls)
            ) from exc


class LegacyOverwriteMode(str, Enum):
    """Global overwrite setting used before per-language policies existed."""

    KEEP_ALL = "keep-all"
    OVERWRITE_EMPTY = "overwrite-empty"
    OVERWRITE_ALL = "overwrite-all"

    @classmethod
    def parse(cls, value: Union[str, "LegacyOverwriteMode"]) -> "LegacyOverwriteMode":
        if isinstance(value, cls):
            return value
        normalized = str(value).strip().lower().replace("_", "-")
        normalized = LEGACY_ALIASES.get(normalized, normalized)
        try:
            return cls(normalized)
        except ValueError as exc:
            raise ValueError(
                f"Unknown overwrite mode {value!r}; expected one of "
                + ", ".join(mode.value for mode in cls)
            ) from exc

    def to_policy(self) -> OverwritePolicy:
        return LEGACY_POLICY_MAP[self]


LEGACY_ALIASES = {
    "replace-empty": "overwrite-empty",
    "overwrite": "overwrite-all",
    "complete": "overwrite-all",
}

LEGACY_POLICY_MAP = {
    LegacyOverwriteMode.KEEP_ALL: OverwritePolicy.KEEP,
    LegacyOverwriteMode.OVERWRITE_EMPTY: OverwritePolicy.FILL_EMPTY,
    LegacyOverwriteMode.OVERWRITE_ALL: OverwritePolicy.OVERWRITE_ALL,
}

DEFAULT_POLICY = OverwritePolicy.FILL_EMPTY


def resolve_language_policies(
    languages: Iterable[str],
    per_language: Optional[Mapping[str, Union[str, OverwritePolicy]]] = None,
    legacy_mode: Optional[Union[str, LegacyOverwriteMode]] = None,
) -> Dict[str, OverwritePolicy]:
    """Collapse per-language and legacy settings into one policy per language.

    An explicit per-language policy wins; otherwise the legacy global mode
    applies; otherwise ``fill-empty``.
    """

    fallback = (
        LegacyOverwriteMode.parse(legacy_mode).to_policy()
        if legacy_mode
        else DEFAULT_POLICY
    )
    explicit = {
        normalize_language_code(code): OverwritePolicy.parse(value)
        for code, value in (per_language or {}).items()
    }
    resolved = dict(explicit)
    for language in languages:
        code = normalize_language_code(language)
        resolved.setdefault(code, fallback)
    return resolved


def is_blank(value: object) -> bool:
    return value is None or str(value).strip() == ""


def is_translation_formula(value: object) -> bool:
    """True for cells still holding a TRANSLATE/COPILOT formula."""

    if not isinstance(value, str):
        return False
    return value.strip().startswith(FORMULA_PREFIXES)


class Reason(str, Enum):
    """Why a cell was or was not written; recorded in the audit log."""

    VERBATIM_FIELD = "verbatim field, copied without translation"
    NO_SOURCE = "source has no content"
    NEW_COLUMN = "new language column, target was empty"
    FILL_EMPTY_TARGET_EMPTY = "fill-empty mode, target was empty"
    FILL_EMPTY_TARGET_FILLED = "fill-empty mode, target already has content"
    OVERWRITE_ALL = "overwrite-all mode"
    KEEP = "keep mode"
    TARGET_EMPTY = "target was empty"
    FORMULA_REPLACED = "target held an unresolved translation formula"


@dataclass(frozen=True)
class CellDecision:
    """Outcome of the decision table for one cell."""

    write: bool
    reason: Reason


def decide_source_copy(
    *,
    verbatim_eligible: bool,
    existing_language: bool,
    policy: OverwritePolicy,
    target_empty: bool,
    has_source: bool,
) -> CellDecision:
    """Decide whether a row without segments gets its source copied.

    | verbatim | existing | policy        | target empty | -> decision        |
    |----------|----------|---------------|--------------|--------------------|
    | any      | any      | any           | any          | skip if no source  |
    | yes      | any      | any           | any          | copy               |
    | no       | no       | any           | yes          | copy (new column)  |
    | no       | yes      | fill-empty    | yes          | copy               |
    | no       | yes      | fill-empty    | no           | skip               |
    | no       | yes      | overwrite-all | any          | copy               |
    | no       | yes      | keep          | any          | skip               |
    """

    if not has_source:
        return CellDecision(False, Reason.NO_SOURCE)
    if verbatim_eligible:
        return CellDecision(True, Reason.VERBATIM_FIELD)
    if not existing_language:
        return CellDecision(target_empty, Reason.NEW_COLUMN)
    if policy is OverwritePolicy.FILL_EMPTY:
        if target_empty:
            return CellDecision(True, Reason.FILL_EMPTY_TARGET_EMPTY)
        return CellDecision(False, Reason.FILL_EMPTY_TARGET_FILLED)
    if policy is OverwritePolicy.OVERWRITE_ALL:
        return CellDecision(True, Reason.OVERWRITE_ALL)
    return CellDecision(False, Reason.KEEP)


def decide_translation_write(
    *,
    policy: OverwritePolicy,
    current_value: object,
) -> CellDecision:
    """Decide whether a rebuilt translation replaces the current cell.

    Blank cells and leftover translation formulas are always replaced; real
    content is only replaced under ``overwrite-all``.
    """

    if is_blank(current_value):
        return CellDecision(True, Reason.TARGET_EMPTY)
    if is_translation_formula(current_value):
        return CellDecision(True, Reason.FORMULA_REPLACED)
    if policy is OverwritePolicy.OVERWRITE_ALL:
        return CellDecision(True, Reason.OVERWRITE_ALL)
    if policy is OverwritePolicy.FILL_EMPTY:
        return CellDecision(False, Reason.FILL_EMPTY_TARGET_FILLED)
    return CellDecision(False, Reason.KEEP)
