"""Language code helpers."""

from __future__ import annotations

import logging
import re
from typing import Dict, Iterable, Mapping, Optional, Sequence

logger = logging.getLogger(__name__)

HEADER_LANGUAGE_PATTERN = re.compile(r"\b([a-z]{2}-[a-z]{2})\b", re.IGNORECASE)

# Provider codes that map onto a regional default.
PROVIDER_DEFAULT_REGIONS: Dict[str, str] = {
    "ar": "ar-SA",
    "bg": "bg-BG",
    "cs": "cs-CZ",
    "da": "da-DK",
    "de": "de-DE",
    "en": "en-GB",
    "es": "es-ES",
    "et": "et-EE",
    "fi": "fi-FI",
    "fr": "fr-FR",
    "fr-ca": "fr-CA",
    "hu": "hu-HU",
    "id": "id-ID",
    "it": "it-IT",
    "ja": "ja-JP",
    "ko": "ko-KR",
    "lt": "lt-LT",
    "lv": "lv-LV",
    "ms": "ms-MY",
    "nb": "nb-NO",
    "nl": "nl-NL",
    "pl": "pl-PL",
    "pt": "pt-BR",
    "pt-br": "pt-BR",
    "pt-pt": "pt-PT",
    "ro": "ro-RO",
    "ru": "ru-RU",
    "sk": "sk-SK",
    "sl": "sl-SI",
    "sv": "sv-SE",
    "th": "th-TH",
    "tr": "tr-TR",
    "uk": "uk-UA",
    "vi": "vi-VN",
    "zh": "zh-CN",
    "zh-chs": "zh-CHS",
    "zh-cn": "zh-CN",
    "zh-hans": "zh-CN",
}


def normalize_language_code(code: str) -> str:
    """Normalise ``EN_gb`` style codes to ``en-GB``.

    Codes that are not exactly language + region are lowercased.
    """

    if not code or not isinstance(code, str):
        return ""
    parts = re.split(r"[-_]", code.strip())
    if len(parts) != 2:
        return code.strip().lower()
    return f"{parts[0].lower()}-{parts[1].upper()}"


def base_language(code: str) -> str:
    """Return the base language of a code (``fr`` for ``fr-CA``)."""

    return re.split(r"[-_]", str(code or "").strip())[0].lower()


def languages_match(candidate: str, target: str) -> bool:
    """True when ``candidate`` is ``target`` or shares its base language."""

    if normalize_language_code(candidate) == normalize_language_code(target):
        return True
    base = base_language(target)
    return bool(base) and base_language(candidate) == base


def detect_header_language(label: object) -> Optional[str]:
    """Extract a normalised ``xx-YY`` code from a column header, if any."""

    if not isinstance(label, str):
        return None
    match = HEADER_LANGUAGE_PATTERN.search(label)
    if not match:
        return None
    return normalize_language_code(match.group(1))


def detect_language_columns(header: Iterable[object]) -> Dict[str, int]:
    """Map normalised language codes to the header columns that carry them."""

    columns: Dict[str, int] = {}
    for index, label in enumerate(header):
        code = detect_header_language(label)
        if code:
            columns[code] = index
    return columns


def match_glossary_language(
    input_code: str,
    selected_targets: Sequence[str],
    language_names: Optional[Mapping[str, str]] = None,
    defaults: Mapping[str, str] = PROVIDER_DEFAULT_REGIONS,
) -> Optional[str]:
    """Match a glossary column label to one of the selected target codes.

    Tries, in order: an exact code, the base language, the language name
    (``French``) and finally the provider default region table.
    """

    if not input_code or not selected_targets:
        return None

    normalized = input_code.strip().lower()

    for target in selected_targets:
        if target.lower() == normalized:
            return target

    base = base_language(normalized)
    for target in selected_targets:
        if target.lower().startswith(base + "-"):
            return target

    for iso_code, name in (language_names or {}).items():
        if name.lower() != normalized:
            continue
        for target in selected_targets:
            if target.lower().startswith(iso_code.lower() + "-"):
                return target

    mapped = defaults.get(normalized) or defaults.get(base)
    if mapped:
        for target in selected_targets:
            if target.lower() == mapped.lower():
                return target

    logger.debug("No glossary language match for %r", input_code)
    return None
