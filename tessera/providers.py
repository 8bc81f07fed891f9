"""Translation provider abstractions.

Providers are injected by the caller; the engine never talks to a network
service itself.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Callable, Dict, List, Tuple

from .errors import TranslationProviderError


class TranslationProvider(ABC):
    """Abstract adapter for translation functions."""

    name = "provider"

    @abstractmethod
    def translate(self, text: str, source_language: str, target_language: str) -> str:
        """Translate one string."""

    def __call__(self, text: str, source_language: str, target_language: str) -> str:
        return self.translate(text, source_language, target_language)


class EchoTranslationProvider(TranslationProvider):
    """A provider that returns the original text (useful for testing)."""

    name = "echo"

    def __init__(self) -> None:
        self.calls: List[Tuple[str, str, str]] = []

    def translate(self, text: str, source_language: str, target_language: str) -> str:
        self.calls.append((text, source_language, target_language))
        return text


class CallableTranslationProvider(TranslationProvider):
    """Wraps a plain ``fn(text, source, target)`` callable."""

    name = "callable"

    def __init__(self, fn: Callable[[str, str, str], str], *, name: str | None = None) -> None:
        self._fn = fn
        if name:
            self.name = name

    def translate(self, text: str, source_language: str, target_language: str) -> str:
        result = self._fn(text, source_language, target_language)
        if not isinstance(result, str):
            raise TranslationProviderError(
                f"Translation function returned {type(result).__name__}, expected str."
            )
        return result


class DictionaryTranslationProvider(TranslationProvider):
    """Looks translations up in a fixed ``[language][text]`` table."""

    name = "dictionary"

    def __init__(self, table: Dict[str, Dict[str, str]]) -> None:
        self.table = table

    def translate(self, text: str, source_language: str, target_language: str) -> str:
        try:
            return self.table[target_language][text]
        except KeyError as exc:
            raise TranslationProviderError(
                f"No {target_language} translation for {text!r}."
            ) from exc
