"""Error definitions for the Tessera engine."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum, auto
from typing import Optional


class ErrorCategory(Enum):
    """Categorises recorded problems for audit reports."""

    CONFIGURATION = auto()
    MARKUP = auto()
    TRANSLATION = auto()
    MISSING_TRANSLATION = auto()
    MERGE = auto()
    OTHER = auto()


class TesseraError(Exception):
    """Base exception for all custom errors."""


class ConfigurationError(TesseraError):
    """Raised when configuration sources are unreadable or invalid."""


class MarkupParseError(TesseraError):
    """Raised when markup cannot be turned into a lossless node tree."""


class TranslationProviderError(TesseraError):
    """Raised by translation functions when a request fails."""


@dataclass(frozen=True)
class ErrorRecord:
    """Stores context for a non-fatal problem."""

    category: ErrorCategory
    message: str
    details: Optional[str] = None
