"""
errors.py - Error taxonomy for the overlay engine

Parse errors are terminal for a single upload attempt. The dataset that was
active before the failed upload stays active.
"""

from enum import Enum
from typing import Optional


class ParseErrorKind(Enum):
    """Why an uploaded document was rejected."""

    EMPTY_DOCUMENT = "empty_document"
    MALFORMED = "malformed"
    EMPTY_TABLE = "empty_table"
    MISSING_COLUMNS = "missing_columns"
    DUPLICATE_IDS = "duplicate_ids"


class ParseError(ValueError):
    """Raised when a KML or CSV document cannot become a dataset."""

    def __init__(self, kind: ParseErrorKind, message: Optional[str] = None):
        self.kind = kind
        super().__init__(message or kind.value.replace("_", " "))

    def __repr__(self) -> str:
        return f"ParseError({self.kind.name}, {str(self)!r})"


class ConfigurationError(ValueError):
    """Raised for invalid selections or settings (metric, theme, view)."""
