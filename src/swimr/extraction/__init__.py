"""Document text extraction."""

from swimr.extraction.extractor import (
    MIN_TEXT_LENGTH,
    DocumentTextExtractor,
    TextExtractor,
    clean_text,
)

__all__ = [
    "DocumentTextExtractor",
    "MIN_TEXT_LENGTH",
    "TextExtractor",
    "clean_text",
]
