"""Text extraction from PDF and DOCX documents."""

import asyncio
import io
import logging
import re
from typing import Protocol, runtime_checkable

import docx
import pypdf

from swimr.errors import ExtractionError

logger = logging.getLogger("swimr.extraction.extractor")

# Anything shorter is treated as a scanned or empty document
MIN_TEXT_LENGTH = 20


def clean_text(raw: str) -> str:
    """Normalize whitespace in extracted text.

    Args:
        raw: Raw extracted text.

    Returns:
        Text with unified newlines, collapsed spaces and at most one blank line in a row.
    """
    text = raw.replace("\r\n", "\n")
    text = re.sub(r"[ \t]+", " ", text)
    text = text.replace("\n ", "\n").replace(" \n", "\n")
    text = re.sub(r"\n{3,}", "\n\n", text)
    return text.strip()


def extract_pdf_text(data: bytes) -> str:
    """Extract text from a PDF, one block per page."""
    reader = pypdf.PdfReader(io.BytesIO(data))
    parts = [page.extract_text() or "" for page in reader.pages]
    return clean_text("\n\n".join(parts))


def extract_docx_text(data: bytes) -> str:
    """Extract text from a DOCX, including table rows."""
    document = docx.Document(io.BytesIO(data))
    parts = [para.text for para in document.paragraphs if para.text.strip()]
    for table in document.tables:
        for row in table.rows:
            cells = [cell.text.strip() for cell in row.cells if cell.text.strip()]
            if cells:
                parts.append(" | ".join(cells))
    return clean_text("\n".join(parts))


@runtime_checkable
class TextExtractor(Protocol):
    """Anything that turns a named binary document into text."""

    async def extract(self, file_name: str, data: bytes) -> str:
        ...


class DocumentTextExtractor:
    """Extracts plain text from uploaded CV documents."""

    def __init__(self, min_length: int = MIN_TEXT_LENGTH):
        """Initialize the extractor.

        Args:
            min_length: Minimum number of characters for a meaningful result.
        """
        self._min_length = min_length

    async def extract(self, file_name: str, data: bytes) -> str:
        """Extract text from a document.

        Args:
            file_name: Original file name, used to pick the parser.
            data: Raw document bytes.

        Returns:
            Normalized text.

        Raises:
            ExtractionError: If the type is unsupported or no meaningful text was found.
        """
        name = file_name.lower()
        if name.endswith(".pdf"):
            parser = extract_pdf_text
        elif name.endswith(".docx"):
            parser = extract_docx_text
        else:
            raise ExtractionError("Unsupported file type. Please upload a PDF or DOCX file.")

        try:
            text = await asyncio.to_thread(parser, data)
        except Exception as e:
            logger.warning(f"Parser failed for {file_name}: {e}")
            raise ExtractionError(f"Could not read {file_name}: {e}") from e

        if len(text) < self._min_length:
            raise ExtractionError(
                "Could not extract meaningful text from the file. Please ensure the PDF "
                "contains selectable text (not scanned images)."
            )

        logger.debug(f"Extracted {len(text)} characters from {file_name}")
        return text
