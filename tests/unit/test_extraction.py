"""Tests for document text extraction."""

import io

import pypdf
import pytest

from conftest import make_docx
from swimr.errors import ExtractionError
from swimr.extraction.extractor import DocumentTextExtractor, TextExtractor, clean_text


def make_blank_pdf() -> bytes:
    writer = pypdf.PdfWriter()
    writer.add_blank_page(width=612, height=792)
    buffer = io.BytesIO()
    writer.write(buffer)
    return buffer.getvalue()


class TestCleanText:
    """Tests for clean_text."""

    def test_collapses_whitespace(self):
        """Test space, tab and blank-line normalization."""
        raw = "Alice\t  Smith \r\nEngineer\n\n\n\n  Python "
        assert clean_text(raw) == "Alice Smith\nEngineer\n\nPython"

    def test_empty(self):
        assert clean_text("  \n\n ") == ""


class TestDocumentTextExtractor:
    """Tests for DocumentTextExtractor."""

    def test_satisfies_protocol(self):
        assert isinstance(DocumentTextExtractor(), TextExtractor)

    @pytest.mark.asyncio
    async def test_docx_paragraphs_and_tables(self):
        """Test DOCX extraction including table rows."""
        data = make_docx(
            ["Alice Smith", "", "Senior data engineer, ten years of Python."],
            table=[["Skill", "Years"], ["SQL", "8"]],
        )

        text = await DocumentTextExtractor().extract("Alice.DOCX", data)

        assert text.startswith("Alice Smith\nSenior data engineer")
        assert "Skill | Years" in text
        assert "SQL | 8" in text

    @pytest.mark.asyncio
    async def test_unsupported_type(self):
        """Test that other file types are rejected."""
        with pytest.raises(ExtractionError, match="PDF or DOCX"):
            await DocumentTextExtractor().extract("cv.txt", b"plain text CV")

    @pytest.mark.asyncio
    async def test_pdf_without_text(self):
        """Test that image-only PDFs are reported as scanned."""
        with pytest.raises(ExtractionError, match="scanned images"):
            await DocumentTextExtractor().extract("scan.pdf", make_blank_pdf())

    @pytest.mark.asyncio
    async def test_short_docx(self):
        """Test the minimum text length."""
        data = make_docx(["Hi"])
        with pytest.raises(ExtractionError):
            await DocumentTextExtractor().extract("short.docx", data)

        assert await DocumentTextExtractor(min_length=1).extract("short.docx", data) == "Hi"

    @pytest.mark.asyncio
    async def test_corrupt_file(self):
        """Test that parser failures become extraction errors."""
        with pytest.raises(ExtractionError, match="Could not read broken.docx"):
            await DocumentTextExtractor().extract("broken.docx", b"not a zip archive")
