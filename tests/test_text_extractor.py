"""Tests for text extraction from stored files."""
import logging
import os

import docx
import fitz
import pytest

from shared.exceptions import InvariantViolationError
from shared.extraction.TextExtractor import TextExtractor
from shared.models.document import FileType


@pytest.fixture
def extractor():
    return TextExtractor(logger=logging.getLogger("knowledge_bridge.tests"))


class TestTextExtractor:
    """Tests for each supported file type."""

    @pytest.mark.asyncio
    async def test_txt(self, extractor, temp_dir):
        path = os.path.join(temp_dir, "faq.txt")
        with open(path, "w", encoding="utf-8") as f:
            f.write("  Câu hỏi thường gặp\n\nGiờ làm việc: 8h-17h  \n")

        text = await extractor.extract_text(path, FileType.TXT)

        assert text == "Câu hỏi thường gặp\n\nGiờ làm việc: 8h-17h"

    @pytest.mark.asyncio
    async def test_docx(self, extractor, temp_dir):
        path = os.path.join(temp_dir, "manual.docx")
        document = docx.Document()
        document.add_paragraph("Installation")
        document.add_paragraph("Run the installer and follow the steps.")
        document.save(path)

        text = await extractor.extract_text(path, "docx")

        assert text == "Installation\nRun the installer and follow the steps."

    @pytest.mark.asyncio
    async def test_pdf(self, extractor, temp_dir):
        path = os.path.join(temp_dir, "pricing.pdf")
        pdf = fitz.open()
        pdf.new_page().insert_text((72, 72), "Pro plan costs 20 USD")
        pdf.new_page().insert_text((72, 72), "Basic plan is free")
        pdf.save(path)
        pdf.close()

        text = await extractor.extract_text(path, FileType.PDF)

        assert "Pro plan costs 20 USD" in text
        assert "Basic plan is free" in text
        assert text.index("Pro plan") < text.index("Basic plan")

    @pytest.mark.asyncio
    async def test_unsupported_type(self, extractor, temp_dir):
        with pytest.raises(InvariantViolationError):
            await extractor.extract_text(os.path.join(temp_dir, "a.xlsx"), "xlsx")

    @pytest.mark.asyncio
    async def test_missing_file(self, extractor, temp_dir):
        with pytest.raises(InvariantViolationError):
            await extractor.extract_text(os.path.join(temp_dir, "gone.txt"), FileType.TXT)
