"""Plain-text extraction from stored document files.

PDF pages are read with PyMuPDF, DOCX paragraphs with python-docx, and
txt/text files are read as UTF-8. Parsing is blocking, so it runs in the
default executor.
"""

import asyncio
from pathlib import Path

import docx
import fitz

from shared.exceptions import InvariantViolationError
from shared.models.document import FileType


def _read_pdf(path: Path) -> str:
    with fitz.open(str(path)) as pdf:
        return "\n\n".join(page.get_text() for page in pdf)


def _read_docx(path: Path) -> str:
    document = docx.Document(str(path))
    return "\n".join(paragraph.text for paragraph in document.paragraphs)


def _read_text(path: Path) -> str:
    return path.read_text(encoding="utf-8", errors="replace")


_READERS = {
    FileType.PDF: _read_pdf,
    FileType.DOCX: _read_docx,
    FileType.TXT: _read_text,
    FileType.TEXT: _read_text,
}


class TextExtractor:
    def __init__(self, logger) -> None:
        self.logging = logger

    async def extract_text(self, file_path: str, file_type: FileType | str) -> str:
        """Extract the plain text of a stored file.

        Args:
            file_path (str): Path of the stored file.
            file_type (FileType | str): One of pdf, docx, txt, text.

        Returns:
            str: The extracted text, stripped.

        Raises:
            InvariantViolationError: If the type is unsupported or the file is missing.
        """
        try:
            reader = _READERS[FileType(file_type)]
        except ValueError:
            raise InvariantViolationError(f"Unsupported file type: {file_type}")

        path = Path(file_path)
        if not path.is_file():
            raise InvariantViolationError(f"Stored file not found: {file_path}")

        text = await asyncio.get_running_loop().run_in_executor(None, reader, path)
        self.logging.info("Extracted %d characters from %s (%s)", len(text), path.name, FileType(file_type).value)
        return text.strip()
