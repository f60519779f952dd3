"""PDF adapter: turns statement pages into positioned text fragments."""

import logging
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional

import pdfplumber

from ..models.core import PositionedFragment


logger = logging.getLogger(__name__)

Page = List[PositionedFragment]


class DocumentReadError(Exception):
    """A statement document could not be read at all.

    Raised for missing or unreadable files and for documents that yield no
    text; line-level problems never raise this.
    """

    def __init__(self, message: str, file_path: Optional[str] = None):
        self.file_path = file_path
        context = f" (file: {file_path})" if file_path else ""
        super().__init__(f"{message}{context}")


def fragments_from_words(words: Iterable[Dict[str, Any]], page_height: float) -> Page:
    """Convert pdfplumber words to fragments in document space.

    pdfplumber measures ``top`` downward from the page top, fragments use
    y growing upward, so y = page height - top.
    """
    fragments = []
    for word in words:
        text = word.get('text', '')
        if not text or not text.strip():
            continue
        fragments.append(PositionedFragment(
            text=text,
            x=float(word['x0']),
            y=float(page_height) - float(word['top']),
        ))
    return fragments


class PDFStatementReader:
    """Reads PDF statements page by page using pdfplumber"""

    def __init__(self):
        self.supported_extensions = ['.pdf']

    def get_supported_extensions(self) -> List[str]:
        return self.supported_extensions

    def validate_file(self, file_path: str) -> bool:
        """Validate if file can be processed by this reader"""
        if Path(file_path).suffix.lower() not in self.supported_extensions:
            return False

        try:
            with pdfplumber.open(file_path) as pdf:
                if len(pdf.pages) == 0:
                    logger.warning(f"PDF file {file_path} has no pages")
                    return False
                return True

        except Exception as e:
            logger.error(f"Error validating PDF file {file_path}: {e}")
            return False

    def read_pages(self, file_path: str) -> List[Page]:
        """Positioned fragments of every page, in page order.

        Raises:
            DocumentReadError: the file cannot be opened or holds no text
        """
        path = Path(file_path)
        if not path.exists():
            raise DocumentReadError("File not found", str(file_path))

        pages: List[Page] = []
        try:
            with pdfplumber.open(str(path)) as pdf:
                logger.info(f"Processing PDF file: {file_path} with {len(pdf.pages)} pages")
                for page_num, page in enumerate(pdf.pages, 1):
                    words = page.extract_words(keep_blank_chars=True)
                    fragments = fragments_from_words(words, page.height)
                    logger.debug(f"Page {page_num} of {file_path}: {len(fragments)} fragments")
                    pages.append(fragments)
        except Exception as e:
            raise DocumentReadError(f"Could not read PDF: {e}", str(file_path)) from e

        if not any(pages):
            raise DocumentReadError("PDF contains no extractable text", str(file_path))

        return pages
