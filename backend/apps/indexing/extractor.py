"""
Text extraction from uploaded documents.

Supports:
- text/*: UTF-8 text (with fallback for encoding errors)
- application/pdf: Best-effort text extraction using PyMuPDF, plus page count
"""
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

import fitz  # PyMuPDF

logger = logging.getLogger(__name__)


class ExtractionError(Exception):
    """Raised when text extraction fails."""
    pass


@dataclass
class ExtractedText:
    """Extracted document text and, for paged formats, the page count."""
    text: str
    pages: Optional[int] = None


def extract_from_txt(file_path: Path) -> ExtractedText:
    """
    Extract text from a plain text file.

    Raises:
        ExtractionError: If file cannot be read
    """
    try:
        try:
            text = file_path.read_text(encoding='utf-8')
        except UnicodeDecodeError:
            logger.warning(f"UTF-8 decode failed for {file_path}, using errors='ignore'")
            text = file_path.read_text(encoding='utf-8', errors='ignore')
    except OSError as e:
        raise ExtractionError(f"Failed to extract text from TXT: {e}")
    return ExtractedText(text=text)


def extract_from_pdf(file_path: Path) -> ExtractedText:
    """
    Extract text from a PDF file using PyMuPDF.

    Scanned, image-only PDFs yield empty text; there is no OCR.

    Raises:
        ExtractionError: If extraction fails
    """
    try:
        text_parts = []
        with fitz.open(file_path) as doc:
            pages = doc.page_count
            for page in doc:
                page_text = page.get_text()
                if page_text.strip():
                    text_parts.append(page_text)
    except Exception as e:
        raise ExtractionError(f"Failed to extract text from PDF: {e}")

    if not text_parts:
        logger.warning(f"No text extracted from PDF {file_path} (may be image-based)")

    return ExtractedText(text="\n\n".join(text_parts), pages=pages)


def extract_text(file_path: Path, mime_type: str) -> ExtractedText:
    """
    Extract text based on MIME type.

    Raises:
        ExtractionError: If extraction fails or the type is unsupported
    """
    logger.info(f"Extracting text from {file_path} (mime_type={mime_type})")

    if mime_type == 'application/pdf':
        return extract_from_pdf(file_path)
    if mime_type.startswith('text/'):
        return extract_from_txt(file_path)

    raise ExtractionError(f"Unsupported MIME type: {mime_type}")
