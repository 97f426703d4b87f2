"""PDF direct text extraction.

Pulls the text already embedded in a PDF, without rendering pixels.
Image-only PDFs are not an error here: they come back with empty text
and a correct page count so the caller can fall back to OCR. The same
happens when any single page's text cannot be read.
"""
from __future__ import annotations

import logging
from typing import List, Tuple

from PyPDF2 import PdfReader

from docqa.errors import MalformedDocument
from docqa.models import Document

logger = logging.getLogger(__name__)


class PdfTextExtractor:
    """Direct text extractor backed by PyPDF2."""

    def _open(self, document: Document) -> PdfReader:
        try:
            reader = PdfReader(document.path)
            if reader.is_encrypted and not reader.decrypt(""):
                raise MalformedDocument(f"{document.document_id} is password protected")
            # Forces the page tree to be parsed so broken files fail here.
            len(reader.pages)
        except MalformedDocument:
            raise
        except Exception as e:
            raise MalformedDocument(f"Cannot open {document.document_id} as PDF: {e}") from e
        return reader

    def extract(self, document: Document) -> Tuple[str, int]:
        reader = self._open(document)
        parts: List[str] = []
        failed: List[int] = []
        for index, page in enumerate(reader.pages, start=1):
            try:
                parts.append(page.extract_text() or "")
            except Exception as e:
                logger.warning("Text extraction failed for %s page %d: %s", document.document_id, index, e)
                failed.append(index)
                parts.append("")

        if failed:
            # Partial text would skip OCR and lose the failed pages, so hand back
            # nothing and let the whole document go through OCR.
            logger.warning("Discarding direct text of %s, unreadable pages %s", document.document_id, failed)
            return "", len(parts)

        text = "\n".join(parts)
        logger.info("Direct extraction of %s: %d characters, %d pages", document.document_id, len(text), len(parts))
        return text, len(parts)

    def page_count(self, document: Document) -> int:
        return len(self._open(document).pages)


def text_is_meaningful(text: str) -> bool:
    """True when direct extraction produced usable text (anything but whitespace)."""
    return bool((text or "").strip())
