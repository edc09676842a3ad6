"""
PDF Text Parser
===============

PDF parser for text-based PDFs (not scanned).
Uses pypdf for extraction.
"""

import io
import logging
from typing import List, Optional

from pypdf import PdfReader

from .base import DocumentParser, ParseResult, ParserError

logger = logging.getLogger(__name__)


class PDFTextParser(DocumentParser):
    """
    PDF text parser.

    Extracts embedded text page by page; pages are joined with newlines.
    """

    @property
    def supported_mimes(self) -> List[str]:
        return [
            "application/pdf",
            "application/x-pdf"
        ]

    def parse(self, data: bytes, filename: Optional[str] = None) -> ParseResult:
        """Parse PDF file"""
        try:
            reader = PdfReader(io.BytesIO(data))
            page_texts = []

            for page_no, page in enumerate(reader.pages, start=1):
                try:
                    page_texts.append(page.extract_text() or "")
                except Exception as e:
                    # One bad page should not lose the whole document
                    logger.warning("PDF page %d of %s unreadable: %s", page_no, filename, e)
                    page_texts.append("")

            full_text = "\n".join(page_texts)

            metadata = {
                "page_count": len(page_texts),
                "is_scanned": len(full_text.strip()) < 100 and len(page_texts) > 0,
            }

            try:
                if reader.metadata:
                    if reader.metadata.title:
                        metadata['title'] = reader.metadata.title
                    if reader.metadata.author:
                        metadata['author'] = reader.metadata.author
            except Exception as e:
                logger.debug("PDF metadata unreadable for %s: %s", filename, e)

            return ParseResult(
                full_text=full_text,
                page_count=len(page_texts),
                metadata=metadata
            )

        except Exception as e:
            raise ParserError("Failed to extract text from PDF") from e
