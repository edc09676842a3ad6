"""
Ingest Pipeline
===============

Document parsing for PDF, plain text and Word formats.
Produces unified output: full text + metadata.
"""

from .base import ParseResult, ParserError, UnsupportedFormatError, InsufficientTextError
from .txt import TXTParser
from .word import WordParser
from .pdf import PDFTextParser
from .factory import (
    ALLOWED_UPLOAD_TYPES,
    get_parser,
    parse_document,
    detect_mime_type,
)

__all__ = [
    # Base types
    "ParseResult", "ParserError", "UnsupportedFormatError", "InsufficientTextError",
    # Parsers
    "TXTParser", "WordParser", "PDFTextParser",
    # Factory
    "ALLOWED_UPLOAD_TYPES", "get_parser", "parse_document", "detect_mime_type",
]
