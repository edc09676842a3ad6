"""
Parser Factory
==============

Dispatches document bytes to a parser by declared MIME type.
"""

import mimetypes
from typing import Optional

from .base import DocumentParser, ParseResult, UnsupportedFormatError
from .pdf import PDFTextParser
from .txt import TXTParser
from .word import WordParser


_PARSERS = (TXTParser(), WordParser(), PDFTextParser())

# Types accepted at upload time (x-pdf is normalized to application/pdf first)
ALLOWED_UPLOAD_TYPES = frozenset([
    "text/plain",
    "application/msword",
    "application/vnd.openxmlformats-officedocument.wordprocessingml.document",
    "application/pdf",
])


def detect_mime_type(filename: str, data: Optional[bytes] = None) -> str:
    """
    Detect MIME type from filename and optionally file content.

    Args:
        filename: File name
        data: Optional file content for magic number detection

    Returns:
        MIME type string
    """
    ext = filename.lower().rsplit('.', 1)[-1] if '.' in filename else ''

    ext_mapping = {
        'txt': 'text/plain',
        'docx': 'application/vnd.openxmlformats-officedocument.wordprocessingml.document',
        'doc': 'application/msword',
        'pdf': 'application/pdf',
    }

    if ext in ext_mapping:
        return ext_mapping[ext]

    mime_type, _ = mimetypes.guess_type(filename)
    if mime_type:
        return mime_type

    if data:
        if data[:4] == b'%PDF':
            return 'application/pdf'
        if data[:4] == b'PK\x03\x04' and b'word/' in data[:2000]:
            return 'application/vnd.openxmlformats-officedocument.wordprocessingml.document'

    return 'application/octet-stream'

def get_parser(mime_type: str) -> Optional[DocumentParser]:
    """
    Get parser for MIME type.

    Returns:
        DocumentParser or None if not supported
    """
    mime_type = (mime_type or "").lower()
    for parser in _PARSERS:
        if mime_type in parser.supported_mimes:
            return parser
    return None


def parse_document(data: bytes, mime_type: str, filename: Optional[str] = None) -> ParseResult:
    """
    Parse document with the parser registered for its MIME type.

    Raises:
        UnsupportedFormatError: If format not supported
        ParserError: If parsing fails
    """
    parser = get_parser(mime_type)

    if parser is None:
        raise UnsupportedFormatError(f"Unsupported file type: {mime_type}")

    return parser.parse(data, filename)
