"""
Ingest Base Types
=================

Unified output type and error hierarchy for all parsers.
"""

from abc import ABC, abstractmethod
from typing import List, Optional, Dict, Any
from dataclasses import dataclass, field


class ParserError(Exception):
    """Base exception for parser errors"""
    pass


class UnsupportedFormatError(ParserError):
    """File format not supported"""
    pass


class InsufficientTextError(ParserError):
    """Parser ran but recovered too little readable text"""
    pass


@dataclass
class ParseResult:
    """
    Unified result from any parser.
    """
    full_text: str
    page_count: int = 1
    metadata: Dict[str, Any] = field(default_factory=dict)


class DocumentParser(ABC):
    """
    Abstract base class for document parsers.
    """

    @property
    @abstractmethod
    def supported_mimes(self) -> List[str]:
        """List of supported MIME types"""
        pass

    @abstractmethod
    def parse(self, data: bytes, filename: Optional[str] = None) -> ParseResult:
        """
        Parse document data.

        Args:
            data: Binary document data
            filename: Optional filename for logging

        Returns:
            ParseResult with full text
        """
        pass


def collapse_whitespace(text: str) -> str:
    """
    Collapse every whitespace run to a single space.

    Also drops zero-width spaces and BOMs.
    """
    if not text:
        return ""

    text = text.replace('\u200b', '')  # Zero-width space
    text = text.replace('\ufeff', '')  # BOM

    return ' '.join(text.split())
