"""
TXT Parser
==========

Plain text file parser.
"""

from typing import List, Optional

import chardet

from .base import DocumentParser, ParseResult, ParserError


class TXTParser(DocumentParser):
    """
    Plain text file parser.

    Decodes as UTF-8. Non-UTF-8 files fall back to chardet detection.
    """

    @property
    def supported_mimes(self) -> List[str]:
        return ["text/plain"]

    def parse(self, data: bytes, filename: Optional[str] = None) -> ParseResult:
        """Parse plain text file"""
        encoding = "utf-8"
        try:
            text = data.decode("utf-8-sig")
        except UnicodeDecodeError:
            detected = chardet.detect(data)
            encoding = detected.get("encoding") or "utf-8"
            try:
                text = data.decode(encoding, errors="replace")
            except LookupError as e:
                raise ParserError(f"Failed to decode text file: {e}") from e

        return ParseResult(
            full_text=text,
            page_count=1,
            metadata={"encoding": encoding}
        )
