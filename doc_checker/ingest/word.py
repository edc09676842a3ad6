"""
Word Parser
===========

Microsoft Word parser for .docx and legacy .doc uploads.

.docx files are read with python-docx: body paragraphs, then table rows
(cells joined with " | "), then text-box paragraphs. If python-docx cannot
open the package, word/document.xml is walked directly instead. Anything that
is not a readable OOXML package (legacy binary .doc, truncated uploads) falls
back to a lossy byte-level decode that keeps printable ASCII only.

Either way, fewer than MIN_WORD_TEXT_LENGTH characters of text is an error.
"""

import io
import logging
import re
import zipfile
from typing import Any, Dict, Iterator, List, Optional, Tuple
from xml.etree import ElementTree as ET

import docx

from .base import DocumentParser, ParseResult, InsufficientTextError, collapse_whitespace

logger = logging.getLogger(__name__)

DOCX_NS = {
    "w": "http://schemas.openxmlformats.org/wordprocessingml/2006/main",
    "mc": "http://schemas.openxmlformats.org/markup-compatibility/2006",
}

W_P = f"{{{DOCX_NS['w']}}}p"
W_T = f"{{{DOCX_NS['w']}}}t"
W_TBL = f"{{{DOCX_NS['w']}}}tbl"
W_TR = f"{{{DOCX_NS['w']}}}tr"
W_TC = f"{{{DOCX_NS['w']}}}tc"
W_TXBX = f"{{{DOCX_NS['w']}}}txbxContent"
MC_FALLBACK = f"{{{DOCX_NS['mc']}}}Fallback"

MIN_WORD_TEXT_LENGTH = 50

_NON_PRINTABLE = re.compile(r"[^\x20-\x7E\n\r\t]")


def _read_document_xml(data: bytes) -> Optional[str]:
    try:
        with zipfile.ZipFile(io.BytesIO(data)) as zf:
            if "word/document.xml" not in zf.namelist():
                return None
            xml_bytes = zf.read("word/document.xml")
            return xml_bytes.decode("utf-8", errors="ignore")
    except zipfile.BadZipFile:
        return None


# =============================================================================
# OOXML walking (shared by the python-docx and raw XML paths)
# =============================================================================

def _collect_text(node, parts: List[str]) -> None:
    # Text boxes are emitted on their own; mc:Fallback repeats mc:Choice
    for child in node:
        if child.tag in (W_TXBX, MC_FALLBACK):
            continue
        if child.tag == W_T and child.text:
            parts.append(child.text)
        _collect_text(child, parts)


def _paragraph_text(paragraph) -> str:
    parts: List[str] = []
    _collect_text(paragraph, parts)
    return "".join(parts).strip()


def _text_boxes(node) -> Iterator[Any]:
    """Every w:txbxContent under node, skipping mc:Fallback copies"""
    for child in node:
        if child.tag == MC_FALLBACK:
            continue
        if child.tag == W_TXBX:
            yield child
        yield from _text_boxes(child)


def _text_box_paragraphs(body) -> List[str]:
    paragraphs: List[str] = []
    for box in _text_boxes(body):
        for para in box.findall(W_P):
            text = _paragraph_text(para)
            if text:
                paragraphs.append(text)
    return paragraphs


def _table_rows(table) -> List[str]:
    rows: List[str] = []
    for row in table.findall(W_TR):
        cells: List[str] = []
        for cell in row.findall(W_TC):
            cell_text = " ".join(
                text for text in (_paragraph_text(p) for p in cell.findall(W_P)) if text
            )
            if cell_text:
                cells.append(cell_text)
        if cells:
            rows.append(" | ".join(cells))
    return rows


# =============================================================================
# Extraction paths
# =============================================================================

def _extract_with_python_docx(data: bytes) -> Tuple[List[str], Dict[str, Any]]:
    document = docx.Document(io.BytesIO(data))
    blocks: List[str] = []

    for para in document.paragraphs:
        text = para.text.strip()
        if text:
            blocks.append(text)

    for table in document.tables:
        for row in table.rows:
            row_texts = [cell.text.strip() for cell in row.cells if cell.text.strip()]
            if row_texts:
                blocks.append(" | ".join(row_texts))

    text_boxes = _text_box_paragraphs(document.element.body)
    blocks.extend(text_boxes)

    metadata: Dict[str, Any] = {
        "extraction_method": "python-docx",
        "paragraph_count": len(document.paragraphs),
        "table_count": len(document.tables),
        "text_box_paragraphs": len(text_boxes),
    }
    core = document.core_properties
    if core.author:
        metadata["author"] = core.author
    if core.title:
        metadata["title"] = core.title
    if core.created:
        metadata["created"] = core.created.isoformat()

    return blocks, metadata


def _extract_from_xml(xml_text: str) -> Tuple[List[str], Dict[str, Any]]:
    root = ET.fromstring(xml_text)
    body = root.find("w:body", DOCX_NS)
    if body is None:
        return [], {"extraction_method": "xml_fallback"}

    blocks: List[str] = []
    paragraph_count = 0
    table_count = 0

    for child in body:
        if child.tag == W_P:
            paragraph_count += 1
            text = _paragraph_text(child)
            if text:
                blocks.append(text)
        elif child.tag == W_TBL:
            table_count += 1
            blocks.extend(_table_rows(child))

    text_boxes = _text_box_paragraphs(body)
    blocks.extend(text_boxes)

    return blocks, {
        "extraction_method": "xml_fallback",
        "paragraph_count": paragraph_count,
        "table_count": table_count,
        "text_box_paragraphs": len(text_boxes),
    }


def decode_printable(data: bytes) -> str:
    """Best-effort decode: keep printable ASCII, collapse whitespace"""
    text = data.decode("utf-8", errors="replace")
    return collapse_whitespace(_NON_PRINTABLE.sub(" ", text))


class WordParser(DocumentParser):
    """
    Word document parser.
    """

    @property
    def supported_mimes(self) -> List[str]:
        return [
            "application/msword",
            "application/vnd.openxmlformats-officedocument.wordprocessingml.document",
        ]

    def _parse_ooxml(
        self,
        data: bytes,
        xml_text: str,
        filename: Optional[str],
    ) -> Optional[Tuple[List[str], Dict[str, Any]]]:
        """(blocks, metadata) from python-docx, else the raw XML walk; None if both fail"""
        try:
            return _extract_with_python_docx(data)
        except Exception as e:
            logger.warning("python-docx could not open %s, reading document.xml: %s", filename, e)

        try:
            return _extract_from_xml(xml_text)
        except ET.ParseError as e:
            logger.warning("word/document.xml unparseable in %s: %s", filename, e)
            return None

    def parse(self, data: bytes, filename: Optional[str] = None) -> ParseResult:
        """Parse Word file"""
        parsed = None
        xml_text = _read_document_xml(data)
        if xml_text is not None:
            parsed = self._parse_ooxml(data, xml_text, filename)

        if parsed is not None:
            blocks, metadata = parsed
            text = "\n".join(collapse_whitespace(block) for block in blocks)
        else:
            text = decode_printable(data)
            metadata = {"extraction_method": "byte_fallback"}

        if len(text) < MIN_WORD_TEXT_LENGTH:
            raise InsufficientTextError("Failed to extract text from Word document")

        return ParseResult(
            full_text=text,
            page_count=1,
            metadata=metadata
        )
