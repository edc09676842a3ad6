"""
Text Extractor
==============

Resolves an owned document, downloads its bytes from the blob store and
returns plain text. Read-only and safe to call repeatedly.
"""

import logging
from typing import Callable, ContextManager, Optional

from sqlalchemy.orm import Session

from .db.models import Document
from .db.session import get_db_session
from .errors import NotFoundError, StorageError, ExtractionError, UnsupportedTypeError
from .ingest import parse_document, ParserError, UnsupportedFormatError
from .storage import BlobStore, get_storage

logger = logging.getLogger(__name__)

SessionFactory = Callable[[], ContextManager[Session]]


def extract_text(
    document_id: str,
    owner_id: str,
    session_factory: SessionFactory = get_db_session,
    storage: Optional[BlobStore] = None,
) -> str:
    """
    Extract plain text from a stored document.

    Args:
        document_id: Document row ID
        owner_id: Calling user; documents owned by anyone else are invisible
        session_factory: Context manager yielding a SQLAlchemy session
        storage: Blob store (defaults to the configured local store)

    Returns:
        Extracted text (may be short or empty; length policy is the caller's)

    Raises:
        NotFoundError: Document missing or not owned by owner_id
        StorageError: Blob download failed
        UnsupportedTypeError: No parser for the declared MIME type
        ExtractionError: Parser failed
    """
    storage = storage or get_storage()

    with session_factory() as db:
        document = db.query(Document).filter(
            Document.id == document_id,
            Document.user_id == owner_id,
        ).first()

        if document is None:
            raise NotFoundError("Document not found")

        storage_path = document.storage_path
        mime_type = document.file_type
        filename = document.filename

    try:
        data = storage.download(storage_path)
    except StorageError:
        logger.error("Blob download failed for document %s key=%s", document_id, storage_path)
        raise

    try:
        result = parse_document(data, mime_type, filename)
    except UnsupportedFormatError as e:
        raise UnsupportedTypeError(str(e)) from e
    except ParserError as e:
        logger.warning("Extraction failed for document %s (%s): %s", document_id, mime_type, e)
        raise ExtractionError(str(e)) from e

    logger.info(
        "Extracted document %s type=%s chars=%d pages=%d",
        document_id, mime_type, len(result.full_text), result.page_count
    )
    return result.full_text
