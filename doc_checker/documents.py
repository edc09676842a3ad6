"""
Document Service
================

Upload, list and delete uploaded documents.

Upload writes the blob first and the row second; if the row insert fails
the blob is deleted again so no orphan is left in the store.
"""

import logging
import math
from typing import Optional

from .config import Settings, get_settings
from .db.models import Document
from .db.session import get_db_session
from .errors import InvalidRequestError, NotFoundError, StorageError
from .extractor import SessionFactory
from .ingest import ALLOWED_UPLOAD_TYPES, detect_mime_type
from .schemas import DocumentListResponse, DocumentOut, Pagination, UploadStatus
from .storage import BlobStore, generate_key, get_storage

logger = logging.getLogger(__name__)

DEFAULT_PAGE_SIZE = 10
MAX_PAGE_SIZE = 100


def resolve_upload_type(filename: str, content_type: Optional[str], data: Optional[bytes] = None) -> str:
    """Declared MIME type, falling back to detection for generic/missing types"""
    declared = (content_type or "").split(";", 1)[0].strip().lower()
    if declared == "application/x-pdf":
        declared = "application/pdf"
    if declared in ALLOWED_UPLOAD_TYPES:
        return declared
    if not declared or declared == "application/octet-stream":
        return detect_mime_type(filename, data)
    return declared


def validate_upload(filename: str, mime_type: str, size: int, settings: Settings) -> None:
    """
    Raises:
        InvalidRequestError: Type not allowed or file over the size limit
    """
    if mime_type not in ALLOWED_UPLOAD_TYPES:
        raise InvalidRequestError(f"File type {mime_type} not supported")
    if size > settings.max_upload_bytes:
        limit_mb = settings.max_upload_bytes // (1024 * 1024)
        raise InvalidRequestError(f"File {filename} exceeds {limit_mb}MB limit")


def upload_document(
    owner_id: str,
    filename: str,
    data: bytes,
    content_type: Optional[str] = None,
    session_factory: SessionFactory = get_db_session,
    storage: Optional[BlobStore] = None,
    settings: Optional[Settings] = None,
) -> DocumentOut:
    """
    Store one file and create its document row.

    Raises:
        InvalidRequestError: Validation failed (nothing stored)
        StorageError: Blob upload or row insert failed (blob cleaned up)
    """
    storage = storage or get_storage()
    settings = settings or get_settings()

    mime_type = resolve_upload_type(filename, content_type, data)
    validate_upload(filename, mime_type, len(data), settings)

    key = generate_key(owner_id, filename)
    ref = storage.upload(key, data, content_type=mime_type)

    try:
        with session_factory() as db:
            document = Document(
                user_id=owner_id,
                filename=filename,
                file_size=len(data),
                file_type=mime_type,
                storage_path=ref,
                upload_status=UploadStatus.UPLOADED,
            )
            db.add(document)
            db.flush()
            out = DocumentOut.model_validate(document)
    except Exception as e:
        logger.error("Failed to save metadata for %s, removing blob %s: %s", filename, ref, e)
        try:
            storage.delete(ref)
        except StorageError as cleanup_error:
            logger.error("Compensating blob delete failed for %s: %s", ref, cleanup_error)
        raise StorageError(f"Failed to save {filename} metadata") from e

    logger.info("Uploaded document %s user=%s type=%s size=%d", out.id, owner_id, mime_type, len(data))
    return out


def list_documents(
    owner_id: str,
    page: int = 1,
    limit: int = DEFAULT_PAGE_SIZE,
    session_factory: SessionFactory = get_db_session,
) -> DocumentListResponse:
    """Owner's documents, newest first"""
    page = max(1, page)
    limit = max(1, min(limit, MAX_PAGE_SIZE))

    with session_factory() as db:
        query = db.query(Document).filter(Document.user_id == owner_id)
        total = query.count()
        rows = query.order_by(Document.created_at.desc()) \
            .offset((page - 1) * limit) \
            .limit(limit) \
            .all()

        documents = [DocumentOut.model_validate(row) for row in rows]

    return DocumentListResponse(
        documents=documents,
        pagination=Pagination(
            page=page,
            limit=limit,
            total=total,
            total_pages=math.ceil(total / limit),
        ),
    )


def delete_document(
    owner_id: str,
    document_id: str,
    session_factory: SessionFactory = get_db_session,
    storage: Optional[BlobStore] = None,
) -> None:
    """
    Delete the blob (failure logged) and then the row.

    Jobs and reports for the document are removed by cascade.

    Raises:
        NotFoundError: Document missing or not owned
    """
    storage = storage or get_storage()

    with session_factory() as db:
        document = db.query(Document).filter(
            Document.id == document_id,
            Document.user_id == owner_id,
        ).first()
        if document is None:
            raise NotFoundError("Document not found")

        try:
            storage.delete(document.storage_path)
        except StorageError as e:
            logger.error("Storage deletion error for document %s: %s", document_id, e)

        db.delete(document)

    logger.info("Deleted document %s user=%s", document_id, owner_id)
