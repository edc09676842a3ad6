"""
Shared error types.

Placed in a separate module so the pipeline, the API layer and tests all
import the same exception classes.

Errors raised before an analysis job exists propagate to the caller.
Errors raised after it exists are recorded on the job row instead.
"""

from typing import Optional


class DocCheckerError(Exception):
    """Base exception for all service errors"""

    code = "INTERNAL_ERROR"
    status_code = 500

    def __init__(self, message: str, code: Optional[str] = None):
        super().__init__(message)
        self.message = message
        if code:
            self.code = code


class NotFoundError(DocCheckerError):
    """Document, job or user is missing, or not owned by the caller."""
    code = "NOT_FOUND"
    status_code = 404


class QuotaExceededError(DocCheckerError):
    """Monthly analysis quota is used up."""
    code = "QUOTA_EXCEEDED"
    status_code = 429

    def __init__(self, message: str = "Usage limit exceeded. Please upgrade your plan."):
        super().__init__(message)


class StorageError(DocCheckerError):
    """Blob store upload, download or delete failed."""
    code = "STORAGE_ERROR"
    status_code = 500


class ExtractionError(DocCheckerError):
    """Text could not be extracted from the document bytes."""
    code = "EXTRACTION_FAILED"
    status_code = 422


class UnsupportedTypeError(ExtractionError):
    """Declared MIME type has no extractor."""
    code = "UNSUPPORTED_TYPE"
    status_code = 415


class AIServiceError(DocCheckerError):
    """Generative model call failed (transport, HTTP or model error)."""
    code = "AI_SERVICE_ERROR"
    status_code = 502


class AITimeoutError(AIServiceError):
    """Generative model call exceeded the configured timeout."""
    code = "AI_TIMEOUT"
    status_code = 504


class ParseError(DocCheckerError):
    """Model output did not contain a usable JSON object."""
    code = "PARSE_ERROR"
    status_code = 502

    def __init__(self, message: str = "Failed to parse AI analysis results", detail: Optional[str] = None):
        super().__init__(message)
        self.detail = detail


class InvalidRequestError(DocCheckerError):
    """Request is structurally valid but cannot be served (bad state or input)."""
    code = "INVALID_REQUEST"
    status_code = 400
