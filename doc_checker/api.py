"""
Document Checker API
====================

FastAPI surface over the analysis pipeline.

Endpoints (under /api/v1):
- POST   /upload                 - Upload documents (multipart "files")
- GET    /documents              - List documents (paginated)
- DELETE /documents/{doc_id}     - Delete document (jobs/reports cascade)
- POST   /analyze                - Analyze one document
- POST   /analyze/comparison     - Compare two documents
- GET    /analyze/{job_id}       - Get analysis job
- POST   /reports/generate       - Render a report for a completed job
- GET    /reports                - List generated reports
- GET    /usage                  - Current usage and limits
- GET    /dashboard/stats        - Dashboard counters

Plus GET /health.

The caller is identified by the X-User-Id header (or X-User-Email).

Run with:
    python -m doc_checker.run
"""

import logging
import os
from datetime import datetime
from typing import Any, List, Optional

from fastapi import APIRouter, Depends, FastAPI, File, Header, HTTPException, Query, Request, Response, UploadFile
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from . import documents, reports, usage
from .config import get_settings, get_llm_mode
from .db.models import User
from .db.session import get_db_session, init_db
from .errors import DocCheckerError
from .llm_client import get_llm_client
from .orchestrator import AnalysisOrchestrator, AnalysisOutcome
from .schemas import (
    AnalysisJobOut,
    AnalyzeRequest,
    AnalyzeResponse,
    ComparisonRequest,
    DashboardStats,
    DocumentListResponse,
    ErrorDetail,
    ErrorResponse,
    GenerateReportRequest,
    HealthResponse,
    ReportListResponse,
    UploadResponse,
    UsageResponse,
)
from .storage import get_storage

# Configure logging
logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)


# =============================================================================
# FastAPI App
# =============================================================================

app = FastAPI(
    title="Document Checker",
    description="Contradiction and inconsistency analysis for uploaded documents",
    version="1.0.0",
    docs_url="/docs",
    redoc_url="/redoc",
)


def _parse_cors_origins(raw: str) -> List[str]:
    origins: List[str] = []
    for item in raw.split(","):
        origin = item.strip().strip('"').strip("'").rstrip("/")
        if origin:
            origins.append(origin)
    return origins


CORS_ALLOW_ORIGINS = _parse_cors_origins(
    os.environ.get("CORS_ALLOW_ORIGINS", "http://localhost:3000,http://127.0.0.1:3000")
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=CORS_ALLOW_ORIGINS,
    allow_credentials=True,
    allow_methods=["GET", "POST", "DELETE", "OPTIONS"],
    allow_headers=["*"],
)


@app.on_event("startup")
async def startup():
    init_db()
    for warning in get_settings().validate_llm_config():
        logger.warning(warning)


# =============================================================================
# Errors
# =============================================================================

def _error_payload(code: str, message: str, details: Optional[Any] = None) -> dict:
    return ErrorResponse(error=ErrorDetail(code=code, message=message, details=details)).model_dump()


@app.exception_handler(DocCheckerError)
async def doc_checker_error_handler(request: Request, exc: DocCheckerError):
    if exc.status_code >= 500:
        logger.error("%s on %s: %s", exc.code, request.url.path, exc.message)
    return JSONResponse(status_code=exc.status_code, content=_error_payload(exc.code, exc.message))


@app.exception_handler(HTTPException)
async def http_error_handler(request: Request, exc: HTTPException):
    return JSONResponse(
        status_code=exc.status_code,
        content=_error_payload(f"HTTP_{exc.status_code}", str(exc.detail)),
        headers=getattr(exc, "headers", None),
    )


@app.exception_handler(RequestValidationError)
async def validation_error_handler(request: Request, exc: RequestValidationError):
    """Structured validation errors without echoing inputs."""
    errors = [
        {"loc": err.get("loc"), "msg": err.get("msg"), "type": err.get("type")}
        for err in exc.errors()
    ]
    return JSONResponse(
        status_code=422,
        content=_error_payload("VALIDATION_ERROR", "Invalid request", {"errors": errors}),
    )


# =============================================================================
# Dependencies
# =============================================================================

async def get_current_user_id(
    x_user_id: Optional[str] = Header(None, alias="X-User-Id"),
    x_user_email: Optional[str] = Header(None, alias="X-User-Email"),
) -> str:
    """Resolve the calling user from identity headers; the user row must exist"""
    if not x_user_id and not x_user_email:
        raise HTTPException(status_code=401, detail="Unauthorized")

    with get_db_session() as db:
        query = db.query(User.id)
        if x_user_id:
            query = query.filter(User.id == x_user_id)
        else:
            query = query.filter(User.email == x_user_email.strip())
        row = query.first()

    if row is None:
        raise HTTPException(status_code=401, detail="Unauthorized")
    return row[0]


def get_orchestrator() -> AnalysisOrchestrator:
    return AnalysisOrchestrator(
        session_factory=get_db_session,
        storage=get_storage(),
        analyzer=get_llm_client(),
        settings=get_settings(),
    )


def _failed_outcome_response(outcome: AnalysisOutcome) -> JSONResponse:
    return JSONResponse(
        status_code=500,
        content=_error_payload(
            "ANALYSIS_FAILED",
            outcome.error_message or "Analysis failed",
            {"analysis_job_id": outcome.job_id},
        ),
    )


# =============================================================================
# Health
# =============================================================================

@app.get("/health", response_model=HealthResponse, tags=["Health"])
async def health_check():
    """Health check endpoint"""
    settings = get_settings()
    return HealthResponse(
        status="healthy",
        version=settings.service_version,
        llm_mode=get_llm_mode(),
        timestamp=datetime.now()
    )


router = APIRouter(tags=["documents"])


# =============================================================================
# Documents
# =============================================================================

@router.post("/upload", response_model=UploadResponse)
async def upload_files(
    files: List[UploadFile] = File(...),
    user_id: str = Depends(get_current_user_id),
):
    """Upload one or more documents (pdf, doc, docx, txt; 10MB each)"""
    settings = get_settings()
    usage.check_quota(user_id)

    if not files:
        raise HTTPException(status_code=400, detail="No files provided")

    # Validate everything before storing anything
    pending = []
    for upload in files:
        data = await upload.read()
        filename = upload.filename or "document"
        mime_type = documents.resolve_upload_type(filename, upload.content_type, data)
        documents.validate_upload(filename, mime_type, len(data), settings)
        pending.append((filename, data, mime_type))

    stored = [
        documents.upload_document(user_id, filename, data, mime_type, settings=settings)
        for filename, data, mime_type in pending
    ]
    return UploadResponse(message="Files uploaded successfully", documents=stored)


@router.get("/documents", response_model=DocumentListResponse)
def list_documents(
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
    user_id: str = Depends(get_current_user_id),
):
    return documents.list_documents(user_id, page=page, limit=limit)


@router.delete("/documents/{doc_id}")
def delete_document(doc_id: str, user_id: str = Depends(get_current_user_id)):
    documents.delete_document(user_id, doc_id)
    return {"message": "Document deleted successfully"}


# =============================================================================
# Analysis
# =============================================================================

@router.post("/analyze", response_model=AnalyzeResponse, tags=["analysis"])
async def analyze_document(
    request: AnalyzeRequest,
    user_id: str = Depends(get_current_user_id),
    orchestrator: AnalysisOrchestrator = Depends(get_orchestrator),
):
    outcome = await orchestrator.run_analysis(user_id, request.document_id, request.analysis_type)
    if not outcome.succeeded:
        return _failed_outcome_response(outcome)

    return AnalyzeResponse(
        message="Analysis completed successfully",
        analysis_job_id=outcome.job_id,
        results=outcome.results,
    )


@router.post("/analyze/comparison", response_model=AnalyzeResponse, tags=["analysis"])
async def compare_documents(
    request: ComparisonRequest,
    user_id: str = Depends(get_current_user_id),
    orchestrator: AnalysisOrchestrator = Depends(get_orchestrator),
):
    names = [entry.model_dump() for entry in request.document_names]
    outcome = await orchestrator.run_comparison(user_id, request.document_ids, names)
    if not outcome.succeeded:
        return _failed_outcome_response(outcome)

    return AnalyzeResponse(
        message="Comparison completed successfully",
        analysis_job_id=outcome.job_id,
        results=outcome.results,
    )


@router.get("/analyze/{job_id}", response_model=AnalysisJobOut, tags=["analysis"])
def get_analysis_job(
    job_id: str,
    user_id: str = Depends(get_current_user_id),
    orchestrator: AnalysisOrchestrator = Depends(get_orchestrator),
):
    return orchestrator.get_job(user_id, job_id)


# =============================================================================
# Reports & usage
# =============================================================================

@router.post("/reports/generate", tags=["reports"])
def generate_report(request: GenerateReportRequest, user_id: str = Depends(get_current_user_id)):
    content, content_type, filename = reports.generate_report(
        user_id, request.analysis_job_id, request.report_type
    )
    return Response(
        content=content,
        media_type=content_type,
        headers={"Content-Disposition": f'attachment; filename="{filename}"'},
    )


@router.get("/reports", response_model=ReportListResponse, tags=["reports"])
def list_reports(
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
    user_id: str = Depends(get_current_user_id),
):
    return reports.list_reports(user_id, page=page, limit=limit)


@router.get("/usage", response_model=UsageResponse, tags=["usage"])
def get_usage(user_id: str = Depends(get_current_user_id)):
    return usage.get_usage_summary(user_id)


@router.get("/dashboard/stats", response_model=DashboardStats, tags=["usage"])
def dashboard_stats(user_id: str = Depends(get_current_user_id)):
    return usage.get_dashboard_stats(user_id)


app.include_router(router, prefix="/api/v1")
