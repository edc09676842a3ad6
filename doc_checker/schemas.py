"""
Pydantic Schemas for Document Checker
=====================================

Stable schemas for analysis results and API input/output.

The `AnalysisResult` layout (snake_case keys) is the persisted wire contract
for the `analysis_jobs.results` column. Report rendering and the UI both read
it, so field names and default values must not drift.
"""

from typing import List, Optional, Dict, Any
from pydantic import BaseModel, Field
from enum import Enum
from datetime import datetime


# =============================================================================
# ENUMS
# =============================================================================

class Severity(str, Enum):
    """Finding severity"""
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


class InconsistencyType(str, Enum):
    """Kind of single-location inconsistency"""
    FACTUAL = "factual"
    LOGICAL = "logical"
    TEMPORAL = "temporal"
    NUMERICAL = "numerical"


class AnalysisType(str, Enum):
    """What the analysis job asks the model to look for"""
    CONTRADICTION = "contradiction"
    CONSISTENCY = "consistency"
    FACT_CHECK = "fact_check"
    COMPARISON = "comparison"


class JobStatus(str, Enum):
    """Analysis job lifecycle status"""
    PENDING = "pending"
    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"


class UploadStatus(str, Enum):
    """Document upload status"""
    PENDING = "pending"
    UPLOADED = "uploaded"
    FAILED = "failed"


class ReportType(str, Enum):
    """Rendered report format"""
    PDF = "pdf"
    JSON = "json"
    HTML = "html"


class SubscriptionTier(str, Enum):
    """Billing plan tier"""
    FREE = "free"
    PRO = "pro"
    ENTERPRISE = "enterprise"


class LLMMode(str, Enum):
    """LLM provider mode"""
    NONE = "none"       # No provider configured, analysis calls fail
    GEMINI = "gemini"


class ComparisonQuotaPolicy(str, Enum):
    """Whether two-document comparisons consume analysis quota"""
    EXEMPT = "exempt"    # Comparisons are free (original behavior)
    METERED = "metered"  # Comparisons reserve one unit like any analysis


# =============================================================================
# ANALYSIS RESULT (persisted wire contract)
# =============================================================================

class Contradiction(BaseModel):
    """Two statements asserted to directly conflict"""
    id: str
    statement1: str = ""
    statement2: str = ""
    location1: str = ""
    location2: str = ""
    severity: Severity = Severity.MEDIUM
    explanation: str = ""
    confidence: float = Field(0.5, ge=0.0, le=1.0)


class Inconsistency(BaseModel):
    """Single-location issue not necessarily paired with another statement"""
    id: str
    issue: str = ""
    location: str = ""
    suggestion: str = ""
    type: InconsistencyType = InconsistencyType.LOGICAL
    severity: Severity = Severity.MEDIUM


class AnalysisResult(BaseModel):
    """Structured output of one analysis call"""
    contradictions: List[Contradiction] = Field(default_factory=list)
    inconsistencies: List[Inconsistency] = Field(default_factory=list)
    summary: str = "Analysis completed"
    confidence_score: float = Field(0.5, ge=0.0, le=1.0)
    processing_time_ms: int = 0

    class Config:
        json_schema_extra = {
            "example": {
                "contradictions": [
                    {
                        "id": "contradiction_0",
                        "statement1": "The contract was signed on March 1.",
                        "statement2": "The contract was signed on April 3.",
                        "location1": "Section 1",
                        "location2": "Section 4",
                        "severity": "high",
                        "explanation": "Two different signing dates for the same contract.",
                        "confidence": 0.92
                    }
                ],
                "inconsistencies": [],
                "summary": "One high-severity date contradiction.",
                "confidence_score": 0.9,
                "processing_time_ms": 2140
            }
        }


# =============================================================================
# INPUT SCHEMAS
# =============================================================================

class AnalyzeRequest(BaseModel):
    """Request to analyze a single uploaded document"""
    document_id: str = Field(..., description="Document ID to analyze")
    analysis_type: AnalysisType = Field(AnalysisType.CONTRADICTION, description="Analysis type")


class DocumentName(BaseModel):
    """Display name for one document in a comparison"""
    id: str
    name: str


class ComparisonRequest(BaseModel):
    """Request to compare two uploaded documents"""
    document_ids: List[str] = Field(..., description="Exactly two document IDs")
    document_names: List[DocumentName] = Field(default_factory=list, description="Optional display names")

    class Config:
        json_schema_extra = {
            "example": {
                "document_ids": ["doc_a", "doc_b"],
                "document_names": [
                    {"id": "doc_a", "name": "lease_v1.pdf"},
                    {"id": "doc_b", "name": "lease_v2.pdf"}
                ]
            }
        }


class GenerateReportRequest(BaseModel):
    """Request to render a report for a completed job"""
    analysis_job_id: str = Field(..., description="Completed analysis job ID")
    report_type: str = Field("pdf", description="pdf|json|html")


# =============================================================================
# OUTPUT SCHEMAS
# =============================================================================

class DocumentOut(BaseModel):
    """Uploaded document metadata"""
    id: str
    filename: str
    file_size: int
    file_type: str
    storage_path: str
    upload_status: UploadStatus
    created_at: datetime

    class Config:
        from_attributes = True
        use_enum_values = True


class AnalysisJobOut(BaseModel):
    """Analysis job row as returned to clients"""
    id: str
    user_id: str
    document_id: Optional[str] = None
    status: JobStatus
    analysis_type: AnalysisType
    ai_model: str
    results: Optional[Dict[str, Any]] = None
    error_message: Optional[str] = None
    processing_time_ms: Optional[int] = None
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True
        use_enum_values = True


class AnalyzeResponse(BaseModel):
    """Result of a completed analyze or comparison request"""
    message: str
    analysis_job_id: Optional[str] = None
    results: AnalysisResult


class Pagination(BaseModel):
    page: int
    limit: int
    total: int
    total_pages: int


class UploadResponse(BaseModel):
    message: str
    documents: List[DocumentOut]


class DocumentListResponse(BaseModel):
    documents: List[DocumentOut]
    pagination: Pagination


class ReportOut(BaseModel):
    id: str
    analysis_job_id: str
    report_type: ReportType
    report_data: Dict[str, Any]
    generated_at: datetime

    class Config:
        from_attributes = True
        use_enum_values = True


class ReportListResponse(BaseModel):
    reports: List[ReportOut]
    pagination: Pagination


class UsageResponse(BaseModel):
    """Current-month usage for the caller"""
    current_usage: int
    usage_limit: int
    subscription_tier: SubscriptionTier
    documents_this_month: int = 0
    reports_generated: int = 0


class DashboardStats(BaseModel):
    total_documents: int = 0
    total_analyses: int = 0
    total_reports: int = 0
    this_month_analyses: int = 0


class HealthResponse(BaseModel):
    """Health check response"""
    status: str = Field(..., description="Service status")
    version: str = Field(..., description="Service version")
    llm_mode: LLMMode = Field(..., description="Current LLM mode")
    timestamp: datetime = Field(..., description="Current timestamp")


class ErrorDetail(BaseModel):
    """Structured error detail"""
    code: str = Field(..., description="Machine-readable error code")
    message: str = Field(..., description="Human-readable error message")
    details: Optional[Any] = Field(None, description="Optional error details")


class ErrorResponse(BaseModel):
    """Structured error response"""
    error: ErrorDetail
