"""
Analysis Orchestrator
=====================

Runs one analysis request end to end:

    quota -> job(processing) -> extract -> prompt -> AI -> parse -> job(terminal)

Failures before the job row exists (quota, unknown document) propagate to
the caller. Anything after that is recorded on the job, which always ends in
`completed` or `failed`; the orchestrator never returns with a job still in
`processing`.

All collaborators are injected; the module-level `get_*` accessors are only
used by the API layer to build the default instance.
"""

import asyncio
import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Dict, List, Optional, Protocol

from .config import Settings
from .db.models import AnalysisJob, Document
from .errors import (
    DocCheckerError,
    ExtractionError,
    InvalidRequestError,
    NotFoundError,
    ParseError,
)
from .extractor import SessionFactory, extract_text
from .prompts import DEFAULT_LABEL_1, DEFAULT_LABEL_2, build_prompt, build_comparison_prompt
from .schemas import AnalysisJobOut, AnalysisResult, AnalysisType, ComparisonQuotaPolicy, JobStatus
from .storage import BlobStore
from . import usage

logger = logging.getLogger(__name__)

EMPTY_DOCUMENT_MESSAGE = "Document appears to be empty or unreadable"
PARSE_FAILURE_MESSAGE = "Failed to parse AI analysis results"
SAVE_FAILURE_MESSAGE = "Failed to save analysis results"
GENERIC_FAILURE_MESSAGE = "Analysis failed"


class Analyzer(Protocol):
    """What the orchestrator needs from an AI client"""

    model: str

    async def analyze_prompt(self, prompt: str) -> AnalysisResult:
        ...


@dataclass
class AnalysisOutcome:
    """Terminal state of one orchestrated job"""
    job_id: Optional[str]
    status: JobStatus
    results: Optional[AnalysisResult] = None
    error_message: Optional[str] = None

    @property
    def succeeded(self) -> bool:
        return self.status == JobStatus.COMPLETED


def failure_message(error: Exception) -> str:
    """Human-readable job error for a pipeline failure"""
    if isinstance(error, ParseError):
        return PARSE_FAILURE_MESSAGE
    if isinstance(error, DocCheckerError):
        return error.message
    return str(error) or GENERIC_FAILURE_MESSAGE


def resolve_labels(document_ids: List[str], names: Optional[List[Dict[str, str]]]) -> List[str]:
    """Display labels for a comparison, matched by document id"""
    by_id = {}
    for entry in names or []:
        if entry.get("id") and entry.get("name"):
            by_id[entry["id"]] = entry["name"]
    return [
        by_id.get(document_ids[0], DEFAULT_LABEL_1),
        by_id.get(document_ids[1], DEFAULT_LABEL_2),
    ]


class AnalysisOrchestrator:
    """
    Usage:
        orchestrator = AnalysisOrchestrator(get_db_session, get_storage(), get_llm_client(), get_settings())
        outcome = await orchestrator.run_analysis(user_id, document_id)
    """

    def __init__(
        self,
        session_factory: SessionFactory,
        storage: BlobStore,
        analyzer: Analyzer,
        settings: Settings,
    ):
        self.session_factory = session_factory
        self.storage = storage
        self.analyzer = analyzer
        self.settings = settings

    @property
    def model_name(self) -> str:
        return getattr(self.analyzer, "model", None) or self.settings.gemini_model

    # -------------------------------------------------------------------------
    # Job rows
    # -------------------------------------------------------------------------

    def _assert_document_owned(self, owner_id: str, document_id: str) -> None:
        with self.session_factory() as db:
            exists = db.query(Document.id).filter(
                Document.id == document_id,
                Document.user_id == owner_id,
            ).first()
        if not exists:
            raise NotFoundError("Document not found")

    def _create_job(
        self,
        owner_id: str,
        document_id: Optional[str],
        analysis_type: AnalysisType,
        status: JobStatus,
        results: Optional[AnalysisResult] = None,
        error_message: Optional[str] = None,
    ) -> str:
        with self.session_factory() as db:
            job = AnalysisJob(
                user_id=owner_id,
                document_id=document_id,
                status=status,
                analysis_type=analysis_type,
                ai_model=self.model_name,
                results=results.model_dump(mode="json") if results else None,
                processing_time_ms=results.processing_time_ms if results else None,
                error_message=error_message,
            )
            db.add(job)
            db.flush()
            return job.id

    def _complete_job(self, job_id: str, result: AnalysisResult) -> None:
        with self.session_factory() as db:
            job = db.query(AnalysisJob).filter(AnalysisJob.id == job_id).first()
            job.status = JobStatus.COMPLETED
            job.results = result.model_dump(mode="json")
            job.processing_time_ms = result.processing_time_ms
            job.error_message = None
            job.updated_at = datetime.utcnow()

    def _fail_job(self, job_id: str, message: str) -> None:
        with self.session_factory() as db:
            job = db.query(AnalysisJob).filter(AnalysisJob.id == job_id).first()
            job.status = JobStatus.FAILED
            job.error_message = message
            job.updated_at = datetime.utcnow()

    # -------------------------------------------------------------------------
    # Pipeline steps
    # -------------------------------------------------------------------------

    async def _extract(self, owner_id: str, document_id: str) -> str:
        # Parsers are synchronous; keep them off the event loop
        text = await asyncio.to_thread(
            extract_text, document_id, owner_id, self.session_factory, self.storage
        )
        if not text or len(text.strip()) < self.settings.min_text_length:
            raise ExtractionError(EMPTY_DOCUMENT_MESSAGE)
        return text

    # -------------------------------------------------------------------------
    # Single-document analysis
    # -------------------------------------------------------------------------

    async def run_analysis(
        self,
        owner_id: str,
        document_id: str,
        analysis_type: AnalysisType = AnalysisType.CONTRADICTION,
    ) -> AnalysisOutcome:
        """
        Analyze one document.

        Raises (before any job row exists):
            InvalidRequestError: analysis_type is comparison
            QuotaExceededError: Usage limit reached
            NotFoundError: Unknown user, or document missing / not owned
        """
        analysis_type = AnalysisType(analysis_type)
        if analysis_type == AnalysisType.COMPARISON:
            raise InvalidRequestError("Comparison analyses take two documents")

        usage.check_and_reserve(owner_id, self.session_factory)

        try:
            self._assert_document_owned(owner_id, document_id)
            job_id = self._create_job(owner_id, document_id, analysis_type, JobStatus.PROCESSING)
        except Exception:
            usage.release(owner_id, self.session_factory)
            raise

        logger.info("Analysis job %s started user=%s document=%s type=%s",
                    job_id, owner_id, document_id, analysis_type.value)

        try:
            text = await self._extract(owner_id, document_id)
            prompt = build_prompt(text, analysis_type)
            result = await self.analyzer.analyze_prompt(prompt)
        except Exception as e:
            return self._record_failure(job_id, owner_id, e)

        try:
            self._complete_job(job_id, result)
        except Exception as e:
            logger.error("Failed to save results for job %s: %s", job_id, e)
            return self._record_failure(job_id, owner_id, DocCheckerError(SAVE_FAILURE_MESSAGE))

        logger.info(
            "Analysis job %s completed contradictions=%d inconsistencies=%d ms=%d",
            job_id, len(result.contradictions), len(result.inconsistencies), result.processing_time_ms
        )
        return AnalysisOutcome(job_id=job_id, status=JobStatus.COMPLETED, results=result)

    def _record_failure(self, job_id: str, owner_id: str, error: Exception) -> AnalysisOutcome:
        message = failure_message(error)
        if isinstance(error, DocCheckerError):
            logger.warning("Analysis job %s failed (%s): %s", job_id, error.code, message)
        else:
            logger.exception("Analysis job %s failed unexpectedly", job_id)

        try:
            self._fail_job(job_id, message)
        except Exception as e:
            logger.error("Failed to mark job %s as failed: %s", job_id, e)

        usage.release(owner_id, self.session_factory)
        return AnalysisOutcome(job_id=job_id, status=JobStatus.FAILED, error_message=message)

    # -------------------------------------------------------------------------
    # Two-document comparison
    # -------------------------------------------------------------------------

    async def run_comparison(
        self,
        owner_id: str,
        document_ids: List[str],
        document_names: Optional[List[Dict[str, str]]] = None,
    ) -> AnalysisOutcome:
        """
        Compare two documents against each other.

        The job row is written once the outcome is known (completed or
        failed). Pipeline failures are returned in the outcome, not raised.

        Raises (before any work starts):
            InvalidRequestError: Not exactly two document ids
            NotFoundError: A document is missing or not owned
            QuotaExceededError: Metered policy and usage limit reached
        """
        if not document_ids or len(document_ids) != 2:
            raise InvalidRequestError("Two document IDs are required for comparison")

        first_id, second_id = document_ids
        for document_id in (first_id, second_id):
            self._assert_document_owned(owner_id, document_id)

        metered = self.settings.comparison_quota_policy == ComparisonQuotaPolicy.METERED
        if metered:
            usage.check_and_reserve(owner_id, self.session_factory)

        label1, label2 = resolve_labels(document_ids, document_names)
        logger.info("Comparison started user=%s documents=%s,%s", owner_id, first_id, second_id)

        try:
            text1, text2 = await asyncio.gather(
                self._extract(owner_id, first_id),
                self._extract(owner_id, second_id),
            )
            prompt = build_comparison_prompt(text1, text2, label1, label2)
            result = await self.analyzer.analyze_prompt(prompt)
        except Exception as e:
            message = failure_message(e)
            logger.warning("Comparison failed user=%s: %s", owner_id, message)
            if metered:
                usage.release(owner_id, self.session_factory)
            job_id = self._save_comparison(owner_id, first_id, JobStatus.FAILED, error_message=message)
            return AnalysisOutcome(job_id=job_id, status=JobStatus.FAILED, error_message=message)

        job_id = self._save_comparison(owner_id, first_id, JobStatus.COMPLETED, results=result)
        return AnalysisOutcome(job_id=job_id, status=JobStatus.COMPLETED, results=result)

    def _save_comparison(
        self,
        owner_id: str,
        first_document_id: str,
        status: JobStatus,
        results: Optional[AnalysisResult] = None,
        error_message: Optional[str] = None,
    ) -> Optional[str]:
        # Saving is best-effort: the caller still gets the computed outcome
        try:
            return self._create_job(
                owner_id, first_document_id, AnalysisType.COMPARISON, status,
                results=results, error_message=error_message,
            )
        except Exception as e:
            logger.error("Failed to save comparison job for user=%s: %s", owner_id, e)
            return None

    # -------------------------------------------------------------------------
    # Lookup
    # -------------------------------------------------------------------------

    def get_job(self, owner_id: str, job_id: str) -> AnalysisJobOut:
        """Fetch an owned job or raise NotFoundError"""
        with self.session_factory() as db:
            job = db.query(AnalysisJob).filter(
                AnalysisJob.id == job_id,
                AnalysisJob.user_id == owner_id,
            ).first()
            if job is None:
                raise NotFoundError("Analysis job not found")
            return AnalysisJobOut.model_validate(job)
