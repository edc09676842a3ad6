"""
Report Exporter
===============

Render a completed analysis as PDF, JSON or HTML, and keep a snapshot
row (metadata + summary counts) for each generated report.
"""

import html
import json
import logging
import math
from datetime import datetime
from io import BytesIO
from typing import Any, Dict, List, Optional, Tuple

from .db.models import AnalysisJob, Document, Report, User
from .db.session import get_db_session
from .errors import InvalidRequestError, NotFoundError
from .extractor import SessionFactory
from .schemas import JobStatus, Pagination, ReportListResponse, ReportOut, ReportType

logger = logging.getLogger(__name__)

CONTENT_TYPES = {
    ReportType.PDF: "application/pdf",
    ReportType.JSON: "application/json",
    ReportType.HTML: "text/html",
}


def _parse_report_type(report_type: str) -> ReportType:
    try:
        return ReportType((report_type or "").lower())
    except ValueError:
        raise InvalidRequestError("Invalid report type") from None


def _count(results: Dict[str, Any], key: str) -> int:
    return len(results.get(key) or [])


# =============================================================================
# Renderers
# =============================================================================

def render_json(data: Dict[str, Any]) -> bytes:
    results = data.get("results") or {}
    payload = {
        "report_metadata": {
            "document_name": data.get("document_name"),
            "analysis_date": data.get("analysis_date"),
            "analysis_type": data.get("analysis_type"),
            "user_email": data.get("user_email"),
            "generated_at": datetime.utcnow().isoformat(),
        },
        "summary": {
            "contradictions_count": _count(results, "contradictions"),
            "inconsistencies_count": _count(results, "inconsistencies"),
            "confidence_score": results.get("confidence_score"),
            "summary": results.get("summary"),
        },
        "results": results,
    }
    return json.dumps(payload, indent=2, ensure_ascii=False).encode("utf-8")


def render_html(data: Dict[str, Any]) -> bytes:
    results = data.get("results") or {}

    def esc(value: Any) -> str:
        return html.escape(str(value if value is not None else ""))

    parts: List[str] = [
        "<!DOCTYPE html>",
        "<html><head><meta charset=\"utf-8\">",
        f"<title>Analysis Report - {esc(data.get('document_name'))}</title>",
        "<style>body{font-family:sans-serif;max-width:860px;margin:2em auto}"
        ".item{border:1px solid #ddd;border-radius:6px;padding:12px;margin:10px 0}"
        ".high{border-left:4px solid #c0392b}.medium{border-left:4px solid #e67e22}"
        ".low{border-left:4px solid #27ae60}</style>",
        "</head><body>",
        "<h1>Document Analysis Report</h1>",
        f"<p><strong>Document:</strong> {esc(data.get('document_name'))}<br>",
        f"<strong>Analysis date:</strong> {esc(data.get('analysis_date'))}<br>",
        f"<strong>Analysis type:</strong> {esc(data.get('analysis_type'))}<br>",
        f"<strong>Requested by:</strong> {esc(data.get('user_email'))}</p>",
        "<h2>Summary</h2>",
        f"<p>{esc(results.get('summary'))}</p>",
        f"<p>Confidence score: {esc(results.get('confidence_score'))}</p>",
    ]

    contradictions = results.get("contradictions") or []
    parts.append(f"<h2>Contradictions ({len(contradictions)})</h2>")
    if not contradictions:
        parts.append("<p>No contradictions found.</p>")
    for item in contradictions:
        severity = esc(item.get("severity"))
        parts.append(
            f"<div class=\"item {severity}\">"
            f"<p><strong>Severity:</strong> {severity} | "
            f"<strong>Confidence:</strong> {esc(item.get('confidence'))}</p>"
            f"<p>&ldquo;{esc(item.get('statement1'))}&rdquo; <em>({esc(item.get('location1'))})</em></p>"
            f"<p>&ldquo;{esc(item.get('statement2'))}&rdquo; <em>({esc(item.get('location2'))})</em></p>"
            f"<p>{esc(item.get('explanation'))}</p>"
            "</div>"
        )

    inconsistencies = results.get("inconsistencies") or []
    parts.append(f"<h2>Inconsistencies ({len(inconsistencies)})</h2>")
    if not inconsistencies:
        parts.append("<p>No inconsistencies found.</p>")
    for item in inconsistencies:
        severity = esc(item.get("severity"))
        parts.append(
            f"<div class=\"item {severity}\">"
            f"<p><strong>{esc(item.get('type'))}</strong> | <strong>Severity:</strong> {severity}</p>"
            f"<p>{esc(item.get('issue'))} <em>({esc(item.get('location'))})</em></p>"
            f"<p><strong>Suggestion:</strong> {esc(item.get('suggestion'))}</p>"
            "</div>"
        )

    parts.append("</body></html>")
    return "\n".join(parts).encode("utf-8")


def render_pdf(data: Dict[str, Any]) -> bytes:
    try:
        from reportlab.pdfgen import canvas
        from reportlab.lib.pagesizes import A4
        from reportlab.lib.utils import simpleSplit
    except ImportError as exc:
        raise RuntimeError("reportlab is required for PDF export") from exc

    results = data.get("results") or {}

    buf = BytesIO()
    c = canvas.Canvas(buf, pagesize=A4)
    width, height = A4
    margin = 50
    y = height - margin

    def draw_text(text: str, size: int = 11, font: str = "Helvetica"):
        nonlocal y
        for line in simpleSplit(text or "", font, size, width - 2 * margin) or [""]:
            if y < 80:
                c.showPage()
                y = height - margin
            c.setFont(font, size)
            c.drawString(margin, y, line)
            y -= size + 6

    draw_text("Document Analysis Report", 16, "Helvetica-Bold")
    draw_text(f"Document: {data.get('document_name') or ''}")
    draw_text(f"Analysis date: {data.get('analysis_date') or ''}")
    draw_text(f"Analysis type: {data.get('analysis_type') or ''}")
    draw_text(f"Requested by: {data.get('user_email') or ''}")
    y -= 8

    draw_text("Summary", 14, "Helvetica-Bold")
    draw_text(results.get("summary") or "")
    draw_text(f"Confidence score: {results.get('confidence_score')}")
    y -= 8

    contradictions = results.get("contradictions") or []
    draw_text(f"Contradictions ({len(contradictions)})", 14, "Helvetica-Bold")
    if not contradictions:
        draw_text("No contradictions found.")
    for idx, item in enumerate(contradictions, start=1):
        draw_text(f"{idx}. Severity: {item.get('severity')} | Confidence: {item.get('confidence')}", 11, "Helvetica-Bold")
        draw_text(f"Statement 1 ({item.get('location1') or '-'}): {item.get('statement1') or ''}", 10)
        draw_text(f"Statement 2 ({item.get('location2') or '-'}): {item.get('statement2') or ''}", 10)
        if item.get("explanation"):
            draw_text(f"Explanation: {item.get('explanation')}", 10)

    inconsistencies = results.get("inconsistencies") or []
    draw_text(f"Inconsistencies ({len(inconsistencies)})", 14, "Helvetica-Bold")
    if not inconsistencies:
        draw_text("No inconsistencies found.")
    for idx, item in enumerate(inconsistencies, start=1):
        draw_text(f"{idx}. {item.get('type')} | Severity: {item.get('severity')}", 11, "Helvetica-Bold")
        draw_text(f"Issue ({item.get('location') or '-'}): {item.get('issue') or ''}", 10)
        if item.get("suggestion"):
            draw_text(f"Suggestion: {item.get('suggestion')}", 10)

    c.save()
    buf.seek(0)
    return buf.read()


_RENDERERS = {
    ReportType.PDF: render_pdf,
    ReportType.JSON: render_json,
    ReportType.HTML: render_html,
}


def render_report(data: Dict[str, Any], report_type: str, job_id: str = "report") -> Tuple[bytes, str, str]:
    """
    Render report bytes.

    Args:
        data: {document_name, analysis_date, analysis_type, results, user_email}
        report_type: pdf | json | html

    Returns:
        (content, content_type, filename)
    """
    fmt = _parse_report_type(report_type)
    content = _RENDERERS[fmt](data)
    return content, CONTENT_TYPES[fmt], f"analysis-report-{job_id}.{fmt.value}"


# =============================================================================
# Report rows
# =============================================================================

def build_snapshot(data: Dict[str, Any]) -> Dict[str, Any]:
    results = data.get("results") or {}
    return {
        "metadata": {
            "document_name": data.get("document_name"),
            "analysis_date": data.get("analysis_date"),
            "analysis_type": data.get("analysis_type"),
            "user_email": data.get("user_email"),
            "generated_at": datetime.utcnow().isoformat(),
        },
        "summary": {
            "contradictions_count": _count(results, "contradictions"),
            "inconsistencies_count": _count(results, "inconsistencies"),
            "confidence_score": results.get("confidence_score"),
        },
    }


def generate_report(
    owner_id: str,
    job_id: str,
    report_type: str = "pdf",
    session_factory: SessionFactory = get_db_session,
) -> Tuple[bytes, str, str]:
    """
    Render a report for a completed job and record a snapshot row.

    A failure to save the row is logged; the rendered report is still
    returned.

    Raises:
        NotFoundError: Job missing or not owned
        InvalidRequestError: Job not completed, or unknown report type
    """
    fmt = _parse_report_type(report_type)

    with session_factory() as db:
        job = db.query(AnalysisJob).filter(
            AnalysisJob.id == job_id,
            AnalysisJob.user_id == owner_id,
        ).first()
        if job is None:
            raise NotFoundError("Analysis job not found")
        if job.status != JobStatus.COMPLETED:
            raise InvalidRequestError("Analysis not completed yet")

        document: Optional[Document] = job.document
        user: Optional[User] = job.user
        data = {
            "document_name": document.filename if document else "Unknown document",
            "analysis_date": job.created_at.date().isoformat() if job.created_at else "",
            "analysis_type": getattr(job.analysis_type, "value", job.analysis_type),
            "results": dict(job.results or {}),
            "user_email": user.email if user else "Unknown",
        }

    content, content_type, filename = render_report(data, fmt.value, job_id)

    try:
        with session_factory() as db:
            db.add(Report(
                user_id=owner_id,
                analysis_job_id=job_id,
                report_type=fmt,
                report_data=build_snapshot(data),
            ))
    except Exception as e:
        logger.error("Failed to save report for job %s: %s", job_id, e)

    logger.info("Generated %s report for job %s (%d bytes)", fmt.value, job_id, len(content))
    return content, content_type, filename


def list_reports(
    owner_id: str,
    page: int = 1,
    limit: int = 10,
    session_factory: SessionFactory = get_db_session,
) -> ReportListResponse:
    """Owner's reports, newest first"""
    page = max(1, page)
    limit = max(1, min(limit, 100))

    with session_factory() as db:
        query = db.query(Report).filter(Report.user_id == owner_id)
        total = query.count()
        rows = query.order_by(Report.generated_at.desc()) \
            .offset((page - 1) * limit) \
            .limit(limit) \
            .all()
        reports = [ReportOut.model_validate(row) for row in rows]

    return ReportListResponse(
        reports=reports,
        pagination=Pagination(page=page, limit=limit, total=total, total_pages=math.ceil(total / limit)),
    )
