"""
Document Service and Report Exporter Tests
"""

import json

import pytest

from conftest import FakeAnalyzer, get_usage_count, seed_user
from doc_checker import documents, reports
from doc_checker.config import Settings
from doc_checker.db.models import AnalysisJob, Document, Report
from doc_checker.db.session import get_db_session
from doc_checker.errors import InvalidRequestError, NotFoundError, StorageError
from doc_checker.orchestrator import AnalysisOrchestrator
from doc_checker.schemas import JobStatus


def _settings(**overrides) -> Settings:
    return Settings(llm_mode="gemini", gemini_api_key="k", **overrides)


REPORT_DATA = {
    "document_name": "contract <final>.pdf",
    "analysis_date": "2024-03-01",
    "analysis_type": "contradiction",
    "user_email": "user@example.com",
    "results": {
        "contradictions": [
            {
                "id": "c1",
                "statement1": "Paid <b>monthly</b>",
                "statement2": "Paid yearly",
                "location1": "Clause 2",
                "location2": "Clause 9",
                "severity": "high",
                "explanation": "Payment schedule differs",
                "confidence": 0.9,
            }
        ],
        "inconsistencies": [],
        "summary": "One contradiction",
        "confidence_score": 0.9,
        "processing_time_ms": 10,
    },
}


class TestUploadDocument:

    def test_upload_stores_blob_and_row(self, sqlalchemy_db, blob_store):
        user_id = seed_user()

        out = documents.upload_document(
            user_id, "notes.txt", b"hello world", "text/plain",
            storage=blob_store, settings=_settings(),
        )

        assert out.upload_status == "uploaded"
        assert out.file_type == "text/plain"
        assert out.storage_path.startswith(f"{user_id}/")
        assert blob_store.download(out.storage_path) == b"hello world"

    def test_octet_stream_is_detected_from_name(self, sqlalchemy_db, blob_store):
        user_id = seed_user()

        out = documents.upload_document(
            user_id, "report.pdf", b"%PDF-1.4 fake", "application/octet-stream",
            storage=blob_store, settings=_settings(),
        )
        assert out.file_type == "application/pdf"

    def test_rejects_unsupported_type(self, sqlalchemy_db, blob_store):
        user_id = seed_user()

        with pytest.raises(InvalidRequestError) as exc:
            documents.upload_document(
                user_id, "image.png", b"\x89PNG", "image/png",
                storage=blob_store, settings=_settings(),
            )
        assert exc.value.message == "File type image/png not supported"

    def test_rejects_oversized(self, sqlalchemy_db, blob_store):
        user_id = seed_user()

        with pytest.raises(InvalidRequestError) as exc:
            documents.upload_document(
                user_id, "big.txt", b"x" * 2048, "text/plain",
                storage=blob_store, settings=_settings(max_upload_bytes=1024),
            )
        assert "exceeds" in exc.value.message

    def test_row_failure_deletes_blob(self, sqlalchemy_db, blob_store):
        user_id = seed_user()
        uploaded = []

        class RecordingStore:
            def upload(self, path, data, content_type=None):
                uploaded.append(path)
                return blob_store.upload(path, data, content_type)

            def download(self, ref):
                return blob_store.download(ref)

            def delete(self, ref):
                blob_store.delete(ref)

        def broken_session():
            raise RuntimeError("insert failed")

        with pytest.raises(StorageError) as exc:
            documents.upload_document(
                user_id, "notes.txt", b"hello", "text/plain",
                session_factory=broken_session, storage=RecordingStore(), settings=_settings(),
            )

        assert exc.value.message == "Failed to save notes.txt metadata"
        assert len(uploaded) == 1
        assert not blob_store.exists(uploaded[0])


class TestListAndDelete:

    def test_pagination(self, sqlalchemy_db, blob_store):
        user_id = seed_user()
        for i in range(5):
            documents.upload_document(user_id, f"doc{i}.txt", b"text", "text/plain",
                                      storage=blob_store, settings=_settings())

        page = documents.list_documents(user_id, page=2, limit=2)

        assert len(page.documents) == 2
        assert page.pagination.total == 5
        assert page.pagination.total_pages == 3

    def test_list_is_owner_scoped(self, sqlalchemy_db, blob_store):
        owner = seed_user("owner@example.com")
        other = seed_user("other@example.com")
        documents.upload_document(owner, "doc.txt", b"text", "text/plain",
                                  storage=blob_store, settings=_settings())

        assert documents.list_documents(other).pagination.total == 0

    @pytest.mark.asyncio
    async def test_delete_cascades_jobs_and_reports(self, sqlalchemy_db, blob_store):
        user_id = seed_user()
        doc = documents.upload_document(user_id, "doc.txt", b"y" * 200, "text/plain",
                                        storage=blob_store, settings=_settings())
        orchestrator = AnalysisOrchestrator(get_db_session, blob_store, FakeAnalyzer(), _settings())
        outcome = await orchestrator.run_analysis(user_id, doc.id)
        reports.generate_report(user_id, outcome.job_id, "json")

        documents.delete_document(user_id, doc.id, storage=blob_store)

        assert not blob_store.exists(doc.storage_path)
        with get_db_session() as db:
            assert db.query(Document).count() == 0
            assert db.query(AnalysisJob).count() == 0
            assert db.query(Report).count() == 0

    def test_delete_missing_blob_still_deletes_row(self, sqlalchemy_db, blob_store):
        user_id = seed_user()
        doc = documents.upload_document(user_id, "doc.txt", b"text", "text/plain",
                                        storage=blob_store, settings=_settings())
        blob_store.delete(doc.storage_path)

        documents.delete_document(user_id, doc.id, storage=blob_store)
        assert documents.list_documents(user_id).pagination.total == 0

    def test_delete_foreign_document(self, sqlalchemy_db, blob_store):
        owner = seed_user("owner@example.com")
        other = seed_user("other@example.com")
        doc = documents.upload_document(owner, "doc.txt", b"text", "text/plain",
                                        storage=blob_store, settings=_settings())

        with pytest.raises(NotFoundError):
            documents.delete_document(other, doc.id, storage=blob_store)


class TestRenderReport:

    def test_json(self):
        content, content_type, filename = reports.render_report(REPORT_DATA, "json", "job-1")
        payload = json.loads(content)

        assert content_type == "application/json"
        assert filename == "analysis-report-job-1.json"
        assert payload["summary"]["contradictions_count"] == 1
        assert payload["results"]["confidence_score"] == 0.9

    def test_html_is_escaped(self):
        content, content_type, filename = reports.render_report(REPORT_DATA, "html", "job-1")
        body = content.decode("utf-8")

        assert content_type == "text/html"
        assert filename.endswith(".html")
        assert "contract &lt;final&gt;.pdf" in body
        assert "Paid &lt;b&gt;monthly&lt;/b&gt;" in body
        assert "<b>monthly</b>" not in body

    def test_pdf(self):
        content, content_type, filename = reports.render_report(REPORT_DATA, "PDF", "job-1")

        assert content_type == "application/pdf"
        assert content.startswith(b"%PDF")
        assert filename == "analysis-report-job-1.pdf"

    def test_pdf_handles_long_results(self):
        data = dict(REPORT_DATA)
        data["results"] = dict(REPORT_DATA["results"])
        data["results"]["contradictions"] = REPORT_DATA["results"]["contradictions"] * 80

        content, _, _ = reports.render_report(data, "pdf")
        assert content.startswith(b"%PDF")

    def test_invalid_type(self):
        with pytest.raises(InvalidRequestError):
            reports.render_report(REPORT_DATA, "docx")


class TestGenerateReport:

    @pytest.mark.asyncio
    async def test_saves_snapshot_row(self, sqlalchemy_db, blob_store):
        user_id = seed_user()
        doc = documents.upload_document(user_id, "doc.txt", b"z" * 200, "text/plain",
                                        storage=blob_store, settings=_settings())
        orchestrator = AnalysisOrchestrator(get_db_session, blob_store, FakeAnalyzer(), _settings())
        outcome = await orchestrator.run_analysis(user_id, doc.id)

        content, content_type, filename = reports.generate_report(user_id, outcome.job_id, "html")

        assert content_type == "text/html"
        assert b"doc.txt" in content
        listing = reports.list_reports(user_id)
        assert listing.pagination.total == 1
        snapshot = listing.reports[0].report_data
        assert snapshot["metadata"]["document_name"] == "doc.txt"
        assert snapshot["metadata"]["user_email"] == "user@example.com"
        assert snapshot["summary"]["contradictions_count"] == 1
        assert snapshot["summary"]["confidence_score"] == 0.9

    @pytest.mark.asyncio
    async def test_failed_job_rejected(self, sqlalchemy_db, blob_store, failing_analyzer):
        user_id = seed_user()
        doc = documents.upload_document(user_id, "doc.txt", b"z" * 200, "text/plain",
                                        storage=blob_store, settings=_settings())
        orchestrator = AnalysisOrchestrator(get_db_session, blob_store, failing_analyzer, _settings())
        outcome = await orchestrator.run_analysis(user_id, doc.id)
        assert outcome.status == JobStatus.FAILED

        with pytest.raises(InvalidRequestError) as exc:
            reports.generate_report(user_id, outcome.job_id, "pdf")
        assert exc.value.message == "Analysis not completed yet"
        assert get_usage_count(user_id) == 0

    def test_unknown_job(self, sqlalchemy_db):
        user_id = seed_user()
        with pytest.raises(NotFoundError):
            reports.generate_report(user_id, "missing", "pdf")
