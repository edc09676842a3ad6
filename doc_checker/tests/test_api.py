"""
Tests for the HTTP API
======================

Every response is JSON with the expected structure; errors use the
{"error": {code, message, details}} envelope.
"""

import pytest

from fastapi.testclient import TestClient

from conftest import FakeAnalyzer, LONG_TEXT, get_usage_count, seed_user
from doc_checker import usage
from doc_checker.api import app, get_orchestrator
from doc_checker.config import Settings
from doc_checker.db.session import get_db_session
from doc_checker.errors import AIServiceError
from doc_checker.orchestrator import AnalysisOrchestrator
from doc_checker.storage import get_storage


# =============================================================================
# Fixtures
# =============================================================================

@pytest.fixture
def analyzer():
    return FakeAnalyzer()


@pytest.fixture
def client(sqlalchemy_db, storage_root_env, analyzer):
    """Test client with the AI call replaced by a fake analyzer"""
    def orchestrator_override():
        return AnalysisOrchestrator(
            session_factory=get_db_session,
            storage=get_storage(),
            analyzer=analyzer,
            settings=Settings(llm_mode="gemini", gemini_api_key="k"),
        )

    app.dependency_overrides[get_orchestrator] = orchestrator_override
    yield TestClient(app)
    app.dependency_overrides.clear()


def _headers(user_id: str) -> dict:
    return {"X-User-Id": user_id}


def _upload(client, user_id: str, filename: str = "lease.txt", data: bytes = None):
    data = data if data is not None else LONG_TEXT.encode("utf-8")
    response = client.post(
        "/api/v1/upload",
        files=[("files", (filename, data, "text/plain"))],
        headers=_headers(user_id),
    )
    assert response.status_code == 200, response.text
    return response.json()["documents"][0]


# =============================================================================
# Health & identity
# =============================================================================

class TestHealthAndIdentity:

    def test_health(self, client):
        response = client.get("/health")
        data = response.json()

        assert response.status_code == 200
        assert data["status"] == "healthy"
        assert "llm_mode" in data

    def test_missing_identity_is_401(self, client):
        response = client.get("/api/v1/documents")

        assert response.status_code == 401
        assert response.json()["error"]["code"] == "HTTP_401"

    def test_unknown_user_is_401(self, client):
        response = client.get("/api/v1/documents", headers=_headers("nobody"))
        assert response.status_code == 401

    def test_identity_by_email(self, client):
        seed_user("mail@example.com")
        response = client.get("/api/v1/usage", headers={"X-User-Email": " mail@example.com "})
        assert response.status_code == 200


# =============================================================================
# Documents
# =============================================================================

class TestDocuments:

    def test_upload_and_list(self, client):
        user_id = seed_user()
        uploaded = _upload(client, user_id)

        assert uploaded["filename"] == "lease.txt"
        assert uploaded["upload_status"] == "uploaded"

        response = client.get("/api/v1/documents", headers=_headers(user_id))
        data = response.json()
        assert data["pagination"]["total"] == 1
        assert data["documents"][0]["id"] == uploaded["id"]

    def test_unsupported_upload_stores_nothing(self, client):
        user_id = seed_user()
        response = client.post(
            "/api/v1/upload",
            files=[
                ("files", ("ok.txt", b"fine text", "text/plain")),
                ("files", ("image.png", b"\x89PNG", "image/png")),
            ],
            headers=_headers(user_id),
        )

        assert response.status_code == 400
        assert response.json()["error"]["code"] == "INVALID_REQUEST"
        listing = client.get("/api/v1/documents", headers=_headers(user_id)).json()
        assert listing["pagination"]["total"] == 0

    def test_upload_blocked_at_quota(self, client):
        user_id = seed_user(usage_count=5, usage_limit=5)
        response = client.post(
            "/api/v1/upload",
            files=[("files", ("a.txt", b"text", "text/plain"))],
            headers=_headers(user_id),
        )
        assert response.status_code == 429

    def test_delete(self, client):
        user_id = seed_user()
        uploaded = _upload(client, user_id)

        response = client.delete(f"/api/v1/documents/{uploaded['id']}", headers=_headers(user_id))
        assert response.status_code == 200

        again = client.delete(f"/api/v1/documents/{uploaded['id']}", headers=_headers(user_id))
        assert again.status_code == 404
        assert again.json()["error"]["code"] == "NOT_FOUND"


# =============================================================================
# Analysis
# =============================================================================

class TestAnalyze:

    def test_analyze_success(self, client, analyzer):
        user_id = seed_user()
        doc = _upload(client, user_id)

        response = client.post(
            "/api/v1/analyze",
            json={"document_id": doc["id"], "analysis_type": "contradiction"},
            headers=_headers(user_id),
        )
        data = response.json()

        assert response.status_code == 200
        assert data["message"] == "Analysis completed successfully"
        assert data["results"]["contradictions"][0]["severity"] == "high"
        assert analyzer.call_count == 1
        assert get_usage_count(user_id) == 1

        job = client.get(f"/api/v1/analyze/{data['analysis_job_id']}", headers=_headers(user_id)).json()
        assert job["status"] == "completed"
        assert job["ai_model"] == "fake-model"

    @pytest.mark.parametrize("analyzer", [
        FakeAnalyzer(error=AIServiceError("AI analysis failed: Gemini API error 503")),
    ])
    def test_analyze_failure_returns_job_id(self, client, analyzer):
        user_id = seed_user()
        doc = _upload(client, user_id)

        response = client.post("/api/v1/analyze", json={"document_id": doc["id"]}, headers=_headers(user_id))
        error = response.json()["error"]

        assert response.status_code == 500
        assert error["code"] == "ANALYSIS_FAILED"
        assert "503" in error["message"]
        assert get_usage_count(user_id) == 0

        job = client.get(f"/api/v1/analyze/{error['details']['analysis_job_id']}", headers=_headers(user_id)).json()
        assert job["status"] == "failed"
        assert job["error_message"] == error["message"]

    def test_analyze_over_quota(self, client, analyzer):
        user_id = seed_user()
        doc = _upload(client, user_id)
        usage.apply_plan(user_id, "free")
        for _ in range(5):
            usage.check_and_reserve(user_id)

        response = client.post("/api/v1/analyze", json={"document_id": doc["id"]}, headers=_headers(user_id))

        assert response.status_code == 429
        assert response.json()["error"]["code"] == "QUOTA_EXCEEDED"
        assert analyzer.call_count == 0

    def test_analyze_missing_document_id_is_422(self, client):
        user_id = seed_user()
        response = client.post("/api/v1/analyze", json={}, headers=_headers(user_id))

        assert response.status_code == 422
        assert response.json()["error"]["code"] == "VALIDATION_ERROR"

    def test_comparison(self, client, analyzer):
        user_id = seed_user()
        first = _upload(client, user_id, "a.txt")
        second = _upload(client, user_id, "b.txt")

        response = client.post(
            "/api/v1/analyze/comparison",
            json={
                "document_ids": [first["id"], second["id"]],
                "document_names": [{"id": first["id"], "name": "Lease A"}],
            },
            headers=_headers(user_id),
        )

        assert response.status_code == 200
        assert response.json()["message"] == "Comparison completed successfully"
        assert "Lease A" in analyzer.prompts[0]
        assert "Document 2" in analyzer.prompts[0]

    def test_comparison_needs_two_documents(self, client):
        user_id = seed_user()
        doc = _upload(client, user_id)

        response = client.post(
            "/api/v1/analyze/comparison",
            json={"document_ids": [doc["id"]]},
            headers=_headers(user_id),
        )
        assert response.status_code == 400


# =============================================================================
# Reports, usage, dashboard
# =============================================================================

class TestReportsAndUsage:

    def _completed_job(self, client, user_id: str) -> str:
        doc = _upload(client, user_id)
        response = client.post("/api/v1/analyze", json={"document_id": doc["id"]}, headers=_headers(user_id))
        return response.json()["analysis_job_id"]

    def test_generate_report_download(self, client):
        user_id = seed_user()
        job_id = self._completed_job(client, user_id)

        response = client.post(
            "/api/v1/reports/generate",
            json={"analysis_job_id": job_id, "report_type": "json"},
            headers=_headers(user_id),
        )

        assert response.status_code == 200
        assert response.headers["content-type"].startswith("application/json")
        assert f"analysis-report-{job_id}.json" in response.headers["content-disposition"]
        assert response.json()["summary"]["contradictions_count"] == 1

        listing = client.get("/api/v1/reports", headers=_headers(user_id)).json()
        assert listing["pagination"]["total"] == 1
        assert listing["reports"][0]["report_type"] == "json"

    def test_invalid_report_type(self, client):
        user_id = seed_user()
        job_id = self._completed_job(client, user_id)

        response = client.post(
            "/api/v1/reports/generate",
            json={"analysis_job_id": job_id, "report_type": "xlsx"},
            headers=_headers(user_id),
        )
        assert response.status_code == 400

    def test_usage_and_dashboard(self, client):
        user_id = seed_user()
        self._completed_job(client, user_id)

        summary = client.get("/api/v1/usage", headers=_headers(user_id)).json()
        assert summary["current_usage"] == 1
        assert summary["usage_limit"] == 5
        assert summary["documents_this_month"] == 1

        stats = client.get("/api/v1/dashboard/stats", headers=_headers(user_id)).json()
        assert stats["total_documents"] == 1
        assert stats["total_analyses"] == 1
        assert stats["this_month_analyses"] == 1
        assert stats["total_reports"] == 0
