"""
Shared fixtures: per-test SQLite database, blob store, fake analyzer.
"""

import os
import sys
from pathlib import Path
from typing import List, Optional

import pytest

sys.path.insert(0, str(Path(__file__).parent.parent.parent))

from doc_checker.config import Settings, get_settings
from doc_checker.errors import AIServiceError
from doc_checker.schemas import AnalysisResult, Contradiction


@pytest.fixture
def sqlalchemy_db(tmp_path):
    from doc_checker.db.session import reset_engine, init_db

    old_db_url = os.environ.get("DATABASE_URL")
    db_path = tmp_path / "doc_checker.db"
    os.environ["DATABASE_URL"] = f"sqlite:///{db_path}"
    reset_engine()
    init_db()

    yield

    if old_db_url is not None:
        os.environ["DATABASE_URL"] = old_db_url
    else:
        os.environ.pop("DATABASE_URL", None)
    reset_engine()


@pytest.fixture
def blob_store(tmp_path):
    from doc_checker.storage import LocalBlobStore
    return LocalBlobStore(str(tmp_path / "blobs"))


@pytest.fixture
def settings():
    return Settings(llm_mode="gemini", gemini_api_key="test-key")


@pytest.fixture
def storage_root_env(tmp_path, monkeypatch):
    """Point STORAGE_ROOT (and the cached settings) at a temp dir"""
    root = tmp_path / "blobs"
    monkeypatch.setenv("STORAGE_ROOT", str(root))
    get_settings.cache_clear()
    yield root
    get_settings.cache_clear()


def seed_user(email: str = "user@example.com", usage_count: int = 0, usage_limit: int = 5) -> str:
    from doc_checker.db.session import get_db_session
    from doc_checker.db.models import User

    with get_db_session() as db:
        user = User(email=email, usage_count=usage_count, usage_limit=usage_limit)
        db.add(user)
        db.flush()
        return user.id


def seed_document(store, user_id: str, data: bytes, filename: str = "doc.txt",
                  mime_type: str = "text/plain") -> str:
    from doc_checker.db.session import get_db_session
    from doc_checker.db.models import Document
    from doc_checker.schemas import UploadStatus
    from doc_checker.storage import generate_key

    ref = store.upload(generate_key(user_id, filename), data, content_type=mime_type)
    with get_db_session() as db:
        document = Document(
            user_id=user_id,
            filename=filename,
            file_size=len(data),
            file_type=mime_type,
            storage_path=ref,
            upload_status=UploadStatus.UPLOADED,
        )
        db.add(document)
        db.flush()
        return document.id


def get_usage_count(user_id: str) -> int:
    from doc_checker.db.session import get_db_session
    from doc_checker.db.models import User

    with get_db_session() as db:
        return db.query(User).filter(User.id == user_id).one().usage_count


LONG_TEXT = (
    "The lease starts on March 1, 2024 and runs for twelve months. "
    "Rent is payable on the first day of each month. "
    "The tenant may terminate with thirty days notice. "
    "The lease starts on April 1, 2024 according to the schedule. "
)


class FakeAnalyzer:
    """Stands in for the Gemini client; records prompts"""

    model = "fake-model"

    def __init__(self, result: Optional[AnalysisResult] = None, error: Optional[Exception] = None):
        self.result = result or AnalysisResult(
            contradictions=[
                Contradiction(
                    id="c1",
                    statement1="The lease starts on March 1, 2024",
                    statement2="The lease starts on April 1, 2024",
                    severity="high",
                    explanation="Two start dates",
                    confidence=0.95,
                )
            ],
            summary="One contradiction",
            confidence_score=0.9,
            processing_time_ms=12,
        )
        self.error = error
        self.prompts: List[str] = []

    @property
    def call_count(self) -> int:
        return len(self.prompts)

    async def analyze_prompt(self, prompt: str) -> AnalysisResult:
        self.prompts.append(prompt)
        if self.error is not None:
            raise self.error
        return self.result


@pytest.fixture
def failing_analyzer():
    return FakeAnalyzer(error=AIServiceError("AI analysis failed: Gemini API error 503"))
