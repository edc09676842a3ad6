"""
Gemini Client Tests (httpx.MockTransport, no network)
"""

import json

import httpx
import pytest

from doc_checker.config import Settings
from doc_checker.errors import AIServiceError, AITimeoutError, ParseError
from doc_checker.llm_client import GeminiClient
from doc_checker.schemas import AnalysisType


ANALYSIS_JSON = {
    "contradictions": [
        {
            "id": "c1",
            "statement1": "Signed in 2020",
            "statement2": "Signed in 2021",
            "severity": "high",
            "explanation": "Different years",
            "confidence": 0.9,
        }
    ],
    "inconsistencies": [],
    "summary": "One contradiction",
    "confidence_score": 0.9,
}


def _gemini_body(text: str) -> dict:
    return {
        "candidates": [{"content": {"parts": [{"text": text}]}}],
        "usageMetadata": {"promptTokenCount": 120, "candidatesTokenCount": 40},
    }


def _client(handler, **overrides) -> GeminiClient:
    settings = Settings(llm_mode="gemini", gemini_api_key="test-key", **overrides)
    http_client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    return GeminiClient(settings=settings, http_client=http_client)


class TestGeminiClient:

    @pytest.mark.asyncio
    async def test_request_shape(self):
        seen = {}

        def handler(request: httpx.Request) -> httpx.Response:
            seen["url"] = str(request.url)
            seen["body"] = json.loads(request.content)
            return httpx.Response(200, json=_gemini_body(json.dumps(ANALYSIS_JSON)))

        client = _client(handler)
        await client.analyze("Some document text", AnalysisType.CONTRADICTION)
        await client.close()

        assert "/models/gemini-1.5-flash:generateContent" in seen["url"]
        assert "key=test-key" in seen["url"]
        assert seen["body"]["generationConfig"] == {
            "temperature": 0.1,
            "topK": 32,
            "topP": 0.95,
            "maxOutputTokens": 8192,
        }
        assert "Some document text" in seen["body"]["contents"][0]["parts"][0]["text"]

    @pytest.mark.asyncio
    async def test_parses_fenced_answer_and_times_it(self):
        def handler(request):
            return httpx.Response(200, json=_gemini_body("```json\n" + json.dumps(ANALYSIS_JSON) + "\n```"))

        client = _client(handler)
        result = await client.analyze_prompt("prompt")

        assert result.confidence_score == 0.9
        assert result.contradictions[0].severity.value == "high"
        assert result.processing_time_ms >= 0

    @pytest.mark.asyncio
    async def test_http_error_is_ai_service_error(self):
        def handler(request):
            return httpx.Response(503, json={"error": {"message": "overloaded"}})

        client = _client(handler)
        with pytest.raises(AIServiceError) as exc:
            await client.analyze_prompt("prompt")

        assert not isinstance(exc.value, AITimeoutError)
        assert exc.value.message.startswith("AI analysis failed")
        assert "503" in exc.value.message

    @pytest.mark.asyncio
    async def test_timeout_is_ai_timeout_error(self):
        def handler(request):
            raise httpx.ReadTimeout("timed out", request=request)

        client = _client(handler, llm_timeout=5)
        with pytest.raises(AITimeoutError) as exc:
            await client.analyze_prompt("prompt")

        assert isinstance(exc.value, AIServiceError)
        assert exc.value.status_code == 504

    @pytest.mark.asyncio
    async def test_connection_error(self):
        def handler(request):
            raise httpx.ConnectError("connection refused", request=request)

        client = _client(handler)
        with pytest.raises(AIServiceError):
            await client.analyze_prompt("prompt")

    @pytest.mark.asyncio
    async def test_blocked_response_without_candidates(self):
        def handler(request):
            return httpx.Response(200, json={"promptFeedback": {"blockReason": "SAFETY"}})

        client = _client(handler)
        with pytest.raises(AIServiceError) as exc:
            await client.analyze_prompt("prompt")
        assert "SAFETY" in exc.value.message

    @pytest.mark.asyncio
    async def test_unparseable_answer_is_parse_error(self):
        def handler(request):
            return httpx.Response(200, json=_gemini_body("Sorry, I cannot help with that."))

        client = _client(handler)
        with pytest.raises(ParseError):
            await client.analyze_prompt("prompt")

    @pytest.mark.asyncio
    async def test_missing_api_key(self):
        calls = []

        def handler(request):
            calls.append(request)
            return httpx.Response(200, json=_gemini_body("{}"))

        settings = Settings(llm_mode="gemini", gemini_api_key="")
        client = GeminiClient(settings=settings, http_client=httpx.AsyncClient(transport=httpx.MockTransport(handler)))

        with pytest.raises(AIServiceError) as exc:
            await client.analyze_prompt("prompt")
        assert "Gemini API key not configured" in exc.value.message
        assert calls == []

    @pytest.mark.asyncio
    async def test_llm_mode_none_refuses(self):
        client = GeminiClient(settings=Settings(llm_mode="none", gemini_api_key="k"))
        with pytest.raises(AIServiceError):
            await client.analyze_prompt("prompt")

    @pytest.mark.asyncio
    async def test_custom_model(self):
        seen = {}

        def handler(request):
            seen["url"] = str(request.url)
            return httpx.Response(200, json=_gemini_body("{}"))

        client = _client(handler, gemini_model="gemini-1.5-pro")
        result = await client.analyze_prompt("prompt")

        assert "/models/gemini-1.5-pro:generateContent" in seen["url"]
        assert result.summary == "Analysis completed"
