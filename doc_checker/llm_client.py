"""
AI Analysis Client
==================

Google Gemini client for contradiction analysis, over the REST
`generateContent` endpoint.

- Fixed low-temperature generation config, biased toward well-formed JSON
- One blocking round trip per analysis (no streaming)
- Explicit request timeout, surfaced as AITimeoutError
- No internal retries: failures raise AIServiceError and the caller decides
"""

import logging
import time
from dataclasses import dataclass, field
from typing import Dict, Optional, Any

import httpx

from .config import Settings, get_settings
from .errors import AIServiceError, AITimeoutError
from .prompts import build_prompt
from .response_parser import parse_analysis_response, safe_log_content
from .schemas import AnalysisResult, AnalysisType, LLMMode

logger = logging.getLogger(__name__)


@dataclass
class LLMResponse:
    """Response from LLM"""
    content: str
    model: str
    usage: Dict[str, int] = field(default_factory=dict)
    raw_response: Optional[Dict[str, Any]] = None


class GeminiClient:
    """
    Gemini analysis client.

    Usage:
        client = GeminiClient()
        result = await client.analyze(text, AnalysisType.CONTRADICTION)
    """

    def __init__(
        self,
        settings: Optional[Settings] = None,
        http_client: Optional[httpx.AsyncClient] = None,
    ):
        self.settings = settings or get_settings()
        self._http_client = http_client

    @property
    def model(self) -> str:
        return self.settings.gemini_model

    async def _get_client(self) -> httpx.AsyncClient:
        """Get or create HTTP client"""
        if self._http_client is None:
            self._http_client = httpx.AsyncClient(timeout=self.settings.llm_timeout)
        return self._http_client

    async def close(self):
        """Close HTTP client"""
        if self._http_client:
            await self._http_client.aclose()
            self._http_client = None

    def generation_config(self) -> Dict[str, Any]:
        return {
            "temperature": self.settings.llm_temperature,
            "topK": self.settings.llm_top_k,
            "topP": self.settings.llm_top_p,
            "maxOutputTokens": self.settings.llm_max_output_tokens,
        }

    async def generate(self, prompt: str) -> LLMResponse:
        """
        Send one prompt to Gemini and return the raw text answer.

        Raises:
            AITimeoutError: Request exceeded LLM_TIMEOUT
            AIServiceError: Provider not configured, HTTP error or empty answer
        """
        if self.settings.llm_mode != LLMMode.GEMINI:
            raise AIServiceError("AI analysis failed: no LLM provider configured (LLM_MODE=none)")
        if not self.settings.gemini_api_key:
            raise AIServiceError("AI analysis failed: Gemini API key not configured")

        client = await self._get_client()

        payload = {
            "contents": [
                {
                    "parts": [{"text": prompt}]
                }
            ],
            "generationConfig": self.generation_config(),
        }

        url = f"{self.settings.gemini_base_url}/models/{self.model}:generateContent"

        try:
            response = await client.post(
                url,
                json=payload,
                params={"key": self.settings.gemini_api_key},
                timeout=self.settings.llm_timeout,
            )
            response.raise_for_status()
            data = response.json()
        except httpx.TimeoutException as e:
            logger.error("Gemini request timed out after %ss", self.settings.llm_timeout)
            raise AITimeoutError(
                f"AI analysis failed: request timed out after {self.settings.llm_timeout}s"
            ) from e
        except httpx.HTTPStatusError as e:
            logger.error(f"Gemini API error: {e.response.status_code} - {e.response.text[:200]}")
            raise AIServiceError(
                f"AI analysis failed: Gemini API error {e.response.status_code}"
            ) from e
        except (httpx.HTTPError, ValueError) as e:
            logger.error(f"Gemini request failed: {e}")
            raise AIServiceError(f"AI analysis failed: {e}") from e

        # Blocked/filtered responses come back without candidates
        try:
            content = data["candidates"][0]["content"]["parts"][0]["text"]
        except (KeyError, IndexError, TypeError) as e:
            block_reason = (data.get("promptFeedback") or {}).get("blockReason")
            logger.error(f"Gemini response missing content: {e!r} block_reason={block_reason}")
            reason = f" (blocked: {block_reason})" if block_reason else ""
            raise AIServiceError(f"AI analysis failed: empty response from model{reason}") from e

        if not content:
            raise AIServiceError("AI analysis failed: empty response from model")

        usage_metadata = data.get("usageMetadata", {})

        logger.debug(f"Gemini response: {safe_log_content(content)}")

        return LLMResponse(
            content=content,
            model=self.model,
            usage={
                "input_tokens": usage_metadata.get("promptTokenCount", 0),
                "output_tokens": usage_metadata.get("candidatesTokenCount", 0)
            },
            raw_response=data
        )

    async def analyze_prompt(self, prompt: str) -> AnalysisResult:
        """
        Run a prebuilt prompt and parse the answer.

        processing_time_ms covers the model call and the parse.

        Raises:
            AIServiceError / AITimeoutError: Model call failed
            ParseError: Answer had no usable JSON object
        """
        start = time.perf_counter()

        response = await self.generate(prompt)
        result = parse_analysis_response(response.content)

        elapsed_ms = int((time.perf_counter() - start) * 1000)
        logger.info(
            "Gemini analysis done model=%s ms=%d tokens_in=%s tokens_out=%s",
            response.model, elapsed_ms,
            response.usage.get("input_tokens"), response.usage.get("output_tokens")
        )
        return result.model_copy(update={"processing_time_ms": elapsed_ms})

    async def analyze(
        self,
        text: str,
        analysis_type: AnalysisType = AnalysisType.CONTRADICTION,
    ) -> AnalysisResult:
        """Analyze a single document's text"""
        return await self.analyze_prompt(build_prompt(text, analysis_type))


# Singleton
_llm_client: Optional[GeminiClient] = None


def get_llm_client() -> GeminiClient:
    """Get singleton LLM client"""
    global _llm_client
    if _llm_client is None:
        _llm_client = GeminiClient()
    return _llm_client
