"""
LLM access through LangChain chat models with support for multiple providers
"""
from typing import Dict, Any, Optional, Tuple
from abc import ABC, abstractmethod
from dataclasses import dataclass
import json
import re
import time

from langchain_google_genai import ChatGoogleGenerativeAI
from langchain_openai import ChatOpenAI
from langchain_anthropic import ChatAnthropic
from langchain_core.messages import HumanMessage
import structlog

from linguaspark.config import settings
from linguaspark.core.error_classifier import to_provider_error
from linguaspark.core.exceptions import AIProviderError, ConfigurationError, InvalidContentError
from linguaspark.core.logging import metrics_logger
from linguaspark.core.retry import llm_retry, llm_rate_limiter

logger = structlog.get_logger(__name__)

OPENROUTER_PREFIX = "openrouter/"


@dataclass
class UsageMeter:
    """Accumulates token usage across the calls of one request."""
    tokens: int = 0
    calls: int = 0

    def add(self, tokens: int):
        self.tokens += max(0, int(tokens or 0))
        self.calls += 1


class LLMProvider(ABC):
    """Abstract base class for LLM providers"""

    model_name: str = "unknown"

    async def prompt(
        self,
        prompt_text: str,
        *,
        temperature: Optional[float] = None,
        max_tokens: Optional[int] = None,
        usage: Optional[UsageMeter] = None
    ) -> str:
        """Send one prompt and return the text reply"""
        start = time.time()
        metrics_logger.log_llm_request(self.model_name, len(prompt_text))
        try:
            text, tokens = await self._complete(prompt_text, temperature, max_tokens)
        except AIProviderError:
            metrics_logger.log_llm_complete(self.model_name, time.time() - start, success=False)
            raise

        metrics_logger.log_llm_complete(self.model_name, time.time() - start, tokens_used=tokens)
        if usage is not None:
            usage.add(tokens)
        return text

    @abstractmethod
    async def _complete(
        self,
        prompt_text: str,
        temperature: Optional[float],
        max_tokens: Optional[int]
    ) -> Tuple[str, int]:
        """Return (text, tokens used). Must raise AIProviderError variants on failure."""


class LangChainLLMProvider(LLMProvider):
    """LangChain-based LLM provider with multi-model support"""

    def __init__(self, model_name: Optional[str] = None):
        self.model_name = model_name or settings.llm_model
        self.provider, self.upstream_model = self._resolve_provider(self.model_name)
        self._models: Dict[Tuple[float, int], Any] = {}

    @staticmethod
    def _resolve_provider(model_name: str) -> Tuple[str, str]:
        name = model_name.lower()
        if name.startswith(OPENROUTER_PREFIX):
            return "openrouter", model_name[len(OPENROUTER_PREFIX):]
        if "claude" in name and settings.anthropic_api_key:
            return "anthropic", model_name
        if "gpt" in name and settings.openai_api_key:
            return "openai", model_name
        if settings.gemini_api_key is None and settings.openrouter_api_key:
            return "openrouter", settings.openrouter_model
        # Default to Gemini
        return "gemini", model_name if "gemini" in name else "gemini-2.5-flash"

    def _initialize_model(self, temperature: float, max_tokens: int):
        """Initialize the LangChain chat model for the configured provider"""
        if self.provider == "openrouter":
            if not settings.openrouter_api_key:
                raise ConfigurationError("OPENROUTER_API_KEY is not configured")
            return ChatOpenAI(
                model=self.upstream_model,
                api_key=settings.openrouter_api_key,
                base_url=settings.openrouter_base_url,
                temperature=temperature,
                max_tokens=max_tokens,
                timeout=settings.llm_timeout,
                max_retries=0,
                default_headers={
                    "HTTP-Referer": settings.openrouter_referer,
                    "X-Title": settings.openrouter_title,
                }
            )
        if self.provider == "anthropic":
            return ChatAnthropic(
                model=self.upstream_model,
                anthropic_api_key=settings.anthropic_api_key,
                temperature=temperature,
                max_tokens=max_tokens,
                timeout=settings.llm_timeout,
                max_retries=0
            )
        if self.provider == "openai":
            return ChatOpenAI(
                model=self.upstream_model,
                api_key=settings.openai_api_key,
                temperature=temperature,
                max_tokens=max_tokens,
                timeout=settings.llm_timeout,
                max_retries=0
            )
        if not settings.gemini_api_key:
            raise ConfigurationError("GEMINI_API_KEY is not configured")
        return ChatGoogleGenerativeAI(
            model=self.upstream_model,
            google_api_key=settings.gemini_api_key,
            temperature=temperature,
            max_output_tokens=max_tokens,
            timeout=settings.llm_timeout,
            max_retries=0
        )

    def _get_model(self, temperature: Optional[float], max_tokens: Optional[int]):
        key = (
            settings.llm_temperature if temperature is None else temperature,
            settings.llm_max_tokens if max_tokens is None else max_tokens,
        )
        model = self._models.get(key)
        if model is None:
            model = self._initialize_model(*key)
            self._models[key] = model
            logger.info("LLM model initialized", provider=self.provider, model=self.upstream_model,
                        temperature=key[0], max_tokens=key[1])
        return model

    @llm_retry
    async def _complete(
        self,
        prompt_text: str,
        temperature: Optional[float],
        max_tokens: Optional[int]
    ) -> Tuple[str, int]:
        model = self._get_model(temperature, max_tokens)
        await llm_rate_limiter.acquire()

        try:
            response = await model.ainvoke([HumanMessage(content=prompt_text)])
        except Exception as e:
            error = to_provider_error(e)
            logger.error("LLM generation failed", error=str(e), model=self.model_name,
                         error_type=error.error_type.value, status=error.status)
            raise error from e

        text = _message_text(response.content)
        if not text.strip():
            raise InvalidContentError("Empty response from model", code="EMPTY_RESPONSE")

        usage_metadata = getattr(response, "usage_metadata", None) or {}
        tokens = int(usage_metadata.get("total_tokens") or 0)
        return text, tokens


def _message_text(content: Any) -> str:
    """LangChain content is either a string or a list of content blocks."""
    if isinstance(content, str):
        return content
    parts = []
    for block in content or []:
        if isinstance(block, str):
            parts.append(block)
        elif isinstance(block, dict) and block.get("type") == "text":
            parts.append(block.get("text", ""))
    return "".join(parts)


def strip_code_fences(text: str) -> str:
    """Remove markdown code fences and extract the body if present."""
    if not text:
        return text
    # Match ```json ... ``` or ``` ... ```
    fence_match = re.search(r"```(?:json)?\s*([\s\S]*?)\s*```", text, re.IGNORECASE)
    if fence_match:
        return fence_match.group(1).strip()
    # Truncated reply: opening fence with no closing one
    open_fence = re.match(r"\s*```(?:json)?\s*", text, re.IGNORECASE)
    if open_fence:
        return text[open_fence.end():].strip()
    return text.strip()


def repair_incomplete_json(text: str) -> str:
    """Close an unterminated string, then any open arrays and objects in nesting order."""
    repaired = (text or "").strip()
    stack = []
    in_string = False
    escaped = False
    for ch in repaired:
        if in_string:
            if escaped:
                escaped = False
            elif ch == "\\":
                escaped = True
            elif ch == '"':
                in_string = False
            continue
        if ch == '"':
            in_string = True
        elif ch in "{[":
            stack.append("}" if ch == "{" else "]")
        elif ch in "}]" and stack and stack[-1] == ch:
            stack.pop()

    if in_string:
        repaired += '"'
    repaired = re.sub(r",\s*$", "", repaired)
    return repaired + "".join(reversed(stack))


def coerce_to_json(raw: str) -> Any:
    """Best-effort conversion of model output to JSON. Raises ValueError when nothing parses."""
    candidate = strip_code_fences((raw or "").strip())
    # Try direct json
    try:
        return json.loads(candidate)
    except ValueError:
        pass

    # Extract the outermost {...} or [...] block
    starts = [i for i in (candidate.find("{"), candidate.find("[")) if i != -1]
    if not starts:
        raise ValueError("No JSON object found in model output")
    start = min(starts)
    closer = "}" if candidate[start] == "{" else "]"
    end = candidate.rfind(closer)
    if end > start:
        try:
            return json.loads(candidate[start:end + 1])
        except ValueError:
            pass

    # Truncated output: close what was left open
    body = candidate[start:]
    try:
        return json.loads(repair_incomplete_json(body))
    except ValueError:
        pass

    # As a last resort, drop trailing commas
    naive = re.sub(r",\s*([}\]])", r"\1", repair_incomplete_json(body))
    return json.loads(naive)


# Singleton instance
_llm_provider: Optional[LLMProvider] = None


def get_llm_provider() -> LLMProvider:
    """Get singleton LLM provider instance"""
    global _llm_provider
    if _llm_provider is None:
        _llm_provider = LangChainLLMProvider()
    return _llm_provider
