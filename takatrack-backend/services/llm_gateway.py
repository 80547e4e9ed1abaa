"""
External Model Gateway
Calls an OpenAI-compatible chat completion API with bounded timeout and retries.
Every failure is turned into a keyword fallback answer of the same shape.
"""
import os
import logging
from dataclasses import dataclass
from typing import Any, Dict, List, Optional
import httpx
from tenacity import Retrying, stop_after_attempt, wait_fixed, retry_if_exception_type
from dotenv import load_dotenv
from services.question_rules import fallback_answer

load_dotenv()

logger = logging.getLogger(__name__)

MAX_RETRIES_CAP = 2
PROVENANCE_MODEL = "model"
PROVENANCE_FALLBACK = "fallback"


class RetryableStatusError(Exception):
    """Upstream answered with 429 or a 5xx status."""

    def __init__(self, status_code: int):
        super().__init__(f"Upstream returned HTTP {status_code}")
        self.status_code = status_code


class EmptyCompletionError(Exception):
    """Upstream answered 2xx without any message content."""


@dataclass(frozen=True)
class ModelReply:
    content: str
    provenance: str
    total_tokens: int = 0

    @property
    def ok(self) -> bool:
        return self.provenance == PROVENANCE_MODEL


class LLMGateway:
    """Thin client for the chat completion endpoint"""

    def __init__(
        self,
        api_key: Optional[str] = None,
        base_url: Optional[str] = None,
        model: Optional[str] = None,
        timeout: Optional[float] = None,
        max_retries: Optional[int] = None,
        backoff_seconds: Optional[float] = None,
        transport: Optional[httpx.BaseTransport] = None,
    ):
        """
        Args:
            api_key: Bearer token; when empty every call falls back immediately
            base_url: API root, `/chat/completions` is appended
            model: Model name sent with each request
            timeout: Per-attempt timeout in seconds
            max_retries: Extra attempts after the first one (capped at 2)
            backoff_seconds: Fixed wait between attempts
            transport: Optional httpx transport (tests use httpx.MockTransport)
        """
        self.api_key = api_key if api_key is not None else os.getenv("OPENAI_API_KEY", "")
        self.base_url = (base_url or os.getenv("OPENAI_BASE_URL", "https://api.openai.com/v1")).rstrip("/")
        self.model = model or os.getenv("OPENAI_MODEL", "gpt-4o-mini")
        self.timeout = timeout if timeout is not None else float(os.getenv("AI_TIMEOUT_SECONDS", "8"))
        self.max_retries = max_retries if max_retries is not None else int(os.getenv("AI_MAX_RETRIES", "1"))
        self.backoff_seconds = (
            backoff_seconds if backoff_seconds is not None
            else float(os.getenv("AI_RETRY_BACKOFF_SECONDS", "0.5"))
        )
        self.transport = transport

    @property
    def enabled(self) -> bool:
        return bool(self.api_key)

    def _post(self, payload: Dict[str, Any], timeout: float) -> Dict[str, Any]:
        headers = {
            "Authorization": f"Bearer {self.api_key}",
            "Content-Type": "application/json",
        }
        with httpx.Client(timeout=timeout, transport=self.transport) as client:
            response = client.post(f"{self.base_url}/chat/completions", json=payload, headers=headers)

        if response.status_code == 429 or response.status_code >= 500:
            raise RetryableStatusError(response.status_code)
        # Other 4xx are not worth retrying
        response.raise_for_status()
        return response.json()

    def complete(
        self,
        messages: List[Dict[str, str]],
        fallback_for: str,
        max_tokens: int = 500,
        temperature: float = 0.8,
        top_p: float = 0.9,
        frequency_penalty: float = 0.0,
        presence_penalty: float = 0.0,
        timeout: Optional[float] = None,
        max_retries: Optional[int] = None,
    ) -> ModelReply:
        """
        Request a chat completion.

        Args:
            messages: Chat messages (role/content dicts)
            fallback_for: Question used to pick the keyword fallback answer
            timeout: Overrides the gateway timeout for this call
            max_retries: Overrides the gateway retry count for this call

        Returns:
            ModelReply with provenance "model" on success or "fallback" otherwise
        """
        if not self.enabled:
            logger.warning("OPENAI_API_KEY is not configured, using fallback answer")
            return ModelReply(content=fallback_answer(fallback_for), provenance=PROVENANCE_FALLBACK)

        payload = {
            "model": self.model,
            "messages": messages,
            "max_tokens": max_tokens,
            "temperature": temperature,
            "top_p": top_p,
            "frequency_penalty": frequency_penalty,
            "presence_penalty": presence_penalty,
            "stream": False,
        }
        attempts = min(self.max_retries if max_retries is None else max_retries, MAX_RETRIES_CAP) + 1
        call_timeout = self.timeout if timeout is None else timeout

        retrying = Retrying(
            stop=stop_after_attempt(attempts),
            wait=wait_fixed(self.backoff_seconds),
            retry=retry_if_exception_type((httpx.TransportError, RetryableStatusError)),
            reraise=True,
        )

        try:
            data = retrying(self._post, payload, call_timeout)
            content = data["choices"][0]["message"]["content"]
            if not isinstance(content, str) or not content.strip():
                raise EmptyCompletionError("Completion had no content")
            total_tokens = (data.get("usage") or {}).get("total_tokens", 0)
        except (httpx.HTTPError, RetryableStatusError, EmptyCompletionError, KeyError, IndexError, TypeError, ValueError) as e:
            logger.error(f"Chat completion failed, using fallback answer: {e}")
            return ModelReply(content=fallback_answer(fallback_for), provenance=PROVENANCE_FALLBACK)

        logger.info(f"Chat completion succeeded ({total_tokens} tokens)")
        return ModelReply(content=content, provenance=PROVENANCE_MODEL, total_tokens=total_tokens)


_gateway_instance: Optional[LLMGateway] = None


def get_llm_gateway() -> LLMGateway:
    """Get or create the shared gateway instance"""
    global _gateway_instance
    if _gateway_instance is None:
        _gateway_instance = LLMGateway()
    return _gateway_instance
