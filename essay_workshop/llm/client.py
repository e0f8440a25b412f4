from __future__ import annotations
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Dict, Optional, Protocol, TYPE_CHECKING
import asyncio
import logging
import time

from essay_workshop.config import LLMConfig
from essay_workshop.errors import LLMError, LLMTimeoutError, LLMUnavailableError, ParseError
from essay_workshop.llm.parsing import extract_json

if TYPE_CHECKING:
    import anthropic

logger = logging.getLogger(__name__)

SleepFn = Callable[[float], Awaitable[None]]


@dataclass(frozen=True)
class LLMRequest:
    """A single request to the generative service."""
    system: str
    prompt: str
    temperature: float = 0.3
    max_tokens: Optional[int] = None
    json_mode: bool = True
    label: str = ""


@dataclass
class LLMResponse:
    text: str
    input_tokens: int = 0
    output_tokens: int = 0
    data: Optional[Dict[str, Any]] = None

    @property
    def tokens_used(self) -> int:
        return self.input_tokens + self.output_tokens


class GenerativeClient(Protocol):
    async def complete(self, request: LLMRequest) -> LLMResponse: ...


def _is_retryable(exc: Exception) -> bool:
    if isinstance(exc, (LLMTimeoutError, ParseError, asyncio.TimeoutError)):
        return True
    if isinstance(exc, LLMError):
        return False
    error_str = str(exc).lower()
    return (
        "rate limit" in error_str or
        "rate_limit" in error_str or
        "429" in error_str or
        "too many requests" in error_str or
        "overloaded" in error_str or
        "timeout" in error_str or
        "timed out" in error_str
    )


class ClaudeClient:
    """Async wrapper around Anthropic's Claude API; one attempt per call, with a timeout."""

    def __init__(self, config: LLMConfig):
        self.config = config
        self._client: Optional["anthropic.AsyncAnthropic"] = None
        self._semaphore: Optional[asyncio.Semaphore] = None
        self._loop: Optional[asyncio.AbstractEventLoop] = None

    @property
    def client(self) -> "anthropic.AsyncAnthropic":
        """Lazy initialization of the Anthropic client."""
        if self._client is None:
            if not self.config.api_key:
                raise LLMUnavailableError("No API key configured (set ANTHROPIC_API_KEY)")
            try:
                import anthropic
            except ImportError:
                raise LLMUnavailableError(
                    "anthropic library not installed. "
                    "Run: pip install anthropic"
                )
            # Retries are handled by LLMSession
            self._client = anthropic.AsyncAnthropic(api_key=self.config.api_key, max_retries=0)
        return self._client

    def _bind_loop(self) -> asyncio.Semaphore:
        """Semaphore and HTTP client belong to one event loop; rebuild them when the loop changes."""
        loop = asyncio.get_running_loop()
        if loop is not self._loop:
            self._loop = loop
            self._semaphore = asyncio.Semaphore(self.config.max_concurrent)
            self._client = None
        return self._semaphore

    async def complete(self, request: LLMRequest) -> LLMResponse:
        system = request.system
        if request.json_mode:
            system += "\n\nRespond with a single valid JSON object and nothing else."
        async with self._bind_loop():
            try:
                message = await asyncio.wait_for(
                    self.client.messages.create(
                        model=self.config.model,
                        max_tokens=request.max_tokens or self.config.max_tokens,
                        temperature=request.temperature,
                        system=system,
                        messages=[{"role": "user", "content": request.prompt}],
                    ),
                    timeout=self.config.timeout_s,
                )
            except asyncio.TimeoutError:
                raise LLMTimeoutError(f"{request.label or 'request'} timed out after {self.config.timeout_s}s")

        result = ""
        for block in message.content:
            if hasattr(block, "text"):
                result += block.text

        usage = getattr(message, "usage", None)
        return LLMResponse(
            text=result.strip(),
            input_tokens=getattr(usage, "input_tokens", 0) or 0,
            output_tokens=getattr(usage, "output_tokens", 0) or 0,
        )


class LLMSession:
    """
    Per-run gateway to the generative service.

    Applies bounded retry with exponential backoff to timeouts, rate limits
    and unparseable JSON, and counts calls and tokens for one run.
    """

    def __init__(self, client: GenerativeClient, config: LLMConfig, sleep: SleepFn = asyncio.sleep):
        self.client = client
        self.config = config
        self._sleep = sleep
        self.calls = 0
        self.tokens_used = 0

    async def call(self, request: LLMRequest) -> LLMResponse:
        label = request.label or "request"
        last_error: Optional[Exception] = None
        for attempt in range(self.config.max_retries + 1):
            try:
                self.calls += 1
                response = await self.client.complete(request)
                self.tokens_used += response.tokens_used
                if request.json_mode:
                    response.data = extract_json(response.text)
                return response
            except Exception as e:
                last_error = e
                if not _is_retryable(e):
                    raise
                if attempt < self.config.max_retries:
                    backoff = self.config.backoff_base_s * 2 ** attempt
                    logger.warning(
                        f"{label}: {type(e).__name__}, retry {attempt+1}/{self.config.max_retries} in {backoff}s"
                    )
                    await self._sleep(backoff)

        logger.warning(f"{label} failed after {self.config.max_retries + 1} attempts: {last_error}")
        if isinstance(last_error, LLMError):
            raise last_error
        if isinstance(last_error, asyncio.TimeoutError):
            raise LLMTimeoutError(f"{label} timed out") from last_error
        raise LLMError(f"{label} failed: {last_error}") from last_error

    async def complete_json(
        self,
        system: str,
        prompt: str,
        *,
        temperature: float = 0.3,
        max_tokens: Optional[int] = None,
        label: str = "",
    ) -> LLMResponse:
        start = time.time()
        response = await self.call(LLMRequest(
            system=system,
            prompt=prompt,
            temperature=temperature,
            max_tokens=max_tokens,
            json_mode=True,
            label=label,
        ))
        logger.debug(f"{label or 'request'} completed in {time.time() - start:.1f}s ({response.tokens_used} tokens)")
        return response
