"""Generative service client, prompts and response parsing."""
from essay_workshop.llm.client import (
    ClaudeClient,
    GenerativeClient,
    LLMRequest,
    LLMResponse,
    LLMSession,
)
from essay_workshop.llm.parsing import extract_json, normalize

__all__ = [
    "ClaudeClient",
    "GenerativeClient",
    "LLMRequest",
    "LLMResponse",
    "LLMSession",
    "extract_json",
    "normalize",
]
