"""
Error taxonomy for the essay workshop.

Stage-level errors abort an analysis run; item-level errors are caught
per workshop item by the caller API and never abort other items.
"""
from __future__ import annotations
from typing import Optional


class WorkshopError(Exception):
    """Base class for all workshop errors."""


class LLMError(WorkshopError):
    """Generative service call failed after all retries."""


class LLMTimeoutError(LLMError):
    """A generative call exceeded its timeout."""


class LLMUnavailableError(LLMError):
    """The generative service cannot be used (missing SDK or API key)."""


class ParseError(LLMError):
    """No usable JSON object could be extracted from a response."""

    def __init__(self, message: str, raw: str = ""):
        super().__init__(message)
        self.raw = raw


class StructuralError(WorkshopError):
    """A structural invariant was violated (e.g. dimension count != 12)."""


class LibraryError(WorkshopError):
    """A rule pack is missing or malformed."""


class StageFailed(WorkshopError):
    """A pipeline stage failed; identifies the stage and analyzer."""

    def __init__(self, stage: str, analyzer: Optional[str] = None, cause: Optional[BaseException] = None):
        self.stage = stage
        self.analyzer = analyzer
        self.cause = cause
        where = f"{stage}/{analyzer}" if analyzer else stage
        detail = f": {type(cause).__name__}: {cause}" if cause is not None else ""
        super().__init__(f"Stage {where} failed{detail}")
