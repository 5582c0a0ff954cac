"""Engine error taxonomy.

Every failure a caller must react to differently has its own class; the HTTP
layer maps them to status codes in ``feedback_engine.api.errors``.
"""
from __future__ import annotations

from typing import Any


class EngineError(Exception):
    """Base class for all domain errors raised by the engine."""

    code = "ENGINE_ERROR"

    def __init__(self, message: str, **details: Any) -> None:
        super().__init__(message)
        self.message = message
        self.details = details


class NotFound(EngineError):
    code = "NOT_FOUND"


class InvalidState(EngineError):
    """A response lifecycle operation was requested from the wrong status."""

    code = "INVALID_STATE"


class InvalidTransition(EngineError):
    """A feedback workflow edge that does not exist was requested."""

    code = "INVALID_TRANSITION"


class ValidationError(EngineError):
    code = "VALIDATION_ERROR"


class Conflict(EngineError):
    """A conditional write found the row already changed by someone else."""

    code = "CONFLICT"


class GenerationFailed(EngineError):
    """The drafting service could not produce a response; nothing was written."""

    code = "GENERATION_FAILED"


class RegenerationFailed(EngineError):
    """The rejection was recorded but no replacement draft exists."""

    code = "REGENERATION_FAILED"

    def __init__(self, message: str, *, rejected: Any, **details: Any) -> None:
        super().__init__(message, **details)
        self.rejected = rejected
