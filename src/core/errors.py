"""
Exception hierarchy for quiz assembly, grading and result persistence.

- ValidationError: caller-correctable input problems, raised before any write
- TransientRepositoryError: read failures worth retrying (timeouts, rate limits)
- PersistenceError: a result write failed; surfaced to the caller unchanged
- AuditError: post-commit diff/emit failure; always caught and logged
"""

from __future__ import annotations


class QuizEngineError(Exception):
    """Base class for all engine errors."""


class ValidationError(QuizEngineError):
    """Input rejected before any state change."""

    def __init__(self, message: str, field: str | None = None):
        super().__init__(message)
        self.field = field


class TransientRepositoryError(QuizEngineError):
    """A read failed in a way that may succeed on retry."""


class PersistenceError(QuizEngineError):
    """A result write failed. Never retried automatically."""


class AuditError(QuizEngineError):
    """Computing or emitting an audit entry failed after a successful commit."""
