"""
Core Module - Shared error types and read-retry helpers.

Components:
- errors: Exception hierarchy rooted at QuizEngineError
- retry: Bounded exponential backoff for idempotent repository reads
"""

from src.core.errors import (
    AuditError,
    PersistenceError,
    QuizEngineError,
    TransientRepositoryError,
    ValidationError,
)
from src.core.retry import retry_read

__all__ = [
    "QuizEngineError",
    "ValidationError",
    "TransientRepositoryError",
    "PersistenceError",
    "AuditError",
    "retry_read",
]
