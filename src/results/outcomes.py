"""
Outcome types for the commit-then-audit write pattern.

OperationOutcome is the hard outcome: it exists only if the write committed,
and it alone decides success for the caller. AuditOutcome is observational
and is never escalated.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime

from src.results.models import QuizResult


@dataclass(frozen=True)
class OperationOutcome:
    """A committed write."""

    result: QuizResult
    operation: str
    committed_at: datetime


@dataclass(frozen=True)
class AuditOutcome:
    """What happened to the audit entry of a committed write."""

    emitted: bool
    changes: list[str] = field(default_factory=list)
    error: str | None = None

    @classmethod
    def skipped(cls) -> AuditOutcome:
        return cls(emitted=False)


@dataclass(frozen=True)
class CommittedWrite:
    operation: OperationOutcome
    audit: AuditOutcome

    @property
    def result(self) -> QuizResult:
        return self.operation.result
