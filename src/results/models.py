"""
Quiz result model and status rules.

Status transitions:
    CREATED (no pending manual items) -> COMPLETED
    CREATED (pending manual items)    -> PENDING_GRADING -> COMPLETED

COMPLETED is terminal: later score corrections never move a result back to
PENDING_GRADING.
"""
from __future__ import annotations

import time
from enum import Enum
from typing import Any, List, Optional

from pydantic import Field, field_validator

from src.grading.models import GradedAttempt
from src.quiz.models import WireModel


class ResultStatus(str, Enum):
    COMPLETED = "completed"
    PENDING_GRADING = "pending_grading"


def now_ms() -> int:
    return int(time.time() * 1000)


class QuizResult(WireModel):
    """A learner's graded quiz, denormalized so later edits cannot alter it."""

    id: Optional[str] = None
    user_id: str
    username: str = ""
    config_id: Optional[str] = None
    config_name: Optional[str] = None
    attempts: List[GradedAttempt] = Field(default_factory=list)
    score: float = 0.0
    max_score: float = 0.0
    passing_score: float = 0.0
    is_passed: bool = False
    total_questions: int = 0
    status: ResultStatus = ResultStatus.COMPLETED
    timestamp: int = Field(default_factory=now_ms)
    duration: Optional[int] = None

    @field_validator("attempts", mode="before")
    @classmethod
    def _none_is_empty(cls, value: Any) -> Any:
        return [] if value is None else value

    @field_validator("status", mode="before")
    @classmethod
    def _default_status(cls, value: Any) -> Any:
        return value or ResultStatus.COMPLETED

    @property
    def has_pending_manual_items(self) -> bool:
        return any(attempt.awaiting_manual_score for attempt in self.attempts)

    def find_attempt(self, question_id: str) -> GradedAttempt | None:
        return next((a for a in self.attempts if a.question_id == question_id), None)


def initial_status(attempts: list[GradedAttempt]) -> ResultStatus:
    """Status of a freshly graded result."""
    if any(attempt.awaiting_manual_score for attempt in attempts):
        return ResultStatus.PENDING_GRADING
    return ResultStatus.COMPLETED


def next_status(current: ResultStatus, attempts: list[GradedAttempt]) -> ResultStatus:
    """Status after an administrative score change."""
    if current == ResultStatus.COMPLETED:
        return ResultStatus.COMPLETED
    return initial_status(attempts)


def recompute_totals(result: QuizResult) -> QuizResult:
    """
    Recompute score, pass flag and status from the full attempts list.

    Always a full recomputation, never an increment, so totals cannot drift
    from the attempts they summarize.
    """
    score = sum(attempt.score for attempt in result.attempts)
    return result.model_copy(
        update={
            "score": score,
            "is_passed": score >= result.passing_score,
            "status": next_status(result.status, result.attempts),
        }
    )
