"""
Grading input/output models.
"""
from __future__ import annotations

from typing import Any, List, Optional

from pydantic import Field, field_validator, model_validator

from src.quiz.models import WireModel

QUESTION_UNAVAILABLE = "Question unavailable"


class AttemptSubmission(WireModel):
    """One submitted answer. ``max_score`` is the part score shown to the taker."""

    question_id: str
    user_answer: str = ""
    max_score: float = Field(default=0.0, ge=0.0)

    @field_validator("user_answer", mode="before")
    @classmethod
    def _none_is_blank(cls, value: Any) -> Any:
        return "" if value is None else value


class GradedAttempt(WireModel):
    """
    A graded answer with snapshots of the question taken at grading time.

    The snapshots keep historical review stable when the question is later
    edited or deleted.
    """

    question_id: str
    user_answer: str = ""
    is_correct: bool = False
    score: float = 0.0
    max_score: float = 0.0
    question_text: Optional[str] = None
    question_image_urls: List[str] = Field(default_factory=list)
    correct_answer_text: Optional[str] = None
    explanation: Optional[str] = None
    manual_grading: bool = False
    manually_scored: bool = False
    question_unavailable: bool = False

    @field_validator("score", "max_score", mode="before")
    @classmethod
    def _none_is_zero(cls, value: Any) -> Any:
        return 0.0 if value is None else value

    @field_validator("question_image_urls", mode="before")
    @classmethod
    def _none_is_empty(cls, value: Any) -> Any:
        return [] if value is None else value

    @model_validator(mode="after")
    def _score_within_bounds(self) -> GradedAttempt:
        if not 0 <= self.score <= self.max_score:
            raise ValueError(f"score {self.score} outside [0, {self.max_score}]")
        return self

    @property
    def awaiting_manual_score(self) -> bool:
        return self.manual_grading and not self.manually_scored


class GradingReport(WireModel):
    attempts: List[GradedAttempt] = Field(default_factory=list)
    score: float = 0.0

    @property
    def max_score(self) -> float:
        return sum(attempt.max_score for attempt in self.attempts)

    @property
    def has_pending_manual_items(self) -> bool:
        return any(attempt.awaiting_manual_score for attempt in self.attempts)
