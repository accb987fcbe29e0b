"""
Quiz models for the question bank, quiz configurations, results and audit log.

Implements:
- QuestionRecord: Question with its authoritative answer
- QuizConfigRecord: Ordered parts stored as JSON
- QuizResultRecord: Graded attempts (with snapshots) stored as JSON
- SystemLogRecord: Audit and monitoring entries

Column types are portable (JSON, string IDs) so the same models run on
PostgreSQL and SQLite.

Answer storage (questions.correct_answer):
    MULTIPLE_CHOICE / TRUE_FALSE / SHORT_ANSWER:
        "B"
    MULTIPLE_SELECT:
        '["A","C"]'
    FILL_IN_THE_BLANK:
        '["Paris","France"]'  or  "Paris;&&;France"  or  "Paris"
"""
from __future__ import annotations

from typing import Any
from uuid import uuid4

from sqlalchemy import JSON, BigInteger, Boolean, Float, Index, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from .base import Base


def _new_id() -> str:
    return str(uuid4())


class QuestionRecord(Base):
    """A question in the bank."""

    __tablename__ = "questions"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_new_id)
    type: Mapped[str] = mapped_column(String(32), nullable=False)
    text: Mapped[str] = mapped_column(Text, nullable=False, default="")
    image_urls: Mapped[list[str] | None] = mapped_column(JSON)
    options: Mapped[list[str] | None] = mapped_column(JSON)
    correct_answer: Mapped[str] = mapped_column(Text, nullable=False, default="")
    subject: Mapped[str] = mapped_column(String(64), nullable=False, default="")
    grade_level: Mapped[str | None] = mapped_column(String(16))
    difficulty: Mapped[str | None] = mapped_column(String(16))
    category: Mapped[str | None] = mapped_column(String(32))
    explanation: Mapped[str | None] = mapped_column(Text)
    is_disabled: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    is_deleted: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    needs_grading: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    score: Mapped[float | None] = mapped_column(Float)
    created_at: Mapped[int | None] = mapped_column(BigInteger)

    __table_args__ = (
        Index("idx_questions_selection", "is_disabled", "is_deleted", "subject", "type"),
    )

    def __repr__(self) -> str:
        return f"<QuestionRecord id={self.id} type={self.type}>"


class QuizConfigRecord(Base):
    """A quiz configuration. ``parts`` keeps the declared order."""

    __tablename__ = "quiz_configs"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_new_id)
    name: Mapped[str] = mapped_column(String(200), nullable=False)
    description: Mapped[str | None] = mapped_column(Text)
    passing_score: Mapped[float] = mapped_column(Float, nullable=False, default=0)
    parts: Mapped[list[dict[str, Any]]] = mapped_column(JSON, nullable=False, default=list)
    total_questions: Mapped[int | None] = mapped_column(Integer)
    created_at: Mapped[int | None] = mapped_column(BigInteger)
    quiz_mode: Mapped[str | None] = mapped_column(String(16), default="practice")
    is_published: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    is_deleted: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)

    def __repr__(self) -> str:
        return f"<QuizConfigRecord id={self.id} name={self.name!r}>"


class QuizResultRecord(Base):
    """A stored quiz result. Attempts are denormalized snapshots."""

    __tablename__ = "quiz_results"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_new_id)
    user_id: Mapped[str] = mapped_column(String(64), nullable=False, index=True)
    username: Mapped[str] = mapped_column(String(200), nullable=False, default="")
    timestamp: Mapped[int] = mapped_column(BigInteger, nullable=False)
    score: Mapped[float] = mapped_column(Float, nullable=False, default=0)
    max_score: Mapped[float] = mapped_column(Float, nullable=False, default=0)
    passing_score: Mapped[float] = mapped_column(Float, nullable=False, default=0)
    is_passed: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    total_questions: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    attempts: Mapped[list[dict[str, Any]]] = mapped_column(JSON, nullable=False, default=list)
    config_id: Mapped[str | None] = mapped_column(String(36))
    config_name: Mapped[str | None] = mapped_column(String(200))
    status: Mapped[str] = mapped_column(String(32), nullable=False, default="completed")
    duration: Mapped[int | None] = mapped_column(Integer)

    __table_args__ = (
        Index("idx_quiz_results_status", "status", "timestamp"),
    )

    def __repr__(self) -> str:
        return f"<QuizResultRecord id={self.id} user={self.user_id} score={self.score}>"


class SystemLogRecord(Base):
    """Audit and monitoring log entry."""

    __tablename__ = "system_logs"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_new_id)
    level: Mapped[str] = mapped_column(String(16), nullable=False)
    category: Mapped[str] = mapped_column(String(32), nullable=False)
    message: Mapped[str] = mapped_column(Text, nullable=False)
    details: Mapped[dict[str, Any] | None] = mapped_column(JSON)
    user_id: Mapped[str | None] = mapped_column(String(64))
    created_at: Mapped[int] = mapped_column(BigInteger, nullable=False)
    is_resolved: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)

    def __repr__(self) -> str:
        return f"<SystemLogRecord {self.level} {self.category}: {self.message[:40]!r}>"
