"""
SQLAlchemy implementations of the engine's collaborator interfaces.

Read failures that are worth retrying (operational errors, pool timeouts,
dropped connections) surface as TransientRepositoryError. Write failures
surface as PersistenceError and are never retried here.
"""
from __future__ import annotations

from typing import Any

from loguru import logger
from pydantic import ValidationError as PydanticValidationError
from sqlalchemy import func, select
from sqlalchemy.exc import DBAPIError, OperationalError, SQLAlchemyError
from sqlalchemy.exc import TimeoutError as PoolTimeoutError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from src.core.errors import PersistenceError, TransientRepositoryError, ValidationError
from src.db.models import QuestionRecord, QuizConfigRecord, QuizResultRecord, SystemLogRecord
from src.quiz.models import Question, QuestionFilters, QuizConfig
from src.results.audit import AuditEntry
from src.results.models import QuizResult


def _is_transient(error: SQLAlchemyError) -> bool:
    if isinstance(error, (OperationalError, PoolTimeoutError)):
        return True
    return isinstance(error, DBAPIError) and error.connection_invalidated


def _filtered(query, filters: QuestionFilters):
    """Apply part filters; an empty list leaves that column unrestricted."""
    if filters.subjects:
        query = query.where(QuestionRecord.subject.in_(filters.subjects))
    if filters.difficulties:
        query = query.where(QuestionRecord.difficulty.in_([d.value for d in filters.difficulties]))
    if filters.grade_levels:
        query = query.where(QuestionRecord.grade_level.in_([g.value for g in filters.grade_levels]))
    if filters.question_types:
        query = query.where(QuestionRecord.type.in_([t.value for t in filters.question_types]))
    if filters.categories:
        query = query.where(QuestionRecord.category.in_([c.value for c in filters.categories]))
    return query


def _selectable(query):
    return query.where(
        QuestionRecord.is_disabled.is_(False),
        QuestionRecord.is_deleted.is_(False),
    )


def question_from_record(record: QuestionRecord) -> Question:
    return Question.model_validate(
        {
            "id": record.id,
            "type": record.type,
            "text": record.text,
            "image_urls": record.image_urls,
            "options": record.options,
            "correct_answer": record.correct_answer,
            "subject": record.subject,
            "grade_level": record.grade_level,
            "difficulty": record.difficulty,
            "category": record.category,
            "explanation": record.explanation,
            "is_disabled": record.is_disabled,
            "is_deleted": record.is_deleted,
            "needs_grading": record.needs_grading,
            "score": record.score,
            "created_at": record.created_at,
        }
    )


def config_from_record(record: QuizConfigRecord) -> QuizConfig:
    """
    Raises:
        ValidationError: The stored parts or filters are malformed
    """
    try:
        return QuizConfig.model_validate(
            {
                "id": record.id,
                "name": record.name,
                "description": record.description,
                "parts": record.parts,
                "passing_score": record.passing_score,
                "total_questions": record.total_questions,
                "created_at": record.created_at,
                "quiz_mode": record.quiz_mode,
                "is_published": record.is_published,
                "is_deleted": record.is_deleted,
            }
        )
    except PydanticValidationError as e:
        raise ValidationError(f"Quiz config {record.id} is malformed: {e}", field="parts") from e


def result_to_values(result: QuizResult) -> dict[str, Any]:
    return {
        "user_id": result.user_id,
        "username": result.username,
        "timestamp": result.timestamp,
        "score": result.score,
        "max_score": result.max_score,
        "passing_score": result.passing_score,
        "is_passed": result.is_passed,
        "total_questions": result.total_questions,
        "attempts": [attempt.to_wire() for attempt in result.attempts],
        "config_id": result.config_id,
        "config_name": result.config_name,
        "status": result.status.value,
        "duration": result.duration,
    }


def result_from_record(record: QuizResultRecord) -> QuizResult:
    """
    Load a stored result.

    Attempts written before the ``manualGrading`` flag existed load with
    ``manual_grading=False``. Status rules cannot see unscored manual items
    on such results, so correcting any attempt of a pending legacy result
    moves it to COMPLETED.
    """
    return QuizResult.model_validate(
        {
            "id": record.id,
            "user_id": record.user_id,
            "username": record.username,
            "timestamp": record.timestamp,
            "score": record.score,
            "max_score": record.max_score,
            "passing_score": record.passing_score,
            "is_passed": record.is_passed,
            "total_questions": record.total_questions,
            "attempts": record.attempts,
            "config_id": record.config_id,
            "config_name": record.config_name,
            "status": record.status,
            "duration": record.duration,
        }
    )


class SqlQuestionRepository:
    """Question bank reads."""

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]):
        self.session_factory = session_factory

    async def get_candidate_ids(self, filters: QuestionFilters) -> list[str]:
        query = _filtered(_selectable(select(QuestionRecord.id)), filters).order_by(
            QuestionRecord.created_at, QuestionRecord.id
        )
        try:
            async with self.session_factory() as session:
                result = await session.execute(query)
                return list(result.scalars().all())
        except SQLAlchemyError as e:
            if _is_transient(e):
                raise TransientRepositoryError(f"Candidate query failed: {e}") from e
            raise

    async def get_questions_by_ids(
        self, ids: list[str], include_deleted: bool = False
    ) -> list[Question]:
        if not ids:
            return []
        query = select(QuestionRecord).where(QuestionRecord.id.in_(ids))
        if not include_deleted:
            query = query.where(QuestionRecord.is_deleted.is_(False))
        try:
            async with self.session_factory() as session:
                result = await session.execute(query)
                records = list(result.scalars().all())
        except SQLAlchemyError as e:
            if _is_transient(e):
                raise TransientRepositoryError(f"Question fetch failed: {e}") from e
            raise

        questions = []
        for record in records:
            try:
                questions.append(question_from_record(record))
            except PydanticValidationError as e:
                logger.warning(f"Skipping malformed question {record.id}: {e}")
        return questions

    async def count_available(self, filters: QuestionFilters) -> int:
        query = _filtered(_selectable(select(func.count(QuestionRecord.id))), filters)
        try:
            async with self.session_factory() as session:
                result = await session.execute(query)
                return int(result.scalar_one())
        except SQLAlchemyError as e:
            if _is_transient(e):
                raise TransientRepositoryError(f"Count query failed: {e}") from e
            raise


class SqlQuizConfigStore:
    def __init__(self, session_factory: async_sessionmaker[AsyncSession]):
        self.session_factory = session_factory

    async def get_config(self, config_id: str, include_deleted: bool = False) -> QuizConfig | None:
        try:
            async with self.session_factory() as session:
                record = await session.get(QuizConfigRecord, config_id)
        except SQLAlchemyError as e:
            if _is_transient(e):
                raise TransientRepositoryError(f"Config fetch failed: {e}") from e
            raise

        if record is None or (record.is_deleted and not include_deleted):
            return None
        return config_from_record(record)


class SqlResultStore:
    """Each write is a single transaction. Nothing here retries."""

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]):
        self.session_factory = session_factory

    async def insert(self, result: QuizResult) -> QuizResult:
        values = result_to_values(result)
        if result.id:
            values["id"] = result.id
        try:
            async with self.session_factory() as session:
                async with session.begin():
                    record = QuizResultRecord(**values)
                    session.add(record)
                    await session.flush()
                    stored = result_from_record(record)
        except SQLAlchemyError as e:
            raise PersistenceError(f"Saving quiz result for user {result.user_id} failed: {e}") from e
        return stored

    async def get(self, result_id: str) -> QuizResult | None:
        try:
            async with self.session_factory() as session:
                record = await session.get(QuizResultRecord, result_id)
                return result_from_record(record) if record is not None else None
        except SQLAlchemyError as e:
            if _is_transient(e):
                raise TransientRepositoryError(f"Result fetch failed: {e}") from e
            raise

    async def update(self, result: QuizResult) -> QuizResult:
        if not result.id:
            raise PersistenceError("Cannot update a result without an id")
        try:
            async with self.session_factory() as session:
                async with session.begin():
                    record = await session.get(QuizResultRecord, result.id)
                    if record is None:
                        raise PersistenceError(f"Quiz result {result.id} no longer exists")
                    for key, value in result_to_values(result).items():
                        setattr(record, key, value)
                    await session.flush()
                    stored = result_from_record(record)
        except SQLAlchemyError as e:
            raise PersistenceError(f"Updating quiz result {result.id} failed: {e}") from e
        return stored


class SqlAuditChannel:
    """Writes audit entries to the ``system_logs`` table."""

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]):
        self.session_factory = session_factory

    async def emit(self, entry: AuditEntry) -> None:
        async with self.session_factory() as session:
            async with session.begin():
                session.add(
                    SystemLogRecord(
                        level=entry.level,
                        category=entry.category,
                        message=entry.message,
                        details=entry.details,
                        user_id=entry.user_id,
                        created_at=entry.created_at,
                    )
                )
