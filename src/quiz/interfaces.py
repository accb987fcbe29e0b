"""
Collaborator interfaces consumed by the engine.

Storage, authentication and access policy live outside this package; the
engine only talks to them through these protocols. SQL implementations are in
``src.db.repositories``.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Protocol

from src.quiz.models import Question, QuestionFilters, QuizConfig

if TYPE_CHECKING:
    from src.results.audit import AuditEntry
    from src.results.models import QuizResult


class QuestionRepository(Protocol):
    async def get_candidate_ids(self, filters: QuestionFilters) -> list[str]:
        """IDs of enabled, non-deleted questions matching ``filters``."""
        ...

    async def get_questions_by_ids(
        self, ids: list[str], include_deleted: bool = False
    ) -> list[Question]:
        """One backend call; order of the returned list is unspecified."""
        ...

    async def count_available(self, filters: QuestionFilters) -> int:
        ...


class QuizConfigStore(Protocol):
    async def get_config(self, config_id: str, include_deleted: bool = False) -> QuizConfig | None:
        ...


class ResultStore(Protocol):
    """Atomic result writes. Implementations must not retry."""

    async def insert(self, result: QuizResult) -> QuizResult:
        ...

    async def get(self, result_id: str) -> QuizResult | None:
        ...

    async def update(self, result: QuizResult) -> QuizResult:
        ...


class AuditChannel(Protocol):
    async def emit(self, entry: AuditEntry) -> None:
        ...
