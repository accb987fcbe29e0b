"""
Human-readable result diffs and the audit channel entries built from them.

Entries follow the system log shape (level, category, message, details,
user_id, created_at) so they can land in the ``system_logs`` table.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

from loguru import logger

from src.results.models import QuizResult, now_ms

AUDIT_CATEGORY = "USER_ACTION"

_RESULT_FIELDS = ("score", "max_score", "is_passed", "status", "total_questions")
_ATTEMPT_FIELDS = ("score", "is_correct", "manually_scored")


@dataclass
class AuditEntry:
    message: str
    details: dict[str, Any] = field(default_factory=dict)
    level: str = "INFO"
    category: str = AUDIT_CATEGORY
    user_id: str | None = None
    created_at: int = field(default_factory=now_ms)


def _fmt(value: Any) -> str:
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    if hasattr(value, "value"):
        return str(value.value)
    return str(value)


def compute_result_diff(before: QuizResult | None, after: QuizResult) -> list[str]:
    """
    List the changes between two versions of a result, one line per field.

    A ``None`` ``before`` describes a newly created result.
    """
    if before is None:
        return [
            f"created result {after.id} for user {after.user_id}",
            f"score: {_fmt(after.score)}/{_fmt(after.max_score)}",
            f"status: {_fmt(after.status)}",
            f"attempts: {len(after.attempts)}",
        ]

    changes: list[str] = []
    for name in _RESULT_FIELDS:
        old, new = getattr(before, name), getattr(after, name)
        if old != new:
            changes.append(f"{name}: {_fmt(old)} -> {_fmt(new)}")

    old_attempts = {a.question_id: a for a in before.attempts}
    for attempt in after.attempts:
        previous = old_attempts.get(attempt.question_id)
        if previous is None:
            changes.append(f"attempt {attempt.question_id}: added")
            continue
        for name in _ATTEMPT_FIELDS:
            old, new = getattr(previous, name), getattr(attempt, name)
            if old != new:
                changes.append(f"attempt {attempt.question_id} {name}: {_fmt(old)} -> {_fmt(new)}")

    return changes


def build_audit_entry(
    operation: str,
    before: QuizResult | None,
    after: QuizResult,
    changes: list[str],
) -> AuditEntry:
    return AuditEntry(
        message=f"Quiz result {operation}: {after.id}",
        details={
            "operation": operation,
            "result_id": after.id,
            "user_id": after.user_id,
            "config_id": after.config_id,
            "previous_score": before.score if before is not None else None,
            "score": after.score,
            "changes": changes,
        },
        user_id=after.user_id,
    )


class LoguruAuditChannel:
    """Audit channel that only writes to the application log."""

    async def emit(self, entry: AuditEntry) -> None:
        logger.bind(audit=True, **entry.details).log(entry.level, entry.message)
        for line in entry.details.get("changes", []):
            logger.bind(audit=True).log(entry.level, f"  {line}")
