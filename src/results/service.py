"""
Result persistence with a best-effort audit side channel.

Every write follows commit-then-audit:
1. Validate, then perform one atomic write. Its outcome alone decides
   success; a PersistenceError propagates unchanged and is never retried.
2. After the commit, compute a diff and emit it. Any failure there is
   logged and reported as a failed AuditOutcome, never raised.

Concurrent corrections of the same result are last-write-wins: two operators
editing one result at the same time can overwrite each other's score. No
optimistic locking is applied.
"""

from __future__ import annotations

from datetime import datetime, timezone

from loguru import logger

from src.core.errors import AuditError, ValidationError
from src.quiz.interfaces import AuditChannel, ResultStore
from src.results.audit import build_audit_entry, compute_result_diff
from src.results.models import QuizResult, initial_status, recompute_totals
from src.results.outcomes import AuditOutcome, CommittedWrite, OperationOutcome


class ResultService:
    """Atomic result writes plus audit trail."""

    def __init__(self, store: ResultStore, audit_channel: AuditChannel | None = None):
        self.store = store
        self.audit_channel = audit_channel

    # ========================================
    # Writes
    # ========================================

    async def persist(self, result: QuizResult) -> CommittedWrite:
        """
        Store a new result.

        The status is derived from the attempts so a result with unscored
        manual items can never be stored as completed.

        Raises:
            PersistenceError: The insert failed
        """
        prepared = result.model_copy(update={"status": initial_status(result.attempts)})
        stored = await self.store.insert(prepared)
        logger.info(f"Stored quiz result {stored.id} for user {stored.user_id}")
        return await self._committed("created", None, stored)

    async def correct_single_score(
        self, result_id: str, question_id: str, new_score: float
    ) -> CommittedWrite:
        """
        Set the score of one attempt and recompute the result totals.

        Raises:
            ValidationError: Unknown result/question, or score outside [0, max_score]
            PersistenceError: The update failed
        """
        return await self.apply_scores(result_id, {question_id: new_score})

    async def apply_scores(self, result_id: str, scores: dict[str, float]) -> CommittedWrite:
        """
        Apply several administrator scores in one atomic update.

        Every score is validated before anything is written.

        Raises:
            ValidationError: Unknown result/question, or a score outside [0, max_score]
            PersistenceError: The update failed
        """
        before = await self.store.get(result_id)
        if before is None:
            raise ValidationError(f"Quiz result {result_id} not found", field="result_id")
        if not scores:
            raise ValidationError("No scores given", field="scores")

        attempts = [attempt.model_copy() for attempt in before.attempts]
        by_question = {attempt.question_id: attempt for attempt in attempts}

        for question_id, new_score in scores.items():
            attempt = by_question.get(question_id)
            if attempt is None:
                raise ValidationError(
                    f"Question {question_id} is not part of result {result_id}",
                    field="question_id",
                )
            if not 0 <= new_score <= attempt.max_score:
                raise ValidationError(
                    f"Score {new_score} for question {question_id} must be between "
                    f"0 and {attempt.max_score}",
                    field="score",
                )

        for question_id, new_score in scores.items():
            attempt = by_question[question_id]
            attempt.score = float(new_score)
            attempt.is_correct = attempt.score == attempt.max_score
            if attempt.manual_grading:
                attempt.manually_scored = True

        after = recompute_totals(before.model_copy(update={"attempts": attempts}))
        stored = await self.store.update(after)
        logger.info(
            f"Rescored {len(scores)} attempts of result {result_id}: "
            f"{before.score:g} -> {stored.score:g} ({stored.status.value})"
        )
        return await self._committed("rescored", before, stored)

    # ========================================
    # Audit
    # ========================================

    async def _committed(
        self, operation: str, before: QuizResult | None, after: QuizResult
    ) -> CommittedWrite:
        outcome = OperationOutcome(
            result=after,
            operation=operation,
            committed_at=datetime.now(timezone.utc),
        )
        return CommittedWrite(operation=outcome, audit=await self._audit(operation, before, after))

    async def _audit(
        self, operation: str, before: QuizResult | None, after: QuizResult
    ) -> AuditOutcome:
        """Best-effort audit of a committed write. Never raises."""
        if self.audit_channel is None:
            return AuditOutcome.skipped()

        changes: list[str] = []
        try:
            changes = compute_result_diff(before, after)
            await self.audit_channel.emit(build_audit_entry(operation, before, after, changes))
        except Exception as e:  # Intentionally broad - the write already committed
            error = AuditError(f"Audit of result {after.id} failed: {e!r}")
            logger.opt(exception=e).warning(f"{error} (the {operation} write itself succeeded)")
            return AuditOutcome(emitted=False, changes=changes, error=str(error))

        return AuditOutcome(emitted=True, changes=changes)
