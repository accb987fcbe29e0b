"""
Grading engine: compares submitted answers with canonical answers.

Strategy per question type:
- MULTIPLE_CHOICE / TRUE_FALSE: raw string equality
- MULTIPLE_SELECT: order-independent comparison of JSON option arrays
- FILL_IN_THE_BLANK: positional comparison of normalized blanks
- SHORT_ANSWER (manual grading): always 0 until a human scores it
- SHORT_ANSWER (auto): normalized string equality

Grading never raises on malformed stored or submitted data; the affected
attempt is scored as incorrect.
"""

from __future__ import annotations

from loguru import logger

from src.grading.models import (
    QUESTION_UNAVAILABLE,
    AttemptSubmission,
    GradedAttempt,
    GradingReport,
)
from src.quiz.answers import (
    AnswerDecodeError,
    MultiAnswer,
    SingleAnswer,
    decode_canonical,
    decode_submission,
    normalize_text,
)
from src.quiz.fetcher import ChunkedQuestionFetcher
from src.quiz.models import Question, QuestionType


def is_answer_correct(question: Question, user_answer: str) -> bool:
    """
    Decide whether ``user_answer`` matches the canonical answer of ``question``.

    Manual-grading short answers are never correct at this stage.
    """
    if question.is_manually_graded:
        return False

    try:
        expected = decode_canonical(question.type, question.correct_answer)
        submitted = decode_submission(question.type, user_answer)
    except AnswerDecodeError as e:
        logger.debug(f"Question {question.id}: undecodable answer ({e})")
        return False

    if question.type in (QuestionType.MULTIPLE_CHOICE, QuestionType.TRUE_FALSE):
        return isinstance(submitted, SingleAnswer) and submitted.value == expected.value

    if question.type == QuestionType.MULTIPLE_SELECT:
        return sorted(submitted.values) == sorted(expected.values)

    if question.type == QuestionType.FILL_IN_THE_BLANK:
        if not isinstance(expected, MultiAnswer) or not isinstance(submitted, MultiAnswer):
            return False
        if len(expected.values) != len(submitted.values):
            return False
        return all(
            normalize_text(given) == normalize_text(wanted)
            for given, wanted in zip(submitted.values, expected.values)
        )

    return normalize_text(submitted.value) == normalize_text(expected.value)


def grade_attempt(submission: AttemptSubmission, question: Question | None) -> GradedAttempt:
    """Grade one submission and snapshot the question it was graded against."""
    if question is None:
        return GradedAttempt(
            question_id=submission.question_id,
            user_answer=submission.user_answer,
            is_correct=False,
            score=0.0,
            max_score=submission.max_score,
            correct_answer_text=QUESTION_UNAVAILABLE,
            explanation="",
            question_unavailable=True,
        )

    is_correct = is_answer_correct(question, submission.user_answer)
    return GradedAttempt(
        question_id=submission.question_id,
        user_answer=submission.user_answer,
        is_correct=is_correct,
        score=submission.max_score if is_correct else 0.0,
        max_score=submission.max_score,
        question_text=question.text,
        question_image_urls=list(question.image_urls),
        correct_answer_text=question.correct_answer,
        explanation=question.explanation,
        manual_grading=question.is_manually_graded,
    )


def grade_against(
    submissions: list[AttemptSubmission],
    questions_by_id: dict[str, Question],
) -> GradingReport:
    """
    Pure grading pass. Attempt order follows submission order.

    Holds no state between calls, so grading the same input twice gives the
    same result.
    """
    attempts = [
        grade_attempt(submission, questions_by_id.get(submission.question_id))
        for submission in submissions
    ]
    return GradingReport(attempts=attempts, score=sum(attempt.score for attempt in attempts))


class GradingEngine:
    """Loads canonical questions once per submission, then grades in memory."""

    def __init__(self, fetcher: ChunkedQuestionFetcher):
        self.fetcher = fetcher

    async def grade(self, submissions: list[AttemptSubmission]) -> GradingReport:
        """
        Grade a full submission.

        Deleted questions are still graded (a quiz may have been generated
        before the deletion). Questions that cannot be loaded are marked
        unavailable and score 0.
        """
        if not submissions:
            return GradingReport()

        question_ids = list(dict.fromkeys(s.question_id for s in submissions))
        report = await self.fetcher.fetch(question_ids, include_deleted=True)
        questions_by_id = report.questions

        missing = [qid for qid in question_ids if qid not in questions_by_id]
        if missing:
            logger.warning(f"Grading {len(missing)} attempts as unavailable: {missing}")

        graded = grade_against(submissions, questions_by_id)
        logger.info(
            f"Graded {len(graded.attempts)} attempts: {graded.score:g}/{graded.max_score:g}"
            + (" (manual grading pending)" if graded.has_pending_manual_items else "")
        )
        return graded
