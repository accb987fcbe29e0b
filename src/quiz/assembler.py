"""
Quiz Assembler: turns selected IDs into client-safe questions.

For every selected ID, in selection order:
- display score is the owning part's score (the stored score is ignored)
- the authoritative answer never leaves this module (ClientQuestion has no slot for it)
- fill-in-the-blank questions get a blank count
- the part name is attached for grouping
"""

from __future__ import annotations

from dataclasses import dataclass, field

from loguru import logger

from src.quiz.answers import blank_count
from src.quiz.fetcher import ChunkedQuestionFetcher
from src.quiz.models import ClientQuestion, Question, QuestionType, QuizPart, SelectedQuestion


@dataclass
class AssembledQuiz:
    """Client questions in selection order, plus the IDs that could not be loaded."""

    questions: list[ClientQuestion] = field(default_factory=list)
    missing_ids: list[str] = field(default_factory=list)

    @property
    def complete(self) -> bool:
        return not self.missing_ids


def to_client_question(question: Question, part: QuizPart) -> ClientQuestion:
    """Build the quiz-taking view of ``question`` as scored by ``part``."""
    return ClientQuestion(
        id=question.id,
        type=question.type,
        text=question.text,
        image_urls=list(question.image_urls),
        options=list(question.options) if question.options is not None else None,
        subject=question.subject,
        grade_level=question.grade_level,
        difficulty=question.difficulty,
        category=question.category,
        needs_grading=question.needs_grading,
        score=part.score,
        blank_count=(
            blank_count(question.correct_answer)
            if question.type == QuestionType.FILL_IN_THE_BLANK
            else None
        ),
        quiz_part_name=part.name,
    )


class QuizAssembler:
    """Batch-loads selected questions and strips them for delivery."""

    def __init__(self, fetcher: ChunkedQuestionFetcher):
        self.fetcher = fetcher

    async def assemble(self, selection: list[SelectedQuestion]) -> AssembledQuiz:
        """
        Load and convert the selection.

        Questions whose chunk failed or that disappeared since selection are
        omitted; the rest keep their order. Never raises for partial loads.
        """
        if not selection:
            return AssembledQuiz()

        report = await self.fetcher.fetch([item.question_id for item in selection])

        assembled = AssembledQuiz()
        for item in selection:
            question = report.questions.get(item.question_id)
            if question is None:
                assembled.missing_ids.append(item.question_id)
                continue
            assembled.questions.append(to_client_question(question, item.part))

        if assembled.missing_ids:
            logger.warning(
                f"Assembled {len(assembled.questions)}/{len(selection)} questions; "
                f"{len(assembled.missing_ids)} could not be loaded"
            )

        return assembled
