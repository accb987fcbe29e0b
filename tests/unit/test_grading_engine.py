"""
Unit tests for the grading engine.

Tests per-type comparison, normalization, manual grading, snapshots and
unavailable questions WITHOUT a database.
"""

import pytest

from src.grading.engine import GradingEngine, grade_against, grade_attempt, is_answer_correct
from src.grading.models import QUESTION_UNAVAILABLE, AttemptSubmission
from src.quiz.fetcher import ChunkedQuestionFetcher
from src.quiz.models import QuestionType


@pytest.fixture
def bank(question_bank):
    return {q.id: q for q in question_bank}


class TestIsAnswerCorrect:
    """Tests for per-type answer comparison."""

    def test_multiple_choice_exact(self, bank):
        assert is_answer_correct(bank["q-mc"], "B")
        assert not is_answer_correct(bank["q-mc"], "b")
        assert not is_answer_correct(bank["q-mc"], "")

    def test_true_false_exact(self, bank):
        assert is_answer_correct(bank["q-tf"], "True")
        assert not is_answer_correct(bank["q-tf"], "False")

    def test_multiple_select_order_independent(self, bank):
        assert is_answer_correct(bank["q-ms"], '["C","A"]')
        assert is_answer_correct(bank["q-ms"], '["A","C"]')

    def test_multiple_select_requires_exact_set(self, bank):
        assert not is_answer_correct(bank["q-ms"], '["A"]')
        assert not is_answer_correct(bank["q-ms"], '["A","B","C"]')

    def test_multiple_select_malformed_submission_is_incorrect(self, bank):
        assert not is_answer_correct(bank["q-ms"], "A,C")

    def test_multiple_select_malformed_stored_answer_is_incorrect(self, make_question):
        question = make_question("bad", QuestionType.MULTIPLE_SELECT, correct_answer="A|C")
        assert not is_answer_correct(question, '["A","C"]')

    def test_short_answer_normalized(self, bank):
        assert is_answer_correct(bank["q-sa"], " paris ")
        assert is_answer_correct(bank["q-sa"], "PARIS")
        assert not is_answer_correct(bank["q-sa"], "Lyon")

    def test_fill_blank_cjk_spacing(self, bank):
        assert is_answer_correct(bank["q-fb"], '["北京 市","上海"]')

    def test_fill_blank_is_positional(self, bank):
        assert not is_answer_correct(bank["q-fb"], '["上海","北京市"]')

    def test_fill_blank_count_must_match(self, bank):
        assert not is_answer_correct(bank["q-fb"], '["北京市"]')
        assert not is_answer_correct(bank["q-fb"], "")

    def test_fill_blank_legacy_delimiter(self, bank):
        assert is_answer_correct(bank["q-fb-legacy"], '["paris"," FRANCE "]')

    def test_fill_blank_single_bare_value(self, make_question):
        question = make_question("one", QuestionType.FILL_IN_THE_BLANK, correct_answer="Paris")

        assert is_answer_correct(question, "paris")
        assert is_answer_correct(question, '["Paris"]')

    def test_fill_blank_ignores_zero_width_space(self, make_question):
        question = make_question("zw", QuestionType.FILL_IN_THE_BLANK, correct_answer='["Paris"]')
        assert is_answer_correct(question, '["Paris\u200b"]')

    def test_fill_blank_cjk_punctuation_spacing(self, make_question):
        question = make_question("punct", QuestionType.FILL_IN_THE_BLANK, correct_answer='["ab。"]')
        assert is_answer_correct(question, '["a b。"]')

    def test_fill_blank_superscript_is_not_a_digit(self, make_question):
        question = make_question("sup", QuestionType.FILL_IN_THE_BLANK, correct_answer='["x²"]')
        assert not is_answer_correct(question, '["x2"]')

    def test_manual_short_answer_never_correct(self, bank):
        assert not is_answer_correct(bank["q-essay"], "Erosion on the outer bank")


class TestGradeAttempt:
    """Tests for single-attempt grading and snapshots."""

    def test_correct_attempt_gets_full_score(self, bank):
        graded = grade_attempt(AttemptSubmission(question_id="q-mc", user_answer="B", max_score=2), bank["q-mc"])

        assert graded.is_correct is True
        assert graded.score == 2
        assert graded.max_score == 2

    def test_incorrect_attempt_scores_zero(self, bank):
        graded = grade_attempt(AttemptSubmission(question_id="q-mc", user_answer="A", max_score=2), bank["q-mc"])

        assert graded.is_correct is False
        assert graded.score == 0

    def test_snapshots_question_content(self, bank):
        graded = grade_attempt(AttemptSubmission(question_id="q-mc", user_answer="A", max_score=2), bank["q-mc"])

        assert graded.question_text == "Capital of France?"
        assert graded.correct_answer_text == "B"
        assert graded.explanation == "Paris has been the capital since 987."

    def test_manual_item_is_flagged(self, bank):
        graded = grade_attempt(
            AttemptSubmission(question_id="q-essay", user_answer="Because of erosion", max_score=10),
            bank["q-essay"],
        )

        assert graded.manual_grading is True
        assert graded.awaiting_manual_score is True
        assert graded.score == 0
        assert graded.is_correct is False

    def test_unavailable_question(self):
        graded = grade_attempt(AttemptSubmission(question_id="gone", user_answer="B", max_score=3), None)

        assert graded.question_unavailable is True
        assert graded.correct_answer_text == QUESTION_UNAVAILABLE
        assert graded.explanation == ""
        assert graded.score == 0
        assert graded.max_score == 3


class TestGradeAgainst:
    def test_preserves_submission_order(self, bank):
        submissions = [
            AttemptSubmission(question_id="q-tf", user_answer="True", max_score=1),
            AttemptSubmission(question_id="q-mc", user_answer="B", max_score=2),
            AttemptSubmission(question_id="q-ms", user_answer='["A"]', max_score=3),
        ]

        report = grade_against(submissions, bank)

        assert [a.question_id for a in report.attempts] == ["q-tf", "q-mc", "q-ms"]
        assert report.score == 3
        assert report.max_score == 6

    def test_grading_is_idempotent(self, bank):
        submissions = [
            AttemptSubmission(question_id=qid, user_answer=answer, max_score=2)
            for qid, answer in [("q-mc", "B"), ("q-fb", '["北京市","上海"]'), ("q-essay", "text")]
        ]

        assert grade_against(submissions, bank) == grade_against(submissions, bank)

    def test_pending_manual_items(self, bank):
        report = grade_against(
            [AttemptSubmission(question_id="q-essay", user_answer="text", max_score=5)], bank
        )

        assert report.has_pending_manual_items


@pytest.mark.asyncio
class TestGradingEngine:
    """Tests for the engine's fetch-then-grade flow."""

    async def test_grades_deleted_questions(self, repository):
        engine = GradingEngine(ChunkedQuestionFetcher(repository))

        report = await engine.grade(
            [AttemptSubmission(question_id="q-deleted", user_answer="False", max_score=1)]
        )

        assert report.attempts[0].is_correct is True
        assert repository.fetch_calls == [(["q-deleted"], True)]

    async def test_unknown_question_is_unavailable(self, repository):
        engine = GradingEngine(ChunkedQuestionFetcher(repository))

        report = await engine.grade(
            [
                AttemptSubmission(question_id="q-mc", user_answer="B", max_score=2),
                AttemptSubmission(question_id="nope", user_answer="x", max_score=2),
            ]
        )

        assert report.score == 2
        assert report.attempts[1].question_unavailable is True

    async def test_failed_fetch_degrades_to_unavailable(self, repository, sleeper):
        repository.broken_ids = {"q-mc"}
        engine = GradingEngine(ChunkedQuestionFetcher(repository, retry_attempts=2, sleep=sleeper))

        report = await engine.grade(
            [AttemptSubmission(question_id="q-mc", user_answer="B", max_score=2)]
        )

        assert report.attempts[0].question_unavailable is True
        assert report.score == 0

    async def test_empty_submission(self, repository):
        report = await GradingEngine(ChunkedQuestionFetcher(repository)).grade([])

        assert report.attempts == []
        assert report.score == 0
