"""
Unit tests for QuizService: the exposed generate/grade/persist/correct flow.
"""

import pytest

from src.core.errors import PersistenceError, TransientRepositoryError, ValidationError
from src.grading.models import AttemptSubmission
from src.quiz.models import QuizConfig
from src.quiz.service import UNKNOWN_CONFIG_NAME
from src.results.models import ResultStatus


def _answers(quiz, answers):
    return [
        AttemptSubmission(question_id=q.id, user_answer=answers.get(q.id, ""), max_score=q.score)
        for q in quiz.questions
    ]


CORRECT = {
    "q-mc": "B",
    "q-ms": '["C","A"]',
    "q-tf": "True",
    "q-fb": '["北京 市","上海"]',
    "q-fb-legacy": '["paris","france"]',
}


@pytest.mark.asyncio
class TestGenerateQuiz:
    """Tests for quiz generation."""

    async def test_generates_full_quiz_in_part_order(self, quiz_service):
        quiz = await quiz_service.generate_quiz("cfg-1")

        assert quiz.config_name == "Geography Basics"
        assert quiz.passing_score == 6
        assert [q.id for q in quiz.questions] == ["q-mc", "q-ms", "q-tf", "q-fb", "q-fb-legacy"]
        assert [q.quiz_part_name for q in quiz.questions] == ["Part A"] * 3 + ["Part B"] * 2
        assert quiz.max_score == 12
        assert quiz.complete

    async def test_no_answers_leave_the_service(self, quiz_service):
        quiz = await quiz_service.generate_quiz("cfg-1")

        for question in quiz.questions:
            wire = question.to_wire()
            assert wire["correctAnswer"] is None
            assert "explanation" not in wire

    async def test_missing_config_gives_empty_quiz(self, quiz_service):
        quiz = await quiz_service.generate_quiz("nope")

        assert quiz.questions == []
        assert quiz.config_name == UNKNOWN_CONFIG_NAME
        assert quiz.passing_score == 0

    async def test_deleted_config_is_invisible(self, quiz_service):
        quiz = await quiz_service.generate_quiz("cfg-deleted")

        assert quiz.config_name == UNKNOWN_CONFIG_NAME

    async def test_short_supply_is_reported(self, quiz_service, config_store):
        config_store.configs["big"] = QuizConfig.model_validate(
            {
                "id": "big",
                "name": "Too big",
                "parts": [{"id": "p", "name": "All TF", "types": ["TRUE_FALSE"], "count": 4, "score": 1}],
            }
        )

        quiz = await quiz_service.generate_quiz("big")

        assert [q.id for q in quiz.questions] == ["q-tf"]
        assert quiz.requested_total == 4
        assert not quiz.complete

    async def test_unreadable_config_raises_after_retries(self, quiz_service, sleeper):
        class BrokenStore:
            async def get_config(self, config_id, include_deleted=False):
                raise TransientRepositoryError("down")

        quiz_service.configs = BrokenStore()

        with pytest.raises(TransientRepositoryError):
            await quiz_service.generate_quiz("cfg-1")

        assert len(sleeper.delays) == 2


@pytest.mark.asyncio
class TestSubmitAndCorrect:
    """Tests for the submission and correction flow."""

    async def test_perfect_submission(self, quiz_service, result_store, audit_channel):
        quiz = await quiz_service.generate_quiz("cfg-1")

        result = await quiz_service.submit_quiz("cfg-1", "u-1", _answers(quiz, CORRECT), duration=120)

        assert result.id in result_store.results
        assert result.score == 12
        assert result.max_score == 12
        assert result.is_passed is True
        assert result.status == ResultStatus.COMPLETED
        assert result.total_questions == 5
        assert result.duration == 120
        assert result.config_name == "Geography Basics"
        assert [a.question_id for a in result.attempts] == [q.id for q in quiz.questions]
        assert len(audit_channel.entries) == 1

    async def test_failed_submission(self, quiz_service):
        quiz = await quiz_service.generate_quiz("cfg-1")

        result = await quiz_service.submit_quiz("cfg-1", "u-1", _answers(quiz, {"q-mc": "B"}))

        assert result.score == 2
        assert result.is_passed is False

    async def test_submission_against_deleted_config_keeps_name(self, quiz_service):
        result = await quiz_service.submit_quiz(
            "cfg-deleted", "u-1", [AttemptSubmission(question_id="q-mc", user_answer="B", max_score=2)]
        )

        assert result.config_name == "Geography Basics"

    async def test_manual_item_then_grading(self, quiz_service, result_store):
        submissions = [
            AttemptSubmission(question_id="q-mc", user_answer="B", max_score=2),
            AttemptSubmission(question_id="q-essay", user_answer="Water erodes the outside", max_score=5),
        ]

        result = await quiz_service.submit_quiz("cfg-1", "u-2", submissions)
        assert result.status == ResultStatus.PENDING_GRADING
        assert result.is_passed is False

        graded = await quiz_service.grade_pending_items(result.id, {"q-essay": 4})

        assert graded.score == 6
        assert graded.is_passed is True
        assert graded.status == ResultStatus.COMPLETED

    async def test_correct_single_score(self, quiz_service):
        result = await quiz_service.submit_quiz(
            "cfg-1", "u-1", [AttemptSubmission(question_id="q-sa", user_answer="Lyon", max_score=4)]
        )

        corrected = await quiz_service.correct_single_score(result.id, "q-sa", 4)

        assert corrected.score == 4
        assert corrected.attempts[0].is_correct is True

    async def test_invalid_correction(self, quiz_service):
        result = await quiz_service.submit_quiz(
            "cfg-1", "u-1", [AttemptSubmission(question_id="q-sa", user_answer="Lyon", max_score=4)]
        )

        with pytest.raises(ValidationError):
            await quiz_service.correct_single_score(result.id, "q-sa", 5)

    async def test_audit_failure_does_not_fail_submission(
        self, quiz_service, result_store, failing_audit_channel
    ):
        quiz_service.results.audit_channel = failing_audit_channel

        result = await quiz_service.persist_result(
            quiz_service.build_result(
                await quiz_service.grade_submission(
                    [AttemptSubmission(question_id="q-mc", user_answer="B", max_score=2)]
                ),
                "u-3",
            )
        )

        assert result.id in result_store.results

    async def test_persistence_failure_propagates(self, quiz_service, result_store):
        result_store.fail_writes = True

        with pytest.raises(PersistenceError):
            await quiz_service.submit_quiz(
                "cfg-1", "u-1", [AttemptSubmission(question_id="q-mc", user_answer="B", max_score=2)]
            )


@pytest.mark.asyncio
class TestCheckCoverage:
    """Tests for the coverage report."""

    async def test_sufficient_config(self, quiz_service):
        report = await quiz_service.check_coverage("cfg-1")

        assert [(p.part_name, p.requested, p.available) for p in report.parts] == [
            ("Part A", 3, 3),
            ("Part B", 2, 2),
        ]
        assert report.coverage_met
        assert report.required_questions == 5

    async def test_short_part_gets_recommendation(self, quiz_service, config_store):
        config_store.configs["big"] = QuizConfig.model_validate(
            {
                "id": "big",
                "name": "Too big",
                "parts": [{"id": "p", "name": "All TF", "types": ["TRUE_FALSE"], "count": 4, "score": 1}],
            }
        )

        report = await quiz_service.check_coverage("big")

        assert not report.coverage_met
        assert "Add 3 more questions matching part 'All TF'" in report.recommendations

    async def test_identical_filters_flagged(self, quiz_service, config_store):
        part = {"types": ["TRUE_FALSE"], "count": 1, "score": 1}
        config_store.configs["dup"] = QuizConfig.model_validate(
            {
                "id": "dup",
                "name": "Duplicated",
                "parts": [{"id": "a", "name": "A", **part}, {"id": "b", "name": "B", **part}],
            }
        )

        report = await quiz_service.check_coverage("dup")

        assert any("identical filters" in line for line in report.recommendations)

    async def test_missing_config_rejected(self, quiz_service):
        with pytest.raises(ValidationError):
            await quiz_service.check_coverage("nope")
