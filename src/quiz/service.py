"""
Quiz Service: the operations exposed to the rest of the application.

Wires PartSelector -> QuizAssembler for generation, GradingEngine for
grading, and ResultService for storage. Every collaborator is injected, so
the same service runs against SQL repositories or in-memory fakes.

Operations:
- generate_quiz: Select and assemble a client-safe quiz from a config
- grade_submission: Grade submitted answers against canonical answers
- build_result / submit_quiz: Turn a grading report into a stored result
- persist_result: Store a result (commit, then audit)
- correct_single_score / grade_pending_items: Administrative rescoring
- check_coverage: Compare available candidates with requested counts
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass, field
from typing import TYPE_CHECKING

from loguru import logger

from src.core.errors import ValidationError
from src.core.retry import Sleep, retry_read
from src.grading.engine import GradingEngine
from src.grading.models import AttemptSubmission, GradingReport
from src.quiz.assembler import QuizAssembler
from src.quiz.fetcher import ChunkedQuestionFetcher
from src.quiz.interfaces import AuditChannel, QuestionRepository, QuizConfigStore, ResultStore
from src.quiz.models import ClientQuestion, QuizConfig, QuizPart
from src.quiz.part_selector import PartSelector
from src.quiz.sampling import Sampler
from src.results.models import QuizResult, initial_status, now_ms
from src.results.outcomes import CommittedWrite
from src.results.service import ResultService

if TYPE_CHECKING:
    from config import Settings

UNKNOWN_CONFIG_NAME = "Unknown"


@dataclass
class GeneratedQuiz:
    """A quiz ready to hand to a taker."""

    config_id: str
    config_name: str
    passing_score: float
    questions: list[ClientQuestion] = field(default_factory=list)
    quiz_mode: str = "practice"
    requested_total: int = 0
    missing_ids: list[str] = field(default_factory=list)

    @property
    def max_score(self) -> float:
        return sum(question.score for question in self.questions)

    @property
    def complete(self) -> bool:
        """True when every requested question was selected and loaded."""
        return not self.missing_ids and len(self.questions) == self.requested_total


@dataclass
class PartCoverage:
    part_id: str
    part_name: str
    requested: int
    available: int

    @property
    def sufficient(self) -> bool:
        return self.available >= self.requested


@dataclass
class CoverageReport:
    """Candidate supply per part, counted independently of other parts."""

    config_id: str
    config_name: str
    parts: list[PartCoverage] = field(default_factory=list)
    recommendations: list[str] = field(default_factory=list)

    @property
    def required_questions(self) -> int:
        return sum(part.requested for part in self.parts)

    @property
    def coverage_met(self) -> bool:
        return all(part.sufficient for part in self.parts)


class QuizService:
    """Facade over selection, assembly, grading and result storage."""

    def __init__(
        self,
        configs: QuizConfigStore,
        questions: QuestionRepository,
        selector: PartSelector,
        assembler: QuizAssembler,
        grader: GradingEngine,
        results: ResultService,
        retry_attempts: int = 3,
        base_delay: float = 0.5,
        timeout: float | None = None,
        sleep: Sleep = asyncio.sleep,
    ):
        self.configs = configs
        self.questions = questions
        self.selector = selector
        self.assembler = assembler
        self.grader = grader
        self.results = results
        self.retry_attempts = retry_attempts
        self.base_delay = base_delay
        self.timeout = timeout
        self._sleep = sleep

    # ========================================
    # Generation
    # ========================================

    async def generate_quiz(self, config_id: str) -> GeneratedQuiz:
        """
        Generate a quiz from a stored configuration.

        A missing or deleted config yields an empty quiz named "Unknown" with
        a passing score of 0. Parts that cannot be filled come back short;
        the result says so through ``complete`` and ``missing_ids``.

        Raises:
            ValidationError: The stored config is malformed
            TransientRepositoryError: The config could not be read after retries
        """
        config = await self._load_config(config_id)
        if config is None:
            logger.warning(f"Quiz config {config_id} not found; returning an empty quiz")
            return GeneratedQuiz(
                config_id=config_id,
                config_name=UNKNOWN_CONFIG_NAME,
                passing_score=0.0,
            )

        selection = await self.selector.select(config.parts)
        assembled = await self.assembler.assemble(selection)

        quiz = GeneratedQuiz(
            config_id=config.id,
            config_name=config.name,
            passing_score=config.passing_score,
            questions=assembled.questions,
            quiz_mode=config.quiz_mode,
            requested_total=config.total_questions or 0,
            missing_ids=assembled.missing_ids,
        )
        logger.info(
            f"Generated quiz '{config.name}': {len(quiz.questions)}/{quiz.requested_total} questions"
        )
        return quiz

    # ========================================
    # Grading and Results
    # ========================================

    async def grade_submission(self, attempts: list[AttemptSubmission]) -> GradingReport:
        return await self.grader.grade(attempts)

    def build_result(
        self,
        report: GradingReport,
        user_id: str,
        config: QuizConfig | None = None,
        username: str = "",
        duration: int | None = None,
    ) -> QuizResult:
        """Turn a grading report into an unsaved result."""
        passing_score = config.passing_score if config is not None else 0.0
        return QuizResult(
            user_id=user_id,
            username=username,
            config_id=config.id if config is not None else None,
            config_name=config.name if config is not None else UNKNOWN_CONFIG_NAME,
            attempts=report.attempts,
            score=report.score,
            max_score=report.max_score,
            passing_score=passing_score,
            is_passed=report.score >= passing_score,
            total_questions=len(report.attempts),
            status=initial_status(report.attempts),
            timestamp=now_ms(),
            duration=duration,
        )

    async def submit_quiz(
        self,
        config_id: str,
        user_id: str,
        attempts: list[AttemptSubmission],
        username: str = "",
        duration: int | None = None,
    ) -> QuizResult:
        """
        Grade a finished quiz and store the result.

        The config is read even if it was deleted after the quiz was
        generated, so the result keeps its name and passing score.

        Raises:
            PersistenceError: The result could not be stored
        """
        config = await self._load_config(config_id, include_deleted=True)
        report = await self.grade_submission(attempts)
        result = self.build_result(
            report, user_id, config=config, username=username, duration=duration
        )
        return await self.persist_result(result)

    async def persist_result(self, result: QuizResult) -> QuizResult:
        """
        Store a result. Audit failures are logged, never raised.

        Raises:
            PersistenceError: The write failed
        """
        write = await self.results.persist(result)
        self._log_audit(write)
        return write.result

    async def correct_single_score(
        self, result_id: str, question_id: str, new_score: float
    ) -> QuizResult:
        """
        Raises:
            ValidationError: Unknown result/question, or score outside [0, max_score]
            PersistenceError: The write failed
        """
        write = await self.results.correct_single_score(result_id, question_id, new_score)
        self._log_audit(write)
        return write.result

    async def grade_pending_items(self, result_id: str, scores: dict[str, float]) -> QuizResult:
        """
        Apply human scores to several attempts in one write.

        Raises:
            ValidationError: Unknown result/question, or a score outside [0, max_score]
            PersistenceError: The write failed
        """
        write = await self.results.apply_scores(result_id, scores)
        self._log_audit(write)
        return write.result

    # ========================================
    # Coverage
    # ========================================

    async def check_coverage(self, config_id: str) -> CoverageReport:
        """
        Count candidates per part against the requested counts.

        Each part is counted on its own, so parts with overlapping filters
        can all look sufficient and still come up short at generation time.

        Raises:
            ValidationError: The config does not exist or is malformed
        """
        config = await self._load_config(config_id)
        if config is None:
            raise ValidationError(f"Quiz config {config_id} not found", field="config_id")

        report = CoverageReport(config_id=config.id, config_name=config.name)
        for part in config.parts:
            available = await self._read(
                lambda p=part: self.questions.count_available(p.filters),
                f"count for part '{part.name}'",
            )
            report.parts.append(
                PartCoverage(
                    part_id=part.id,
                    part_name=part.name,
                    requested=part.count,
                    available=available,
                )
            )

        report.recommendations = self._get_coverage_recommendations(config.parts, report.parts)
        return report

    def _get_coverage_recommendations(
        self, parts: list[QuizPart], coverage: list[PartCoverage]
    ) -> list[str]:
        recommendations = []

        for item in coverage:
            if not item.sufficient:
                recommendations.append(
                    f"Add {item.requested - item.available} more questions matching "
                    f"part '{item.part_name}'"
                )

        seen: dict[str, str] = {}
        for part in parts:
            key = part.filters.model_dump_json()
            if key in seen:
                recommendations.append(
                    f"Parts '{seen[key]}' and '{part.name}' use identical filters; "
                    f"the later part only gets what the earlier one leaves"
                )
            else:
                seen[key] = part.name

        required = sum(item.requested for item in coverage)
        available = sum(item.available for item in coverage)
        if required and available < required * 2:
            recommendations.append(
                "Consider adding more questions to support multiple unique attempts"
            )

        return recommendations

    # ========================================
    # Helpers
    # ========================================

    async def _load_config(self, config_id: str, include_deleted: bool = False) -> QuizConfig | None:
        return await self._read(
            lambda: self.configs.get_config(config_id, include_deleted=include_deleted),
            f"quiz config {config_id}",
        )

    async def _read(self, operation, description: str):
        return await retry_read(
            operation,
            description=description,
            attempts=self.retry_attempts,
            base_delay=self.base_delay,
            timeout=self.timeout,
            sleep=self._sleep,
        )

    def _log_audit(self, write: CommittedWrite) -> None:
        if write.audit.error:
            logger.warning(
                f"Result {write.result.id} was {write.operation.operation} but not audited"
            )


def build_quiz_service(
    questions: QuestionRepository,
    configs: QuizConfigStore,
    results: ResultStore,
    audit_channel: AuditChannel | None = None,
    settings: Settings | None = None,
    sampler: Sampler | None = None,
    sleep: Sleep = asyncio.sleep,
) -> QuizService:
    """Assemble a QuizService with limits taken from settings."""
    if settings is None:
        from config import get_settings

        settings = get_settings()

    timeout = settings.request_timeout_seconds
    fetcher = ChunkedQuestionFetcher(
        questions,
        chunk_size=settings.question_fetch_chunk_size,
        max_concurrency=settings.question_fetch_concurrency,
        retry_attempts=settings.question_fetch_retry_attempts,
        base_delay=settings.question_fetch_retry_base_delay,
        timeout=timeout,
        sleep=sleep,
    )
    selector = PartSelector(
        questions,
        sampler=sampler,
        max_concurrency=settings.candidate_fetch_concurrency,
        retry_attempts=settings.question_fetch_retry_attempts,
        base_delay=settings.question_fetch_retry_base_delay,
        timeout=timeout,
        sleep=sleep,
    )
    return QuizService(
        configs=configs,
        questions=questions,
        selector=selector,
        assembler=QuizAssembler(fetcher),
        grader=GradingEngine(fetcher),
        results=ResultService(results, audit_channel if settings.audit_enabled else None),
        retry_attempts=settings.question_fetch_retry_attempts,
        base_delay=settings.question_fetch_retry_base_delay,
        timeout=timeout,
        sleep=sleep,
    )
