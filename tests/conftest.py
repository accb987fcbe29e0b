"""
Pytest Configuration and Fixtures.

This file configures pytest and provides shared fixtures for all tests:
in-memory collaborators with failure injection, deterministic samplers and a
sample question bank.
"""
import sys
from pathlib import Path

import pytest

# Add project root to path
PROJECT_ROOT = Path(__file__).parent.parent
sys.path.insert(0, str(PROJECT_ROOT))

from config import Settings  # noqa: E402
from src.core.errors import PersistenceError, TransientRepositoryError  # noqa: E402
from src.quiz.models import (  # noqa: E402
    Difficulty,
    Question,
    QuestionFilters,
    QuestionType,
    QuizConfig,
)
from src.quiz.service import build_quiz_service  # noqa: E402


def pytest_configure(config):
    """Configure pytest markers."""
    config.addinivalue_line("markers", "unit: Unit tests")
    config.addinivalue_line("markers", "integration: Integration tests (SQLite via aiosqlite)")
    config.addinivalue_line("markers", "slow: Slow tests")


def pytest_collection_modifyitems(config, items):
    """Automatically mark tests based on their location."""
    for item in items:
        if "unit" in str(item.fspath):
            item.add_marker(pytest.mark.unit)
        elif "integration" in str(item.fspath):
            item.add_marker(pytest.mark.integration)


# ============================================================================
# In-memory collaborators
# ============================================================================


def _matches(question: Question, filters: QuestionFilters) -> bool:
    if filters.subjects and question.subject not in filters.subjects:
        return False
    if filters.difficulties and question.difficulty not in filters.difficulties:
        return False
    if filters.grade_levels and question.grade_level not in filters.grade_levels:
        return False
    if filters.question_types and question.type not in filters.question_types:
        return False
    if filters.categories and question.category not in filters.categories:
        return False
    return True


class InMemoryQuestionRepository:
    """
    Question bank held in a dict.

    Failure injection:
        candidate_failures: Transient failures before candidate queries succeed
        fetch_failures: Transient failures before detail fetches succeed
        broken_ids: Any detail fetch containing one of these always fails
    """

    def __init__(self, questions=None):
        self.questions = {q.id: q for q in questions or []}
        self.candidate_failures = 0
        self.fetch_failures = 0
        self.broken_ids: set[str] = set()
        self.candidate_calls: list[QuestionFilters] = []
        self.fetch_calls: list[tuple[list[str], bool]] = []

    async def get_candidate_ids(self, filters):
        self.candidate_calls.append(filters)
        if self.candidate_failures > 0:
            self.candidate_failures -= 1
            raise TransientRepositoryError("candidate query timed out")
        return [
            q.id
            for q in self.questions.values()
            if not q.is_disabled and not q.is_deleted and _matches(q, filters)
        ]

    async def get_questions_by_ids(self, ids, include_deleted=False):
        self.fetch_calls.append((list(ids), include_deleted))
        if self.broken_ids.intersection(ids):
            raise TransientRepositoryError("chunk unavailable")
        if self.fetch_failures > 0:
            self.fetch_failures -= 1
            raise TransientRepositoryError("rate limited")
        return [
            self.questions[qid]
            for qid in ids
            if qid in self.questions and (include_deleted or not self.questions[qid].is_deleted)
        ]

    async def count_available(self, filters):
        return len(await self.get_candidate_ids(filters))


class InMemoryConfigStore:
    def __init__(self, configs=None):
        self.configs = {c.id: c for c in configs or []}

    async def get_config(self, config_id, include_deleted=False):
        config = self.configs.get(config_id)
        if config is None or (config.is_deleted and not include_deleted):
            return None
        return config


class InMemoryResultStore:
    """Result storage; set ``fail_writes`` to make every write raise."""

    def __init__(self):
        self.results = {}
        self.fail_writes = False
        self.writes = 0

    async def insert(self, result):
        if self.fail_writes:
            raise PersistenceError("insert rejected")
        self.writes += 1
        stored = result.model_copy(update={"id": result.id or f"result-{len(self.results) + 1}"})
        self.results[stored.id] = stored
        return stored

    async def get(self, result_id):
        return self.results.get(result_id)

    async def update(self, result):
        if self.fail_writes:
            raise PersistenceError("update rejected")
        self.writes += 1
        self.results[result.id] = result
        return result


class RecordingAuditChannel:
    def __init__(self):
        self.entries = []

    async def emit(self, entry):
        self.entries.append(entry)


class FailingAuditChannel:
    async def emit(self, entry):
        raise RuntimeError("audit backend down")


class FirstNSampler:
    """Deterministic sampler: keeps candidate order and takes the first k."""

    def shuffle(self, items):
        return list(items)

    def sample(self, items, k):
        return list(items)[:k] if k > 0 else []


class RecordingSleep:
    """Replaces asyncio.sleep; records requested delays without waiting."""

    def __init__(self):
        self.delays = []

    async def __call__(self, delay):
        self.delays.append(delay)


# ============================================================================
# Fixtures
# ============================================================================


@pytest.fixture
def make_question():
    """Factory for questions with sensible defaults."""

    def _make(question_id, question_type=QuestionType.MULTIPLE_CHOICE, **fields):
        fields.setdefault("text", f"Question {question_id}")
        fields.setdefault("subject", "geography")
        return Question(id=question_id, type=question_type, **fields)

    return _make


@pytest.fixture
def question_bank(make_question):
    """One question of every type, plus a deleted and a disabled one."""
    return [
        make_question(
            "q-mc",
            QuestionType.MULTIPLE_CHOICE,
            text="Capital of France?",
            options=["Berlin", "Paris", "Rome", "Madrid"],
            correct_answer="B",
            difficulty=Difficulty.EASY,
            explanation="Paris has been the capital since 987.",
        ),
        make_question(
            "q-ms",
            QuestionType.MULTIPLE_SELECT,
            text="Which are in Europe?",
            options=["Spain", "Peru", "Italy", "Chile"],
            correct_answer='["A","C"]',
        ),
        make_question("q-tf", QuestionType.TRUE_FALSE, correct_answer="True"),
        make_question("q-sa", QuestionType.SHORT_ANSWER, correct_answer="Paris"),
        make_question(
            "q-essay",
            QuestionType.SHORT_ANSWER,
            text="Explain why rivers meander.",
            correct_answer="Erosion on the outer bank",
            needs_grading=True,
        ),
        make_question(
            "q-fb",
            QuestionType.FILL_IN_THE_BLANK,
            text="The capital of China is __ and its largest city is __.",
            correct_answer='["北京市","上海"]',
        ),
        make_question(
            "q-fb-legacy",
            QuestionType.FILL_IN_THE_BLANK,
            correct_answer="Paris;&&;France",
        ),
        make_question("q-deleted", QuestionType.TRUE_FALSE, correct_answer="False", is_deleted=True),
        make_question("q-disabled", QuestionType.TRUE_FALSE, correct_answer="True", is_disabled=True),
    ]


@pytest.fixture
def repository(question_bank):
    return InMemoryQuestionRepository(question_bank)


@pytest.fixture
def sample_config():
    """Two parts: three multiple-choice style questions, then two fill-ins."""
    return QuizConfig.model_validate(
        {
            "id": "cfg-1",
            "name": "Geography Basics",
            "passingScore": 6,
            "parts": [
                {
                    "id": "p1",
                    "name": "Part A",
                    "questionTypes": ["MULTIPLE_CHOICE", "MULTIPLE_SELECT", "TRUE_FALSE"],
                    "count": 3,
                    "score": 2,
                },
                {
                    "id": "p2",
                    "name": "Part B",
                    "types": ["FILL_IN_THE_BLANK"],
                    "count": 2,
                    "score": 3,
                },
            ],
        }
    )


@pytest.fixture
def config_store(sample_config):
    deleted = sample_config.model_copy(update={"id": "cfg-deleted", "is_deleted": True})
    return InMemoryConfigStore([sample_config, deleted])


@pytest.fixture
def result_store():
    return InMemoryResultStore()


@pytest.fixture
def audit_channel():
    return RecordingAuditChannel()


@pytest.fixture
def failing_audit_channel():
    return FailingAuditChannel()


@pytest.fixture
def sampler():
    return FirstNSampler()


@pytest.fixture
def sleeper():
    return RecordingSleep()


@pytest.fixture
def test_settings():
    """Settings independent of the environment and any .env file."""
    return Settings(
        _env_file=None,
        database_url="sqlite+aiosqlite://",
        question_fetch_chunk_size=20,
        question_fetch_concurrency=2,
        question_fetch_retry_attempts=3,
        question_fetch_retry_base_delay=0.01,
        candidate_fetch_concurrency=4,
        request_timeout_seconds=5.0,
        audit_enabled=True,
    )


@pytest.fixture
def quiz_service(repository, config_store, result_store, audit_channel, test_settings, sampler, sleeper):
    return build_quiz_service(
        questions=repository,
        configs=config_store,
        results=result_store,
        audit_channel=audit_channel,
        settings=test_settings,
        sampler=sampler,
        sleep=sleeper,
    )
