"""
Chunked, retried batch fetch of question details.

IDs are split into chunks of at most ``chunk_size`` to respect backend IN-list
limits. At most ``max_concurrency`` chunks are in flight. Each chunk is retried
on transient failure; a chunk that exhausts its budget is skipped and reported
in ``FetchReport.failed_ids`` instead of failing the whole fetch.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass, field

from loguru import logger

from src.core.errors import TransientRepositoryError
from src.core.retry import Sleep, retry_read
from src.quiz.interfaces import QuestionRepository
from src.quiz.models import Question


@dataclass
class FetchReport:
    """Questions that were fetched, and the IDs whose chunks were given up."""

    questions: dict[str, Question] = field(default_factory=dict)
    failed_ids: list[str] = field(default_factory=list)
    failed_chunks: int = 0

    @property
    def complete(self) -> bool:
        return self.failed_chunks == 0


def chunked(ids: list[str], size: int) -> list[list[str]]:
    return [ids[i:i + size] for i in range(0, len(ids), size)]


class ChunkedQuestionFetcher:
    """Semaphore-gated batch fetcher with an explicit chunk size and retry budget."""

    def __init__(
        self,
        repository: QuestionRepository,
        chunk_size: int = 20,
        max_concurrency: int = 2,
        retry_attempts: int = 3,
        base_delay: float = 0.5,
        timeout: float | None = None,
        sleep: Sleep = asyncio.sleep,
    ):
        if chunk_size < 1:
            raise ValueError("chunk_size must be positive")
        self.repository = repository
        self.chunk_size = chunk_size
        self.max_concurrency = max(1, max_concurrency)
        self.retry_attempts = retry_attempts
        self.base_delay = base_delay
        self.timeout = timeout
        self._sleep = sleep

    async def fetch(self, ids: list[str], include_deleted: bool = False) -> FetchReport:
        """
        Fetch full question records for ``ids``.

        Duplicate IDs are fetched once. Missing questions (deleted, unknown)
        are simply absent from ``questions``; only chunks that failed are
        listed in ``failed_ids``.
        """
        unique_ids = list(dict.fromkeys(ids))
        report = FetchReport()
        if not unique_ids:
            return report

        semaphore = asyncio.Semaphore(self.max_concurrency)
        chunks = chunked(unique_ids, self.chunk_size)

        async def fetch_chunk(index: int, chunk: list[str]) -> list[Question] | None:
            async with semaphore:
                try:
                    return await retry_read(
                        lambda: self.repository.get_questions_by_ids(chunk, include_deleted),
                        description=f"Question chunk {index + 1}/{len(chunks)}",
                        attempts=self.retry_attempts,
                        base_delay=self.base_delay,
                        timeout=self.timeout,
                        sleep=self._sleep,
                    )
                except TransientRepositoryError as e:
                    logger.warning(f"Skipping {len(chunk)} questions after fetch failure: {e}")
                    return None

        results = await asyncio.gather(
            *(fetch_chunk(index, chunk) for index, chunk in enumerate(chunks))
        )

        for chunk, questions in zip(chunks, results):
            if questions is None:
                report.failed_ids.extend(chunk)
                report.failed_chunks += 1
                continue
            wanted = set(chunk)
            for question in questions:
                if question.id in wanted:
                    report.questions[question.id] = question

        return report
