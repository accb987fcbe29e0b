"""
Part Selector: order-sensitive, duplicate-free question sampling across parts.

Candidate pools for all parts are fetched concurrently, then claimed strictly
in declared part order. A question matching several parts belongs to the
earliest part that draws it, so later parts may come up short (or empty) when
candidates are scarce. A short part is a degraded but valid outcome.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass

from loguru import logger

from src.core.errors import TransientRepositoryError
from src.core.retry import Sleep, retry_read
from src.quiz.interfaces import QuestionRepository
from src.quiz.models import QuizPart, SelectedQuestion
from src.quiz.sampling import RandomSampler, Sampler


@dataclass
class PartCandidates:
    """Candidate pool for one part, before cross-part deduplication."""

    part: QuizPart
    candidate_ids: list[str]
    fetch_failed: bool = False


class PartSelector:
    """
    Selects question IDs for an ordered list of parts.

    Handles:
    - Concurrent per-part candidate queries (one task per part, bounded)
    - Retry with backoff on transient read failures, then an empty pool
    - Sequential deduplicated sampling in declared part order
    """

    def __init__(
        self,
        repository: QuestionRepository,
        sampler: Sampler | None = None,
        max_concurrency: int = 4,
        retry_attempts: int = 3,
        base_delay: float = 0.5,
        timeout: float | None = None,
        sleep: Sleep = asyncio.sleep,
    ):
        self.repository = repository
        self.sampler = sampler or RandomSampler()
        self.max_concurrency = max(1, max_concurrency)
        self.retry_attempts = retry_attempts
        self.base_delay = base_delay
        self.timeout = timeout
        self._sleep = sleep

    async def select(self, parts: list[QuizPart]) -> list[SelectedQuestion]:
        """
        Select questions for ``parts``.

        Args:
            parts: Parts in declared order

        Returns:
            Selected IDs tagged with their part; all of part N precede part N+1
        """
        candidates = await self.fetch_candidates(parts)
        return self.sample(candidates)

    async def fetch_candidates(self, parts: list[QuizPart]) -> list[PartCandidates]:
        """Fetch every part's pool independently; results keep part order."""
        semaphore = asyncio.Semaphore(self.max_concurrency)

        async def fetch_part(part: QuizPart) -> PartCandidates:
            async with semaphore:
                try:
                    ids = await retry_read(
                        lambda: self.repository.get_candidate_ids(part.filters),
                        description=f"Candidate query for part '{part.name or part.id}'",
                        attempts=self.retry_attempts,
                        base_delay=self.base_delay,
                        timeout=self.timeout,
                        sleep=self._sleep,
                    )
                except TransientRepositoryError as e:
                    logger.warning(f"Part '{part.name or part.id}' gets an empty pool: {e}")
                    return PartCandidates(part=part, candidate_ids=[], fetch_failed=True)
                return PartCandidates(part=part, candidate_ids=list(ids))

        return list(await asyncio.gather(*(fetch_part(part) for part in parts)))

    def sample(self, candidates: list[PartCandidates]) -> list[SelectedQuestion]:
        """
        Claim questions part by part.

        Must stay sequential: the used set after part N is the input
        exclusion set of part N+1.
        """
        used_ids: set[str] = set()
        selected: list[SelectedQuestion] = []

        for pool in candidates:
            part = pool.part
            available = [qid for qid in dict.fromkeys(pool.candidate_ids) if qid not in used_ids]
            take = min(part.count, len(available))
            chosen = self.sampler.sample(available, take)[:take] if take else []

            for question_id in chosen:
                used_ids.add(question_id)
                selected.append(
                    SelectedQuestion(question_id=question_id, part=part, position=len(selected))
                )

            if len(chosen) < part.count:
                logger.warning(
                    f"Part '{part.name or part.id}' requested {part.count} questions, "
                    f"{len(chosen)} available after earlier parts"
                )

        return selected
