"""Batched inbox classification.

Objective:
    Classify every message of an inbox snapshot through the backend without
    sending it more than ``batch_size`` concurrent requests, and keep an index
    of the categories received.

Core strategy:
    1. Split the messages into consecutive batches of ``batch_size``.
    2. Run one batch at a time. Inside a batch every request is issued
       concurrently and the batch is awaited as a unit, so batch ``k+1`` never
       starts before every request of batch ``k`` has settled.
    3. Write each successful category into :class:`ClassificationIndex`.
       Failures leave the message unclassified; they are never retried and
       never stop the run.
    4. Report progress after each batch.

Run supersession:
    Each :meth:`ClassificationPipeline.run` bumps a run id and clears the
    index. Requests are tagged with the run id active when they were issued;
    results carrying an older id are dropped and the old run issues no
    further batches.

High-level call tree:
    - :class:`ClassificationPipeline`
        - :meth:`ClassificationPipeline.run` (async generator)
            - :meth:`ClassificationPipeline._classify_batch`
                - :meth:`ClassificationPipeline._classify_one`
                    - :meth:`src.inbox_triage.backend_client.BackendClient.classify`
                    - :meth:`src.inbox_triage.auth_escalation.AuthEscalation.check`
        - :meth:`ClassificationPipeline.run_to_completion`
"""

import asyncio
import logging
from typing import AsyncIterator, Callable, Iterator, Optional, Sequence

from .auth_escalation import AuthEscalation
from .backend_client import BackendClient
from .models import Classification, ClassificationOutcome, MessageSummary, PipelineRun

logger = logging.getLogger(__name__)

DEFAULT_BATCH_SIZE = 5

ProgressCallback = Callable[[PipelineRun], None]


class ClassificationIndex:
    """Mapping of message id to category label.

    A message is either absent or fully classified; there is at most one
    entry per message.
    """

    def __init__(self) -> None:
        self._categories: dict[str, str] = {}

    def add(self, message_id: str, category: str) -> None:
        self._categories[message_id] = category

    def get(self, message_id: str) -> Optional[str]:
        return self._categories.get(message_id)

    def clear(self) -> None:
        self._categories.clear()

    def items(self) -> list[tuple[str, str]]:
        return list(self._categories.items())

    def as_dict(self) -> dict[str, str]:
        return dict(self._categories)

    def __contains__(self, message_id: object) -> bool:
        return message_id in self._categories

    def __len__(self) -> int:
        return len(self._categories)

    def __iter__(self) -> Iterator[str]:
        return iter(self._categories)


def iter_batches(messages: Sequence[MessageSummary], batch_size: int) -> Iterator[Sequence[MessageSummary]]:
    """Yield consecutive slices of ``messages`` of at most ``batch_size``."""
    if batch_size < 1:
        raise ValueError(f"batch_size must be >= 1, got {batch_size}")
    for start in range(0, len(messages), batch_size):
        yield messages[start : start + batch_size]


class ClassificationPipeline:
    """
    Bounded-concurrency classifier for one inbox session.

    The pipeline exclusively owns :attr:`index` and :attr:`current_run`.

    Attributes:
        backend: Backend client used for classification requests.
        batch_size: Maximum concurrent requests.
        escalation: Optional auth escalation shared with the rest of the app.
        index: Categories received during the current run.
        current_run: Progress of the current run (None before the first run).
    """

    def __init__(
        self,
        backend: BackendClient,
        batch_size: int = DEFAULT_BATCH_SIZE,
        escalation: Optional[AuthEscalation] = None,
        on_progress: Optional[ProgressCallback] = None,
    ) -> None:
        if batch_size < 1:
            raise ValueError(f"batch_size must be >= 1, got {batch_size}")
        self.backend = backend
        self.batch_size = batch_size
        self.escalation = escalation
        self.on_progress = on_progress
        self.index = ClassificationIndex()
        self.current_run: Optional[PipelineRun] = None
        self._run_id = 0

    @property
    def run_id(self) -> int:
        """Id of the current run (0 before the first run)."""
        return self._run_id

    def is_current(self, run_id: int) -> bool:
        """Whether ``run_id`` identifies the run that may still write."""
        return run_id == self._run_id

    def invalidate(self) -> None:
        """Supersede the current run without starting a new one."""
        self._run_id += 1

    async def _classify_one(
        self, run_id: int, user_id: str, message: MessageSummary
    ) -> ClassificationOutcome:
        """Classify a single message; never raises."""
        run = self.current_run if self.is_current(run_id) else None
        if run is not None:
            run.in_flight += 1
        try:
            classification: Classification = await asyncio.to_thread(
                self.backend.classify, user_id, message.id
            )
            return ClassificationOutcome(message_id=message.id, classification=classification)
        except Exception as e:
            logger.warning(f"Failed to classify message {message.id}: {e}")
            if self.escalation is not None and self.escalation.check(e):
                if self.is_current(run_id):
                    self.invalidate()
            return ClassificationOutcome(message_id=message.id, error=str(e) or type(e).__name__)
        finally:
            if run is not None:
                run.in_flight -= 1

    async def _classify_batch(
        self, run_id: int, user_id: str, batch: Sequence[MessageSummary]
    ) -> list[ClassificationOutcome]:
        """Issue one request per message and wait until all have settled."""
        return list(
            await asyncio.gather(
                *(self._classify_one(run_id, user_id, message) for message in batch)
            )
        )

    async def run(
        self, user_id: str, messages: Sequence[MessageSummary]
    ) -> AsyncIterator[ClassificationOutcome]:
        """Classify ``messages`` and stream one outcome per message.

        Starting a run supersedes any previous one: the index is cleared and
        results of the previous run are dropped from then on.

        Args:
            user_id: Signed-in user ID.
            messages: Inbox snapshot, in display order.

        Yields:
            ClassificationOutcome: One per message of the current run; a
            superseded run stops yielding.
        """
        self._run_id += 1
        run_id = self._run_id
        self.index.clear()
        run = PipelineRun(run_id=run_id, total=len(messages))
        self.current_run = run

        logger.info(
            "Starting classification run %s (messages=%s, batch_size=%s)",
            run_id,
            run.total,
            self.batch_size,
        )

        for start, batch in enumerate(iter_batches(messages, self.batch_size)):
            if not self.is_current(run_id):
                logger.info("Classification run %s superseded; stopping", run_id)
                return

            outcomes = await self._classify_batch(run_id, user_id, batch)

            if not self.is_current(run_id):
                logger.info("Discarding %s results of superseded run %s", len(outcomes), run_id)
                return

            for outcome in outcomes:
                category = outcome.classification.category if outcome.classification else None
                if category:
                    self.index.add(outcome.message_id, category)

            run.completed = min((start + 1) * self.batch_size, run.total)
            logger.debug("Classification run %s progress %s/%s", run_id, run.completed, run.total)
            if self.on_progress is not None:
                self.on_progress(run.model_copy())

            for outcome in outcomes:
                if not self.is_current(run_id):
                    return
                yield outcome

        logger.info(
            "Completed classification run %s: %s/%s classified",
            run_id,
            len(self.index),
            run.total,
        )

    async def run_to_completion(
        self, user_id: str, messages: Sequence[MessageSummary]
    ) -> ClassificationIndex:
        """Drain :meth:`run` and return the resulting index."""
        async for _ in self.run(user_id, messages):
            pass
        return self.index
