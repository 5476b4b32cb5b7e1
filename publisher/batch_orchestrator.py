"""Batch orchestrator driving the publisher over a list of events."""
import logging
import time
from dataclasses import dataclass
from typing import Callable, Iterator, List, Optional

from processor.models import BatchSummary, DomainEvent, PublishOutcome
from publisher.event_publisher import EventPublisher

logger = logging.getLogger(__name__)

ProgressCallback = Callable[[PublishOutcome, int, int], None]


@dataclass
class BatchProgress:
    """One step of a batch: the outcome and its 1-based position."""
    outcome: PublishOutcome
    index: int
    total: int


class BatchOrchestrator:
    """Publishes events strictly one at a time, pacing successive calls."""

    DEFAULT_PACING_DELAY = 0.1  # seconds

    def __init__(
        self,
        publisher: EventPublisher,
        pacing_delay: float = DEFAULT_PACING_DELAY
    ):
        """
        Initialize the orchestrator.

        Args:
            publisher: Event publisher for the batch
            pacing_delay: Pause between successive publishes
        """
        self.publisher = publisher
        self.pacing_delay = pacing_delay

    def iter_outcomes(self, events: List[DomainEvent]) -> Iterator[BatchProgress]:
        """
        Publish events in order, yielding each outcome as it arrives.

        The generator is lazy and cannot be restarted. A failed event never
        stops the batch.

        Args:
            events: Events in publishing order

        Yields:
            BatchProgress for each event
        """
        total = len(events)
        logger.info(f"Starting batch of {total} events")

        for i, event in enumerate(events):
            outcome = self.publisher.publish(event)
            yield BatchProgress(outcome=outcome, index=i + 1, total=total)

            if i < total - 1 and self.pacing_delay > 0:
                time.sleep(self.pacing_delay)

    def run_batch(
        self,
        events: List[DomainEvent],
        on_progress: Optional[ProgressCallback] = None
    ) -> List[PublishOutcome]:
        """
        Publish every event and return the outcomes.

        Args:
            events: Events in publishing order
            on_progress: Called with (outcome, index, total) after each event;
                an exception raised here aborts the batch

        Returns:
            One PublishOutcome per event, in the same order
        """
        results = []
        for progress in self.iter_outcomes(events):
            results.append(progress.outcome)
            if on_progress is not None:
                on_progress(progress.outcome, progress.index, progress.total)
        return results

    @staticmethod
    def summarize(
        results: List[PublishOutcome],
        total_processed: int,
        errors: Optional[List[str]] = None
    ) -> BatchSummary:
        """
        Aggregate outcomes into success/failure counts.

        Args:
            results: Outcomes of a batch
            total_processed: Number of attendees behind the batch
            errors: Row-level warnings from normalization

        Returns:
            BatchSummary
        """
        successful = sum(1 for result in results if result.success)
        return BatchSummary(
            total_processed=total_processed,
            successful=successful,
            failed=len(results) - successful,
            results=results,
            errors=errors or []
        )
