"""Progress stream turning batch outcomes into incremental messages."""
import json
import logging
from typing import Any, Dict, Iterator

from processor.pipeline import PreparedBatch
from publisher.batch_orchestrator import BatchOrchestrator

logger = logging.getLogger(__name__)


class ProgressStream:
    """
    Serializes one batch run as start, progress and terminal messages.

    Every run yields exactly one ``start``, one ``progress`` per event, and
    then either ``complete`` or ``error``.
    """

    def __init__(self, batch: PreparedBatch, orchestrator: BatchOrchestrator):
        """
        Initialize the stream.

        Args:
            batch: Prepared batch to publish
            orchestrator: Orchestrator bound to the batch's credential set
        """
        self.batch = batch
        self.orchestrator = orchestrator
        self.closed = False

    def messages(self) -> Iterator[Dict[str, Any]]:
        """
        Run the batch, yielding a message dict per step.

        Yields:
            Message dicts with a ``type`` key
        """
        events = self.batch.events
        total_processed = len(self.batch.attendees)

        yield {
            'type': 'start',
            'totalEvents': len(events),
            'totalProcessed': total_processed
        }

        results = []
        successful = 0
        failed = 0
        outcomes = self.orchestrator.iter_outcomes(events)

        try:
            for progress in outcomes:
                results.append(progress.outcome)
                if progress.outcome.success:
                    successful += 1
                else:
                    failed += 1

                yield {
                    'type': 'progress',
                    'result': progress.outcome.to_dict(),
                    'index': progress.index,
                    'total': progress.total,
                    'successful': successful,
                    'failed': failed
                }

            complete = {
                'type': 'complete',
                'totalProcessed': total_processed,
                'successful': successful,
                'failed': failed,
                'results': [result.to_dict() for result in results]
            }
            if self.batch.errors:
                complete['errors'] = self.batch.errors
            yield complete

        except Exception as e:
            logger.error(
                f"Batch aborted after {len(results)} of {len(events)} events: {e}",
                extra={'error_type': type(e).__name__},
                exc_info=True
            )
            yield {
                'type': 'error',
                'error': str(e) or "Unknown error occurred"
            }

        finally:
            outcomes.close()
            self.closed = True
            logger.info(
                f"Progress stream closed",
                extra={'successful': successful, 'failed': failed}
            )

    def lines(self) -> Iterator[str]:
        """
        Encode messages with server-sent-events framing.

        Yields:
            "data: <json>\\n\\n" per message
        """
        for message in self.messages():
            yield f"data: {json.dumps(message)}\n\n"
