"""Batch preparation: raw rows to an ordered list of events."""
import logging
from dataclasses import dataclass
from typing import Dict, List, Optional, Sequence

from processor.attendee_normalizer import AttendeeNormalizer
from processor.errors import BatchValidationError
from processor.event_processor import EventProcessor
from processor.models import Attendee, ColumnMapping, DomainEvent, EventSettings

logger = logging.getLogger(__name__)


@dataclass
class PreparedBatch:
    """Events ready for publishing plus the attendees and warnings behind them."""
    attendees: List[Attendee]
    events: List[DomainEvent]
    errors: List[str]


def prepare_batch(
    rows: Sequence[Dict[str, str]],
    columns: Sequence[str],
    mapping: ColumnMapping,
    settings: Optional[EventSettings] = None,
    sandbox: bool = False
) -> PreparedBatch:
    """
    Validate, normalize, classify and derive events for one batch.

    Nothing here talks to Intercom; any rejection happens before the
    first remote call.

    Args:
        rows: Raw records in export order
        columns: Column names present in the export
        mapping: Column mapping supplied by the caller
        settings: Event-level metadata
        sandbox: Rewrite email domains for sandbox runs

    Returns:
        PreparedBatch

    Raises:
        BatchValidationError: If the mapping is unusable, no attendee is
            valid, or no events are derived
    """
    normalizer = AttendeeNormalizer(replace_email_domain=sandbox)
    processor = EventProcessor()

    normalizer.validate_mapping(mapping, columns)

    attendees, errors = normalizer.normalize_records(rows, mapping)
    if not attendees:
        raise BatchValidationError("No valid attendees found in CSV", errors)

    classified = processor.classify_attendees(attendees)
    events = processor.derive_events(classified, settings)
    if not events:
        raise BatchValidationError(
            "No events to publish. Ensure CSV contains registration or attendance data.",
            errors
        )

    logger.info(
        f"Prepared batch of {len(events)} events for {len(attendees)} attendees",
        extra={'row_errors': len(errors), 'sandbox': sandbox}
    )
    return PreparedBatch(attendees=attendees, events=events, errors=errors)
