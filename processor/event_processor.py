"""Event processor classifying attendees and deriving lifecycle events."""
import logging
import time
from datetime import datetime, timezone
from typing import List, Optional

from processor.models import (
    Attendee,
    ClassifiedAttendee,
    DomainEvent,
    EventKind,
    EventSettings,
)

logger = logging.getLogger(__name__)


class EventProcessor:
    """Processor turning attendees into registered/attended events."""

    REGISTRATION_MARKERS = ('registered', 'registration')
    ATTENDANCE_MARKERS = ('attended', 'checked', 'present')

    # Formats tried after ISO 8601
    DATE_FORMATS = [
        '%Y-%m-%d %H:%M:%S',    # ISO without T
        '%Y-%m-%d %H:%M',
        '%m/%d/%Y %H:%M:%S',    # US format
        '%m/%d/%Y %H:%M',
        '%m/%d/%Y %I:%M %p',
        '%m/%d/%Y',
        '%B %d, %Y %I:%M %p',   # Full month name
        '%B %d, %Y',
        '%b %d, %Y %I:%M %p',   # Abbreviated month name
        '%b %d, %Y',
        '%Y/%m/%d',
    ]

    def classify_attendees(self, attendees: List[Attendee]) -> List[ClassifiedAttendee]:
        """
        Derive registration and attendance flags for each attendee.

        Args:
            attendees: Normalized attendees in input order

        Returns:
            ClassifiedAttendee list in the same order
        """
        return [self.classify(attendee) for attendee in attendees]

    def classify(self, attendee: Attendee) -> ClassifiedAttendee:
        """
        Classify a single attendee.

        Args:
            attendee: Normalized attendee

        Returns:
            ClassifiedAttendee with both flags set
        """
        status = attendee.status.lower()

        has_registration = bool(
            attendee.registration_date or
            any(marker in status for marker in self.REGISTRATION_MARKERS)
        )

        has_attendance = bool(
            attendee.has_joined_event is True or
            attendee.attendance_date or
            any(marker in status for marker in self.ATTENDANCE_MARKERS)
        )

        return ClassifiedAttendee(
            attendee=attendee,
            has_registration=has_registration,
            has_attendance=has_attendance
        )

    def derive_events(
        self,
        attendees: List[ClassifiedAttendee],
        settings: Optional[EventSettings] = None
    ) -> List[DomainEvent]:
        """
        Expand classified attendees into an ordered list of events.

        Registration precedes attendance for the same attendee. Attendees
        with neither flag contribute nothing.

        Args:
            attendees: Classified attendees in input order
            settings: Event-level metadata shared by every event

        Returns:
            Flat list of DomainEvent objects
        """
        settings = settings or EventSettings()
        events = []

        for classified in attendees:
            attendee = classified.attendee
            now = int(time.time())

            if classified.has_registration:
                events.append(self._build_event(
                    kind=EventKind.REGISTERED,
                    occurred_at=self.parse_timestamp(attendee.registration_date, now),
                    attendee=attendee,
                    settings=settings
                ))

            if classified.has_attendance:
                events.append(self._build_event(
                    kind=EventKind.ATTENDED,
                    occurred_at=self.parse_timestamp(attendee.attendance_date, now),
                    attendee=attendee,
                    settings=settings
                ))

        logger.info(
            f"Derived {len(events)} events from {len(attendees)} attendees"
        )
        return events

    def parse_timestamp(self, date_str: str, default: int) -> int:
        """
        Parse a date string to unix seconds.

        Naive values are taken as UTC. Unparseable input is not an error.

        Args:
            date_str: Date or date-time string from the export
            default: Timestamp returned when the string is empty or unparseable

        Returns:
            Unix timestamp in seconds
        """
        if not date_str or not date_str.strip():
            return default

        parsed = self._parse_datetime(date_str.strip())
        if parsed is None:
            logger.warning(f"Unparseable date '{date_str}', using current time")
            return default

        if parsed.tzinfo is None:
            parsed = parsed.replace(tzinfo=timezone.utc)
        return int(parsed.timestamp())

    def _parse_datetime(self, value: str) -> Optional[datetime]:
        iso_value = value[:-1] + '+00:00' if value.endswith('Z') else value
        try:
            return datetime.fromisoformat(iso_value)
        except ValueError:
            pass

        for fmt in self.DATE_FORMATS:
            try:
                return datetime.strptime(value, fmt)
            except ValueError:
                continue

        return None

    def _build_event(
        self,
        kind: EventKind,
        occurred_at: int,
        attendee: Attendee,
        settings: EventSettings
    ) -> DomainEvent:
        return DomainEvent(
            kind=kind,
            occurred_at=occurred_at,
            email=attendee.email,
            name=attendee.name,
            phone=attendee.phone,
            metadata={
                'event_name': settings.event_name or None,
                'event_date': settings.combined_event_date,
                'ticket_type': attendee.ticket_type or None,
                'presenter': settings.presenter or None
            }
        )
