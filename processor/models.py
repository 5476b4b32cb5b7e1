"""Data models for attendee processing and event publishing."""
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional


class EventKind(Enum):
    """Lifecycle event kinds published for an attendee."""
    REGISTERED = "registered"
    ATTENDED = "attended"

    @property
    def event_name(self) -> str:
        """Intercom event name for this kind."""
        if self is EventKind.REGISTERED:
            return "registered-for-event"
        return "attended-event"


class ContactResolution(Enum):
    """Which path the contact resolver took for an email."""
    CREATED = "created"
    CONFLICT_RESOLVED = "conflict_resolved"
    RESOLUTION_SKIPPED = "resolution_skipped"


@dataclass(frozen=True)
class Attendee:
    """One export row normalized to known fields."""
    email: str
    name: str = ""
    phone: str = ""
    registration_date: str = ""
    attendance_date: str = ""
    ticket_type: str = ""
    status: str = ""
    has_joined_event: Optional[bool] = None


@dataclass(frozen=True)
class ClassifiedAttendee:
    """Attendee with derived registration/attendance flags."""
    attendee: Attendee
    has_registration: bool
    has_attendance: bool

    @property
    def email(self) -> str:
        return self.attendee.email


@dataclass(frozen=True)
class EventSettings:
    """Event-level metadata shared by every event in a batch."""
    event_name: Optional[str] = None
    event_date: Optional[str] = None
    event_time: Optional[str] = None
    presenter: Optional[str] = None

    @property
    def combined_event_date(self) -> Optional[str]:
        """Event date and time joined by a space, or the date alone."""
        if self.event_date and self.event_time:
            return f"{self.event_date} {self.event_time}"
        return self.event_date or None

    @classmethod
    def from_dict(cls, data: Optional[Dict[str, Any]]) -> "EventSettings":
        """
        Build settings from a JSON object using camelCase or snake_case keys.

        Args:
            data: Decoded JSON object, or None

        Returns:
            EventSettings instance (all fields None when data is empty)
        """
        data = data or {}
        return cls(
            event_name=data.get('eventName') or data.get('event_name') or None,
            event_date=data.get('eventDate') or data.get('event_date') or None,
            event_time=data.get('eventTime') or data.get('event_time') or None,
            presenter=data.get('presenter') or None
        )

    def to_dict(self) -> Dict[str, str]:
        """Serialize to the camelCase wire shape, omitting unset fields."""
        payload = {
            'eventName': self.event_name,
            'eventDate': self.event_date,
            'eventTime': self.event_time,
            'presenter': self.presenter
        }
        return {key: value for key, value in payload.items() if value}


@dataclass
class DomainEvent:
    """A lifecycle fact about an attendee, destined for Intercom."""
    kind: EventKind
    occurred_at: int
    email: str
    name: str = ""
    phone: str = ""
    metadata: Dict[str, Optional[str]] = field(default_factory=dict)

    @property
    def event_name(self) -> str:
        return self.kind.event_name

    def clean_metadata(self) -> Dict[str, str]:
        """Metadata without None or empty-string values."""
        return {
            key: value for key, value in self.metadata.items()
            if value is not None and value != ""
        }


@dataclass
class PublishOutcome:
    """Result of publishing one DomainEvent."""
    success: bool
    email: str
    event_kind: EventKind
    error: Optional[str] = None
    contact_resolution: Optional[ContactResolution] = None

    def to_dict(self) -> Dict[str, Any]:
        """Serialize for the progress stream."""
        payload = {
            'success': self.success,
            'email': self.email,
            'eventKind': self.event_kind.value,
            'eventType': self.event_kind.event_name
        }
        if self.error is not None:
            payload['error'] = self.error
        return payload


# Wire keys accepted for each ColumnMapping field.
_MAPPING_KEYS = {
    'email': ('email',),
    'name': ('name',),
    'phone': ('phone_number', 'phone'),
    'registration_date': ('registrationDate', 'registration_date'),
    'attendance_date': ('attendanceDate', 'attendance_date'),
    'ticket_type': ('ticketType', 'ticket_type'),
    'status': ('status',),
    'has_joined_event': ('hasJoinedEvent', 'has_joined_event'),
    'approval_status': ('approval_status', 'approvalStatus'),
}


@dataclass
class ColumnMapping:
    """Names the export column that supplies each Attendee field."""
    email: str = ""
    name: Optional[str] = None
    phone: Optional[str] = None
    registration_date: Optional[str] = None
    attendance_date: Optional[str] = None
    ticket_type: Optional[str] = None
    status: Optional[str] = None
    has_joined_event: Optional[str] = None
    approval_status: Optional[str] = None

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ColumnMapping":
        """
        Build a mapping from a decoded JSON object.

        Args:
            data: Object keyed by the original camelCase or snake_case names

        Returns:
            ColumnMapping instance
        """
        values = {}
        for attr, keys in _MAPPING_KEYS.items():
            for key in keys:
                if data.get(key):
                    values[attr] = str(data[key])
                    break
        return cls(**values)

    def to_dict(self) -> Dict[str, str]:
        """Serialize using the original wire keys, omitting unmapped fields."""
        payload = {}
        for attr, keys in _MAPPING_KEYS.items():
            value = getattr(self, attr)
            if value:
                payload[keys[0]] = value
        return payload

    def mapped_columns(self) -> List[str]:
        """All column names referenced by this mapping, email first."""
        return [
            getattr(self, attr) for attr in _MAPPING_KEYS
            if getattr(self, attr)
        ]


@dataclass
class BatchSummary:
    """Aggregate result of a publishing batch."""
    total_processed: int
    successful: int
    failed: int
    results: List[PublishOutcome]
    errors: List[str]
