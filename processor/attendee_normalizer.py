"""Normalizer turning raw export rows into Attendee records."""
import logging
from typing import Dict, List, Optional, Sequence, Tuple

from processor.errors import BatchValidationError
from processor.models import Attendee, ColumnMapping

logger = logging.getLogger(__name__)


class AttendeeNormalizer:
    """Maps raw string-keyed rows to typed Attendee records."""

    JOINED_VALUES = {'true', '1', 'yes', 'y', 'joined'}
    EXCLUDED_APPROVAL_STATUS = 'invited'
    SANDBOX_EMAIL_DOMAIN = 'example.com'

    def __init__(self, replace_email_domain: bool = False):
        """
        Initialize the normalizer.

        Args:
            replace_email_domain: Rewrite every email domain to example.com
                (used for sandbox runs so real addresses never reach the
                test workspace)
        """
        self.replace_email_domain = replace_email_domain

    def validate_mapping(self, mapping: ColumnMapping, columns: Sequence[str]) -> None:
        """
        Check that the mapping names an email column and only existing columns.

        Args:
            mapping: Column mapping supplied by the caller
            columns: Column names present in the export

        Raises:
            BatchValidationError: If the mapping cannot be applied
        """
        if not mapping.email:
            raise BatchValidationError("Email column mapping is required")

        missing = [col for col in mapping.mapped_columns() if col not in columns]
        if missing:
            raise BatchValidationError(
                f"Mapped columns not found in CSV: {', '.join(missing)}"
            )

    def normalize_records(
        self,
        rows: Sequence[Dict[str, str]],
        mapping: ColumnMapping
    ) -> Tuple[List[Attendee], List[str]]:
        """
        Normalize every row, collecting a warning for each rejected one.

        Args:
            rows: Raw records in export order
            mapping: Column mapping

        Returns:
            Tuple of (attendees in input order, row-level warnings)
        """
        attendees = []
        errors = []
        skipped_invited = 0

        for i, row in enumerate(rows):
            if self._is_invited(row, mapping):
                skipped_invited += 1
                continue

            attendee = self.normalize_record(row, mapping)
            if attendee is None:
                # Header is row 1, so data rows start at 2
                errors.append(f"Row {i + 2}: Missing or invalid email address")
                continue

            attendees.append(attendee)

        logger.info(
            f"Normalized {len(attendees)} attendees out of {len(rows)} rows "
            f"({len(errors)} invalid, {skipped_invited} invited skipped)"
        )
        return attendees, errors

    def normalize_record(
        self,
        row: Dict[str, str],
        mapping: ColumnMapping
    ) -> Optional[Attendee]:
        """
        Normalize a single row.

        Args:
            row: Raw record keyed by column name
            mapping: Column mapping

        Returns:
            Attendee, or None if the row has no valid email
        """
        email = self._value(row, mapping.email)
        if not email or '@' not in email:
            return None

        if self.replace_email_domain:
            email = self._replace_domain(email)

        has_joined_event = None
        if mapping.has_joined_event:
            raw = self._value(row, mapping.has_joined_event).lower()
            has_joined_event = raw in self.JOINED_VALUES

        return Attendee(
            email=email,
            name=self._value(row, mapping.name),
            phone=self._value(row, mapping.phone),
            registration_date=self._value(row, mapping.registration_date),
            attendance_date=self._value(row, mapping.attendance_date),
            ticket_type=self._value(row, mapping.ticket_type),
            status=self._value(row, mapping.status),
            has_joined_event=has_joined_event
        )

    def _is_invited(self, row: Dict[str, str], mapping: ColumnMapping) -> bool:
        if not mapping.approval_status:
            return False
        status = self._value(row, mapping.approval_status).lower()
        return status == self.EXCLUDED_APPROVAL_STATUS

    def _replace_domain(self, email: str) -> str:
        local_part = email.split('@', 1)[0]
        return f"{local_part}@{self.SANDBOX_EMAIL_DOMAIN}"

    @staticmethod
    def _value(row: Dict[str, str], column: Optional[str]) -> str:
        if not column:
            return ""
        return (row.get(column) or "").strip()
