"""Reader for Luma guest-list CSV exports."""
import csv
import logging
import re
from dataclasses import dataclass
from io import StringIO
from typing import Dict, List, Optional, Sequence, Tuple

from processor.errors import BatchValidationError
from processor.models import ColumnMapping, EventSettings

logger = logging.getLogger(__name__)


@dataclass
class ExportPreview:
    """Summary of an export shown before the caller picks a mapping."""
    columns: List[str]
    sample_row: Dict[str, str]
    total_rows: int
    suggested_mapping: ColumnMapping
    event_settings: Optional[EventSettings] = None

    def to_dict(self) -> Dict[str, object]:
        payload = {
            'success': True,
            'preview': {
                'columns': self.columns,
                'sampleRow': self.sample_row,
                'totalRows': self.total_rows
            },
            'suggestedMapping': self.suggested_mapping.to_dict()
        }
        if self.event_settings is not None:
            payload['extractedEventSettings'] = self.event_settings.to_dict()
        return payload


# Candidate column names per mapping field, normalized (lowercase, no
# whitespace). Each tier is searched across all columns before the next one;
# the first tier holds Luma's own field names.
COLUMN_CANDIDATES: Dict[str, Sequence[Sequence[str]]] = {
    'email': (
        ('email',),
        ('e-mail', 'emailaddress', 'e_mail'),
    ),
    'name': (
        ('name',),
        ('fullname', 'full_name', 'attendeename', 'attendee_name'),
    ),
    'phone': (
        ('phone_number', 'phonenumber'),
        ('phone', 'phonenum', 'mobile', 'telephone'),
    ),
    'registration_date': (
        ('created_at', 'createdat'),
        ('registrationdate', 'registration_date', 'registered'),
    ),
    'attendance_date': (
        ('attendancedate', 'attendance_date', 'attended', 'checkedin'),
    ),
    'ticket_type': (
        ('ticket_name', 'ticketname'),
        ('tickettype', 'ticket_type', 'ticket'),
    ),
    'approval_status': (
        ('approval_status', 'approvalstatus'),
        ('approval', 'status'),
    ),
    'status': (
        ('status',),
    ),
    'has_joined_event': (
        ('has_joined_event', 'hasjoinedevent'),
        ('joined', 'attended'),
    ),
}


class LumaExportReader:
    """Reads Luma CSV exports and suggests how to map their columns."""

    FILENAME_PATTERN = re.compile(
        r'^(.+?)\s*-\s*Guests\s*-\s*(\d{4})-(\d{2})-(\d{2})-(\d{2})-(\d{2})-(\d{2})$'
    )

    def read(self, text: str) -> Tuple[List[str], List[Dict[str, str]]]:
        """
        Parse CSV text into column names and string-keyed rows.

        Args:
            text: Full CSV content

        Returns:
            Tuple of (trimmed column names, rows in file order)
        """
        if text.startswith('\ufeff'):
            text = text[1:]

        reader = csv.reader(StringIO(text))
        header = next(reader, None)
        if not header:
            return [], []

        columns = [column.strip() for column in header]
        rows = []
        for values in reader:
            if not values:
                continue
            row = {}
            for i, column in enumerate(columns):
                row[column] = values[i] if i < len(values) else ""
            rows.append(row)

        logger.info(f"Read {len(rows)} rows with {len(columns)} columns")
        return columns, rows

    def preview(self, text: str, filename: str) -> ExportPreview:
        """
        Build a preview of an export.

        Args:
            text: Full CSV content
            filename: Uploaded file name

        Returns:
            ExportPreview

        Raises:
            BatchValidationError: If the file is not a CSV or has no columns
        """
        self.validate_filename(filename)

        columns, rows = self.read(text)
        if not columns:
            raise BatchValidationError("CSV file appears to have no columns")

        return ExportPreview(
            columns=columns,
            sample_row=rows[0] if rows else {},
            total_rows=len(rows),
            suggested_mapping=self.suggest_mapping(columns),
            event_settings=self.extract_event_settings(filename)
        )

    def validate_filename(self, filename: str) -> None:
        """
        Reject uploads that are not CSV files.

        Raises:
            BatchValidationError: If the name does not end in .csv
        """
        if not filename or not filename.endswith('.csv'):
            raise BatchValidationError("File must be a CSV file")

    def suggest_mapping(self, columns: Sequence[str]) -> ColumnMapping:
        """
        Guess a column mapping from column names.

        Args:
            columns: Column names as they appear in the export

        Returns:
            ColumnMapping (email is "" when no candidate was found)
        """
        normalized = [(column, self.normalize_column_name(column)) for column in columns]
        values = {}

        for attr, tiers in COLUMN_CANDIDATES.items():
            match = self._find_column(normalized, tiers)
            if match:
                values[attr] = match

        mapping = ColumnMapping(**values)
        logger.info(f"Suggested mapping: {mapping.to_dict()}")
        return mapping

    def extract_event_settings(self, filename: str) -> Optional[EventSettings]:
        """
        Extract event name, date and time from a Luma export file name.

        Expected format: "Event Name - Guests - YYYY-MM-DD-HH-MM-SS.csv"

        Args:
            filename: Uploaded file name

        Returns:
            EventSettings, or None if the name does not match
        """
        stem = re.sub(r'\.csv$', '', filename, flags=re.IGNORECASE)
        match = self.FILENAME_PATTERN.match(stem)
        if not match:
            return None

        event_name, year, month, day, hour, minute, second = match.groups()
        return EventSettings(
            event_name=event_name.strip(),
            event_date=f"{year}-{month}-{day}",
            event_time=f"{hour}:{minute}:{second}"
        )

    @staticmethod
    def normalize_column_name(column: str) -> str:
        """Lowercase a column name and drop all whitespace."""
        return re.sub(r'\s+', '', column.lower().strip())

    @staticmethod
    def _find_column(
        normalized: List[Tuple[str, str]],
        tiers: Sequence[Sequence[str]]
    ) -> Optional[str]:
        for candidates in tiers:
            for original, name in normalized:
                if name in candidates:
                    return original
        return None
