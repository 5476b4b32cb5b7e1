"""Unit tests for LumaExportReader."""
import pytest

from importer.luma_export import LumaExportReader
from processor.errors import BatchValidationError


LUMA_CSV = (
    "api_id,name,email,phone_number,created_at,approval_status,checked_in_at,ticket_name,has_joined_event\n"
    "gst-1,Ann Lee,ann@example.org,+15550100,2024-05-01T10:00:00.000Z,approved,,General,Yes\n"
    "gst-2,Bo Chen,bo@example.org,,2024-05-02T11:30:00.000Z,invited,,General,No\n"
)


@pytest.fixture
def reader():
    """Create a LumaExportReader."""
    return LumaExportReader()


class TestRead:
    """Test cases for CSV reading."""

    def test_read_rows(self, reader):
        """Test reading columns and rows in order."""
        columns, rows = reader.read(LUMA_CSV)

        assert columns[:3] == ["api_id", "name", "email"]
        assert len(rows) == 2
        assert rows[0]["email"] == "ann@example.org"
        assert rows[1]["approval_status"] == "invited"

    def test_read_trims_headers_and_skips_blank_lines(self, reader):
        """Test header trimming, BOM removal and blank-line skipping."""
        text = "\ufeff Email , Name \n\na@x.com,Ann\n\nb@x.com\n"

        columns, rows = reader.read(text)

        assert columns == ["Email", "Name"]
        assert rows == [
            {"Email": "a@x.com", "Name": "Ann"},
            {"Email": "b@x.com", "Name": ""},
        ]

    def test_read_quoted_values(self, reader):
        """Test that quoted values with commas stay in one field."""
        columns, rows = reader.read('Email,Name\na@x.com,"Lee, Ann"\n')

        assert rows[0]["Name"] == "Lee, Ann"

    def test_read_empty(self, reader):
        """Test that an empty file yields no columns."""
        assert reader.read("") == ([], [])


class TestSuggestMapping:
    """Test cases for column mapping suggestions."""

    def test_luma_native_columns(self, reader):
        """Test that Luma's own field names are recognized."""
        columns, _ = reader.read(LUMA_CSV)

        mapping = reader.suggest_mapping(columns)

        assert mapping.email == "email"
        assert mapping.name == "name"
        assert mapping.phone == "phone_number"
        assert mapping.registration_date == "created_at"
        assert mapping.ticket_type == "ticket_name"
        assert mapping.approval_status == "approval_status"
        assert mapping.has_joined_event == "has_joined_event"
        assert mapping.attendance_date is None
        assert mapping.status is None

    def test_alternative_columns(self, reader):
        """Test that common alternative names are recognized."""
        mapping = reader.suggest_mapping(
            ["Full Name", "E-mail", "Mobile", "Status", "Ticket", "Checked In", "Registration Date"]
        )

        assert mapping.name == "Full Name"
        assert mapping.email == "E-mail"
        assert mapping.phone == "Mobile"
        assert mapping.status == "Status"
        assert mapping.approval_status == "Status"
        assert mapping.ticket_type == "Ticket"
        assert mapping.attendance_date == "Checked In"
        assert mapping.registration_date == "Registration Date"

    def test_native_name_preferred_over_alternative(self, reader):
        """Test that a first-tier match wins regardless of column order."""
        mapping = reader.suggest_mapping(["phone", "phone_number"])

        assert mapping.phone == "phone_number"

    def test_no_email_column(self, reader):
        """Test that email stays empty when nothing matches."""
        mapping = reader.suggest_mapping(["Name"])

        assert mapping.email == ""
        assert mapping.to_dict() == {"name": "Name"}


class TestExtractEventSettings:
    """Test cases for filename-based settings extraction."""

    def test_luma_filename(self, reader):
        """Test parsing a Luma export file name."""
        settings = reader.extract_event_settings("AI Meetup - Guests - 2024-05-20-18-30-00.csv")

        assert settings.event_name == "AI Meetup"
        assert settings.event_date == "2024-05-20"
        assert settings.event_time == "18:30:00"
        assert settings.combined_event_date == "2024-05-20 18:30:00"

    def test_event_name_with_dashes(self, reader):
        """Test that dashes inside the event name are kept."""
        settings = reader.extract_event_settings(
            "Demo Day - Spring - Guests - 2024-05-20-18-30-00.CSV"
        )

        assert settings.event_name == "Demo Day - Spring"

    def test_unrecognized_filename(self, reader):
        """Test that other file names yield no settings."""
        assert reader.extract_event_settings("guests.csv") is None


class TestPreview:
    """Test cases for export previews."""

    def test_preview(self, reader):
        """Test a full preview of a Luma export."""
        preview = reader.preview(LUMA_CSV, "AI Meetup - Guests - 2024-05-20-18-30-00.csv")
        payload = preview.to_dict()

        assert payload['success'] is True
        assert payload['preview']['totalRows'] == 2
        assert payload['preview']['sampleRow']['email'] == "ann@example.org"
        assert payload['suggestedMapping']['email'] == "email"
        assert payload['suggestedMapping']['phone_number'] == "phone_number"
        assert payload['suggestedMapping']['registrationDate'] == "created_at"
        assert payload['extractedEventSettings'] == {
            'eventName': "AI Meetup",
            'eventDate': "2024-05-20",
            'eventTime': "18:30:00"
        }

    def test_preview_without_settings(self, reader):
        """Test that settings are omitted when the name does not match."""
        payload = reader.preview(LUMA_CSV, "export.csv").to_dict()

        assert 'extractedEventSettings' not in payload

    def test_preview_rejects_non_csv(self, reader):
        """Test that non-CSV uploads are rejected."""
        with pytest.raises(BatchValidationError, match="File must be a CSV file"):
            reader.preview(LUMA_CSV, "guests.xlsx")

    def test_preview_rejects_empty_file(self, reader):
        """Test that a file without columns is rejected."""
        with pytest.raises(BatchValidationError, match="no columns"):
            reader.preview("", "guests.csv")
