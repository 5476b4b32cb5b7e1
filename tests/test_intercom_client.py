"""Unit tests for IntercomClient."""
import json
from unittest.mock import patch

import pytest
import responses
from requests.exceptions import ConnectionError

from crm.credentials import CredentialSet
from crm.intercom_client import IntercomAPIError, IntercomClient

BASE_URL = "https://api.intercom.io"


@pytest.fixture
def client():
    """Create a client with a live test token."""
    return IntercomClient(CredentialSet(token="tok-live", label="live"), max_retries=3)


class TestIntercomClient:
    """Test cases for IntercomClient requests."""

    @responses.activate
    def test_create_contact(self, client):
        """Test contact creation payload and headers."""
        responses.add(
            responses.POST,
            f"{BASE_URL}/contacts",
            json={'type': 'contact', 'id': 'c1', 'email': 'a@x.com'},
            status=200
        )

        result = client.create_contact("a@x.com", name="Ann")

        assert result['id'] == 'c1'
        request = responses.calls[0].request
        assert json.loads(request.body) == {'role': 'user', 'email': 'a@x.com', 'name': 'Ann'}
        assert request.headers['Authorization'] == "Bearer tok-live"
        assert request.headers['Intercom-Version'] == "2.11"
        assert request.headers['Accept'] == "application/json"

    @responses.activate
    def test_search_contacts_by_email(self, client):
        """Test the exact-match email search query."""
        responses.add(
            responses.POST,
            f"{BASE_URL}/contacts/search",
            json={'type': 'list', 'data': [{'id': 'c1'}, {'id': 'c2'}]},
            status=200
        )

        matches = client.search_contacts_by_email("a@x.com")

        assert [m['id'] for m in matches] == ['c1', 'c2']
        body = json.loads(responses.calls[0].request.body)
        assert body['query']['value'] == [
            {'field': 'email', 'operator': '=', 'value': 'a@x.com'}
        ]

    @responses.activate
    def test_search_without_data(self, client):
        """Test that a search response without data yields no matches."""
        responses.add(responses.POST, f"{BASE_URL}/contacts/search", json={'type': 'list'}, status=200)

        assert client.search_contacts_by_email("a@x.com") == []

    @responses.activate
    def test_update_contact(self, client):
        """Test partial contact update."""
        responses.add(responses.PUT, f"{BASE_URL}/contacts/c1", json={'id': 'c1'}, status=200)

        client.update_contact("c1", {'phone': '555'})

        assert json.loads(responses.calls[0].request.body) == {'phone': '555'}

    @responses.activate
    def test_create_event_with_metadata(self, client):
        """Test event payload including metadata and an empty 202 response."""
        responses.add(responses.POST, f"{BASE_URL}/events", status=202)

        result = client.create_event(
            event_name="attended-event",
            created_at=1705312800,
            email="a@x.com",
            metadata={'event_name': 'Meetup'}
        )

        assert result == {}
        assert json.loads(responses.calls[0].request.body) == {
            'event_name': 'attended-event',
            'created_at': 1705312800,
            'email': 'a@x.com',
            'metadata': {'event_name': 'Meetup'}
        }

    @responses.activate
    def test_create_event_omits_empty_metadata(self, client):
        """Test that empty metadata is not sent."""
        responses.add(responses.POST, f"{BASE_URL}/events", status=202)

        client.create_event("registered-for-event", 1705312800, "a@x.com", metadata={})

        assert 'metadata' not in json.loads(responses.calls[0].request.body)

    def test_custom_base_url(self):
        """Test that a trailing slash on the base URL is dropped."""
        client = IntercomClient(
            CredentialSet(token="t", label="live"),
            base_url="https://api.eu.intercom.io/"
        )

        assert client.base_url == "https://api.eu.intercom.io"


class TestIntercomErrors:
    """Test cases for error responses."""

    @responses.activate
    def test_conflict_error(self, client):
        """Test that an error list response becomes a conflict IntercomAPIError."""
        responses.add(
            responses.POST,
            f"{BASE_URL}/contacts",
            json={
                'type': 'error.list',
                'request_id': 'req-123',
                'errors': [
                    {'code': 'conflict', 'message': 'A contact matching those details already exists with id=abc'}
                ]
            },
            status=409
        )

        with pytest.raises(IntercomAPIError) as exc_info:
            client.create_contact("a@x.com")

        error = exc_info.value
        assert error.status_code == 409
        assert error.is_conflict is True
        assert error.request_id == 'req-123'
        assert error.describe() == (
            "Intercom API error (409): A contact matching those details already "
            "exists with id=abc Request ID: req-123"
        )

    @responses.activate
    def test_multiple_field_errors_joined(self, client):
        """Test that several error messages are joined with commas."""
        responses.add(
            responses.POST,
            f"{BASE_URL}/events",
            json={
                'type': 'error.list',
                'errors': [
                    {'code': 'parameter_invalid', 'message': 'metadata invalid'},
                    {'code': 'parameter_invalid', 'message': 'created_at invalid'}
                ]
            },
            status=400
        )

        with pytest.raises(IntercomAPIError) as exc_info:
            client.create_event("attended-event", 1, "a@x.com")

        assert exc_info.value.is_conflict is False
        assert exc_info.value.describe() == (
            "Intercom API error (400): metadata invalid, created_at invalid"
        )

    @responses.activate
    def test_non_json_error_body(self, client):
        """Test that a plain-text error body becomes the message."""
        responses.add(responses.POST, f"{BASE_URL}/events", body="Server Error", status=500)

        with pytest.raises(IntercomAPIError) as exc_info:
            client.create_event("attended-event", 1, "a@x.com")

        assert exc_info.value.describe() == "Intercom API error (500): Server Error"

    @responses.activate
    def test_transport_error_propagates(self, client):
        """Test that connection failures are raised as requests exceptions."""
        responses.add(
            responses.POST,
            f"{BASE_URL}/events",
            body=ConnectionError("connection refused")
        )

        with pytest.raises(ConnectionError):
            client.create_event("attended-event", 1, "a@x.com")


class TestRateLimitRetry:
    """Test cases for 429 handling."""

    @responses.activate
    @patch('crm.intercom_client.time.sleep')
    def test_retry_after_rate_limit(self, mock_sleep, client):
        """Test that a 429 is retried with backoff and then succeeds."""
        responses.add(responses.POST, f"{BASE_URL}/events", json={'errors': []}, status=429)
        responses.add(responses.POST, f"{BASE_URL}/events", status=202)

        client.create_event("attended-event", 1, "a@x.com")

        assert len(responses.calls) == 2
        mock_sleep.assert_called_once_with(1)

    @responses.activate
    @patch('crm.intercom_client.time.sleep')
    def test_rate_limit_exhausted(self, mock_sleep, client):
        """Test that persistent 429s raise after max_retries attempts."""
        for _ in range(3):
            responses.add(
                responses.POST,
                f"{BASE_URL}/events",
                json={'type': 'error.list', 'errors': [{'code': 'rate_limit_exceeded', 'message': 'Rate limit exceeded'}]},
                status=429
            )

        with pytest.raises(IntercomAPIError) as exc_info:
            client.create_event("attended-event", 1, "a@x.com")

        assert exc_info.value.status_code == 429
        assert len(responses.calls) == 3
        assert [c.args[0] for c in mock_sleep.call_args_list] == [1, 2]

    @responses.activate
    def test_server_error_not_retried(self, client):
        """Test that non-429 errors fail on the first attempt."""
        responses.add(responses.POST, f"{BASE_URL}/events", body="Server Error", status=500)

        with pytest.raises(IntercomAPIError):
            client.create_event("attended-event", 1, "a@x.com")

        assert len(responses.calls) == 1
