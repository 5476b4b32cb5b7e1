"""Minimal Intercom REST client for contacts and data events."""
import logging
import time
from typing import Any, Dict, List, Optional

import requests

from crm.credentials import CredentialSet

logger = logging.getLogger(__name__)

CONFLICT_STATUS_CODES = (409, 422)


class IntercomAPIError(Exception):
    """Non-2xx response from the Intercom API."""

    def __init__(
        self,
        status_code: int,
        message: str,
        messages: Optional[List[str]] = None,
        request_id: Optional[str] = None,
        body: Any = None
    ):
        super().__init__(message)
        self.status_code = status_code
        self.message = message
        self.messages = messages or []
        self.request_id = request_id
        self.body = body

    @property
    def is_conflict(self) -> bool:
        """True when Intercom says the resource already exists."""
        return self.status_code in CONFLICT_STATUS_CODES

    def describe(self) -> str:
        """
        Human-readable summary for a failed publish.

        Returns:
            "Intercom API error (<status>): <details>[ Request ID: <id>]"
        """
        details = ", ".join(self.messages) if self.messages else self.message
        text = f"Intercom API error ({self.status_code}): {details}"
        if self.request_id:
            text += f" Request ID: {self.request_id}"
        return text


class IntercomClient:
    """Client for the Intercom contacts and events endpoints."""

    BASE_URL = "https://api.intercom.io"
    API_VERSION = "2.11"
    BASE_RETRY_DELAY = 1  # seconds

    def __init__(
        self,
        credentials: CredentialSet,
        base_url: str = BASE_URL,
        api_version: str = API_VERSION,
        timeout: int = 30,
        max_retries: int = 3
    ):
        """
        Initialize the client.

        Args:
            credentials: Credential set selected for this batch
            base_url: API host (regional workspaces use their own host)
            api_version: Value of the Intercom-Version header
            timeout: HTTP request timeout in seconds
            max_retries: Attempts per call when rate limited (HTTP 429)
        """
        self.credentials = credentials
        self.base_url = base_url.rstrip('/')
        self.timeout = timeout
        self.max_retries = max(1, max_retries)
        self.session = requests.Session()
        self.session.headers.update({
            'Authorization': f"Bearer {credentials.token}",
            'Accept': 'application/json',
            'Content-Type': 'application/json',
            'Intercom-Version': api_version
        })

    def create_contact(
        self,
        email: str,
        name: Optional[str] = None,
        phone: Optional[str] = None
    ) -> Dict[str, Any]:
        """
        Create a user contact.

        Raises:
            IntercomAPIError: 409/422 when the contact already exists
        """
        payload = {'role': 'user', 'email': email}
        if name:
            payload['name'] = name
        if phone:
            payload['phone'] = phone
        return self._request('POST', '/contacts', payload)

    def search_contacts_by_email(self, email: str) -> List[Dict[str, Any]]:
        """
        Find contacts whose email matches exactly.

        Args:
            email: Email address to look up

        Returns:
            Matching contacts (possibly empty)
        """
        payload = {
            'query': {
                'operator': 'AND',
                'value': [
                    {'field': 'email', 'operator': '=', 'value': email}
                ]
            }
        }
        result = self._request('POST', '/contacts/search', payload)
        return result.get('data') or []

    def update_contact(self, contact_id: str, fields: Dict[str, str]) -> Dict[str, Any]:
        """Update the given fields of an existing contact."""
        return self._request('PUT', f"/contacts/{contact_id}", fields)

    def create_event(
        self,
        event_name: str,
        created_at: int,
        email: str,
        metadata: Optional[Dict[str, str]] = None
    ) -> Dict[str, Any]:
        """
        Submit a data event for the contact with the given email.

        Args:
            event_name: Intercom event name
            created_at: Unix timestamp in seconds
            email: Contact email
            metadata: Flat string metadata; omitted when empty
        """
        payload = {
            'event_name': event_name,
            'created_at': created_at,
            'email': email
        }
        if metadata:
            payload['metadata'] = metadata
        return self._request('POST', '/events', payload)

    def _request(
        self,
        method: str,
        path: str,
        payload: Optional[Dict[str, Any]] = None
    ) -> Dict[str, Any]:
        """
        Send a request, backing off and retrying while rate limited.

        Raises:
            IntercomAPIError: On a non-2xx response
            requests.RequestException: On transport failures
        """
        url = f"{self.base_url}/{path.lstrip('/')}"

        for attempt in range(self.max_retries):
            response = self.session.request(
                method,
                url,
                json=payload,
                timeout=self.timeout
            )

            if response.status_code == 429 and attempt < self.max_retries - 1:
                delay = self.BASE_RETRY_DELAY * (2 ** attempt)
                logger.warning(
                    f"Rate limited on {method} {path} "
                    f"(attempt {attempt + 1}/{self.max_retries}). "
                    f"Retrying in {delay} seconds..."
                )
                time.sleep(delay)
                continue

            if not response.ok:
                raise self._build_error(response)

            if not response.content:
                return {}
            try:
                return response.json()
            except ValueError:
                return {}

        # Unreachable: the last attempt always returns or raises
        raise IntercomAPIError(429, "Rate limit exceeded")

    @staticmethod
    def _build_error(response: requests.Response) -> IntercomAPIError:
        try:
            body = response.json()
        except ValueError:
            body = None

        messages = []
        request_id = None
        message = response.reason or f"HTTP {response.status_code}"
        if isinstance(body, dict):
            messages = [
                error.get('message', '') for error in body.get('errors') or []
                if isinstance(error, dict) and error.get('message')
            ]
            request_id = body.get('request_id')
            message = body.get('message') or message
        elif response.text:
            message = response.text

        return IntercomAPIError(
            status_code=response.status_code,
            message=message,
            messages=messages,
            request_id=request_id,
            body=body
        )
