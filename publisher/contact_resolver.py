"""Contact resolver ensuring an Intercom contact exists for an email."""
import logging
from typing import Dict, Optional

from crm.intercom_client import IntercomAPIError, IntercomClient
from processor.models import ContactResolution

logger = logging.getLogger(__name__)


class ContactResolver:
    """
    Creates the contact for an email, or updates it when it already exists.

    Resolution is best effort: ensure_contact never raises. The event
    submission that follows is what decides whether an attendee failed.
    """

    def __init__(self, client: IntercomClient):
        """
        Initialize the resolver.

        Args:
            client: Intercom client bound to the batch's credential set
        """
        self.client = client

    def ensure_contact(
        self,
        email: str,
        name: Optional[str] = None,
        phone: Optional[str] = None
    ) -> ContactResolution:
        """
        Make sure a contact exists for the email.

        Args:
            email: Contact email
            name: Display name, used only if non-empty after trimming
            phone: Phone number, used only if non-empty after trimming

        Returns:
            ContactResolution naming the path taken
        """
        fields = self._contact_fields(name, phone)

        try:
            self.client.create_contact(email, **fields)
            logger.debug(f"Created contact {email}")
            return ContactResolution.CREATED
        except IntercomAPIError as e:
            if e.is_conflict:
                self._update_existing(email, fields)
                return ContactResolution.CONFLICT_RESOLVED
            logger.warning(f"Could not create contact {email}: {e.message}")
            return ContactResolution.RESOLUTION_SKIPPED
        except Exception as e:
            logger.warning(
                f"Could not create contact {email}: {e}",
                extra={'error_type': type(e).__name__}
            )
            return ContactResolution.RESOLUTION_SKIPPED

    def _update_existing(self, email: str, fields: Dict[str, str]) -> None:
        """
        Update name/phone on the contact that caused the conflict.

        Failures are logged only; the conflict already proved the contact
        exists.
        """
        try:
            matches = self.client.search_contacts_by_email(email)
            if not matches:
                logger.info(f"Contact {email} exists but was not found by search")
                return

            if not fields:
                return

            contact_id = matches[0]['id']
            self.client.update_contact(contact_id, fields)
            logger.debug(f"Updated contact {email} ({', '.join(fields)})")
        except Exception as e:
            logger.warning(
                f"Could not update contact {email} with phone/name: {e}"
            )

    @staticmethod
    def _contact_fields(name: Optional[str], phone: Optional[str]) -> Dict[str, str]:
        fields = {}
        if name and name.strip():
            fields['name'] = name.strip()
        if phone and phone.strip():
            fields['phone'] = phone.strip()
        return fields
