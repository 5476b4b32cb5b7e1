"""Event publisher submitting one DomainEvent to Intercom."""
import logging
import time
from typing import Optional

from crm.intercom_client import IntercomAPIError, IntercomClient
from processor.models import DomainEvent, PublishOutcome
from publisher.contact_resolver import ContactResolver

logger = logging.getLogger(__name__)


class EventPublisher:
    """Publishes events after making sure their contact exists."""

    DEFAULT_SETTLE_DELAY = 0.2  # seconds

    def __init__(
        self,
        client: IntercomClient,
        resolver: Optional[ContactResolver] = None,
        settle_delay: float = DEFAULT_SETTLE_DELAY
    ):
        """
        Initialize the publisher.

        Args:
            client: Intercom client bound to the batch's credential set
            resolver: Contact resolver (defaults to one using the same client)
            settle_delay: Pause between contact creation and event submission
                so a new contact is visible to the events endpoint
        """
        self.client = client
        self.resolver = resolver or ContactResolver(client)
        self.settle_delay = settle_delay

    def publish(self, event: DomainEvent) -> PublishOutcome:
        """
        Publish a single event. Never raises.

        Args:
            event: Event to publish

        Returns:
            PublishOutcome describing success or the failure reason
        """
        resolution = None
        try:
            resolution = self.resolver.ensure_contact(event.email, event.name, event.phone)

            if self.settle_delay > 0:
                time.sleep(self.settle_delay)

            self.client.create_event(
                event_name=event.event_name,
                created_at=event.occurred_at,
                email=event.email,
                metadata=event.clean_metadata()
            )

            logger.info(f"Published {event.event_name} for {event.email}")
            return PublishOutcome(
                success=True,
                email=event.email,
                event_kind=event.kind,
                contact_resolution=resolution
            )

        except IntercomAPIError as e:
            error_message = e.describe()
        except Exception as e:
            error_message = str(e) or "Unknown error"

        logger.warning(
            f"Failed to publish {event.event_name} for {event.email}: {error_message}"
        )
        return PublishOutcome(
            success=False,
            email=event.email,
            event_kind=event.kind,
            error=error_message,
            contact_resolution=resolution
        )
