"""
Subscription Service Module

This module manages the newsletter subscriber lifecycle:

    absent/inactive --subscribe--> active --unsubscribe--> inactive
    inactive --reactivate--> active

Inactive rows are kept for history. Subscribing an email that already has
a row (active or inactive) is rejected; inactive rows come back only
through reactivate().
"""

from typing import Optional, List

from config import settings
from data.models import Subscriber
from data.protocols import SubscriberStore
from utils.exceptions import ValidationError, DuplicateError, NotFoundError, BlogError
from utils.helpers import is_valid_email
from utils.logger import get_logger

logger = get_logger(__name__)


def normalize_email(email: Optional[str]) -> str:
    return (email or '').strip().lower()


class SubscriptionService:
    """Service for newsletter subscriptions."""

    def __init__(self, subscriber_store: SubscriberStore, email_service=None,
                 send_welcome: Optional[bool] = None):
        """
        Initialize the subscription service.

        Args:
            subscriber_store: Store for subscriber rows.
            email_service: Optional EmailServiceProtocol used for welcome emails.
            send_welcome: Send a welcome email after subscribing (SEND_WELCOME_EMAIL when omitted).
        """
        self.store = subscriber_store
        self.email_service = email_service
        self.send_welcome = settings.SEND_WELCOME_EMAIL if send_welcome is None else send_welcome

    def _checked_email(self, email: Optional[str]) -> str:
        email = normalize_email(email)
        if not is_valid_email(email):
            raise ValidationError("Please enter a valid email address")
        return email

    def is_active(self, email: str) -> bool:
        row = self.store.fetch_subscriber(normalize_email(email))
        return bool(row) and Subscriber.from_row(row).is_active

    def subscribe(self, email: str, name: Optional[str] = None) -> Subscriber:
        """
        Enroll an email address.

        Args:
            email: Address to subscribe.
            name: Optional display name.

        Returns:
            Subscriber: The new active subscriber.

        Raises:
            ValidationError: If the address is malformed.
            DuplicateError: If the address is already subscribed, or was
                unsubscribed and needs reactivate().
        """
        email = self._checked_email(email)

        existing = self.store.fetch_subscriber(email)
        if existing:
            if Subscriber.from_row(existing).is_active:
                raise DuplicateError("This email is already subscribed to our newsletter!")
            raise DuplicateError("This email was unsubscribed; reactivate the subscription instead")

        record = {
            'email': email,
            'name': (name or '').strip() or None,
            'subscription_source': settings.SUBSCRIPTION_SOURCE,
            'is_active': True,
        }
        subscriber = Subscriber.from_row(self.store.insert_subscriber(record))
        logger.info(f"New newsletter subscriber: {email}")

        self._welcome(subscriber)
        return subscriber

    def _welcome(self, subscriber: Subscriber) -> None:
        if not self.send_welcome or self.email_service is None:
            return
        try:
            self.email_service.send_welcome_email(subscriber.email, subscriber.name)
        except BlogError as e:
            logger.warning(f"Welcome email to {subscriber.email} failed: {e}")

    def unsubscribe(self, email: str) -> None:
        """Deactivate a subscription. Absent or inactive emails are a no-op."""
        email = normalize_email(email)
        if not email:
            raise ValidationError("No email address provided")

        row = self.store.fetch_subscriber(email)
        if not row or not Subscriber.from_row(row).is_active:
            logger.info(f"Unsubscribe for {email}: not an active subscriber, nothing to do")
            return

        self.store.set_subscriber_active(email, False)
        logger.info(f"Unsubscribed {email}")

    def reactivate(self, email: str) -> Subscriber:
        """
        Bring an inactive subscription back.

        Raises:
            NotFoundError: If the email has never subscribed.
            DuplicateError: If the subscription is already active.
        """
        email = self._checked_email(email)
        row = self.store.fetch_subscriber(email)
        if not row:
            raise NotFoundError(f"No subscription found for {email}")
        subscriber = Subscriber.from_row(row)
        if subscriber.is_active:
            raise DuplicateError("This email is already subscribed to our newsletter!")

        self.store.set_subscriber_active(email, True)
        subscriber.is_active = True
        logger.info(f"Reactivated subscription for {email}")
        return subscriber

    def get_active_subscribers(self) -> List[Subscriber]:
        """Snapshot of active subscribers."""
        return [Subscriber.from_row(row) for row in self.store.fetch_active_subscribers()]

    def count_active(self) -> int:
        return self.store.count_active_subscribers()
