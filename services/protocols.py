"""
Service Protocol Definitions

This module defines typing.Protocol interfaces for services used in the blog
application. These protocols enable loose coupling, dependency injection, and easier testing.

Protocols defined:
- EmailSender: Interface for a single-message email provider (Resend)
- EmailServiceProtocol: Interface for the client of the email dispatch function
- TemplateRenderer: Interface for rendering email bodies
"""

from typing import Protocol, Optional, List, Dict, Any
from dataclasses import dataclass, field


@dataclass
class DeliveryOutcome:
    """Result of one notification send."""
    email: str
    success: bool
    error: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        outcome = {'success': self.success, 'email': self.email}
        if self.error is not None:
            outcome['error'] = self.error
        return outcome


@dataclass
class NotificationResult:
    """Aggregate result of a notification fan-out."""
    successful: int
    failed: int
    total: int
    details: List[DeliveryOutcome] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            'successful': self.successful,
            'failed': self.failed,
            'total': self.total,
            'details': [outcome.to_dict() for outcome in self.details],
        }


class EmailSender(Protocol):
    """Protocol defining the interface for an email provider.

    Implementations send exactly one message per call and raise on failure.
    """

    def is_configured(self) -> bool:
        """Whether provider credentials are present."""
        ...

    def send(self, to: str, subject: str, html: str) -> Dict[str, Any]:
        """Send one HTML email.

        Args:
            to: Recipient address.
            subject: Subject line.
            html: Rendered HTML body.

        Returns:
            The provider's response body.

        Raises:
            ProviderError: If the provider rejects the message or does not answer.
        """
        ...


class TemplateRenderer(Protocol):
    """Protocol defining the interface for email body rendering."""

    def render(self, template_name: str, **context: Any) -> str:
        """Render a named template with the given context."""
        ...


class EmailServiceProtocol(Protocol):
    """Protocol defining the interface for the email dispatch function client.

    Implementations should provide methods for:
    - Sending a test email to one address
    - Sending the welcome email to a new subscriber
    - Announcing a newly published post to all active subscribers
    """

    def send_test_email(self, to: str) -> Dict[str, Any]:
        """Send a test email. Raises ProviderError on failure."""
        ...

    def send_welcome_email(self, to: str, name: Optional[str] = None) -> Dict[str, Any]:
        """Send the welcome email. Raises ProviderError on failure."""
        ...

    def send_new_post_notification(self, post: Any, subscribers: List[Any]) -> NotificationResult:
        """Request the notification fan-out for a post.

        Returns:
            The per-subscriber outcome reported by the dispatch function.
        """
        ...
