"""
Email Service Module

This module is the application's client for the email dispatch function.
It posts typed requests (test, welcome, blog_notification) over HTTP and
records each attempt in the email log.
"""

from typing import Optional, List, Dict, Any, Union

import requests

from config import settings
from data.models import Post, Subscriber
from data.protocols import EmailLogStore
from services.protocols import TemplateRenderer, DeliveryOutcome, NotificationResult
from services.notification_service import EmailRenderer
from utils.exceptions import ProviderError, ValidationError
from utils.helpers import is_valid_email, build_unsubscribe_url, utc_now
from utils.logger import get_logger

logger = get_logger(__name__)


class EmailService:
    """Client for the email dispatch function."""

    def __init__(self, function_url: Optional[str] = None, function_key: Optional[str] = None,
                 timeout: Optional[int] = None, renderer: Optional[TemplateRenderer] = None,
                 log_store: Optional[EmailLogStore] = None):
        """
        Initialize the email service.

        Args:
            function_url: URL of the dispatch function's send-email endpoint.
            function_key: Bearer key for the function.
            timeout: Seconds to wait for the function to answer.
            renderer: Template renderer for the welcome email.
            log_store: Store for the email attempt log; logging is skipped when omitted.
        """
        self.function_url = function_url or settings.EMAIL_FUNCTION_URL
        self.function_key = function_key if function_key is not None else settings.EMAIL_FUNCTION_KEY
        self.timeout = timeout or settings.EMAIL_FUNCTION_TIMEOUT
        self.renderer = renderer or EmailRenderer()
        self.log_store = log_store

    def _invoke(self, body: Dict[str, Any]) -> Any:
        """
        Post one request to the dispatch function.

        Returns:
            The function's ``data`` field.

        Raises:
            ProviderError: If the function is unreachable or reports failure.
        """
        if not self.function_url:
            raise ProviderError("EMAIL_FUNCTION_URL is not configured")

        headers = {'Content-Type': 'application/json'}
        if self.function_key:
            headers['Authorization'] = f"Bearer {self.function_key}"
            headers['apikey'] = self.function_key

        try:
            response = requests.post(self.function_url, json=body, headers=headers, timeout=self.timeout)
        except requests.RequestException as e:
            raise ProviderError(f"Email function unreachable: {e}") from e

        try:
            result = response.json()
        except ValueError as e:
            raise ProviderError(f"Email function returned invalid JSON (HTTP {response.status_code})") from e

        if not response.ok or not result.get('success'):
            raise ProviderError(result.get('error') or f"Email function failed with HTTP {response.status_code}")

        return result.get('data')

    def send_test_email(self, to: str) -> Dict[str, Any]:
        """Send a test email to one address."""
        if not is_valid_email(to):
            raise ValidationError("Please enter a valid email address")

        subject = settings.TEST_EMAIL_SUBJECT
        logger.info(f"Sending test email to {to}")
        try:
            data = self._invoke({'type': 'test', 'to': to, 'subject': subject})
        except ProviderError:
            self.log_email_attempt('test', to, subject, status='failed')
            raise

        self.log_email_attempt('test', to, subject)
        logger.info(f"Test email sent to {to}")
        return {
            'success': True,
            'message': 'Test email sent successfully! Check your inbox.',
            'data': data,
        }

    def send_welcome_email(self, to: str, name: Optional[str] = None) -> Any:
        """Render and send the welcome email to a new subscriber."""
        subject = settings.WELCOME_EMAIL_SUBJECT
        html = self.renderer.render(
            'welcome.html',
            name=name,
            author_name=settings.DEFAULT_AUTHOR_NAME,
            unsubscribe_url=build_unsubscribe_url(settings.SITE_URL, to),
        )

        logger.info(f"Sending welcome email to {to}")
        try:
            data = self._invoke({'type': 'welcome', 'to': to, 'subject': subject, 'html': html})
        except ProviderError:
            self.log_email_attempt('welcome', to, subject, status='failed')
            raise

        self.log_email_attempt('welcome', to, subject)
        return data

    def send_new_post_notification(self, post: Post,
                                   subscribers: List[Union[Subscriber, Dict[str, Any]]]) -> NotificationResult:
        """
        Ask the dispatch function to notify every subscriber about a post.

        Returns:
            NotificationResult: The per-subscriber tally reported by the function.

        Raises:
            ProviderError: If the function call itself fails.
        """
        recipients = [s.to_payload() if isinstance(s, Subscriber) else dict(s) for s in subscribers]
        if not recipients:
            logger.info(f"No active subscribers; skipping notification for '{post.title}'")
            return NotificationResult(successful=0, failed=0, total=0)

        logger.info(f"Sending blog notification '{post.title}' to {len(recipients)} subscribers")
        data = self._invoke({
            'type': 'blog_notification',
            'blogData': post.to_payload(),
            'subscribers': recipients,
        }) or {}

        details = [
            DeliveryOutcome(email=item.get('email', ''), success=bool(item.get('success')), error=item.get('error'))
            for item in data.get('details', [])
        ]
        result = NotificationResult(
            successful=int(data.get('successful', 0)),
            failed=int(data.get('failed', 0)),
            total=int(data.get('total', len(recipients))),
            details=details,
        )

        subject = f"{settings.NOTIFICATION_SUBJECT_PREFIX}{post.title}"
        for outcome in details:
            self.log_email_attempt('blog_notification', outcome.email, subject,
                                   status='sent' if outcome.success else 'failed')

        logger.info(f"Blog notification result: {result.successful} sent, {result.failed} failed, {result.total} total")
        return result

    def log_email_attempt(self, email_type: str, recipient: str, subject: str, status: str = 'sent') -> None:
        """Record an email attempt. Failures are logged, never raised."""
        if self.log_store is None:
            return
        try:
            self.log_store.insert_email_log({
                'email_type': email_type,
                'recipient_email': recipient,
                'subject': subject,
                'status': status,
                'sent_at': utc_now(),
            })
        except Exception as e:
            logger.error(f"Failed to log email attempt for {recipient}: {e}")
