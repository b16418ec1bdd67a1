"""
Notification Service Module

This module delivers email: it renders templates with Jinja2, sends single
messages through the Resend API and fans a new-post notification out to
every subscriber in a snapshot.

The dispatcher launches every send at once on a thread pool and waits for
all of them up to a deadline. One failed or stuck send never cancels or
blocks the others; each failure becomes an entry in the aggregate result.
Nothing is retried.
"""

from concurrent.futures import ThreadPoolExecutor, wait
from datetime import datetime
from typing import Optional, List, Dict, Any, Union

import requests
from jinja2 import Environment, FileSystemLoader

from config import settings
from data.models import Post, Subscriber
from services.protocols import EmailSender, TemplateRenderer, DeliveryOutcome, NotificationResult
from utils.exceptions import ProviderError
from utils.helpers import build_unsubscribe_url
from utils.logger import get_logger

logger = get_logger(__name__)


class EmailRenderer:
    """Renders the HTML email templates."""

    def __init__(self, template_dir: Optional[str] = None):
        self.template_dir = template_dir or settings.TEMPLATES_DIR
        self.env = Environment(
            loader=FileSystemLoader(self.template_dir),
            autoescape=True,
            trim_blocks=True,
            lstrip_blocks=True,
        )
        self.env.filters["longdate"] = self._longdate_filter

    @staticmethod
    def _longdate_filter(value) -> str:
        if not value:
            return ""
        if isinstance(value, str):
            try:
                value = datetime.fromisoformat(value.replace('Z', '+00:00'))
            except ValueError:
                return value
        return value.strftime("%B %d, %Y").replace(" 0", " ")

    def render(self, template_name: str, **context: Any) -> str:
        context.setdefault('site_name', settings.SITE_NAME)
        context.setdefault('site_url', settings.SITE_URL)
        return self.env.get_template(template_name).render(**context)


class ResendClient:
    """Email provider client for the Resend HTTP API."""

    def __init__(self, api_key: Optional[str] = None, sender: Optional[str] = None,
                 timeout: Optional[int] = None, api_url: Optional[str] = None):
        self.api_key = api_key if api_key is not None else settings.RESEND_API_KEY
        self.sender = sender or settings.EMAIL_FROM
        self.timeout = timeout or settings.EMAIL_SEND_TIMEOUT
        self.api_url = api_url or settings.RESEND_API_URL

    def is_configured(self) -> bool:
        return bool(self.api_key)

    def send(self, to: str, subject: str, html: str) -> Dict[str, Any]:
        """
        Send one HTML email.

        Raises:
            ProviderError: If the API key is missing, the request times out or
                the provider answers with an error.
        """
        if not self.api_key:
            raise ProviderError("RESEND_API_KEY is not configured")

        try:
            response = requests.post(
                self.api_url,
                headers={
                    'Authorization': f"Bearer {self.api_key}",
                    'Content-Type': 'application/json',
                },
                json={'from': self.sender, 'to': [to], 'subject': subject, 'html': html},
                timeout=self.timeout
            )
        except requests.Timeout as e:
            raise ProviderError(f"Email provider timed out after {self.timeout}s") from e
        except requests.RequestException as e:
            raise ProviderError(f"Email provider unreachable: {e}") from e

        try:
            body = response.json()
        except ValueError:
            body = {'message': response.text}

        if response.status_code >= 400:
            message = body.get('message') or body.get('error') or f"HTTP {response.status_code}"
            raise ProviderError(f"Failed to send email: {message}")

        return body


def _post_payload(post: Union[Post, Dict[str, Any]]) -> Dict[str, Any]:
    return post.to_payload() if isinstance(post, Post) else dict(post)


def _subscriber_payload(subscriber: Union[Subscriber, Dict[str, Any], str, None]) -> Dict[str, Any]:
    if isinstance(subscriber, Subscriber):
        return subscriber.to_payload()
    if isinstance(subscriber, str):
        return {'email': subscriber}
    if isinstance(subscriber, dict):
        return dict(subscriber)
    # Malformed entries fail for their own recipient slot
    return {}


class NotificationDispatcher:
    """Fans a new-post notification out to a subscriber snapshot."""

    def __init__(self, sender: EmailSender, renderer: Optional[TemplateRenderer] = None,
                 site_url: Optional[str] = None, max_workers: Optional[int] = None,
                 timeout: Optional[float] = None):
        """
        Initialize the dispatcher.

        Args:
            sender: Provider used for each message.
            renderer: Template renderer (EmailRenderer when omitted).
            site_url: Base URL for post and unsubscribe links.
            max_workers: Upper bound on concurrent sends. Zero or None starts
                one thread per subscriber so every send begins at once.
            timeout: Seconds to wait for the sends before counting the
                unfinished ones as failed.
        """
        self.sender = sender
        self.renderer = renderer or EmailRenderer()
        self.site_url = (site_url or settings.SITE_URL).rstrip('/')
        self.max_workers = max_workers if max_workers is not None else settings.NOTIFICATION_MAX_WORKERS
        self.timeout = timeout or settings.NOTIFICATION_TIMEOUT

    def _send_one(self, post: Dict[str, Any], subscriber: Dict[str, Any]) -> DeliveryOutcome:
        email = subscriber.get('email') or ''
        if not email:
            return DeliveryOutcome(email='', success=False, error="Subscriber entry has no email address")
        try:
            html = self.renderer.render(
                'blog_notification.html',
                post=post,
                subscriber=subscriber,
                post_url=f"{self.site_url}/blog/{post.get('slug', '')}",
                unsubscribe_url=build_unsubscribe_url(self.site_url, email),
            )
            subject = f"{settings.NOTIFICATION_SUBJECT_PREFIX}{post.get('title', '')}"
            self.sender.send(email, subject, html)
            return DeliveryOutcome(email=email, success=True)
        except Exception as e:
            # Any failure belongs to this recipient only
            logger.warning(f"Notification to {email} failed: {e}")
            return DeliveryOutcome(email=email, success=False, error=str(e))

    def dispatch(self, post: Union[Post, Dict[str, Any]],
                 subscribers: List[Union[Subscriber, Dict[str, Any], str]]) -> NotificationResult:
        """
        Send one notification per subscriber and tally the outcomes.

        Args:
            post: The published post (Post or its payload dictionary).
            subscribers: Snapshot of recipients (Subscriber, payload dict or address).

        Returns:
            NotificationResult: successful/failed/total plus one outcome per
            subscriber, in snapshot order. Sends still running when the
            timeout expires are reported as failed.
        """
        payload = _post_payload(post)
        recipients = [_subscriber_payload(subscriber) for subscriber in subscribers]

        if not recipients:
            logger.info(f"No subscribers to notify for '{payload.get('title')}'")
            return NotificationResult(successful=0, failed=0, total=0)

        workers = min(self.max_workers, len(recipients)) if self.max_workers else len(recipients)
        logger.info(f"Sending notification for '{payload.get('title')}' to {len(recipients)} subscribers")

        executor = ThreadPoolExecutor(max_workers=workers)
        try:
            futures = [executor.submit(self._send_one, payload, recipient) for recipient in recipients]
            done, _ = wait(futures, timeout=self.timeout)
        finally:
            # Never block on a send that outlived the timeout
            executor.shutdown(wait=False)

        details = []
        for recipient, future in zip(recipients, futures):
            if future in done:
                details.append(future.result())
                continue
            future.cancel()
            email = recipient.get('email') or ''
            logger.warning(f"Notification to {email} timed out after {self.timeout}s")
            details.append(DeliveryOutcome(email=email, success=False,
                                           error=f"Timed out after {self.timeout}s"))

        successful = sum(1 for outcome in details if outcome.success)
        result = NotificationResult(
            successful=successful,
            failed=len(details) - successful,
            total=len(details),
            details=details,
        )
        logger.info(
            f"Notification for '{payload.get('title')}': "
            f"{result.successful} sent, {result.failed} failed, {result.total} total"
        )
        return result
