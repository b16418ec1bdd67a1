"""
Email Dispatch Function

A small Flask application exposing POST /send-email. It accepts a typed
request and relays it to the email provider:

    {"type": "test", "to": ..., "subject": ...}
    {"type": "welcome", "to": ..., "subject": ..., "html": ...}
    {"type": "blog_notification", "blogData": {...}, "subscribers": [...]}

Responses are {"success": true, "data": ...} with HTTP 200, or
{"success": false, "error": ...} with HTTP 400 for handled failures.
CORS preflight requests are answered before any request handling.
"""

from typing import Optional, Dict, Any

from flask import Flask, request, jsonify, make_response
from flask_cors import CORS
from werkzeug.exceptions import HTTPException

from config import settings
from services.notification_service import ResendClient, EmailRenderer, NotificationDispatcher
from services.protocols import EmailSender, TemplateRenderer
from utils.exceptions import BlogError, ProviderError, ValidationError
from utils.helpers import is_valid_email, utc_now
from utils.logger import get_logger

logger = get_logger(__name__)


def _require_recipient(body: Dict[str, Any]) -> str:
    to = (body.get('to') or '').strip()
    if not is_valid_email(to):
        raise ValidationError("A valid 'to' address is required")
    return to


def create_app(sender: Optional[EmailSender] = None, renderer: Optional[TemplateRenderer] = None,
               dispatcher: Optional[NotificationDispatcher] = None) -> Flask:
    """
    Build the email dispatch application.

    Args:
        sender: Email provider (ResendClient when omitted).
        renderer: Template renderer (EmailRenderer when omitted).
        dispatcher: Notification dispatcher (built from sender and renderer when omitted).

    Returns:
        Flask: The configured application.
    """
    sender = sender or ResendClient()
    renderer = renderer or EmailRenderer()
    dispatcher = dispatcher or NotificationDispatcher(sender, renderer=renderer)

    app = Flask(__name__)

    # Permissive CORS for the send-email endpoint, error responses included
    CORS(app,
         resources={r"/send-email": {"origins": settings.CORS_ORIGINS}},
         allow_headers=settings.CORS_ALLOW_HEADERS,
         methods=["POST", "OPTIONS"],
         send_wildcard=True)

    def send_test(body: Dict[str, Any]) -> Any:
        to = _require_recipient(body)
        html = renderer.render('test_email.html', sent_at=utc_now().strftime("%Y-%m-%d %H:%M:%S"))
        return sender.send(to, body.get('subject') or settings.TEST_EMAIL_SUBJECT, html)

    def send_welcome(body: Dict[str, Any]) -> Any:
        to = _require_recipient(body)
        html = body.get('html') or renderer.render('welcome.html', author_name=settings.DEFAULT_AUTHOR_NAME)
        return sender.send(to, body.get('subject') or settings.WELCOME_EMAIL_SUBJECT, html)

    def send_blog_notification(body: Dict[str, Any]) -> Any:
        blog = body.get('blogData')
        subscribers = body.get('subscribers')
        if not isinstance(blog, dict) or not blog.get('title'):
            raise ValidationError("'blogData' with a title is required")
        if not isinstance(subscribers, list):
            raise ValidationError("'subscribers' must be a list")
        malformed = [index for index, entry in enumerate(subscribers) if not isinstance(entry, (dict, str))]
        if malformed:
            raise ValidationError(f"'subscribers' entries must be objects or addresses (bad entries at {malformed})")
        return dispatcher.dispatch(blog, subscribers).to_dict()

    handlers = {
        'test': send_test,
        'welcome': send_welcome,
        'blog_notification': send_blog_notification,
    }

    @app.route('/send-email', methods=['POST', 'OPTIONS'])
    def send_email():
        if request.method == 'OPTIONS':
            return make_response('ok', 200)

        try:
            body = request.get_json(silent=True)
            if not isinstance(body, dict):
                raise ValidationError("Request body must be a JSON object")

            if not sender.is_configured():
                raise ProviderError("RESEND_API_KEY environment variable is not set")

            email_type = body.get('type')
            handler = handlers.get(email_type)
            if handler is None:
                raise ValidationError(f"Unknown email type: {email_type}")

            data = handler(body)
            return jsonify({'success': True, 'data': data}), 200

        except BlogError as e:
            logger.error(f"Error sending email: {e}")
            return jsonify({'success': False, 'error': str(e)}), 400

    @app.errorhandler(Exception)
    def handle_exception(e):
        if isinstance(e, HTTPException):
            return e
        logger.error(f"Unhandled exception in email function: {e}", exc_info=True)
        return jsonify({'success': False, 'error': 'An unexpected error occurred'}), 500

    return app


def run(host: Optional[str] = None, port: Optional[int] = None) -> None:
    """Serve the email function with the Flask development server."""
    app = create_app()
    host = host or settings.EMAIL_FUNCTION_HOST
    port = port or settings.EMAIL_FUNCTION_PORT
    logger.info(f"Email function listening on http://{host}:{port}/send-email")
    app.run(host=host, port=port)


if __name__ == "__main__":
    run()
