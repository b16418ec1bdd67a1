"""
Tests for the Email Dispatch Function

Tests for the Flask /send-email endpoint: CORS preflight, request type
dispatch, provider configuration and error responses.
"""

import pytest
from unittest.mock import MagicMock
import sys
import os

# Add parent directory to path for imports
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from functions.send_email import create_app
from services.notification_service import EmailRenderer, NotificationDispatcher


@pytest.fixture
def make_client():
    """Factory building a test client around a given fake sender."""
    def _make(sender):
        renderer = EmailRenderer()
        dispatcher = NotificationDispatcher(sender, renderer, site_url='https://blog.test')
        app = create_app(sender=sender, renderer=renderer, dispatcher=dispatcher)
        return app.test_client()

    return _make


class TestPreflight:
    PREFLIGHT_HEADERS = {
        'Origin': 'https://blog.test',
        'Access-Control-Request-Method': 'POST',
        'Access-Control-Request-Headers': 'apikey, content-type',
    }

    def test_options_returns_ok_with_cors_headers(self, make_client, email_sender):
        response = make_client(email_sender).options('/send-email', headers=self.PREFLIGHT_HEADERS)

        assert response.status_code == 200
        assert response.get_data(as_text=True) == 'ok'
        assert response.headers['Access-Control-Allow-Origin'] == '*'
        allowed_headers = response.headers['Access-Control-Allow-Headers'].lower()
        assert 'apikey' in allowed_headers
        assert 'content-type' in allowed_headers
        assert 'POST' in response.headers['Access-Control-Allow-Methods']

    def test_preflight_never_reaches_the_provider(self, make_client):
        sender = MagicMock()
        response = make_client(sender).options('/send-email', headers=self.PREFLIGHT_HEADERS)

        assert response.status_code == 200
        sender.is_configured.assert_not_called()
        sender.send.assert_not_called()

    def test_error_responses_carry_cors_origin(self, make_client, email_sender):
        response = make_client(email_sender).post('/send-email', json={'type': 'newsletter'},
                                                  headers={'Origin': 'https://blog.test'})

        assert response.status_code == 400
        assert response.headers['Access-Control-Allow-Origin'] == '*'


class TestRequestHandling:
    """Tests for POST /send-email."""

    def test_test_email(self, make_client, email_sender):
        response = make_client(email_sender).post('/send-email', json={'type': 'test', 'to': 'me@example.com'})

        assert response.status_code == 200
        assert response.get_json()['success'] is True
        assert email_sender.sent[0]['to'] == 'me@example.com'
        assert response.headers['Access-Control-Allow-Origin'] == '*'

    def test_welcome_uses_supplied_html(self, make_client, email_sender):
        response = make_client(email_sender).post('/send-email', json={
            'type': 'welcome', 'to': 'new@example.com', 'subject': 'Welcome!', 'html': '<p>Hi</p>',
        })

        assert response.status_code == 200
        assert email_sender.sent[0] == {'to': 'new@example.com', 'subject': 'Welcome!', 'html': '<p>Hi</p>'}

    def test_blog_notification_reports_partial_failure(self, make_client, email_sender_factory):
        sender = email_sender_factory(failing=['b@x.com'])
        response = make_client(sender).post('/send-email', json={
            'type': 'blog_notification',
            'blogData': {'title': 'Hello Readers', 'slug': 'hello-readers', 'category': 'General'},
            'subscribers': [{'email': 'a@x.com'}, {'email': 'b@x.com'}, {'email': 'c@x.com'}],
        })

        body = response.get_json()
        assert response.status_code == 200
        assert body['success'] is True
        assert (body['data']['successful'], body['data']['failed'], body['data']['total']) == (2, 1, 3)
        assert body['data']['details'][1] == {
            'success': False, 'email': 'b@x.com', 'error': 'Provider rejected b@x.com'
        }

    def test_unknown_type(self, make_client, email_sender):
        response = make_client(email_sender).post('/send-email', json={'type': 'newsletter'})

        assert response.status_code == 400
        assert response.get_json() == {'success': False, 'error': 'Unknown email type: newsletter'}

    def test_missing_provider_key(self, make_client, email_sender_factory):
        sender = email_sender_factory(configured=False)
        response = make_client(sender).post('/send-email', json={'type': 'test', 'to': 'me@example.com'})

        assert response.status_code == 400
        assert 'RESEND_API_KEY' in response.get_json()['error']
        assert sender.attempted == []

    @pytest.mark.parametrize("payload", [
        {'type': 'blog_notification', 'subscribers': []},
        {'type': 'blog_notification', 'blogData': {'title': 'T'}, 'subscribers': 'a@x.com'},
        {'type': 'test', 'to': 'not-an-address'},
    ])
    def test_malformed_requests(self, make_client, email_sender, payload):
        response = make_client(email_sender).post('/send-email', json=payload)

        assert response.status_code == 400
        assert response.get_json()['success'] is False

    @pytest.mark.parametrize("bad_entry", [None, 42, ['a@x.com']])
    def test_malformed_subscriber_entry_is_rejected(self, make_client, email_sender, bad_entry):
        response = make_client(email_sender).post('/send-email', json={
            'type': 'blog_notification',
            'blogData': {'title': 'Hello Readers', 'slug': 'hello-readers'},
            'subscribers': [{'email': 'a@x.com'}, bad_entry, {'email': 'c@x.com'}],
        })

        assert response.status_code == 400
        assert response.get_json()['success'] is False
        assert '[1]' in response.get_json()['error']
        assert email_sender.attempted == []

    def test_non_json_body(self, make_client, email_sender):
        response = make_client(email_sender).post('/send-email', data='plain text', content_type='text/plain')
        assert response.status_code == 400

    def test_unexpected_error_returns_500(self, make_client):
        sender = MagicMock()
        sender.is_configured.return_value = True
        sender.send.side_effect = RuntimeError("socket closed")

        response = make_client(sender).post('/send-email', json={'type': 'test', 'to': 'me@example.com'})

        assert response.status_code == 500
        assert response.get_json() == {'success': False, 'error': 'An unexpected error occurred'}
        assert response.headers['Access-Control-Allow-Origin'] == '*'
