"""
Tests for EmailService

Tests for the email dispatch function client: request bodies, error
handling, and the email attempt log.
"""

import pytest
from unittest.mock import MagicMock, patch
import requests
import sys
import os

# Add parent directory to path for imports
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from data.models import Post, Subscriber
from services.email_service import EmailService
from utils.exceptions import ProviderError, ValidationError


@pytest.fixture
def email_service(blog_store):
    renderer = MagicMock()
    renderer.render.return_value = '<p>welcome</p>'
    return EmailService(
        function_url='https://functions.test/send-email',
        function_key='fn-key',
        timeout=15,
        renderer=renderer,
        log_store=blog_store,
    )


@pytest.fixture
def post():
    return Post(id='p1', title='Hello Readers', slug='hello-readers', content='x' * 150, category='General')


class TestSendTestEmail:
    """Tests for send_test_email()."""

    def test_success(self, email_service, blog_store, mock_http_response):
        with patch('services.email_service.requests.post') as mock_post:
            mock_post.return_value = mock_http_response(200, json_data={'success': True, 'data': {'id': 'm1'}})
            result = email_service.send_test_email('me@example.com')

        assert result['success'] is True
        assert result['message'] == 'Test email sent successfully! Check your inbox.'
        assert result['data'] == {'id': 'm1'}

        args, kwargs = mock_post.call_args
        assert args[0] == 'https://functions.test/send-email'
        assert kwargs['json']['type'] == 'test'
        assert kwargs['json']['to'] == 'me@example.com'
        assert kwargs['headers']['Authorization'] == 'Bearer fn-key'
        assert kwargs['headers']['apikey'] == 'fn-key'
        assert kwargs['timeout'] == 15

        assert blog_store.email_logs[0]['email_type'] == 'test'
        assert blog_store.email_logs[0]['status'] == 'sent'

    def test_invalid_address(self, email_service):
        with patch('services.email_service.requests.post') as mock_post:
            with pytest.raises(ValidationError):
                email_service.send_test_email('nope')
            mock_post.assert_not_called()

    def test_function_reports_failure(self, email_service, blog_store, mock_http_response):
        with patch('services.email_service.requests.post') as mock_post:
            mock_post.return_value = mock_http_response(
                400, json_data={'success': False, 'error': 'RESEND_API_KEY environment variable is not set'}
            )
            with pytest.raises(ProviderError, match='RESEND_API_KEY'):
                email_service.send_test_email('me@example.com')

        assert blog_store.email_logs[0]['status'] == 'failed'

    def test_function_unreachable(self, email_service):
        with patch('services.email_service.requests.post') as mock_post:
            mock_post.side_effect = requests.ConnectionError("refused")
            with pytest.raises(ProviderError, match='unreachable'):
                email_service.send_test_email('me@example.com')

    def test_invalid_json(self, email_service, mock_http_response):
        with patch('services.email_service.requests.post') as mock_post:
            mock_post.return_value = mock_http_response(502, text='Bad Gateway')
            with pytest.raises(ProviderError, match='invalid JSON'):
                email_service.send_test_email('me@example.com')

    def test_missing_function_url(self, blog_store):
        service = EmailService(function_url='', renderer=MagicMock(), log_store=blog_store)
        service.function_url = ''
        with pytest.raises(ProviderError):
            service.send_test_email('me@example.com')


class TestWelcomeEmail:
    def test_renders_and_sends_html(self, email_service, mock_http_response):
        with patch('services.email_service.requests.post') as mock_post:
            mock_post.return_value = mock_http_response(200, json_data={'success': True, 'data': {}})
            email_service.send_welcome_email('new@example.com', 'Nia')

        body = mock_post.call_args[1]['json']
        assert body['type'] == 'welcome'
        assert body['html'] == '<p>welcome</p>'
        render_kwargs = email_service.renderer.render.call_args[1]
        assert render_kwargs['name'] == 'Nia'
        assert 'new%40example.com' in render_kwargs['unsubscribe_url']


class TestNewPostNotification:
    """Tests for send_new_post_notification()."""

    def test_result_and_per_recipient_log(self, email_service, blog_store, post, mock_http_response):
        data = {
            'successful': 2, 'failed': 1, 'total': 3,
            'details': [
                {'success': True, 'email': 'a@x.com'},
                {'success': False, 'email': 'b@x.com', 'error': 'rejected'},
                {'success': True, 'email': 'c@x.com'},
            ],
        }
        subscribers = [Subscriber(id='1', email='a@x.com'), {'email': 'b@x.com'}, {'email': 'c@x.com'}]

        with patch('services.email_service.requests.post') as mock_post:
            mock_post.return_value = mock_http_response(200, json_data={'success': True, 'data': data})
            result = email_service.send_new_post_notification(post, subscribers)

        body = mock_post.call_args[1]['json']
        assert body['type'] == 'blog_notification'
        assert body['blogData']['title'] == 'Hello Readers'
        assert [s['email'] for s in body['subscribers']] == ['a@x.com', 'b@x.com', 'c@x.com']

        assert (result.successful, result.failed, result.total) == (2, 1, 3)
        assert result.details[1].error == 'rejected'
        assert [log['status'] for log in blog_store.email_logs] == ['sent', 'failed', 'sent']

    def test_no_subscribers_skips_call(self, email_service, post):
        with patch('services.email_service.requests.post') as mock_post:
            result = email_service.send_new_post_notification(post, [])

        mock_post.assert_not_called()
        assert (result.successful, result.failed, result.total) == (0, 0, 0)


class TestEmailLog:
    def test_log_failure_never_raises(self, email_service, blog_store, capture_logs):
        blog_store.failures['insert_email_log'] = RuntimeError("log table missing")

        email_service.log_email_attempt('test', 'me@example.com', 'Subject')

        assert any('Failed to log email attempt' in record.getMessage() for record in capture_logs)

    def test_no_log_store(self):
        service = EmailService(function_url='https://functions.test', renderer=MagicMock())
        service.log_email_attempt('test', 'me@example.com', 'Subject')
