"""
Shared Test Fixtures for the Blog Application

This module provides common fixtures used across all test modules.
Fixtures include in-memory stores implementing the data protocols, mocks
for database connections and HTTP responses, a fake email provider, and
data factories for test objects.
"""

import pytest
from unittest.mock import MagicMock, patch
from datetime import datetime, timedelta, timezone
from typing import Optional, Dict, Any, List
import threading
import uuid
import sys
import os

import pandas as pd

# Add parent directory to path for imports
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from utils.exceptions import DuplicateError, ProviderError


# =============================================================================
# In-Memory Stores
# =============================================================================

class InMemoryBlogStore:
    """
    Thread-safe in-memory implementation of the PostStore, CommentStore,
    SubscriberStore and EmailLogStore protocols.

    Rows use the backend column names (blog_topic, likes_count, blog_id)
    so services exercise the same normalization as with the real store.
    Set `failures[method_name] = exception` to make a method raise.
    """

    POST_KEYS = {'category': 'blog_topic'}
    COMMENT_KEYS = {'post_id': 'blog_id'}

    def __init__(self):
        self._lock = threading.Lock()
        self.posts: Dict[str, Dict[str, Any]] = {}
        self.comments: Dict[str, Dict[str, Any]] = {}
        self.subscribers: Dict[str, Dict[str, Any]] = {}
        self.email_logs: List[Dict[str, Any]] = []
        self.failures: Dict[str, Exception] = {}
        self.closed = False

    def _check(self, name: str) -> None:
        if name in self.failures:
            raise self.failures[name]

    @staticmethod
    def _translate(record: Dict[str, Any], keys: Dict[str, str]) -> Dict[str, Any]:
        return {keys.get(key, key): value for key, value in record.items()}

    # Posts

    def _published(self) -> List[Dict[str, Any]]:
        rows = [row for row in self.posts.values() if row.get('is_published')]
        return sorted(rows, key=lambda row: row['published_at'], reverse=True)

    def count_posts(self, published_only: bool = True) -> int:
        self._check('count_posts')
        return len(self._published()) if published_only else len(self.posts)

    def fetch_posts(self, offset: int, limit: int, published_only: bool = True) -> List[Dict[str, Any]]:
        self._check('fetch_posts')
        if published_only:
            rows = self._published()
        else:
            rows = sorted(self.posts.values(), key=lambda row: row['created_at'], reverse=True)
        return [dict(row) for row in rows[offset:offset + limit]]

    def fetch_post_by_id(self, post_id: str) -> Optional[Dict[str, Any]]:
        self._check('fetch_post_by_id')
        row = self.posts.get(post_id)
        return dict(row) if row else None

    def fetch_post_by_slug(self, slug: str, published_only: bool = True) -> Optional[Dict[str, Any]]:
        self._check('fetch_post_by_slug')
        for row in self.posts.values():
            if row['slug'] == slug and (row.get('is_published') or not published_only):
                return dict(row)
        return None

    def slug_exists(self, slug: str, exclude_id: Optional[str] = None) -> bool:
        return any(row['slug'] == slug and row['id'] != exclude_id for row in self.posts.values())

    def search_posts(self, query: str, limit: int) -> List[Dict[str, Any]]:
        self._check('search_posts')
        needle = query.lower()
        matches = [
            row for row in self._published()
            if needle in (row.get('title') or '').lower()
            or needle in (row.get('content') or '').lower()
            or needle in (row.get('excerpt') or '').lower()
        ]
        return [dict(row) for row in matches[:limit]]

    def fetch_featured_posts(self, limit: int) -> List[Dict[str, Any]]:
        return [dict(row) for row in self._published() if row.get('is_featured')][:limit]

    def fetch_posts_by_topic(self, topic: str, limit: int) -> List[Dict[str, Any]]:
        return [dict(row) for row in self._published() if row.get('blog_topic') == topic][:limit]

    def insert_post(self, record: Dict[str, Any]) -> Dict[str, Any]:
        self._check('insert_post')
        with self._lock:
            if self.slug_exists(record['slug']):
                raise DuplicateError(f"duplicate key value violates unique constraint: {record['slug']}")
            row = {'id': str(uuid.uuid4()), 'view_count': 0, 'likes_count': 0, 'comments_count': 0}
            row.update(self._translate(record, self.POST_KEYS))
            self.posts[row['id']] = row
            return dict(row)

    def update_post(self, post_id: str, record: Dict[str, Any]) -> Optional[Dict[str, Any]]:
        self._check('update_post')
        with self._lock:
            if post_id not in self.posts:
                return None
            self.posts[post_id].update(self._translate(record, self.POST_KEYS))
            return dict(self.posts[post_id])

    def delete_post(self, post_id: str) -> bool:
        self._check('delete_post')
        with self._lock:
            if self.posts.pop(post_id, None) is None:
                return False
            for comment_id in [cid for cid, row in self.comments.items() if row['blog_id'] == post_id]:
                del self.comments[comment_id]
            return True

    def _increment(self, post_id: str, column: str) -> Optional[int]:
        with self._lock:
            row = self.posts.get(post_id)
            if row is None:
                return None
            row[column] += 1
            return row[column]

    def increment_post_views(self, post_id: str) -> Optional[int]:
        self._check('increment_post_views')
        return self._increment(post_id, 'view_count')

    def increment_post_likes(self, post_id: str) -> Optional[int]:
        self._check('increment_post_likes')
        return self._increment(post_id, 'likes_count')

    def get_post_stats(self, post_id: str) -> Optional[Dict[str, Any]]:
        self._check('get_post_stats')
        row = self.posts.get(post_id)
        if not row:
            return None
        return {k: row[k] for k in ('view_count', 'likes_count', 'comments_count')}

    def get_popular_posts(self, limit: int, days: int) -> pd.DataFrame:
        cutoff = datetime.now(timezone.utc) - timedelta(days=days)
        rows = [row for row in self._published() if row['published_at'] >= cutoff]
        rows.sort(key=lambda row: row['view_count'], reverse=True)
        return pd.DataFrame(
            [{k: row[k] for k in ('title', 'slug', 'view_count', 'likes_count')} for row in rows[:limit]],
            columns=['title', 'slug', 'view_count', 'likes_count']
        )

    # Comments

    def fetch_comments(self, post_id: str, status: str = "approved") -> List[Dict[str, Any]]:
        self._check('fetch_comments')
        rows = [row for row in self.comments.values() if row['blog_id'] == post_id and row['status'] == status]
        return [dict(row) for row in sorted(rows, key=lambda row: row['created_at'])]

    def fetch_comment_by_id(self, comment_id: str) -> Optional[Dict[str, Any]]:
        row = self.comments.get(comment_id)
        return dict(row) if row else None

    def insert_comment(self, record: Dict[str, Any]) -> Dict[str, Any]:
        self._check('insert_comment')
        with self._lock:
            row = {'id': str(uuid.uuid4()), 'parent_id': None, 'created_at': datetime.now(timezone.utc)}
            row.update(self._translate(record, self.COMMENT_KEYS))
            self.comments[row['id']] = row
            if row['blog_id'] in self.posts:
                self.posts[row['blog_id']]['comments_count'] += 1
            return dict(row)

    # Subscribers

    def fetch_subscriber(self, email: str) -> Optional[Dict[str, Any]]:
        self._check('fetch_subscriber')
        row = self.subscribers.get(email)
        return dict(row) if row else None

    def insert_subscriber(self, record: Dict[str, Any]) -> Dict[str, Any]:
        self._check('insert_subscriber')
        with self._lock:
            if record['email'] in self.subscribers:
                raise DuplicateError("duplicate key value violates unique constraint")
            row = {'id': str(uuid.uuid4()), 'created_at': datetime.now(timezone.utc)}
            row.update(record)
            self.subscribers[row['email']] = row
            return dict(row)

    def set_subscriber_active(self, email: str, active: bool) -> bool:
        self._check('set_subscriber_active')
        with self._lock:
            if email not in self.subscribers:
                return False
            self.subscribers[email]['is_active'] = active
            return True

    def fetch_active_subscribers(self) -> List[Dict[str, Any]]:
        self._check('fetch_active_subscribers')
        return [dict(row) for row in self.subscribers.values() if row['is_active']]

    def count_active_subscribers(self) -> int:
        return len(self.fetch_active_subscribers())

    # Email log

    def insert_email_log(self, record: Dict[str, Any]) -> None:
        self._check('insert_email_log')
        self.email_logs.append(dict(record))

    def close(self) -> None:
        self.closed = True


class FakeObjectStore:
    """In-memory ObjectStore."""

    def __init__(self):
        self.objects: Dict[str, bytes] = {}
        self.content_types: Dict[str, str] = {}

    def upload(self, path: str, data: bytes, content_type: str) -> str:
        self.objects[path] = data
        self.content_types[path] = content_type
        return path

    def public_url(self, path: str) -> str:
        return f"https://storage.test/object/public/images/{path}"


class FakeEmailSender:
    """
    EmailSender that records every call.

    Addresses in `failing` raise ProviderError; every call is recorded in
    `attempted` before it succeeds or fails.
    """

    def __init__(self, failing: Optional[List[str]] = None, configured: bool = True):
        self.failing = set(failing or [])
        self.configured = configured
        self.attempted: List[str] = []
        self.sent: List[Dict[str, str]] = []
        self._lock = threading.Lock()

    def is_configured(self) -> bool:
        return self.configured

    def send(self, to: str, subject: str, html: str) -> Dict[str, Any]:
        with self._lock:
            self.attempted.append(to)
        if to in self.failing:
            raise ProviderError(f"Provider rejected {to}")
        with self._lock:
            self.sent.append({'to': to, 'subject': subject, 'html': html})
        return {'id': f"msg-{len(self.sent)}"}


# =============================================================================
# Store Fixtures
# =============================================================================

@pytest.fixture
def blog_store():
    """Empty thread-safe in-memory blog store."""
    return InMemoryBlogStore()


@pytest.fixture
def object_store():
    """In-memory object store."""
    return FakeObjectStore()


@pytest.fixture
def email_sender():
    """Fake email provider that accepts every message."""
    return FakeEmailSender()


@pytest.fixture
def email_sender_factory():
    """
    Factory fixture for fake email providers.

    Usage:
        sender = email_sender_factory(failing=['b@x.com'])
    """
    return FakeEmailSender


# =============================================================================
# Data Factories
# =============================================================================

@pytest.fixture
def post_data_factory():
    """
    Factory fixture for valid post input dictionaries.

    Usage:
        def test_create(post_data_factory):
            data = post_data_factory(title='Another Title', is_published=True)

    Returns:
        callable: A factory function returning post input dictionaries.
    """
    def _create_post_data(
        title: str = 'Understanding Python Generators',
        content: Optional[str] = None,
        category: str = 'Technology',
        **overrides
    ) -> Dict[str, Any]:
        data = {
            'title': title,
            'content': content if content is not None else '<p>' + ('Generators produce values lazily. ' * 6) + '</p>',
            'category': category,
            'tags': ['python', 'generators'],
        }
        data.update(overrides)
        return data

    return _create_post_data


@pytest.fixture
def seed_published_posts(blog_store):
    """
    Factory fixture inserting published posts directly into the store.

    Posts are published one hour apart, the first one being the oldest.

    Returns:
        callable: seed(count, **fields) -> list of inserted rows, oldest first.
    """
    def _seed(count: int, **fields) -> List[Dict[str, Any]]:
        base = datetime(2024, 1, 1, tzinfo=timezone.utc)
        rows = []
        for index in range(count):
            stamp = base + timedelta(hours=index)
            record = {
                'title': f"Published Post Number {index + 1}",
                'slug': f"published-post-number-{index + 1}",
                'content': 'x' * 120,
                'category': 'General',
                'tags': [],
                'is_published': True,
                'is_featured': False,
                'created_at': stamp,
                'updated_at': stamp,
                'published_at': stamp,
            }
            record.update(fields)
            rows.append(blog_store.insert_post(record))
        return rows

    return _seed


@pytest.fixture
def comment_factory():
    """
    Factory fixture for Comment objects.

    Usage:
        comment = comment_factory('2', parent_id='1')
    """
    from data.models import Comment

    def _create_comment(comment_id: str, parent_id: Optional[str] = None, post_id: str = 'post-1') -> Comment:
        return Comment(
            id=comment_id,
            post_id=post_id,
            author_name=f"Reader {comment_id}",
            author_email=f"reader{comment_id}@example.com",
            content=f"Comment {comment_id}",
            parent_id=parent_id,
        )

    return _create_comment


# =============================================================================
# Database Fixtures
# =============================================================================

@pytest.fixture
def mock_db_connection():
    """
    Mock pyodbc database connection and cursor.

    This fixture provides a mock database connection that simulates
    pyodbc behavior without requiring an actual database connection.

    Usage:
        def test_database(mock_db_connection):
            conn, cursor = mock_db_connection
            cursor.fetchall.return_value = [('row1',), ('row2',)]
            # ... test code

    Returns:
        tuple: A tuple of (mock_connection, mock_cursor).
    """
    mock_cursor = MagicMock()
    mock_cursor.description = [('column1',), ('column2',)]
    mock_cursor.fetchall.return_value = []
    mock_cursor.fetchone.return_value = None
    mock_cursor.rowcount = 0

    mock_conn = MagicMock()
    mock_conn.cursor.return_value = mock_cursor
    mock_conn.commit.return_value = None
    mock_conn.rollback.return_value = None
    mock_conn.close.return_value = None

    with patch('pyodbc.connect', return_value=mock_conn):
        yield mock_conn, mock_cursor


# =============================================================================
# Logging Fixtures
# =============================================================================

@pytest.fixture
def capture_logs():
    """
    Capture log messages for assertion in tests.

    Captures actual log records from the application logger for inspection.

    Returns:
        list: A list that will contain captured log records.
    """
    import logging

    class LogCapture(logging.Handler):
        def __init__(self):
            super().__init__()
            self.records = []

        def emit(self, record):
            self.records.append(record)

    handler = LogCapture()
    handler.setLevel(logging.DEBUG)

    app_logger = logging.getLogger('blog')
    original_level = app_logger.level
    app_logger.setLevel(logging.DEBUG)
    app_logger.addHandler(handler)

    yield handler.records

    app_logger.removeHandler(handler)
    app_logger.setLevel(original_level)


# =============================================================================
# HTTP Response Fixtures
# =============================================================================

@pytest.fixture
def mock_http_response():
    """
    Factory fixture for creating mock HTTP responses.

    This fixture returns a factory function that creates mock response
    objects with configurable status codes, content, and headers.

    Usage:
        def test_http_request(mock_http_response):
            response = mock_http_response(
                status_code=200,
                json_data={'key': 'value'}
            )

    Returns:
        callable: A factory function for creating mock responses.
    """
    def _create_response(
        status_code: int = 200,
        text: str = '',
        json_data: Optional[Any] = None,
        headers: Optional[Dict[str, str]] = None
    ) -> MagicMock:
        """
        Create a mock HTTP response object.

        Args:
            status_code: HTTP status code (default 200).
            text: Text content (generated from json_data if not provided).
            json_data: Value returned from response.json().
            headers: Response headers dictionary.

        Returns:
            MagicMock: A mock response object mimicking requests.Response.
        """
        import json

        mock_response = MagicMock()
        mock_response.status_code = status_code
        mock_response.headers = headers or {'Content-Type': 'application/json'}
        mock_response.ok = 200 <= status_code < 300

        if text:
            mock_response.text = text
        elif json_data is not None:
            mock_response.text = json.dumps(json_data)
        else:
            mock_response.text = ''

        if json_data is not None:
            mock_response.json.return_value = json_data
        else:
            mock_response.json.side_effect = ValueError("No JSON data")

        return mock_response

    return _create_response
