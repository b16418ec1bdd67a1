"""
Data Models for the Blog Application

This module contains data classes used throughout the application. Rows
coming back from the store use backend column names (``blog_topic``,
``likes_count``, ``is_published``); ``from_row`` normalizes them into one
schema so nothing above the data layer depends on backend naming.
"""

import json
from dataclasses import dataclass, field, asdict
from datetime import datetime, timezone
from typing import Optional, List, Dict, Any

from config import settings
from utils.helpers import strip_html_tags, truncate_text, reading_time_minutes


def _first(row: Dict[str, Any], *keys, default=None):
    for key in keys:
        if key in row and row[key] is not None:
            return row[key]
    return default


def _as_datetime(value) -> Optional[datetime]:
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        return value if value.tzinfo else value.replace(tzinfo=timezone.utc)
    parsed = datetime.fromisoformat(str(value).replace('Z', '+00:00'))
    return parsed if parsed.tzinfo else parsed.replace(tzinfo=timezone.utc)


def _as_tags(value) -> List[str]:
    if not value:
        return []
    if isinstance(value, str):
        try:
            decoded = json.loads(value)
        except ValueError:
            decoded = [part.strip() for part in value.split(',')]
        value = decoded if isinstance(decoded, list) else [decoded]
    return [str(tag) for tag in value if str(tag).strip()]


def _iso(value: Optional[datetime]) -> Optional[str]:
    return value.isoformat() if value else None


@dataclass
class Post:
    """A blog article, draft or published."""
    id: str
    title: str
    slug: str
    content: str
    category: str
    excerpt: Optional[str] = None
    tags: List[str] = field(default_factory=list)
    featured_image: Optional[str] = None
    is_published: bool = False
    is_featured: bool = False
    view_count: int = 0
    like_count: int = 0
    comment_count: int = 0
    author_name: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    published_at: Optional[datetime] = None

    @classmethod
    def from_row(cls, row: Dict[str, Any]) -> "Post":
        """Build a Post from a store row, accepting either backend or normalized keys."""
        return cls(
            id=str(_first(row, 'id')),
            title=_first(row, 'title', default=''),
            slug=_first(row, 'slug', default=''),
            content=_first(row, 'content', default=''),
            category=_first(row, 'blog_topic', 'category', default=''),
            excerpt=_first(row, 'excerpt') or None,
            tags=_as_tags(_first(row, 'tags')),
            featured_image=_first(row, 'featured_image', 'featured_image_url') or None,
            is_published=bool(_first(row, 'is_published', default=False)),
            is_featured=bool(_first(row, 'is_featured', default=False)),
            view_count=int(_first(row, 'view_count', default=0)),
            like_count=int(_first(row, 'likes_count', 'like_count', default=0)),
            comment_count=int(_first(row, 'comments_count', 'comment_count', default=0)),
            author_name=_first(row, 'author_name'),
            created_at=_as_datetime(_first(row, 'created_at')),
            updated_at=_as_datetime(_first(row, 'updated_at')),
            published_at=_as_datetime(_first(row, 'published_at')),
        )

    @property
    def summary(self) -> str:
        """The excerpt, or the start of the plain-text content."""
        if self.excerpt:
            return self.excerpt
        return truncate_text(strip_html_tags(self.content), settings.EXCERPT_LENGTH)

    @property
    def reading_time_minutes(self) -> int:
        return reading_time_minutes(self.content, settings.WORDS_PER_MINUTE)

    def to_payload(self) -> Dict[str, Any]:
        """JSON-safe dictionary, as sent to the email function."""
        payload = asdict(self)
        payload['created_at'] = _iso(self.created_at)
        payload['updated_at'] = _iso(self.updated_at)
        payload['published_at'] = _iso(self.published_at)
        payload['excerpt'] = self.summary
        payload['reading_time_minutes'] = self.reading_time_minutes
        return payload


@dataclass
class Comment:
    """A reader comment; parent_id links replies to their parent comment."""
    id: str
    post_id: str
    author_name: str
    author_email: str
    content: str
    parent_id: Optional[str] = None
    status: str = "approved"
    created_at: Optional[datetime] = None

    @classmethod
    def from_row(cls, row: Dict[str, Any]) -> "Comment":
        parent_id = _first(row, 'parent_id')
        return cls(
            id=str(_first(row, 'id')),
            post_id=str(_first(row, 'blog_id', 'post_id')),
            author_name=_first(row, 'author_name', default=''),
            author_email=_first(row, 'author_email', default=''),
            content=_first(row, 'content', default=''),
            parent_id=str(parent_id) if parent_id is not None else None,
            status=_first(row, 'status', default='approved'),
            created_at=_as_datetime(_first(row, 'created_at')),
        )


@dataclass
class CommentNode:
    """A comment with its displayed replies."""
    comment: Comment
    replies: List["CommentNode"] = field(default_factory=list)
    depth: int = 0
    is_orphan: bool = False


@dataclass
class Subscriber:
    """A newsletter subscriber row; inactive rows are kept for history."""
    id: str
    email: str
    name: Optional[str] = None
    subscription_source: Optional[str] = None
    is_active: bool = True
    created_at: Optional[datetime] = None

    @classmethod
    def from_row(cls, row: Dict[str, Any]) -> "Subscriber":
        return cls(
            id=str(_first(row, 'id')),
            email=_first(row, 'email', default=''),
            name=_first(row, 'name'),
            subscription_source=_first(row, 'subscription_source'),
            is_active=bool(_first(row, 'is_active', default=True)),
            created_at=_as_datetime(_first(row, 'created_at')),
        )

    def to_payload(self) -> Dict[str, Any]:
        return {'id': self.id, 'email': self.email, 'name': self.name}


@dataclass
class Page:
    """One page of a paginated listing. Page numbers are 1-based."""
    items: List[Any]
    total_count: int
    total_pages: int
    current_page: int
    page_size: int

    @property
    def has_next(self) -> bool:
        return self.current_page < self.total_pages


@dataclass
class UploadedImage:
    """Result of an image upload."""
    path: str
    public_url: str
