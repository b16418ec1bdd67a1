"""
Data Layer Protocol Definitions

This module defines typing.Protocol interfaces for data layer operations.
These protocols enable dependency injection for store operations,
making services testable without real database or storage connections.

Protocols defined:
- PostStore: Blog post rows and their counters
- CommentStore: Comment rows
- SubscriberStore: Newsletter subscriber rows
- EmailLogStore: Email attempt log rows
- ObjectStore: Image uploads and public URLs

Records passed in use normalized field names (category, post_id, ...).
Rows coming back are plain dictionaries that may use backend column names;
services turn them into data.models objects.
"""

from typing import Protocol, Optional, List, Dict, Any


class PostStore(Protocol):
    """Protocol defining the interface for blog post storage operations.

    Counter increments must be atomic on the store side; implementations
    never read a counter, add one and write it back.
    """

    def count_posts(self, published_only: bool = True) -> int:
        """Count posts, optionally only published ones."""
        ...

    def fetch_posts(self, offset: int, limit: int, published_only: bool = True) -> List[Dict[str, Any]]:
        """Fetch a window of posts.

        Published listings are ordered by publish time descending, admin
        listings (published_only=False) by creation time descending.
        """
        ...

    def fetch_post_by_id(self, post_id: str) -> Optional[Dict[str, Any]]:
        """Fetch one post by ID regardless of publish state."""
        ...

    def fetch_post_by_slug(self, slug: str, published_only: bool = True) -> Optional[Dict[str, Any]]:
        """Fetch one post by slug."""
        ...

    def slug_exists(self, slug: str, exclude_id: Optional[str] = None) -> bool:
        """Check whether any post other than exclude_id already uses slug."""
        ...

    def search_posts(self, query: str, limit: int) -> List[Dict[str, Any]]:
        """Full-text search over published posts, newest first."""
        ...

    def fetch_featured_posts(self, limit: int) -> List[Dict[str, Any]]:
        """Published and featured posts, newest first."""
        ...

    def fetch_posts_by_topic(self, topic: str, limit: int) -> List[Dict[str, Any]]:
        """Published posts in one category, newest first."""
        ...

    def insert_post(self, record: Dict[str, Any]) -> Dict[str, Any]:
        """Insert a post and return the stored row."""
        ...

    def update_post(self, post_id: str, record: Dict[str, Any]) -> Optional[Dict[str, Any]]:
        """Update a post and return the stored row, or None if it does not exist."""
        ...

    def delete_post(self, post_id: str) -> bool:
        """Delete a post (comments cascade in the store). False if it did not exist."""
        ...

    def increment_post_views(self, post_id: str) -> Optional[int]:
        """Atomically add one view. Returns the new count, or None if the post is absent."""
        ...

    def increment_post_likes(self, post_id: str) -> Optional[int]:
        """Atomically add one like. Returns the new count, or None if the post is absent."""
        ...

    def get_post_stats(self, post_id: str) -> Optional[Dict[str, Any]]:
        """Current view_count, likes_count and comments_count, or None if the post is absent."""
        ...

    def get_popular_posts(self, limit: int, days: int) -> Any:
        """Most viewed recent posts as a pandas DataFrame."""
        ...


class CommentStore(Protocol):
    """Protocol defining the interface for comment storage operations."""

    def fetch_comments(self, post_id: str, status: str = "approved") -> List[Dict[str, Any]]:
        """Comments for one post with the given status, oldest first."""
        ...

    def fetch_comment_by_id(self, comment_id: str) -> Optional[Dict[str, Any]]:
        """Fetch one comment by ID."""
        ...

    def insert_comment(self, record: Dict[str, Any]) -> Dict[str, Any]:
        """Insert a comment and return the stored row."""
        ...


class SubscriberStore(Protocol):
    """Protocol defining the interface for newsletter subscriber storage."""

    def fetch_subscriber(self, email: str) -> Optional[Dict[str, Any]]:
        """Fetch the subscriber row for an email, active or not."""
        ...

    def insert_subscriber(self, record: Dict[str, Any]) -> Dict[str, Any]:
        """Insert a subscriber row and return it."""
        ...

    def set_subscriber_active(self, email: str, active: bool) -> bool:
        """Set the active flag. False if no row exists for the email."""
        ...

    def fetch_active_subscribers(self) -> List[Dict[str, Any]]:
        """All active subscriber rows."""
        ...

    def count_active_subscribers(self) -> int:
        """Number of active subscribers."""
        ...


class EmailLogStore(Protocol):
    """Protocol defining the interface for the email attempt log."""

    def insert_email_log(self, record: Dict[str, Any]) -> None:
        """Record one email attempt."""
        ...


class ObjectStore(Protocol):
    """Protocol defining the interface for image object storage."""

    def upload(self, path: str, data: bytes, content_type: str) -> str:
        """Upload bytes under path; returns the stored path."""
        ...

    def public_url(self, path: str) -> str:
        """Publicly retrievable URL for a stored path."""
        ...
