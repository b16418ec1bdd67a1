"""
Post Service Module

This module is the content access layer for blog posts. It validates
input, derives slugs, enforces the draft/published rules and normalizes
store rows into data.models.Post objects.
"""

from typing import Optional, List, Dict, Any

import pandas as pd

from config import settings
from data.models import Post, Page, UploadedImage
from data.protocols import PostStore, ObjectStore
from utils.exceptions import ValidationError, NotFoundError, DuplicateError, StorageError
from utils.helpers import slugify, total_pages, generate_upload_filename, utc_now
from utils.logger import get_logger

logger = get_logger(__name__)

EDITABLE_FIELDS = (
    'title', 'content', 'excerpt', 'category', 'tags', 'featured_image',
    'is_published', 'is_featured', 'author_name',
)


def validate_post_fields(title: Optional[str], content: Optional[str], category: Optional[str]) -> List[str]:
    """
    Check the post constraints and return one message per failure.

    Args:
        title: Post title (at least MIN_TITLE_LENGTH characters).
        content: Post body (at least MIN_CONTENT_LENGTH characters).
        category: Post category (non-empty).

    Returns:
        List[str]: Error messages, empty when the post is valid.
    """
    errors = []
    if len((title or '').strip()) < settings.MIN_TITLE_LENGTH:
        errors.append(f"title must be at least {settings.MIN_TITLE_LENGTH} characters")
    if len((content or '').strip()) < settings.MIN_CONTENT_LENGTH:
        errors.append(f"content must be at least {settings.MIN_CONTENT_LENGTH} characters")
    if not (category or '').strip():
        errors.append("category is required")
    return errors


class PostService:
    """Service for reading and managing blog posts."""

    def __init__(self, post_store: PostStore, object_store: Optional[ObjectStore] = None, auth=None):
        """
        Initialize the post service.

        Args:
            post_store: Relational store for posts.
            object_store: Object store for featured images.
            auth: Optional AdminAuthService; when set, admin operations require a session.
        """
        self.store = post_store
        self.object_store = object_store
        self.auth = auth

    def _require_admin(self, session) -> None:
        if self.auth is not None:
            self.auth.require(session)

    @staticmethod
    def _check_paging(page: int, page_size: int) -> None:
        errors = []
        if page < 1:
            errors.append("page must be 1 or greater")
        if page_size < 1 or page_size > settings.MAX_PAGE_SIZE:
            errors.append(f"page_size must be between 1 and {settings.MAX_PAGE_SIZE}")
        if errors:
            raise ValidationError(errors)

    def _page(self, page: int, page_size: int, published_only: bool) -> Page:
        self._check_paging(page, page_size)
        total_count = self.store.count_posts(published_only=published_only)
        rows = self.store.fetch_posts((page - 1) * page_size, page_size, published_only=published_only)
        return Page(
            items=[Post.from_row(row) for row in rows],
            total_count=total_count,
            total_pages=total_pages(total_count, page_size),
            current_page=page,
            page_size=page_size,
        )

    # =========================================================================
    # Public reads
    # =========================================================================

    def list_published(self, page: int = 1, page_size: Optional[int] = None) -> Page:
        """
        List published posts, newest published first.

        Args:
            page: 1-based page number.
            page_size: Posts per page (DEFAULT_PAGE_SIZE when omitted).

        Returns:
            Page: The posts plus total count and page count.

        Raises:
            ValidationError: If page or page_size is out of range.
            BackendError: If the store is unreachable.
        """
        return self._page(page, settings.DEFAULT_PAGE_SIZE if page_size is None else page_size, published_only=True)

    def get_by_slug(self, slug: str) -> Post:
        """Fetch a published post by slug; drafts are reported as missing."""
        row = self.store.fetch_post_by_slug(slug, published_only=True)
        if not row:
            raise NotFoundError(f"Post not found: {slug}")
        return Post.from_row(row)

    def search(self, query: Optional[str], limit: Optional[int] = None) -> List[Post]:
        """
        Full-text search over published posts, newest first.

        An empty or blank query returns an empty list.
        """
        query = (query or '').strip()
        if not query:
            return []
        rows = self.store.search_posts(query, limit or settings.SEARCH_RESULTS_LIMIT)
        return [Post.from_row(row) for row in rows]

    def list_featured(self, limit: Optional[int] = None) -> List[Post]:
        rows = self.store.fetch_featured_posts(limit or settings.FEATURED_POSTS_LIMIT)
        return [Post.from_row(row) for row in rows]

    def list_by_topic(self, topic: str, limit: Optional[int] = None) -> List[Post]:
        rows = self.store.fetch_posts_by_topic(topic, limit or settings.TOPIC_POSTS_LIMIT)
        return [Post.from_row(row) for row in rows]

    def get_post_stats(self, post_id: str) -> Dict[str, int]:
        """View, like and comment counts for one post, read straight from the store."""
        row = self.store.get_post_stats(post_id)
        if not row:
            raise NotFoundError(f"Post not found: {post_id}")
        return {
            'view_count': int(row.get('view_count') or 0),
            'like_count': int(row.get('likes_count') or 0),
            'comment_count': int(row.get('comments_count') or 0),
        }

    def get_popular_posts(self, limit: Optional[int] = None, days: Optional[int] = None) -> pd.DataFrame:
        """
        Most viewed posts published in the last `days` days.

        Returns:
            pd.DataFrame: Columns title, slug, view_count, likes_count.
        """
        return self.store.get_popular_posts(
            limit or settings.POPULAR_POSTS_LIMIT,
            days or settings.POPULAR_POSTS_DAYS
        )

    # =========================================================================
    # Counters
    # =========================================================================

    def increment_view(self, post_id: str) -> int:
        """Atomically add one view and return the new count."""
        count = self.store.increment_post_views(post_id)
        if count is None:
            raise NotFoundError(f"Post not found: {post_id}")
        return count

    def increment_like(self, post_id: str) -> int:
        """Atomically add one like and return the new count."""
        count = self.store.increment_post_likes(post_id)
        if count is None:
            raise NotFoundError(f"Post not found: {post_id}")
        return count

    # =========================================================================
    # Admin operations
    # =========================================================================

    def list_all(self, page: int = 1, page_size: Optional[int] = None, session=None) -> Page:
        """List all posts including drafts, newest created first."""
        self._require_admin(session)
        return self._page(page, settings.ADMIN_PAGE_SIZE if page_size is None else page_size, published_only=False)

    def get_by_id(self, post_id: str) -> Post:
        row = self.store.fetch_post_by_id(post_id)
        if not row:
            raise NotFoundError(f"Post not found: {post_id}")
        return Post.from_row(row)

    def _claim_slug(self, title: str, exclude_id: Optional[str] = None) -> str:
        slug = slugify(title, settings.SLUG_MAX_LENGTH)
        if not slug.strip('-'):
            raise ValidationError("title must contain at least one letter or digit")
        if self.store.slug_exists(slug, exclude_id=exclude_id):
            raise DuplicateError(f"A post with slug '{slug}' already exists")
        return slug

    def create(self, data: Dict[str, Any], session=None) -> Post:
        """
        Validate and store a new post.

        Args:
            data: Post fields (title, content, category and optional excerpt,
                tags, featured_image, is_published, is_featured, author_name).
            session: Admin session, when the service is gated.

        Returns:
            Post: The stored post.

        Raises:
            ValidationError: Listing every failed constraint.
            DuplicateError: If the derived slug is already used.
        """
        self._require_admin(session)

        errors = validate_post_fields(data.get('title'), data.get('content'), data.get('category'))
        if errors:
            raise ValidationError(errors)

        record = {key: data[key] for key in EDITABLE_FIELDS if key in data}
        record['title'] = data['title'].strip()
        record['category'] = data['category'].strip()
        record['slug'] = self._claim_slug(record['title'])
        record.setdefault('tags', [])
        record.setdefault('author_name', settings.DEFAULT_AUTHOR_NAME)
        record['is_published'] = bool(data.get('is_published', False))
        record['is_featured'] = bool(data.get('is_featured', False))

        now = utc_now()
        record['created_at'] = now
        record['updated_at'] = now
        record['published_at'] = now if record['is_published'] else None

        post = Post.from_row(self.store.insert_post(record))
        logger.info(f"Created post '{post.title}' ({post.slug}, published={post.is_published})")
        return post

    def update(self, post_id: str, patch: Dict[str, Any], session=None) -> Post:
        """
        Apply a partial update to a post.

        The merged post must satisfy the same constraints as create. A title
        change re-derives the slug. Publishing stamps published_at if unset;
        unpublishing clears it.

        Raises:
            NotFoundError: If the post does not exist.
            ValidationError: Listing every failed constraint.
            DuplicateError: If the new slug is already used.
        """
        self._require_admin(session)

        current = self.get_by_id(post_id)
        merged = {
            'title': patch.get('title', current.title),
            'content': patch.get('content', current.content),
            'category': patch.get('category', current.category),
        }
        errors = validate_post_fields(merged['title'], merged['content'], merged['category'])
        if errors:
            raise ValidationError(errors)

        record = {key: patch[key] for key in EDITABLE_FIELDS if key in patch}
        if 'title' in record:
            record['title'] = record['title'].strip()
            if record['title'] != current.title:
                record['slug'] = self._claim_slug(record['title'], exclude_id=post_id)
        if 'category' in record:
            record['category'] = record['category'].strip()

        if 'is_published' in record:
            record['is_published'] = bool(record['is_published'])
            if record['is_published'] and current.published_at is None:
                record['published_at'] = utc_now()
            elif not record['is_published']:
                record['published_at'] = None

        record['updated_at'] = utc_now()

        row = self.store.update_post(post_id, record)
        if not row:
            raise NotFoundError(f"Post not found: {post_id}")
        post = Post.from_row(row)
        logger.info(f"Updated post {post_id} ({post.slug})")
        return post

    def publish(self, post_id: str, session=None) -> Post:
        return self.update(post_id, {'is_published': True}, session=session)

    def unpublish(self, post_id: str, session=None) -> Post:
        return self.update(post_id, {'is_published': False}, session=session)

    def delete(self, post_id: str, session=None) -> None:
        """Delete a post; its comments are removed by the store."""
        self._require_admin(session)
        if not self.store.delete_post(post_id):
            raise NotFoundError(f"Post not found: {post_id}")
        logger.info(f"Deleted post {post_id}")

    def upload_image(self, filename: str, data: bytes, content_type: str, session=None) -> UploadedImage:
        """
        Validate and upload a featured image.

        Args:
            filename: Client-side file name (only its extension is kept).
            data: File contents.
            content_type: MIME type reported by the client.

        Returns:
            UploadedImage: Stored path and public URL.

        Raises:
            ValidationError: If the type is not an accepted image type or the file is too large.
            StorageError: If the upload fails.
        """
        self._require_admin(session)

        errors = []
        if (content_type or '').lower() not in settings.ALLOWED_IMAGE_TYPES:
            errors.append("Invalid file type. Please upload a JPEG, PNG, or WebP image.")
        if not data:
            errors.append("File is empty.")
        elif len(data) > settings.MAX_IMAGE_SIZE:
            errors.append(f"File size must be at most {settings.MAX_IMAGE_SIZE // (1024 * 1024)}MB.")
        if errors:
            raise ValidationError(errors)

        if self.object_store is None:
            raise StorageError("Object storage is not configured")

        path = self.object_store.upload(generate_upload_filename(filename), data, content_type.lower())
        image = UploadedImage(path=path, public_url=self.object_store.public_url(path))
        logger.info(f"Uploaded image {path}")
        return image
