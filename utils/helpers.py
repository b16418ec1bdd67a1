"""
Helper Utility Module

This module provides various helper functions used throughout the blog application.
"""

import math
import re
import secrets
import string
import time
from datetime import datetime, timezone
from typing import Optional
from urllib.parse import urlparse, quote

EMAIL_PATTERN = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")

# Left unescaped in query values, alongside alphanumerics and -_.
URI_COMPONENT_SAFE = "!~*'()"

def is_valid_url(url: str) -> bool:
    """
    Check if a URL is valid.

    Args:
        url: The URL to validate

    Returns:
        bool: True if the URL is valid, False otherwise
    """
    try:
        result = urlparse(url)
        return all([result.scheme, result.netloc])
    except Exception:
        return False

def is_valid_email(email: Optional[str]) -> bool:
    """Loose shape check for an email address; no deliverability check."""
    return bool(email) and bool(EMAIL_PATTERN.match(email))

def slugify(title: str, max_length: int = 50) -> str:
    """
    Derive a URL slug from a post title.

    Lowercases, strips every character that is not a lowercase letter,
    digit or whitespace, collapses whitespace runs into one hyphen and
    truncates the result.

    Args:
        title: The post title
        max_length: Maximum slug length

    Returns:
        str: The slug
    """
    slug = re.sub(r'[^a-z0-9\s]', '', (title or '').lower())
    slug = re.sub(r'\s+', '-', slug)
    return slug[:max_length]

def strip_html_tags(text: str) -> str:
    """
    Remove HTML tags from text.

    Args:
        text: The text to clean

    Returns:
        str: Text with HTML tags removed
    """
    clean = re.compile('<.*?>')
    return re.sub(clean, '', text)

def truncate_text(text: str, max_length: int = 100, add_ellipsis: bool = True) -> str:
    """
    Truncate text to a maximum length.

    Args:
        text: The text to truncate
        max_length: Maximum length
        add_ellipsis: Whether to add an ellipsis if text is truncated

    Returns:
        str: Truncated text
    """
    if not text or len(text) <= max_length:
        return text

    truncated = text[:max_length].rstrip()
    if add_ellipsis:
        truncated += "..."

    return truncated

def reading_time_minutes(text: str, words_per_minute: int = 200) -> int:
    """Estimated reading time, rounded up, never below one minute."""
    words = len(strip_html_tags(text or '').split())
    return max(1, math.ceil(words / words_per_minute))

def total_pages(total_count: int, page_size: int) -> int:
    """Number of pages needed for total_count rows."""
    if page_size <= 0:
        return 0
    return math.ceil(total_count / page_size)

def generate_upload_filename(original_name: str) -> str:
    """
    Build a collision-resistant object name for an uploaded file.

    The name is a millisecond timestamp, a random suffix and the original
    extension, e.g. ``1718000000000-k3j9x0a1b2c4d.png``.

    Args:
        original_name: The client-side file name

    Returns:
        str: The generated file name
    """
    timestamp = int(time.time() * 1000)
    alphabet = string.ascii_lowercase + string.digits
    random_part = ''.join(secrets.choice(alphabet) for _ in range(13))
    extension = original_name.rsplit('.', 1)[-1].lower() if '.' in (original_name or '') else 'bin'
    return f"{timestamp}-{random_part}.{extension}"

def build_unsubscribe_url(site_url: str, email: str) -> str:
    """Unsubscribe link embedding the url-encoded subscriber email."""
    return f"{site_url.rstrip('/')}/unsubscribe?email={quote(email, safe=URI_COMPONENT_SAFE)}"

def utc_now() -> datetime:
    """Current time as an aware UTC datetime."""
    return datetime.now(timezone.utc)
