"""
Configuration Validation for the Blog Application

This module contains configuration validation logic.
Kept apart from settings.py so importing settings never fails.
"""

import logging

from utils.exceptions import ConfigurationError
from utils.helpers import is_valid_url


def validate_settings(require_database: bool = True, require_email: bool = True):
    """
    Validate that all required settings are properly configured.

    Args:
        require_database: Check the database connection settings.
        require_email: Check the email function settings.

    Raises:
        ConfigurationError: If required settings are missing or invalid.
    """
    # Import settings here to avoid circular imports
    from config import settings

    logger = logging.getLogger(__name__)
    errors = []

    if require_database:
        required_vars = [
            ("DB_SERVER", settings.DB_SERVER),
            ("DB_NAME", settings.DB_NAME),
            ("DB_USER", settings.DB_USER),
            ("DB_PASSWORD", settings.DB_PASSWORD)
        ]

        for var_name, var_value in required_vars:
            if not var_value:
                errors.append(f"Missing required environment variable: {var_name}")

        # Verify database connection string was built successfully
        if not settings.DB_CONNECTION_STRING:
            errors.append("Database connection string could not be built. Check DB_SERVER, DB_NAME, DB_USER, DB_PASSWORD.")

    if require_email and not settings.EMAIL_FUNCTION_URL:
        errors.append("Missing required environment variable: EMAIL_FUNCTION_URL")

    if settings.EMAIL_FUNCTION_URL and not is_valid_url(settings.EMAIL_FUNCTION_URL):
        errors.append(f"EMAIL_FUNCTION_URL is not a valid URL: {settings.EMAIL_FUNCTION_URL}")

    if not is_valid_url(settings.SITE_URL):
        errors.append(f"SITE_URL is not a valid URL: {settings.SITE_URL}")

    if settings.STORAGE_URL and not settings.STORAGE_API_KEY:
        logger.warning("STORAGE_URL is set but STORAGE_API_KEY is empty. Image uploads will be rejected.")

    if not settings.ADMIN_EMAIL or not settings.ADMIN_PASSWORD_HASH:
        logger.warning("ADMIN_EMAIL or ADMIN_PASSWORD_HASH is not configured. Admin login is disabled.")
    elif not settings.ADMIN_PASSWORD_HASH.startswith("pbkdf2_sha256$"):
        errors.append("ADMIN_PASSWORD_HASH must be a pbkdf2_sha256 hash, not a plaintext password.")

    # Validate numeric settings are within reasonable bounds
    numeric_validations = [
        ("MIN_TITLE_LENGTH", settings.MIN_TITLE_LENGTH, 1, 200),
        ("MIN_CONTENT_LENGTH", settings.MIN_CONTENT_LENGTH, 1, 10000),
        ("SLUG_MAX_LENGTH", settings.SLUG_MAX_LENGTH, 10, 200),
        ("DEFAULT_PAGE_SIZE", settings.DEFAULT_PAGE_SIZE, 1, settings.MAX_PAGE_SIZE),
        ("ADMIN_PAGE_SIZE", settings.ADMIN_PAGE_SIZE, 1, settings.MAX_PAGE_SIZE),
        ("COMMENT_MAX_DEPTH", settings.COMMENT_MAX_DEPTH, 0, 20),
        ("NOTIFICATION_MAX_WORKERS", settings.NOTIFICATION_MAX_WORKERS, 0, 1000),
        ("MAX_IMAGE_SIZE", settings.MAX_IMAGE_SIZE, 1, 50 * 1024 * 1024),
    ]

    for name, value, min_val, max_val in numeric_validations:
        if value < min_val or value > max_val:
            errors.append(f"{name} must be between {min_val} and {max_val}, got {value}")

    # Validate timeout values are positive
    timeout_settings = [
        ("STORAGE_TIMEOUT", settings.STORAGE_TIMEOUT),
        ("EMAIL_FUNCTION_TIMEOUT", settings.EMAIL_FUNCTION_TIMEOUT),
        ("EMAIL_SEND_TIMEOUT", settings.EMAIL_SEND_TIMEOUT),
        ("NOTIFICATION_TIMEOUT", settings.NOTIFICATION_TIMEOUT),
        ("ADMIN_SESSION_TTL_MINUTES", settings.ADMIN_SESSION_TTL_MINUTES),
    ]

    for name, value in timeout_settings:
        if value <= 0:
            errors.append(f"{name} must be positive, got {value}")

    # Raise all errors at once
    if errors:
        error_msg = "Configuration validation failed:\n" + "\n".join(f"  - {e}" for e in errors)
        raise ConfigurationError(error_msg)

    return True


def get_config_summary() -> dict:
    """
    Returns a summary of current configuration (without sensitive values).
    Useful for logging startup state.
    """
    # Import settings here to avoid circular imports
    from config import settings

    return {
        "site": {
            "url": settings.SITE_URL,
            "name": settings.SITE_NAME,
        },
        "database": {
            "server": settings.DB_SERVER[:20] + "..." if settings.DB_SERVER and len(settings.DB_SERVER) > 20 else settings.DB_SERVER,
            "database": settings.DB_NAME,
        },
        "storage": {
            "configured": bool(settings.STORAGE_URL and settings.STORAGE_API_KEY),
            "bucket": settings.STORAGE_BUCKET,
        },
        "email": {
            "function_configured": bool(settings.EMAIL_FUNCTION_URL),
            "provider_configured": bool(settings.RESEND_API_KEY),
            "send_timeout": settings.EMAIL_SEND_TIMEOUT,
            "max_workers": settings.NOTIFICATION_MAX_WORKERS,
            "notification_timeout": settings.NOTIFICATION_TIMEOUT,
        },
        "admin": {
            "configured": bool(settings.ADMIN_EMAIL and settings.ADMIN_PASSWORD_HASH),
        },
        "content_settings": {
            "min_title_length": settings.MIN_TITLE_LENGTH,
            "min_content_length": settings.MIN_CONTENT_LENGTH,
            "page_size": settings.DEFAULT_PAGE_SIZE,
            "comment_max_depth": settings.COMMENT_MAX_DEPTH,
        }
    }
