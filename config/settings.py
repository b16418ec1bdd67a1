"""
Configuration Settings for the Blog

This module centralizes all configuration settings for the blog application,
including environment variables, service endpoints, and application constants.
"""

import os
from pathlib import Path
from dotenv import load_dotenv

# Determine the application root directory
APP_ROOT = Path(__file__).resolve().parent.parent

# Load environment variables from .env file
load_dotenv(dotenv_path=os.path.join(APP_ROOT, '.env'))


def _get_bool(name: str, default: bool) -> bool:
    value = os.getenv(name)
    if value is None:
        return default
    return value.strip().lower() in ("1", "true", "yes", "on")


# =============================================================================
# Site Settings
# =============================================================================

SITE_URL = os.getenv("SITE_URL", "http://localhost:5173").rstrip("/")
SITE_NAME = os.getenv("SITE_NAME", "The Blog")
DEFAULT_AUTHOR_NAME = os.getenv("DEFAULT_AUTHOR_NAME", "Blog Author")
TEMPLATES_DIR = os.path.join(APP_ROOT, "templates")

# =============================================================================
# Database Settings
# =============================================================================

DB_DRIVER = os.getenv("DB_DRIVER", "ODBC Driver 18 for SQL Server")
DB_SERVER = os.getenv("DB_SERVER", "")
DB_NAME = os.getenv("DB_NAME", "")
DB_USER = os.getenv("DB_USER", "")
DB_PASSWORD = os.getenv("DB_PASSWORD", "")

# Build connection string safely (validation happens in validate_settings())
DB_CONNECTION_STRING = (
    f"DRIVER={{{DB_DRIVER}}}; "
    f"SERVER={DB_SERVER}; "
    f"DATABASE={DB_NAME}; "
    f"UID={DB_USER}; "
    f"PWD={DB_PASSWORD}; "
    f"TrustServerCertificate=yes; MARS_Connection=yes;"
) if all([DB_SERVER, DB_NAME, DB_USER, DB_PASSWORD]) else ""

# =============================================================================
# Object Storage Settings
# =============================================================================

STORAGE_URL = os.getenv("STORAGE_URL", "").rstrip("/")
STORAGE_API_KEY = os.getenv("STORAGE_API_KEY", "")
STORAGE_BUCKET = os.getenv("STORAGE_BUCKET", "images")
STORAGE_CACHE_CONTROL = os.getenv("STORAGE_CACHE_CONTROL", "3600")
STORAGE_TIMEOUT = int(os.getenv("STORAGE_TIMEOUT", "30"))   # Seconds per upload request

# =============================================================================
# Email Settings
# =============================================================================

# Email dispatch function (called by the application)
EMAIL_FUNCTION_URL = os.getenv("EMAIL_FUNCTION_URL", "")
EMAIL_FUNCTION_KEY = os.getenv("EMAIL_FUNCTION_KEY", "")
EMAIL_FUNCTION_TIMEOUT = int(os.getenv("EMAIL_FUNCTION_TIMEOUT", "60"))

# Email provider (called from inside the dispatch function)
RESEND_API_KEY = os.getenv("RESEND_API_KEY", "")
RESEND_API_URL = os.getenv("RESEND_API_URL", "https://api.resend.com/emails")
EMAIL_FROM = os.getenv("EMAIL_FROM", f"{SITE_NAME} <onboarding@resend.dev>")
EMAIL_SEND_TIMEOUT = int(os.getenv("EMAIL_SEND_TIMEOUT", "10"))          # Seconds per recipient
NOTIFICATION_MAX_WORKERS = int(os.getenv("NOTIFICATION_MAX_WORKERS", "0"))     # 0 = one thread per subscriber
NOTIFICATION_TIMEOUT = int(os.getenv("NOTIFICATION_TIMEOUT", str(EMAIL_SEND_TIMEOUT + 5)))  # Seconds for a whole fan-out

WELCOME_EMAIL_SUBJECT = f"Welcome to the {SITE_NAME} newsletter!"
TEST_EMAIL_SUBJECT = f"Test email from {SITE_NAME}"
NOTIFICATION_SUBJECT_PREFIX = "New Blog Post: "
SEND_WELCOME_EMAIL = _get_bool("SEND_WELCOME_EMAIL", True)

# =============================================================================
# Admin Settings
# =============================================================================

ADMIN_EMAIL = os.getenv("ADMIN_EMAIL", "")
# Format: pbkdf2_sha256$<iterations>$<salt hex>$<hash hex>
ADMIN_PASSWORD_HASH = os.getenv("ADMIN_PASSWORD_HASH", "")
ADMIN_SESSION_TTL_MINUTES = int(os.getenv("ADMIN_SESSION_TTL_MINUTES", "120"))

# =============================================================================
# Content Settings
# =============================================================================

MIN_TITLE_LENGTH = 5                 # Matches the store's title check constraint
MIN_CONTENT_LENGTH = 100             # Matches the store's content check constraint
SLUG_MAX_LENGTH = 50
EXCERPT_LENGTH = 150                 # Derived excerpt length (before "...")
WORDS_PER_MINUTE = 200               # Reading time estimate

DEFAULT_PAGE_SIZE = 10
ADMIN_PAGE_SIZE = 20
MAX_PAGE_SIZE = 100
FEATURED_POSTS_LIMIT = 3
TOPIC_POSTS_LIMIT = 10
SEARCH_RESULTS_LIMIT = 10
POPULAR_POSTS_LIMIT = 5
POPULAR_POSTS_DAYS = 30

# Comment replies deeper than this are shown under their deepest allowed ancestor
COMMENT_MAX_DEPTH = 1
COMMENT_DEFAULT_STATUS = "approved"

SUBSCRIPTION_SOURCE = "blog"

# =============================================================================
# Upload Settings
# =============================================================================

ALLOWED_IMAGE_TYPES = ["image/jpeg", "image/jpg", "image/png", "image/webp"]
MAX_IMAGE_SIZE = 5 * 1024 * 1024     # 5 MiB

# =============================================================================
# Email Function Server Settings
# =============================================================================

EMAIL_FUNCTION_HOST = os.getenv("EMAIL_FUNCTION_HOST", "127.0.0.1")
EMAIL_FUNCTION_PORT = int(os.getenv("EMAIL_FUNCTION_PORT", "8787"))

CORS_ORIGINS = "*"
CORS_ALLOW_HEADERS = ["authorization", "x-client-info", "apikey", "content-type"]
