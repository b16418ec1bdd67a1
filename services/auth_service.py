"""
Admin Authentication Service Module

This module checks admin credentials against a PBKDF2 hash from the
settings and issues AdminSession values. Admin operations receive the
session explicitly and call require() before touching the store.

Hash format: pbkdf2_sha256$<iterations>$<salt hex>$<hash hex>
"""

import hmac
import secrets
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Optional

from cryptography.exceptions import InvalidKey
from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.kdf.pbkdf2 import PBKDF2HMAC

from config import settings
from utils.exceptions import AuthenticationError, ConfigurationError, PermissionError
from utils.helpers import utc_now
from utils.logger import get_logger

logger = get_logger(__name__)

HASH_ALGORITHM = "pbkdf2_sha256"
DEFAULT_ITERATIONS = 600000
HASH_LENGTH = 32


def _kdf(salt: bytes, iterations: int, length: int = HASH_LENGTH) -> PBKDF2HMAC:
    return PBKDF2HMAC(
        algorithm=hashes.SHA256(),
        length=length,
        salt=salt,
        iterations=iterations,
    )


def hash_password(password: str, iterations: int = DEFAULT_ITERATIONS, salt: Optional[bytes] = None) -> str:
    """Hash a password for the ADMIN_PASSWORD_HASH setting."""
    salt = salt or secrets.token_bytes(16)
    digest = _kdf(salt, iterations).derive(password.encode('utf-8'))
    return f"{HASH_ALGORITHM}${iterations}${salt.hex()}${digest.hex()}"


def verify_password(password: str, encoded: str) -> bool:
    """Check a password against an encoded hash in constant time."""
    try:
        algorithm, iterations, salt_hex, hash_hex = encoded.split('$')
        if algorithm != HASH_ALGORITHM:
            return False
        expected = bytes.fromhex(hash_hex)
        if not expected or int(iterations) < 1:
            return False
        kdf = _kdf(bytes.fromhex(salt_hex), int(iterations), len(expected))
        kdf.verify(password.encode('utf-8'), expected)
    except (ValueError, InvalidKey):
        return False
    return True


@dataclass(frozen=True)
class AdminSession:
    """Proof of a successful admin login."""
    email: str
    token: str
    expires_at: datetime

    def is_expired(self, now: Optional[datetime] = None) -> bool:
        return (now or utc_now()) >= self.expires_at


class AdminAuthService:
    """Issues and checks admin sessions."""

    def __init__(self, admin_email: Optional[str] = None, password_hash: Optional[str] = None,
                 session_ttl_minutes: Optional[int] = None):
        self.admin_email = (admin_email if admin_email is not None else settings.ADMIN_EMAIL).strip().lower()
        self.password_hash = password_hash if password_hash is not None else settings.ADMIN_PASSWORD_HASH
        self.session_ttl = timedelta(minutes=session_ttl_minutes or settings.ADMIN_SESSION_TTL_MINUTES)
        self._tokens = set()

    def login(self, email: str, password: str) -> AdminSession:
        """
        Check admin credentials and open a session.

        Raises:
            ConfigurationError: If no admin account is configured.
            AuthenticationError: If the email or password does not match.
        """
        if not self.admin_email or not self.password_hash:
            raise ConfigurationError("Admin login is not configured")

        email_ok = hmac.compare_digest((email or '').strip().lower().encode('utf-8'),
                                       self.admin_email.encode('utf-8'))
        password_ok = verify_password(password or '', self.password_hash)
        if not (email_ok and password_ok):
            logger.warning("Failed admin login attempt")
            raise AuthenticationError("Invalid email or password")

        session = AdminSession(
            email=self.admin_email,
            token=secrets.token_urlsafe(32),
            expires_at=utc_now() + self.session_ttl,
        )
        self._tokens.add(session.token)
        logger.info("Admin logged in")
        return session

    def logout(self, session: Optional[AdminSession]) -> None:
        if session is not None:
            self._tokens.discard(session.token)
            logger.info("Admin logged out")

    def require(self, session: Optional[AdminSession]) -> AdminSession:
        """
        Check that a session is present, issued here and not expired.

        Raises:
            PermissionError: Otherwise.
        """
        if session is None:
            raise PermissionError("Admin login required")
        if session.token not in self._tokens:
            raise PermissionError("Admin session is not valid")
        if session.is_expired():
            self._tokens.discard(session.token)
            raise PermissionError("Admin session has expired")
        return session
