"""Password hashing using PBKDF2-HMAC-SHA256 from ``cryptography``."""

import base64
import hmac
import os

from cryptography.exceptions import InvalidKey
from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.kdf.pbkdf2 import PBKDF2HMAC

from config import settings

HASH_SCHEME = "pbkdf2_sha256"
SALT_BYTES = 16


def _kdf(salt: bytes, iterations: int) -> PBKDF2HMAC:
    return PBKDF2HMAC(
        algorithm=hashes.SHA256(),
        length=32,
        salt=salt,
        iterations=iterations,
    )


def hash_password(password: str) -> str:
    """
    Hash a password for storage.

    Args:
        password: Plain text password

    Returns:
        ``scheme$iterations$salt$digest`` with base64 salt and digest
    """
    iterations = max(int(settings.PASSWORD_HASH_ITERATIONS), 1)
    salt = os.urandom(SALT_BYTES)
    digest = _kdf(salt, iterations).derive(password.encode())
    return "$".join(
        [
            HASH_SCHEME,
            str(iterations),
            base64.urlsafe_b64encode(salt).decode(),
            base64.urlsafe_b64encode(digest).decode(),
        ]
    )


def verify_password(password: str, stored_hash: str) -> bool:
    """Check a password against a stored hash; malformed hashes never match."""
    try:
        scheme, iterations, salt_b64, digest_b64 = str(stored_hash or "").split("$")
        if not hmac.compare_digest(scheme, HASH_SCHEME):
            return False
        salt = base64.urlsafe_b64decode(salt_b64.encode())
        digest = base64.urlsafe_b64decode(digest_b64.encode())
        _kdf(salt, int(iterations)).verify(password.encode(), digest)
    except (ValueError, InvalidKey):
        return False
    return True
