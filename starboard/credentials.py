"""Teacher credential hashing and verification.

Stored credentials stay plain strings inside the Document's ``teachers``
map. New passwords are stored as ``pbkdf2_sha256$<iterations>$<salt>$<hex>``;
entries without that prefix are legacy plaintext and are compared directly.
"""

import hashlib
import hmac
import secrets

ALGORITHM = "pbkdf2_sha256"
ITERATIONS = 200_000


def hash_password(password: str, iterations: int = ITERATIONS) -> str:
    """Hash a password for storage in the teachers map."""
    salt = secrets.token_hex(16)
    digest = hashlib.pbkdf2_hmac(
        "sha256", password.encode("utf-8"), salt.encode("ascii"), iterations
    )
    return f"{ALGORITHM}${iterations}${salt}${digest.hex()}"


def is_hashed(stored: str) -> bool:
    return stored.startswith(f"{ALGORITHM}$")


def verify_password(stored: str, candidate: str) -> bool:
    """Check a candidate password against a stored credential string."""
    if not isinstance(stored, str) or not isinstance(candidate, str):
        return False

    if not is_hashed(stored):
        return hmac.compare_digest(stored.encode("utf-8"), candidate.encode("utf-8"))

    try:
        _, iterations, salt, expected = stored.split("$", 3)
        rounds = int(iterations)
    except ValueError:
        return False

    digest = hashlib.pbkdf2_hmac(
        "sha256", candidate.encode("utf-8"), salt.encode("ascii"), rounds
    )
    return hmac.compare_digest(digest.hex(), expected)
