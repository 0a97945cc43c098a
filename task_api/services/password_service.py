"""Password hashing utilities (bcrypt)."""

import bcrypt

# bcrypt only uses the first 72 bytes; newer releases reject longer input.
_BCRYPT_MAX_BYTES = 72

# Verified against when the user does not exist so both failure paths
# spend the same bcrypt work.
_DUMMY_HASH = bcrypt.hashpw(b"timing-equalizer", bcrypt.gensalt()).decode("utf-8")


def _encode(password: str) -> bytes:
    return password.encode("utf-8")[:_BCRYPT_MAX_BYTES]


def hash_password(password: str) -> str:
    """Hash a password using bcrypt.

    Args:
        password: Plain-text password to hash

    Returns:
        Bcrypt hash string
    """
    return bcrypt.hashpw(_encode(password), bcrypt.gensalt()).decode("utf-8")


def verify_password(password: str, password_hash: str) -> bool:
    """Verify a password against a bcrypt hash in constant time.

    Args:
        password: Plain-text password to check
        password_hash: Bcrypt hash to verify against

    Returns:
        True if the password matches, False otherwise (including malformed hashes)
    """
    try:
        return bcrypt.checkpw(_encode(password), password_hash.encode("utf-8"))
    except ValueError:
        return False


def burn_verification(password: str) -> None:
    """Run a verification that always fails, for timing parity."""
    verify_password(password, _DUMMY_HASH)
