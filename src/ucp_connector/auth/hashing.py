"""Secret hashing utilities."""

from __future__ import annotations

import logging

import bcrypt

logger = logging.getLogger(__name__)

__all__ = [
    "DEFAULT_ROUNDS",
    "hash_secret",
    "verify_secret",
]

DEFAULT_ROUNDS = 12


def hash_secret(secret: str, rounds: int = DEFAULT_ROUNDS) -> str:
    """Hash an API secret using bcrypt."""
    salt = bcrypt.gensalt(rounds=rounds)
    hashed = bcrypt.hashpw(secret.encode("utf-8"), salt)
    return hashed.decode("utf-8")


def verify_secret(secret: str, hashed_secret: str) -> bool:
    """Verify a secret against a hash.

    Returns False for malformed hashes and encoding errors.
    """
    try:
        return bcrypt.checkpw(
            secret.encode("utf-8"),
            hashed_secret.encode("utf-8"),
        )
    except (ValueError, TypeError):
        return False
    except Exception:
        logger.warning("Unexpected error during secret verification", exc_info=True)
        return False
