"""Argon2id hashing for local-account passwords."""

import argon2
from argon2.exceptions import InvalidHashError, VerificationError

TIME_COST = 2
MEMORY_COST_KIB = 65536
PARALLELISM = 1

_hasher = argon2.PasswordHasher(
    time_cost=TIME_COST,
    memory_cost=MEMORY_COST_KIB,
    parallelism=PARALLELISM,
)


def hash_password(password: str) -> str:
    return _hasher.hash(password)


def verify_and_update(plain: str, hashed: str) -> tuple[bool, str | None]:
    """Check a password against a stored hash.

    Returns ``(matched, new_hash)``. ``new_hash`` is only set when the password
    matched and the stored hash was made with weaker parameters than today's.
    Malformed hashes never match.
    """
    try:
        _hasher.verify(hashed, plain)
    except (VerificationError, InvalidHashError):
        return False, None
    if _hasher.check_needs_rehash(hashed):
        return True, _hasher.hash(plain)
    return True, None
