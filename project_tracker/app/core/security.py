"""
Password hashing helpers.

Passwords are hashed with PBKDF2-HMAC-SHA256 from the standard
library.  The stored digest records the algorithm, the iteration count,
the salt and the derived key, separated by ``$``::

    pbkdf2_sha256$100000$<salt hex>$<hash hex>

Keeping the iteration count in the digest lets the cost be raised via
configuration without invalidating existing hashes.

:class:`PasswordHasher` is the capability handed to services: its
``hash`` and ``verify`` coroutines run the key derivation in a worker
thread and report failures as :class:`InternalError`, never as a
domain error.
"""

import asyncio
import hashlib
import hmac
import os

from .errors import InternalError

ALGORITHM = "pbkdf2_sha256"
DEFAULT_ITERATIONS = 100_000
SALT_BYTES = 16


def hash_password(password: str, iterations: int = DEFAULT_ITERATIONS) -> str:
    """Hash a password using PBKDF2-HMAC with SHA-256.

    A 16-byte random salt is generated for each password.

    Parameters
    ----------
    password : str
        The plain text password to hash.
    iterations : int
        PBKDF2 iteration count.

    Returns
    -------
    str
        Digest in ``pbkdf2_sha256$<iterations>$<salt>$<hash>`` form.
    """
    salt = os.urandom(SALT_BYTES)
    dk = hashlib.pbkdf2_hmac("sha256", password.encode("utf-8"), salt, iterations)
    return f"{ALGORITHM}${iterations}${salt.hex()}${dk.hex()}"


def verify_password(plain_password: str, hashed_password: str) -> bool:
    """Verify a plain password against a stored digest.

    Recomputes the PBKDF2-HMAC digest with the stored salt and
    iteration count and compares it in constant time.

    Raises
    ------
    ValueError
        If ``hashed_password`` is not a digest produced by
        :func:`hash_password`.
    """
    algorithm, iterations, salt_hex, hash_hex = hashed_password.split("$")
    if algorithm != ALGORITHM:
        raise ValueError(f"unsupported password hash algorithm {algorithm!r}")
    salt = bytes.fromhex(salt_hex)
    stored_hash = bytes.fromhex(hash_hex)
    dk = hashlib.pbkdf2_hmac("sha256", plain_password.encode("utf-8"), salt, int(iterations))
    return hmac.compare_digest(dk, stored_hash)


class PasswordHasher:
    """One-way hashing capability used by the services."""

    def __init__(self, iterations: int = DEFAULT_ITERATIONS) -> None:
        self.iterations = iterations

    async def hash(self, secret: str) -> str:
        try:
            return await asyncio.to_thread(hash_password, secret, self.iterations)
        except (AttributeError, TypeError, ValueError) as exc:
            raise InternalError("Password hashing failed") from exc

    async def verify(self, secret: str, digest: str) -> bool:
        try:
            return await asyncio.to_thread(verify_password, secret, digest)
        except (AttributeError, TypeError, ValueError) as exc:
            raise InternalError("Stored password hash is unreadable") from exc
