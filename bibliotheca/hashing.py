"""
Password hashing for user credentials.

Services depend on the ``PasswordHasher`` protocol only, so the algorithm
and its cost can be swapped without touching service logic. The default
``Pbkdf2PasswordHasher`` uses PBKDF2-HMAC with SHA-256 and a random
16-byte salt per password. The stored string embeds the algorithm and
iteration count::

    pbkdf2_sha256$<iterations>$<salt hex>$<hash hex>

so hashes written at one cost still verify after the default changes.
"""

from __future__ import annotations

import hashlib
import hmac
import os
from typing import Protocol

ALGORITHM = "pbkdf2_sha256"
DEFAULT_ITERATIONS = 600_000


class PasswordHasher(Protocol):
    def hash(self, password: str) -> str:
        ...

    def verify(self, password: str, hashed: str) -> bool:
        ...


class Pbkdf2PasswordHasher:
    def __init__(self, iterations: int = DEFAULT_ITERATIONS, salt_bytes: int = 16) -> None:
        if iterations < 1:
            raise ValueError("iterations must be positive")
        self.iterations = iterations
        self.salt_bytes = salt_bytes

    def hash(self, password: str) -> str:
        """Hash a plain text password with a fresh salt.

        Parameters
        ----------
        password : str
            The plain text password. It is not kept anywhere.

        Returns
        -------
        str
            ``pbkdf2_sha256$iterations$salt$hash`` with hex-encoded parts.
        """
        salt = os.urandom(self.salt_bytes)
        dk = _derive(password, salt, self.iterations)
        return f"{ALGORITHM}${self.iterations}${salt.hex()}${dk.hex()}"

    def verify(self, password: str, hashed: str) -> bool:
        """Check a plain password against a stored hash in constant time.

        Malformed or foreign hash strings never match.
        """
        try:
            algorithm, iterations, salt_hex, hash_hex = hashed.split("$")
            if algorithm != ALGORITHM:
                return False
            salt = bytes.fromhex(salt_hex)
            stored = bytes.fromhex(hash_hex)
            rounds = int(iterations)
        except (AttributeError, ValueError):
            return False
        if rounds < 1:
            return False
        return hmac.compare_digest(_derive(password, salt, rounds), stored)


def _derive(password: str, salt: bytes, iterations: int) -> bytes:
    return hashlib.pbkdf2_hmac("sha256", password.encode("utf-8"), salt, iterations)
