"""
DocSeal Password-Based Key Derivation
=====================================

PBKDF2-HMAC-SHA256 turning a master password and a random salt into the
256-bit AES key that protects a private key.

A wrong password cannot be detected here; it only shows up later as an
authentication failure when the derived key is used to decrypt.
"""

from __future__ import annotations

import os

from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.kdf.pbkdf2 import PBKDF2HMAC

from docseal.config import (
    KEY_SIZE,
    MIN_SALT_SIZE,
    PBKDF2_ITERATIONS,
    PBKDF2_MAX_ITERATIONS,
    SALT_SIZE,
)


def generate_salt() -> bytes:
    """Fresh 256-bit random salt; never reuse one across keys or users."""
    return os.urandom(SALT_SIZE)


def derive_key(
    password: str,
    salt: bytes,
    iterations: int = PBKDF2_ITERATIONS,
) -> bytes:
    """
    Derive a 256-bit key from *password* using PBKDF2-HMAC-SHA256.

    Parameters
    ----------
    password : str
        User-supplied master password.
    salt : bytes
        Random salt from :func:`generate_salt` (at least 16 bytes).
    iterations : int
        Work factor.  :data:`~docseal.config.PBKDF2_ITERATIONS` is the
        minimum and :data:`~docseal.config.PBKDF2_MAX_ITERATIONS` the
        maximum accepted; higher values cost proportionally more CPU.

    Returns
    -------
    bytes
        32-byte key usable with :mod:`docseal.cipher`.
    """
    if not isinstance(password, str):
        raise TypeError("Password must be a string.")
    if not isinstance(salt, (bytes, bytearray)):
        raise TypeError("Salt must be bytes.")
    if len(salt) < MIN_SALT_SIZE:
        raise ValueError(f"Salt must be at least {MIN_SALT_SIZE} bytes, got {len(salt)}.")
    if not isinstance(iterations, int) or not (
        PBKDF2_ITERATIONS <= iterations <= PBKDF2_MAX_ITERATIONS
    ):
        raise ValueError(
            f"PBKDF2 iterations must be between {PBKDF2_ITERATIONS} and {PBKDF2_MAX_ITERATIONS}."
        )

    kdf = PBKDF2HMAC(
        algorithm=hashes.SHA256(),
        length=KEY_SIZE,
        salt=bytes(salt),
        iterations=iterations,
    )
    return kdf.derive(password.encode("utf-8"))
