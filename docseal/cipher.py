"""
DocSeal Symmetric Cipher Engine
===============================

AES-256-GCM authenticated encryption of byte payloads.

Every call to :meth:`CipherEngine.encrypt` draws a fresh 96-bit nonce, so
the same plaintext never encrypts to the same ciphertext.  The 16-byte GCM
tag is appended to the ciphertext by the ``cryptography`` library and is
verified before any plaintext is returned.
"""

from __future__ import annotations

import base64
import binascii
import os
from typing import Optional, Tuple

from cryptography.exceptions import InvalidTag
from cryptography.hazmat.primitives.ciphers.aead import AESGCM

from docseal.config import KEY_SIZE, NONCE_SIZE, TAG_SIZE
from docseal.errors import FormatError, IntegrityError, InvalidKeyError


class CipherEngine:
    """
    AES-256-GCM engine.

    All public methods are **static**; the class is a namespace that
    mirrors :class:`docseal.asymmetric.KeyEngine`.
    """

    # ------------------------------------------------------------------
    # Key generation & conversion
    # ------------------------------------------------------------------

    @staticmethod
    def generate_key() -> bytes:
        """Generate a cryptographically secure random 256-bit key."""
        return os.urandom(KEY_SIZE)

    @staticmethod
    def export_key(key: bytes) -> str:
        """Encode a raw key as standard Base64 for storage or transmission."""
        validate_key(key)
        return base64.b64encode(key).decode("ascii")

    @staticmethod
    def import_key(b64: str) -> bytes:
        """Decode a Base64 key produced by :meth:`export_key`."""
        try:
            key = base64.b64decode(b64, validate=True)
        except (binascii.Error, ValueError, TypeError) as exc:
            raise InvalidKeyError("Invalid Base64 key encoding.") from exc
        validate_key(key)
        return key

    # ------------------------------------------------------------------
    # Encrypt / decrypt
    # ------------------------------------------------------------------

    @staticmethod
    def encrypt(
        plaintext: bytes,
        key: bytes,
        aad: Optional[bytes] = None,
    ) -> Tuple[bytes, bytes]:
        """
        Encrypt *plaintext* under a raw 256-bit *key*.

        Returns
        -------
        (ciphertext, nonce) : tuple[bytes, bytes]
            ``ciphertext`` carries the 16-byte tag at its end.
        """
        validate_key(key)
        nonce = os.urandom(NONCE_SIZE)
        ct = AESGCM(key).encrypt(nonce, bytes(plaintext), aad)
        return ct, nonce

    @staticmethod
    def decrypt(
        ciphertext: bytes,
        key: bytes,
        nonce: bytes,
        aad: Optional[bytes] = None,
    ) -> bytes:
        """
        Decrypt a ciphertext produced by :meth:`encrypt`.

        Raises
        ------
        FormatError
            If the nonce or ciphertext has an impossible length.
        IntegrityError
            If the tag does not verify (tampering, wrong key or wrong nonce).
        """
        validate_key(key)
        validate_nonce(nonce)
        if len(ciphertext) < TAG_SIZE:
            raise FormatError(
                f"Ciphertext too short to hold a {TAG_SIZE}-byte authentication tag."
            )
        try:
            return AESGCM(key).decrypt(bytes(nonce), bytes(ciphertext), aad)
        except InvalidTag as exc:
            raise IntegrityError(
                "Authentication failed: wrong key or corrupted data."
            ) from exc


# ---------------------------------------------------------------------------
# Validation helpers
# ---------------------------------------------------------------------------


def validate_key(key: bytes) -> None:
    if not isinstance(key, (bytes, bytearray)):
        raise InvalidKeyError("Key must be bytes.")
    if len(key) != KEY_SIZE:
        raise InvalidKeyError(
            f"Key must be exactly {KEY_SIZE} bytes (got {len(key)})."
        )


def validate_nonce(nonce: bytes) -> None:
    if not isinstance(nonce, (bytes, bytearray)) or len(nonce) != NONCE_SIZE:
        raise FormatError(f"Nonce must be exactly {NONCE_SIZE} bytes.")


def calculate_encrypted_size(original_size: int) -> int:
    """Ciphertext length for *original_size* bytes of plaintext."""
    return original_size + TAG_SIZE


# ---------------------------------------------------------------------------
# Module-level convenience functions
# ---------------------------------------------------------------------------

_engine = CipherEngine

generate_key = _engine.generate_key
export_key = _engine.export_key
import_key = _engine.import_key
encrypt = _engine.encrypt
decrypt = _engine.decrypt
