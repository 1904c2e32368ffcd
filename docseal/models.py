"""
DocSeal Data Models
===================

Serializable records shared by the vault, the backup format and the
hybrid orchestrator.  JSON field names follow the camelCase layout used by
the web client so stored records and backups stay interchangeable.
"""

from __future__ import annotations

import base64
import binascii
import json
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Dict, Optional

from docseal.asymmetric import fingerprint as compute_fingerprint
from docseal.config import NONCE_SIZE, PBKDF2_ITERATIONS, PBKDF2_MAX_ITERATIONS
from docseal.errors import FormatError, InvalidKeyError


# ---------------------------------------------------------------------------
# Encoding helpers
# ---------------------------------------------------------------------------


def b64encode(data: bytes) -> str:
    return base64.b64encode(data).decode("ascii")


def b64decode(text: str, what: str = "value") -> bytes:
    try:
        return base64.b64decode(text, validate=True)
    except (binascii.Error, ValueError, TypeError) as exc:
        raise FormatError(f"Invalid Base64 in {what}.") from exc


def format_timestamp(value: datetime) -> str:
    return value.astimezone(timezone.utc).isoformat()


def parse_timestamp(text: str) -> datetime:
    if not isinstance(text, str):
        raise FormatError("Timestamp must be an ISO-8601 string.")
    if text.endswith("Z"):
        text = text[:-1] + "+00:00"
    try:
        value = datetime.fromisoformat(text)
    except ValueError as exc:
        raise FormatError(f"Invalid ISO-8601 timestamp {text!r}.") from exc
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value


# ---------------------------------------------------------------------------
# Password-protected private key
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class EncryptedPrivateKey:
    """PKCS#8 PEM encrypted with AES-256-GCM under a PBKDF2-derived key."""

    ciphertext: bytes
    salt: bytes
    nonce: bytes
    iterations: int = PBKDF2_ITERATIONS

    def to_json(self) -> str:
        return json.dumps(
            {
                "encrypted": b64encode(self.ciphertext),
                "salt": b64encode(self.salt),
                "iv": b64encode(self.nonce),
                "iterations": self.iterations,
            }
        )

    @classmethod
    def from_json(cls, text: str) -> "EncryptedPrivateKey":
        try:
            d = json.loads(text)
        except (TypeError, ValueError) as exc:
            raise FormatError("Encrypted private key is not valid JSON.") from exc
        if not isinstance(d, dict):
            raise FormatError("Encrypted private key must be a JSON object.")
        try:
            encrypted, salt, iv = d["encrypted"], d["salt"], d["iv"]
        except KeyError as exc:
            raise FormatError(f"Encrypted private key is missing {exc.args[0]!r}.") from exc
        iterations = d.get("iterations", PBKDF2_ITERATIONS)
        if not isinstance(iterations, int) or isinstance(iterations, bool):
            raise FormatError("Encrypted private key has a non-integer iteration count.")
        if not PBKDF2_ITERATIONS <= iterations <= PBKDF2_MAX_ITERATIONS:
            raise FormatError(
                f"Encrypted private key iteration count {iterations} is outside "
                f"{PBKDF2_ITERATIONS}..{PBKDF2_MAX_ITERATIONS}."
            )
        return cls(
            ciphertext=b64decode(encrypted, "encrypted private key"),
            salt=b64decode(salt, "private key salt"),
            nonce=b64decode(iv, "private key nonce"),
            iterations=iterations,
        )


# ---------------------------------------------------------------------------
# KeyPair record
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class KeyPair:
    """
    A user's key set as persisted in the vault and in backups.

    ``fingerprint`` is always a pure function of ``public_key``; see
    :meth:`verify_fingerprint`.
    """

    public_key: str
    private_key_encrypted: EncryptedPrivateKey
    fingerprint: str
    algorithm: str
    created_at: datetime
    expires_at: Optional[datetime] = None

    @property
    def bits(self) -> int:
        try:
            return int(self.algorithm.split("-", 1)[1])
        except (IndexError, ValueError) as exc:
            raise FormatError(f"Unrecognised key algorithm {self.algorithm!r}.") from exc

    def is_expired(self, now: Optional[datetime] = None) -> bool:
        if self.expires_at is None:
            return False
        now = now or datetime.now(timezone.utc)
        return now >= self.expires_at

    def verify_fingerprint(self) -> bool:
        """False if the fingerprint does not match, or the public key is unreadable."""
        try:
            return compute_fingerprint(self.public_key) == self.fingerprint
        except InvalidKeyError:
            return False

    def to_dict(self) -> dict:
        d = {
            "publicKey": self.public_key,
            "privateKeyEncrypted": self.private_key_encrypted.to_json(),
            "keyFingerprint": self.fingerprint,
            "keyAlgorithm": self.algorithm,
            "createdAt": format_timestamp(self.created_at),
        }
        if self.expires_at is not None:
            d["expiresAt"] = format_timestamp(self.expires_at)
        return d

    @classmethod
    def from_dict(cls, d: dict) -> "KeyPair":
        if not isinstance(d, dict):
            raise FormatError("Key record must be a JSON object.")
        try:
            public_key = d["publicKey"]
            private_key_encrypted = d["privateKeyEncrypted"]
            key_fingerprint = d["keyFingerprint"]
            algorithm = d["keyAlgorithm"]
            created_at = d["createdAt"]
        except KeyError as exc:
            raise FormatError(f"Key record is missing {exc.args[0]!r}.") from exc
        expires_at = d.get("expiresAt")
        return cls(
            public_key=public_key,
            private_key_encrypted=EncryptedPrivateKey.from_json(private_key_encrypted),
            fingerprint=key_fingerprint,
            algorithm=algorithm,
            created_at=parse_timestamp(created_at),
            expires_at=parse_timestamp(expires_at) if expires_at else None,
        )

    def to_json(self) -> str:
        return json.dumps(self.to_dict())

    @classmethod
    def from_json(cls, text: str) -> "KeyPair":
        try:
            d = json.loads(text)
        except (TypeError, ValueError) as exc:
            raise FormatError("Key record is not valid JSON.") from exc
        return cls.from_dict(d)


# ---------------------------------------------------------------------------
# Hybrid-encrypted file
# ---------------------------------------------------------------------------

PAYLOAD_ALGORITHM = "AES-256-GCM"
PAYLOAD_KEY_ALGORITHM = "RSA-OAEP"


@dataclass(frozen=True)
class EncryptedFilePayload:
    """
    One bulk ciphertext plus the per-recipient wrapped copies of its key.

    ``wrapped_keys`` maps recipient fingerprint to RSA-OAEP wrapped key.
    """

    ciphertext: bytes
    nonce: bytes
    wrapped_keys: Dict[str, bytes] = field(default_factory=dict)

    def metadata(self) -> dict:
        """Everything except the ciphertext, in a JSON-friendly form."""
        lengths = {len(wk) for wk in self.wrapped_keys.values()}
        return {
            "algorithm": PAYLOAD_ALGORITHM,
            "keyAlgorithm": PAYLOAD_KEY_ALGORITHM,
            "iv": b64encode(self.nonce),
            "ivLength": NONCE_SIZE,
            "encryptedKeys": {fp: b64encode(wk) for fp, wk in self.wrapped_keys.items()},
            "encryptedKeyLength": lengths.pop() if len(lengths) == 1 else None,
        }

    @classmethod
    def from_metadata(cls, ciphertext: bytes, metadata: dict) -> "EncryptedFilePayload":
        if not isinstance(metadata, dict):
            raise FormatError("Payload metadata must be a JSON object.")
        if metadata.get("algorithm") != PAYLOAD_ALGORITHM:
            raise FormatError(f"Unsupported payload algorithm {metadata.get('algorithm')!r}.")
        if metadata.get("keyAlgorithm") != PAYLOAD_KEY_ALGORITHM:
            raise FormatError(
                f"Unsupported key algorithm {metadata.get('keyAlgorithm')!r}."
            )
        try:
            iv = metadata["iv"]
            keys = metadata["encryptedKeys"]
        except KeyError as exc:
            raise FormatError(f"Payload metadata is missing {exc.args[0]!r}.") from exc
        if not isinstance(keys, dict):
            raise FormatError("encryptedKeys must map fingerprints to wrapped keys.")
        return cls(
            ciphertext=bytes(ciphertext),
            nonce=b64decode(iv, "payload nonce"),
            wrapped_keys={fp: b64decode(wk, "wrapped key") for fp, wk in keys.items()},
        )
