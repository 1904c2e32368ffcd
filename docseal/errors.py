"""
DocSeal Errors
==============

Typed failures raised by the encryption core.  Every failure that means
"no trusted plaintext could be produced" derives from
:class:`DecryptionError` so callers can catch them as one family and
still tell a wrong password apart from corrupted data.
"""

from __future__ import annotations


class DocSealError(Exception):
    """Base exception for all DocSeal errors."""


# ---------------------------------------------------------------------------
# Key material
# ---------------------------------------------------------------------------


class InvalidKeyError(DocSealError):
    """Key is malformed, has the wrong length or an unsupported size."""


class MalformedKeyError(InvalidKeyError):
    """PEM text does not parse as the expected SPKI / PKCS#8 key."""


# ---------------------------------------------------------------------------
# Decryption family
# ---------------------------------------------------------------------------


class DecryptionError(DocSealError):
    """Wrong key, corrupted ciphertext, or authentication failure."""


class IntegrityError(DecryptionError):
    """Authentication tag verification failed."""


class UnwrapError(DecryptionError):
    """RSA-OAEP unwrap failed: wrong private key or corrupted wrapped key."""


class WrongPasswordError(DecryptionError):
    """Master password did not unlock the encrypted private key."""


class InvalidOldPasswordError(WrongPasswordError):
    """The current password supplied for a key rotation is wrong."""


class DecryptionFailedError(DecryptionError):
    """Hybrid decryption failed at the unwrap or the bulk decrypt stage."""


# ---------------------------------------------------------------------------
# Formats
# ---------------------------------------------------------------------------


class FormatError(DocSealError):
    """Encrypted data or a serialized record has an invalid format."""


class UnsupportedBackupVersionError(FormatError):
    """Backup file carries a version tag this release cannot read."""

    def __init__(self, version: object):
        super().__init__(f"Unsupported backup version {version!r}.")
        self.version = version


# ---------------------------------------------------------------------------
# Policy / state
# ---------------------------------------------------------------------------


class WeakPasswordError(DocSealError):
    """Password rejected by the strength gate."""

    def __init__(self, report):
        reasons = "; ".join(report.feedback) or "score too low"
        super().__init__(f"Password is too weak (score {report.score}/100): {reasons}.")
        self.report = report


class VaultError(DocSealError):
    """Stored vault record is unreadable."""


class RecipientNotFoundError(DocSealError):
    """Payload holds no wrapped key for the supplied private key."""


class AccessDeniedError(DocSealError):
    """A biometric gate refused access to a protected document."""
