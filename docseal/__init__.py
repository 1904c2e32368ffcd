"""
DocSeal
=======

Client-side hybrid encryption and key management for shared documents:
AES-256-GCM file encryption, RSA-OAEP key wrapping for each recipient,
and a password-sealed key vault.
"""

import logging

from docseal.errors import (
    AccessDeniedError,
    DecryptionError,
    DecryptionFailedError,
    DocSealError,
    FormatError,
    IntegrityError,
    InvalidKeyError,
    InvalidOldPasswordError,
    MalformedKeyError,
    RecipientNotFoundError,
    UnsupportedBackupVersionError,
    UnwrapError,
    VaultError,
    WeakPasswordError,
    WrongPasswordError,
)
from docseal.hybrid import HybridCipher, OperationState
from docseal.models import EncryptedFilePayload, EncryptedPrivateKey, KeyPair
from docseal.storage import JsonFileStore, MemoryStore, StorageTier
from docseal.strength import StrengthReport, evaluate
from docseal.vault import KeyVault

__version__ = "1.0.0"

logging.getLogger(__name__).addHandler(logging.NullHandler())

__all__ = [
    "AccessDeniedError",
    "DecryptionError",
    "DecryptionFailedError",
    "DocSealError",
    "EncryptedFilePayload",
    "EncryptedPrivateKey",
    "FormatError",
    "HybridCipher",
    "IntegrityError",
    "InvalidKeyError",
    "InvalidOldPasswordError",
    "JsonFileStore",
    "KeyPair",
    "KeyVault",
    "MalformedKeyError",
    "MemoryStore",
    "OperationState",
    "RecipientNotFoundError",
    "StorageTier",
    "StrengthReport",
    "UnsupportedBackupVersionError",
    "UnwrapError",
    "VaultError",
    "WeakPasswordError",
    "WrongPasswordError",
    "evaluate",
]
