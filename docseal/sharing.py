"""
DocSeal Sharing
===============

Glue between the hybrid orchestrator and the two external collaborators:

- a :class:`DocumentStore` that keeps the ciphertext blob together with
  its payload metadata (nonce and per-recipient wrapped keys)
- an optional :class:`BiometricGate` that must approve before a protected
  document is unwrapped

Neither collaborator ever sees plaintext or an unwrapped key.
"""

from __future__ import annotations

import logging
import uuid
from typing import Dict, Iterable, Optional, Protocol, Tuple

from docseal import hybrid
from docseal.errors import AccessDeniedError, FormatError
from docseal.hybrid import HolderKey, ProgressCallback, RecipientKey
from docseal.models import EncryptedFilePayload

logger = logging.getLogger(__name__)


class DocumentStore(Protocol):
    def upload(self, data: bytes, metadata: dict) -> str: ...

    def download(self, object_id: str) -> Tuple[bytes, dict]: ...


class BiometricGate(Protocol):
    def register(self) -> str: ...

    def authenticate(self, credential_id: str) -> bool: ...


class InMemoryDocumentStore:
    """Process-local :class:`DocumentStore`."""

    def __init__(self):
        self._objects: Dict[str, Tuple[bytes, dict]] = {}

    def upload(self, data: bytes, metadata: dict) -> str:
        object_id = uuid.uuid4().hex
        self._objects[object_id] = (bytes(data), dict(metadata))
        return object_id

    def download(self, object_id: str) -> Tuple[bytes, dict]:
        try:
            data, metadata = self._objects[object_id]
        except KeyError:
            raise KeyError(f"No stored document {object_id!r}.") from None
        return data, dict(metadata)


def share_document(
    data: bytes,
    recipient_public_keys: Iterable[RecipientKey],
    store: DocumentStore,
    *,
    progress: Optional[ProgressCallback] = None,
) -> str:
    """Encrypt *data* for the recipients and upload it; returns the object id."""
    payload = hybrid.encrypt_for_recipients(data, recipient_public_keys, progress=progress)
    object_id = store.upload(payload.ciphertext, payload.metadata())
    logger.info(
        "Shared document %s with %d recipient(s)", object_id, len(payload.wrapped_keys)
    )
    return object_id


def open_document(
    object_id: str,
    store: DocumentStore,
    private_key: HolderKey,
    *,
    gate: Optional[BiometricGate] = None,
    credential_id: Optional[str] = None,
    progress: Optional[ProgressCallback] = None,
) -> bytes:
    """
    Download and decrypt a shared document.

    When *gate* is given it must authenticate *credential_id* before the
    file key is unwrapped.

    Raises
    ------
    AccessDeniedError
        If the gate refuses or no credential was supplied.
    RecipientNotFoundError
        If the document was not shared with *private_key*.
    DecryptionFailedError
        If the wrapped key or ciphertext does not verify.
    """
    if gate is not None:
        if credential_id is None:
            raise AccessDeniedError("A biometric credential is required for this document.")
        if not gate.authenticate(credential_id):
            logger.warning("Biometric gate refused access to document %s", object_id)
            raise AccessDeniedError("Biometric verification failed.")

    ciphertext, metadata = store.download(object_id)
    try:
        payload = EncryptedFilePayload.from_metadata(ciphertext, metadata)
    except FormatError:
        logger.error("Document %s has unreadable encryption metadata", object_id)
        raise
    return hybrid.decrypt_payload(payload, private_key, progress=progress)
