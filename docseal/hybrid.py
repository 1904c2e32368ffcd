"""
DocSeal Hybrid File Encryption
==============================

One AES-256-GCM encryption per file, one RSA-OAEP wrap per recipient::

    Idle -> KeyGenerated -> FileEncrypted -> KeysWrapped -> Complete
      \\______________________________________________________-> Failed

Progress callbacks receive non-decreasing percentages from 0 to 100 at
coarse milestones.  Whole buffers are processed here; see
:mod:`docseal.container` for chunked files.
"""

from __future__ import annotations

import enum
import logging
from typing import BinaryIO, Callable, Iterable, Optional, Union

from cryptography.hazmat.primitives.asymmetric.rsa import RSAPrivateKey, RSAPublicKey

from docseal import asymmetric, cipher
from docseal.errors import (
    DecryptionFailedError,
    DocSealError,
    RecipientNotFoundError,
)
from docseal.models import EncryptedFilePayload

logger = logging.getLogger(__name__)

ProgressCallback = Callable[[int], None]
RecipientKey = Union[RSAPublicKey, str, bytes]
HolderKey = Union[RSAPrivateKey, str, bytes]
FileInput = Union[bytes, bytearray, memoryview, BinaryIO]


class OperationState(enum.Enum):
    IDLE = "idle"
    KEY_GENERATED = "key_generated"
    FILE_ENCRYPTED = "file_encrypted"
    KEYS_WRAPPED = "keys_wrapped"
    COMPLETE = "complete"
    FAILED = "failed"


class _Operation:
    """Per-call state and progress bookkeeping."""

    def __init__(
        self,
        progress: Optional[ProgressCallback],
        on_state: Optional[Callable[[OperationState], None]],
    ):
        self.state = OperationState.IDLE
        self._percent = 0
        self._progress = progress
        self._on_state = on_state

    def report(self, percent: int) -> None:
        self._percent = max(self._percent, min(int(percent), 100))
        if self._progress:
            self._progress(self._percent)

    def advance(self, state: OperationState, percent: Optional[int] = None) -> None:
        logger.debug("Hybrid operation %s -> %s", self.state.value, state.value)
        self.state = state
        if self._on_state:
            self._on_state(state)
        if percent is not None:
            self.report(percent)


def _read_input(data: FileInput) -> bytes:
    if hasattr(data, "read"):
        return data.read()
    return bytes(data)


class HybridCipher:
    """
    Hybrid RSA + AES-256-GCM orchestrator.

    All public methods are **static**; no state is shared between calls.
    """

    # ------------------------------------------------------------------
    # Encrypt
    # ------------------------------------------------------------------

    @staticmethod
    def encrypt_for_recipients(
        data: FileInput,
        recipient_public_keys: Iterable[RecipientKey],
        *,
        progress: Optional[ProgressCallback] = None,
        on_state: Optional[Callable[[OperationState], None]] = None,
    ) -> EncryptedFilePayload:
        """
        Encrypt *data* once and wrap its key for every recipient.

        Parameters
        ----------
        data : bytes-like or binary file object
        recipient_public_keys : iterable of RSAPublicKey or SPKI PEM
            Keys with the same fingerprint are wrapped once.
        progress : callable(percent), optional
        on_state : callable(OperationState), optional

        Returns
        -------
        EncryptedFilePayload
            ``wrapped_keys`` is keyed by recipient fingerprint.
        """
        op = _Operation(progress, on_state)
        op.report(0)
        try:
            recipients = [asymmetric.as_public_key(k) for k in recipient_public_keys]
            if not recipients:
                raise ValueError("At least one recipient public key is required.")
            plaintext = _read_input(data)

            sym_key = cipher.generate_key()
            op.advance(OperationState.KEY_GENERATED, 10)

            ciphertext, nonce = cipher.encrypt(plaintext, sym_key)
            op.advance(OperationState.FILE_ENCRYPTED, 60)

            wrapped_keys = {}
            for index, public_key in enumerate(recipients, start=1):
                fp = asymmetric.fingerprint(public_key)
                if fp not in wrapped_keys:
                    wrapped_keys[fp] = asymmetric.wrap_symmetric_key(sym_key, public_key)
                op.report(60 + 30 * index // len(recipients))
            op.advance(OperationState.KEYS_WRAPPED)

            payload = EncryptedFilePayload(
                ciphertext=ciphertext,
                nonce=nonce,
                wrapped_keys=wrapped_keys,
            )
            op.advance(OperationState.COMPLETE, 100)
        except Exception:
            op.advance(OperationState.FAILED)
            raise

        logger.info(
            "Encrypted %d bytes for %d recipient(s)", len(plaintext), len(wrapped_keys)
        )
        return payload

    @staticmethod
    def encrypt_for_recipient(
        data: FileInput,
        public_key: RecipientKey,
        *,
        progress: Optional[ProgressCallback] = None,
    ) -> EncryptedFilePayload:
        """Single-recipient form of :meth:`encrypt_for_recipients`."""
        return HybridCipher.encrypt_for_recipients(data, [public_key], progress=progress)

    # ------------------------------------------------------------------
    # Decrypt
    # ------------------------------------------------------------------

    @staticmethod
    def decrypt_for_recipient(
        ciphertext: bytes,
        nonce: bytes,
        wrapped_key: bytes,
        private_key: HolderKey,
        *,
        progress: Optional[ProgressCallback] = None,
    ) -> bytes:
        """
        Unwrap the file key with *private_key* and decrypt *ciphertext*.

        Raises
        ------
        DecryptionFailedError
            If unwrapping or authenticated decryption fails.  No partial
            plaintext is ever returned.
        """
        private_key = asymmetric.as_private_key(private_key)
        op = _Operation(progress, None)
        op.report(0)
        try:
            sym_key = asymmetric.unwrap_symmetric_key(wrapped_key, private_key)
            op.report(40)
            plaintext = cipher.decrypt(ciphertext, sym_key, nonce)
        except DocSealError as exc:
            logger.warning("Hybrid decryption failed: %s", exc)
            raise DecryptionFailedError(f"Decryption failed: {exc}") from exc
        op.report(100)
        return plaintext

    @staticmethod
    def decrypt_payload(
        payload: EncryptedFilePayload,
        private_key: HolderKey,
        *,
        progress: Optional[ProgressCallback] = None,
    ) -> bytes:
        """Decrypt *payload* using the wrapped key addressed to *private_key*."""
        private_key = asymmetric.as_private_key(private_key)
        wrapped_key = _wrapped_key_for(payload, private_key)
        return HybridCipher.decrypt_for_recipient(
            payload.ciphertext,
            payload.nonce,
            wrapped_key,
            private_key,
            progress=progress,
        )

    # ------------------------------------------------------------------
    # Re-sharing
    # ------------------------------------------------------------------

    @staticmethod
    def add_recipient(
        payload: EncryptedFilePayload,
        holder_private_key: HolderKey,
        new_public_key: RecipientKey,
    ) -> EncryptedFilePayload:
        """
        Return a copy of *payload* whose file key is also wrapped for
        *new_public_key*.  The ciphertext and nonce are unchanged.

        This is how documents are re-shared after a key rotation.
        """
        holder = asymmetric.as_private_key(holder_private_key)
        new_public_key = asymmetric.as_public_key(new_public_key)
        wrapped_key = _wrapped_key_for(payload, holder)
        try:
            sym_key = asymmetric.unwrap_symmetric_key(wrapped_key, holder)
        except DocSealError as exc:
            raise DecryptionFailedError(f"Cannot unwrap file key: {exc}") from exc

        wrapped_keys = dict(payload.wrapped_keys)
        wrapped_keys[asymmetric.fingerprint(new_public_key)] = asymmetric.wrap_symmetric_key(
            sym_key, new_public_key
        )
        return EncryptedFilePayload(
            ciphertext=payload.ciphertext,
            nonce=payload.nonce,
            wrapped_keys=wrapped_keys,
        )


def _wrapped_key_for(payload: EncryptedFilePayload, private_key: RSAPrivateKey) -> bytes:
    fp = asymmetric.fingerprint(private_key.public_key())
    try:
        return payload.wrapped_keys[fp]
    except KeyError:
        raise RecipientNotFoundError(f"Payload has no wrapped key for {fp}.") from None


# ---------------------------------------------------------------------------
# Module-level convenience functions
# ---------------------------------------------------------------------------

_engine = HybridCipher

encrypt_for_recipients = _engine.encrypt_for_recipients
encrypt_for_recipient = _engine.encrypt_for_recipient
decrypt_for_recipient = _engine.decrypt_for_recipient
decrypt_payload = _engine.decrypt_payload
add_recipient = _engine.add_recipient
