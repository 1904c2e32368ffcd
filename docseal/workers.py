"""
DocSeal Background Workers
==========================

QThread-based workers that keep CPU-bound key generation and hybrid
encryption off the UI thread.  Each emits ``progress``, ``finished`` and
``error`` signals.

Cancellation does not interrupt the underlying primitive.  A cancelled
worker finishes its computation, discards the result and emits
``error("Operation cancelled.")`` instead of ``finished``.  Nothing is
persisted by a worker, so a discarded result leaves no state behind.
"""

from __future__ import annotations

import logging
import time
from typing import List

from PySide6.QtCore import QThread, Signal

from docseal import hybrid
from docseal.config import DEFAULT_RSA_KEY_SIZE
from docseal.hybrid import HolderKey, RecipientKey
from docseal.models import EncryptedFilePayload
from docseal.vault import KeyVault

logger = logging.getLogger(__name__)

CANCELLED_MESSAGE = "Operation cancelled."


class _CancellableWorker(QThread):
    """Shared cancel flag and result/error plumbing."""

    progress = Signal(int)            # percent
    finished = Signal(object, float)  # (result, elapsed_sec)
    error = Signal(str)

    def __init__(self, parent=None):
        super().__init__(parent)
        self._cancelled = False

    def cancel(self) -> None:
        """Request cancellation; the result will be discarded."""
        self._cancelled = True

    @property
    def is_cancelled(self) -> bool:
        return self._cancelled

    def _emit_progress(self, percent: int) -> None:
        if not self._cancelled:
            self.progress.emit(percent)

    def _work(self):
        raise NotImplementedError

    def run(self) -> None:
        t0 = time.perf_counter()
        try:
            result = self._work()
        except Exception as exc:
            logger.warning("%s failed: %s", type(self).__name__, exc)
            self.error.emit(str(exc))
            return
        if self._cancelled:
            self.error.emit(CANCELLED_MESSAGE)
            return
        self.finished.emit(result, time.perf_counter() - t0)


# ---------------------------------------------------------------------------
# Key generation
# ---------------------------------------------------------------------------


class KeyGenerationWorker(_CancellableWorker):
    """Generate a sealed key set in a background thread."""

    def __init__(
        self,
        vault: KeyVault,
        master_password: str,
        bits: int = DEFAULT_RSA_KEY_SIZE,
        *,
        allow_weak: bool = False,
        parent=None,
    ):
        super().__init__(parent)
        self._vault = vault
        self._master_password = master_password
        self._bits = bits
        self._allow_weak = allow_weak

    def _work(self):
        self._emit_progress(0)
        keys = self._vault.generate_user_keys(
            self._master_password, self._bits, allow_weak=self._allow_weak
        )
        self._emit_progress(100)
        return keys


# ---------------------------------------------------------------------------
# Hybrid encryption
# ---------------------------------------------------------------------------


class HybridEncryptWorker(_CancellableWorker):
    """Encrypt a buffer for several recipients in a background thread."""

    def __init__(
        self,
        data: bytes,
        recipient_public_keys: List[RecipientKey],
        parent=None,
    ):
        super().__init__(parent)
        self._data = data
        self._recipients = list(recipient_public_keys)

    def _work(self) -> EncryptedFilePayload:
        return hybrid.encrypt_for_recipients(
            self._data, self._recipients, progress=self._emit_progress
        )


class HybridDecryptWorker(_CancellableWorker):
    """Decrypt a payload for one recipient in a background thread."""

    def __init__(
        self,
        payload: EncryptedFilePayload,
        private_key: HolderKey,
        parent=None,
    ):
        super().__init__(parent)
        self._payload = payload
        self._private_key = private_key

    def _work(self) -> bytes:
        return hybrid.decrypt_payload(
            self._payload, self._private_key, progress=self._emit_progress
        )
