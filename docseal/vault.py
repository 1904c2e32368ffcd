"""
DocSeal Key Vault
=================

Lifecycle of the user's own RSA key set:

1. ``generate_user_keys``: new RSA pair, private key sealed at once with
   AES-256-GCM under a PBKDF2 key derived from the master password
2. ``decrypt_user_private_key`` / ``unlock``: reopen it with the password
3. ``rotate_keys``: check the old password, then build a brand-new pair
4. ``store`` / ``load`` / ``clear``: persist one record per storage tier,
   with optional auto-lock
5. ``export_backup`` / ``import_backup``: explicit inter-device transfer

The vault performs no locking of its own.  Callers must serialize
``store``, ``clear`` and rotation against the same tier.

Rotation does not re-wrap keys of documents shared under the previous
public key.  Use :meth:`docseal.hybrid.HybridCipher.add_recipient` with
the old private key to re-share them before discarding it.
"""

from __future__ import annotations

import logging
import time
from datetime import datetime, timedelta, timezone
from typing import Callable, Dict, Mapping, Optional, Union

from cryptography.hazmat.primitives.asymmetric.rsa import RSAPrivateKey

from docseal import asymmetric, backup, cipher, kdf
from docseal.config import (
    DEFAULT_RSA_KEY_SIZE,
    PBKDF2_ITERATIONS,
    PBKDF2_MAX_ITERATIONS,
    pbkdf2_iterations,
)
from docseal.errors import (
    DecryptionError,
    FormatError,
    IntegrityError,
    InvalidOldPasswordError,
    VaultError,
    WrongPasswordError,
)
from docseal.models import EncryptedPrivateKey, KeyPair
from docseal.storage import JsonFileStore, KeyValueStore, MemoryStore, StorageTier
from docseal.strength import require_strong

logger = logging.getLogger(__name__)

RECORD_SLOT = "user_encryption_keys"
LOCK_TIME_SLOT = "key_lock_time"

EncryptedKeyInput = Union[KeyPair, EncryptedPrivateKey, str]


# ---------------------------------------------------------------------------
# Private-key sealing
# ---------------------------------------------------------------------------


def encrypt_private_key(
    private_key_pem: str,
    master_password: str,
    iterations: Optional[int] = None,
) -> EncryptedPrivateKey:
    """Seal a PKCS#8 PEM under a key derived from *master_password*."""
    iterations = iterations or pbkdf2_iterations()
    salt = kdf.generate_salt()
    wrapping_key = kdf.derive_key(master_password, salt, iterations)
    ct, nonce = cipher.encrypt(private_key_pem.encode("utf-8"), wrapping_key)
    return EncryptedPrivateKey(ciphertext=ct, salt=salt, nonce=nonce, iterations=iterations)


def decrypt_private_key(sealed: EncryptedPrivateKey, master_password: str) -> str:
    """
    Reopen a sealed private key.

    Raises
    ------
    WrongPasswordError
        If the GCM tag does not verify under the derived key.
    FormatError
        If the sealed record itself is structurally invalid.
    """
    try:
        wrapping_key = kdf.derive_key(master_password, sealed.salt, sealed.iterations)
    except ValueError as exc:
        raise FormatError(f"Encrypted private key has invalid KDF parameters: {exc}") from exc
    try:
        pem = cipher.decrypt(sealed.ciphertext, wrapping_key, sealed.nonce)
    except IntegrityError as exc:
        raise WrongPasswordError("Wrong master password.") from exc
    try:
        return pem.decode("utf-8")
    except UnicodeDecodeError as exc:
        raise FormatError("Decrypted private key is not PEM text.") from exc


def _parse_lock_time(raw: str) -> Optional[int]:
    """Lock time in epoch milliseconds, or ``None`` if unreadable."""
    try:
        return int(float(raw))
    except (TypeError, ValueError, OverflowError):
        return None


def _sealed(encrypted: EncryptedKeyInput) -> EncryptedPrivateKey:
    if isinstance(encrypted, KeyPair):
        return encrypted.private_key_encrypted
    if isinstance(encrypted, EncryptedPrivateKey):
        return encrypted
    return EncryptedPrivateKey.from_json(encrypted)


# ---------------------------------------------------------------------------
# KeyVault
# ---------------------------------------------------------------------------


class KeyVault:
    """
    Manage the user's key record across storage tiers.

    Parameters
    ----------
    stores : mapping of StorageTier to KeyValueStore, optional
        Defaults to a :class:`JsonFileStore` for the persistent tier and a
        :class:`MemoryStore` for the session tier.
    iterations : int, optional
        PBKDF2 work factor for newly sealed keys, within
        :data:`~docseal.config.PBKDF2_ITERATIONS` and
        :data:`~docseal.config.PBKDF2_MAX_ITERATIONS`.
    clock : callable
        Returns the current time in seconds since the epoch.
    """

    def __init__(
        self,
        stores: Optional[Mapping[StorageTier, KeyValueStore]] = None,
        *,
        iterations: Optional[int] = None,
        clock: Callable[[], float] = time.time,
    ):
        if iterations is not None and not (
            PBKDF2_ITERATIONS <= iterations <= PBKDF2_MAX_ITERATIONS
        ):
            raise ValueError(
                f"iterations must be between {PBKDF2_ITERATIONS} and {PBKDF2_MAX_ITERATIONS}."
            )
        if stores is None:
            stores = {
                StorageTier.PERSISTENT: JsonFileStore(),
                StorageTier.SESSION: MemoryStore(),
            }
        self._stores: Dict[StorageTier, KeyValueStore] = dict(stores)
        self._iterations = iterations or pbkdf2_iterations()
        self._clock = clock

    def _store_for(self, tier: StorageTier) -> KeyValueStore:
        try:
            return self._stores[tier]
        except KeyError:
            raise VaultError(f"No store configured for the {tier.name.lower()} tier.") from None

    def _now_ms(self) -> int:
        return int(self._clock() * 1000)

    # ------------------------------------------------------------------
    # Key generation & unlocking
    # ------------------------------------------------------------------

    def generate_user_keys(
        self,
        master_password: str,
        bits: int = DEFAULT_RSA_KEY_SIZE,
        *,
        allow_weak: bool = False,
        validity_days: Optional[int] = None,
    ) -> KeyPair:
        """
        Generate a new key set whose private key is sealed by *master_password*.

        The password must be rated strong unless *allow_weak* is set.
        """
        if not allow_weak:
            require_strong(master_password)
        private_key, public_key = asymmetric.generate_key_pair(bits)
        sealed = encrypt_private_key(
            asymmetric.export_private_key(private_key),
            master_password,
            self._iterations,
        )
        public_pem = asymmetric.export_public_key(public_key)
        created_at = datetime.now(timezone.utc)
        expires_at = None
        if validity_days is not None:
            expires_at = created_at + timedelta(days=validity_days)

        keys = KeyPair(
            public_key=public_pem,
            private_key_encrypted=sealed,
            fingerprint=asymmetric.fingerprint(public_key),
            algorithm=asymmetric.key_algorithm(public_key),
            created_at=created_at,
            expires_at=expires_at,
        )
        logger.info("Generated %s key set %s", keys.algorithm, keys.fingerprint)
        return keys

    def decrypt_user_private_key(self, encrypted: EncryptedKeyInput, master_password: str) -> str:
        """Return the PKCS#8 PEM sealed in *encrypted*."""
        return decrypt_private_key(_sealed(encrypted), master_password)

    def unlock(self, keys: KeyPair, master_password: str) -> RSAPrivateKey:
        """Decrypt and load the private key of *keys*."""
        pem = self.decrypt_user_private_key(keys, master_password)
        return asymmetric.import_private_key(pem)

    def verify_master_password(self, encrypted: EncryptedKeyInput, master_password: str) -> bool:
        """True if *master_password* opens *encrypted*; never raises on failure."""
        try:
            self.decrypt_user_private_key(encrypted, master_password)
        except (DecryptionError, FormatError):
            return False
        return True

    # ------------------------------------------------------------------
    # Rotation
    # ------------------------------------------------------------------

    def rotate_keys(
        self,
        old_encrypted: EncryptedKeyInput,
        old_password: str,
        new_password: str,
        new_bits: Optional[int] = None,
        *,
        allow_weak: bool = False,
    ) -> KeyPair:
        """
        Produce an entirely new key set sealed by *new_password*.

        The old password is checked before any key material is generated.
        Nothing is stored; see :meth:`rotate_and_store`.
        """
        try:
            self.decrypt_user_private_key(old_encrypted, old_password)
        except WrongPasswordError as exc:
            raise InvalidOldPasswordError("Invalid old password.") from exc
        if not allow_weak:
            require_strong(new_password)
        keys = self.generate_user_keys(
            new_password,
            new_bits or DEFAULT_RSA_KEY_SIZE,
            allow_weak=True,
        )
        logger.info(
            "Rotated to key set %s; documents shared under the previous key are not re-wrapped",
            keys.fingerprint,
        )
        return keys

    def rotate_and_store(
        self,
        old_password: str,
        new_password: str,
        *,
        storage: StorageTier = StorageTier.PERSISTENT,
        new_bits: Optional[int] = None,
        auto_lock_minutes: Optional[int] = None,
        allow_weak: bool = False,
    ) -> KeyPair:
        """
        Rotate the record held in *storage* and install the replacement.

        The stored record is only replaced after the new set exists, so any
        failure leaves the previous record untouched.
        """
        current = self.load(storage)
        if current is None:
            raise VaultError("No key record is stored in this tier.")
        keys = self.rotate_keys(
            current,
            old_password,
            new_password,
            new_bits or current.bits,
            allow_weak=allow_weak,
        )
        self.store(keys, storage=storage, auto_lock_minutes=auto_lock_minutes)
        return keys

    # ------------------------------------------------------------------
    # Persistence
    # ------------------------------------------------------------------

    def store(
        self,
        keys: KeyPair,
        *,
        storage: StorageTier = StorageTier.PERSISTENT,
        auto_lock_minutes: Optional[int] = None,
    ) -> None:
        """
        Replace the record in *storage* with *keys*.

        With *auto_lock_minutes* a lock-time watermark is recorded; a
        record stored without one clears any earlier watermark.
        """
        if auto_lock_minutes is not None and auto_lock_minutes < 0:
            raise ValueError("auto_lock_minutes must not be negative.")
        store = self._store_for(storage)
        store.set(RECORD_SLOT, keys.to_json())
        if auto_lock_minutes:
            lock_time = self._now_ms() + int(auto_lock_minutes * 60 * 1000)
            store.set(LOCK_TIME_SLOT, str(lock_time))
        else:
            store.delete(LOCK_TIME_SLOT)
        logger.info("Stored key set %s in %s", keys.fingerprint, storage.value)

    def load(self, storage: StorageTier = StorageTier.PERSISTENT) -> Optional[KeyPair]:
        """
        Return the record in *storage*, or ``None``.

        A record whose lock time has passed, or whose lock time cannot be
        read, is purged by this call.

        Raises
        ------
        VaultError
            If the stored record is corrupt or its fingerprint does not
            match its public key.
        """
        store = self._store_for(storage)
        raw = store.get(RECORD_SLOT)
        if raw is None:
            return None

        lock_time = store.get(LOCK_TIME_SLOT)
        if lock_time is not None:
            expires_ms = _parse_lock_time(lock_time)
            if expires_ms is None:
                logger.warning("Unreadable lock time in %s; treating record as locked", storage.value)
            if expires_ms is None or self._now_ms() > expires_ms:
                self._purge(store)
                logger.info("Key record in %s auto-locked and purged", storage.value)
                return None

        try:
            keys = KeyPair.from_json(raw)
        except FormatError as exc:
            raise VaultError(f"Stored key record in {storage.value} is corrupt.") from exc
        if not keys.verify_fingerprint():
            raise VaultError(
                f"Stored key record in {storage.value} does not match its fingerprint."
            )
        return keys

    def clear(self) -> None:
        """Purge the record from every tier."""
        for store in self._stores.values():
            self._purge(store)
        logger.info("Cleared key records from all tiers")

    @staticmethod
    def _purge(store: KeyValueStore) -> None:
        store.delete(RECORD_SLOT)
        store.delete(LOCK_TIME_SLOT)

    # ------------------------------------------------------------------
    # Backup
    # ------------------------------------------------------------------

    @staticmethod
    def export_backup(keys: KeyPair) -> str:
        return backup.export_backup(keys)

    @staticmethod
    def import_backup(backup_json: str) -> KeyPair:
        return backup.import_backup(backup_json)

    def restore(
        self,
        backup_json: str,
        *,
        storage: StorageTier = StorageTier.PERSISTENT,
        auto_lock_minutes: Optional[int] = None,
    ) -> KeyPair:
        """Import a backup and install it in *storage*, replacing any record."""
        keys = self.import_backup(backup_json)
        self.store(keys, storage=storage, auto_lock_minutes=auto_lock_minutes)
        return keys
