import os

from docseal import hybrid
from docseal.storage import StorageTier
from docseal.vault import KeyVault

from conftest import STRONG_PASSWORD


def test_backup_restore_then_decrypt(stores, clock, bob):
    vault = KeyVault(stores, clock=clock)
    keys = vault.generate_user_keys(STRONG_PASSWORD, 2048)
    vault.store(keys)

    data = os.urandom(10 * 1024)
    payload = hybrid.encrypt_for_recipients(data, [keys.public_key, bob[1]])

    backup_text = vault.export_backup(keys)
    vault.clear()
    assert vault.load() is None

    restored = vault.restore(backup_text, storage=StorageTier.SESSION)
    assert restored == keys
    assert vault.load(StorageTier.SESSION) == keys

    private_key = vault.unlock(restored, STRONG_PASSWORD)
    assert hybrid.decrypt_payload(payload, private_key) == data
    assert hybrid.decrypt_payload(payload, bob[0]) == data
