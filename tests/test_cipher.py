import pytest

from docseal import cipher
from docseal.errors import FormatError, IntegrityError, InvalidKeyError


def test_generate_key_produces_unique_32_byte_keys():
    k1 = cipher.generate_key()
    k2 = cipher.generate_key()
    assert len(k1) == 32
    assert k1 != k2


def test_export_import_key():
    k = cipher.generate_key()
    exported = cipher.export_key(k)
    assert isinstance(exported, str)
    assert cipher.import_key(exported) == k


@pytest.mark.parametrize("value", ["not base64!!", "c2hvcnQ="])
def test_import_key_rejects_malformed_material(value):
    with pytest.raises(InvalidKeyError):
        cipher.import_key(value)


def test_encrypt_decrypt():
    k = cipher.generate_key()
    ct, nonce = cipher.encrypt(b"Hello DocSeal!", k)
    assert len(nonce) == 12
    assert len(ct) == len(b"Hello DocSeal!") + 16
    assert cipher.decrypt(ct, k, nonce) == b"Hello DocSeal!"


def test_encryption_is_not_deterministic():
    k = cipher.generate_key()
    c1, n1 = cipher.encrypt(b"same plaintext", k)
    c2, n2 = cipher.encrypt(b"same plaintext", k)
    assert n1 != n2
    assert c1 != c2


def test_empty_plaintext():
    k = cipher.generate_key()
    ct, nonce = cipher.encrypt(b"", k)
    assert cipher.decrypt(ct, k, nonce) == b""


def test_wrong_key_raises_integrity_error():
    ct, nonce = cipher.encrypt(b"secret", cipher.generate_key())
    with pytest.raises(IntegrityError):
        cipher.decrypt(ct, cipher.generate_key(), nonce)


def test_any_flipped_bit_is_detected():
    k = cipher.generate_key()
    ct, nonce = cipher.encrypt(b"x" * 32, k)
    for target in ("ct", "nonce"):
        original = ct if target == "ct" else nonce
        for bit in range(len(original) * 8):
            tampered = bytearray(original)
            tampered[bit // 8] ^= 1 << (bit % 8)
            args = (bytes(tampered), k, nonce) if target == "ct" else (ct, k, bytes(tampered))
            with pytest.raises(IntegrityError):
                cipher.decrypt(*args)


def test_associated_data_is_authenticated():
    k = cipher.generate_key()
    ct, nonce = cipher.encrypt(b"data", k, aad=b"context")
    assert cipher.decrypt(ct, k, nonce, aad=b"context") == b"data"
    with pytest.raises(IntegrityError):
        cipher.decrypt(ct, k, nonce, aad=b"other")


def test_bad_lengths_are_format_errors():
    k = cipher.generate_key()
    ct, nonce = cipher.encrypt(b"data", k)
    with pytest.raises(FormatError):
        cipher.decrypt(ct, k, nonce[:8])
    with pytest.raises(FormatError):
        cipher.decrypt(ct[:10], k, nonce)


def test_short_key_raises_invalid_key_error():
    with pytest.raises(InvalidKeyError):
        cipher.encrypt(b"x", b"short")


def test_calculate_encrypted_size():
    assert cipher.calculate_encrypted_size(1000) == 1016
