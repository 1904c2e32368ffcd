import json
from datetime import datetime, timedelta, timezone

import pytest

from docseal.errors import FormatError
from docseal.models import EncryptedFilePayload, EncryptedPrivateKey, KeyPair


def test_encrypted_private_key_json_layout():
    sealed = EncryptedPrivateKey(ciphertext=b"ct", salt=b"s" * 32, nonce=b"n" * 12, iterations=150_000)
    d = json.loads(sealed.to_json())
    assert set(d) == {"encrypted", "salt", "iv", "iterations"}
    assert EncryptedPrivateKey.from_json(sealed.to_json()) == sealed


def test_encrypted_private_key_defaults_iterations():
    text = json.dumps({"encrypted": "Y3Q=", "salt": "c2FsdA==", "iv": "aXY="})
    assert EncryptedPrivateKey.from_json(text).iterations == 100_000


@pytest.mark.parametrize(
    "text",
    [
        "not json",
        "[]",
        json.dumps({"encrypted": "Y3Q=", "salt": "c2FsdA=="}),
        json.dumps({"encrypted": "%%%", "salt": "c2FsdA==", "iv": "aXY="}),
        json.dumps({"encrypted": "Y3Q=", "salt": "c2FsdA==", "iv": "aXY=", "iterations": "many"}),
    ],
)
def test_encrypted_private_key_rejects_malformed(text):
    with pytest.raises(FormatError):
        EncryptedPrivateKey.from_json(text)


@pytest.mark.parametrize("iterations", [2**40, 10_000_001, 1000, 0, -5])
def test_encrypted_private_key_rejects_iteration_count_out_of_range(iterations):
    text = json.dumps({"encrypted": "Y3Q=", "salt": "c2FsdA==", "iv": "aXY=", "iterations": iterations})
    with pytest.raises(FormatError):
        EncryptedPrivateKey.from_json(text)


def test_key_pair_record(user_keys):
    d = user_keys.to_dict()
    assert set(d) == {
        "publicKey",
        "privateKeyEncrypted",
        "keyFingerprint",
        "keyAlgorithm",
        "createdAt",
    }
    assert isinstance(d["privateKeyEncrypted"], str)
    assert KeyPair.from_json(user_keys.to_json()) == user_keys
    assert user_keys.bits == 2048
    assert user_keys.verify_fingerprint()


def test_key_pair_accepts_javascript_timestamps(user_keys):
    d = user_keys.to_dict()
    d["createdAt"] = "2024-03-01T10:20:30.000Z"
    keys = KeyPair.from_dict(d)
    assert keys.created_at == datetime(2024, 3, 1, 10, 20, 30, tzinfo=timezone.utc)


def test_key_pair_missing_field(user_keys):
    d = user_keys.to_dict()
    del d["keyFingerprint"]
    with pytest.raises(FormatError):
        KeyPair.from_dict(d)


def test_expiry():
    now = datetime.now(timezone.utc)
    sealed = EncryptedPrivateKey(b"", b"", b"")
    keys = KeyPair("pem", sealed, "fp", "RSA-4096", now, expires_at=now + timedelta(days=1))
    assert not keys.is_expired(now)
    assert keys.is_expired(now + timedelta(days=2))
    assert not KeyPair("pem", sealed, "fp", "RSA-4096", now).is_expired()


def test_payload_metadata():
    payload = EncryptedFilePayload(
        ciphertext=b"c" * 40,
        nonce=b"n" * 12,
        wrapped_keys={"a" * 40: b"w" * 256, "b" * 40: b"x" * 256},
    )
    meta = payload.metadata()
    assert meta["algorithm"] == "AES-256-GCM"
    assert meta["keyAlgorithm"] == "RSA-OAEP"
    assert meta["ivLength"] == 12
    assert meta["encryptedKeyLength"] == 256
    assert set(meta["encryptedKeys"]) == {"a" * 40, "b" * 40}
    assert EncryptedFilePayload.from_metadata(payload.ciphertext, json.loads(json.dumps(meta))) == payload


def test_payload_metadata_rejects_unknown_algorithm():
    meta = EncryptedFilePayload(b"c" * 16, b"n" * 12, {"a" * 40: b"w"}).metadata()
    meta["algorithm"] = "AES-128-CBC"
    with pytest.raises(FormatError):
        EncryptedFilePayload.from_metadata(b"c" * 16, meta)
