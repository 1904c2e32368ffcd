import os

import pytest

from docseal import asymmetric, container
from docseal.errors import FormatError, IntegrityError, RecipientNotFoundError, UnwrapError


@pytest.fixture
def plain_file(tmp_path):
    path = tmp_path / "report.bin"
    path.write_bytes(os.urandom(10_000))
    return path


def _encrypt(plain_file, tmp_path, keys, chunk_size=4096):
    sealed = tmp_path / "report.bin.docseal"
    container.encrypt_file_for_recipients(plain_file, sealed, keys, chunk_size=chunk_size)
    return sealed


def test_multi_chunk_round_trip(plain_file, tmp_path, alice, bob):
    sealed = _encrypt(plain_file, tmp_path, [alice[1], bob[1]])
    for name, keypair in (("a.out", alice), ("b.out", bob)):
        out = tmp_path / name
        container.decrypt_file_for_recipient(sealed, out, keypair[0])
        assert out.read_bytes() == plain_file.read_bytes()


def test_empty_file_round_trip(tmp_path, alice):
    empty = tmp_path / "empty"
    empty.write_bytes(b"")
    sealed = _encrypt(empty, tmp_path, [alice[1]])
    out = tmp_path / "empty.out"
    container.decrypt_file_for_recipient(sealed, out, alice[0])
    assert out.read_bytes() == b""


def test_recipient_table(plain_file, tmp_path, alice, bob):
    sealed = _encrypt(plain_file, tmp_path, [alice[1], bob[1], alice[1]])
    with open(sealed, "rb") as fin:
        recipients = container.read_recipients(fin)
    assert set(recipients) == {asymmetric.fingerprint(alice[1]), asymmetric.fingerprint(bob[1])}


def test_progress_reports_bytes(plain_file, tmp_path, alice):
    seen = []
    container.encrypt_file_for_recipients(
        plain_file, tmp_path / "out", [alice[1]], chunk_size=4096,
        progress_callback=lambda done, total: seen.append((done, total)),
    )
    assert seen == [(4096, 10_000), (8192, 10_000), (10_000, 10_000)]


def test_requires_recipients(plain_file, tmp_path):
    with pytest.raises(ValueError):
        container.encrypt_file_for_recipients(plain_file, tmp_path / "out", [])


def test_missing_recipient(plain_file, tmp_path, alice, carol):
    sealed = _encrypt(plain_file, tmp_path, [alice[1]])
    out = tmp_path / "x.out"
    with pytest.raises(RecipientNotFoundError):
        container.decrypt_file_for_recipient(sealed, out, carol[0])
    assert not out.exists()
    assert not (tmp_path / "x.out.part").exists()


def test_truncation_is_detected(plain_file, tmp_path, alice):
    sealed = _encrypt(plain_file, tmp_path, [alice[1]])
    data = sealed.read_bytes()
    # drop the sentinel chunk (nonce + length + tag)
    sealed.write_bytes(data[: -(12 + 4 + 16)])
    out = tmp_path / "t.out"
    with pytest.raises(FormatError):
        container.decrypt_file_for_recipient(sealed, out, alice[0])
    assert not out.exists()
    assert not (tmp_path / "t.out.part").exists()


def test_trailing_data_is_rejected(plain_file, tmp_path, alice):
    sealed = _encrypt(plain_file, tmp_path, [alice[1]])
    with open(sealed, "ab") as fh:
        fh.write(b"junk")
    with pytest.raises(FormatError):
        container.decrypt_file_for_recipient(sealed, tmp_path / "j.out", alice[0])


def test_tampered_chunk(plain_file, tmp_path, alice):
    sealed = _encrypt(plain_file, tmp_path, [alice[1]])
    data = bytearray(sealed.read_bytes())
    data[-100] ^= 0x01
    sealed.write_bytes(bytes(data))
    out = tmp_path / "c.out"
    with pytest.raises(IntegrityError):
        container.decrypt_file_for_recipient(sealed, out, alice[0])
    assert not out.exists()
    assert not (tmp_path / "c.out.part").exists()


def test_tampered_header_reserved_bytes(plain_file, tmp_path, alice):
    sealed = _encrypt(plain_file, tmp_path, [alice[1]])
    data = bytearray(sealed.read_bytes())
    data[12] ^= 0xFF
    sealed.write_bytes(bytes(data))
    with pytest.raises(IntegrityError):
        container.decrypt_file_for_recipient(sealed, tmp_path / "h.out", alice[0])


def test_corrupted_wrapped_key(plain_file, tmp_path, alice):
    sealed = _encrypt(plain_file, tmp_path, [alice[1]])
    data = bytearray(sealed.read_bytes())
    # header(16) + count(2) + fingerprint(20) + length(2), then the wrapped key
    data[16 + 2 + 20 + 2 + 5] ^= 0xFF
    sealed.write_bytes(bytes(data))
    with pytest.raises(UnwrapError):
        container.decrypt_file_for_recipient(sealed, tmp_path / "w.out", alice[0])


@pytest.mark.parametrize("blob", [b"", b"short", b"NOTSEAL\x00" + bytes(8)])
def test_not_a_container(tmp_path, alice, blob):
    bogus = tmp_path / "bogus"
    bogus.write_bytes(blob)
    with pytest.raises(FormatError):
        container.decrypt_file_for_recipient(bogus, tmp_path / "b.out", alice[0])


def test_existing_output_survives_failure(plain_file, tmp_path, alice, carol):
    sealed = _encrypt(plain_file, tmp_path, [alice[1]])
    out = tmp_path / "keep.out"
    out.write_bytes(b"previous contents")
    with pytest.raises(RecipientNotFoundError):
        container.decrypt_file_for_recipient(sealed, out, carol[0])
    assert out.read_bytes() == b"previous contents"


def test_encrypting_in_place_is_refused(plain_file, alice):
    original = plain_file.read_bytes()
    with pytest.raises(ValueError):
        container.encrypt_file_for_recipients(plain_file, plain_file, [alice[1]])
    assert plain_file.read_bytes() == original


def test_failed_encryption_leaves_no_output(plain_file, tmp_path, alice):
    out = tmp_path / "half.docseal"
    out.write_bytes(b"previous container")

    def interrupt(done, total):
        raise RuntimeError("disk full")

    with pytest.raises(RuntimeError):
        container.encrypt_file_for_recipients(
            plain_file, out, [alice[1]], chunk_size=4096, progress_callback=interrupt
        )
    assert out.read_bytes() == b"previous container"
    assert not (tmp_path / "half.docseal.part").exists()
