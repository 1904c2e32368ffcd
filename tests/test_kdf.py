import pytest

from docseal import kdf


def test_generate_salt_is_random_256_bit():
    s1 = kdf.generate_salt()
    s2 = kdf.generate_salt()
    assert len(s1) == 32
    assert s1 != s2


def test_derive_key_is_deterministic_for_same_inputs():
    salt = kdf.generate_salt()
    k1 = kdf.derive_key("correct horse", salt)
    k2 = kdf.derive_key("correct horse", salt)
    assert k1 == k2
    assert len(k1) == 32


def test_derive_key_depends_on_password_salt_and_iterations():
    salt = kdf.generate_salt()
    base = kdf.derive_key("correct horse", salt)
    assert kdf.derive_key("correct horsf", salt) != base
    assert kdf.derive_key("correct horse", kdf.generate_salt()) != base
    assert kdf.derive_key("correct horse", salt, iterations=100_001) != base


def test_iterations_below_floor_are_rejected():
    with pytest.raises(ValueError):
        kdf.derive_key("pw", kdf.generate_salt(), iterations=1000)


def test_iterations_above_ceiling_are_rejected():
    with pytest.raises(ValueError):
        kdf.derive_key("pw", kdf.generate_salt(), iterations=2**40)


def test_short_salt_is_rejected():
    with pytest.raises(ValueError):
        kdf.derive_key("pw", b"tiny")


def test_non_string_password_is_a_type_error():
    with pytest.raises(TypeError):
        kdf.derive_key(b"bytes", kdf.generate_salt())
