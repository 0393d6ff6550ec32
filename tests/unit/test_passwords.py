"""Tests for password hashing."""
import pytest

from hhs.lib.passwords import hash_password, verify_password


@pytest.mark.unit
def test_hash_is_bcrypt_and_salted():
    first = hash_password("pw12345")
    second = hash_password("pw12345")

    assert first.startswith("$2b$")
    assert first != second


@pytest.mark.unit
def test_verify():
    hashed = hash_password("pw12345")

    assert verify_password("pw12345", hashed)
    assert not verify_password("pw12346", hashed)


@pytest.mark.unit
def test_verify_against_empty_hash():
    assert verify_password("pw12345", "") is False
