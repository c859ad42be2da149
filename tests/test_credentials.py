"""Tests for authorization code generation."""

import pytest

from fishfarm.core.credentials import check_code, generate_code, hash_password, verify_password


def test_code_is_four_digits_by_default():
    plain, code_hash = generate_code()
    assert len(plain) == 4
    assert plain.isdigit()
    assert code_hash != plain


def test_hash_matches_only_its_code():
    plain, code_hash = generate_code()
    assert check_code(plain, code_hash)
    other = str((int(plain) + 1) % 10000).zfill(4)
    assert not check_code(other, code_hash)


def test_same_code_hashes_differently():
    _, first = generate_code()
    # salted: hashing the same digits twice never yields the same hash
    assert hash_password("4821") != hash_password("4821")
    assert first.startswith("$2")


def test_custom_length():
    plain, code_hash = generate_code(6)
    assert len(plain) == 6
    assert check_code(plain, code_hash)


def test_invalid_length_rejected():
    with pytest.raises(ValueError):
        generate_code(0)


def test_blank_code_never_matches():
    _, code_hash = generate_code()
    assert not check_code("", code_hash)
    assert not check_code("1234", "")


def test_password_helpers():
    password_hash = hash_password("trucha-2024")
    assert verify_password("trucha-2024", password_hash)
    assert not verify_password("otra", password_hash)
