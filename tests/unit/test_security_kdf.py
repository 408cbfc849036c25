"""Unit tests for the Key Derivation Function (KDF) module."""

import hashlib

from shadowkeep.security.kdf import (
    derive_machine_key,
    derive_passphrase_key,
    generate_salt,
    kdf_params_to_dict,
)


def test_generate_salt_defaults():
    """Ensure salt generation returns bytes of the default length (16)."""
    salt = generate_salt()
    assert isinstance(salt, bytes)
    assert len(salt) == 16


def test_generate_salt_custom_length():
    salt = generate_salt(length=32)
    assert len(salt) == 32


def test_derive_passphrase_key_str_and_bytes_match():
    """String passphrases are encoded as UTF-8 before hashing."""
    salt = generate_salt()
    key_from_str = derive_passphrase_key("password123", salt, time_cost=1, memory_cost=8)
    key_from_bytes = derive_passphrase_key(b"password123", salt, time_cost=1, memory_cost=8)

    assert key_from_str == key_from_bytes
    assert len(key_from_str) == 32


def test_derive_passphrase_key_custom_length():
    key = derive_passphrase_key(b"pass", generate_salt(), time_cost=1, memory_cost=8, key_len=64)
    assert len(key) == 64


def test_derive_machine_key_is_sha256_of_id_and_salt():
    key = derive_machine_key("abc123", b"salt")
    assert key == hashlib.sha256(b"abc123salt").digest()
    assert len(key) == 32


def test_derive_machine_key_deterministic_and_salt_sensitive():
    assert derive_machine_key("id", b"s1") == derive_machine_key("id", b"s1")
    assert derive_machine_key("id", b"s1") != derive_machine_key("id", b"s2")
    assert derive_machine_key("id-a", b"s1") != derive_machine_key("id-b", b"s1")


def test_kdf_params_to_dict():
    salt = b"\xaa" * 16
    result = kdf_params_to_dict(salt=salt, time_cost=2, memory_cost=1024, parallelism=4)

    assert result == {
        "algo": "argon2id",
        "salt": "aa" * 16,
        "time": 2,
        "memory": 1024,
        "parallelism": 4,
    }
