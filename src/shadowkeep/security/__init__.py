"""Security helpers: key providers and AEAD primitives for ShadowKeep.

This package provides:
- AES-256-GCM encryption to self-contained base64 blobs
- key providers backed by the OS keyring, the machine identifier or an
  Argon2id passphrase
- an in-memory key session that caches a provider's key
"""

from .cipher import encrypt, decrypt
from .kdf import generate_salt, derive_passphrase_key, derive_machine_key
from .keystore import save_key, load_key, delete_key, assess_keyring_backend
from .machine_id import read_machine_id
from .providers import (
    KeyProvider,
    StaticKeyProvider,
    KeyringKeyProvider,
    MachineKeyProvider,
    PassphraseKeyProvider,
)
from .session import KeySession

__all__ = [
    "encrypt",
    "decrypt",
    "generate_salt",
    "derive_passphrase_key",
    "derive_machine_key",
    "save_key",
    "load_key",
    "delete_key",
    "assess_keyring_backend",
    "read_machine_id",
    "KeyProvider",
    "StaticKeyProvider",
    "KeyringKeyProvider",
    "MachineKeyProvider",
    "PassphraseKeyProvider",
    "KeySession",
]
