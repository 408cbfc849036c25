"""
Key providers for the secure store.

A provider hands out the 32-byte AES key used by :mod:`shadowkeep.security.cipher`.
The store only ever talks to the :class:`KeyProvider` interface, so the strategy
is chosen at wiring time (see :func:`shadowkeep.core.config.build_store`):

- :class:`MachineKeyProvider` derives the key from the machine identifier;
  nothing secret is persisted anywhere.
- :class:`KeyringKeyProvider` generates a random key once and keeps it in the
  OS credential vault.
- :class:`PassphraseKeyProvider` derives the key from a user passphrase with
  Argon2id and persists only the salt, parameters and a MAC sentinel.
- :class:`StaticKeyProvider` wraps a key supplied by the caller.

None of them log key material.
"""

from __future__ import annotations

import hashlib
import hmac
import json
import logging
import os
import threading
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Callable, Optional

from argon2.exceptions import Argon2Error

from shadowkeep.core.atomic_write import atomic_write_bytes
from shadowkeep.core.exceptions import KeyAccessError
from .cipher import KEY_SIZE
from .kdf import (
    DEFAULT_MEMORY_COST,
    DEFAULT_PARALLELISM,
    DEFAULT_TIME_COST,
    derive_machine_key,
    derive_passphrase_key,
    generate_salt,
    kdf_params_to_dict,
)
from .keystore import assess_keyring_backend, load_key, save_key
from .machine_id import read_machine_id


logger = logging.getLogger(__name__)

DEFAULT_SERVICE_NAME = "voice-assistant"
DEFAULT_KEY_NAME = "encryption-key"
DEFAULT_MACHINE_SALT = b"voice-assistant-secure-storage-v1"

_SENTINEL_LABEL = b"shadowkeep-passphrase-key"


class KeyProvider(ABC):
    """Source of the symmetric key used to encrypt stored secrets."""

    name = "abstract"

    @abstractmethod
    def get_key(self) -> bytes:
        """Return the 32-byte key, raising KeyAccessError if unavailable."""


class StaticKeyProvider(KeyProvider):
    name = "static"

    def __init__(self, key: bytes):
        if len(key) != KEY_SIZE:
            raise KeyAccessError(f"static key must be {KEY_SIZE} bytes")
        self._key = bytes(key)

    def get_key(self) -> bytes:
        return self._key


class KeyringKeyProvider(KeyProvider):
    """Random key persisted in the OS credential vault.

    With ``create=False`` the provider never writes to the vault and raises
    KeyAccessError when no entry exists. That mode is used to read records
    written by the keyring generation without minting a new key.
    """

    name = "keyring"
    # shared by all instances: two providers for one vault entry must not both mint a key
    _create_lock = threading.Lock()

    def __init__(
        self,
        service: str = DEFAULT_SERVICE_NAME,
        account: str = DEFAULT_KEY_NAME,
        create: bool = True,
    ):
        self.service = service
        self.account = account
        self.create = create

    def _load(self) -> Optional[bytes]:
        stored = load_key(self.service, self.account)
        if stored is not None and len(stored) != KEY_SIZE:
            raise KeyAccessError("Stored key has invalid length")
        return stored

    def get_key(self) -> bytes:
        stored = self._load()
        if stored is not None:
            return stored

        if not self.create:
            raise KeyAccessError(f"No key found in OS keystore for {self.service}/{self.account}")

        with self._create_lock:
            # another thread may have created the key while we waited
            stored = self._load()
            if stored is not None:
                return stored
            return self._create()

    def _create(self) -> bytes:
        secure, msg = assess_keyring_backend()
        if not secure:
            logger.warning("storing encryption key in keyring anyway: %s", msg)

        key = os.urandom(KEY_SIZE)
        save_key(self.service, self.account, key)
        logger.info("generated new encryption key in keyring for %s", self.service)
        return key


class MachineKeyProvider(KeyProvider):
    """Key derived as SHA-256(machine_id || salt), computed once per instance."""

    name = "machine"

    def __init__(
        self,
        salt: bytes = DEFAULT_MACHINE_SALT,
        read_id: Callable[[], str] = read_machine_id,
    ):
        self.salt = salt
        self._read_id = read_id
        self._key: Optional[bytes] = None

    def get_key(self) -> bytes:
        if self._key is None:
            identifier = self._read_id()
            if not identifier:
                raise KeyAccessError("Machine identifier is empty")
            self._key = derive_machine_key(identifier, self.salt)
        return self._key


class PassphraseKeyProvider(KeyProvider):
    """
    Argon2id key derived from a passphrase.

    First use:
    - generate a random salt
    - derive the key and compute an HMAC sentinel over a fixed label
    - persist salt, KDF parameters and sentinel in ``keys/passphrase.json``

    Later uses re-derive the key from the stored parameters and verify the
    sentinel; a mismatch means the passphrase is wrong.
    """

    name = "passphrase"
    # shared by all instances: the first-use salt file must be written once
    _derive_lock = threading.Lock()

    def __init__(self, root: Path | str, passphrase: str | bytes | None):
        self.root = Path(root)
        self._passphrase = passphrase
        self._key: Optional[bytes] = None

    @property
    def meta_path(self) -> Path:
        return self.root / "keys" / "passphrase.json"

    def _load_meta(self) -> Optional[dict]:
        if not self.meta_path.exists():
            return None
        try:
            with open(self.meta_path, "r", encoding="utf-8") as f:
                return json.load(f)
        except (OSError, ValueError) as e:
            raise KeyAccessError(f"Failed to read passphrase metadata: {e}") from e

    @staticmethod
    def _sentinel(key: bytes) -> bytes:
        return hmac.new(key, _SENTINEL_LABEL, hashlib.sha256).digest()

    def get_key(self) -> bytes:
        if self._key is not None:
            return self._key
        with self._derive_lock:
            if self._key is None:
                self._key = self._derive()
            return self._key

    def _derive(self) -> bytes:
        if not self._passphrase:
            raise KeyAccessError("No passphrase configured; set SHADOWKEEP_PASSPHRASE")

        meta = self._load_meta()
        try:
            if meta is not None:
                salt = bytes.fromhex(meta["salt"])
                key = derive_passphrase_key(
                    self._passphrase,
                    salt,
                    time_cost=int(meta.get("time", DEFAULT_TIME_COST)),
                    memory_cost=int(meta.get("memory", DEFAULT_MEMORY_COST)),
                    parallelism=int(meta.get("parallelism", DEFAULT_PARALLELISM)),
                )
                expected = bytes.fromhex(meta.get("sentinel", ""))
                if not hmac.compare_digest(self._sentinel(key), expected):
                    raise KeyAccessError("Invalid passphrase for existing key material")
                return key

            salt = generate_salt()
            key = derive_passphrase_key(self._passphrase, salt)
        except (KeyError, ValueError, Argon2Error) as e:
            raise KeyAccessError(f"Failed to derive passphrase key: {e}") from e

        meta = kdf_params_to_dict(salt, DEFAULT_TIME_COST, DEFAULT_MEMORY_COST, DEFAULT_PARALLELISM)
        meta["sentinel"] = self._sentinel(key).hex()
        try:
            self.meta_path.parent.mkdir(parents=True, exist_ok=True)
            atomic_write_bytes(self.meta_path, json.dumps(meta).encode("utf-8"))
        except OSError as e:
            raise KeyAccessError(f"Failed to persist passphrase metadata: {e}") from e
        return key
