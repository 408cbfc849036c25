"""
Secure store: one encrypted file per secret.

Structure Map for reference:
==============================
 - <data_dir>/
      - keys/
          - passphrase.json   (passphrase provider only)
      - secure/
          - {sanitized_key}   (base64 blob, or legacy bytes)
      - .secure-staging/     (temp files of in-flight writes)
==============================

Generations of on-disk data, newest first:
> base64(nonce || ciphertext) under the current provider's key
> the same format under a previous provider's key (e.g. the keyring key)
> raw plaintext

`get` reads whatever is there. Anything not under the current key is
re-encrypted in place on the way out, so the store migrates one record at a
time as values are read.
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, List, Literal, Optional, Sequence

from .atomic_write import atomic_write_bytes
from .exceptions import (
    CryptoError,
    EncodingError,
    InvalidKeyNameError,
    KeyAccessError,
    ShadowKeepError,
    StorageError,
)
from ..security import cipher
from ..security.providers import KeyProvider


logger = logging.getLogger(__name__)

SECURE_DIR_NAME = "secure"
STAGING_DIR_NAME = ".secure-staging"
FILE_MODE = 0o600
DIR_MODE = 0o700

_UNSAFE_CHARS = '/\\:*?"<>|\x00'
_SANITIZE_TABLE = str.maketrans({c: "_" for c in _UNSAFE_CHARS})


def sanitize_key(name: str) -> str:
    """Map a logical key name to a file name inside the secure directory.

    Path separators and characters Windows refuses in file names become ``_``.
    Names that would still resolve outside the directory are rejected.
    """
    sanitized = name.translate(_SANITIZE_TABLE)
    if sanitized in ("", ".", ".."):
        raise InvalidKeyNameError(f"Invalid secure storage key: {name!r}")
    return sanitized


UpgradeSource = Literal["current", "legacy-key", "plaintext", "missing", "unknown"]


@dataclass
class UpgradeResult:
    """Outcome of re-encrypting one record under the current key."""

    name: str
    source: UpgradeSource
    upgraded: bool = False
    error: Optional[str] = None


@dataclass
class _ReadResult:
    value: str
    source: UpgradeSource


class SecureStore:
    """Encrypted key/value store rooted at ``data_dir``.

    ``provider`` supplies the key used for every write. ``legacy_providers``
    are only tried when reading, in order, after the current key fails.
    """

    def __init__(
        self,
        data_dir: Path | str,
        provider: KeyProvider,
        legacy_providers: Sequence[KeyProvider] = (),
    ):
        self.data_dir = Path(data_dir).expanduser()
        self.provider = provider
        self.legacy_providers = list(legacy_providers)

    # ------------------------------------------------------------------
    # Path helpers
    # ------------------------------------------------------------------

    @property
    def secure_dir(self) -> Path:
        return self.data_dir / SECURE_DIR_NAME

    @property
    def staging_dir(self) -> Path:
        return self.data_dir / STAGING_DIR_NAME

    def path_for(self, name: str) -> Path:
        return self.secure_dir / sanitize_key(name)

    def ensure_secure_dir(self) -> Path:
        try:
            for directory in (self.secure_dir, self.staging_dir):
                directory.mkdir(parents=True, exist_ok=True)
                if os.name == "posix":
                    os.chmod(directory, DIR_MODE)
        except OSError as e:
            raise StorageError(f"Failed to create secure directory: {e}") from e
        return self.secure_dir

    # ------------------------------------------------------------------
    # Public operations
    # ------------------------------------------------------------------

    def set(self, name: str, value: str) -> None:
        """Encrypt ``value`` under the current key and write it atomically."""
        path = self.path_for(name)
        self.ensure_secure_dir()
        blob = cipher.encrypt(_to_bytes(value), self.provider.get_key())
        self._write(path, blob.encode("ascii"))
        logger.debug("stored secure value %s", path.name)

    def get(self, name: str) -> str:
        """Return the stored value, or ``""`` when nothing is stored.

        Records that are not under the current key are upgraded after the read;
        a failed upgrade is logged and does not affect the returned value.
        """
        path = self.path_for(name)
        result = self._read(path)
        if result is None:
            return ""
        if result.source != "current":
            self._upgrade_record(path, result)
        return result.value

    def delete(self, name: str) -> None:
        path = self.path_for(name)
        try:
            path.unlink()
        except FileNotFoundError:
            return
        except OSError as e:
            raise StorageError(f"Failed to delete secure value: {e}") from e
        logger.debug("deleted secure value %s", path.name)

    def exists(self, name: str) -> bool:
        return self.path_for(name).is_file()

    def list_keys(self) -> List[str]:
        """Return the stored (sanitized) key names, sorted."""
        if not self.secure_dir.is_dir():
            return []
        try:
            entries = list(self.secure_dir.iterdir())
        except OSError as e:
            raise StorageError(f"Failed to list secure directory: {e}") from e
        return sorted(p.name for p in entries if p.is_file())

    def upgrade(self, name: str) -> UpgradeResult:
        """Re-encrypt one record under the current key if it is not already."""
        path = self.path_for(name)
        try:
            result = self._read(path)
        except ShadowKeepError as e:
            return UpgradeResult(name=path.name, source="unknown", error=str(e))
        if result is None:
            return UpgradeResult(name=path.name, source="missing")
        if result.source == "current":
            return UpgradeResult(name=path.name, source="current")
        return self._upgrade_record(path, result)

    def migrate_all(self) -> Dict[str, UpgradeResult]:
        """Upgrade every stored record; one bad record does not stop the pass."""
        return {name: self.upgrade(name) for name in self.list_keys()}

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _write(self, path: Path, payload: bytes) -> None:
        try:
            atomic_write_bytes(path, payload, mode=FILE_MODE, tmp_dir=self.staging_dir)
        except OSError as e:
            raise StorageError(f"Failed to write secure value: {e}") from e

    def _read(self, path: Path) -> Optional[_ReadResult]:
        try:
            raw = path.read_bytes()
        except FileNotFoundError:
            return None
        except OSError as e:
            raise StorageError(f"Failed to read secure value: {e}") from e

        # KeyAccessError for the current key propagates: without a key we
        # cannot tell ciphertext from plaintext.
        key = self.provider.get_key()
        try:
            plaintext = cipher.decrypt(raw, key)
        except (CryptoError, EncodingError) as e:
            logger.debug("%s does not decrypt under the current key: %s", path.name, e)
        else:
            return _ReadResult(_to_text(plaintext), "current")

        for legacy in self.legacy_providers:
            try:
                legacy_key = legacy.get_key()
            except KeyAccessError as e:
                logger.debug("legacy provider %s unavailable: %s", legacy.name, e)
                continue
            try:
                plaintext = cipher.decrypt(raw, legacy_key)
            except (CryptoError, EncodingError):
                continue
            return _ReadResult(_to_text(plaintext), "legacy-key")

        try:
            value = raw.decode("utf-8")
        except UnicodeDecodeError as e:
            raise EncodingError(f"Invalid UTF-8 in secure storage: {e}") from e
        logger.warning("%s holds a legacy plaintext value", path.name)
        return _ReadResult(value, "plaintext")

    def _upgrade_record(self, path: Path, result: _ReadResult) -> UpgradeResult:
        """Best-effort re-encryption of an already-read record."""
        outcome = UpgradeResult(name=path.name, source=result.source)
        try:
            blob = cipher.encrypt(_to_bytes(result.value), self.provider.get_key())
            self.ensure_secure_dir()
            self._write(path, blob.encode("ascii"))
        except ShadowKeepError as e:
            outcome.error = str(e)
            logger.warning("could not migrate %s: %s", path.name, e)
            return outcome
        outcome.upgraded = True
        logger.info("migrated %s (%s) to the current key", path.name, result.source)
        return outcome


def _to_bytes(value: str) -> bytes:
    try:
        return value.encode("utf-8")
    except UnicodeEncodeError as e:
        raise EncodingError(f"Value is not encodable as UTF-8: {e}") from e


def _to_text(plaintext: bytes) -> str:
    try:
        return plaintext.decode("utf-8")
    except UnicodeDecodeError as e:
        raise EncodingError(f"Decrypted data is not valid UTF-8: {e}") from e
