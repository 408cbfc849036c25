"""OS keystore integration using keyring.

Thin wrapper around `keyring` that stores binary keys base64-encoded under a
service/account pair. Backend errors are translated into KeyAccessError so the
store never has to know about keyring's exception types.
"""
import base64
import binascii
import logging
from typing import Optional

try:
    import keyring
    from keyring.errors import KeyringError, PasswordDeleteError
except Exception:
    keyring = None
    KeyringError = PasswordDeleteError = None

from shadowkeep.core.exceptions import KeyAccessError


logger = logging.getLogger(__name__)


def _require_keyring():
    if keyring is None:
        raise KeyAccessError("keyring package is not available; install keyring to use keystore features")


def save_key(service: str, account: str, key_bytes: bytes) -> None:
    """Persist binary key_bytes in the OS keystore under (service, account).

    The key is base64-encoded before storage to keep it string-friendly.
    """
    _require_keyring()
    secret = base64.b64encode(key_bytes).decode("ascii")
    try:
        keyring.set_password(service, account, secret)
    except KeyringError as e:
        raise KeyAccessError(f"Failed to store key in keyring: {e}") from e


def load_key(service: str, account: str) -> Optional[bytes]:
    """Load a persisted key from the OS keystore.

    Returns raw bytes, or None when no entry exists. A stored value that is not
    valid base64 raises KeyAccessError rather than being treated as missing,
    otherwise a caller would happily overwrite it with a fresh key.
    """
    _require_keyring()
    try:
        secret = keyring.get_password(service, account)
    except KeyringError as e:
        raise KeyAccessError(f"Failed to access keyring: {e}") from e
    if secret is None:
        return None
    try:
        return base64.b64decode(secret, validate=True)
    except (binascii.Error, ValueError) as e:
        raise KeyAccessError(f"Failed to decode stored key: {e}") from e


def delete_key(service: str, account: str) -> None:
    """Remove the key from the OS keystore; a missing entry is not an error."""
    _require_keyring()
    try:
        keyring.delete_password(service, account)
    except PasswordDeleteError:
        logger.debug("no keyring entry to delete for %s/%s", service, account)
    except KeyringError as e:
        raise KeyAccessError(f"Failed to delete key from keyring: {e}") from e


def assess_keyring_backend() -> tuple[bool, str]:
    """Return (is_secure, message) describing the current keyring backend.

    Heuristics are used because the `keyring` package exposes different backends
    across platforms. If `keyring` is not available this returns (False, reason).
    """
    if keyring is None:
        return False, "keyring package is not installed"

    try:
        backend = keyring.get_keyring()
    except Exception as e:
        return False, f"failed to get keyring backend: {e}"

    name = backend.__class__.__name__
    priority = getattr(backend, "priority", None)

    insecure_indicators = ("Plaintext", "Uncrypted", "Simple", "File")
    if any(tok in name for tok in insecure_indicators):
        return False, f"insecure backend detected: {name}"

    if priority is not None and priority <= 0:
        return False, f"no suitable secure keyring backend available (priority={priority}, backend={name})"

    # treat known platform backends as acceptable
    if "Win" in name or "Keychain" in name or "SecretService" in name or "KWallet" in name:
        return True, f"backend looks acceptable: {name} (priority={priority})"

    return True, f"unknown backend '{name}', treat with caution (priority={priority})"
