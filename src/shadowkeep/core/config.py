"""Runtime configuration for the secure store.

Everything is driven by environment variables so a host application (or a
developer in a shell) can switch key strategy or data directory without code
changes:

- ``SHADOWKEEP_DATA_DIR``: application data directory (``secure/`` lives below it)
- ``SHADOWKEEP_APP_NAME``: app identifier, also the keyring service name
- ``SHADOWKEEP_KEY_PROVIDER``: ``machine`` (default), ``keyring`` or ``passphrase``
- ``SHADOWKEEP_PASSPHRASE``: passphrase for the ``passphrase`` provider
- ``SHADOWKEEP_LEGACY_KEYRING``: set to ``0`` to stop probing the keyring key
  when reading records that do not decrypt under the current key
- ``SHADOWKEEP_LOG_LEVEL``: logging level name for the CLI
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Mapping, Optional

from platformdirs import user_data_dir

from .exceptions import ShadowKeepError
from .secure_store import SecureStore
from ..security.providers import (
    DEFAULT_KEY_NAME,
    DEFAULT_SERVICE_NAME,
    KeyProvider,
    KeyringKeyProvider,
    MachineKeyProvider,
    PassphraseKeyProvider,
)
from ..security.session import KeySession


PROVIDERS = ("machine", "keyring", "passphrase")
_FALSEY = {"0", "false", "no", "off"}


@dataclass
class StoreConfig:
    data_dir: Path
    app_name: str = DEFAULT_SERVICE_NAME
    provider: str = "machine"
    passphrase: Optional[str] = field(default=None, repr=False)
    legacy_keyring: bool = True
    log_level: str = "WARNING"


def load_config(env: Optional[Mapping[str, str]] = None, **overrides) -> StoreConfig:
    """Build a StoreConfig from ``env`` (defaults to os.environ).

    Keyword overrides win over the environment; ``None`` values are ignored so
    CLI flags that were not given fall through.
    """
    env = os.environ if env is None else env
    app_name = overrides.get("app_name") or env.get("SHADOWKEEP_APP_NAME") or DEFAULT_SERVICE_NAME
    data_dir = overrides.get("data_dir") or env.get("SHADOWKEEP_DATA_DIR") or user_data_dir(app_name)
    provider = (overrides.get("provider") or env.get("SHADOWKEEP_KEY_PROVIDER") or "machine").lower()
    if provider not in PROVIDERS:
        raise ShadowKeepError(f"Unknown key provider {provider!r}; expected one of {', '.join(PROVIDERS)}")

    legacy = overrides.get("legacy_keyring")
    if legacy is None:
        legacy = env.get("SHADOWKEEP_LEGACY_KEYRING", "1").strip().lower() not in _FALSEY

    return StoreConfig(
        data_dir=Path(data_dir).expanduser(),
        app_name=app_name,
        provider=provider,
        passphrase=overrides.get("passphrase") or env.get("SHADOWKEEP_PASSPHRASE"),
        legacy_keyring=bool(legacy),
        log_level=(overrides.get("log_level") or env.get("SHADOWKEEP_LOG_LEVEL") or "WARNING").upper(),
    )


def build_provider(config: StoreConfig) -> KeyProvider:
    if config.provider == "keyring":
        return KeySession(KeyringKeyProvider(service=config.app_name, account=DEFAULT_KEY_NAME))
    if config.provider == "passphrase":
        return KeySession(PassphraseKeyProvider(config.data_dir, config.passphrase))
    return MachineKeyProvider()


def build_legacy_providers(config: StoreConfig) -> List[KeyProvider]:
    # The keyring generation predates the machine-derived key; never create a
    # vault entry just to read old records.
    if config.legacy_keyring and config.provider != "keyring":
        return [KeySession(KeyringKeyProvider(service=config.app_name, account=DEFAULT_KEY_NAME, create=False))]
    return []


def build_store(config: Optional[StoreConfig] = None) -> SecureStore:
    config = config or load_config()
    return SecureStore(
        config.data_dir,
        provider=build_provider(config),
        legacy_providers=build_legacy_providers(config),
    )
