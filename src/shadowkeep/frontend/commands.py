"""Command layer between a UI and the secure store.

These are the three calls a host application makes. Each one is a short
blocking filesystem/keyring operation; hosts with an event loop should run
them through :func:`submit` so the UI thread never waits on disk or the vault.
"""

from __future__ import annotations

import threading
from concurrent.futures import Future, ThreadPoolExecutor
from typing import Callable, Optional

from shadowkeep.core.config import build_store
from shadowkeep.core.secure_store import SecureStore


_store: Optional[SecureStore] = None
_executor: Optional[ThreadPoolExecutor] = None
_store_lock = threading.Lock()
_executor_lock = threading.Lock()


def get_store() -> SecureStore:
    """Return the process-wide store, building it from the environment on first use."""
    global _store
    with _store_lock:
        if _store is None:
            _store = build_store()
        return _store


def set_store(store: Optional[SecureStore]) -> None:
    """Install ``store`` as the process-wide store (``None`` resets it)."""
    global _store
    with _store_lock:
        _store = store


def set_secure_value(key: str, value: str, store: Optional[SecureStore] = None) -> None:
    (store or get_store()).set(key, value)


def get_secure_value(key: str, store: Optional[SecureStore] = None) -> str:
    """Return the value for ``key``; ``""`` when nothing is stored."""
    return (store or get_store()).get(key)


def delete_secure_value(key: str, store: Optional[SecureStore] = None) -> None:
    (store or get_store()).delete(key)


def submit(fn: Callable, *args, **kwargs) -> Future:
    """Run ``fn`` on the shared worker pool and return its Future.

    Exceptions raised by ``fn`` surface from ``Future.result()``.
    """
    global _executor
    with _executor_lock:
        if _executor is None:
            _executor = ThreadPoolExecutor(max_workers=4, thread_name_prefix="shadowkeep")
        return _executor.submit(fn, *args, **kwargs)


def shutdown(wait: bool = True) -> None:
    global _executor
    with _executor_lock:
        executor, _executor = _executor, None
    if executor is not None:
        executor.shutdown(wait=wait)
