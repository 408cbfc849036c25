"""
Unit tests for the in-memory KeySession.
"""

import threading
import time

import pytest
from unittest.mock import MagicMock, patch

from shadowkeep.core.exceptions import KeyAccessError
from shadowkeep.security.providers import KeyProvider
from shadowkeep.security.session import KeySession


# ==============================================================================
# Fixtures
# ==============================================================================

@pytest.fixture
def provider():
    mock = MagicMock(spec=KeyProvider)
    mock.name = "mock"
    mock.get_key.return_value = b"k" * 32
    return mock


# ==============================================================================
# Tests
# ==============================================================================

def test_session_caches_key(provider):
    session = KeySession(provider)

    assert session.get_key() == b"k" * 32
    assert session.get_key() == b"k" * 32
    provider.get_key.assert_called_once()
    assert session.unlocked
    assert session.name == "mock"


def test_lock_forces_refetch(provider):
    session = KeySession(provider)
    session.get_key()
    session.lock()

    assert not session.unlocked
    session.get_key()
    assert provider.get_key.call_count == 2


def test_ttl_expiry_refetches(provider):
    session = KeySession(provider, ttl_seconds=10)
    with patch("shadowkeep.security.session.time.time", return_value=1000.0):
        session.get_key()
    with patch("shadowkeep.security.session.time.time", return_value=1005.0):
        assert session.unlocked
        session.get_key()
    assert provider.get_key.call_count == 1

    with patch("shadowkeep.security.session.time.time", return_value=1011.0):
        assert not session.unlocked
        session.get_key()
    assert provider.get_key.call_count == 2


def test_extend(provider):
    session = KeySession(provider, ttl_seconds=10)
    with patch("shadowkeep.security.session.time.time", return_value=1000.0):
        session.get_key()
        session.extend(20)
    with patch("shadowkeep.security.session.time.time", return_value=1025.0):
        assert session.unlocked


def test_extend_locked_raises(provider):
    with pytest.raises(RuntimeError, match="Session is locked"):
        KeySession(provider).extend(5)


def test_provider_failure_is_not_cached(provider):
    provider.get_key.side_effect = [KeyAccessError("vault locked"), b"k" * 32]
    session = KeySession(provider)

    with pytest.raises(KeyAccessError):
        session.get_key()
    assert session.get_key() == b"k" * 32


def test_concurrent_get_key_fetches_once(provider):
    def slow_key():
        time.sleep(0.05)
        return b"k" * 32

    provider.get_key.side_effect = slow_key
    session = KeySession(provider)
    barrier = threading.Barrier(4)
    keys = []

    def worker():
        barrier.wait()
        keys.append(session.get_key())

    threads = [threading.Thread(target=worker) for _ in range(4)]
    for t in threads:
        t.start()
    for t in threads:
        t.join(timeout=10)

    assert keys == [b"k" * 32] * 4
    provider.get_key.assert_called_once()


def test_repeated_lock_is_harmless(provider):
    session = KeySession(provider)
    session.get_key()
    session.lock()
    session.lock()

    assert not session.unlocked
    assert session.get_key() == b"k" * 32
