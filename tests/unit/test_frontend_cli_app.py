"""Unit tests for the argparse CLI."""

import io

import pytest
from unittest.mock import patch

from shadowkeep.core.exceptions import KeyAccessError
from shadowkeep.core.secure_store import SecureStore
from shadowkeep.frontend.cli import app
from shadowkeep.security.providers import KeyProvider, StaticKeyProvider


KEY = b"\x07" * 32


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    for var in (
        "SHADOWKEEP_DATA_DIR",
        "SHADOWKEEP_APP_NAME",
        "SHADOWKEEP_KEY_PROVIDER",
        "SHADOWKEEP_PASSPHRASE",
        "SHADOWKEEP_LEGACY_KEYRING",
        "SHADOWKEEP_LOG_LEVEL",
    ):
        monkeypatch.delenv(var, raising=False)


@pytest.fixture
def static_store():
    """Build stores with a fixed key instead of the machine id."""
    def build(config):
        return SecureStore(config.data_dir, StaticKeyProvider(KEY))

    with patch("shadowkeep.frontend.cli.app.build_store", side_effect=build):
        yield


def run(tmp_path, *argv):
    return app.main(["--data-dir", str(tmp_path), *argv])


def test_set_get_delete(tmp_path, static_store, capsys):
    assert run(tmp_path, "set", "api_key", "sk-123") == 0
    assert run(tmp_path, "get", "api_key") == 0
    assert capsys.readouterr().out == "sk-123\n"

    assert run(tmp_path, "delete", "api_key") == 0
    assert run(tmp_path, "get", "api_key") == 0
    assert capsys.readouterr().out == "\n"


def test_set_reads_stdin(tmp_path, static_store, monkeypatch, capsys):
    monkeypatch.setattr("sys.stdin", io.StringIO("from-stdin\n"))
    assert run(tmp_path, "set", "token") == 0

    run(tmp_path, "get", "token")
    assert capsys.readouterr().out == "from-stdin\n"


def test_set_prompts_on_tty(tmp_path, static_store, capsys):
    with patch("shadowkeep.frontend.cli.app.sys.stdin") as stdin, \
            patch("shadowkeep.frontend.cli.app.getpass.getpass", return_value="typed") as prompt:
        stdin.isatty.return_value = True
        assert run(tmp_path, "set", "token") == 0
    prompt.assert_called_once()

    run(tmp_path, "get", "token")
    assert capsys.readouterr().out == "typed\n"


def test_get_copy_uses_clipboard(tmp_path, static_store, capsys):
    run(tmp_path, "set", "k", "clip-me")
    with patch("shadowkeep.frontend.cli.app.copy_to_clipboard") as copy:
        assert run(tmp_path, "get", "k", "--copy") == 0

    copy.assert_called_once_with("clip-me")
    assert capsys.readouterr().out == ""


def test_list(tmp_path, static_store, capsys):
    run(tmp_path, "set", "b", "2")
    run(tmp_path, "set", "a/x", "1")
    assert run(tmp_path, "list") == 0
    assert capsys.readouterr().out.split() == ["a_x", "b"]


def test_migrate(tmp_path, static_store, capsys):
    secure = tmp_path / "secure"
    secure.mkdir()
    (secure / "legacy").write_bytes(b"plain")
    (secure / "broken").write_bytes(b"\xff\xfe")

    assert run(tmp_path, "migrate") == 1
    err = capsys.readouterr().err
    assert "legacy: migrated from plaintext" in err
    assert "broken: failed" in err
    assert "2 record(s) checked, 1 failed" in err


def test_errors_exit_nonzero(tmp_path, capsys):
    class Locked(KeyProvider):
        name = "locked"

        def get_key(self):
            raise KeyAccessError("Failed to get machine ID")

    with patch("shadowkeep.frontend.cli.app.build_store", side_effect=lambda c: SecureStore(c.data_dir, Locked())):
        assert run(tmp_path, "set", "k", "v") == 1
    assert "error: Failed to get machine ID" in capsys.readouterr().err


def test_doctor(tmp_path, static_store, capsys):
    with patch("shadowkeep.frontend.cli.app.assess_keyring_backend", return_value=(True, "backend looks acceptable")):
        assert run(tmp_path, "doctor") == 0
    out = capsys.readouterr().out
    assert str(tmp_path) in out
    assert "key provider:    machine" in out
    assert "key access:      ok" in out


def test_invalid_provider_from_env(tmp_path, monkeypatch, capsys):
    monkeypatch.setenv("SHADOWKEEP_KEY_PROVIDER", "tpm")
    assert run(tmp_path, "list") == 1
    assert "Unknown key provider" in capsys.readouterr().err
