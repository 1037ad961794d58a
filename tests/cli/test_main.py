from pathlib import Path
from typing import Optional

import pytest

from nersc_sshproxy import main as cli
from nersc_sshproxy.adapters.sshproxy_http import AuthenticationFailedError, SigningServiceError
from nersc_sshproxy.core.splitter import MalformedResponseError
from nersc_sshproxy.models.artifacts import IssueResult, KeyArtifactSet, ValidityWindow
from nersc_sshproxy.secrets.base import SecretNotFoundError, SecretStoreUnavailableError


class _DummyStore:
    label = "dummy"

    def __init__(self, values: Optional[dict[tuple[str, str], str]] = None) -> None:
        self.values = dict(values or {})

    def get_secret(self, service: str, account: str) -> str:
        if (service, account) not in self.values:
            raise SecretNotFoundError(service, account)
        return self.values[(service, account)]

    def set_secret(self, service: str, account: str, value: str) -> None:
        self.values[(service, account)] = value

    def delete_secret(self, service: str, account: str) -> None:
        if (service, account) not in self.values:
            raise SecretNotFoundError(service, account)
        del self.values[(service, account)]


@pytest.fixture(autouse=True)
def _isolated_env(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
    monkeypatch.setenv("HOME", str(tmp_path))
    monkeypatch.setenv("SSHPROXY_CONFIG", str(tmp_path / "absent.yaml"))
    for name in ("SSHPROXY_URL", "SSHPROXY_SCOPE", "SSHPROXY_KEY_PATH"):
        monkeypatch.delenv(name, raising=False)


def _use_store(monkeypatch: pytest.MonkeyPatch, store: _DummyStore) -> None:
    monkeypatch.setattr(cli, "create_secret_store", lambda: store)


def _fail_issue(monkeypatch: pytest.MonkeyPatch, error: Exception) -> None:
    def _issue(self, username):  # type: ignore[no-untyped-def]
        raise error

    monkeypatch.setattr("nersc_sshproxy.core.issuer.CertificateIssuer.issue", _issue)


def test_missing_password_exit_code_and_hint(monkeypatch: pytest.MonkeyPatch, capsys: pytest.CaptureFixture) -> None:
    _use_store(monkeypatch, _DummyStore())
    assert cli.main(["alice"]) == cli.EXIT_NOT_FOUND
    err = capsys.readouterr().err
    assert "--update-password alice" in err


def test_missing_seed_hint_names_update_secret(monkeypatch: pytest.MonkeyPatch, capsys: pytest.CaptureFixture) -> None:
    _use_store(monkeypatch, _DummyStore({("NERSC", "alice"): "pw"}))
    assert cli.main(["alice"]) == cli.EXIT_NOT_FOUND
    assert "--update-secret alice" in capsys.readouterr().err


def test_store_unavailable_exit_code(monkeypatch: pytest.MonkeyPatch) -> None:
    def _raise() -> None:
        raise SecretStoreUnavailableError("no D-Bus session")

    monkeypatch.setattr(cli, "create_secret_store", _raise)
    assert cli.main(["alice"]) == cli.EXIT_STORE_UNAVAILABLE


def test_invalid_seed_exit_code(monkeypatch: pytest.MonkeyPatch) -> None:
    _use_store(monkeypatch, _DummyStore({("NERSC", "alice"): "pw", ("NERSC_SECRET", "alice"): "###"}))
    assert cli.main(["alice"]) == cli.EXIT_INVALID_SEED


@pytest.mark.parametrize(
    "error,code",
    [
        (SigningServiceError("connection refused"), cli.EXIT_NETWORK),
        (AuthenticationFailedError("rejected", status=401), cli.EXIT_AUTH_FAILED),
        (MalformedResponseError("no certificate"), cli.EXIT_MALFORMED_RESPONSE),
    ],
)
def test_error_kinds_map_to_distinct_exit_codes(monkeypatch: pytest.MonkeyPatch, error: Exception, code: int) -> None:
    _use_store(monkeypatch, _DummyStore())
    _fail_issue(monkeypatch, error)
    assert cli.main(["alice"]) == code


def test_exit_codes_are_distinct() -> None:
    codes = [
        cli.EXIT_SETTINGS,
        cli.EXIT_NOT_FOUND,
        cli.EXIT_STORE_UNAVAILABLE,
        cli.EXIT_INVALID_SEED,
        cli.EXIT_NETWORK,
        cli.EXIT_AUTH_FAILED,
        cli.EXIT_MALFORMED_RESPONSE,
        cli.EXIT_FILESYSTEM,
        cli.EXIT_KEY_TOOL,
    ]
    assert len(set(codes)) == len(codes)
    assert cli.EXIT_OK not in codes


def test_success_prints_key_path_and_validity(
    monkeypatch: pytest.MonkeyPatch, tmp_path: Path, capsys: pytest.CaptureFixture
) -> None:
    _use_store(monkeypatch, _DummyStore())

    def _issue(self, username):  # type: ignore[no-untyped-def]
        key = tmp_path / ".ssh" / "nersc"
        return IssueResult(
            username=username,
            artifacts=KeyArtifactSet(
                private_key_path=key,
                certificate_path=key.with_name("nersc-cert.pub"),
                public_key_path=key.with_name("nersc.pub"),
            ),
            validity=ValidityWindow(raw="from a to b", valid_from="a", valid_to="b"),
        )

    monkeypatch.setattr("nersc_sshproxy.core.issuer.CertificateIssuer.issue", _issue)
    assert cli.main(["alice"]) == cli.EXIT_OK
    out = capsys.readouterr().out
    assert "Requesting SSH key for user: alice" in out
    assert f"Successfully obtained ssh key: {tmp_path / '.ssh' / 'nersc'}" in out
    assert "Key is valid: from a to b" in out


def test_username_defaults_to_login_name(monkeypatch: pytest.MonkeyPatch, capsys: pytest.CaptureFixture) -> None:
    monkeypatch.setattr("getpass.getuser", lambda: "bob")
    _use_store(monkeypatch, _DummyStore())
    assert cli.main([]) == cli.EXIT_NOT_FOUND
    assert "--update-password bob" in capsys.readouterr().err


def test_update_password_stores_masked_input(monkeypatch: pytest.MonkeyPatch) -> None:
    store = _DummyStore()
    _use_store(monkeypatch, store)
    monkeypatch.setattr("getpass.getpass", lambda prompt: "s3cret")
    assert cli.main(["alice", "--update-password"]) == cli.EXIT_OK
    assert store.values == {("NERSC", "alice"): "s3cret"}


def test_update_secret_validates_seed_before_storing(monkeypatch: pytest.MonkeyPatch) -> None:
    store = _DummyStore()
    _use_store(monkeypatch, store)
    monkeypatch.setattr("getpass.getpass", lambda prompt: "not base32 !")
    assert cli.main(["alice", "--update-secret"]) == cli.EXIT_INVALID_SEED
    assert store.values == {}

    monkeypatch.setattr("getpass.getpass", lambda prompt: "gezdgnbvgy3tqojq")
    assert cli.main(["alice", "--update-secret"]) == cli.EXIT_OK
    assert store.values == {("NERSC_SECRET", "alice"): "gezdgnbvgy3tqojq"}


def test_empty_prompt_is_rejected(monkeypatch: pytest.MonkeyPatch) -> None:
    store = _DummyStore()
    _use_store(monkeypatch, store)
    monkeypatch.setattr("getpass.getpass", lambda prompt: "")
    assert cli.main(["alice", "--update-password"]) == cli.EXIT_SETTINGS
    monkeypatch.setattr("getpass.getpass", lambda prompt: "   ")
    assert cli.main(["alice", "--update-secret"]) == cli.EXIT_SETTINGS
    assert store.values == {}


def test_update_password_keeps_surrounding_whitespace(monkeypatch: pytest.MonkeyPatch) -> None:
    store = _DummyStore()
    _use_store(monkeypatch, store)
    monkeypatch.setattr("getpass.getpass", lambda prompt: " secret pw ")
    assert cli.main(["alice", "--update-password"]) == cli.EXIT_OK
    assert store.values == {("NERSC", "alice"): " secret pw "}


def test_update_secret_strips_pasted_whitespace(monkeypatch: pytest.MonkeyPatch) -> None:
    store = _DummyStore()
    _use_store(monkeypatch, store)
    monkeypatch.setattr("getpass.getpass", lambda prompt: "  GEZDGNBV\n")
    assert cli.main(["alice", "--update-secret"]) == cli.EXIT_OK
    assert store.values == {("NERSC_SECRET", "alice"): "GEZDGNBV"}


def test_closed_stdin_at_prompt_is_an_interrupt(monkeypatch: pytest.MonkeyPatch, capsys: pytest.CaptureFixture) -> None:
    store = _DummyStore()
    _use_store(monkeypatch, store)

    def _eof(prompt: str) -> str:
        raise EOFError

    monkeypatch.setattr("getpass.getpass", _eof)
    assert cli.main(["alice", "--update-password"]) == cli.EXIT_INTERRUPTED
    assert store.values == {}
    assert "Traceback" not in capsys.readouterr().err


def test_clear_credentials(monkeypatch: pytest.MonkeyPatch) -> None:
    store = _DummyStore({("NERSC", "alice"): "pw", ("NERSC_SECRET", "alice"): "GEZDGNBV"})
    _use_store(monkeypatch, store)
    assert cli.main(["alice", "--clear-credentials"]) == cli.EXIT_OK
    assert store.values == {}


def test_invalid_scope_is_a_settings_error(monkeypatch: pytest.MonkeyPatch) -> None:
    _use_store(monkeypatch, _DummyStore())
    assert cli.main(["alice", "--scope", "../x"]) == cli.EXIT_SETTINGS


def test_version_flag(capsys: pytest.CaptureFixture) -> None:
    with pytest.raises(SystemExit) as info:
        cli.main(["--version"])
    assert info.value.code == 0
    assert cli.VERSION in capsys.readouterr().out
