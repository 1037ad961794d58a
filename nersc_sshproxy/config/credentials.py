"""Credential accessor facade.

Two entries are kept in the OS store, both under the NERSC username:
- password service (default ``NERSC``): the NERSC password
- OTP service (default ``NERSC_SECRET``): the base32 TOTP seed
"""

from __future__ import annotations

from dataclasses import dataclass, field

from nersc_sshproxy.config.settings import SecretsConfig
from nersc_sshproxy.secrets.base import SecretNotFoundError, SecretStore, require_secret


@dataclass(frozen=True)
class Credentials:
    username: str
    password: str = field(repr=False)
    otp_seed: str = field(repr=False)


class MissingCredentialError(SecretNotFoundError):
    """Raised when one of the two required entries is absent."""

    def __init__(self, service: str, account: str, update_flag: str) -> None:
        super().__init__(service, account)
        self.update_flag = update_flag


def load_credentials(store: SecretStore, secrets: SecretsConfig, username: str) -> Credentials:
    try:
        password = require_secret(store, secrets.password_service, username)
    except SecretNotFoundError as exc:
        raise MissingCredentialError(secrets.password_service, username, "--update-password") from exc
    try:
        otp_seed = require_secret(store, secrets.otp_service, username)
    except SecretNotFoundError as exc:
        raise MissingCredentialError(secrets.otp_service, username, "--update-secret") from exc
    return Credentials(username=username, password=password, otp_seed=otp_seed)


def store_password(store: SecretStore, secrets: SecretsConfig, username: str, password: str) -> None:
    store.set_secret(secrets.password_service, username, password)


def store_otp_seed(store: SecretStore, secrets: SecretsConfig, username: str, seed: str) -> None:
    store.set_secret(secrets.otp_service, username, seed)


def clear_credentials(store: SecretStore, secrets: SecretsConfig, username: str) -> list[str]:
    """Delete both entries. Returns the services that actually held a value."""
    removed: list[str] = []
    for service in (secrets.password_service, secrets.otp_service):
        try:
            store.delete_secret(service, username)
        except SecretNotFoundError:
            continue
        removed.append(service)
    return removed
