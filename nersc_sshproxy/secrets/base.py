"""SecretStore abstractions.

Policy: the password and OTP seed live in the OS credential store only.
They are never read from the environment and never written to disk by this tool.
"""

from __future__ import annotations

from abc import ABC, abstractmethod


class SecretStoreError(RuntimeError):
    """Raised when a secret cannot be loaded or stored securely."""


class SecretNotFoundError(SecretStoreError):
    """Raised when no secret exists for a (service, account) pair."""

    def __init__(self, service: str, account: str) -> None:
        super().__init__(f"no secret stored for service={service} account={account}")
        self.service = service
        self.account = account


class SecretStoreUnavailableError(SecretStoreError):
    """Raised when the credential store itself cannot be reached."""


class SecretStore(ABC):
    """Credential store interface keyed by (service, account)."""

    #: Human-readable backend name used in error messages.
    label: str = "secret store"

    @abstractmethod
    def get_secret(self, service: str, account: str) -> str:
        """Return the secret or raise SecretNotFoundError / SecretStoreUnavailableError."""

    @abstractmethod
    def set_secret(self, service: str, account: str, value: str) -> None:
        """Store a secret, replacing any existing value under the same key."""

    @abstractmethod
    def delete_secret(self, service: str, account: str) -> None:
        """Remove a secret or raise SecretNotFoundError."""


def require_secret(store: SecretStore, service: str, account: str) -> str:
    value = store.get_secret(service, account)
    if not value:
        raise SecretNotFoundError(service, account)
    return value
