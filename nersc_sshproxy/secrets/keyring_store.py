"""Shared adapter over a single, explicitly chosen keyring backend.

The backend is instantiated directly instead of going through
``keyring.get_keyring()`` so that a misconfigured store surfaces as an error
rather than being replaced by whatever other backend keyring finds.
"""

from __future__ import annotations

import importlib
from typing import Any

from nersc_sshproxy.secrets.base import (
    SecretNotFoundError,
    SecretStore,
    SecretStoreUnavailableError,
)


class KeyringSecretStore(SecretStore):
    backend_module: str = ""
    label = "credential store"

    def __init__(self) -> None:
        try:
            module = importlib.import_module(self.backend_module)
            self._errors = importlib.import_module("keyring.errors")
        except Exception as exc:  # pragma: no cover - import guarded at runtime
            raise SecretStoreUnavailableError(f"keyring package is required for {self.label} access") from exc
        self._backend = self._create_backend(module)

    def _create_backend(self, module: Any) -> Any:
        try:
            return module.Keyring()
        except Exception as exc:
            raise SecretStoreUnavailableError(f"{self.label} backend could not be initialised") from exc

    def get_secret(self, service: str, account: str) -> str:
        try:
            value = self._backend.get_password(service, account)
        except Exception as exc:
            raise SecretStoreUnavailableError(f"failed to read {self.label} secret '{service}/{account}'") from exc
        if value is None:
            raise SecretNotFoundError(service, account)
        return value

    def set_secret(self, service: str, account: str, value: str) -> None:
        try:
            self._backend.set_password(service, account, value)
        except Exception as exc:
            raise SecretStoreUnavailableError(f"failed to write {self.label} secret '{service}/{account}'") from exc

    def delete_secret(self, service: str, account: str) -> None:
        try:
            self._backend.delete_password(service, account)
        except self._errors.PasswordDeleteError as exc:
            raise SecretNotFoundError(service, account) from exc
        except Exception as exc:
            raise SecretStoreUnavailableError(f"failed to delete {self.label} secret '{service}/{account}'") from exc
