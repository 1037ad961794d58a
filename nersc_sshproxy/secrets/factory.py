"""Secret store factory based on OS."""

from __future__ import annotations

import platform

from nersc_sshproxy.secrets.base import SecretStore, SecretStoreUnavailableError
from nersc_sshproxy.secrets.keychain_store import KeychainSecretStore
from nersc_sshproxy.secrets.secret_service_store import SecretServiceSecretStore


def create_secret_store() -> SecretStore:
    system = platform.system().lower()
    if system == "darwin":
        return KeychainSecretStore()
    if system == "linux":
        return SecretServiceSecretStore()
    raise SecretStoreUnavailableError(
        f"unsupported OS for secret storage: {platform.system()} "
        "(supported: macOS, Linux)"
    )
