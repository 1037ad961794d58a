"""macOS Keychain secret adapter."""

from __future__ import annotations

from nersc_sshproxy.secrets.keyring_store import KeyringSecretStore


class KeychainSecretStore(KeyringSecretStore):
    backend_module = "keyring.backends.macOS"
    label = "Keychain"
