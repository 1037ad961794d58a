"""Linux Secret Service (session keyring) adapter."""

from __future__ import annotations

from nersc_sshproxy.secrets.keyring_store import KeyringSecretStore


class SecretServiceSecretStore(KeyringSecretStore):
    backend_module = "keyring.backends.SecretService"
    label = "Secret Service keyring"
