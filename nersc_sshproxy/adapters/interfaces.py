"""Interfaces for the two external collaborators of an issuance run."""

from __future__ import annotations

from pathlib import Path
from typing import Protocol

from nersc_sshproxy.models.artifacts import ValidityWindow


class SigningClient(Protocol):
    def create_pair(self, username: str, auth_token: str) -> bytes:
        """Return the raw combined key + certificate payload."""


class KeyTool(Protocol):
    def derive_public_key(self, private_key_path: Path) -> bytes:
        """Return the OpenSSH public key line for a private key file."""

    def inspect_validity(self, certificate_path: Path) -> ValidityWindow:
        """Return the validity window printed for a certificate."""
