"""ssh-keygen adapter for public-key derivation and certificate inspection."""

from __future__ import annotations

import re
import subprocess
from pathlib import Path

from nersc_sshproxy.models.artifacts import ValidityWindow

_VALID_LINE = re.compile(r"^\s*Valid:\s*(.+?)\s*$", re.MULTILINE)
_VALID_RANGE = re.compile(r"^from (\S+) to (\S+)$")


class KeyToolError(RuntimeError):
    """Raised when ssh-keygen is missing or exits non-zero."""


class SshKeygen:
    def __init__(self, command: str = "ssh-keygen", timeout_seconds: int = 30) -> None:
        self._command = command
        self._timeout_seconds = timeout_seconds

    def derive_public_key(self, private_key_path: Path) -> bytes:
        proc = self._run(["-y", "-f", str(private_key_path)])
        public_key = proc.stdout.strip()
        if not public_key:
            raise KeyToolError("ssh-keygen -y produced no public key")
        return (public_key + "\n").encode("utf-8")

    def inspect_validity(self, certificate_path: Path) -> ValidityWindow:
        proc = self._run(["-L", "-f", str(certificate_path)])
        return parse_validity(proc.stdout)

    def _run(self, args: list[str]) -> subprocess.CompletedProcess:
        cmd = [self._command, *args]
        try:
            proc = subprocess.run(
                cmd,
                capture_output=True,
                text=True,
                timeout=self._timeout_seconds,
                check=False,
            )
        except FileNotFoundError as exc:
            raise KeyToolError(f"{self._command} not found. Install OpenSSH client tools.") from exc
        except subprocess.TimeoutExpired as exc:
            raise KeyToolError(f"{self._command} timed out") from exc

        if proc.returncode != 0:
            detail = (proc.stderr or proc.stdout or "").strip()
            raise KeyToolError(f"{self._command} {args[0]} failed (exit {proc.returncode}): {detail}")
        return proc


def parse_validity(listing: str) -> ValidityWindow:
    match = _VALID_LINE.search(listing)
    if match is None:
        return ValidityWindow(raw="unknown")
    raw = match.group(1)
    window = _VALID_RANGE.match(raw)
    if window is None:
        return ValidityWindow(raw=raw)
    return ValidityWindow(raw=raw, valid_from=window.group(1), valid_to=window.group(2))
