"""Settings loader for the sshproxy client.

The config file is optional. Every key has a default that matches the
production NERSC service, so a missing file yields a working configuration.
"""

from __future__ import annotations

import os
import re
from dataclasses import dataclass, replace
from pathlib import Path
from typing import Any, Optional

import yaml

DEFAULT_CONFIG_PATH = Path("~/.config/sshproxy/config.yaml")
SUPPORTED_ALGORITHMS = {"sha1", "sha256", "sha512"}

DEFAULT_PRIVATE_KEY_LABELS = [
    "OPENSSH PRIVATE KEY",
    "RSA PRIVATE KEY",
    "EC PRIVATE KEY",
    "PRIVATE KEY",
]
DEFAULT_CERTIFICATE_LABELS = ["CERTIFICATE"]


@dataclass(frozen=True)
class ServerConfig:
    url: str
    scope: str
    timeout_seconds: int


@dataclass(frozen=True)
class SecretsConfig:
    password_service: str
    otp_service: str


@dataclass(frozen=True)
class TotpConfig:
    step_seconds: int
    digits: int
    algorithm: str


@dataclass(frozen=True)
class ResponseFormatConfig:
    private_key_labels: list[str]
    certificate_labels: list[str]
    openssh_certificate_line: bool


@dataclass(frozen=True)
class Settings:
    server: ServerConfig
    key_path: Path
    secrets: SecretsConfig
    totp: TotpConfig
    response: ResponseFormatConfig
    keygen_command: str

    @property
    def certificate_path(self) -> Path:
        return self.key_path.with_name(self.key_path.name + "-cert.pub")

    @property
    def public_key_path(self) -> Path:
        return self.key_path.with_name(self.key_path.name + ".pub")


class SettingsLoadError(RuntimeError):
    """Raised when settings cannot be loaded."""


def _section(raw: dict[str, Any], key: str) -> dict[str, Any]:
    value = raw.get(key, {})
    if value is None:
        return {}
    if not isinstance(value, dict):
        raise SettingsLoadError(f"{key} must be an object")
    return value


def _non_empty(value: Any, key: str) -> str:
    text = str(value).strip()
    if not text:
        raise SettingsLoadError(f"{key} must not be empty")
    return text


def _positive_int(value: Any, key: str) -> int:
    try:
        number = int(value)
    except (TypeError, ValueError) as exc:
        raise SettingsLoadError(f"{key} must be an integer") from exc
    if number <= 0:
        raise SettingsLoadError(f"{key} must be > 0")
    return number


def _labels(value: Any, key: str) -> list[str]:
    if not isinstance(value, list) or not value:
        raise SettingsLoadError(f"{key} must be a non-empty list")
    labels = [_non_empty(item, key).upper() for item in value]
    for label in labels:
        if "-" in label:
            raise SettingsLoadError(f"{key} entries must not contain '-': {label}")
    return labels


def _scope(value: Any, key: str) -> str:
    text = _non_empty(value, key)
    if not re.fullmatch(r"[A-Za-z0-9_.-]{1,64}", text):
        raise SettingsLoadError(f"invalid {key}: {text}")
    return text


def default_config_path() -> Path:
    raw = os.getenv("SSHPROXY_CONFIG", "").strip()
    return Path(raw).expanduser() if raw else DEFAULT_CONFIG_PATH.expanduser()


def load_settings(path: Optional[Path] = None) -> Settings:
    config_path = path if path is not None else default_config_path()
    raw: Any = {}
    if config_path.exists():
        try:
            raw = yaml.safe_load(config_path.read_text(encoding="utf-8"))
        except (OSError, yaml.YAMLError) as exc:
            raise SettingsLoadError(f"cannot read settings file {config_path}: {exc}") from exc
        if raw is None:
            raw = {}
    elif path is not None:
        raise SettingsLoadError(f"settings file not found: {config_path}")

    if not isinstance(raw, dict):
        raise SettingsLoadError("settings root must be an object")

    server_raw = _section(raw, "server")
    output_raw = _section(raw, "output")
    secrets_raw = _section(raw, "secrets")
    totp_raw = _section(raw, "totp")
    response_raw = _section(raw, "response")
    keygen_raw = _section(raw, "keygen")

    url = _non_empty(server_raw.get("url", "https://sshproxy.nersc.gov"), "server.url").rstrip("/")
    if not url.startswith("https://"):
        raise SettingsLoadError("server.url must use https")

    algorithm = str(totp_raw.get("algorithm", "sha1")).strip().lower()
    if algorithm not in SUPPORTED_ALGORITHMS:
        raise SettingsLoadError(f"invalid totp.algorithm: {algorithm}")

    digits = _positive_int(totp_raw.get("digits", 6), "totp.digits")
    if not 6 <= digits <= 10:
        raise SettingsLoadError("totp.digits must be between 6 and 10")

    return Settings(
        server=ServerConfig(
            url=url,
            scope=_scope(server_raw.get("scope", "default"), "server.scope"),
            timeout_seconds=_positive_int(server_raw.get("timeout_seconds", 30), "server.timeout_seconds"),
        ),
        key_path=Path(_non_empty(output_raw.get("key_path", "~/.ssh/nersc"), "output.key_path")).expanduser(),
        secrets=SecretsConfig(
            password_service=_non_empty(secrets_raw.get("password_service", "NERSC"), "secrets.password_service"),
            otp_service=_non_empty(secrets_raw.get("otp_service", "NERSC_SECRET"), "secrets.otp_service"),
        ),
        totp=TotpConfig(
            step_seconds=_positive_int(totp_raw.get("step_seconds", 30), "totp.step_seconds"),
            digits=digits,
            algorithm=algorithm,
        ),
        response=ResponseFormatConfig(
            private_key_labels=_labels(
                response_raw.get("private_key_labels", DEFAULT_PRIVATE_KEY_LABELS),
                "response.private_key_labels",
            ),
            certificate_labels=_labels(
                response_raw.get("certificate_labels", DEFAULT_CERTIFICATE_LABELS),
                "response.certificate_labels",
            ),
            openssh_certificate_line=bool(response_raw.get("openssh_certificate_line", True)),
        ),
        keygen_command=_non_empty(keygen_raw.get("command", "ssh-keygen"), "keygen.command"),
    )


def apply_overrides(
    settings: Settings,
    url: Optional[str] = None,
    scope: Optional[str] = None,
    key_path: Optional[str] = None,
) -> Settings:
    """Layer env vars and then explicit CLI values over file settings."""
    url = url or os.getenv("SSHPROXY_URL", "").strip() or None
    scope = scope or os.getenv("SSHPROXY_SCOPE", "").strip() or None
    key_path = key_path or os.getenv("SSHPROXY_KEY_PATH", "").strip() or None

    server = settings.server
    if url:
        url = url.rstrip("/")
        if not url.startswith("https://"):
            raise SettingsLoadError("server url must use https")
        server = replace(server, url=url)
    if scope:
        server = replace(server, scope=_scope(scope, "scope"))
    out = replace(settings, server=server)
    if key_path:
        out = replace(out, key_path=Path(key_path).expanduser())
    return out
