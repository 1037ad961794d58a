"""sshproxy command-line entrypoint."""

from __future__ import annotations

import argparse
import getpass
import logging
import sys
from pathlib import Path
from typing import Optional

from nersc_sshproxy.adapters.ssh_keygen import KeyToolError
from nersc_sshproxy.adapters.sshproxy_http import AuthenticationFailedError, SigningServiceError
from nersc_sshproxy.config.credentials import (
    MissingCredentialError,
    clear_credentials,
    store_otp_seed,
    store_password,
)
from nersc_sshproxy.config.settings import Settings, SettingsLoadError, apply_overrides, load_settings
from nersc_sshproxy.core.issuer import CertificateIssuer
from nersc_sshproxy.core.secure_writer import ArtifactWriteError
from nersc_sshproxy.core.splitter import MalformedResponseError
from nersc_sshproxy.core.totp import InvalidSeedError, decode_seed
from nersc_sshproxy.secrets.base import SecretNotFoundError, SecretStore, SecretStoreUnavailableError
from nersc_sshproxy.secrets.factory import create_secret_store

VERSION = "0.2.0"

EXIT_OK = 0
EXIT_SETTINGS = 2
EXIT_NOT_FOUND = 3
EXIT_STORE_UNAVAILABLE = 4
EXIT_INVALID_SEED = 5
EXIT_NETWORK = 6
EXIT_AUTH_FAILED = 7
EXIT_MALFORMED_RESPONSE = 8
EXIT_FILESYSTEM = 9
EXIT_KEY_TOOL = 10
EXIT_INTERRUPTED = 130

LOGGER = logging.getLogger("nersc_sshproxy")


def _configure_logging(verbosity: int) -> None:
    level = logging.WARNING
    if verbosity == 1:
        level = logging.INFO
    elif verbosity >= 2:
        level = logging.DEBUG
    logging.basicConfig(
        level=level,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
        stream=sys.stderr,
    )
    logging.getLogger("keyring").setLevel(logging.WARNING)


def _error(message: str) -> None:
    print(f"Error: {message}", file=sys.stderr)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="sshproxy",
        description="Obtain a short-lived NERSC SSH certificate using credentials from the OS keyring",
    )
    parser.add_argument(
        "username",
        nargs="?",
        help="NERSC username (default: the current login name)",
    )
    parser.add_argument("--update-password", action="store_true", help="Store or replace the NERSC password")
    parser.add_argument("--update-secret", action="store_true", help="Store or replace the base32 OTP seed")
    parser.add_argument(
        "--clear-credentials",
        action="store_true",
        help="Delete the stored password and OTP seed for the user",
    )
    parser.add_argument("-s", "--scope", help="sshproxy scope (default: from config, else 'default')")
    parser.add_argument("-o", "--output", help="Private key path (default: ~/.ssh/nersc)")
    parser.add_argument("-u", "--url", help="sshproxy base URL (default: https://sshproxy.nersc.gov)")
    parser.add_argument(
        "-c",
        "--config",
        help="Settings YAML file (default: $SSHPROXY_CONFIG or ~/.config/sshproxy/config.yaml)",
    )
    parser.add_argument("-v", "--verbose", action="count", default=0, help="Increase log verbosity (-v, -vv)")
    parser.add_argument("--version", action="version", version=f"%(prog)s {VERSION}")
    return parser


def _prompt_secret(label: str, strip: bool = False) -> Optional[str]:
    # Passwords are stored exactly as typed; only the seed is normalised.
    value = getpass.getpass(f"Enter {label}: ")
    if strip:
        value = value.strip()
    if not value:
        _error(f"{label} must not be empty")
        return None
    return value


def _update_credentials(args: argparse.Namespace, store: SecretStore, settings: Settings, username: str) -> int:
    if args.update_password:
        password = _prompt_secret(f"NERSC password for {username}")
        if password is None:
            return EXIT_SETTINGS
        store_password(store, settings.secrets, username, password)
        print(f"Stored password for {username} in {store.label}")
    if args.update_secret:
        seed = _prompt_secret(f"OTP secret (base32) for {username}", strip=True)
        if seed is None:
            return EXIT_SETTINGS
        decode_seed(seed)
        store_otp_seed(store, settings.secrets, username, seed)
        print(f"Stored OTP secret for {username} in {store.label}")
    return EXIT_OK


def _run(args: argparse.Namespace, username: str) -> int:
    config_path = Path(args.config).expanduser() if args.config else None
    settings = apply_overrides(load_settings(config_path), url=args.url, scope=args.scope, key_path=args.output)
    store = create_secret_store()

    if args.clear_credentials:
        removed = clear_credentials(store, settings.secrets, username)
        if removed:
            print(f"Removed {', '.join(removed)} entries for {username}")
        else:
            print(f"No stored credentials for {username}")
        return EXIT_OK

    if args.update_password or args.update_secret:
        return _update_credentials(args, store, settings, username)

    print(f"Requesting SSH key for user: {username}")
    issuer = CertificateIssuer.from_settings(settings, store)
    try:
        result = issuer.issue(username)
    except Exception:
        last_stage = issuer.failed_after.value if issuer.failed_after is not None else "-"
        LOGGER.debug("issuance failed after stage=%s", last_stage)
        raise

    print(f"Successfully obtained ssh key: {result.artifacts.private_key_path}")
    if result.validity is not None:
        print(f"Key is {result.validity.describe()}")
    return EXIT_OK


def main(argv: Optional[list[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    _configure_logging(args.verbose)

    username = args.username or getpass.getuser()
    LOGGER.info("starting user=%s", username)

    try:
        return _run(args, username)
    except SettingsLoadError as exc:
        _error(f"invalid settings: {exc}")
        return EXIT_SETTINGS
    except MissingCredentialError as exc:
        _error(
            f"no credential stored for service={exc.service} account={exc.account}.\n"
            f"Run: sshproxy {exc.update_flag} {username}"
        )
        return EXIT_NOT_FOUND
    except SecretNotFoundError as exc:
        _error(str(exc))
        return EXIT_NOT_FOUND
    except SecretStoreUnavailableError as exc:
        _error(f"credential store is unavailable: {exc}")
        return EXIT_STORE_UNAVAILABLE
    except InvalidSeedError as exc:
        _error(f"{exc}. Run: sshproxy --update-secret {username}")
        return EXIT_INVALID_SEED
    except AuthenticationFailedError as exc:
        _error(f"{exc}. Update them with --update-password / --update-secret if they changed")
        return EXIT_AUTH_FAILED
    except SigningServiceError as exc:
        _error(f"could not reach sshproxy: {exc}. Check your network connection")
        return EXIT_NETWORK
    except MalformedResponseError as exc:
        _error(f"sshproxy sent an unexpected response: {exc}")
        return EXIT_MALFORMED_RESPONSE
    except ArtifactWriteError as exc:
        _error(f"{exc}. Check permissions on the key directory")
        return EXIT_FILESYSTEM
    except KeyToolError as exc:
        _error(str(exc))
        return EXIT_KEY_TOOL
    except (KeyboardInterrupt, EOFError):
        print(file=sys.stderr)
        return EXIT_INTERRUPTED


if __name__ == "__main__":
    raise SystemExit(main())
