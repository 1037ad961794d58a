"""Minimal sshproxy HTTP client (no external HTTP dependency)."""

from __future__ import annotations

import base64
import logging
from typing import Any, Optional
from urllib.error import HTTPError, URLError
from urllib.request import HTTPRedirectHandler, OpenerDirector, Request, build_opener

LOGGER = logging.getLogger(__name__)

_AUTH_FAILED_MARKER = b"Authentication failed"


class SigningServiceError(RuntimeError):
    """Raised when the sshproxy request fails in transport or at HTTP level."""

    def __init__(self, message: str, status: Optional[int] = None) -> None:
        super().__init__(message)
        self.status = status


class AuthenticationFailedError(SigningServiceError):
    """Raised when sshproxy rejects the password + OTP."""


class _NoRedirect(HTTPRedirectHandler):
    def redirect_request(self, req: Any, fp: Any, code: int, msg: str, headers: Any, newurl: str) -> None:
        return None


def _basic_auth_header(username: str, password: str) -> str:
    raw = f"{username}:{password}".encode("utf-8")
    return "Basic " + base64.b64encode(raw).decode("ascii")


class SshProxyClient:
    def __init__(
        self,
        url: str,
        scope: str,
        timeout_seconds: int,
        opener: Optional[OpenerDirector] = None,
    ) -> None:
        self._url = url.rstrip("/")
        self._scope = scope
        self._timeout_seconds = timeout_seconds
        self._opener = opener or build_opener(_NoRedirect)

    @property
    def endpoint(self) -> str:
        return f"{self._url}/create_pair/{self._scope}/"

    def create_pair(self, username: str, auth_token: str) -> bytes:
        req = Request(
            url=self.endpoint,
            data=b"",
            method="POST",
            headers={"Authorization": _basic_auth_header(username, auth_token)},
        )
        LOGGER.info("requesting key pair user=%s endpoint=%s", username, self.endpoint)

        try:
            with self._opener.open(req, timeout=self._timeout_seconds) as resp:
                body = resp.read()
        except HTTPError as exc:
            detail = b""
            try:
                detail = exc.read() or b""
            except Exception:
                detail = b""
            if exc.code == 401 or _AUTH_FAILED_MARKER in detail:
                raise AuthenticationFailedError(
                    "authentication failed; check your password and OTP seed", status=exc.code
                ) from exc
            text = detail.decode("utf-8", errors="replace").strip()
            if text:
                raise SigningServiceError(f"sshproxy HTTP {exc.code}: {text[:300]}", status=exc.code) from exc
            raise SigningServiceError(f"sshproxy HTTP {exc.code}", status=exc.code) from exc
        except URLError as exc:
            reason = exc.reason if getattr(exc, "reason", None) else str(exc)
            raise SigningServiceError(f"sshproxy connection error: {reason}") from exc
        except (OSError, ValueError) as exc:
            raise SigningServiceError(f"sshproxy request failed: {exc}") from exc
        except Exception as exc:
            raise SigningServiceError(f"sshproxy request failed: {exc!r}") from exc

        if _AUTH_FAILED_MARKER in body:
            raise AuthenticationFailedError("authentication failed; check your password and OTP seed")
        if not body.strip():
            raise SigningServiceError("sshproxy returned an empty response")
        return body
