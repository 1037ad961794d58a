"""Basic-Auth password framing expected by sshproxy."""

from __future__ import annotations


def assemble_auth_token(password: str, code: str) -> str:
    # sshproxy reads the OTP as the trailing digits; no separator.
    if not code.isdigit():
        raise ValueError("one-time code must be decimal digits")
    return password + code
