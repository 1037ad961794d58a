"""RFC 6238 time-based one-time passcodes.

Codes are computed from the seed and the current clock on every call and are
never cached.
"""

from __future__ import annotations

import base64
import binascii
import hashlib
import hmac
import struct
import time
from typing import Optional

# Unpadded base32 lengths (mod 8) that the encoding can produce, mapped to the
# number of "=" characters the standard appends.
_PADDING_FOR_REMAINDER = {0: 0, 2: 6, 4: 4, 5: 3, 7: 1}
# Bits of the final symbol that carry no data, by unpadded length mod 8.
_UNUSED_BITS_FOR_REMAINDER = {0: 0, 2: 2, 4: 4, 5: 1, 7: 3}
_ALPHABET = "ABCDEFGHIJKLMNOPQRSTUVWXYZ234567"

_DIGESTS = {
    "sha1": hashlib.sha1,
    "sha256": hashlib.sha256,
    "sha512": hashlib.sha512,
}


class InvalidSeedError(RuntimeError):
    """Raised when the stored OTP seed is not valid base32."""


def decode_seed(seed: str) -> bytes:
    """Decode a base32 seed, accepting lowercase and omitted padding.

    Whitespace inside the seed (as printed by some enrolment pages) is ignored.
    Anything else that is not valid base32 raises InvalidSeedError.
    """
    text = "".join(seed.split()).upper()
    if not text:
        raise InvalidSeedError("OTP seed is empty")

    if "=" not in text:
        remainder = len(text) % 8
        if remainder not in _PADDING_FOR_REMAINDER:
            raise InvalidSeedError(f"OTP seed has invalid base32 length {len(text)}")
        text += "=" * _PADDING_FOR_REMAINDER[remainder]

    try:
        raw = base64.b32decode(text, casefold=False)
    except (binascii.Error, ValueError) as exc:
        raise InvalidSeedError(f"OTP seed is not valid base32: {exc}") from exc
    if not raw:
        raise InvalidSeedError("OTP seed decodes to zero bytes")

    symbols = text.rstrip("=")
    unused = _UNUSED_BITS_FOR_REMAINDER.get(len(symbols) % 8, 0)
    if _ALPHABET.index(symbols[-1]) & ((1 << unused) - 1):
        raise InvalidSeedError("OTP seed has non-zero trailing bits (not canonical base32)")
    return raw


def hotp(key: bytes, counter: int, digits: int = 6, algorithm: str = "sha1") -> str:
    """RFC 4226 HOTP value for a counter, zero-padded to ``digits``."""
    if counter < 0:
        raise ValueError("counter must be >= 0")
    try:
        digestmod = _DIGESTS[algorithm]
    except KeyError as exc:
        raise ValueError(f"unsupported TOTP algorithm: {algorithm}") from exc

    digest = hmac.new(key, struct.pack(">Q", counter), digestmod).digest()
    offset = digest[-1] & 0x0F
    value = struct.unpack(">I", digest[offset : offset + 4])[0] & 0x7FFFFFFF
    return str(value % (10**digits)).zfill(digits)


def generate_totp(
    seed: str,
    at: Optional[float] = None,
    step: int = 30,
    digits: int = 6,
    algorithm: str = "sha1",
) -> str:
    """Return the code for ``seed`` at unix time ``at`` (defaults to now)."""
    if step <= 0:
        raise ValueError("step must be > 0")
    key = decode_seed(seed)
    now = time.time() if at is None else at
    return hotp(key, int(now // step), digits=digits, algorithm=algorithm)
