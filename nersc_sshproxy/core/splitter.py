"""Split the combined sshproxy response into key and certificate.

The service answers ``create_pair`` with the private key block first and the
certificate second. The certificate is either a PEM-style block or a single
OpenSSH certificate line. Boundaries are located from the armor markers, never
from byte offsets, because key sizes differ between algorithms.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from typing import Optional, Sequence

from nersc_sshproxy.config.settings import DEFAULT_CERTIFICATE_LABELS, DEFAULT_PRIVATE_KEY_LABELS

_NEWLINE = re.compile(rb"\r?\n")
_OPENSSH_CERT_LINE = re.compile(
    rb"[a-z0-9][a-z0-9.@-]*-cert-v0[0-9]@openssh\.com [A-Za-z0-9+/]+={0,2}(?: [^\r\n]*)?(?:\r?\n)?"
)
_ANY_BEGIN = re.compile(rb"-----BEGIN [A-Z0-9 ]+-----")


class MalformedResponseError(RuntimeError):
    """Raised when the signing service payload is not a key + certificate pair."""


@dataclass(frozen=True)
class SplitArtifacts:
    private_key: bytes = field(repr=False)
    certificate: bytes


@dataclass(frozen=True)
class _Span:
    start: int
    end: int


def _armor(kind: str, label: str) -> bytes:
    return f"-----{kind} {label}-----".encode("ascii")


class ArtifactSplitter:
    def __init__(
        self,
        private_key_labels: Optional[Sequence[str]] = None,
        certificate_labels: Optional[Sequence[str]] = None,
        openssh_certificate_line: bool = True,
    ) -> None:
        self._key_labels = list(private_key_labels or DEFAULT_PRIVATE_KEY_LABELS)
        self._cert_labels = list(certificate_labels or DEFAULT_CERTIFICATE_LABELS)
        self._openssh_line = openssh_certificate_line

    def split(self, response: bytes) -> SplitArtifacts:
        key_span = self._find_armored(response, 0, self._key_labels, what="private key")
        if key_span is None:
            raise MalformedResponseError("response does not contain a private key block")
        if response[: key_span.start].strip():
            raise MalformedResponseError("unexpected data before the private key block")

        cert_start = self._skip_whitespace(response, key_span.end)
        cert_span = self._find_certificate(response, cert_start)
        if cert_span is None:
            raise MalformedResponseError("response does not contain a certificate after the private key")
        if response[cert_span.end :].strip():
            raise MalformedResponseError("unexpected data after the certificate")

        return SplitArtifacts(
            private_key=response[key_span.start : key_span.end],
            certificate=response[cert_span.start : cert_span.end],
        )

    def _find_certificate(self, response: bytes, pos: int) -> Optional[_Span]:
        span = self._find_armored(response, pos, self._cert_labels, what="certificate")
        if span is not None:
            if span.start != pos:
                raise MalformedResponseError("unexpected data between the private key and the certificate")
            return span
        if self._openssh_line:
            match = _OPENSSH_CERT_LINE.match(response, pos)
            if match is not None:
                return _Span(match.start(), match.end())
        return None

    def _find_armored(self, response: bytes, pos: int, labels: list[str], what: str) -> Optional[_Span]:
        best: Optional[tuple[int, str]] = None
        for label in labels:
            idx = response.find(_armor("BEGIN", label), pos)
            if idx >= 0 and (best is None or idx < best[0]):
                best = (idx, label)
        if best is None:
            return None

        start, label = best
        begin = _armor("BEGIN", label)
        end_marker = _armor("END", label)
        body_start = start + len(begin)
        end_idx = response.find(end_marker, body_start)
        if end_idx < 0:
            raise MalformedResponseError(f"{what} block is missing its END marker")

        body = response[body_start:end_idx]
        if not body.strip():
            raise MalformedResponseError(f"{what} block is empty")
        if _ANY_BEGIN.search(body):
            raise MalformedResponseError(f"{what} block contains a nested BEGIN marker")

        end = end_idx + len(end_marker)
        newline = _NEWLINE.match(response, end)
        if newline is not None:
            end = newline.end()
        return _Span(start, end)

    @staticmethod
    def _skip_whitespace(response: bytes, pos: int) -> int:
        while pos < len(response) and response[pos : pos + 1].isspace():
            pos += 1
        return pos
