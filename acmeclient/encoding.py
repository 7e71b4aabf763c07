"""
URL-safe base64 and PEM/DER helpers used by signed payloads and certificates.
"""
from __future__ import annotations

import base64
import re

_PEM_LINE_LENGTH = 64
_PEM_BLOCK_RE = re.compile(
    r"-----BEGIN ([A-Z0-9 ]+)-----\r?\n.*?-----END \1-----",
    re.DOTALL,
)


def b64url(data: bytes) -> str:
    """URL-safe base64 encoding with no padding (as required by JOSE)."""
    return base64.urlsafe_b64encode(data).rstrip(b"=").decode()


def b64url_decode(s: str) -> bytes:
    """URL-safe base64 decode, adding padding as needed."""
    pad = 4 - len(s) % 4
    if pad != 4:
        s += "=" * pad
    return base64.urlsafe_b64decode(s)


def der_to_pem(der: bytes, label: str = "CERTIFICATE") -> str:
    """Wrap binary *der* in a PEM block with 64-column body lines."""
    body = base64.b64encode(der).decode("ascii")
    lines = [body[i:i + _PEM_LINE_LENGTH] for i in range(0, len(body), _PEM_LINE_LENGTH)]
    return "\n".join([f"-----BEGIN {label}-----", *lines, f"-----END {label}-----"]) + "\n"


def pem_to_der(pem: str) -> bytes:
    """Inverse of `der_to_pem`: drop the marker lines and decode the body."""
    lines = [line.strip() for line in pem.strip().splitlines()]
    body = [line for line in lines if line and not line.startswith("-----")]
    return base64.b64decode("".join(body))


def split_pem_chain(text: str) -> list[str]:
    """Split a PEM bundle into its individual blocks (each with a trailing newline)."""
    return [m.group(0) + "\n" for m in _PEM_BLOCK_RE.finditer(text)]
