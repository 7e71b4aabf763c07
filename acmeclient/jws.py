"""
JWK / JWS utilities for the ACME v1 protocol.

Uses *josepy* (the library powering Certbot) for the JWK representation and
*cryptography* for the RSA primitives.

Responsibilities (boundary with acmeclient/crypto.py):
  - Generate / serialize / load the **account** RSA key
  - Compute the JWK thumbprint (for HTTP-01 key-authorizations)
  - Sign ACME request bodies as a flattened JWS with an embedded jwk header
"""
from __future__ import annotations

import hashlib
import json
from typing import Any, Optional

from cryptography.exceptions import UnsupportedAlgorithm
from cryptography.hazmat.backends import default_backend
from cryptography.hazmat.primitives import hashes, serialization
from cryptography.hazmat.primitives.asymmetric import padding, rsa
from josepy.jwk import JWKRSA

from acmeclient.encoding import b64url
from acmeclient.errors import SigningFailure

ALGORITHM = "RS256"
DEFAULT_ACCOUNT_KEY_SIZE = 4096


# ─── Account key I/O ──────────────────────────────────────────────────────────


def generate_account_key(key_size: int = DEFAULT_ACCOUNT_KEY_SIZE) -> JWKRSA:
    """Generate a new RSA account key wrapped in a josepy JWKRSA."""
    private_key = rsa.generate_private_key(
        public_exponent=65537,
        key_size=key_size,
        backend=default_backend(),
    )
    return JWKRSA(key=private_key)


def serialize_account_key(jwk: JWKRSA) -> bytes:
    """Return the account key as unencrypted PKCS8 PEM bytes."""
    return jwk.key.private_bytes(
        encoding=serialization.Encoding.PEM,
        format=serialization.PrivateFormat.PKCS8,
        encryption_algorithm=serialization.NoEncryption(),
    )


def load_account_key(pem: bytes) -> JWKRSA:
    """
    Load an RSA account key from PEM bytes.

    Raises SigningFailure when the data is not a usable RSA private key.
    """
    try:
        private_key = serialization.load_pem_private_key(pem, password=None, backend=default_backend())
    except (TypeError, ValueError, UnsupportedAlgorithm) as exc:
        raise SigningFailure(f"Invalid account key: {exc}") from exc
    if not isinstance(private_key, rsa.RSAPrivateKey):
        raise SigningFailure("Invalid account key: not an RSA private key")
    return JWKRSA(key=private_key)


# ─── JWK thumbprint ───────────────────────────────────────────────────────────


def account_jwk(jwk: JWKRSA) -> dict[str, str]:
    """
    Public JWK of the account key with the members in the order e, kty, n.

    The authority recomputes the thumbprint from this exact representation,
    so the header and the key-authorization must both come from here.
    """
    pub = jwk.public_key().fields_to_partial_json()
    return {"e": pub["e"], "kty": "RSA", "n": pub["n"]}


def compute_jwk_thumbprint(jwk: JWKRSA) -> str:
    """
    Compute the base64url SHA-256 thumbprint of the public JWK.
    Used to construct the HTTP-01 key-authorization:
      key_authorization = token + "." + thumbprint
    """
    canonical = json.dumps(account_jwk(jwk), separators=(",", ":"))
    digest = hashlib.sha256(canonical.encode()).digest()
    return b64url(digest)


# ─── JWS signing ─────────────────────────────────────────────────────────────


def sign_request(
    payload: dict[str, Any],
    resource: str,
    account_key: JWKRSA,
    nonce: Optional[str],
) -> dict:
    """
    Sign an ACME request payload and return the JWS dict to POST.

    *resource* is injected into the payload as the ``resource`` member, the
    way ACME v1 tags every request.  The unprotected ``header`` carries the
    algorithm and jwk; the protected header repeats them plus the nonce.
    """
    body = {**payload, "resource": resource}
    header: dict[str, Any] = {
        "alg": ALGORITHM,
        "jwk": account_jwk(account_key),
    }
    protected = _b64url_json({**header, "nonce": nonce})
    payload_b64 = _b64url_json(body)

    signing_input = f"{protected}.{payload_b64}".encode()
    signature = _sign_rsa(account_key, signing_input)

    return {
        "header": header,
        "protected": protected,
        "payload": payload_b64,
        "signature": b64url(signature),
    }


# ─── Internal helpers ─────────────────────────────────────────────────────────


def _b64url_json(obj: Any) -> str:
    return b64url(json.dumps(obj, separators=(",", ":")).encode())


def _sign_rsa(jwk: JWKRSA, data: bytes) -> bytes:
    """Sign *data* with the RSA private key using PKCS1v15 + SHA-256."""
    try:
        return jwk.key.sign(data, padding.PKCS1v15(), hashes.SHA256())
    except (AttributeError, TypeError, ValueError, UnsupportedAlgorithm) as exc:
        raise SigningFailure(f"Could not sign request: {exc}") from exc
