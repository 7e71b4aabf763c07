"""
Shared pytest fixtures and helpers.

Every HTTP call in the suite is mocked with the `responses` library; nothing
talks to a real authority.  Keys are generated once per session at 2048
bits to keep the suite fast.
"""
from __future__ import annotations

import json
from datetime import datetime, timedelta, timezone

import pytest
from cryptography import x509
from cryptography.hazmat.backends import default_backend
from cryptography.hazmat.primitives import hashes, serialization
from cryptography.hazmat.primitives.asymmetric import rsa
from cryptography.x509.oid import NameOID

from acmeclient import jws as jwslib
from acmeclient.directory import Directory
from acmeclient.encoding import b64url_decode
from acmeclient.nonce import NonceManager
from acmeclient.session import AcmeSession
from acmeclient.transport import HttpTransport

ACME_ROOT = "https://acme.test"
DIRECTORY_URL = f"{ACME_ROOT}/directory"

FAKE_DIRECTORY = {
    "new-reg": f"{ACME_ROOT}/acme/new-reg",
    "new-authz": f"{ACME_ROOT}/acme/new-authz",
    "new-cert": f"{ACME_ROOT}/acme/new-cert",
    "revoke-cert": f"{ACME_ROOT}/acme/revoke-cert",
    "meta": {"terms-of-service": f"{ACME_ROOT}/terms/v1.pdf"},
}

FAKE_NONCE = "testnonce12345"

LEAF_NOT_AFTER = datetime(2031, 6, 1, 12, 0, tzinfo=timezone.utc)


# ─── Keys ─────────────────────────────────────────────────────────────────────

@pytest.fixture(scope="session")
def account_key():
    return jwslib.generate_account_key(key_size=2048)


@pytest.fixture(scope="session")
def domain_key():
    return rsa.generate_private_key(public_exponent=65537, key_size=2048, backend=default_backend())


@pytest.fixture()
def session(account_key):
    """An AcmeSession over the fake directory, starting at FAKE_NONCE."""
    return AcmeSession(
        HttpTransport(),
        Directory(FAKE_DIRECTORY),
        NonceManager(FAKE_NONCE),
        account_key,
    )


# ─── Certificates ─────────────────────────────────────────────────────────────

def make_certificate_der(key, common_name: str, not_after: datetime = LEAF_NOT_AFTER) -> bytes:
    """Self-signed certificate in DER form, standing in for an authority response."""
    name = x509.Name([x509.NameAttribute(NameOID.COMMON_NAME, common_name)])
    cert = (
        x509.CertificateBuilder()
        .subject_name(name)
        .issuer_name(name)
        .public_key(key.public_key())
        .serial_number(x509.random_serial_number())
        .not_valid_before(not_after - timedelta(days=90))
        .not_valid_after(not_after)
        .sign(key, hashes.SHA256(), default_backend())
    )
    return cert.public_bytes(serialization.Encoding.DER)


@pytest.fixture(scope="session")
def leaf_der(domain_key):
    return make_certificate_der(domain_key, "example.com")


@pytest.fixture(scope="session")
def issuer_der(domain_key):
    return make_certificate_der(domain_key, "Fake Intermediate X1", LEAF_NOT_AFTER + timedelta(days=900))


# ─── Request inspection ───────────────────────────────────────────────────────

def decode_jws(request) -> tuple[dict, dict]:
    """Return (protected header, payload) of a mocked signed request."""
    body = json.loads(request.body)
    protected = json.loads(b64url_decode(body["protected"]))
    payload = json.loads(b64url_decode(body["payload"]))
    return protected, payload
