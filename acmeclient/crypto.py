"""
Certificate private-key generation, CSR creation and certificate parsing.

Boundary: this module owns everything cryptographic that is *certificate*-specific.
Account-key operations (JWK, JWS) live in acmeclient/jws.py.
"""
from __future__ import annotations

from datetime import datetime, timezone
from typing import Sequence

from cryptography import x509
from cryptography.hazmat.backends import default_backend
from cryptography.hazmat.primitives import hashes, serialization
from cryptography.hazmat.primitives.asymmetric import rsa
from cryptography.x509.oid import NameOID

from acmeclient.encoding import pem_to_der
from acmeclient.errors import CertificateRequestFailure

CERTIFICATE_KEY_SIZE = 4096


def generate_rsa_key(key_size: int = CERTIFICATE_KEY_SIZE) -> rsa.RSAPrivateKey:
    """Generate an RSA private key for a certificate (never the account key)."""
    return rsa.generate_private_key(
        public_exponent=65537,
        key_size=key_size,
        backend=default_backend(),
    )


def private_key_to_pem(key: rsa.RSAPrivateKey) -> str:
    """Serialize a private key to an unencrypted PEM string."""
    return key.private_bytes(
        encoding=serialization.Encoding.PEM,
        format=serialization.PrivateFormat.TraditionalOpenSSL,
        encryption_algorithm=serialization.NoEncryption(),
    ).decode()


def create_csr(
    private_key: rsa.RSAPrivateKey,
    domains: Sequence[str],
    primary_domain: str | None = None,
) -> str:
    """
    Create a PEM-encoded CSR signed with SHA-512.

    The subject common name is *primary_domain* (first of *domains* when not
    given) and every entry of *domains* is listed as a SubjectAlternativeName.
    Raises CertificateRequestFailure when the request cannot be built.
    """
    all_domains = list(dict.fromkeys(domains))  # deduplicate, preserve order
    if not all_domains:
        raise CertificateRequestFailure("Could not create a CSR: no domains given")
    common_name = primary_domain or all_domains[0]

    try:
        builder = (
            x509.CertificateSigningRequestBuilder()
            .subject_name(
                x509.Name([x509.NameAttribute(NameOID.COMMON_NAME, common_name)])
            )
            .add_extension(
                x509.SubjectAlternativeName(
                    [x509.DNSName(d) for d in all_domains]
                ),
                critical=False,
            )
        )
        csr = builder.sign(private_key, hashes.SHA512(), default_backend())
    except (TypeError, ValueError) as exc:
        raise CertificateRequestFailure(f"Could not create a CSR: {exc}") from exc

    return csr.public_bytes(serialization.Encoding.PEM).decode().strip()


def csr_to_der(csr_pem: str) -> bytes:
    """Convert a PEM CSR to DER, checking that the result parses."""
    try:
        der = pem_to_der(csr_pem)
        x509.load_der_x509_csr(der, default_backend())
    except ValueError as exc:
        raise CertificateRequestFailure(f"CSR export failed: {exc}") from exc
    return der


def parse_expiry(pem_text: str) -> datetime:
    """Parse the notAfter field from a PEM certificate and return a UTC datetime."""
    cert = x509.load_pem_x509_certificate(pem_text.encode(), default_backend())
    # cryptography >= 42 exposes .not_valid_after_utc (timezone-aware)
    try:
        return cert.not_valid_after_utc
    except AttributeError:
        # Older cryptography: naive datetime — attach UTC
        return cert.not_valid_after.replace(tzinfo=timezone.utc)
