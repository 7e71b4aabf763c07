"""
PEM filesystem output for issued certificates (used by the CLI).

Directory layout per primary domain:
  ./certs/<domain>/
      cert.pem        — Leaf certificate
      chain.pem       — Intermediate certificate(s)
      fullchain.pem   — cert + chain (nginx uses this)
      privkey.pem     — Private key (mode 0o600)
      csr.pem         — The request that was submitted
      metadata.json   — Issued/expires metadata

All writes are atomic: temp file + fsync + atomic rename.
"""
from __future__ import annotations

import json
import stat
from datetime import datetime, timezone
from pathlib import Path

from acmeclient.encoding import split_pem_chain
from acmeclient.models import Certificate
from storage.atomic import atomic_write_text


def cert_dir(cert_store_path: str, domain: str) -> Path:
    """Return the Path for a domain's cert directory (creates it if needed)."""
    p = Path(cert_store_path) / domain
    p.mkdir(parents=True, exist_ok=True)
    return p


def write_cert_files(cert_store_path: str, domain: str, certificate: Certificate) -> dict:
    """
    Write the certificate bundle, its key and metadata.json to
    ./certs/<domain>/.

    Returns the metadata dict.
    """
    d = cert_dir(cert_store_path, domain)
    blocks = split_pem_chain(certificate.certificate)
    leaf = blocks[0] if blocks else certificate.certificate

    atomic_write_text(d / "cert.pem", leaf)
    atomic_write_text(d / "chain.pem", "".join(blocks[1:]))
    atomic_write_text(d / "fullchain.pem", certificate.certificate)
    atomic_write_text(d / "csr.pem", certificate.csr.rstrip("\n") + "\n")
    atomic_write_text(d / "privkey.pem", certificate.private_key, mode=stat.S_IRUSR | stat.S_IWUSR)

    metadata = {
        "issued_at": datetime.now(tz=timezone.utc).isoformat(),
        "expires_at": certificate.expiry_date.isoformat(),
        "chain_length": len(blocks),
    }
    atomic_write_text(d / "metadata.json", json.dumps(metadata, indent=2))
    return metadata
