"""
Tests for the one-shot CLI runner (webroot mode, mocked authority).
"""
from __future__ import annotations

from pathlib import Path
from unittest.mock import patch

import pytest
import responses as resp_lib

import main
from acmeclient.client import AcmeClient
from acmeclient.validation import well_known_url
from config import settings
from tests.conftest import ACME_ROOT, DIRECTORY_URL, FAKE_DIRECTORY

ACCOUNT_URL = f"{ACME_ROOT}/acme/reg/7"
CHALLENGE_URI = f"{ACME_ROOT}/acme/challenge/example.com/7"
ISSUER_URL = f"{ACME_ROOT}/acme/issuer-cert"


@pytest.fixture()
def configured(monkeypatch, tmp_path: Path):
    monkeypatch.setattr(settings, "ACME_IDENTITY", "ops@example.com")
    monkeypatch.setattr(settings, "ACME_DIRECTORY_URL", DIRECTORY_URL)
    monkeypatch.setattr(settings, "KEY_STORE_PATH", str(tmp_path / "keys"))
    monkeypatch.setattr(settings, "ACCOUNT_KEY_SIZE", 2048)
    monkeypatch.setattr(settings, "CERT_STORE_PATH", str(tmp_path / "certs"))
    monkeypatch.setattr(settings, "HTTP_CHALLENGE_MODE", "webroot")
    monkeypatch.setattr(settings, "WEBROOT_PATH", str(tmp_path / "www"))
    monkeypatch.setattr(settings, "RETRY_DELAY_SECONDS", 0.0)
    return tmp_path


def add_authority(leaf_der: bytes, issuer_der: bytes, challenge_status: str = "valid") -> None:
    resp_lib.add(resp_lib.GET, DIRECTORY_URL, json=FAKE_DIRECTORY, headers={"Replay-Nonce": "n0"})
    resp_lib.add(
        resp_lib.POST, FAKE_DIRECTORY["new-reg"], status=409,
        json={"type": "urn:acme:error:malformed", "detail": "Registration key is already in use"},
        headers={"Location": ACCOUNT_URL, "Replay-Nonce": "n1"},
    )
    resp_lib.add(
        resp_lib.POST, ACCOUNT_URL, status=202, json={"agreement": f"{ACME_ROOT}/terms/v1.pdf"},
        headers={"Replay-Nonce": "n2"},
    )
    resp_lib.add(
        resp_lib.POST, FAKE_DIRECTORY["new-authz"], status=201,
        json={
            "identifier": {"type": "dns", "value": "example.com"},
            "challenges": [{"type": "http-01", "status": "pending", "uri": CHALLENGE_URI, "token": "tok-cli"}],
        },
        headers={"Replay-Nonce": "n3"},
    )
    resp_lib.add(resp_lib.GET, well_known_url("example.com", "tok-cli"), body="ok")
    resp_lib.add(resp_lib.POST, CHALLENGE_URI, status=202, json={"status": "pending"}, headers={"Replay-Nonce": "n4"})
    resp_lib.add(resp_lib.GET, CHALLENGE_URI, json={"status": challenge_status}, headers={"Replay-Nonce": "n5"})
    resp_lib.add(
        resp_lib.POST, FAKE_DIRECTORY["new-cert"], status=201, body=leaf_der,
        headers={"Link": f'<{ISSUER_URL}>;rel="up"', "Replay-Nonce": "n6"},
    )
    resp_lib.add(resp_lib.GET, ISSUER_URL, body=issuer_der)


@resp_lib.activate
def test_run_once_writes_certificate(configured: Path, leaf_der, issuer_der):
    add_authority(leaf_der, issuer_der)

    assert main.run_once(["example.com"]) == 0

    out = configured / "certs" / "example.com"
    assert (out / "fullchain.pem").read_text().count("BEGIN CERTIFICATE") == 2
    assert (out / "privkey.pem").exists()
    assert (configured / "keys" / "le" / "ops-example-com" / "account.pem").exists()
    # challenge files are cleaned up after validation
    assert list((configured / "www" / ".well-known" / "acme-challenge").iterdir()) == []


@resp_lib.activate
def test_run_once_reports_failed_validation(configured: Path, leaf_der, issuer_der):
    add_authority(leaf_der, issuer_der, challenge_status="invalid")

    assert main.run_once(["example.com"], max_retries=1) == 1
    assert not (configured / "certs" / "example.com").exists()


def test_run_once_requires_identity(configured: Path, monkeypatch):
    monkeypatch.setattr(settings, "ACME_IDENTITY", "")
    assert main.run_once(["example.com"]) == 1


@resp_lib.activate
def test_run_once_directory_failure(configured: Path):
    resp_lib.add(resp_lib.GET, DIRECTORY_URL, status=503)
    assert main.run_once(["example.com"]) == 1


@resp_lib.activate
def test_run_once_closes_client_on_early_return(configured: Path, leaf_der, issuer_der):
    add_authority(leaf_der, issuer_der, challenge_status="invalid")
    with patch.object(AcmeClient, "close", autospec=True) as close:
        assert main.run_once(["example.com"], max_retries=1) == 1
    close.assert_called_once()
