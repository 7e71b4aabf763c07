"""
Tests for the base64url and PEM/DER helpers.
"""
from __future__ import annotations

import os

import pytest

from acmeclient.encoding import b64url, b64url_decode, der_to_pem, pem_to_der, split_pem_chain


def test_b64url_has_no_padding_or_unsafe_chars():
    encoded = b64url(b"\xfb\xff\xfe")
    assert encoded == "-__-"
    assert b64url(b"a") == "YQ"


@pytest.mark.parametrize("data", [b"", b"a", b"ab", b"abc", b"\x00\xff" * 7])
def test_b64url_decode_restores_padding(data):
    assert b64url_decode(b64url(data)) == data


@pytest.mark.parametrize("size", [0, 1, 47, 48, 49, 1000])
def test_pem_der_round_trip(size):
    data = os.urandom(size)
    assert pem_to_der(der_to_pem(data)) == data


def test_der_to_pem_layout():
    pem = der_to_pem(b"\x01" * 100)
    lines = pem.splitlines()
    assert lines[0] == "-----BEGIN CERTIFICATE-----"
    assert lines[-1] == "-----END CERTIFICATE-----"
    assert all(len(line) == 64 for line in lines[1:-2])
    assert 0 < len(lines[-2]) <= 64
    assert pem.endswith("\n")


def test_der_to_pem_custom_label():
    pem = der_to_pem(b"abc", label="CERTIFICATE REQUEST")
    assert pem.startswith("-----BEGIN CERTIFICATE REQUEST-----\n")


def test_split_pem_chain():
    first = der_to_pem(b"first")
    second = der_to_pem(b"second")
    blocks = split_pem_chain(first + second)
    assert blocks == [first, second]


def test_split_pem_chain_ignores_noise():
    assert split_pem_chain("no certificates here") == []
