"""
Shared fixtures for the crlset test suite.

Key generation is the slow part, so keys are session-scoped; everything
built from them (CRX files, component ids) is cheap and per-test.
"""

from __future__ import annotations

import pytest
from cryptography.hazmat.primitives.asymmetric import ec, rsa

from tests.builders import (
    component_id_for,
    generate_ec_key,
    generate_rsa_key,
    public_key_der,
    sample_crlset,
    zip_payload,
)


@pytest.fixture(scope="session")
def rsa_key() -> rsa.RSAPrivateKey:
    return generate_rsa_key()


@pytest.fixture(scope="session")
def other_rsa_key() -> rsa.RSAPrivateKey:
    """A second RSA key, for proofs that must not match the component."""
    return generate_rsa_key()


@pytest.fixture(scope="session")
def ec_key() -> ec.EllipticCurvePrivateKey:
    return generate_ec_key()


@pytest.fixture()
def rsa_component_id(rsa_key: rsa.RSAPrivateKey) -> str:
    return component_id_for(public_key_der(rsa_key))


@pytest.fixture()
def ec_component_id(ec_key: ec.EllipticCurvePrivateKey) -> str:
    return component_id_for(public_key_der(ec_key))


@pytest.fixture()
def crlset_bytes() -> bytes:
    """Sequence 7, NotAfter 2_000_000_000, two issuers."""
    return sample_crlset()


@pytest.fixture()
def crx_payload(crlset_bytes: bytes) -> bytes:
    """ZIP with a manifest first and the crl-set member second."""
    return zip_payload({"manifest.json": b'{"name": "CRLSet"}', "crl-set": crlset_bytes})
