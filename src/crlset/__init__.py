"""
crlset — Chrome CRLSet loader and revocation checker.

Downloads the CRLSet component (a signed CRX3 container) via Omaha,
verifies its signature against the component's key, parses the binary
revocation table and keeps one cached snapshot fresh.

    controller = FreshnessController(HttpCrxFetcher(), ProtobufHeaderDecoder(), ZipArchiveReader())
    crl_set = controller.load_latest().value()
    crl_set.check(issuer_spki_sha256_hex, serial_hex)   # RevocationStatus

Failures travel on the railway (crlset.railway.Result); the individual
stages (parse_container, verify_signature, parse_revocation_set) raise
the typed errors of crlset.domain.errors for callers composing their own
pipeline.
"""

__version__ = "0.1.0"

from crlset.domain.container import parse_container
from crlset.domain.models import (
    CRLSet,
    HeaderProof,
    KeyProof,
    RevocationHeader,
    RevocationIndex,
    RevocationStatus,
    SignedContainer,
    UpdatePolicy,
)
from crlset.domain.revocation import parse_revocation_header, parse_revocation_set
from crlset.domain.signature import verify_signature
from crlset.freshness import FreshnessController

__all__ = [
    "CRLSet",
    "FreshnessController",
    "HeaderProof",
    "KeyProof",
    "RevocationHeader",
    "RevocationIndex",
    "RevocationStatus",
    "SignedContainer",
    "UpdatePolicy",
    "parse_container",
    "parse_revocation_header",
    "parse_revocation_set",
    "verify_signature",
]
