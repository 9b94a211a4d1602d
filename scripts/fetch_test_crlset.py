#!/usr/bin/env python3
"""
Download the currently published CRLSet CRX as a local fixture.

Runs the real Omaha update check and download, verifies the result
against the CRLSet component key, and writes:

  tests/fixtures/crlset.crx   the raw CRX3 file, byte for byte
  tests/fixtures/crl-set      the extracted CRLSet member

Handy for manual checks against live data; the test suite itself only
uses generated containers.
"""
from __future__ import annotations

import sys
from pathlib import Path

from crlset.adapters.archive import ZipArchiveReader
from crlset.adapters.http_client import HttpCrxFetcher
from crlset.adapters.proto_decoder import ProtobufHeaderDecoder
from crlset.domain.constants import CRL_SET_ENTRY
from crlset.domain.container import parse_container
from crlset.pipeline import process_container


def main() -> int:
    fixtures = Path("tests/fixtures")
    fixtures.mkdir(parents=True, exist_ok=True)

    print("=" * 65)
    print(" Fetching the live CRLSet component")
    print("=" * 65)

    fetcher = HttpCrxFetcher()
    print(f"\n  Update check: {fetcher.update_check_url}")

    download = fetcher.fetch_full_container()
    if download.is_failure():
        print(f"  ✗ {download.error()}")
        return 1
    raw_crx = download.value()
    (fixtures / "crlset.crx").write_bytes(raw_crx)
    print(f"  ✓ crlset.crx ({len(raw_crx) / 1024:.1f} KB)")

    loaded = process_container(raw_crx, ProtobufHeaderDecoder(), ZipArchiveReader(), verify=True)
    if loaded.is_failure():
        print(f"  ✗ verification/parse failed: {loaded.error()}")
        return 1
    crl_set = loaded.value()

    member = ZipArchiveReader().extract_entry(parse_container(raw_crx).payload, CRL_SET_ENTRY).value()
    (fixtures / CRL_SET_ENTRY).write_bytes(member)
    print(f"  ✓ {CRL_SET_ENTRY} ({len(member) / 1024:.1f} KB)")

    print(f"\n✅ Sequence {crl_set.sequence}, NotAfter {crl_set.not_after}")
    print(f"   {crl_set.revocation_count} issuers with revocations, {crl_set.blocked_spki_count} blocked SPKIs")
    return 0


if __name__ == "__main__":
    sys.exit(main())
