"""
Wire-format constants for CRX3 containers and the CRLSet component.
"""

from __future__ import annotations

# First 4 bytes of every CRX file.
CRX_MAGIC = b"Cr24"

CRX_VERSION = 3

# magic (4) + version (4) + header length (4)
CRX_PREFIX_SIZE = 12

# Prepended to the signed message by the CRX3 signing procedure, NUL included.
CRX3_SIGNED_DATA_PREFIX = b"CRX3 SignedData\x00"

# Archive member that holds the CRLSet inside the CRX payload.
CRL_SET_ENTRY = "crl-set"

# Omaha app id of the CRLSet component. It is the base-16-in-letters ('a'..'p')
# encoding of the first 16 bytes of SHA-256(signing public key).
CRLSET_COMPONENT_ID = "hfnkpimlhhgieaddgfemjhofmfblmnib"

OMAHA_BASE_URL = "https://clients2.google.com/service/update2/crx"

SPKI_HASH_SIZE = 32

DEFAULT_PARTIAL_FETCH_BYTES = 64 * 1024
