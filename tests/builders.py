"""
Builders for synthetic CRLSet and CRX3 test data.

Everything is generated in-process: CRLSet binaries, ZIP payloads, CRX3
headers signed with freshly generated RSA / P-256 keys. Component ids are
derived from the generating key, so verification succeeds exactly when it
should.
"""

from __future__ import annotations

import base64
import hashlib
import io
import json
import struct
import zipfile
from collections.abc import Iterable, Mapping
from typing import Any

from cryptography.hazmat.primitives import hashes, serialization
from cryptography.hazmat.primitives.asymmetric import ec, padding, rsa

from crlset.adapters.proto_decoder import CrxFileHeader, SignedData

CRX3_PREFIX = b"CRX3 SignedData\x00"

ISSUER_A = bytes.fromhex("aa" * 32)
ISSUER_B = bytes.fromhex("bb" * 32)
BLOCKED_SPKI = bytes.fromhex("cc" * 32)

DEFAULT_HEADER: dict[str, Any] = {
    "Version": 0,
    "ContentType": "CRLSet",
    "Sequence": 7,
    "DeltaFrom": 0,
    "NumParents": 2,
    "BlockedSPKIs": [],
    "NotAfter": 2_000_000_000,
}


# ─────────────────────── CRLSet body ───────────────────────


def encode_crlset(
    header: Mapping[str, Any] | bytes,
    entries: Iterable[tuple[bytes, Iterable[bytes]]] = (),
) -> bytes:
    """
    Serialise a CRLSet: uint16 header length, JSON header, then per parent
    32-byte SPKI hash, uint32 serial count, (uint8 length, serial)*.
    """
    header_bytes = header if isinstance(header, bytes) else json.dumps(dict(header)).encode()
    out = bytearray(struct.pack("<H", len(header_bytes)))
    out += header_bytes
    for spki_hash, serials in entries:
        serials = list(serials)
        out += spki_hash
        out += struct.pack("<I", len(serials))
        for serial in serials:
            out += struct.pack("<B", len(serial))
            out += serial
    return bytes(out)


def sample_crlset(sequence: int = 7, not_after: int = 2_000_000_000, blocked: Iterable[bytes] = ()) -> bytes:
    """Two issuers (A: serials 01, 0a0b; B: serial ff) plus optional blocked SPKIs."""
    header = dict(DEFAULT_HEADER)
    header.update(
        Sequence=sequence,
        NotAfter=not_after,
        BlockedSPKIs=[base64.b64encode(h).decode() for h in blocked],
    )
    return encode_crlset(
        header,
        [
            (ISSUER_A, [b"\x01", b"\x0a\x0b"]),
            (ISSUER_B, [b"\xff"]),
        ],
    )


# ─────────────────────── ZIP payload ───────────────────────


def zip_payload(
    members: Mapping[str, bytes],
    compression: int = zipfile.ZIP_DEFLATED,
) -> bytes:
    """ZIP archive with the given members, written in iteration order."""
    buffer = io.BytesIO()
    with zipfile.ZipFile(buffer, "w", compression=compression) as archive:
        for name, data in members.items():
            archive.writestr(name, data)
    return buffer.getvalue()


# ─────────────────────── Keys and ids ───────────────────────


def generate_rsa_key() -> rsa.RSAPrivateKey:
    return rsa.generate_private_key(public_exponent=65537, key_size=2048)


def generate_ec_key() -> ec.EllipticCurvePrivateKey:
    return ec.generate_private_key(ec.SECP256R1())


def public_key_der(private_key: rsa.RSAPrivateKey | ec.EllipticCurvePrivateKey) -> bytes:
    """SubjectPublicKeyInfo DER, the form CRX3 headers carry."""
    return private_key.public_key().public_bytes(
        serialization.Encoding.DER,
        serialization.PublicFormat.SubjectPublicKeyInfo,
    )


def component_id_for(public_key: bytes) -> str:
    """First 16 bytes of SHA-256(public_key), each hex nibble written as 'a'..'p'."""
    digest = hashlib.sha256(public_key).hexdigest()[:32]
    return "".join(chr(ord("a") + int(c, 16)) for c in digest)


def crx_id_for(public_key: bytes) -> bytes:
    return hashlib.sha256(public_key).digest()[:16]


# ─────────────────────── CRX3 ───────────────────────


def signed_message(signed_header_data: bytes, payload: bytes) -> bytes:
    return CRX3_PREFIX + struct.pack("<I", len(signed_header_data)) + signed_header_data + payload


def sign(
    private_key: rsa.RSAPrivateKey | ec.EllipticCurvePrivateKey,
    signed_header_data: bytes,
    payload: bytes,
) -> bytes:
    message = signed_message(signed_header_data, payload)
    if isinstance(private_key, rsa.RSAPrivateKey):
        return private_key.sign(message, padding.PKCS1v15(), hashes.SHA256())
    return private_key.sign(message, ec.ECDSA(hashes.SHA256()))


def encode_header(
    rsa_proofs: Iterable[tuple[bytes, bytes]] = (),
    ecdsa_proofs: Iterable[tuple[bytes, bytes]] = (),
    signed_header_data: bytes | None = None,
) -> bytes:
    """Serialise a CrxFileHeader from (public_key, signature) pairs."""
    header = CrxFileHeader()
    for public_key, signature in rsa_proofs:
        header.sha256_with_rsa.add(public_key=public_key, signature=signature)
    for public_key, signature in ecdsa_proofs:
        header.sha256_with_ecdsa.add(public_key=public_key, signature=signature)
    if signed_header_data is not None:
        header.signed_header_data = signed_header_data
    return header.SerializeToString()


def frame_crx(
    header: bytes,
    payload: bytes,
    magic: bytes = b"Cr24",
    version: int = 3,
    header_length: int | None = None,
) -> bytes:
    """Wrap header and payload in the 12-byte CRX prefix."""
    length = len(header) if header_length is None else header_length
    return magic + struct.pack("<II", version, length) + header + payload


def build_crx(
    payload: bytes,
    rsa_key: rsa.RSAPrivateKey | None = None,
    ec_key: ec.EllipticCurvePrivateKey | None = None,
    signed_header_data: bytes | None = None,
) -> bytes:
    """
    Complete, correctly signed CRX3 file.

    The signing key (rsa_key if given, else ec_key) also determines the
    crx_id in the SignedData header; pass component_id_for(its DER) to the
    verifier.
    """
    signing_key = rsa_key if rsa_key is not None else ec_key
    assert signing_key is not None, "need at least one key"
    if signed_header_data is None:
        signed_header_data = SignedData(crx_id=crx_id_for(public_key_der(signing_key))).SerializeToString()

    rsa_proofs = []
    ecdsa_proofs = []
    if rsa_key is not None:
        rsa_proofs.append((public_key_der(rsa_key), sign(rsa_key, signed_header_data, payload)))
    if ec_key is not None:
        ecdsa_proofs.append((public_key_der(ec_key), sign(ec_key, signed_header_data, payload)))

    header = encode_header(rsa_proofs, ecdsa_proofs, signed_header_data)
    return frame_crx(header, payload)
