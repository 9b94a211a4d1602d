"""
CRX3 signature verification for the CRLSet component.

Key discovery: a component id is 32 letters 'a'..'p', each standing for one
hex nibble. It names the first 16 bytes of SHA-256(public key). The proof
whose key hashes to that prefix is the only one checked.

Signed message (CRX3 canonical form, exact order):

    "CRX3 SignedData\\x00" || uint32 LE len(signed_header_data) || signed_header_data || payload

The digest is fed incrementally so the payload view is never copied, then
verified as a pre-hashed SHA-256 with the algorithm implied by the proof
list: PKCS#1 v1.5 for sha256_with_rsa, ECDSA for sha256_with_ecdsa.
"""

from __future__ import annotations

import hashlib
import struct

import structlog
from cryptography.exceptions import InvalidSignature, UnsupportedAlgorithm
from cryptography.hazmat.primitives import hashes, serialization
from cryptography.hazmat.primitives.asymmetric import ec, padding, rsa
from cryptography.hazmat.primitives.asymmetric.utils import Prehashed

from crlset.domain.constants import CRLSET_COMPONENT_ID, CRX3_SIGNED_DATA_PREFIX
from crlset.domain.errors import VerificationError, VerificationFailure
from crlset.domain.models import HeaderProof, KeyProof, ProofAlgorithm

log = structlog.get_logger()

_COMPONENT_ID_ALPHABET = frozenset("abcdefghijklmnop")


def component_id_to_hex(component_id: str) -> str:
    """
    Translate an 'a'..'p' component id into the hex string it encodes.

        >>> component_id_to_hex("abcp")
        '012f'

    Raises:
        ValueError: a character outside 'a'..'p'.
    """
    if not set(component_id) <= _COMPONENT_ID_ALPHABET:
        raise ValueError(f"Component id must use only letters a-p, got {component_id!r}")
    return "".join(format(ord(c) - ord("a"), "x") for c in component_id)


def key_id(public_key: bytes) -> str:
    """Hex of the first 16 bytes of SHA-256(public_key)."""
    return hashlib.sha256(public_key).hexdigest()[:32]


def find_matching_proof(
    header_proof: HeaderProof,
    component_id: str = CRLSET_COMPONENT_ID,
) -> tuple[ProofAlgorithm, KeyProof] | None:
    """
    First proof (RSA list, then ECDSA list) whose key id matches the component.

    The id is compared case-insensitively; an id outside 'a'..'p' matches nothing.
    """
    component_id = component_id.lower()
    if not set(component_id) <= _COMPONENT_ID_ALPHABET:
        log.warning("verify.invalid_component_id", component_id=component_id)
        return None
    expected = component_id_to_hex(component_id)
    for algorithm, proof in header_proof.candidates():
        if key_id(proof.public_key) == expected:
            return algorithm, proof
    return None


def signed_message_digest(signed_header_data: bytes, payload: bytes | memoryview) -> bytes:
    """SHA-256 over the reconstructed CRX3 signed message."""
    digest = hashes.Hash(hashes.SHA256())
    digest.update(CRX3_SIGNED_DATA_PREFIX)
    digest.update(struct.pack("<I", len(signed_header_data)))
    digest.update(signed_header_data)
    digest.update(payload)
    return digest.finalize()


def verify_signature(
    header_proof: HeaderProof,
    payload: bytes | memoryview,
    component_id: str = CRLSET_COMPONENT_ID,
) -> bool:
    """
    Decide whether `payload` is authentically signed for `component_id`.

    Returns False for any cryptographic mismatch, including a key that
    cannot be loaded or is of the wrong type for its proof list.

    Raises:
        VerificationError: MISSING_SIGNED_DATA when the header has no
            signed_header_data; NO_MATCHING_KEY when no proof belongs to
            the component.
    """
    if not header_proof.signed_header_data:
        raise VerificationError(
            VerificationFailure.MISSING_SIGNED_DATA,
            "CRX signature verification failed: signedHeaderData is missing.",
        )

    match = find_matching_proof(header_proof, component_id)
    if match is None:
        raise VerificationError(
            VerificationFailure.NO_MATCHING_KEY,
            "CRX signature verification failed: no valid publicKey for the CRLSet component found.",
        )
    algorithm, proof = match
    log.debug("verify.key_matched", algorithm=algorithm.value, component_id=component_id)

    digest = signed_message_digest(header_proof.signed_header_data, payload)
    valid = _verify_digest(algorithm, proof, digest)
    log.info("verify.completed", algorithm=algorithm.value, valid=valid)
    return valid


def _verify_digest(algorithm: ProofAlgorithm, proof: KeyProof, digest: bytes) -> bool:
    try:
        public_key = serialization.load_der_public_key(proof.public_key)
    except (ValueError, UnsupportedAlgorithm):
        log.warning("verify.unloadable_key", algorithm=algorithm.value)
        return False

    try:
        match algorithm:
            case ProofAlgorithm.RSA_PKCS1_SHA256 if isinstance(public_key, rsa.RSAPublicKey):
                public_key.verify(proof.signature, digest, padding.PKCS1v15(), Prehashed(hashes.SHA256()))
            case ProofAlgorithm.ECDSA_SHA256 if isinstance(public_key, ec.EllipticCurvePublicKey):
                public_key.verify(proof.signature, digest, ec.ECDSA(Prehashed(hashes.SHA256())))
            case _:
                log.warning("verify.key_type_mismatch", algorithm=algorithm.value)
                return False
    except InvalidSignature:
        return False
    return True
