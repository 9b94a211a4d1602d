"""
Unit tests for CRX3 signature verification.

Keys are generated per session; the component id for each test is derived
from the key that signed the container, the same way Chrome derives the
CRLSet component id from its signing key.
"""

from __future__ import annotations

import hashlib
import struct

import pytest
from cryptography.hazmat.primitives.asymmetric import ec, rsa

from crlset.domain.errors import VerificationError, VerificationFailure
from crlset.domain.models import HeaderProof, KeyProof, ProofAlgorithm
from crlset.domain.signature import (
    component_id_to_hex,
    find_matching_proof,
    key_id,
    signed_message_digest,
    verify_signature,
)
from tests.builders import (
    component_id_for,
    public_key_der,
    sign,
    signed_message,
)

PAYLOAD = b"PK\x03\x04 payload bytes"
SIGNED_HEADER_DATA = b"\x0a\x10" + bytes(16)


def _rsa_proof(key: rsa.RSAPrivateKey, payload: bytes = PAYLOAD) -> KeyProof:
    return KeyProof(public_key=public_key_der(key), signature=sign(key, SIGNED_HEADER_DATA, payload))


def _ec_proof(key: ec.EllipticCurvePrivateKey, payload: bytes = PAYLOAD) -> KeyProof:
    return KeyProof(public_key=public_key_der(key), signature=sign(key, SIGNED_HEADER_DATA, payload))


# ─────────────────────── Component ids ───────────────────────


class TestComponentId:
    def test_letters_map_to_nibbles(self) -> None:
        """
        GIVEN the component id alphabet a..p
        WHEN converted to hex
        THEN each letter becomes the nibble of its position.
        """
        assert component_id_to_hex("abcdefghijklmnop") == "0123456789abcdef"

    def test_rejects_letters_outside_alphabet(self) -> None:
        with pytest.raises(ValueError):
            component_id_to_hex("abcq")

    def test_key_id_is_first_16_bytes_of_sha256(self) -> None:
        key = b"some public key"
        assert key_id(key) == hashlib.sha256(key).hexdigest()[:32]

    def test_builder_and_verifier_agree(self, rsa_key: rsa.RSAPrivateKey) -> None:
        der = public_key_der(rsa_key)
        assert component_id_to_hex(component_id_for(der)) == key_id(der)


class TestFindMatchingProof:
    def test_picks_proof_whose_key_hashes_to_component(
        self, rsa_key: rsa.RSAPrivateKey, other_rsa_key: rsa.RSAPrivateKey, rsa_component_id: str
    ) -> None:
        """
        GIVEN two RSA proofs, only the second belonging to the component
        WHEN find_matching_proof is called
        THEN the second proof is returned with the RSA algorithm.
        """
        wanted = _rsa_proof(rsa_key)
        proof = HeaderProof(rsa_proofs=(_rsa_proof(other_rsa_key), wanted), signed_header_data=SIGNED_HEADER_DATA)

        match = find_matching_proof(proof, rsa_component_id)

        assert match == (ProofAlgorithm.RSA_PKCS1_SHA256, wanted)

    def test_none_when_no_key_matches(self, other_rsa_key: rsa.RSAPrivateKey, rsa_component_id: str) -> None:
        proof = HeaderProof(rsa_proofs=(_rsa_proof(other_rsa_key),), signed_header_data=SIGNED_HEADER_DATA)
        assert find_matching_proof(proof, rsa_component_id) is None


class TestSignedMessageDigest:
    def test_matches_hash_of_concatenated_message(self) -> None:
        """
        GIVEN signed header data and a payload
        WHEN signed_message_digest is called
        THEN it equals SHA-256 over prefix || uint32 LE length || data || payload.
        """
        expected = hashlib.sha256(
            b"CRX3 SignedData\x00" + struct.pack("<I", len(SIGNED_HEADER_DATA)) + SIGNED_HEADER_DATA + PAYLOAD
        ).digest()

        assert signed_message_digest(SIGNED_HEADER_DATA, memoryview(PAYLOAD)) == expected
        assert hashlib.sha256(signed_message(SIGNED_HEADER_DATA, PAYLOAD)).digest() == expected


# ─────────────────────── verify_signature ───────────────────────


class TestVerifySignatureValid:
    def test_rsa_signature_verifies(self, rsa_key: rsa.RSAPrivateKey, rsa_component_id: str) -> None:
        """
        GIVEN a header with a correct RSA proof for the component
        WHEN verify_signature is called on the signed payload
        THEN it returns True.
        """
        proof = HeaderProof(rsa_proofs=(_rsa_proof(rsa_key),), signed_header_data=SIGNED_HEADER_DATA)
        assert verify_signature(proof, PAYLOAD, rsa_component_id) is True

    def test_ecdsa_signature_verifies(self, ec_key: ec.EllipticCurvePrivateKey, ec_component_id: str) -> None:
        proof = HeaderProof(ecdsa_proofs=(_ec_proof(ec_key),), signed_header_data=SIGNED_HEADER_DATA)
        assert verify_signature(proof, PAYLOAD, ec_component_id) is True

    def test_payload_as_memoryview(self, rsa_key: rsa.RSAPrivateKey, rsa_component_id: str) -> None:
        proof = HeaderProof(rsa_proofs=(_rsa_proof(rsa_key),), signed_header_data=SIGNED_HEADER_DATA)
        assert verify_signature(proof, memoryview(PAYLOAD), rsa_component_id) is True

    def test_upper_case_component_id_matches(self, rsa_key: rsa.RSAPrivateKey, rsa_component_id: str) -> None:
        proof = HeaderProof(rsa_proofs=(_rsa_proof(rsa_key),), signed_header_data=SIGNED_HEADER_DATA)
        assert verify_signature(proof, PAYLOAD, rsa_component_id.upper()) is True

    def test_non_matching_proofs_are_ignored(
        self,
        rsa_key: rsa.RSAPrivateKey,
        other_rsa_key: rsa.RSAPrivateKey,
        rsa_component_id: str,
    ) -> None:
        """
        GIVEN a bogus proof from another key ahead of the real one
        WHEN verify_signature is called
        THEN only the matching proof is checked and the result is True.
        """
        bogus = KeyProof(public_key=public_key_der(other_rsa_key), signature=b"\x00" * 256)
        proof = HeaderProof(rsa_proofs=(bogus, _rsa_proof(rsa_key)), signed_header_data=SIGNED_HEADER_DATA)

        assert verify_signature(proof, PAYLOAD, rsa_component_id) is True


class TestVerifySignatureInvalid:
    def test_tampered_payload_returns_false(self, rsa_key: rsa.RSAPrivateKey, rsa_component_id: str) -> None:
        """
        GIVEN a valid proof
        WHEN one payload byte is flipped
        THEN verify_signature returns False (no exception).
        """
        proof = HeaderProof(rsa_proofs=(_rsa_proof(rsa_key),), signed_header_data=SIGNED_HEADER_DATA)
        tampered = bytearray(PAYLOAD)
        tampered[0] ^= 0x01

        assert verify_signature(proof, bytes(tampered), rsa_component_id) is False

    def test_tampered_signed_header_data_returns_false(
        self, rsa_key: rsa.RSAPrivateKey, rsa_component_id: str
    ) -> None:
        proof = HeaderProof(rsa_proofs=(_rsa_proof(rsa_key),), signed_header_data=SIGNED_HEADER_DATA + b"\x00")
        assert verify_signature(proof, PAYLOAD, rsa_component_id) is False

    def test_garbage_signature_returns_false(self, ec_key: ec.EllipticCurvePrivateKey, ec_component_id: str) -> None:
        proof = HeaderProof(
            ecdsa_proofs=(KeyProof(public_key=public_key_der(ec_key), signature=b"not DER"),),
            signed_header_data=SIGNED_HEADER_DATA,
        )
        assert verify_signature(proof, PAYLOAD, ec_component_id) is False

    def test_rsa_key_in_ecdsa_list_returns_false(self, rsa_key: rsa.RSAPrivateKey, rsa_component_id: str) -> None:
        """
        GIVEN an RSA key listed under sha256_with_ecdsa
        WHEN verify_signature is called
        THEN the list decides the algorithm, the key type does not fit, result False.
        """
        proof = HeaderProof(ecdsa_proofs=(_rsa_proof(rsa_key),), signed_header_data=SIGNED_HEADER_DATA)
        assert verify_signature(proof, PAYLOAD, rsa_component_id) is False

    def test_unloadable_key_returns_false(self) -> None:
        """
        GIVEN a proof whose key bytes hash to the component id but are not a DER key
        WHEN verify_signature is called
        THEN it returns False.
        """
        junk_key = b"definitely not a SubjectPublicKeyInfo"
        proof = HeaderProof(
            rsa_proofs=(KeyProof(public_key=junk_key, signature=b"sig"),),
            signed_header_data=SIGNED_HEADER_DATA,
        )
        assert verify_signature(proof, PAYLOAD, component_id_for(junk_key)) is False


class TestVerifySignatureErrors:
    @pytest.mark.parametrize("signed_header_data", [None, b""])
    def test_missing_signed_header_data(
        self, signed_header_data: bytes | None, rsa_key: rsa.RSAPrivateKey, rsa_component_id: str
    ) -> None:
        """
        GIVEN a header without signed_header_data
        WHEN verify_signature is called
        THEN VerificationError(MISSING_SIGNED_DATA) is raised.
        """
        proof = HeaderProof(rsa_proofs=(_rsa_proof(rsa_key),), signed_header_data=signed_header_data)

        with pytest.raises(VerificationError) as exc_info:
            verify_signature(proof, PAYLOAD, rsa_component_id)

        assert exc_info.value.kind is VerificationFailure.MISSING_SIGNED_DATA
        assert "signedHeaderData is missing" in str(exc_info.value)

    def test_no_key_for_component(self, other_rsa_key: rsa.RSAPrivateKey, rsa_component_id: str) -> None:
        """
        GIVEN proofs that all belong to other keys
        WHEN verify_signature is called
        THEN VerificationError(NO_MATCHING_KEY) is raised.
        """
        proof = HeaderProof(rsa_proofs=(_rsa_proof(other_rsa_key),), signed_header_data=SIGNED_HEADER_DATA)

        with pytest.raises(VerificationError) as exc_info:
            verify_signature(proof, PAYLOAD, rsa_component_id)

        assert exc_info.value.kind is VerificationFailure.NO_MATCHING_KEY

    def test_empty_proof_lists(self, rsa_component_id: str) -> None:
        with pytest.raises(VerificationError) as exc_info:
            verify_signature(HeaderProof(signed_header_data=SIGNED_HEADER_DATA), PAYLOAD, rsa_component_id)
        assert exc_info.value.kind is VerificationFailure.NO_MATCHING_KEY

    @pytest.mark.parametrize("component_id", ["not-a-component-id", "qrstuvwxyzqrstuvwxyzqrstuvwxyzqr", ""])
    def test_invalid_component_id_is_no_matching_key(
        self, component_id: str, rsa_key: rsa.RSAPrivateKey
    ) -> None:
        """
        GIVEN a component id with characters outside 'a'..'p'
        WHEN verify_signature is called
        THEN VerificationError(NO_MATCHING_KEY) is raised, not ValueError.
        """
        proof = HeaderProof(rsa_proofs=(_rsa_proof(rsa_key),), signed_header_data=SIGNED_HEADER_DATA)

        with pytest.raises(VerificationError) as exc_info:
            verify_signature(proof, PAYLOAD, component_id)

        assert exc_info.value.kind is VerificationFailure.NO_MATCHING_KEY

    def test_default_component_is_crlset(self, rsa_key: rsa.RSAPrivateKey) -> None:
        """
        GIVEN a proof signed with a test key
        WHEN verify_signature is called without component_id
        THEN the CRLSet component id is used and nothing matches.
        """
        proof = HeaderProof(rsa_proofs=(_rsa_proof(rsa_key),), signed_header_data=SIGNED_HEADER_DATA)
        with pytest.raises(VerificationError):
            verify_signature(proof, PAYLOAD)
