"""
Domain models — immutable values produced by the trust pipeline.

  SignedContainer   outer CRX split into header-proof and payload views
  HeaderProof       decoded CRX3 header: candidate keys + signed header data
  RevocationHeader  JSON header of the CRLSet (pydantic, alias-mapped)
  RevocationIndex   issuer SPKI hash → revoked serials, lower-case hex
  CRLSet            the queryable snapshot

Everything here is frozen after construction and safe to share across
threads. Hex inputs to the query methods are case-insensitive.
"""

from __future__ import annotations

import base64
import binascii
from collections.abc import Iterable, Iterator, Mapping
from dataclasses import dataclass, field
from enum import Enum, unique
from typing import Any

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    ValidationError,
    ValidationInfo,
    ValidatorFunctionWrapHandler,
    field_validator,
    model_validator,
)

from crlset.domain.constants import CRX_VERSION


@unique
class RevocationStatus(Enum):
    """Outcome of CRLSet.check()."""

    OK = "OK"
    REVOKED_BY_SPKI = "REVOKED_BY_SPKI"
    REVOKED_BY_SERIAL = "REVOKED_BY_SERIAL"


@unique
class UpdatePolicy(Enum):
    """
    When a non-expired cached CRLSet is re-checked against the server.

    ALWAYS probes the remote header on every load; ON_EXPIRY only refetches
    once NotAfter has passed.
    """

    ALWAYS = "always"
    ON_EXPIRY = "on_expiry"


@unique
class ProofAlgorithm(Enum):
    RSA_PKCS1_SHA256 = "sha256_with_rsa"
    ECDSA_SHA256 = "sha256_with_ecdsa"


# ─────────────────────── CRX container ───────────────────────


@dataclass(frozen=True, slots=True)
class SignedContainer:
    """
    A structurally valid CRX3 file, split without copying.

    Both fields are memoryviews over the caller's buffer.
    """

    header_proof: memoryview = field(repr=False)
    payload: memoryview = field(repr=False)
    version: int = CRX_VERSION


@dataclass(frozen=True, slots=True)
class KeyProof:
    """One (public key, signature) pair from the CRX header."""

    public_key: bytes = field(repr=False)
    signature: bytes = field(repr=False)


@dataclass(frozen=True, slots=True)
class HeaderProof:
    """
    Decoded CRX3 header.

    The proof list a key comes from decides the verification algorithm.
    `signed_header_data` is None when the field was absent on the wire.
    """

    rsa_proofs: tuple[KeyProof, ...] = ()
    ecdsa_proofs: tuple[KeyProof, ...] = ()
    signed_header_data: bytes | None = field(default=None, repr=False)

    def candidates(self) -> Iterator[tuple[ProofAlgorithm, KeyProof]]:
        """All proofs, RSA list first, tagged with their algorithm."""
        for proof in self.rsa_proofs:
            yield ProofAlgorithm.RSA_PKCS1_SHA256, proof
        for proof in self.ecdsa_proofs:
            yield ProofAlgorithm.ECDSA_SHA256, proof


# ─────────────────────── CRLSet ───────────────────────


class RevocationHeader(BaseModel):
    """
    JSON header at the front of a CRLSet file.

    Only Sequence, NumParents, NotAfter and BlockedSPKIs drive behaviour;
    the remaining fields are carried as-is. Any JSON document is accepted:
    a non-object reads as {}, and a behavioural field that is missing or
    not usable (null, wrong type, negative NumParents) takes its default.
    Undecodable BlockedSPKIs entries are skipped.
    """

    model_config = ConfigDict(frozen=True, populate_by_name=True, extra="allow")

    version: Any = Field(default=None, alias="Version")
    content_type: Any = Field(default=None, alias="ContentType")
    sequence: int = Field(default=0, alias="Sequence")
    delta_from: Any = Field(default=None, alias="DeltaFrom")
    num_parents: int = Field(default=0, ge=0, alias="NumParents")
    not_after: int = Field(default=0, alias="NotAfter")
    blocked_spki_hashes: tuple[bytes, ...] = Field(default=(), alias="BlockedSPKIs")
    known_interception_spkis: tuple[Any, ...] = Field(default=(), alias="KnownInterceptionSPKIs")
    blocked_interception_spkis: tuple[Any, ...] = Field(default=(), alias="BlockedInterceptionSPKIs")

    @model_validator(mode="before")
    @classmethod
    def object_or_empty(cls, data: Any) -> Any:
        return data if isinstance(data, dict) else {}

    @field_validator(
        "sequence",
        "num_parents",
        "not_after",
        "known_interception_spkis",
        "blocked_interception_spkis",
        mode="wrap",
    )
    @classmethod
    def default_when_unusable(
        cls, value: Any, handler: ValidatorFunctionWrapHandler, info: ValidationInfo
    ) -> Any:
        try:
            return handler(value)
        except ValidationError:
            return cls.model_fields[info.field_name].default

    @field_validator("blocked_spki_hashes", mode="before")
    @classmethod
    def decode_blocked_spkis(cls, value: Any) -> tuple[bytes, ...]:
        """BlockedSPKIs are base64 strings on the wire; keep the raw digest bytes."""
        if not isinstance(value, list | tuple):
            return ()
        decoded = []
        for item in value:
            if isinstance(item, bytes):
                decoded.append(item)
            elif isinstance(item, str):
                try:
                    decoded.append(base64.b64decode(item, validate=True))
                except binascii.Error:
                    continue
        return tuple(decoded)

    def is_expired(self, now: float) -> bool:
        """True once `now` (epoch seconds) reaches NotAfter. NotAfter 0 never expires."""
        return self.not_after > 0 and now >= self.not_after


class RevocationIndex(Mapping[str, frozenset[str]]):
    """
    Read-only map of issuer SPKI hash to revoked serial numbers.

    Keys and serials are stored as lower-case hex; lookups lower-case their
    argument. Repeated issuers are merged.
    """

    __slots__ = ("_entries",)

    def __init__(self, entries: Mapping[str, Iterable[str]] | None = None) -> None:
        merged: dict[str, frozenset[str]] = {}
        for spki_hash, serials in (entries or {}).items():
            key = spki_hash.lower()
            merged[key] = merged.get(key, frozenset()) | frozenset(s.lower() for s in serials)
        self._entries = merged

    def __getitem__(self, spki_hash: str) -> frozenset[str]:
        return self._entries[spki_hash.lower()]

    def __contains__(self, spki_hash: object) -> bool:
        return isinstance(spki_hash, str) and spki_hash.lower() in self._entries

    def __iter__(self) -> Iterator[str]:
        return iter(self._entries)

    def __len__(self) -> int:
        return len(self._entries)

    def __repr__(self) -> str:
        return f"RevocationIndex(issuers={len(self._entries)})"

    def serials_for(self, spki_hash: str) -> frozenset[str]:
        return self._entries.get(spki_hash.lower(), frozenset())


@dataclass(frozen=True, slots=True, eq=False)
class CRLSet:
    """
    A verified, parsed CRLSet snapshot.

    Never mutated; a newer snapshot replaces it as a whole. `sequence` and
    `blocked_spkis` are derived from the header once, at construction.
    """

    header: RevocationHeader
    revocations: RevocationIndex
    sequence: int = field(init=False)
    blocked_spkis: frozenset[str] = field(init=False, repr=False)

    def __post_init__(self) -> None:
        object.__setattr__(self, "sequence", self.header.sequence)
        object.__setattr__(
            self, "blocked_spkis", frozenset(h.hex() for h in self.header.blocked_spki_hashes)
        )

    def check(self, spki_hash: str, serial_number: str) -> RevocationStatus:
        """
        Full revocation check for a certificate.

        A blocked issuer SPKI wins over a serial listing: it condemns every
        certificate of that CA, including serials never seen in the table.
        """
        if self.is_revoked_by_spki(spki_hash):
            return RevocationStatus.REVOKED_BY_SPKI
        if self.is_revoked_by_serial(spki_hash, serial_number):
            return RevocationStatus.REVOKED_BY_SERIAL
        return RevocationStatus.OK

    def is_revoked_by_spki(self, spki_hash: str) -> bool:
        return spki_hash.lower() in self.blocked_spkis

    def is_revoked_by_serial(self, spki_hash: str, serial_number: str) -> bool:
        """An issuer absent from the table has no revoked serials."""
        return serial_number.lower() in self.revocations.serials_for(spki_hash)

    @property
    def revocation_count(self) -> int:
        """Number of issuers with at least one entry in the revocation table."""
        return len(self.revocations)

    @property
    def blocked_spki_count(self) -> int:
        return len(self.blocked_spkis)

    @property
    def not_after(self) -> int:
        return self.header.not_after
