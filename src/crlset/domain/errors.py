"""
Error taxonomy for the CRLSet trust pipeline.

Every pure stage (container, signature, revocation) raises one of these;
the railway maps them onto ErrorCode values at the port boundary
(see crlset.railway.failure.code_for). Each family carries an Enum
discriminator so callers can tell boundaries apart without string matching.

  CrlSetError
    ├── FormatError            outer CRX container is malformed
    ├── TruncatedError         CRLSet body ended before a declared boundary
    ├── MalformedHeaderError   CRLSet header bytes are not UTF-8 JSON
    ├── VerificationError      signed data missing / no key for the component
    ├── SignatureMismatchError key found, signature does not verify
    ├── HeaderDecodeError      CRX header-proof bytes are not valid protobuf
    ├── ArchiveError           payload is not a readable ZIP
    │     └── EntryNotFoundError
    └── TransportError         fetch collaborator failed
          └── UpdateCheckError
"""

from __future__ import annotations

from enum import Enum, unique


class CrlSetError(Exception):
    """Base class for every failure raised by the CRLSet pipeline."""


# ─────────────────────── Outer container ───────────────────────


@unique
class ContainerDefect(Enum):
    BAD_MAGIC = "BAD_MAGIC"
    UNSUPPORTED_VERSION = "UNSUPPORTED_VERSION"
    HEADER_LENGTH_OVERFLOW = "HEADER_LENGTH_OVERFLOW"


class FormatError(CrlSetError, ValueError):
    """Raised when the CRX container fails a structural precondition."""

    def __init__(self, kind: ContainerDefect, message: str) -> None:
        super().__init__(message)
        self.kind = kind


# ─────────────────────── CRLSet body ───────────────────────


@unique
class TruncationPoint(Enum):
    """The six length-checked boundaries of the CRLSet binary layout, in order."""

    HEADER_LENGTH = "header length"
    HEADER_CONTENT = "header content"
    SPKI_HASH = "SPKI hash"
    SERIAL_COUNT = "serial count"
    SERIAL_LENGTH = "serial length"
    SERIAL_NUMBER = "serial number"


class TruncatedError(CrlSetError, ValueError):
    """Raised when the CRLSet buffer ends before the declared structure does."""

    def __init__(self, point: TruncationPoint) -> None:
        super().__init__(f"CRLSet file is truncated (at {point.value}).")
        self.point = point


class MalformedHeaderError(CrlSetError, ValueError):
    """Raised when the CRLSet header bytes are not UTF-8 JSON."""


# ─────────────────────── Authenticity ───────────────────────


@unique
class VerificationFailure(Enum):
    MISSING_SIGNED_DATA = "MISSING_SIGNED_DATA"
    NO_MATCHING_KEY = "NO_MATCHING_KEY"


class VerificationError(CrlSetError):
    """
    Raised for the two structural verification failures.

    A cryptographic mismatch is NOT a VerificationError: verify_signature
    answers False for it.
    """

    def __init__(self, kind: VerificationFailure, message: str) -> None:
        super().__init__(message)
        self.kind = kind


class SignatureMismatchError(CrlSetError):
    """Raised by the pipeline when a matching key's signature does not verify."""


class HeaderDecodeError(CrlSetError, ValueError):
    """Raised when the CRX header-proof section cannot be decoded."""


# ─────────────────────── Collaborators ───────────────────────


class ArchiveError(CrlSetError):
    """Raised when the CRX payload is not a readable ZIP archive."""


class EntryNotFoundError(ArchiveError, LookupError):
    """Raised when the payload archive has no member with the expected name."""

    def __init__(self, entry_name: str) -> None:
        super().__init__(f"CRX archive does not contain a {entry_name!r} entry.")
        self.entry_name = entry_name


class TransportError(CrlSetError, ConnectionError):
    """Raised by the fetcher for non-2xx responses and exhausted retries."""

    def __init__(self, message: str, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class UpdateCheckError(TransportError):
    """Raised when the Omaha response does not advertise a CRX download URL."""
