"""
Failure description — what travels down the failure track.

ErrorCode names the pipeline stage family that failed; the original
exception (one of crlset.domain.errors) rides along unchanged in
FailureDescription.exception so callers can inspect its kind/point.
"""

from __future__ import annotations

import traceback
from dataclasses import dataclass, field
from datetime import UTC, datetime
from enum import Enum, unique

from crlset.domain.errors import (
    ArchiveError,
    EntryNotFoundError,
    FormatError,
    HeaderDecodeError,
    MalformedHeaderError,
    SignatureMismatchError,
    TransportError,
    TruncatedError,
    VerificationError,
)


@unique
class ErrorCode(Enum):
    """Failure codes, one per family of the CRLSet error taxonomy."""

    FORMAT_ERROR = "FORMAT_ERROR"
    """Outer CRX container malformed (magic, version, header length)."""

    TRUNCATED = "TRUNCATED"
    """CRLSet body ended before one of its declared boundaries."""

    MALFORMED_HEADER = "MALFORMED_HEADER"
    """CRLSet JSON header unreadable."""

    VERIFICATION_ERROR = "VERIFICATION_ERROR"
    """Signed data missing, or no proof matches the component id."""

    SIGNATURE_MISMATCH = "SIGNATURE_MISMATCH"
    """Matching key found but the signature does not verify."""

    DECODE_ERROR = "DECODE_ERROR"
    """CRX header-proof section is not decodable."""

    ARCHIVE_ERROR = "ARCHIVE_ERROR"
    """Payload is not a readable ZIP archive."""

    ENTRY_NOT_FOUND = "ENTRY_NOT_FOUND"
    """Payload archive lacks the crl-set member."""

    TRANSPORT_ERROR = "TRANSPORT_ERROR"
    """Update check or download failed."""

    CONFIGURATION_ERROR = "CONFIGURATION_ERROR"
    """Settings could not be loaded."""

    TECHNICAL_ERROR = "TECHNICAL_ERROR"
    """Anything outside the taxonomy."""


@dataclass(frozen=True, slots=True)
class FailureDescription:
    """
    Immutable failure descriptor: code, message, optional exception, timestamp.

    >>> desc = FailureDescription(ErrorCode.TRUNCATED, "CRLSet file is truncated (at SPKI hash).")
    >>> desc.code
    <ErrorCode.TRUNCATED: 'TRUNCATED'>
    """

    code: ErrorCode
    message: str
    exception: BaseException | None = field(default=None, repr=False)
    timestamp: datetime = field(default_factory=lambda: datetime.now(UTC))

    def full_stack_trace(self) -> str:
        """Message followed by the formatted exception chain, if any."""
        if self.exception is None:
            return self.message
        tb = "".join(
            traceback.format_exception(type(self.exception), self.exception, self.exception.__traceback__)
        )
        return f"{self.message}\n{tb}"

    def __str__(self) -> str:
        return f"{self.code.value}: {self.message}"


def code_for(exception: BaseException) -> ErrorCode:
    """Map a pipeline exception onto its ErrorCode (most specific class first)."""
    match exception:
        case FormatError():
            return ErrorCode.FORMAT_ERROR
        case TruncatedError():
            return ErrorCode.TRUNCATED
        case MalformedHeaderError():
            return ErrorCode.MALFORMED_HEADER
        case VerificationError():
            return ErrorCode.VERIFICATION_ERROR
        case SignatureMismatchError():
            return ErrorCode.SIGNATURE_MISMATCH
        case HeaderDecodeError():
            return ErrorCode.DECODE_ERROR
        case EntryNotFoundError():
            return ErrorCode.ENTRY_NOT_FOUND
        case ArchiveError():
            return ErrorCode.ARCHIVE_ERROR
        case TransportError():
            return ErrorCode.TRANSPORT_ERROR
        case _:
            return ErrorCode.TECHNICAL_ERROR
