"""
CRLSet binary parser.

Layout (all integers little-endian):

    uint16            header length H
    H bytes           UTF-8 JSON header (RevocationHeader)
    NumParents ×
        32 bytes      issuer SPKI SHA-256
        uint32        serial count S
        S ×
            uint8     serial length L
            L bytes   serial number

Every read is preceded by a length check that names the boundary it
guards, so a short buffer fails with exactly one TruncationPoint. Bytes
after the last declared entry are not inspected.
"""

from __future__ import annotations

import struct

import structlog
from pydantic import ValidationError

from crlset.domain.constants import SPKI_HASH_SIZE
from crlset.domain.errors import MalformedHeaderError, TruncatedError, TruncationPoint
from crlset.domain.models import CRLSet, RevocationHeader, RevocationIndex

log = structlog.get_logger()

_U16 = struct.Struct("<H")
_U32 = struct.Struct("<I")


class _Reader:
    """Bounds-checked cursor over a memoryview."""

    __slots__ = ("_view", "offset")

    def __init__(self, view: memoryview, offset: int = 0) -> None:
        self._view = view
        self.offset = offset

    def take(self, size: int, point: TruncationPoint) -> memoryview:
        end = self.offset + size
        if end > len(self._view):
            raise TruncatedError(point)
        chunk = self._view[self.offset:end]
        self.offset = end
        return chunk

    def u8(self, point: TruncationPoint) -> int:
        return self.take(1, point)[0]

    def u16(self, point: TruncationPoint) -> int:
        return _U16.unpack(self.take(2, point))[0]

    def u32(self, point: TruncationPoint) -> int:
        return _U32.unpack(self.take(4, point))[0]


def _read_header(reader: _Reader) -> RevocationHeader:
    header_length = reader.u16(TruncationPoint.HEADER_LENGTH)
    raw = reader.take(header_length, TruncationPoint.HEADER_CONTENT)
    try:
        return RevocationHeader.model_validate_json(bytes(raw))
    except ValidationError as e:
        raise MalformedHeaderError(f"CRLSet header is not a valid JSON document: {e}") from e


def parse_revocation_header(data: bytes | bytearray | memoryview) -> RevocationHeader:
    """
    Parse only the JSON header.

    Enough for a sequence/expiry probe on a buffer that holds just the
    first bytes of a CRLSet.

    Raises:
        TruncatedError: HEADER_LENGTH or HEADER_CONTENT.
        MalformedHeaderError: header bytes are not UTF-8 JSON.
    """
    return _read_header(_Reader(memoryview(data).cast("B")))


def parse_revocation_set(data: bytes | bytearray | memoryview) -> tuple[RevocationHeader, RevocationIndex]:
    """
    Parse a complete CRLSet into its header and revocation index.

    Exactly `header.num_parents` entries are read. Hashes and serials are
    stored as lower-case hex.

    Raises:
        TruncatedError: at the first boundary the buffer does not reach.
        MalformedHeaderError: header bytes are not UTF-8 JSON.
    """
    reader = _Reader(memoryview(data).cast("B"))
    header = _read_header(reader)

    entries: dict[str, set[str]] = {}
    for _ in range(header.num_parents):
        spki_hash = reader.take(SPKI_HASH_SIZE, TruncationPoint.SPKI_HASH).hex()
        serial_count = reader.u32(TruncationPoint.SERIAL_COUNT)

        serials = entries.setdefault(spki_hash, set())
        for _ in range(serial_count):
            serial_length = reader.u8(TruncationPoint.SERIAL_LENGTH)
            serials.add(reader.take(serial_length, TruncationPoint.SERIAL_NUMBER).hex())

    log.debug(
        "revocation.parsed",
        sequence=header.sequence,
        issuers=len(entries),
        consumed_bytes=reader.offset,
    )
    return header, RevocationIndex(entries)


def build_crlset(data: bytes | bytearray | memoryview) -> CRLSet:
    """Parse a CRLSet file and wrap it in the queryable CRLSet value."""
    header, revocations = parse_revocation_set(data)
    return CRLSet(header=header, revocations=revocations)
