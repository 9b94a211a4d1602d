"""
CRX3 container framing.

    offset  size  field
    0       4     magic "Cr24"
    4       4     version, uint32 LE, must be 3
    8       4     header length N, uint32 LE
    12      N     header proof (protobuf CrxFileHeader)
    12+N    ...   payload (ZIP archive)

parse_container only checks structure and slices; it does no cryptography.
"""

from __future__ import annotations

import struct

import structlog

from crlset.domain.constants import CRX_MAGIC, CRX_PREFIX_SIZE, CRX_VERSION
from crlset.domain.errors import ContainerDefect, FormatError
from crlset.domain.models import SignedContainer

log = structlog.get_logger()

_PREFIX = struct.Struct("<4sII")


def parse_container(data: bytes | bytearray | memoryview) -> SignedContainer:
    """
    Validate the CRX prefix and split the buffer into header proof and payload.

    The returned views alias `data`; nothing is copied.

    Raises:
        FormatError: BAD_MAGIC, UNSUPPORTED_VERSION or HEADER_LENGTH_OVERFLOW.
    """
    view = memoryview(data).cast("B")
    total = len(view)

    magic = bytes(view[:4])
    if magic != CRX_MAGIC:
        raise FormatError(
            ContainerDefect.BAD_MAGIC,
            f"Invalid CRX magic: expected {CRX_MAGIC.decode()}, got {magic.decode('ascii', 'replace')}",
        )

    if total < CRX_PREFIX_SIZE:
        # Magic present but version/length words missing: nothing fits after it.
        raise FormatError(
            ContainerDefect.HEADER_LENGTH_OVERFLOW,
            "Invalid CRX header: file too short for the container prefix.",
        )

    _, version, header_length = _PREFIX.unpack_from(view)
    if version != CRX_VERSION:
        raise FormatError(
            ContainerDefect.UNSUPPORTED_VERSION,
            f"Unsupported CRX version: expected {CRX_VERSION}, got {version}",
        )

    payload_offset = CRX_PREFIX_SIZE + header_length
    if payload_offset > total:
        raise FormatError(
            ContainerDefect.HEADER_LENGTH_OVERFLOW,
            "Invalid CRX header: header length exceeds file size.",
        )

    log.debug("container.parsed", header_length=header_length, payload_length=total - payload_offset)
    return SignedContainer(
        header_proof=view[CRX_PREFIX_SIZE:payload_offset],
        payload=view[payload_offset:],
        version=version,
    )
