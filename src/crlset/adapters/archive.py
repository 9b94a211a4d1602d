"""
ZIP adapter — reads the crl-set member out of a CRX payload.

Adapter layer — implements the ArchiveReader port.

  extract_entry      complete payload, stdlib zipfile (central directory)
  read_entry_prefix  truncated payload, walks local file headers in order
                     and inflates whatever part of the member is present

The second path exists for the header probe: only the first kilobytes of
the CRX are downloaded, so the central directory at the end of the
archive is never available.
"""

from __future__ import annotations

import io
import struct
import zipfile
import zlib

import structlog

from crlset.domain.errors import ArchiveError, EntryNotFoundError
from crlset.railway.result import Result

log = structlog.get_logger()

_LOCAL_HEADER = struct.Struct("<IHHHHHIIIHH")
_LOCAL_HEADER_SIGNATURE = 0x04034B50
_FLAG_DATA_DESCRIPTOR = 0x0008
_FLAG_UTF8 = 0x0800
_ZIP64_SIZE = 0xFFFFFFFF


class ZipArchiveReader:
    """Implements the ArchiveReader port over ZIP payloads."""

    def extract_entry(self, payload: bytes | memoryview, entry_name: str) -> Result[bytes]:
        return Result.attempt(lambda: self._do_extract(payload, entry_name))

    def read_entry_prefix(self, payload: bytes | memoryview, entry_name: str) -> Result[bytes]:
        return Result.attempt(lambda: self._do_read_prefix(memoryview(payload), entry_name))

    def _do_extract(self, payload: bytes | memoryview, entry_name: str) -> bytes:
        try:
            with zipfile.ZipFile(io.BytesIO(payload)) as archive:
                try:
                    data = archive.read(entry_name)
                except KeyError:
                    raise EntryNotFoundError(entry_name) from None
        except zipfile.BadZipFile as e:
            raise ArchiveError(f"CRX payload is not a valid ZIP archive: {e}") from e

        log.debug("archive.entry_extracted", entry=entry_name, size_bytes=len(data))
        return data

    def _do_read_prefix(self, view: memoryview, entry_name: str) -> bytes:
        offset = 0
        while offset + _LOCAL_HEADER.size <= len(view):
            (
                signature,
                _version,
                flags,
                method,
                _mtime,
                _mdate,
                _crc,
                compressed_size,
                _size,
                name_length,
                extra_length,
            ) = _LOCAL_HEADER.unpack_from(view, offset)
            if signature != _LOCAL_HEADER_SIGNATURE:
                # Central directory reached: every member has been seen.
                raise EntryNotFoundError(entry_name)

            name_start = offset + _LOCAL_HEADER.size
            raw_name = bytes(view[name_start:name_start + name_length])
            name = raw_name.decode("utf-8" if flags & _FLAG_UTF8 else "cp437")
            data_start = name_start + name_length + extra_length
            size_known = not flags & _FLAG_DATA_DESCRIPTOR and compressed_size != _ZIP64_SIZE

            if name == entry_name:
                end = data_start + compressed_size if size_known else len(view)
                return _inflate_prefix(bytes(view[data_start:end]), method)

            if not size_known:
                raise ArchiveError(f"Cannot skip ZIP member {name!r}: its size is not recorded locally.")
            offset = data_start + compressed_size

        raise ArchiveError(f"ZIP member {entry_name!r} does not start within the first {len(view)} bytes.")


def _inflate_prefix(data: bytes, method: int) -> bytes:
    """Decompress as much of a (possibly cut) member as the bytes allow."""
    match method:
        case zipfile.ZIP_STORED:
            return data
        case zipfile.ZIP_DEFLATED:
            try:
                return zlib.decompressobj(-zlib.MAX_WBITS).decompress(data)
            except zlib.error as e:
                raise ArchiveError(f"Corrupt deflate stream in CRX payload: {e}") from e
        case _:
            raise ArchiveError(f"Unsupported ZIP compression method {method}.")
