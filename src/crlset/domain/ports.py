"""
Ports — Protocol interfaces for the collaborators the trust pipeline needs.

The domain never performs I/O itself. It asks for container bytes, for a
decoded header proof and for an archive member through these contracts;
adapters in crlset.adapters satisfy them structurally (no inheritance).

All ports answer with Result[T]; a failure carries a typed CrlSetError.
"""

from __future__ import annotations

from typing import Protocol, runtime_checkable

from crlset.domain.models import HeaderProof
from crlset.railway.result import Result


@runtime_checkable
class ContainerFetcher(Protocol):
    """
    Port: retrieve CRX bytes for the CRLSet component.

    fetch_partial_container returns at most `max_bytes` leading bytes — enough
    for the container prefix, the header proof and the start of the payload.
    Transport problems surface as TransportError failures.
    """

    def fetch_full_container(self) -> Result[bytes]: ...

    def fetch_partial_container(self, max_bytes: int) -> Result[bytes]: ...


@runtime_checkable
class HeaderProofDecoder(Protocol):
    """Port: schema-decode the CRX header-proof section into a HeaderProof."""

    def decode(self, header_proof: bytes | memoryview) -> Result[HeaderProof]: ...


@runtime_checkable
class ArchiveReader(Protocol):
    """
    Port: read a named member out of the CRX payload archive.

    extract_entry needs the complete payload; read_entry_prefix works on a
    truncated payload and returns however much of the member it contains.
    A missing member is an EntryNotFoundError failure.
    """

    def extract_entry(self, payload: bytes | memoryview, entry_name: str) -> Result[bytes]: ...

    def read_entry_prefix(self, payload: bytes | memoryview, entry_name: str) -> Result[bytes]: ...
