"""
Pipeline — the CRLSet trust pipeline as a railway.

Domain orchestration only; all I/O arrives through ports:

  fetcher.fetch_full_container()
    → parse_container(raw)                      FormatError
      → decoder.decode(header_proof)            HeaderDecodeError       ┐ only when
        → verify_signature(proof, payload)      VerificationError       │ verify=True
          → ensure(valid)                       SignatureMismatchError  ┘
            → archive.extract_entry(payload, "crl-set")   EntryNotFoundError
              → build_crlset(crl_set_bytes)     TruncatedError / MalformedHeaderError
                → CRLSet

Each stage returns Result[T]; the first failure short-circuits the rest and
is returned unchanged. There is no path from a failed verification to
unverified data.
"""

from __future__ import annotations

import structlog

from crlset.domain.constants import CRL_SET_ENTRY, CRLSET_COMPONENT_ID
from crlset.domain.container import parse_container
from crlset.domain.errors import SignatureMismatchError
from crlset.domain.models import CRLSet, RevocationHeader, SignedContainer
from crlset.domain.ports import ArchiveReader, ContainerFetcher, HeaderProofDecoder
from crlset.domain.revocation import build_crlset, parse_revocation_header
from crlset.domain.signature import verify_signature
from crlset.railway.result import Result

log = structlog.get_logger()


def authenticate_container(
    container: SignedContainer,
    decoder: HeaderProofDecoder,
    component_id: str = CRLSET_COMPONENT_ID,
) -> Result[SignedContainer]:
    """
    Decode the header proof and require a valid signature over the payload.

    Passes the container through unchanged on success.
    """
    return (
        decoder.decode(container.header_proof)
        .flat_map(lambda proof: Result.attempt(lambda: verify_signature(proof, container.payload, component_id)))
        .ensure(lambda valid: valid, lambda _: SignatureMismatchError("CRX signature verification failed."))
        .map(lambda _: container)
    )


def process_container(
    raw_crx: bytes,
    decoder: HeaderProofDecoder,
    archive: ArchiveReader,
    verify: bool = True,
    component_id: str = CRLSET_COMPONENT_ID,
) -> Result[CRLSet]:
    """
    Run every stage after the download on an in-memory CRX.

    With verify=False the signature stages are skipped; the structural
    container parse never is.
    """
    container = Result.attempt(lambda: parse_container(raw_crx))
    if verify:
        container = container.flat_map(lambda c: authenticate_container(c, decoder, component_id))
    else:
        log.warning("pipeline.signature_verification_disabled")

    return (
        container
        .flat_map(lambda c: archive.extract_entry(c.payload, CRL_SET_ENTRY))
        .flat_map(lambda crl_set: Result.attempt(lambda: build_crlset(crl_set)))
        .peek(lambda crl_set: log.info(
            "pipeline.crlset_loaded",
            sequence=crl_set.sequence,
            not_after=crl_set.not_after,
            issuers=crl_set.revocation_count,
            blocked_spkis=crl_set.blocked_spki_count,
        ))
    )


def run_pipeline(
    fetcher: ContainerFetcher,
    decoder: HeaderProofDecoder,
    archive: ArchiveReader,
    verify: bool = True,
    component_id: str = CRLSET_COMPONENT_ID,
) -> Result[CRLSet]:
    """
    Download the latest CRX and turn it into a CRLSet.

    Returns Result[CRLSet] on success, or the failure of the first stage
    that failed.
    """
    return fetcher.fetch_full_container().flat_map(
        lambda raw_crx: process_container(raw_crx, decoder, archive, verify, component_id)
    )


def fetch_remote_header(
    fetcher: ContainerFetcher,
    archive: ArchiveReader,
    max_bytes: int,
) -> Result[RevocationHeader]:
    """
    Read the CRLSet header of the currently published CRX from a partial download.

    Unauthenticated: the signature covers the whole payload, which is not
    downloaded. Use the result only to decide whether to run run_pipeline.
    """
    return (
        fetcher.fetch_partial_container(max_bytes)
        .flat_map(lambda raw: Result.attempt(lambda: parse_container(raw)))
        .flat_map(lambda container: archive.read_entry_prefix(container.payload, CRL_SET_ENTRY))
        .flat_map(lambda prefix: Result.attempt(lambda: parse_revocation_header(prefix)))
        .peek(lambda header: log.info("pipeline.remote_header", sequence=header.sequence))
    )
