"""
FreshnessController — owns the single cached CRLSet and its update policy.

    Empty ──load_latest──▶ full pipeline ──▶ Cached(set)

    Cached(set), now >= NotAfter            → full pipeline (policy ignored)
    Cached(set), fresh, ON_EXPIRY           → set, no network
    Cached(set), verify=True but set was
      loaded with verify=False              → full pipeline (policy ignored)
    Cached(set), fresh, ALWAYS              → header probe;
                                              remote sequence > set.sequence → full pipeline
                                              otherwise                      → set

load_latest holds a lock for the whole decision-plus-refresh, so two
callers never both see an empty/stale cell and download twice. A failed
refresh leaves the cell as it was. Replacing the cell never touches the
old CRLSet, which stays valid for whoever already holds it.
"""

from __future__ import annotations

import threading
import time
from collections.abc import Callable

import structlog

from crlset.domain.constants import CRLSET_COMPONENT_ID, DEFAULT_PARTIAL_FETCH_BYTES
from crlset.domain.models import CRLSet, UpdatePolicy
from crlset.domain.ports import ArchiveReader, ContainerFetcher, HeaderProofDecoder
from crlset.pipeline import fetch_remote_header, run_pipeline
from crlset.railway.result import Result

log = structlog.get_logger()


class FreshnessController:
    """
    Cache cell plus refresh policy for one CRLSet component.

    Instances are independent: each has its own lock and cell, so tests and
    multi-tenant processes can keep separate caches.
    """

    def __init__(
        self,
        fetcher: ContainerFetcher,
        decoder: HeaderProofDecoder,
        archive: ArchiveReader,
        component_id: str = CRLSET_COMPONENT_ID,
        partial_fetch_bytes: int = DEFAULT_PARTIAL_FETCH_BYTES,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._fetcher = fetcher
        self._decoder = decoder
        self._archive = archive
        self._component_id = component_id
        self._partial_fetch_bytes = partial_fetch_bytes
        self._clock = clock
        self._lock = threading.Lock()
        self._cached: CRLSet | None = None
        self._cached_verified = False

    @property
    def cached(self) -> CRLSet | None:
        """The current cell content, without any freshness check."""
        return self._cached

    def reset(self) -> None:
        """Drop the cached CRLSet; the next load_latest runs the full pipeline."""
        with self._lock:
            self._cached = None
            self._cached_verified = False
        log.info("freshness.reset")

    def load_latest(
        self,
        verify: bool = True,
        policy: UpdatePolicy = UpdatePolicy.ON_EXPIRY,
    ) -> Result[CRLSet]:
        """
        Return a CRLSet that satisfies `policy`, refreshing the cache if needed.

        Returns the first pipeline failure unchanged; the cache is only
        written on success.
        """
        with self._lock:
            cached = self._cached

            if cached is None:
                log.info("freshness.cache_empty")
                return self._refresh(verify)

            if verify and not self._cached_verified:
                log.info("freshness.cache_unverified", sequence=cached.sequence)
                return self._refresh(verify)

            now = self._clock()
            if cached.header.is_expired(now):
                log.info("freshness.cache_expired", sequence=cached.sequence, not_after=cached.not_after)
                return self._refresh(verify)

            if policy is UpdatePolicy.ON_EXPIRY:
                log.debug("freshness.cache_hit", sequence=cached.sequence)
                return Result.success(cached)

            return self._probe_and_refresh(cached, verify)

    def _probe_and_refresh(self, cached: CRLSet, verify: bool) -> Result[CRLSet]:
        def _decide(remote_sequence: int) -> Result[CRLSet]:
            if remote_sequence > cached.sequence:
                log.info("freshness.newer_sequence", cached=cached.sequence, remote=remote_sequence)
                return self._refresh(verify)
            log.debug("freshness.sequence_unchanged", sequence=cached.sequence)
            return Result.success(cached)

        return (
            fetch_remote_header(self._fetcher, self._archive, self._partial_fetch_bytes)
            .map(lambda header: header.sequence)
            .flat_map(_decide)
        )

    def _refresh(self, verify: bool) -> Result[CRLSet]:
        return (
            run_pipeline(self._fetcher, self._decoder, self._archive, verify, self._component_id)
            .peek(lambda crl_set: self._store(crl_set, verify))
            .peek_failure(lambda err: log.error("freshness.refresh_failed", failure=str(err)))
        )

    def _store(self, crl_set: CRLSet, verified: bool) -> None:
        self._cached = crl_set
        self._cached_verified = verified
        log.info("freshness.cache_updated", sequence=crl_set.sequence, verified=verified)
