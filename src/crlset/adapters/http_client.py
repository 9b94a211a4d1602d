"""
HTTP adapter — Omaha update check and CRX download via httpx.

Adapter layer — implements the ContainerFetcher port.

Flow (2 requests per fetch):
  1. GET {omaha_url}?x=id={app_id}&v={version}&uc&acceptformat=crx3
     → gupdate XML → <app appid=...><updatecheck codebase=URL/>
  2. GET URL → CRX bytes (whole file, or a Range-limited prefix for the
     header probe)

Retry/backoff via tenacity on transient errors (network, timeout) only.
Non-2xx responses become TransportError with the status code; a response
that does not name a codebase becomes UpdateCheckError. Everything is
returned on the railway — nothing raises into the pipeline.
"""

from __future__ import annotations

import xml.etree.ElementTree as ET
from collections.abc import Callable
from typing import TypeVar
from urllib.parse import urlencode

import httpx
import structlog
from tenacity import (
    retry,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from crlset.domain.constants import CRLSET_COMPONENT_ID, OMAHA_BASE_URL
from crlset.domain.errors import TransportError, UpdateCheckError
from crlset.railway.result import Result

log = structlog.get_logger()

T = TypeVar("T")

_transient_retry = retry(
    stop=stop_after_attempt(3),
    wait=wait_exponential(multiplier=1, min=0.1, max=30),
    retry=retry_if_exception_type((httpx.TimeoutException, httpx.NetworkError)),
    reraise=True,
)


def build_update_check_url(
    omaha_url: str = OMAHA_BASE_URL,
    app_id: str = CRLSET_COMPONENT_ID,
    version: str = "",
    update_check: bool = True,
) -> str:
    """
    Build the Omaha update-check URL for a component.

    `acceptformat=crx3` is always requested; `uc` is optional.
    """
    x_param = f"id={app_id}&v={version}"
    if update_check:
        x_param += "&uc"
    x_param += "&acceptformat=crx3"
    return f"{omaha_url}?{urlencode({'x': x_param})}"


def _local_name(tag: str) -> str:
    return tag.rsplit("}", 1)[-1]


def parse_codebase(xml_text: str, app_id: str = CRLSET_COMPONENT_ID) -> str:
    """
    Extract the CRX download URL for `app_id` from a gupdate response.

    Works with and without the update2 XML namespace, and with one or many
    <app> elements.

    Raises:
        UpdateCheckError: malformed XML, app missing, or no codebase.
    """
    try:
        root = ET.fromstring(xml_text)
    except ET.ParseError as e:
        raise UpdateCheckError("Could not find CRLSet download URL in Omaha response.") from e

    for app in root.iter():
        if _local_name(app.tag) != "app" or app.get("appid") != app_id:
            continue
        for child in app:
            if _local_name(child.tag) == "updatecheck" and child.get("codebase"):
                return child.get("codebase")  # type: ignore[return-value]
    raise UpdateCheckError("Could not find CRLSet download URL in Omaha response.")


class HttpCrxFetcher:
    """
    Fetch the latest CRLSet CRX via Omaha.

    Implements the ContainerFetcher port.
    Uses tenacity retry on transient network errors only.
    """

    def __init__(
        self,
        omaha_url: str = OMAHA_BASE_URL,
        app_id: str = CRLSET_COMPONENT_ID,
        version: str = "",
        update_check: bool = True,
        timeout: int = 60,
    ) -> None:
        self._omaha_url = omaha_url
        self._app_id = app_id
        self._version = version
        self._update_check = update_check
        self._timeout = timeout

    @property
    def update_check_url(self) -> str:
        return build_update_check_url(self._omaha_url, self._app_id, self._version, self._update_check)

    def resolve_crx_url(self) -> Result[str]:
        """Run the Omaha update check and return the advertised CRX URL."""
        return _attempt_transport(self._do_update_check)

    def fetch_full_container(self) -> Result[bytes]:
        """Download the complete CRX file."""
        return self.resolve_crx_url().flat_map(
            lambda crx_url: _attempt_transport(lambda: self._do_download(crx_url))
        )

    def fetch_partial_container(self, max_bytes: int) -> Result[bytes]:
        """
        Download at most `max_bytes` leading bytes of the CRX file.

        Sends a Range header and also stops reading on its own, so a server
        that ignores Range still costs only `max_bytes`.
        """
        return self.resolve_crx_url().flat_map(
            lambda crx_url: _attempt_transport(lambda: self._do_download_prefix(crx_url, max_bytes))
        )

    @_transient_retry
    def _do_update_check(self) -> str:
        """Omaha request with retry — exceptions mapped by Result.attempt."""
        with httpx.Client(timeout=self._timeout) as client:
            response = client.get(self.update_check_url)
            _raise_for_status(response, "Failed to fetch CRLSet version info")
            crx_url = parse_codebase(response.text, self._app_id)
            log.info("fetch.update_check_complete", crx_url=crx_url)
            return crx_url

    @_transient_retry
    def _do_download(self, crx_url: str) -> bytes:
        with httpx.Client(timeout=self._timeout, follow_redirects=True) as client:
            response = client.get(crx_url)
            _raise_for_status(response, f"Failed to download CRX file from {crx_url}")
            data = response.content
            log.info("fetch.download_complete", size_bytes=len(data))
            return data

    @_transient_retry
    def _do_download_prefix(self, crx_url: str, max_bytes: int) -> bytes:
        buffer = bytearray()
        with httpx.Client(timeout=self._timeout, follow_redirects=True) as client:
            headers = {"Range": f"bytes=0-{max_bytes - 1}"}
            with client.stream("GET", crx_url, headers=headers) as response:
                _raise_for_status(response, f"Failed to download CRX file from {crx_url}")
                for chunk in response.iter_bytes():
                    buffer.extend(chunk)
                    if len(buffer) >= max_bytes:
                        break
        log.info("fetch.partial_download_complete", size_bytes=min(len(buffer), max_bytes))
        return bytes(buffer[:max_bytes])


def _attempt_transport(computation: Callable[[], T]) -> Result[T]:
    """Result.attempt, with httpx errors left after retries reported as TransportError."""

    def _run() -> T:
        try:
            return computation()
        except httpx.HTTPError as e:
            raise TransportError(f"HTTP request failed: {e}") from e

    return Result.attempt(_run)


def _raise_for_status(response: httpx.Response, context: str) -> None:
    if response.is_success:
        return
    raise TransportError(
        f"{context}: {response.status_code} {response.reason_phrase}".strip(),
        status_code=response.status_code,
    )
