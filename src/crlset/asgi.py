"""
FastAPI + Uvicorn ASGI application — CRLSet lookups as a web service.

One FreshnessController per process holds the cached CRLSet; a
BackgroundScheduler refreshes it on the configured cron, and /refresh
lets an operator force a load_latest without waiting for the next run.

Entry point: uvicorn crlset.asgi:app --host 0.0.0.0 --port 8000
"""

from __future__ import annotations

import asyncio
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from functools import partial
from typing import Any

import structlog
from apscheduler.schedulers.base import BaseScheduler
from fastapi import FastAPI, Query
from fastapi.responses import JSONResponse

from crlset import __version__
from crlset.config import load_settings
from crlset.domain.models import UpdatePolicy
from crlset.freshness import FreshnessController
from crlset.main import configure_structlog, create_controller
from crlset.scheduler import create_scheduler

# ─────────────────────── Global State ───────────────────────

_controller: FreshnessController | None = None
_scheduler: BaseScheduler | None = None
_error_message: str | None = None
_verify: bool = True
_policy: UpdatePolicy = UpdatePolicy.ON_EXPIRY
log = structlog.get_logger()


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """
    Startup: build the controller, run the first refresh, start the scheduler.
    Shutdown: stop the scheduler.
    """
    global _controller, _scheduler, _error_message, _verify, _policy

    log.info("asgi.startup")

    loaded = load_settings()
    if loaded.is_failure():
        failure = loaded.error()
        _error_message = f"{failure.message}: {failure.exception}"
        log.error("asgi.startup_error", error=_error_message)
        raise RuntimeError(_error_message) from failure.exception
    settings = loaded.value()

    configure_structlog(settings.log_level)
    _verify = settings.refresh.verify_signature
    _policy = settings.refresh.policy
    log.info(
        "asgi.startup_config",
        version=__version__,
        cron=settings.refresh.cron,
        policy=_policy.value,
        verify_signature=_verify,
    )

    _controller = create_controller(settings)
    # The startup run performs network I/O; keep it off the event loop.
    _scheduler = await asyncio.to_thread(
        create_scheduler,
        partial(_controller.load_latest, verify=_verify, policy=_policy),
        settings.refresh.cron,
        settings.run_on_startup,
        False,
    )
    _scheduler.start()
    log.info("asgi.startup_complete")

    yield

    log.info("asgi.shutdown")
    _scheduler.shutdown(wait=True)
    log.info("asgi.shutdown_complete")


# ─────────────────────── FastAPI Application ───────────────────────

app = FastAPI(
    title="crlset",
    description="Chrome CRLSet revocation lookups",
    version=__version__,
    lifespan=lifespan,
)


@app.get("/health")
async def health() -> JSONResponse:
    """Liveness: 503 after a startup error or when the scheduler stopped."""
    if _error_message:
        return JSONResponse(status_code=503, content={"status": "unhealthy", "error": _error_message})
    if _scheduler is None or not _scheduler.running:
        return JSONResponse(
            status_code=503,
            content={"status": "unhealthy", "reason": "scheduler not running"},
        )
    return JSONResponse(status_code=200, content={"status": "healthy"})


@app.get("/info")
async def info() -> dict[str, Any]:
    """Application metadata plus a summary of the cached CRLSet, if any."""
    crl_set = _controller.cached if _controller is not None else None
    body: dict[str, Any] = {
        "name": "crlset",
        "version": __version__,
        "policy": _policy.value,
        "verify_signature": _verify,
        "loaded": crl_set is not None,
    }
    if crl_set is not None:
        body.update(
            sequence=crl_set.sequence,
            not_after=crl_set.not_after,
            blocked_spki_count=crl_set.blocked_spki_count,
            revocation_count=crl_set.revocation_count,
        )
    return body


@app.get("/check")
async def check(
    spki: str = Query(..., description="issuer SPKI SHA-256, hex"),
    serial: str = Query(..., description="certificate serial number, hex"),
) -> JSONResponse:
    """
    Revocation status of one certificate against the cached CRLSet.

    Answers from the cache only; returns 503 while nothing is loaded.
    """
    crl_set = _controller.cached if _controller is not None else None
    if crl_set is None:
        return JSONResponse(
            status_code=503,
            content={"status": "unavailable", "reason": "no CRLSet loaded"},
        )
    status = crl_set.check(spki, serial)
    return JSONResponse(
        status_code=200,
        content={"status": status.name, "sequence": crl_set.sequence},
    )


@app.post("/refresh")
async def refresh() -> JSONResponse:
    """
    Run load_latest now with the configured verify flag and policy.

    Returns 200 with the sequence on success, 500 with the failure code
    and message otherwise, 503 before startup has completed.
    """
    if _controller is None:
        return JSONResponse(
            status_code=503,
            content={"status": "unavailable", "reason": "controller not initialized"},
        )

    log.info("refresh.manual_start", source="REST")
    result = await asyncio.to_thread(_controller.load_latest, _verify, _policy)

    if result.is_success():
        crl_set = result.value()
        log.info("refresh.completed", sequence=crl_set.sequence)
        return JSONResponse(
            status_code=200,
            content={"status": "success", "sequence": crl_set.sequence},
        )

    failure = result.error()
    log.error("refresh.failed", failure=str(failure))
    return JSONResponse(
        status_code=500,
        content={"status": "failed", "error_code": failure.code.value, "message": failure.message},
    )


if __name__ == "__main__":
    import uvicorn

    uvicorn.run("crlset.asgi:app", host="0.0.0.0", port=8000, reload=False, log_level="info")
