"""
Scheduler — periodic CRLSet refresh.

Infrastructure layer — APScheduler (3.x) driven by a 5-field cron
expression. Each run calls the refresh function (normally a bound
FreshnessController.load_latest) inside a LoggingExecutionContext.

Blocking mode (CLI --watch) installs SIGINT/SIGTERM handlers; background
mode (asgi) leaves signal handling to the server.
"""

from __future__ import annotations

import signal
import sys
from collections.abc import Callable

import structlog
from apscheduler.schedulers.background import BackgroundScheduler
from apscheduler.schedulers.base import BaseScheduler
from apscheduler.schedulers.blocking import BlockingScheduler
from apscheduler.triggers.cron import CronTrigger

from crlset.domain.models import CRLSet
from crlset.railway import LoggingExecutionContext
from crlset.railway.result import Result

log = structlog.get_logger()

JOB_ID = "crlset_refresh"


def create_scheduler(
    refresh_fn: Callable[[], Result[CRLSet]],
    cron: str = "0 */6 * * *",
    run_on_startup: bool = True,
    blocking: bool = True,
) -> BaseScheduler:
    """
    Create a scheduler that runs `refresh_fn` on a cron schedule.

    Args:
        refresh_fn: zero-argument callable returning Result[CRLSet].
        cron: minute hour dom month dow.
        run_on_startup: run once immediately, before the first trigger.
        blocking: BlockingScheduler (CLI) or BackgroundScheduler (asgi).

    Returns:
        A configured, not yet started scheduler.
    """
    scheduler: BaseScheduler = BlockingScheduler() if blocking else BackgroundScheduler()
    ctx = LoggingExecutionContext(operation="CrlSetRefresh")

    def _job() -> None:
        result = ctx.execute(refresh_fn)
        if result.is_success():
            crl_set = result.value()
            log.info("scheduler.job_completed", sequence=crl_set.sequence, not_after=crl_set.not_after)
        else:
            log.error("scheduler.job_failed", failure=str(result.error()))

    minute, hour, dom, month, dow = cron.split()
    scheduler.add_job(
        _job,
        trigger=CronTrigger(
            minute=minute,
            hour=hour,
            day=dom,
            month=month,
            day_of_week=dow,
        ),
        id=JOB_ID,
        name="CRLSet refresh",
        replace_existing=True,
    )

    if run_on_startup:
        log.info("scheduler.startup_run")
        _job()

    if blocking:
        _register_shutdown_signals(scheduler)

    return scheduler


def _register_shutdown_signals(scheduler: BaseScheduler) -> None:
    """Register SIGINT and SIGTERM handlers for graceful shutdown."""

    def _shutdown(signum: int, frame: object) -> None:
        log.info("scheduler.shutdown_requested", signal=signal.Signals(signum).name)
        scheduler.shutdown(wait=False)
        sys.exit(0)

    signal.signal(signal.SIGINT, _shutdown)
    signal.signal(signal.SIGTERM, _shutdown)
