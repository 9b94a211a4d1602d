"""
Application entry point — wires adapters into a FreshnessController and
runs a one-shot revocation check from the command line.

Composition root: the only place (with asgi) where concrete adapters are
instantiated. Everything else depends on the port Protocols.

    crlset                                   # load and summarise
    crlset --spki <hex> --serial <hex>       # also check one certificate
    crlset --no-verify --policy always
    crlset --watch                           # refresh on the configured cron
"""

from __future__ import annotations

import argparse
import logging
import sys
from collections.abc import Sequence
from functools import partial

import structlog

from crlset import __version__
from crlset.adapters.archive import ZipArchiveReader
from crlset.adapters.http_client import HttpCrxFetcher
from crlset.adapters.proto_decoder import ProtobufHeaderDecoder
from crlset.config import AppSettings, load_settings
from crlset.domain.models import CRLSet, UpdatePolicy
from crlset.freshness import FreshnessController
from crlset.scheduler import create_scheduler


def configure_structlog(log_level: str = "INFO") -> None:
    """
    Configure structlog for key/value console logging.

    Unknown level names fall back to INFO.
    """
    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.processors.add_log_level,
            structlog.processors.StackInfoRenderer(),
            structlog.dev.set_exc_info,
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.dev.ConsoleRenderer(),
        ],
        wrapper_class=structlog.make_filtering_bound_logger(
            getattr(logging, log_level.upper(), logging.INFO)
        ),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(file=sys.stderr),
        cache_logger_on_first_use=True,
    )


def create_controller(settings: AppSettings) -> FreshnessController:
    """Build the concrete adapters from settings and hand them to a controller."""
    fetcher = HttpCrxFetcher(
        omaha_url=settings.omaha.url,
        app_id=settings.omaha.app_id,
        version=settings.omaha.version,
        update_check=settings.omaha.update_check,
        timeout=settings.http_timeout_seconds,
    )
    return FreshnessController(
        fetcher=fetcher,
        decoder=ProtobufHeaderDecoder(),
        archive=ZipArchiveReader(),
        component_id=settings.omaha.app_id,
        partial_fetch_bytes=settings.refresh.partial_fetch_bytes,
    )


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="crlset",
        description="Load the latest Chrome CRLSet and check a certificate against it.",
    )
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    parser.add_argument(
        "--no-verify",
        action="store_true",
        help="skip CRX signature verification (not recommended)",
    )
    parser.add_argument(
        "--policy",
        choices=[p.value for p in UpdatePolicy],
        default=None,
        help="update policy (default: from settings)",
    )
    parser.add_argument("--spki", help="issuer SPKI SHA-256, hex")
    parser.add_argument("--serial", help="certificate serial number, hex")
    parser.add_argument(
        "--watch",
        action="store_true",
        help="keep running and refresh on the configured cron schedule",
    )
    return parser


def _summary(crl_set: CRLSet) -> str:
    return (
        f"Loaded CRLSet {crl_set.sequence} "
        f"({crl_set.blocked_spki_count} blocked SPKIs, {crl_set.revocation_count} issuers with revocations)."
    )


def _watch(
    controller: FreshnessController,
    settings: AppSettings,
    verify: bool,
    policy: UpdatePolicy,
) -> int:
    """Run the refresh scheduler in the foreground until a signal stops it."""
    log = structlog.get_logger()
    scheduler = create_scheduler(
        refresh_fn=partial(controller.load_latest, verify=verify, policy=policy),
        cron=settings.refresh.cron,
        run_on_startup=settings.run_on_startup,
        blocking=True,
    )
    log.info("app.scheduler_starting", cron=settings.refresh.cron)
    try:
        scheduler.start()
    except KeyboardInterrupt:
        log.info("app.shutdown", reason="signal received")
    return 0


def main(argv: Sequence[str] | None = None) -> int:
    """Load the latest CRLSet, print a summary and optionally one check result."""
    args = _build_parser().parse_args(argv)
    if (args.spki is None) != (args.serial is None):
        print("error: --spki and --serial must be given together", file=sys.stderr)  # noqa: T201
        return 2

    loaded = load_settings()
    if loaded.is_failure():
        failure = loaded.error()
        print(f"FATAL: {failure.message}: {failure.exception}", file=sys.stderr)  # noqa: T201
        return 1
    settings = loaded.value()

    configure_structlog(settings.log_level)
    log = structlog.get_logger()

    verify = settings.refresh.verify_signature and not args.no_verify
    policy = UpdatePolicy(args.policy) if args.policy else settings.refresh.policy
    log.info("app.starting", version=__version__, verify_signature=verify, policy=policy.value)

    controller = create_controller(settings)
    if args.watch:
        return _watch(controller, settings, verify, policy)

    result = controller.load_latest(verify=verify, policy=policy)
    if result.is_failure():
        failure = result.error()
        log.error("app.load_failed", failure=str(failure))
        print(f"Error while loading the CRLSet: {failure}", file=sys.stderr)  # noqa: T201
        return 1

    crl_set = result.value()
    print(_summary(crl_set))  # noqa: T201
    if args.spki is not None:
        status = crl_set.check(args.spki, args.serial)
        print(f"Certificate revocation status: {status.name}")  # noqa: T201
    return 0


if __name__ == "__main__":
    sys.exit(main())
