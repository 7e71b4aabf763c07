"""
ACME certificate client — CLI entry point.

Runs the whole sequence once: register → agree → authorize → publish the
HTTP-01 files → validate → issue → write the PEM files.

Usage:
  python main.py --domains example.com www.example.com
  python main.py --staging --identity admin@example.com --domains example.com
  python main.py --domains example.com --primary example.com --retries 10
"""
from __future__ import annotations

import argparse
import logging
import sys
from contextlib import ExitStack

import structlog

log = logging.getLogger(__name__)


def configure_logging(level: str = "INFO") -> None:
    numeric = getattr(logging, level.upper(), logging.INFO)
    structlog.configure(
        processors=[
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.dev.ConsoleRenderer(),
        ],
        wrapper_class=structlog.make_filtering_bound_logger(numeric),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(),
    )
    logging.basicConfig(
        level=numeric,
        format="%(asctime)s %(levelname)-8s %(name)s — %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )


# ── Runner ────────────────────────────────────────────────────────────────────


def run_once(
    domains: list[str],
    primary_domain: str | None = None,
    max_retries: int | None = None,
) -> int:
    """Obtain one certificate for *domains*; returns the process exit code."""
    from acmeclient.client import AcmeClient
    from acmeclient.errors import AcmeError
    from acmeclient.http_challenge import (
        StandaloneHttpChallenge,
        remove_webroot_challenge,
        write_webroot_challenge,
    )
    from config import settings
    from storage.filesystem import write_cert_files

    bound = structlog.get_logger().bind(domains=domains)

    if not settings.ACME_IDENTITY:
        log.error("No account identity configured. Set ACME_IDENTITY in .env or pass --identity.")
        return 1

    try:
        with AcmeClient.from_settings(settings) as client:
            account = client.agree(client.get_account())
            bound.info("account_ready", account=account.account_reference)

            authorizations = client.authorize(domains)
            files = [a.get_file() for a in authorizations]
            if any(f is None for f in files):
                log.error("The authority offered no http-01 challenge for at least one domain")
                return 1

            with ExitStack() as cleanup:
                if settings.HTTP_CHALLENGE_MODE == "webroot":
                    for f in files:
                        write_webroot_challenge(settings.WEBROOT_PATH, f)
                        cleanup.callback(remove_webroot_challenge, settings.WEBROOT_PATH, f.filename)
                        log.info("Wrote webroot challenge file %s", f.filename)
                else:
                    server = cleanup.enter_context(StandaloneHttpChallenge(port=settings.HTTP_CHALLENGE_PORT))
                    server.start(files)
                    log.info("Standalone HTTP server started on port %d", settings.HTTP_CHALLENGE_PORT)

                if not client.validate(authorizations, max_retries=max_retries or settings.MAX_RETRIES):
                    bound.error("validation_failed")
                    return 1

            certificate = client.get_certificate(domains, primary_domain)
    except AcmeError as exc:
        log.error("ACME run failed: %s", exc)
        return 1

    target = primary_domain or domains[0]
    metadata = write_cert_files(settings.CERT_STORE_PATH, target, certificate)
    bound.info("certificate_written", path=settings.CERT_STORE_PATH, expires_at=metadata["expires_at"])
    return 0


# ── CLI ───────────────────────────────────────────────────────────────────────


def main() -> None:
    parser = argparse.ArgumentParser(
        description="ACME v1 certificate client",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  python main.py --domains example.com www.example.com
  python main.py --staging --identity admin@example.com --domains example.com
        """,
    )
    parser.add_argument(
        "--domains",
        nargs="+",
        metavar="DOMAIN",
        help="Domains to certify (default: MANAGED_DOMAINS)",
    )
    parser.add_argument(
        "--primary",
        metavar="DOMAIN",
        help="Common name of the certificate (default: first domain)",
    )
    parser.add_argument(
        "--identity",
        metavar="EMAIL",
        help="Account contact address (default: ACME_IDENTITY)",
    )
    parser.add_argument(
        "--staging",
        action="store_true",
        help="Use the staging directory instead of the live one",
    )
    parser.add_argument(
        "--retries",
        type=int,
        metavar="N",
        help="Validation rounds per domain (default: MAX_RETRIES)",
    )

    args = parser.parse_args()

    from config import settings

    if args.identity:
        settings.ACME_IDENTITY = args.identity
    if args.staging:
        settings.ACME_MODE = "staging"

    configure_logging(settings.LOG_LEVEL)

    domains = args.domains or settings.MANAGED_DOMAINS
    if not domains:
        log.error("No domains configured. Set MANAGED_DOMAINS in .env or pass --domains.")
        sys.exit(1)
    if args.retries is not None and args.retries < 1:
        parser.error("--retries must be at least 1")

    sys.exit(run_once(domains, primary_domain=args.primary, max_retries=args.retries))


if __name__ == "__main__":
    main()
