"""
Entry point — composition root for the certlib-bootstrap command.

This is the ONLY place where configuration is read. Everything below it
receives explicit arguments.

Responsibilities:
  1. Load and validate configuration from environment
  2. Configure structlog
  3. Issue, verify and write the development PKI
  4. Check that any configured TLS file sets load into a usable SSLContext
"""

from __future__ import annotations

import logging
import ssl
import sys

import structlog
from railway.result import Result

from certlib import __version__
from certlib.adapters.tls_config import load_client_tls_config, load_server_tls_config
from certlib.bootstrap import run_bootstrap
from certlib.config import AppSettings


def configure_structlog(log_level: str = "INFO") -> None:
    """
    Configure structlog for structured logging.

    Colored, human-readable console output; unknown level names fall back
    to INFO.
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
        logger_factory=structlog.PrintLoggerFactory(),
        cache_logger_on_first_use=True,
    )


def check_tls_settings(settings: AppSettings) -> Result[list[ssl.SSLContext]]:
    """Load every configured TLS file set and build its SSLContext."""
    results: list[Result[ssl.SSLContext]] = []

    server_files = settings.server_tls_files()
    if server_files is not None:
        results.append(
            load_server_tls_config(server_files).flat_map(lambda config: config.ssl_context())
        )

    client_files = settings.client_tls_files()
    if client_files is not None:
        results.append(
            load_client_tls_config(client_files).flat_map(lambda config: config.ssl_context())
        )

    return Result.all_of(results)


def main() -> None:
    """Issue the development PKI and validate the configured TLS material."""
    try:
        settings = AppSettings()
    except Exception as e:
        print(f"FATAL: Configuration error — {e}", file=sys.stderr)  # noqa: T201
        sys.exit(1)

    configure_structlog(settings.log_level)
    log = structlog.get_logger()

    log.info(
        "app.starting",
        version=__version__,
        log_level=settings.log_level,
        output_dir=str(settings.bootstrap.output_dir),
    )

    bootstrap = run_bootstrap(settings.bootstrap)
    if bootstrap.is_failure():
        log.error("app.fatal_error", stage="bootstrap", error=bootstrap.error().message)
        sys.exit(1)

    tls = check_tls_settings(settings)
    if tls.is_failure():
        log.error("app.fatal_error", stage="tls", error=tls.error().message)
        sys.exit(1)

    log.info("app.done", files=len(bootstrap.value()), tls_contexts=len(tls.value()))


if __name__ == "__main__":
    main()
