"""Error reporting for the mail service through Sentry.

``init_sentry`` turns the SDK on when a DSN is configured, and
``get_sentry_processor`` hands structlog a processor so error-level events
(failed credential writes, rejected sends) reach Sentry once.
"""

from __future__ import annotations

import logging

import sentry_sdk
import structlog
from sentry_sdk.integrations.logging import LoggingIntegration
from structlog_sentry import SentryProcessor


def init_sentry(dsn: str, production: bool = False) -> bool:
    """Start the Sentry SDK for *dsn*; an empty DSN leaves it off.

    Args:
        dsn: Sentry DSN from ``Settings.sentry_dsn``.
        production: Report as ``production`` rather than ``development``.

    Returns:
        ``True`` if Sentry was initialized.
    """
    if not dsn:
        return False

    sentry_sdk.init(
        dsn=dsn,
        environment="production" if production else "development",
        traces_sample_rate=0.1,
        # Message bodies and addresses must never leave the process.
        send_default_pii=False,
        # structlog-sentry does the reporting; stdlib capture would duplicate it.
        integrations=[LoggingIntegration(event_level=None, level=None)],
    )
    return True


def get_sentry_processor() -> structlog.types.Processor:
    """Processor forwarding ERROR events; place it after ``add_log_level``."""
    return SentryProcessor(event_level=logging.ERROR)
