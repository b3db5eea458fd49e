"""Logfire cloud observability initialization."""

import logging

import logfire

from smartoffice import __version__
from smartoffice.config import Settings

logger = logging.getLogger(__name__)


def initialize_logfire(settings: Settings) -> bool:
    """
    Initialize Logfire and bridge Python logging to it.

    Must be called ONCE at application startup, before any job runs.

    Args:
        settings: Application settings containing the Logfire token

    Returns:
        True when Logfire was configured, False when it is disabled or failed
        to start. Observability is optional and never stops the process.
    """
    if not settings.logfire_token:
        logger.warning("Logfire token not set - observability disabled")
        return False

    try:
        logfire.configure(
            token=settings.logfire_token,
            service_name="smartoffice-sync",
            service_version=__version__,
            environment=settings.environment,
        )

        # Bridge Python logging to Logfire
        logging.getLogger().addHandler(logfire.LogfireLoggingHandler())

        try:
            logfire.instrument_system_metrics()
        except Exception as metrics_error:
            logger.debug(f"System metrics instrumentation skipped: {metrics_error}")

        logger.info("✓ Logfire cloud tracking initialized")
        return True

    except Exception as e:
        logger.warning(f"Failed to initialize Logfire: {e}")
        return False
