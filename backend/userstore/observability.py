"""Logfire cloud observability initialization and instrumentation."""

import logging

import logfire

from userstore import __version__
from userstore.config import Settings

logger = logging.getLogger(__name__)


def initialize_logfire(settings: Settings) -> None:
    """
    Initialize Logfire and instrument the MongoDB driver.

    Call once at startup, before the first repository is created, so that
    PyMongo command monitoring is registered for every client.

    Instruments:
    - PyMongo commands (Motor runs on top of PyMongo)
    - Python logging (bridges to Logfire)
    """
    if not settings.logfire_token:
        logger.warning("Logfire token not set - observability disabled")
        return

    try:
        logfire.configure(
            token=settings.logfire_token,
            service_name="userstore",
            service_version=__version__,
            environment=settings.environment,
        )

        logfire.instrument_pymongo()

        root_logger = logging.getLogger()
        root_logger.addHandler(logfire.LogfireLoggingHandler())

        logger.info("Logfire tracking initialized")

    except Exception as e:
        # Observability is optional; keep running without it
        logger.warning(f"Failed to initialize Logfire: {e}")
