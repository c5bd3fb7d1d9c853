"""Logging setup shared by the loader CLI and the API server."""

import logging
import os

import logfire

LOG_FORMAT = "%(asctime)s - %(levelname)s - %(name)s - %(message)s"


def configure_logging(level: str = "INFO") -> None:
    logging.basicConfig(level=level.upper(), format=LOG_FORMAT, force=True)
    # SQL echo is controlled by the engine, not the log level
    logging.getLogger("sqlalchemy.engine").setLevel(logging.WARNING)


def configure_logfire(app=None, token: str | None = None) -> bool:
    """Send traces to Logfire when a token is available.

    Returns whether Logfire was configured.
    """
    token = token or os.getenv("LOGFIRE_TOKEN")
    if not token:
        return False
    logfire.configure(token=token)
    if app is not None:
        logfire.instrument_fastapi(app)
    return True
