"""Logging configuration."""

import logging
import os
import sys

from pydantic import BaseModel


class LogConfig(BaseModel):
    """Logging configuration."""

    level: str = "INFO"
    format: str = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
    date_format: str = "%Y-%m-%d %H:%M:%S"


def setup_logging(config: LogConfig | None = None) -> None:
    """Set up logging configuration for the agent service."""
    if config is None:
        config = LogConfig(level=os.getenv("LOG_LEVEL", "INFO"))

    logging.basicConfig(
        level=getattr(logging, config.level.upper()),
        format=config.format,
        datefmt=config.date_format,
        stream=sys.stdout,
        force=True,
    )

    # Provider SDKs and the HTTP stack log every request at INFO
    logging.getLogger("anthropic").setLevel(logging.WARNING)
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("uvicorn.access").setLevel(logging.WARNING)


def get_logger(name: str, level: str | None = None) -> logging.Logger:
    """Get a logger for a specific module.

    Args:
        name: Module name (typically __name__)
        level: Optional explicit level, otherwise LOG_LEVEL or INFO

    Returns:
        Configured logger instance
    """
    logger = logging.getLogger(name)

    log_level = level if level else os.getenv("LOG_LEVEL", "INFO")
    logger.setLevel(log_level.upper())

    return logger


class SessionLoggerAdapter(logging.LoggerAdapter):
    """Prefixes every record with the session it belongs to.

    The session id is also attached to the record as `session_id` so
    handlers and filters can route on it.
    """

    def process(self, msg, kwargs):
        session_id = self.extra["session_id"]
        kwargs["extra"] = {**kwargs.get("extra", {}), "session_id": session_id}
        return f"[session {session_id}] {msg}", kwargs


def get_session_logger(logger: logging.Logger, session_id: str) -> SessionLoggerAdapter:
    """Wrap a module logger for the duration of one session's turn."""
    return SessionLoggerAdapter(logger, {"session_id": session_id})
