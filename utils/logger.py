"""Logging setup for the task router."""

import logging
import sys

# HTTP and SDK loggers that drown out routing output at DEBUG
NOISY_LOGGERS = ("urllib3", "httpx", "httpcore", "openai", "hpack")


def setup_logger(log_level: str = "INFO", name: str = "ai_task_router") -> logging.Logger:
    """
    Configure process-wide logging and return the named logger.

    Called once at each entry point (CLI, API server). Library modules
    use ``logging.getLogger(__name__)`` and inherit this configuration.

    Args:
        log_level: Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL).
                   Unknown values fall back to INFO.
        name: Logger name (default: ai_task_router)

    Returns:
        logging.Logger: Configured logger instance
    """
    numeric_level = getattr(logging, str(log_level).upper(), logging.INFO)
    if not isinstance(numeric_level, int):
        numeric_level = logging.INFO

    logging.basicConfig(
        level=numeric_level,
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
        datefmt='%Y-%m-%d %H:%M:%S',
        stream=sys.stdout,
        force=True,
    )

    for noisy in NOISY_LOGGERS:
        logging.getLogger(noisy).setLevel(max(numeric_level, logging.WARNING))

    logger = logging.getLogger(name)
    logger.setLevel(numeric_level)

    return logger
