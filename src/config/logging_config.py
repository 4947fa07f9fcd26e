"""
Centralized logging configuration for the grading assistant.

Loguru is the logging backend; the API layer binds request correlation IDs
into every record.
"""

import sys
from pathlib import Path
from typing import Optional

from loguru import logger

TEXT_FORMAT = (
    "<green>{time:YYYY-MM-DD HH:mm:ss.SSS}</green> | <level>{level: <8}</level> | "
    "<cyan>{name}</cyan> | {message}"
)

NOISY_MODULES = ("httpx", "httpcore", "openai", "PIL", "multipart")


def setup_logging(
    level: str = "INFO",
    log_file: Optional[str] = None,
    serialize: bool = False,
) -> None:
    """
    Configure Loguru sinks.

    Args:
        level: Log level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        log_file: Optional path to a rotating log file
        serialize: Emit JSON records on stdout (production)
    """
    # Remove default handler
    logger.remove()

    logger.add(
        sys.stdout,
        serialize=serialize,
        format=TEXT_FORMAT,
        level=level.upper(),
        backtrace=True,
        diagnose=False,
    )

    if log_file:
        log_path = Path(log_file)
        log_path.parent.mkdir(parents=True, exist_ok=True)

        logger.add(
            log_path,
            serialize=True,
            level="DEBUG",    # Always debug to file
            rotation="10 MB",
            retention="30 days",
            compression="zip"
        )

    # Suppress noisy third-party loggers
    for module in NOISY_MODULES:
        logger.disable(module)

