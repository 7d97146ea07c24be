# coding: utf-8
"""
Logging configuration with loguru for PaperDesk
"""
import sys
from pathlib import Path
from loguru import logger
import sentry_sdk

from config.config import LOG_LEVEL, LOG_DIR, ENVIRONMENT, SENTRY_DSN


def setup_logging() -> None:
    """
    Setup loguru logging configuration

    Sinks:
    - stdout (coloured)
    - daily rotated file with everything from DEBUG up
    - daily rotated file with errors only
    - Sentry (ERROR and CRITICAL) when SENTRY_DSN is configured
    """
    # Remove default handler
    logger.remove()

    logs_dir = Path(LOG_DIR)
    logs_dir.mkdir(parents=True, exist_ok=True)

    # Console output with colors and formatting
    logger.add(
        sys.stdout,
        format=(
            "<green>{time:YYYY-MM-DD HH:mm:ss}</green> | "
            "<level>{level: <8}</level> | "
            "<cyan>{name}</cyan>:<cyan>{function}</cyan>:<cyan>{line}</cyan> | "
            "<level>{message}</level>"
        ),
        level=LOG_LEVEL,
        colorize=True,
    )

    # File output - all logs
    logger.add(
        logs_dir / "paperdesk_{time:YYYY-MM-DD}.log",
        format="{time:YYYY-MM-DD HH:mm:ss} | {level: <8} | {name}:{function}:{line} | {message}",
        level="DEBUG",
        rotation="00:00",  # Rotate at midnight
        retention="7 days",
        compression="zip",
        encoding="utf-8",
    )

    # File output - errors only
    logger.add(
        logs_dir / "error_{time:YYYY-MM-DD}.log",
        format="{time:YYYY-MM-DD HH:mm:ss} | {level: <8} | {name}:{function}:{line} | {message}",
        level="ERROR",
        rotation="00:00",
        retention="30 days",  # Keep error logs longer (payment incidents)
        compression="zip",
        encoding="utf-8",
    )

    if SENTRY_DSN:
        sentry_sdk.init(
            dsn=SENTRY_DSN,
            environment=ENVIRONMENT,
            traces_sample_rate=0.1 if ENVIRONMENT == "production" else 1.0,
            send_default_pii=False,
        )
        logger.add(
            sentry_sink,
            level="ERROR",
            format="{message}",
        )

    # Suppress noisy third-party loggers
    import logging
    logging.getLogger('sqlalchemy.engine').setLevel(logging.ERROR)  # Only errors
    logging.getLogger('asyncio').setLevel(logging.WARNING)

    logger.info(f"PaperDesk initialized | Environment: {ENVIRONMENT} | Log level: {LOG_LEVEL}")


def sentry_sink(message):
    """
    Custom sink to send ERROR and CRITICAL logs to Sentry
    """
    record = message.record
    level = record["level"].name

    sentry_sdk.capture_message(
        record["message"],
        level="fatal" if level == "CRITICAL" else "error",
        extras={
            "function": record["function"],
            "file": record["file"].path,
            "line": record["line"],
        }
    )

    # If there's an exception, send it to Sentry
    if record["exception"]:
        sentry_sdk.capture_exception(record["exception"].value)
