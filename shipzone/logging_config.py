"""
logging_config.py — Loguru setup for ShipZone

One Loguru pipeline for the whole process. The datastore, SQLAlchemy and
uvicorn log through stdlib getLogger(); an intercept handler forwards
those records into Loguru so every line shares one format.

Every line carries ``extra["request_id"]``: the X-Request-ID of the HTTP
request that produced it, or "-" for startup, cache reloads and the
inquiry workers.

Environment:
- APP_ENV=production  JSON lines on stdout plus a rotated file (LOG_FILE)
- anything else       coloured single-line output on stdout
- LOG_LEVEL           minimum level, default INFO

Called by: shipzone/main.py (lifespan startup)
"""

import logging
import os
import sys

from loguru import logger

DEFAULT_LOG_FILE = "/var/log/shipzone/shipzone.log"

_DEV_FORMAT = (
    "<green>{time:HH:mm:ss}</green> | "
    "<level>{level: <8}</level> | "
    "<cyan>{name}</cyan>:<cyan>{function}</cyan>:<cyan>{line}</cyan> | "
    "{extra[request_id]} | {message}"
)

_QUIET_LOGGERS = ("httpx", "httpcore", "uvicorn.access", "sqlalchemy.engine")


def setup_logging() -> None:
    """Replace every Loguru sink and route stdlib logging through Loguru."""
    logger.remove()
    logger.configure(extra={"request_id": "-"})

    level = os.getenv("LOG_LEVEL", "INFO").upper()
    production = os.getenv("APP_ENV", "development").lower() == "production"

    if production:
        _add_json_sinks(level)
    else:
        logger.add(sys.stdout, level=level, format=_DEV_FORMAT, colorize=True)

    logging.basicConfig(handlers=[_InterceptHandler()], level=0, force=True)
    for name in _QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)

    logger.info("Logging configured", level=level, production=production)


def _add_json_sinks(level: str) -> None:
    logger.add(sys.stdout, level=level, format="{message}", serialize=True)
    logger.add(
        os.getenv("LOG_FILE", DEFAULT_LOG_FILE),
        level=level,
        rotation="50 MB",
        retention="7 days",
        compression="gz",
        serialize=True,
    )


class _InterceptHandler(logging.Handler):
    """Forward a stdlib LogRecord to Loguru at the matching level."""

    def emit(self, record: logging.LogRecord) -> None:
        try:
            level = logger.level(record.levelname).name
        except ValueError:
            level = record.levelno

        # Walk out of logging/__init__.py to the frame that called getLogger().x()
        frame, depth = logging.currentframe(), 0
        while frame and (depth == 0 or frame.f_code.co_filename == logging.__file__):
            frame = frame.f_back
            depth += 1

        logger.opt(depth=depth, exception=record.exc_info).log(level, record.getMessage())
