"""
Core logging module.

This module configures the application logging with Loguru.
"""

import logging
import os
import sys

from loguru import logger

from shortlink.core.config import settings


class InterceptHandler(logging.Handler):
    """
    Intercept standard logging and redirect to loguru.

    Modules that log through ``logging.getLogger(__name__)`` end up in the
    same sinks as modules that use loguru directly.
    """

    def emit(self, record: logging.LogRecord) -> None:
        try:
            level = logger.level(record.levelname).name
        except ValueError:
            level = record.levelno

        # Find caller from where the logged message originated
        frame, depth = logging.currentframe(), 2
        while frame and frame.f_code.co_filename == logging.__file__:
            frame = frame.f_back
            depth += 1

        logger.opt(depth=depth, exception=record.exc_info).log(
            level, record.getMessage()
        )


def register_request_level() -> None:
    """Register the REQUEST level used by the request logging middleware."""
    try:
        logger.level("REQUEST")
    except ValueError:
        logger.level("REQUEST", no=25, color="<green>")


def setup_logging():
    """
    Configure application logging using Loguru.

    Sets up a stderr sink in debug mode and a rotating file sink,
    and routes standard library logging into loguru.
    """
    os.makedirs(settings.LOG_DIR, exist_ok=True)

    logger.remove()

    if settings.DEBUG:
        logger.add(
            sys.stderr,
            level=settings.LOG_LEVEL.upper(),
            format=settings.LOG_FORMAT,
            backtrace=True,
            diagnose=True,
        )

    log_file_path = os.path.join(settings.LOG_DIR, settings.LOG_FILENAME)
    file_options = dict(
        level=settings.LOG_LEVEL.upper(),
        rotation=settings.LOG_ROTATION,
        retention=settings.LOG_RETENTION,
        compression="gz",
        # Access log records have their own sinks
        filter=lambda record: record["extra"].get("event_type") != "link_access",
    )
    if settings.LOG_JSON:
        logger.add(log_file_path, serialize=True, **file_options)
    else:
        logger.add(log_file_path, format=settings.LOG_FORMAT, **file_options)

    register_request_level()

    logging.basicConfig(handlers=[InterceptHandler()], level=0, force=True)

    for name in logging.root.manager.loggerDict.keys():
        logging.getLogger(name).handlers = []
        logging.getLogger(name).propagate = True

    for log_name in ["uvicorn", "uvicorn.access", "uvicorn.error", "fastapi"]:
        logging.getLogger(log_name).handlers = [InterceptHandler()]

    # SQLAlchemy echoes every statement at INFO otherwise
    if not settings.DB_ECHO:
        logging.getLogger("sqlalchemy.engine").setLevel(logging.WARNING)

    return logger
