"""
Logging Configuration
====================

Centralized logging setup using loguru.
Provides structured JSON logging for production and colorful logging for development.
Library modules keep using ``logging.getLogger(__name__)``; their records are
routed into loguru by ``InterceptHandler``.
"""

import logging
import sys

from loguru import logger

from app.core.config import settings


class InterceptHandler(logging.Handler):
    """
    Redirect standard logging to Loguru.
    """

    def emit(self, record: logging.LogRecord) -> None:
        # Get corresponding Loguru level if it exists
        try:
            level = logger.level(record.levelname).name
        except ValueError:
            level = record.levelno

        # Find caller from where originated the logged message
        frame, depth = logging.currentframe(), 2
        while frame and frame.f_code.co_filename == logging.__file__:
            frame = frame.f_back
            depth += 1

        logger.opt(depth=depth, exception=record.exc_info).log(level, record.getMessage())


def setup_logging() -> None:
    """
    Configure logging based on environment.
    """
    # Remove default handlers
    logging.root.handlers = []

    logger.remove()

    if settings.APP_ENV == "production":
        # JSON logs for production
        logger.add(
            sys.stderr,
            format="{message}",
            serialize=True,
            level="INFO",
            backtrace=False,
            diagnose=False,
        )
    else:
        logger.add(
            sys.stderr,
            format="<green>{time:YYYY-MM-DD HH:mm:ss}</green> | <level>{level: <8}</level> | <cyan>{name}</cyan>:<cyan>{function}</cyan>:<cyan>{line}</cyan> - <level>{message}</level>",
            level="DEBUG" if settings.DEBUG else "INFO",
            colorize=True,
        )

    # Intercept standard library logs (uvicorn, sqlalchemy, httpx, our modules)
    logging.basicConfig(handlers=[InterceptHandler()], level=0, force=True)
    for _log in ["uvicorn", "uvicorn.error", "fastapi", "sqlalchemy", "httpx"]:
        _logger = logging.getLogger(_log)
        _logger.handlers = [InterceptHandler()]
