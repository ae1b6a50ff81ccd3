"""Logging configuration: loguru setup and standard logging interception."""

import logging
import sys
from pathlib import Path

from loguru import logger

from livemark.config import EditorSettings, get_settings


class InterceptHandler(logging.Handler):
    """Route standard library logging to loguru."""

    def emit(self, record: logging.LogRecord) -> None:
        # Get corresponding loguru level
        try:
            level = logger.level(record.levelname).name
        except ValueError:
            level = record.levelno

        # Find caller frame (skip logging internals)
        frame, depth = sys._getframe(), 0
        while frame and (depth == 0 or frame.f_code.co_filename == logging.__file__):
            frame = frame.f_back
            depth += 1

        logger.opt(depth=depth, exception=record.exc_info).log(level, record.getMessage())


def configure_logging(settings: EditorSettings | None = None) -> None:
    """Configure loguru with stderr (+ optional JSON file), intercept standard logging.

    Level and file come from `settings` (`LIVEMARK_LOG_LEVEL`, `LIVEMARK_LOG_FILE`
    when none are passed).
    """
    settings = settings or get_settings()
    level = settings.log_level
    logger.remove()
    logger.add(
        sys.stderr,
        format="<green>{time:YYYY-MM-DD HH:mm:ss}</green> | <level>{level: <8}</level> | <cyan>{name}</cyan>:<cyan>{function}</cyan>:<cyan>{line}</cyan> - <level>{message}</level>",
        level=level,
        colorize=True,
    )

    if settings.log_file:
        log_path = Path(settings.log_file)
        log_path.parent.mkdir(parents=True, exist_ok=True)
        logger.add(
            log_path,
            format="{message}",
            level=level,
            serialize=True,
            rotation="10 MB",
            retention=10,
            compression="gz",
        )

    # Intercept standard logging → loguru
    logging.basicConfig(handlers=[InterceptHandler()], level=0, force=True)
