import logging
import sys

from loguru import logger

from vapi_calendar.core.config import settings

CONSOLE_FORMAT = (
    "<green>{time:YYYY-MM-DD HH:mm:ss}</green> | <level>{level: <8}</level> | "
    "<cyan>{name}</cyan>:<cyan>{function}</cyan>:<cyan>{line}</cyan> - <level>{message}</level>"
)
FILE_FORMAT = "{time:YYYY-MM-DD HH:mm:ss} | {level: <8} | {name}:{function}:{line} - {message}"

QUIET_LOGGERS = ("uvicorn.access", "httpx", "hpack", "urllib3")


class InterceptHandler(logging.Handler):
    """Forwards stdlib records (uvicorn, supabase, requests) into loguru."""

    def emit(self, record: logging.LogRecord) -> None:
        try:
            level = logger.level(record.levelname).name
        except ValueError:
            level = record.levelno

        frame, depth = logging.currentframe(), 2
        while frame.f_code.co_filename == logging.__file__:
            frame = frame.f_back
            depth += 1

        logger.opt(depth=depth, exception=record.exc_info).log(level, record.getMessage())


def setup_logging(level: str = None, error_log_file: str = None) -> None:
    """
    Console sink at LOG_LEVEL plus a rotated ERROR file at ERROR_LOG_FILE.
    An empty ERROR_LOG_FILE turns the file sink off.
    """
    level = level or settings.LOG_LEVEL
    if error_log_file is None:
        error_log_file = settings.ERROR_LOG_FILE

    logger.remove()
    logger.add(sys.stdout, level=level, format=CONSOLE_FORMAT)
    if error_log_file:
        logger.add(
            error_log_file,
            level="ERROR",
            rotation="10 MB",
            retention="1 month",
            compression="zip",
            format=FILE_FORMAT,
        )

    logging.basicConfig(handlers=[InterceptHandler()], level=0, force=True)
    for name in QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)


__all__ = ["logger", "setup_logging"]
