import logging
import os
import sys

from loguru import logger

from rentscout.config import LOG_DIR


class InterceptHandler(logging.Handler):
    """Intercept standard logging and redirect to loguru."""

    def emit(self, record: logging.LogRecord) -> None:
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


def env_log_level(default: str = "INFO") -> str:
    """Return log level string from LOG_LEVEL env (fallback to ``default``)."""
    return os.getenv("LOG_LEVEL", default).upper()


def configure_logger(log_file: str = "rentscout.log", level: str | None = None):
    """
    Configure loguru logger for the entire project.
    """
    level = level or env_log_level()
    LOG_DIR.mkdir(parents=True, exist_ok=True)

    # Remove default handler to avoid duplicate logs
    logger.remove()

    logger.add(
        sys.stderr,
        format="<green>{time:YYYY-MM-DD HH:mm:ss}</green> | <level>{level: <8}</level> | <cyan>{name}</cyan>:<cyan>{function}</cyan>:<cyan>{line}</cyan> - <level>{message}</level>",
        level=level,
    )

    logger.add(
        LOG_DIR / log_file,
        rotation="10 MB",
        retention="10 days",
        level=level,
        format="{time:YYYY-MM-DD HH:mm:ss} | {level: <8} | {name}:{function}:{line} | {extra} - {message}",
        backtrace=True,
        diagnose=True,
    )

    if os.getenv("LOG_JSON", "0").lower() in {"1", "true", "yes", "on"}:
        logger.add(
            LOG_DIR / "rentscout_{time}.jsonl",
            level="DEBUG",
            serialize=True,
            backtrace=True,
            diagnose=True,
        )

    # Route Playwright / uvicorn / urllib3 stdlib logging through loguru
    logging.basicConfig(handlers=[InterceptHandler()], level=logging.INFO, force=True)
    for logger_name in ["playwright", "uvicorn", "uvicorn.error", "uvicorn.access", "asyncio", "urllib3"]:
        logging.getLogger(logger_name).handlers = [InterceptHandler()]
        logging.getLogger(logger_name).propagate = False


_configured = False


def setup_default_logging():
    global _configured
    if not _configured:
        configure_logger()
        _configured = True
