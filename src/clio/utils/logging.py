"""Logging configuration using loguru."""

import sys
from pathlib import Path

from loguru import logger

DEFAULT_LOG_DIR = Path.home() / ".clio"


def setup_logging(logging_settings, log_dir: Path = DEFAULT_LOG_DIR) -> None:
    """Configure loguru logging with settings."""
    # Remove default handler
    logger.remove()

    # Quiet mode is used when the server runs as a subprocess of another
    # process that owns stderr (e.g. an MCP host)
    if logging_settings.quiet:
        log_dir.mkdir(parents=True, exist_ok=True)
        logger.add(
            log_dir / "clio-server.log",
            level="DEBUG",
            format="{time:YYYY-MM-DD HH:mm:ss} | {level: <8} | {name}:{function}:{line} - {message}",
            rotation="10 MB",
            retention="1 week",
        )
    else:
        logger.add(
            sys.stderr,
            level=logging_settings.level,
            format="<green>{time:YYYY-MM-DD HH:mm:ss}</green> | <level>{level: <8}</level> | <cyan>{name}</cyan>:<cyan>{function}</cyan> - <level>{message}</level>",
        )
