"""Console logging configuration using loguru."""

import sys

from loguru import logger


def format_record(record: dict) -> str:
    """Format a console log record, showing the source only when debugging."""
    source = ""
    if record["level"].no < 20:
        source = "<cyan>{name}</cyan>:<cyan>{function}</cyan>:<cyan>{line}</cyan> | "
    return (
        "<green>{time:HH:mm:ss}</green> | "
        "<level>{level: <8}</level> | "
        f"{source}"
        "<level>{message}</level>\n"
        "{exception}"
    )


def setup_logging(log_level: str = "INFO", json_logs: bool = False) -> None:
    """Configure loguru for the CLI.

    Args:
        log_level: Minimum log level to output
        json_logs: If True, output logs as JSON
    """
    logger.remove()

    if json_logs:
        logger.add(sys.stderr, format="{message}", level=log_level, serialize=True)
    else:
        logger.add(
            sys.stderr,
            format=format_record,
            level=log_level.upper(),
            colorize=True,
        )


__all__ = ["logger", "setup_logging"]
