"""Logging setup for Curio processes."""

import sys

from loguru import logger


def configure_logging(level: str = "INFO", json_logs: bool = False) -> None:
    """
    Replace loguru's default sink with a single stderr sink.

    Args:
        level: Minimum level to emit
        json_logs: Emit structured JSON records instead of human-readable lines
    """
    logger.remove()
    if json_logs:
        logger.add(sys.stderr, level=level.upper(), serialize=True)
    else:
        logger.add(
            sys.stderr,
            level=level.upper(),
            format=(
                "<green>{time:YYYY-MM-DD HH:mm:ss}</green> | "
                "<level>{level: <8}</level> | "
                "<cyan>{name}</cyan>:<cyan>{function}</cyan> - <level>{message}</level>"
            ),
        )
    logger.debug(f"Logging configured at {level.upper()} (json={json_logs})")
