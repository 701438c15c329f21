"""Logging configuration for neo-cache.

The library logs through loguru's shared logger. Applications that want the
NeoMultiTenant format call setup_logging() once at startup; importing the
package does not touch existing sinks.
"""

import os
import sys
from typing import Optional

from loguru import logger

DEFAULT_LOG_FORMAT = (
    "<green>{time:YYYY-MM-DD HH:mm:ss}</green> | <level>{level: <8}</level> | "
    "<cyan>{name}</cyan>:<cyan>{function}</cyan>:<cyan>{line}</cyan> - <level>{message}</level>"
)


def setup_logging(
    level: Optional[str] = None,
    log_format: Optional[str] = None,
    log_file: Optional[str] = None,
    rotation: str = "10 MB",
    retention: str = "7 days",
) -> None:
    """Replace loguru's default sink with the NeoMultiTenant format.

    Args:
        level: Minimum level, defaults to LOG_LEVEL or INFO
        log_format: loguru format string, defaults to DEFAULT_LOG_FORMAT
        log_file: Optional file path for an additional rotating sink
        rotation: Rotation policy for the file sink
        retention: Retention policy for the file sink
    """
    level = (level or os.getenv("LOG_LEVEL", "INFO")).upper()
    log_format = log_format or DEFAULT_LOG_FORMAT

    logger.remove()
    logger.add(sys.stderr, level=level, format=log_format)

    if log_file:
        logger.add(
            log_file,
            level=level,
            format=log_format,
            rotation=rotation,
            retention=retention,
            enqueue=True,
        )

    logger.debug(f"Logging configured (level={level})")
