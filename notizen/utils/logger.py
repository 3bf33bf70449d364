"""
Logging on top of Loguru.

Modules call get_logger(__name__). The process hosting a device calls
setup_logging once with its LoggingConfig; records then carry the module name
and, for device-scoped loggers, the device id.
"""

import sys
from pathlib import Path
from typing import TYPE_CHECKING

from loguru import logger

if TYPE_CHECKING:
    from notizen.config import LoggingConfig

CONSOLE_FORMAT = (
    "<green>{time:YYYY-MM-DD HH:mm:ss}</green> | <level>{level: <8}</level> | "
    "<magenta>{extra[device]}</magenta> | <cyan>{extra[module]}</cyan>:<cyan>{line}</cyan> - "
    "<level>{message}</level>"
)
FILE_FORMAT = "{time:YYYY-MM-DD HH:mm:ss} | {level: <8} | {extra[device]} | {extra[module]}:{line} - {message}"
FILE_NAME = "notizen_{time:YYYY-MM-DD}.log"


def setup_logging(config: "LoggingConfig | None" = None) -> list[int]:
    """
    Replace every Loguru sink with the configured ones.

    Args:
        config: Level and optional rotating file sink (defaults when None)

    Returns:
        Loguru sink ids, console first
    """
    if config is None:
        from notizen.config import LoggingConfig

        config = LoggingConfig()

    logger.remove()
    logger.configure(extra={"device": "-", "module": "notizen"})

    sink_ids = [
        logger.add(sys.stderr, level=config.level, format=CONSOLE_FORMAT, colorize=True)
    ]

    if config.log_to_file:
        log_path = Path(config.log_dir)
        log_path.mkdir(parents=True, exist_ok=True)

        # One JSON object per line when serialize is on
        sink_ids.append(
            logger.add(
                log_path / FILE_NAME,
                level=config.level,
                format=FILE_FORMAT,
                rotation=config.file_rotation,
                retention=config.file_retention,
                compression=config.compression,
                serialize=config.serialize,
                enqueue=True,
            )
        )
    return sink_ids


def get_logger(name: str, device_id: str | None = None):
    """Get a logger bound to a module and, optionally, a device."""
    if device_id is None:
        return logger.bind(module=name)
    return logger.bind(module=name, device=device_id)
