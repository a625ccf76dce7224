"""
Logging setup built on loguru.
"""

import sys
from pathlib import Path
from typing import Optional, Union

from loguru import logger

LOG_FORMAT = (
    "<green>{time:YYYY-MM-DD HH:mm:ss.SSS}</green> | <level>{level: <8}</level> | "
    "<cyan>{extra[component]}</cyan> | {message}"
)


def configure_logging(level: str = "INFO", log_file: Optional[Union[str, Path]] = None) -> None:
    """
    Replace loguru's default sink with the pipeline's sinks.

    Args:
        level: Minimum level for every sink.
        log_file: Optional file that receives the same records, rotated at 10 MB.
    """
    logger.remove()
    logger.configure(extra={"component": "pipeline"})
    logger.add(sys.stderr, level=level, format=LOG_FORMAT)
    if log_file:
        logger.add(str(log_file), level=level, format=LOG_FORMAT, rotation="10 MB", retention=5)
    logger.debug(f"Logging configured (level={level}, file={log_file})")
