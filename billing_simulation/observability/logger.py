"""
Logging setup for the bill simulation pipeline.

Every module logs through the shared loguru `logger`; this module only
decides where those records go:

    stderr   → human-readable, at the configured level
    log_file → optional JSON lines (one serialized record per line), for
               searching runs with jq or loading them into a dataframe
"""

import sys
from pathlib import Path
from typing import Optional, Union

from loguru import logger

CONSOLE_FORMAT = (
    "<green>{time:HH:mm:ss}</green> | <level>{level: <8}</level> | "
    "<cyan>{name}</cyan> - <level>{message}</level>"
)


def configure_logging(level: str = "INFO", log_file: Optional[Union[str, Path]] = None) -> None:
    """
    Replace loguru's default sink with the pipeline's sinks.

    Example:
        >>> configure_logging("DEBUG", "output/run.jsonl")
    """
    logger.remove()
    logger.add(sys.stderr, level=level.upper(), format=CONSOLE_FORMAT)

    if log_file:
        path = Path(log_file)
        path.parent.mkdir(parents=True, exist_ok=True)
        logger.add(str(path), level="DEBUG", serialize=True, enqueue=True)
        logger.debug(f"JSON log sink | {path}")
