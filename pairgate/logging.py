"""Log sink setup for pairgate."""

import sys
from pathlib import Path

from loguru import logger

from pairgate.config.schema import LoggingConfig


def error_log_path(path: Path) -> Path:
    """Path of the error-only log next to the combined log."""
    return path.with_name(f"{path.stem}.error{path.suffix or '.log'}")


def setup_logging(config: LoggingConfig, verbose: bool = False) -> None:
    """
    Configure loguru sinks.

    Always logs to stderr. When ``config.file`` is set, also writes a
    combined log there plus an error-only log beside it.
    """
    level = "DEBUG" if verbose else config.level.upper()

    logger.remove()
    logger.add(sys.stderr, level=level)

    if config.file:
        path = Path(config.file).expanduser()
        path.parent.mkdir(parents=True, exist_ok=True)
        logger.add(
            path,
            level=level,
            rotation="10 MB",
            retention=5,
            serialize=config.serialize,
            enqueue=True,
        )
        logger.add(
            error_log_path(path),
            level="ERROR",
            rotation="10 MB",
            retention=5,
            serialize=config.serialize,
            enqueue=True,
        )
