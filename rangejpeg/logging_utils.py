"""Logging setup shared by the CLI and the web server."""

import logging
from pathlib import Path
from typing import Optional, Union

DATE_FORMAT = "%Y-%m-%d %H:%M:%S"
LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


def configure_logging(
    level: Union[int, str] = logging.INFO,
    log_file: Optional[Path] = None,
) -> None:
    """Install a stream handler (and an optional file handler) on the root logger."""
    handlers = [logging.StreamHandler()]
    if log_file:
        handlers.append(logging.FileHandler(log_file))
    logging.basicConfig(
        level=level,
        format=LOG_FORMAT,
        datefmt=DATE_FORMAT,
        handlers=handlers,
        force=True,
    )
    # PIL logs every plugin import at DEBUG
    logging.getLogger("PIL").setLevel(logging.WARNING)
