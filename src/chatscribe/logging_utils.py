"""Logging helpers."""

from __future__ import annotations

import logging
import os
from logging.handlers import RotatingFileHandler
from typing import Optional

from rich.console import Console
from rich.logging import RichHandler


def setup_logging(
    log_dir: str = "logs",
    level: int = logging.INFO,
    console: bool = True,
    rich_console: Optional[Console] = None,
) -> tuple[logging.Logger, str]:
    os.makedirs(log_dir, exist_ok=True)
    log_path = os.path.join(log_dir, "chatscribe.log")

    logger = logging.getLogger("chatscribe")
    logger.setLevel(level)

    if not logger.handlers:
        handler = RotatingFileHandler(log_path, maxBytes=2_000_000, backupCount=3)
        fmt = logging.Formatter(
            "%(asctime)s %(levelname)s %(name)s %(message)s",
            datefmt="%Y-%m-%d %H:%M:%S",
        )
        handler.setFormatter(fmt)
        logger.addHandler(handler)

        if console:
            console_handler = RichHandler(
                console=rich_console, show_path=False, rich_tracebacks=True
            )
            console_handler.setFormatter(logging.Formatter("%(message)s"))
            logger.addHandler(console_handler)

    return logger, log_path
