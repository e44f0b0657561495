"""Shared logging configuration for the screening tools.

Call ``configure_logging()`` once at a CLI entry point. Library modules only
create module-level loggers and never configure handlers themselves. The
function is idempotent: if the root logger already has handlers it does nothing.
"""

import logging
import os
from typing import Optional


LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
DEFAULT_LOG_DIR = "logs"
DEFAULT_LOG_FILE = "screening.log"


def configure_logging(level: int = logging.INFO, log_dir: Optional[str] = DEFAULT_LOG_DIR) -> None:
    """Configure root logger with console + optional file handler.

    Args:
        level: Root log level
        log_dir: Directory for screening.log; None disables the file handler
    """
    root = logging.getLogger()
    if root.handlers:
        return

    formatter = logging.Formatter(LOG_FORMAT)

    console = logging.StreamHandler()
    console.setFormatter(formatter)
    root.addHandler(console)

    # Identity-conflict vetoes are logged at INFO; the file keeps them for audit
    if log_dir:
        try:
            os.makedirs(log_dir, exist_ok=True)
            fh = logging.FileHandler(os.path.join(log_dir, DEFAULT_LOG_FILE), mode="a", encoding="utf-8")
            fh.setFormatter(formatter)
            root.addHandler(fh)
        except OSError as e:
            logging.getLogger(__name__).warning("File logging disabled (%s): %s", log_dir, e)

    root.setLevel(level)
