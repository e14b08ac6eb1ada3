"""
Logging configuration with uvicorn-compatible colored output
"""

import logging
import sys
from typing import Optional

LOG_FORMAT = "%(levelname)s:     %(name)s - %(message)s"


class ColoredFormatter(logging.Formatter):
    """Uvicorn-style formatter, colouring the level name when writing to a terminal"""

    COLORS = {
        "DEBUG": "\033[36m",      # cyan
        "INFO": "\033[32m",       # green
        "WARNING": "\033[33m",    # yellow
        "ERROR": "\033[31m",      # red
        "CRITICAL": "\033[35m",   # magenta
    }
    RESET = "\033[0m"

    def __init__(self, fmt: str = LOG_FORMAT, use_colors: bool = True):
        super().__init__(fmt)
        self.use_colors = use_colors

    def format(self, record):
        if not self.use_colors or record.levelname not in self.COLORS:
            return super().format(record)
        # Colour a copy so other handlers keep the plain level name
        colored = logging.makeLogRecord(record.__dict__)
        colored.levelname = f"{self.COLORS[record.levelname]}{record.levelname}{self.RESET}"
        return super().format(colored)


def setup_logging(level: str = "info", use_colors: Optional[bool] = None) -> logging.Logger:
    """
    Route all logging to stderr in uvicorn style.

    Args:
        level: root level name (debug, info, warning, error)
        use_colors: force colours on or off; by default only on a TTY
    """
    if use_colors is None:
        use_colors = sys.stderr.isatty()
    handler = logging.StreamHandler()
    handler.setFormatter(ColoredFormatter(use_colors=use_colors))
    logging.basicConfig(level=level.upper(), handlers=[handler], force=True)
    # httpx logs every request at INFO
    logging.getLogger("httpx").setLevel(logging.WARNING)
    return logging.getLogger("prism")
