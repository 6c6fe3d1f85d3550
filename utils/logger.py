"""
Logging for the grounding CLI.
Pipeline modules log through ``logging.getLogger(__name__)``; this module only
decides where those records go.
"""
import logging
import sys
from pathlib import Path
from typing import Iterable, Optional

from rich.logging import RichHandler
from rich.console import Console


console = Console(stderr=True)

PLAIN_FORMAT = "%(asctime)s %(levelname)-7s [%(name)s] %(message)s"

LOG_DIR = Path(__file__).parent.parent / "logs"

# HTTP and extraction libraries log every request at INFO
NOISY_LOGGERS = ("httpx", "httpcore", "trafilatura", "charset_normalizer")


def _console_handler(use_rich: bool) -> logging.Handler:
    if use_rich:
        handler: logging.Handler = RichHandler(
            console=console,
            show_path=False,
            markup=False,
            rich_tracebacks=True,
        )
        handler.setFormatter(logging.Formatter("%(message)s"))
        return handler

    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(logging.Formatter(PLAIN_FORMAT))
    return handler


def setup_logger(
    level: int = logging.INFO,
    log_file: Optional[str] = None,
    use_rich: bool = True,
    quiet: Iterable[str] = NOISY_LOGGERS,
) -> logging.Logger:
    """
    Route pipeline logs to the console and, optionally, to ``logs/<log_file>``.

    Third-party loggers named in ``quiet`` are held at WARNING unless ``level``
    is DEBUG. Calling this twice does not stack handlers.
    """
    root = logging.getLogger()
    root.setLevel(level)

    for name in quiet:
        logging.getLogger(name).setLevel(level if level <= logging.DEBUG else logging.WARNING)

    if getattr(root, "_grounding_configured", False):
        return root

    root.addHandler(_console_handler(use_rich))

    if log_file:
        LOG_DIR.mkdir(parents=True, exist_ok=True)
        file_handler = logging.FileHandler(LOG_DIR / log_file, encoding="utf-8")
        file_handler.setFormatter(logging.Formatter(PLAIN_FORMAT))
        root.addHandler(file_handler)

    root._grounding_configured = True
    return root
