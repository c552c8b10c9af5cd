import logging
import sys
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Optional

from .formatters.color_formatter import ColorFormatter
from ....utils.color_support import color_support

FILE_FORMAT = '%(asctime)s [%(levelname)s] %(name)s: %(message)s'
FILE_DATEFMT = '%Y-%m-%d %H:%M:%S'


def _existing_console_handler(root_logger: logging.Logger) -> Optional[logging.Handler]:
    for handler in root_logger.handlers:
        if isinstance(handler, logging.StreamHandler) and getattr(handler, 'stream', None) in (
            sys.stdout,
            sys.stderr,
        ):
            return handler
    return None


def _rotating_file_handler(log_file: str, max_bytes: int, backup_count: int) -> logging.Handler:
    log_path = Path(log_file).expanduser()
    log_path.parent.mkdir(parents=True, exist_ok=True)
    handler = RotatingFileHandler(
        log_path, maxBytes=max_bytes, backupCount=backup_count, encoding='utf-8'
    )
    # Escape codes never reach the file.
    handler.setFormatter(logging.Formatter(FILE_FORMAT, datefmt=FILE_DATEFMT))
    return handler


def setup_logging(
    verbose: bool = False,
    log_file: Optional[str] = None,
    max_bytes: int = 5 * 1024 * 1024,  # 5MB
    backup_count: int = 3,
    force_color: Optional[bool] = None,
    preserve_existing_handlers: bool = False,
) -> None:
    """
    Configure root logging for the workspace-overlay command.

    Args:
        verbose: Log at DEBUG instead of INFO
        log_file: Optional path to a rotating log file
        max_bytes: Size at which the log file rotates
        backup_count: Number of rotated files to keep
        force_color: Force (True) or disable (False) coloured console output.
            ``None`` falls back to automatic detection.
        preserve_existing_handlers: Keep handlers a host application already
            installed on the root logger, including its console handler.
    """
    color_support.set_force_color(force_color)

    root_logger = logging.getLogger()
    root_logger.setLevel(logging.DEBUG if verbose else logging.INFO)

    console_handler = None
    if preserve_existing_handlers:
        console_handler = _existing_console_handler(root_logger)
    else:
        root_logger.handlers.clear()

    if console_handler is None:
        console_handler = logging.StreamHandler(sys.stderr)
        console_handler.setFormatter(ColorFormatter())
        root_logger.addHandler(console_handler)

    if log_file:
        try:
            root_logger.addHandler(_rotating_file_handler(log_file, max_bytes, backup_count))
        except OSError as exc:
            logging.error(color_support.error(f"Failed to open log file {log_file}: {exc}"))
        else:
            logging.debug("Logging workspace activity to %s", log_file)

    logging.debug(
        "Colour output: %s (%s)",
        color_support.supports_color(),
        "forced" if force_color is not None else "auto",
    )
