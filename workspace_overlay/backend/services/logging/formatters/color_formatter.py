# workspace_overlay/backend/services/logging/formatters/color_formatter.py

import datetime
import logging
from typing import Optional

from .....utils.color_support import color_support


class ColorFormatter(logging.Formatter):
    """
    Console formatter that colours the level name and message per level.
    """

    DEFAULT_FORMAT = '%(asctime)s [%(levelname)s] %(name)s: %(message)s'
    DEFAULT_DATEFMT = '%Y-%m-%d %H:%M:%S'

    def __init__(self, fmt: Optional[str] = None, datefmt: Optional[str] = None):
        super().__init__(fmt or self.DEFAULT_FORMAT, datefmt or self.DEFAULT_DATEFMT)

    def format(self, record: logging.LogRecord) -> str:
        orig_msg = record.msg
        orig_levelname = record.levelname
        try:
            if color_support.supports_color():
                record.levelname = color_support.for_level(record.levelname, record.levelno)
                if isinstance(record.msg, str):
                    record.msg = color_support.for_level(record.msg, record.levelno)
            return super().format(record)
        finally:
            record.msg = orig_msg
            record.levelname = orig_levelname

    def formatTime(self, record: logging.LogRecord, datefmt: Optional[str] = None) -> str:
        created = datetime.datetime.fromtimestamp(record.created)
        return created.strftime(datefmt or self.DEFAULT_DATEFMT)
