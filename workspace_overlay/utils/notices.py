"""User-visible warnings and errors raised by the workspace engine.

The engine never blocks on the user; it records a notice, logs it with the
matching level and lets the host decide how to present it.
"""

from __future__ import annotations

import logging
from collections import deque
from dataclasses import dataclass
from typing import Callable, Deque, List, Optional

from .color_support import color_support

logger = logging.getLogger("workspace_overlay.notices")


@dataclass(frozen=True)
class Notice:
    level: int
    message: str


class UserNotices:
    """Collects notices for display; keeps the most recent ``max_history``."""

    def __init__(
        self,
        max_history: int = 100,
        on_notice: Optional[Callable[[Notice], None]] = None,
    ) -> None:
        self._history: Deque[Notice] = deque(maxlen=max_history)
        self._on_notice = on_notice

    @property
    def history(self) -> List[Notice]:
        return list(self._history)

    def clear(self) -> None:
        self._history.clear()

    def warning(self, message: str) -> None:
        self._publish(Notice(logging.WARNING, message))

    def error(self, message: str) -> None:
        self._publish(Notice(logging.ERROR, message))

    def _publish(self, notice: Notice) -> None:
        self._history.append(notice)
        logger.log(notice.level, color_support.for_level(notice.message, notice.level))
        if self._on_notice is not None:
            try:
                self._on_notice(notice)
            except Exception as exc:
                logger.error("Notice handler failed: %s", exc)


__all__ = ["Notice", "UserNotices"]
