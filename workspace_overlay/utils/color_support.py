# workspace_overlay/utils/color_support.py

import logging
import os
import sys
from typing import Optional

from colorama import Fore, Style, init as colorama_init


class ColorSupport:
    """Decides whether terminal output may be coloured and applies colours."""

    LEVEL_COLORS = {
        logging.DEBUG: Fore.CYAN,
        logging.INFO: Fore.GREEN,
        logging.WARNING: Fore.YELLOW,
        logging.ERROR: Fore.RED,
        logging.CRITICAL: Fore.MAGENTA,
    }

    def __init__(self) -> None:
        self._force_color: Optional[bool] = self._env_force_color()
        self._detected: Optional[bool] = None
        self._reinit()

    @staticmethod
    def _env_force_color() -> Optional[bool]:
        if os.environ.get("NO_COLOR") is not None:
            return False
        if os.environ.get("FORCE_COLOR", "").lower() in ("1", "true", "yes"):
            return True
        return None

    def _reinit(self) -> None:
        colorama_init(strip=not self.supports_color(), convert=True, wrap=True, autoreset=True)

    def set_force_color(self, force: Optional[bool]) -> None:
        """Force (``True``), disable (``False``) or auto-detect (``None``) colours."""

        if force not in (True, False, None):
            raise ValueError("force must be True, False or None")
        target = self._env_force_color() if force is None else force
        if target == self._force_color:
            return
        self._force_color = target
        self._detected = None
        self._reinit()

    def supports_color(self) -> bool:
        if self._force_color is not None:
            return self._force_color
        if self._detected is None:
            self._detected = self._detect()
        return self._detected

    @staticmethod
    def _detect() -> bool:
        term = os.environ.get("TERM", "").lower()
        if "dumb" in term:
            return False
        if sys.platform == "win32":
            return any(
                name in os.environ for name in ("ANSICON", "WT_SESSION", "ConEmuANSI")
            ) or os.environ.get("TERM_PROGRAM", "") == "vscode"
        if hasattr(sys.stdout, "isatty") and sys.stdout.isatty():
            return True
        return bool(os.environ.get("COLORTERM")) or term in (
            "xterm-color",
            "xterm-256color",
            "screen",
            "screen-256color",
        )

    def colored(self, text: str, color: Optional[str] = None, bright: bool = False) -> str:
        if not text or not self.supports_color():
            return text
        prefix = (Style.BRIGHT if bright else "") + (color or "")
        return f"{prefix}{text}{Style.RESET_ALL}"

    def for_level(self, text: str, level: int) -> str:
        return self.colored(text, self.LEVEL_COLORS.get(level), bright=level >= logging.WARNING)

    def error(self, text: str) -> str:
        return self.colored(text, Fore.RED)

    def warning(self, text: str) -> str:
        return self.colored(text, Fore.YELLOW)

    def success(self, text: str) -> str:
        return self.colored(text, Fore.GREEN)

    def info(self, text: str) -> str:
        return self.colored(text, Fore.CYAN)


# Global instance
color_support = ColorSupport()
