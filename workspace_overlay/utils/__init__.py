from .color_support import color_support
from .notices import Notice, UserNotices

__all__ = ["color_support", "Notice", "UserNotices"]
