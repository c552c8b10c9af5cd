# workspace_overlay/config/events.py

from enum import Enum, auto
from dataclasses import dataclass
from typing import Any, Optional, Tuple


class WorkspaceEventType(Enum):
    """Types of workspace events"""
    OVERRIDES_SAVED = auto()
    CREATED = auto()
    DELETED = auto()
    RENAMED = auto()
    RESET = auto()
    SWITCHED = auto()
    DEFAULT_CHANGED = auto()
    SETTINGS_CHANGED = auto()
    ERROR = auto()


@dataclass(frozen=True)
class WorkspaceEvent:
    """Notification that workspace state changed.

    Listeners should re-read effective settings from the manager rather than
    rely on anything carried here.
    """
    event_type: WorkspaceEventType
    workspace_id: Optional[str] = None
    previous_id: Optional[str] = None
    changed_fields: Tuple[str, ...] = ()
    data: Optional[Any] = None
    error: Optional[Exception] = None

    @classmethod
    def create_error_event(cls, workspace_id: Optional[str], error: Exception) -> 'WorkspaceEvent':
        """Create an error event"""
        return cls(WorkspaceEventType.ERROR, workspace_id, error=error)

    @classmethod
    def create_switch_event(cls, previous_id: Optional[str], workspace_id: str) -> 'WorkspaceEvent':
        """Create an active-workspace switch event"""
        return cls(WorkspaceEventType.SWITCHED, workspace_id, previous_id=previous_id)

    @classmethod
    def create_change_event(
        cls,
        event_type: WorkspaceEventType,
        workspace_id: Optional[str] = None,
        changed_fields: Tuple[str, ...] = (),
        data: Any = None,
    ) -> 'WorkspaceEvent':
        """Create a change event"""
        return cls(event_type, workspace_id, changed_fields=tuple(changed_fields), data=data)
