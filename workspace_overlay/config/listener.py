# workspace_overlay/config/listener.py

import logging
from abc import ABC, abstractmethod
from typing import FrozenSet, Iterable, Set

from .events import WorkspaceEvent, WorkspaceEventType

logger = logging.getLogger(__name__)


class WorkspaceListener(ABC):
    """Object-style subscriber for workspace notifications.

    Register ``handle_event`` with :meth:`WorkspaceManager.add_listener`;
    events outside the subscribed types are dropped before
    :meth:`_process_event` runs.
    """

    def __init__(self, event_types: Iterable[WorkspaceEventType] = ()) -> None:
        self._event_types: Set[WorkspaceEventType] = set(event_types)

    @property
    def subscribed_events(self) -> FrozenSet[WorkspaceEventType]:
        return frozenset(self._event_types)

    def handle_event(self, event: WorkspaceEvent) -> None:
        if event.event_type not in self._event_types:
            return
        try:
            self._process_event(event)
        except Exception as exc:
            logger.error(
                "%s failed to process %s for workspace %s: %s",
                type(self).__name__,
                event.event_type.name,
                event.workspace_id,
                exc,
            )

    @abstractmethod
    def _process_event(self, event: WorkspaceEvent) -> None:
        """React to a subscribed event by re-reading manager state."""
