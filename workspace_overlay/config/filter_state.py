# workspace_overlay/config/filter_state.py

"""Per-view filter state persistence.

:class:`FilterStatePersistence` captures the host's current filter state,
writes it into the active workspace's ``filter_state_by_view`` map (debounced
or immediately) and restores it when the workspace or its settings change.
"""

from __future__ import annotations

import asyncio
import logging
from copy import deepcopy
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, Callable, Dict, Optional

from .events import WorkspaceEvent, WorkspaceEventType
from .exceptions import WorkspaceError
from .listener import WorkspaceListener
from .types import FilterStateEntry

if TYPE_CHECKING:
    from .manager import WorkspaceManager

logger = logging.getLogger(__name__)

DEFAULT_VIEW_MODE = "list"


@dataclass
class ViewState:
    """What the host reports about the current view."""

    filters: Dict[str, Any] = field(default_factory=dict)
    selected_project: Optional[str] = None
    search_query: Optional[str] = None
    view_mode: str = DEFAULT_VIEW_MODE


@dataclass
class FilterStatePersistPayload:
    workspace_id: str
    view_id: str
    active_view_id: str
    filters: Dict[str, Any] = field(default_factory=dict)
    selected_project: Optional[str] = None
    view_mode: str = DEFAULT_VIEW_MODE
    search_query: Optional[str] = None
    advanced_filter: Optional[Dict[str, Any]] = None

    def to_entry(self) -> FilterStateEntry:
        return {
            "filters": deepcopy(self.filters),
            "selected_project": self.selected_project,
            "advanced_filter": deepcopy(self.advanced_filter),
            "view_mode": self.view_mode,
        }


@dataclass
class RestoredFilterSnapshot:
    filters: Dict[str, Any] = field(default_factory=dict)
    selected_project: Optional[str] = None
    advanced_filter: Optional[Dict[str, Any]] = None
    live_filter_state: Optional[Dict[str, Any]] = None
    view_mode: str = DEFAULT_VIEW_MODE
    # Search text is never persisted.
    should_clear_search: bool = True
    active_view_id: Optional[str] = None


class FilterStatePersistence(WorkspaceListener):
    """Keeps the host's per-view filter state in the active workspace.

    ``persist`` must be called from a running event loop; it schedules a
    trailing-edge write so a burst of calls produces a single write of the
    last snapshot.
    """

    def __init__(
        self,
        manager: "WorkspaceManager",
        get_workspace_id: Callable[[], Optional[str]],
        get_current_view_id: Callable[[], Optional[str]],
        get_view_state: Callable[[], ViewState],
        get_current_filter_state: Callable[[], Optional[Dict[str, Any]]],
        *,
        delay: float = 0.5,
        on_restore: Optional[Callable[[Optional[RestoredFilterSnapshot]], None]] = None,
    ) -> None:
        super().__init__(
            (
                WorkspaceEventType.SETTINGS_CHANGED,
                WorkspaceEventType.OVERRIDES_SAVED,
                WorkspaceEventType.SWITCHED,
            )
        )
        self._manager = manager
        self._get_workspace_id = get_workspace_id
        self._get_current_view_id = get_current_view_id
        self._get_view_state = get_view_state
        self._get_current_filter_state = get_current_filter_state
        self._delay = delay
        self._on_restore = on_restore

        self._is_saving = False
        self._timer: Optional[asyncio.TimerHandle] = None
        self._pending: Optional[FilterStatePersistPayload] = None
        self._inflight: Optional[asyncio.Task] = None
        self._closed = False

        manager.add_listener(self.handle_event, self.subscribed_events)

    @property
    def is_saving(self) -> bool:
        return self._is_saving

    @property
    def has_pending_write(self) -> bool:
        return self._timer is not None

    def capture_snapshot(self) -> Optional[FilterStatePersistPayload]:
        workspace_id = self._get_workspace_id()
        view_id = self._get_current_view_id()
        if not workspace_id or not view_id:
            return None
        view_state = self._get_view_state()
        return FilterStatePersistPayload(
            workspace_id=workspace_id,
            view_id=view_id,
            active_view_id=view_id,
            filters=deepcopy(view_state.filters or {}),
            selected_project=view_state.selected_project,
            view_mode=view_state.view_mode or DEFAULT_VIEW_MODE,
            search_query=view_state.search_query,
            advanced_filter=deepcopy(self._get_current_filter_state()),
        )

    # ------------------------------------------------------------------
    # Writing
    # ------------------------------------------------------------------
    def _cancel_timer(self) -> Optional[FilterStatePersistPayload]:
        pending = self._pending
        if self._timer is not None:
            self._timer.cancel()
        self._timer = None
        self._pending = None
        return pending

    def persist(self, snapshot: Optional[FilterStatePersistPayload] = None) -> None:
        """Schedule a debounced write of ``snapshot`` (or a fresh capture)."""

        snapshot = snapshot or self.capture_snapshot()
        if snapshot is None:
            return
        loop = asyncio.get_running_loop()
        self._cancel_timer()
        self._pending = snapshot
        self._timer = loop.call_later(self._delay, self._fire)

    def _fire(self) -> None:
        snapshot = self._cancel_timer()
        if snapshot is not None:
            task = asyncio.get_running_loop().create_task(self._write(snapshot))
            task.add_done_callback(self._log_write_failure)
            self._inflight = task

    @staticmethod
    def _log_write_failure(task: "asyncio.Task[bool]") -> None:
        if task.cancelled():
            return
        exc = task.exception()
        if exc is not None:
            logger.error(
                "Debounced filter state write failed: %s",
                exc,
                exc_info=(type(exc), exc, exc.__traceback__),
            )

    async def persist_immediately(
        self, snapshot: Optional[FilterStatePersistPayload] = None
    ) -> bool:
        """Write now, superseding any pending debounced write."""

        self._cancel_timer()
        snapshot = snapshot or self.capture_snapshot()
        if snapshot is None:
            return False
        return await self._write(snapshot)

    async def flush(self) -> bool:
        pending = self._cancel_timer()
        if pending is not None:
            return await self._write(pending)
        if self._inflight is not None and not self._inflight.done():
            return await self._inflight
        return False

    async def _write(self, snapshot: FilterStatePersistPayload) -> bool:
        self._is_saving = True
        try:
            effective = self._manager.get_effective_settings(snapshot.workspace_id)
            states = dict(effective.get("filter_state_by_view") or {})
            states[snapshot.view_id] = snapshot.to_entry()
            effective["filter_state_by_view"] = states
            effective["active_view_id"] = snapshot.active_view_id
            await self._manager.save_overrides_quietly(snapshot.workspace_id, effective)
            logger.debug(
                "Persisted filter state for view %s in workspace %s",
                snapshot.view_id,
                snapshot.workspace_id,
            )
            return True
        except WorkspaceError as exc:
            logger.error("Failed to persist filter state: %s", exc)
            return False
        finally:
            self._is_saving = False

    # ------------------------------------------------------------------
    # Reading
    # ------------------------------------------------------------------
    def get_saved_active_view_id(self) -> Optional[str]:
        workspace_id = self._get_workspace_id()
        if not workspace_id:
            return None
        return self._manager.get_effective_settings(workspace_id).get("active_view_id")

    def restore(self) -> Optional[RestoredFilterSnapshot]:
        workspace_id = self._get_workspace_id()
        if not workspace_id:
            return None
        effective = self._manager.get_effective_settings(workspace_id)
        view_id = effective.get("active_view_id") or self._get_current_view_id()
        states = effective.get("filter_state_by_view") or {}
        entry = states.get(view_id) if view_id else None
        if not isinstance(entry, dict):
            entry = {}
        advanced = entry.get("advanced_filter")
        return RestoredFilterSnapshot(
            filters=deepcopy(entry.get("filters") or {}),
            selected_project=entry.get("selected_project"),
            advanced_filter=deepcopy(advanced),
            live_filter_state=deepcopy(advanced),
            view_mode=entry.get("view_mode") or DEFAULT_VIEW_MODE,
            should_clear_search=True,
            active_view_id=view_id,
        )

    def _process_event(self, event: WorkspaceEvent) -> None:
        if self._is_saving:
            logger.debug("Ignoring %s while saving filter state", event.event_type.name)
            return
        if self._on_restore is not None:
            self._on_restore(self.restore())

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------
    async def switch_workspace(self, workspace_id: str) -> None:
        await self.persist_immediately()
        await self._manager.set_active_workspace(workspace_id)
        await self._manager.remember_workspace(self._manager.active_workspace_id)

    async def close(self) -> None:
        if self._closed:
            return
        await self.persist_immediately()
        workspace_id = self._get_workspace_id()
        if workspace_id:
            await self._manager.remember_workspace(workspace_id)
        self._manager.remove_listener(self.handle_event)
        self._closed = True


__all__ = [
    "ViewState",
    "FilterStatePersistPayload",
    "RestoredFilterSnapshot",
    "FilterStatePersistence",
]
