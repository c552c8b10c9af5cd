from __future__ import annotations

import itertools
from typing import Any, Callable, Dict, List, Optional

import pytest

from workspace_overlay.config import WorkspaceManager
from workspace_overlay.config.events import WorkspaceEvent
from workspace_overlay.config.exceptions import WorkspaceIOError
from workspace_overlay.config.storage import MemorySettingsStore
from workspace_overlay.utils.notices import UserNotices


class FailingStore(MemorySettingsStore):
    """Memory store whose writes fail while ``fail`` is set."""

    def __init__(self, initial: Optional[Dict[str, Dict[str, Any]]] = None) -> None:
        super().__init__(initial)
        self.fail = True

    async def save(self, key: str, value: Dict[str, Any]) -> None:
        if self.fail:
            raise WorkspaceIOError("disk full")
        await super().save(key, value)


class EventRecorder:
    """Collects every event it receives."""

    def __init__(self) -> None:
        self.events: List[WorkspaceEvent] = []

    def __call__(self, event: WorkspaceEvent) -> None:
        self.events.append(event)

    def of_type(self, event_type) -> List[WorkspaceEvent]:
        return [event for event in self.events if event.event_type is event_type]


@pytest.fixture
def store() -> MemorySettingsStore:
    return MemorySettingsStore()


@pytest.fixture
def notices() -> UserNotices:
    return UserNotices()


@pytest.fixture
def make_manager(notices: UserNotices) -> Callable[..., WorkspaceManager]:
    def factory(store=None, **kwargs: Any) -> WorkspaceManager:
        ids = itertools.count(1)
        ticks = itertools.count(1000)
        kwargs.setdefault("notices", notices)
        kwargs.setdefault("clock", lambda: next(ticks))
        kwargs.setdefault("id_factory", lambda: f"ws_{next(ids)}")
        return WorkspaceManager(store if store is not None else MemorySettingsStore(), **kwargs)

    return factory


@pytest.fixture
def manager(
    store: MemorySettingsStore, make_manager: Callable[..., WorkspaceManager]
) -> WorkspaceManager:
    return make_manager(store)


@pytest.fixture
def recorder(manager: WorkspaceManager) -> EventRecorder:
    recorder = EventRecorder()
    manager.add_listener(recorder)
    return recorder


@pytest.fixture
def failing_store() -> FailingStore:
    return FailingStore()


@pytest.fixture
def new_recorder() -> Callable[[], EventRecorder]:
    return EventRecorder
