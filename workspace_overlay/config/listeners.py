from __future__ import annotations

import logging
import weakref
from typing import Callable, FrozenSet, Iterable, List, Optional

from .events import WorkspaceEvent, WorkspaceEventType

logger = logging.getLogger(__name__)

EventCallback = Callable[[WorkspaceEvent], None]


class _Listener:
    """Wrapper that holds bound methods weakly and other callables strongly.

    A listener object going away unregisters its methods; functions and
    lambdas stay registered until :meth:`ListenerRegistry.remove`.
    """

    __slots__ = ("_ref", "_strong", "event_types")

    def __init__(
        self,
        callback: EventCallback,
        event_types: Optional[Iterable[WorkspaceEventType]] = None,
    ) -> None:
        self.event_types: Optional[FrozenSet[WorkspaceEventType]] = (
            frozenset(event_types) if event_types is not None else None
        )
        self._ref: Optional[weakref.WeakMethod] = None
        self._strong: Optional[EventCallback] = None
        if hasattr(callback, "__self__") and hasattr(callback, "__func__"):
            try:
                self._ref = weakref.WeakMethod(callback)  # type: ignore[arg-type]
            except TypeError:
                self._strong = callback
        else:
            self._strong = callback

    def get(self) -> Optional[EventCallback]:
        if self._ref is None:
            return self._strong
        return self._ref()

    def matches(self, callback: EventCallback) -> bool:
        if self._ref is None:
            return self._strong is callback or self._strong == callback
        target = self._ref()
        return target is callback or target == callback

    def wants(self, event: WorkspaceEvent) -> bool:
        return self.event_types is None or event.event_type in self.event_types


class ListenerRegistry:
    """Holds change listeners and dispatches events to them."""

    def __init__(self) -> None:
        self._listeners: List[_Listener] = []

    def __len__(self) -> int:
        return len(self._listeners)

    def add(
        self,
        callback: EventCallback,
        event_types: Optional[Iterable[WorkspaceEventType]] = None,
    ) -> None:
        if not any(listener.matches(callback) for listener in self._listeners):
            self._listeners.append(_Listener(callback, event_types))

    def remove(self, callback: EventCallback) -> None:
        self._listeners = [
            listener for listener in self._listeners if not listener.matches(callback)
        ]

    def clear(self) -> None:
        self._listeners.clear()

    def dispatch(self, event: WorkspaceEvent) -> None:
        stale: List[_Listener] = []
        for listener in list(self._listeners):
            callback = listener.get()
            if callback is None:
                stale.append(listener)
                continue
            if not listener.wants(event):
                continue
            try:
                callback(event)
            except Exception as exc:
                logger.error(
                    "Error in workspace listener for %s: %s", event.event_type.name, exc
                )
        for listener in stale:
            if listener in self._listeners:
                self._listeners.remove(listener)


__all__ = ["_Listener", "ListenerRegistry", "EventCallback"]
