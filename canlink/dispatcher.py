"""Listener registries that fan objects out to callbacks."""

from __future__ import annotations

import threading
import weakref
from typing import Any, Callable, Hashable, Optional


class Listener:
    """A registered callback; it stays registered while it is referenced."""

    __slots__ = ("_callback", "__weakref__", "__dict__")

    def __init__(self, callback: Optional[Callable[[Any], Any]]) -> None:
        self._callback = callback

    def __call__(self, obj: Any) -> None:
        if self._callback is not None:
            self._callback(obj)


class _ListenerList:
    def __init__(self) -> None:
        self._refs: list[weakref.ref] = []

    def add(self, listener: Listener) -> None:
        self._refs.append(weakref.ref(listener))

    def live(self) -> list[Listener]:
        alive = []
        refs = []
        for ref in self._refs:
            listener = ref()
            if listener is not None:
                alive.append(listener)
                refs.append(ref)
        self._refs = refs
        return alive

    def dispatch(self, obj: Any, without: Optional[Listener] = None) -> None:
        for listener in self.live():
            if listener is not without:
                listener(obj)


class SimpleDispatcher:
    """Calls every live listener for each dispatched object."""

    def __init__(self) -> None:
        self._lock = threading.RLock()
        self._listeners = _ListenerList()

    def create_listener(self, callback: Callable[[Any], Any]) -> Listener:
        listener = Listener(callback)
        with self._lock:
            self._listeners.add(listener)
        return listener

    def dispatch(self, obj: Any) -> None:
        with self._lock:
            self._listeners.dispatch(obj)

    def dispatch_filtered(self, obj: Any, without: Optional[Listener]) -> None:
        """Dispatch to all listeners except ``without``."""
        with self._lock:
            self._listeners.dispatch(obj, without)

    def num_listeners(self) -> int:
        with self._lock:
            return len(self._listeners.live())

    def __call__(self, obj: Any) -> None:
        self.dispatch(obj)


class FilteredDispatcher(SimpleDispatcher):
    """Dispatcher that also keeps listeners bound to a single key."""

    def __init__(self) -> None:
        super().__init__()
        self._filtered: dict[Hashable, _ListenerList] = {}

    def create_keyed_listener(
        self, key: Hashable, callback: Callable[[Any], Any]
    ) -> Listener:
        listener = Listener(callback)
        with self._lock:
            self._filtered.setdefault(key, _ListenerList()).add(listener)
        return listener

    def dispatch_keyed(self, key: Hashable, obj: Any) -> None:
        """Call the listeners of ``key`` first, then the general ones."""
        with self._lock:
            keyed = self._filtered.get(key)
            if keyed is not None:
                keyed.dispatch(obj)
            self._listeners.dispatch(obj)