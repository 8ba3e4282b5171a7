"""Running a driver's I/O loop in a background thread."""

from __future__ import annotations

import threading
import time
from typing import Optional

from canlink.frame import DriverState, State


class StateWaiter:
    """Tracks the state of an interface so one can wait for a given state."""

    def __init__(self, interface) -> None:
        self._cond = threading.Condition()
        self._state: State = interface.get_state()
        self._listener = interface.create_state_listener(self._update)

    def _update(self, state: State) -> None:
        with self._cond:
            self._state = state
            self._cond.notify_all()

    def wait(self, driver_state: DriverState, timeout: float) -> bool:
        """Wait up to ``timeout`` seconds for ``driver_state``; True if reached."""
        deadline = time.monotonic() + timeout
        with self._cond:
            while self._state.driver_state != driver_state:
                remaining = deadline - time.monotonic()
                if remaining <= 0:
                    return False
                self._cond.wait(remaining)
        return True


class ThreadedMixin:
    """Mixin for a driver class: ``init`` starts ``run`` in a thread."""

    _thread: Optional[threading.Thread] = None

    def init(self, device, loopback, settings=None) -> bool:
        """Initialise the driver and wait up to a second for it to be ready."""
        if self._thread is None and super().init(device, loopback, settings):
            waiter = StateWaiter(self)
            self._thread = threading.Thread(
                target=super().run, name=f"can-{device}", daemon=True
            )
            self._thread.start()
            return waiter.wait(DriverState.READY, 1.0)
        return super().get_state().is_ready()

    def _stop_thread(self) -> None:
        thread, self._thread = self._thread, None
        if thread is not None and thread is not threading.current_thread():
            thread.join()

    def shutdown(self) -> None:
        """Shut the driver down and wait for its thread to end."""
        super().shutdown()
        self._stop_thread()

    def join(self) -> None:
        """Wait for the driver thread to end."""
        thread = self._thread
        if thread is not None and thread is not threading.current_thread():
            thread.join()