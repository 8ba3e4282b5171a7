"""In-process CAN buses and drivers for testing."""

from __future__ import annotations

import logging
import threading
from abc import ABC, abstractmethod
from collections import deque
from dataclasses import replace
from typing import Callable, ClassVar, Iterable, Optional, Union

from canlink.canstring import frame_to_string, toframe
from canlink.dispatcher import FilteredDispatcher, Listener, SimpleDispatcher
from canlink.driver import DriverInterface
from canlink.frame import DriverState, Frame, Header, State
from canlink.settings import NoSettings, Settings
from canlink.threaded import ThreadedMixin

log = logging.getLogger(__name__)


def _copy_frame(frame: Frame) -> Frame:
    return replace(frame, data=list(frame.data))


class Connection:
    """An attachment to a bus; frames sent through it skip its own listener."""

    def __init__(self, bus: SimpleDispatcher, listener: Listener) -> None:
        self._bus = bus
        self._listener = listener

    def dispatch(self, frame: Frame) -> None:
        self._bus.dispatch_filtered(frame, self._listener)


class DummyBus:
    """A named bus; it exists until it is closed."""

    _buses: ClassVar[dict[str, SimpleDispatcher]] = {}
    _lock: ClassVar[threading.Lock] = threading.Lock()

    def __init__(self, name: str) -> None:
        self.name = name
        with self._lock:
            self._bus = self._buses.setdefault(name, SimpleDispatcher())

    def close(self) -> None:
        with self._lock:
            self._buses.pop(self.name, None)

    def __enter__(self) -> "DummyBus":
        return self

    def __exit__(self, *exc) -> None:
        self.close()

    @classmethod
    def connect(cls, name: str, callback: Callable[[Frame], object]) -> Connection:
        """Attach ``callback`` to the bus ``name``; KeyError if there is none."""
        with cls._lock:
            try:
                bus = cls._buses[name]
            except KeyError:
                raise KeyError(f"no dummy bus named {name!r}") from None
        return Connection(bus, bus.create_listener(callback))


class DummyInterface(DriverInterface):
    """Driver that exchanges frames over a DummyBus."""

    def __init__(self, loopback: bool = False) -> None:
        self._frame_dispatcher = FilteredDispatcher()
        self._state_dispatcher = SimpleDispatcher()
        self._bus: Optional[Connection] = None
        self._state = State()
        self._in: deque[Frame] = deque()
        self._busy = False
        self._loopback = loopback
        self._trace = False
        self._cond = threading.Condition(threading.RLock())

    def _set_driver_state(self, driver_state: DriverState) -> None:
        with self._cond:
            changed = self._state.driver_state != driver_state
            self._state.driver_state = driver_state
            snapshot = replace(self._state)
            self._cond.notify_all()
        if changed:
            self._state_dispatcher.dispatch(snapshot)

    def _enqueue(self, frame: Frame) -> None:
        with self._cond:
            self._in.append(_copy_frame(frame))
            self._cond.notify_all()

    def _shutdown_internal(self) -> None:
        self._set_driver_state(DriverState.CLOSED)
        self._bus = None

    def send(self, frame: Frame) -> bool:
        bus = self._bus
        if bus is None:
            raise RuntimeError("dummy interface is not initialised")
        if self._trace:
            log.debug("send: %s", frame_to_string(frame, True))
        if self._loopback:
            self._enqueue(frame)
        bus.dispatch(frame)
        return True

    def create_msg_listener(self, callback) -> Listener:
        return self._frame_dispatcher.create_listener(callback)

    def create_msg_listener_for(self, header: Header, callback) -> Listener:
        return self._frame_dispatcher.create_keyed_listener(header.key(), callback)

    def create_state_listener(self, callback) -> Listener:
        return self._state_dispatcher.create_listener(callback)

    def recover(self) -> bool:
        return False

    def get_state(self) -> State:
        with self._cond:
            return replace(self._state)

    def shutdown(self) -> None:
        self.flush()
        self._shutdown_internal()

    def translate_error(self, internal_error: int) -> Optional[str]:
        return "OK" if not internal_error else None

    def does_loop_back(self) -> bool:
        return self._loopback

    def flush(self) -> None:
        """Wait until every queued frame has been delivered or the driver closes."""
        with self._cond:
            while self._in or self._busy:
                if self._state.driver_state == DriverState.CLOSED:
                    return
                self._cond.wait(0.1)

    def run(self) -> None:
        """Deliver queued frames to the listeners until the driver is closed."""
        with self._cond:
            self._state.driver_state = DriverState.READY
            snapshot = replace(self._state)
        while True:
            self._state_dispatcher.dispatch(snapshot)
            with self._cond:
                if not self._in and self._state.driver_state != DriverState.CLOSED:
                    self._cond.wait(1.0)
                frames = list(self._in)
                self._in.clear()
                self._busy = bool(frames)
            try:
                for frame in frames:
                    if self._trace:
                        log.debug("receive: %s", frame_to_string(frame, True))
                    self._frame_dispatcher.dispatch_keyed(frame.key(), frame)
            finally:
                with self._cond:
                    self._busy = False
                    self._cond.notify_all()
            with self._cond:
                if self._state.driver_state == DriverState.CLOSED:
                    return
                self._state.driver_state = DriverState.READY
                snapshot = replace(self._state)

    def init(self, device: str, loopback: bool, settings: Optional[Settings] = None) -> bool:
        """Connect to the bus named ``device``; KeyError if it does not exist."""
        self._loopback = loopback
        self._bus = DummyBus.connect(device, self._enqueue)
        self._set_driver_state(DriverState.OPEN)
        if settings is not None:
            self._trace = settings.get_optional("trace", False)
        return True


class ThreadedDummyInterface(ThreadedMixin, DummyInterface):
    """DummyInterface that runs its delivery loop in a thread."""


class DummyResponder(ABC):
    """Bus participant that answers frames it receives."""

    def __init__(self) -> None:
        self._dummy = ThreadedDummyInterface()
        self._listener = self._dummy.create_msg_listener(self.respond)

    def init(self, bus: DummyBus) -> bool:
        return self._dummy.init(bus.name, False, NoSettings())

    def flush(self) -> None:
        self._dummy.flush()

    def shutdown(self) -> None:
        self._dummy.shutdown()

    def send(self, frame: Frame) -> None:
        self._dummy.send(frame)

    @abstractmethod
    def respond(self, frame: Frame) -> None:
        """Handle a received frame."""


class DummyReplay(DummyResponder):
    """Answers an expected sequence of frames with prepared frames."""

    def __init__(self) -> None:
        self._replay: deque[tuple[str, list[Frame]]] = deque()
        super().__init__()

    def respond(self, frame: Frame) -> None:
        if not self._replay:
            return
        expected, answers = self._replay[0]
        if frame_to_string(frame, True) == expected:
            for answer in answers:
                self.send(answer)
            self._replay.popleft()

    def add(self, read: str, writes: Union[str, Iterable[str]]) -> None:
        """Answer the frame ``read`` with the frames ``writes``."""
        if isinstance(writes, str):
            writes = [writes]
        self._replay.append((read.lower(), [toframe(w) for w in writes]))

    def done(self) -> bool:
        return not self._replay