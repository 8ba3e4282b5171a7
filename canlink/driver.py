"""Abstract interface of a CAN driver."""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Callable, Optional

from canlink.dispatcher import Listener
from canlink.frame import Frame, Header, State
from canlink.settings import Settings

FrameCallback = Callable[[Frame], object]
StateCallback = Callable[[State], object]


class DriverInterface(ABC):
    """Sends and receives frames and reports state changes."""

    @abstractmethod
    def send(self, frame: Frame) -> bool:
        """Enqueue a frame for sending; False if it could not be enqueued."""

    @abstractmethod
    def create_msg_listener(self, callback: FrameCallback) -> Listener:
        """Listener for all received frames."""

    @abstractmethod
    def create_msg_listener_for(self, header: Header, callback: FrameCallback) -> Listener:
        """Listener for frames with the key of ``header``."""

    @abstractmethod
    def create_state_listener(self, callback: StateCallback) -> Listener:
        """Listener for all state changes."""

    @abstractmethod
    def init(self, device: str, loopback: bool, settings: Settings) -> bool:
        """Open the device; True on success."""

    @abstractmethod
    def recover(self) -> bool:
        """Recover after errors; True on success."""

    @abstractmethod
    def get_state(self) -> State:
        """Current state of the driver."""

    @abstractmethod
    def shutdown(self) -> None:
        """Close the device."""

    @abstractmethod
    def translate_error(self, internal_error: int) -> Optional[str]:
        """Describe a driver specific error, or None if it is unknown."""

    @abstractmethod
    def does_loop_back(self) -> bool:
        """Whether own frames are received back."""

    @abstractmethod
    def run(self) -> None:
        """Process I/O until the driver is shut down."""