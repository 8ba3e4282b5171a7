"""Bridges between a CAN driver and message publishers and subscribers."""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field
from typing import Callable, Iterable, Optional, Union

from canlink.canstring import frame_to_string, tofilter
from canlink.driver import DriverInterface
from canlink.filter import FilteredFrameListener, FrameFilter
from canlink.frame import Frame, State

log = logging.getLogger(__name__)


@dataclass
class MessageHeader:
    frame_id: str = ""
    stamp: float = 0.0


def _eight_bytes() -> list[int]:
    return [0] * 8


@dataclass
class CanMessage:
    """A CAN frame as a published message."""

    id: int = 0
    dlc: int = 0
    is_error: bool = False
    is_rtr: bool = False
    is_extended: bool = False
    data: list[int] = field(default_factory=_eight_bytes)
    header: MessageHeader = field(default_factory=MessageHeader)


def convert_socketcan_to_message(frame: Frame) -> CanMessage:
    """Message with the fields of ``frame``; all eight data bytes are copied."""
    return CanMessage(
        id=frame.id,
        dlc=frame.dlc,
        is_error=frame.is_error,
        is_rtr=frame.is_rtr,
        is_extended=frame.is_extended,
        data=[b & 0xFF for b in frame.data[:8]],
    )


def convert_message_to_socketcan(msg: CanMessage) -> Frame:
    """Frame with the fields of ``msg``; all eight data bytes are copied."""
    return Frame(
        id=msg.id,
        is_extended=bool(msg.is_extended),
        is_rtr=bool(msg.is_rtr),
        is_error=bool(msg.is_error),
        data=[b & 0xFF for b in msg.data[:8]],
        dlc=msg.dlc & 0xFF,
    )


def _log_state(driver: DriverInterface, state: State) -> None:
    description = driver.translate_error(state.internal_error) or ""
    if not state.internal_error:
        log.info("State: %s, asio: %s", description, state.error_code)
    else:
        log.error("Error: %s, asio: %s", description, state.error_code)


FilterSpec = Union[FrameFilter, int, str]


class SocketCANToTopic:
    """Publishes every valid frame the driver receives as a CanMessage."""

    def __init__(
        self,
        driver: DriverInterface,
        publish: Callable[[CanMessage], object],
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._driver = driver
        self._publish = publish
        self._clock = clock
        self._frame_listener = None
        self._state_listener = None

    def setup(self, filters: Optional[Iterable[FilterSpec]] = None) -> None:
        """Start listening; with ``filters`` only frames passing one of them."""
        if filters is None:
            self._frame_listener = self._driver.create_msg_listener(self._frame_callback)
        else:
            frame_filters = [
                f if isinstance(f, FrameFilter) else tofilter(f) for f in filters
            ]
            self._frame_listener = FilteredFrameListener(
                self._driver, self._frame_callback, frame_filters
            )
        self._state_listener = self._driver.create_state_listener(self._state_callback)

    def _frame_callback(self, frame: Frame) -> None:
        if not frame.is_valid():
            log.error(
                "Invalid frame from SocketCAN: id: %#04x, length: %d, "
                "is_extended: %d, is_error: %d, is_rtr: %d",
                frame.id, frame.dlc, frame.is_extended, frame.is_error, frame.is_rtr,
            )
            return
        if frame.is_error:
            log.warning("Received frame is error: %s", frame_to_string(frame, True))

        msg = convert_socketcan_to_message(frame)
        msg.header.frame_id = ""
        msg.header.stamp = self._clock()
        self._publish(msg)

    def _state_callback(self, state: State) -> None:
        _log_state(self._driver, state)


class TopicToSocketCAN:
    """Sends received CanMessages through the driver."""

    def __init__(self, driver: DriverInterface) -> None:
        self._driver = driver
        self._state_listener = None

    def setup(self) -> None:
        """Start logging state changes of the driver."""
        self._state_listener = self._driver.create_state_listener(self._state_callback)

    def on_message(self, msg: CanMessage) -> bool:
        """Send ``msg``; False if it is invalid or could not be sent."""
        frame = convert_message_to_socketcan(msg)
        if not frame.is_valid():
            log.error(
                "Invalid frame from topic: id: %#04x, length: %d, is_extended: %d",
                msg.id, msg.dlc, msg.is_extended,
            )
            return False
        if not self._driver.send(frame):
            log.error("Failed to send message: %s.", frame_to_string(frame, True))
            return False
        return True

    def _state_callback(self, state: State) -> None:
        _log_state(self._driver, state)