"""CAN headers, frames and driver state."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import IntEnum

ID_MASK = (1 << 29) - 1
ERROR_MASK = 1 << 29
RTR_MASK = 1 << 30
EXTENDED_MASK = 1 << 31


@dataclass
class Header:
    """CAN identifier with its meta flags."""

    ID_MASK = ID_MASK
    ERROR_MASK = ERROR_MASK
    RTR_MASK = RTR_MASK
    EXTENDED_MASK = EXTENDED_MASK

    id: int = 0
    is_extended: bool = False
    is_rtr: bool = False
    is_error: bool = False

    def __post_init__(self) -> None:
        self.id &= ID_MASK

    def is_valid(self) -> bool:
        """Whether the id fits into 11 or 29 bits, depending on is_extended."""
        limit = (1 << 29) if self.is_extended else (1 << 11)
        return self.id < limit

    def fullid(self) -> int:
        """The id with the error, rtr and extended flags folded in."""
        return (
            (self.id & ID_MASK)
            | (ERROR_MASK if self.is_error else 0)
            | (RTR_MASK if self.is_rtr else 0)
            | (EXTENDED_MASK if self.is_extended else 0)
        )

    def key(self) -> int:
        """Dispatch key: all error frames share one key."""
        return ERROR_MASK if self.is_error else self.fullid()


def msg_header(id: int = 0, rtr: bool = False) -> Header:
    """Standard (11 bit) header."""
    return Header(id=id, is_extended=False, is_rtr=rtr, is_error=False)


def extended_header(id: int = 0, rtr: bool = False) -> Header:
    """Extended (29 bit) header."""
    return Header(id=id, is_extended=True, is_rtr=rtr, is_error=False)


def error_header(id: int = 0) -> Header:
    """Header of an error frame."""
    return Header(id=id, is_extended=False, is_rtr=False, is_error=True)


def _empty_data() -> list[int]:
    return [0] * 8


@dataclass
class Frame(Header):
    """A CAN frame: header, up to eight data bytes and their count."""

    data: list[int] = field(default_factory=_empty_data)
    dlc: int = 0

    @classmethod
    def from_header(cls, header: Header, dlc: int = 0) -> "Frame":
        return cls(
            id=header.id,
            is_extended=header.is_extended,
            is_rtr=header.is_rtr,
            is_error=header.is_error,
            dlc=dlc,
        )

    @property
    def header(self) -> Header:
        return Header(
            id=self.id,
            is_extended=self.is_extended,
            is_rtr=self.is_rtr,
            is_error=self.is_error,
        )

    def is_valid(self) -> bool:
        """Whether the header and the length are valid."""
        return self.dlc <= 8 and super().is_valid()


class DriverState(IntEnum):
    CLOSED = 0
    OPEN = 1
    READY = 2


@dataclass
class State:
    """Driver state with device and driver specific error information."""

    driver_state: DriverState = DriverState.CLOSED
    error_code: int = 0
    internal_error: int = 0

    def is_ready(self) -> bool:
        return self.driver_state == DriverState.READY