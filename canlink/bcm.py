"""Cyclic transmission through the SocketCAN broadcast manager."""

from __future__ import annotations

import socket
import struct
import sys
import threading
from datetime import timedelta
from typing import Optional, Sequence, Union

from canlink.canstring import frame_to_string, header_to_string, toframe
from canlink.frame import Frame, Header

TX_SETUP = 1
TX_DELETE = 2
SETTIMER = 0x0001
STARTTIMER = 0x0002

CAN_EFF_FLAG = 0x80000000
MAX_FRAMES = 256

_HEAD = struct.Struct("@3I4l2I0q")
_CAN_FRAME = struct.Struct("=IB3x8s")

Period = Union[float, int, timedelta]


def _microseconds(period: Period) -> int:
    if isinstance(period, timedelta):
        return period // timedelta(microseconds=1)
    return int(period * 1_000_000)


def _can_id(header: Header) -> int:
    return (header.id | (CAN_EFF_FLAG if header.is_extended else 0)) & 0xFFFFFFFF


def _build_message(
    opcode: int, flags: int, usec: int, header: Header, frames: Sequence[Frame]
) -> bytes:
    if len(frames) > MAX_FRAMES:
        raise ValueError(f"at most {MAX_FRAMES} frames, got {len(frames)}")
    can_id = _can_id(header)
    head = _HEAD.pack(
        opcode, flags, 0, 0, 0, usec // 1_000_000, usec % 1_000_000, can_id, len(frames)
    )
    body = b"".join(
        _CAN_FRAME.pack(
            can_id,
            frame.dlc & 0xFF,
            bytes(b & 0xFF for b in frame.data[: min(frame.dlc, 8)]).ljust(8, b"\0"),
        )
        for frame in frames
    )
    return head + body


def build_tx_setup(period: Period, header: Header, frames: Sequence[Frame]) -> bytes:
    """TX_SETUP message that sends ``frames`` in turn every ``period`` seconds."""
    return _build_message(
        TX_SETUP, SETTIMER | STARTTIMER, _microseconds(period), header, list(frames)
    )


class BCMSocket:
    """Broadcast manager socket bound to one CAN device."""

    def __init__(self) -> None:
        self._socket: Optional[socket.socket] = None

    def init(self, device: str) -> bool:
        """Connect to ``device``; False if that fails."""
        self.shutdown()
        if not all(hasattr(socket, n) for n in ("AF_CAN", "CAN_BCM")):
            return False
        try:
            sock = socket.socket(socket.AF_CAN, socket.SOCK_DGRAM, socket.CAN_BCM)
        except OSError:
            return False
        try:
            sock.connect((device,))
        except OSError:
            sock.close()
            return False
        self._socket = sock
        return True

    def _write(self, message: bytes) -> bool:
        if self._socket is None:
            return False
        try:
            return self._socket.send(message) > 0
        except OSError:
            return False

    def start_tx(self, period: Period, header: Header, frames: Sequence[Frame]) -> bool:
        """Start sending ``frames`` cyclically with the id of ``header``."""
        return self._write(build_tx_setup(period, header, frames))

    def stop_tx(self, header: Header) -> bool:
        """Stop the cyclic transmission for ``header``."""
        return self._write(_build_message(TX_DELETE, 0, 0, header, []))

    def shutdown(self) -> None:
        sock, self._socket = self._socket, None
        if sock is not None:
            sock.close()

    def __enter__(self) -> "BCMSocket":
        return self

    def __exit__(self, *exc) -> None:
        self.shutdown()


def main(argv: Optional[Sequence[str]] = None) -> int:
    """Send frames cyclically: DEVICE PERIOD HEADER#DATA [DATA*]."""
    args = sys.argv[1:] if argv is None else list(argv)
    if len(args) < 3:
        print("usage: canbcm DEVICE PERIOD HEADER#DATA [DATA*]")
        return 1

    bcm = BCMSocket()
    if not bcm.init(args[0]):
        return 2

    first = toframe(args[2])
    header = first.header
    prefix = header_to_string(header, True) + "#"
    frames = [first] + [toframe(prefix + data) for data in args[3:]]
    for frame in frames:
        print(frame_to_string(frame, True))

    with bcm:
        if bcm.start_tx(float(args[1]), header, frames):
            try:
                threading.Event().wait()
            except KeyboardInterrupt:
                pass
            return 0
    return 4