"""CAN driver on top of Linux SocketCAN raw sockets."""

from __future__ import annotations

import errno
import logging
import select
import socket
import struct
import threading
from dataclasses import replace
from typing import Optional

from canlink.dispatcher import FilteredDispatcher, Listener, SimpleDispatcher
from canlink.driver import DriverInterface
from canlink.frame import DriverState, Frame, Header, State
from canlink.settings import NoSettings, Settings
from canlink.threaded import ThreadedMixin

log = logging.getLogger(__name__)

CAN_EFF_FLAG = 0x80000000
CAN_RTR_FLAG = 0x40000000
CAN_ERR_FLAG = 0x20000000
CAN_SFF_MASK = 0x000007FF
CAN_EFF_MASK = 0x1FFFFFFF

CAN_ERR_TX_TIMEOUT = 0x00000001
CAN_ERR_LOSTARB = 0x00000002
CAN_ERR_CRTL = 0x00000004
CAN_ERR_PROT = 0x00000008
CAN_ERR_TRX = 0x00000010
CAN_ERR_ACK = 0x00000020
CAN_ERR_BUSOFF = 0x00000040
CAN_ERR_BUSERROR = 0x00000080
CAN_ERR_RESTARTED = 0x00000100

FATAL_ERRORS = CAN_ERR_TX_TIMEOUT | CAN_ERR_BUSOFF | CAN_ERR_BUSERROR | CAN_ERR_RESTARTED
REPORT_ERRORS = CAN_ERR_LOSTARB | CAN_ERR_CRTL | CAN_ERR_PROT | CAN_ERR_TRX | CAN_ERR_ACK

_ERROR_BITS = (
    ("CAN_ERR_LOSTARB", CAN_ERR_LOSTARB),
    ("CAN_ERR_CRTL", CAN_ERR_CRTL),
    ("CAN_ERR_PROT", CAN_ERR_PROT),
    ("CAN_ERR_TRX", CAN_ERR_TRX),
    ("CAN_ERR_ACK", CAN_ERR_ACK),
    ("CAN_ERR_TX_TIMEOUT", CAN_ERR_TX_TIMEOUT),
    ("CAN_ERR_BUSOFF", CAN_ERR_BUSOFF),
    ("CAN_ERR_BUSERROR", CAN_ERR_BUSERROR),
    ("CAN_ERR_RESTARTED", CAN_ERR_RESTARTED),
)

_ERROR_DESCRIPTIONS = (
    (CAN_ERR_TX_TIMEOUT, "TX timeout (by netdevice driver);"),
    (CAN_ERR_LOSTARB, "lost arbitration;"),
    (CAN_ERR_CRTL, "controller problems;"),
    (CAN_ERR_PROT, "protocol violations;"),
    (CAN_ERR_TRX, "transceiver status;"),
    (CAN_ERR_BUSOFF, "bus off;"),
    (CAN_ERR_RESTARTED, "controller restarted;"),
)

_SOL_CAN_RAW = getattr(socket, "SOL_CAN_RAW", 101)
_CAN_RAW_ERR_FILTER = getattr(socket, "CAN_RAW_ERR_FILTER", 2)
_CAN_RAW_RECV_OWN_MSGS = getattr(socket, "CAN_RAW_RECV_OWN_MSGS", 4)

_CAN_FRAME = struct.Struct("=IB3x8s")


def parse_error_mask(settings: Settings, entry: str, defaults: int) -> int:
    """Error mask from ``entry/CAN_ERR_*`` boolean settings, defaulting to ``defaults``."""
    mask = 0
    for name, bit in _ERROR_BITS:
        if settings.get_optional(f"{entry}/{name}", bool(defaults & bit)):
            mask |= bit
    return mask


def _errno_of(exc: Exception, fallback: int = errno.EIO) -> int:
    if isinstance(exc, OSError) and exc.errno:
        return exc.errno
    return fallback


def _create_raw_socket() -> socket.socket:
    if not all(hasattr(socket, n) for n in ("AF_CAN", "CAN_RAW")):
        raise OSError(errno.EAFNOSUPPORT, "SocketCAN is not available")
    return socket.socket(socket.AF_CAN, socket.SOCK_RAW, socket.CAN_RAW)


class SocketCANInterface(DriverInterface):
    """Driver for a SocketCAN network device such as ``can0``."""

    def __init__(self) -> None:
        self._frame_dispatcher = FilteredDispatcher()
        self._state_dispatcher = SimpleDispatcher()
        self._state = State()
        self._state_lock = threading.RLock()
        self._send_lock = threading.Lock()
        self._socket: Optional[socket.socket] = None
        self._stop = threading.Event()
        self._device = ""
        self._loopback = False
        self._error_mask = 0
        self._fatal_error_mask = 0

    @property
    def error_mask(self) -> int:
        return self._error_mask

    @property
    def fatal_error_mask(self) -> int:
        return self._fatal_error_mask

    @property
    def device(self) -> str:
        return self._device

    @property
    def internal_socket(self) -> int:
        sock = self._socket
        return sock.fileno() if sock is not None else -1

    def _set_error_code(self, code: int) -> None:
        with self._state_lock:
            if self._state.error_code != code:
                self._state.error_code = code
                self._state_dispatcher.dispatch(replace(self._state))

    def _set_internal_error(self, internal_error: int) -> None:
        with self._state_lock:
            if self._state.internal_error != internal_error:
                self._state.internal_error = internal_error
                self._state_dispatcher.dispatch(replace(self._state))

    def _set_driver_state(self, driver_state: DriverState) -> None:
        with self._state_lock:
            if self._state.driver_state != driver_state:
                self._state.driver_state = driver_state
                self._state_dispatcher.dispatch(replace(self._state))

    def _set_not_ready(self) -> None:
        self._set_driver_state(
            DriverState.OPEN if self._socket is not None else DriverState.CLOSED
        )

    def get_state(self) -> State:
        with self._state_lock:
            return replace(self._state)

    def does_loop_back(self) -> bool:
        return self._loopback

    def init(self, device: str, loopback: bool, settings: Optional[Settings] = None) -> bool:
        """Open ``device``; error masks are read from ``settings``."""
        settings = NoSettings() if settings is None else settings
        fatal = parse_error_mask(settings, "fatal_error_mask", FATAL_ERRORS) | CAN_ERR_BUSOFF
        error = parse_error_mask(settings, "error_mask", REPORT_ERRORS | fatal) | fatal
        return self._open(device, loopback, error, fatal)

    def _open(self, device: str, loopback: bool, error_mask: int, fatal_error_mask: int) -> bool:
        state = self.get_state()
        if state.driver_state != DriverState.CLOSED:
            return state.is_ready()

        self._device = device
        self._loopback = loopback
        self._error_mask = error_mask
        self._fatal_error_mask = fatal_error_mask

        try:
            sock = _create_raw_socket()
        except OSError as exc:
            self._set_error_code(_errno_of(exc))
            return False
        try:
            socket.if_nametoindex(device)
            sock.setsockopt(_SOL_CAN_RAW, _CAN_RAW_ERR_FILTER, error_mask)
            if loopback:
                sock.setsockopt(_SOL_CAN_RAW, _CAN_RAW_RECV_OWN_MSGS, 1)
            sock.bind((device,))
        except OSError as exc:
            sock.close()
            self._set_error_code(_errno_of(exc, errno.ENODEV))
            return False

        self._set_error_code(0)
        self._socket = sock
        self._stop.clear()
        self._set_internal_error(0)
        self._set_driver_state(DriverState.OPEN)
        return True

    def recover(self) -> bool:
        """Reopen the device with the previous settings if it is not ready."""
        if not self.get_state().is_ready():
            self.shutdown()
            return self._open(
                self._device, self._loopback, self._error_mask, self._fatal_error_mask
            )
        return self.get_state().is_ready()

    def translate_error(self, internal_error: int) -> Optional[str]:
        known = False
        text = ""
        if not internal_error:
            text = "OK"
            known = True
        for bit, description in _ERROR_DESCRIPTIONS:
            if internal_error & bit:
                text += description
                known = True
        return text if known else None

    def run(self) -> None:
        """Receive and dispatch frames until the driver is shut down or fails."""
        self._set_not_ready()
        if self.get_state().driver_state == DriverState.OPEN:
            self._set_driver_state(DriverState.READY)
            self._receive_loop()
            self._set_not_ready()
        self._state_dispatcher.dispatch(self.get_state())

    def _receive_loop(self) -> None:
        sock = self._socket
        if sock is None:
            return
        while not self._stop.is_set():
            try:
                ready, _, _ = select.select([sock], [], [], 0.1)
                if not ready:
                    continue
                raw = sock.recv(_CAN_FRAME.size)
            except (OSError, ValueError) as exc:
                if not self._stop.is_set():
                    self._set_error_code(_errno_of(exc))
                return
            if len(raw) >= _CAN_FRAME.size:
                self._handle_raw(raw[: _CAN_FRAME.size])

    def _handle_raw(self, raw: bytes) -> None:
        can_id, dlc, payload = _CAN_FRAME.unpack(raw)
        count = min(dlc, 8)
        if can_id & CAN_ERR_FLAG:
            frame = Frame(id=can_id & CAN_EFF_MASK, is_error=True, dlc=dlc)
            if can_id & self._fatal_error_mask:
                log.error("internal error: %d", frame.id)
                self._set_internal_error(frame.id)
                self._set_not_ready()
        else:
            extended = bool(can_id & CAN_EFF_FLAG)
            frame = Frame(
                id=can_id & (CAN_EFF_MASK if extended else CAN_SFF_MASK),
                is_extended=extended,
                is_rtr=bool(can_id & CAN_RTR_FLAG),
                dlc=dlc,
            )
        frame.data[:count] = list(payload[:count])
        self._frame_dispatcher.dispatch_keyed(frame.key(), frame)

    def send(self, frame: Frame) -> bool:
        return self.get_state().driver_state == DriverState.READY and self._enqueue(frame)

    def _enqueue(self, frame: Frame) -> bool:
        with self._send_lock:
            sock = self._socket
            can_id = (
                frame.id
                | (CAN_EFF_FLAG if frame.is_extended else 0)
                | (CAN_RTR_FLAG if frame.is_rtr else 0)
            )
            dlc = frame.dlc & 0xFF
            payload = bytes(b & 0xFF for b in frame.data[: min(dlc, 8)]).ljust(8, b"\0")
            try:
                if sock is None:
                    raise OSError(errno.EBADF, "socket is closed")
                sock.sendall(_CAN_FRAME.pack(can_id, dlc, payload))
            except OSError as exc:
                log.error("FAILED %s", exc)
                self._set_error_code(_errno_of(exc))
                self._set_not_ready()
                return False
        return True

    def shutdown(self) -> None:
        self._stop.set()
        with self._send_lock:
            sock, self._socket = self._socket, None
        if sock is not None:
            sock.close()
        self._set_not_ready()

    def create_msg_listener(self, callback) -> Listener:
        return self._frame_dispatcher.create_listener(callback)

    def create_msg_listener_for(self, header: Header, callback) -> Listener:
        return self._frame_dispatcher.create_keyed_listener(header.key(), callback)

    def create_state_listener(self, callback) -> Listener:
        return self._state_dispatcher.create_listener(callback)


class ThreadedSocketCANInterface(ThreadedMixin, SocketCANInterface):
    """SocketCANInterface that receives in a background thread."""