"""Print every frame and state change of a CAN device."""

from __future__ import annotations

import sys
from typing import Optional, Sequence

from canlink.dummy import DummyInterface
from canlink.frame import Frame, State
from canlink.settings import NoSettings
from canlink.socketcan import SocketCANInterface

_DRIVERS = {"socketcan": SocketCANInterface, "dummy": DummyInterface}


def format_frame(frame: Frame) -> str:
    """One line: kind and hex id, then ``r`` or the length and hex data bytes."""
    if frame.is_error:
        kind = "E"
    elif frame.is_extended:
        kind = "e"
    else:
        kind = "s"
    text = f"{kind} {frame.id:x}\t"
    if frame.is_rtr:
        return text + "r"
    payload = "".join(f" {b & 0xFF:x}" for b in frame.data[: frame.dlc])
    return f"{text}{frame.dlc}{payload}"


def format_state(state: State, description: str) -> str:
    """One line describing a driver state."""
    return (
        f"STATE: driver_state={int(state.driver_state)} "
        f"internal_error={state.internal_error}('{description}') "
        f"asio: {state.error_code}"
    )


def main(argv: Optional[Sequence[str]] = None) -> int:
    """candump DEVICE [DRIVER]"""
    args = sys.argv[1:] if argv is None else list(argv)
    if len(args) not in (1, 2):
        print(f"usage: candump DEVICE [{'|'.join(_DRIVERS)}]")
        return 1

    device = args[0]
    name = args[1] if len(args) == 2 else "socketcan"
    factory = _DRIVERS.get(name)
    if factory is None:
        print(f"unknown driver: {name}", file=sys.stderr)
        return 1
    driver = factory()

    def print_state(state: State) -> None:
        description = driver.translate_error(state.internal_error) or ""
        print(format_state(state, description), flush=True)

    frame_printer = driver.create_msg_listener(lambda f: print(format_frame(f), flush=True))
    state_printer = driver.create_state_listener(print_state)

    try:
        ok = driver.init(device, False, NoSettings())
    except KeyError as exc:
        print(exc.args[0] if exc.args else exc, file=sys.stderr)
        return 1
    if not ok:
        print_state(driver.get_state())
        return 1

    try:
        driver.run()
    except KeyboardInterrupt:
        pass
    finally:
        driver.shutdown()
        del frame_printer, state_printer
    return 0