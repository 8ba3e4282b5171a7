import pytest

from canlink.dispatcher import FilteredDispatcher, SimpleDispatcher
from canlink.driver import DriverInterface
from canlink.frame import DriverState, Frame, State, msg_header

METHODS = {
    "send",
    "create_msg_listener",
    "create_msg_listener_for",
    "create_state_listener",
    "init",
    "recover",
    "get_state",
    "shutdown",
    "translate_error",
    "does_loop_back",
    "run",
}


class _Loop(DriverInterface):
    def __init__(self):
        self.frames = FilteredDispatcher()
        self.states = SimpleDispatcher()
        self.state = State()

    def send(self, frame):
        self.frames.dispatch_keyed(frame.key(), frame)
        return True

    def create_msg_listener(self, callback):
        return self.frames.create_listener(callback)

    def create_msg_listener_for(self, header, callback):
        return self.frames.create_keyed_listener(header.key(), callback)

    def create_state_listener(self, callback):
        return self.states.create_listener(callback)

    def init(self, device, loopback, settings):
        self.state.driver_state = DriverState.READY
        self.states.dispatch(self.state)
        return True

    def recover(self):
        return True

    def get_state(self):
        return self.state

    def shutdown(self):
        self.state.driver_state = DriverState.CLOSED

    def translate_error(self, internal_error):
        return None

    def does_loop_back(self):
        return True

    def run(self):
        pass


def test_base_cannot_be_instantiated():
    with pytest.raises(TypeError):
        DriverInterface()


def test_instantiation_error_names_every_abstract_method():
    with pytest.raises(TypeError) as excinfo:
        DriverInterface()
    message = str(excinfo.value)
    for name in METHODS:
        assert name in message


def test_complete_driver_delivers_through_listeners():
    driver = _Loop()
    got = []
    keyed = []
    states = []
    l1 = driver.create_msg_listener(got.append)
    l2 = driver.create_msg_listener_for(msg_header(0x10), keyed.append)
    l3 = driver.create_state_listener(lambda s: states.append(s.driver_state))
    assert driver.init("bus", True, None)
    f1 = Frame.from_header(msg_header(0x10))
    f2 = Frame.from_header(msg_header(0x11))
    driver.send(f1)
    driver.send(f2)
    assert got == [f1, f2]
    assert keyed == [f1]
    assert states == [DriverState.READY]
    del l1, l2, l3