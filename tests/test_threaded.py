import threading
from dataclasses import replace

from canlink.dispatcher import SimpleDispatcher
from canlink.frame import DriverState, State
from canlink.threaded import StateWaiter, ThreadedMixin


class FakeDriver:
    def __init__(self, open_ok=True):
        self.open_ok = open_ok
        self.inits = 0
        self._states = SimpleDispatcher()
        self._state = State()
        self._stop = threading.Event()

    def get_state(self):
        return replace(self._state)

    def create_state_listener(self, callback):
        return self._states.create_listener(callback)

    def set_state(self, driver_state):
        self._state.driver_state = driver_state
        self._states.dispatch(replace(self._state))

    def init(self, device, loopback, settings):
        self.inits += 1
        if not self.open_ok:
            return False
        self.set_state(DriverState.OPEN)
        return True

    def run(self):
        self.set_state(DriverState.READY)
        self._stop.wait()
        self.set_state(DriverState.OPEN)

    def shutdown(self):
        self._stop.set()


class ThreadedFake(ThreadedMixin, FakeDriver):
    pass


def test_init_starts_thread_and_becomes_ready():
    driver = ThreadedFake()
    try:
        assert driver.init("dev", False, None)
        assert StateWaiter(driver).wait(DriverState.READY, 0)
        assert driver.get_state().driver_state == DriverState.READY
    finally:
        driver.shutdown()


def test_second_init_does_not_reinitialise():
    driver = ThreadedFake()
    try:
        assert driver.init("dev", False, None)
        assert driver.init("dev", False, None)
        assert driver.inits == 1
        assert StateWaiter(driver).wait(DriverState.READY, 0)
    finally:
        driver.shutdown()


def test_shutdown_waits_for_run_to_finish():
    driver = ThreadedFake()
    driver.init("dev", False, None)
    driver.shutdown()
    assert StateWaiter(driver).wait(DriverState.OPEN, 0)
    driver.join()
    assert driver.get_state().driver_state == DriverState.OPEN


def test_failed_init_returns_false():
    driver = ThreadedFake(open_ok=False)
    assert not driver.init("dev", False, None)
    assert StateWaiter(driver).wait(DriverState.CLOSED, 0)
    assert not StateWaiter(driver).wait(DriverState.READY, 0.05)


def test_state_waiter_current_state():
    driver = FakeDriver()
    waiter = StateWaiter(driver)
    assert waiter.wait(DriverState.CLOSED, 0)


def test_state_waiter_times_out():
    driver = FakeDriver()
    waiter = StateWaiter(driver)
    assert not waiter.wait(DriverState.READY, 0.05)


def test_state_waiter_sees_change_from_other_thread():
    driver = FakeDriver()
    waiter = StateWaiter(driver)
    timer = threading.Timer(0.05, driver.set_state, [DriverState.READY])
    timer.start()
    try:
        assert waiter.wait(DriverState.READY, 2.0)
    finally:
        timer.join()