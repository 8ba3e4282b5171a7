from canlink.frame import DriverState, Frame
from canlink.settings import NoSettings, SettingsMap
from canlink.socketcan import (
    CAN_ERR_ACK,
    CAN_ERR_BUSERROR,
    CAN_ERR_BUSOFF,
    CAN_ERR_CRTL,
    CAN_ERR_LOSTARB,
    CAN_ERR_PROT,
    CAN_ERR_RESTARTED,
    CAN_ERR_TRX,
    CAN_ERR_TX_TIMEOUT,
    SocketCANInterface,
    ThreadedSocketCANInterface,
    parse_error_mask,
)

FATAL = CAN_ERR_TX_TIMEOUT | CAN_ERR_BUSOFF | CAN_ERR_BUSERROR | CAN_ERR_RESTARTED
REPORT = CAN_ERR_LOSTARB | CAN_ERR_CRTL | CAN_ERR_PROT | CAN_ERR_TRX | CAN_ERR_ACK


def test_socketcan_masks():
    sci = SocketCANInterface()

    sci.init("None", False, NoSettings())
    assert sci.error_mask == FATAL | REPORT
    assert sci.fatal_error_mask == FATAL

    m1 = SettingsMap()
    m1.set("error_mask/CAN_ERR_LOSTARB", False)
    sci.init("None", False, m1)
    assert sci.error_mask == (FATAL | REPORT) & ~CAN_ERR_LOSTARB
    assert sci.fatal_error_mask == FATAL

    m2 = SettingsMap()
    m2.set("error_mask/CAN_ERR_TX_TIMEOUT", False)
    sci.init("None", False, m2)
    assert sci.error_mask == FATAL | REPORT
    assert sci.fatal_error_mask == FATAL

    m3 = SettingsMap()
    m3.set("fatal_error_mask/CAN_ERR_TX_TIMEOUT", False)
    sci.init("None", False, m3)
    assert sci.error_mask == (FATAL | REPORT) & ~CAN_ERR_TX_TIMEOUT
    assert sci.fatal_error_mask == FATAL & ~CAN_ERR_TX_TIMEOUT

    m4 = SettingsMap()
    m4.set("fatal_error_mask/CAN_ERR_TX_TIMEOUT", False)
    m4.set("error_mask/CAN_ERR_LOSTARB", False)
    sci.init("None", False, m4)
    assert sci.error_mask == (FATAL | REPORT) & ~(CAN_ERR_TX_TIMEOUT | CAN_ERR_LOSTARB)
    assert sci.fatal_error_mask == FATAL & ~CAN_ERR_TX_TIMEOUT


def test_busoff_is_always_fatal():
    sci = SocketCANInterface()
    settings = SettingsMap()
    settings.set("fatal_error_mask/CAN_ERR_BUSOFF", False)
    sci.init("None", False, settings)
    assert sci.fatal_error_mask & CAN_ERR_BUSOFF == CAN_ERR_BUSOFF
    assert sci.fatal_error_mask == FATAL
    assert sci.error_mask == FATAL | REPORT


def test_parse_error_mask_defaults():
    assert parse_error_mask(NoSettings(), "error_mask", FATAL) == FATAL
    assert parse_error_mask(NoSettings(), "error_mask", 0) == 0


def test_parse_error_mask_overrides():
    settings = SettingsMap()
    settings.set("x/CAN_ERR_BUSOFF", False)
    settings.set("x/CAN_ERR_ACK", True)
    assert parse_error_mask(settings, "x", FATAL) == (FATAL & ~CAN_ERR_BUSOFF) | CAN_ERR_ACK


def test_translate_error():
    sci = SocketCANInterface()
    assert sci.translate_error(0) == "OK"
    assert sci.translate_error(CAN_ERR_BUSOFF) == "bus off;"
    assert (
        sci.translate_error(CAN_ERR_TX_TIMEOUT | CAN_ERR_LOSTARB)
        == "TX timeout (by netdevice driver);lost arbitration;"
    )
    assert sci.translate_error(CAN_ERR_ACK) is None


def test_failed_init_reports_error_state():
    sci = SocketCANInterface()
    states = []
    listener = sci.create_state_listener(states.append)
    assert sci.init("None", True, NoSettings()) is False
    assert sci.get_state().driver_state == DriverState.CLOSED
    assert sci.get_state().error_code > 0
    assert states and states[-1].error_code == sci.get_state().error_code
    assert sci.does_loop_back() is True
    assert listener is not None and sci.internal_socket == -1


def test_send_requires_ready_state():
    sci = SocketCANInterface()
    assert sci.send(Frame(id=0x123, dlc=1)) is False


def test_run_without_device_stays_closed():
    sci = SocketCANInterface()
    states = []
    listener = sci.create_state_listener(states.append)
    sci.run()
    assert states[-1].driver_state == DriverState.CLOSED
    assert listener is not None


def test_threaded_init_failure():
    driver = ThreadedSocketCANInterface()
    assert driver.init("None", False, NoSettings()) is False
    assert driver.get_state().is_ready() is False
    driver.shutdown()
    assert driver.get_state().driver_state == DriverState.CLOSED


def test_recover_on_missing_device_fails():
    sci = SocketCANInterface()
    sci.init("None", False, NoSettings())
    assert sci.recover() is False
    assert sci.device == "None"