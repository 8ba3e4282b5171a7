import pytest

from canlink.bridge import (
    CanMessage,
    SocketCANToTopic,
    TopicToSocketCAN,
    convert_message_to_socketcan,
    convert_socketcan_to_message,
)
from canlink.canstring import frame_to_string, tofilter, tofilters, toframe
from canlink.dummy import DummyBus, ThreadedDummyInterface
from canlink.frame import Frame
from canlink.settings import NoSettings


@pytest.fixture
def dummy(request):
    bus = DummyBus("bridge-" + request.node.name)
    driver = ThreadedDummyInterface()
    assert driver.init(bus.name, True, NoSettings())
    yield driver
    driver.shutdown()
    bus.close()


def _frame_1337():
    return Frame(id=0x1337, is_extended=True, dlc=8, data=list(range(8)))


def test_socketcan_to_topic_standard():
    frame = Frame(id=127, dlc=8, data=list(range(8)))
    msg = convert_socketcan_to_message(frame)
    assert msg.id == 127
    assert msg.dlc == 8
    assert msg.is_error is False
    assert msg.is_rtr is False
    assert msg.is_extended is False
    assert msg.data == list(range(8))


def test_socketcan_to_topic_flags():
    assert convert_socketcan_to_message(Frame(is_error=True)).is_error is True
    assert convert_socketcan_to_message(Frame(is_rtr=True)).is_rtr is True
    assert convert_socketcan_to_message(Frame(is_extended=True)).is_extended is True


def test_topic_to_socketcan_standard():
    msg = CanMessage(id=127, dlc=8, data=list(range(8)))
    frame = convert_message_to_socketcan(msg)
    assert frame.id == 127
    assert frame.dlc == 8
    assert frame.is_error is False
    assert frame.is_rtr is False
    assert frame.is_extended is False
    assert frame.data == list(range(8))


def test_topic_to_socketcan_flags():
    assert convert_message_to_socketcan(CanMessage(is_error=True)).is_error is True
    assert convert_message_to_socketcan(CanMessage(is_rtr=True)).is_rtr is True
    assert convert_message_to_socketcan(CanMessage(is_extended=True)).is_extended is True


def test_to_topic_correct_data(dummy):
    published = []
    bridge = SocketCANToTopic(dummy, published.append, clock=lambda: 42.0)
    bridge.setup()
    sent = _frame_1337()
    dummy.send(sent)
    dummy.flush()

    assert len(published) == 1
    msg = published[-1]
    assert msg.header.frame_id == ""
    assert msg.header.stamp == 42.0
    received = convert_message_to_socketcan(msg)
    assert received.id == sent.id
    assert received.dlc == sent.dlc
    assert received.is_extended == sent.is_extended
    assert received.is_rtr == sent.is_rtr
    assert received.is_error == sent.is_error
    assert received.data == sent.data


def test_to_topic_invalid_frame_handling(dummy):
    published = []
    bridge = SocketCANToTopic(dummy, published.append)
    bridge.setup()

    dummy.send(Frame(id=(1 << 11) + 1, is_extended=False))
    dummy.flush()
    assert len(published) == 0

    dummy.send(Frame(id=(1 << 11) + 1, is_extended=True))
    dummy.flush()
    assert len(published) == 1


def test_to_topic_correct_can_id_filter(dummy):
    published = []
    bridge = SocketCANToTopic(dummy, published.append)
    bridge.setup(tofilters([0x1337]))
    sent = _frame_1337()
    dummy.send(sent)
    dummy.flush()

    assert len(published) == 1
    received = convert_message_to_socketcan(published[-1])
    assert received.id == sent.id
    assert received.data == sent.data
    assert received.is_extended is True


def test_to_topic_invalid_can_id_filter(dummy):
    published = []
    bridge = SocketCANToTopic(dummy, published.append)
    bridge.setup(tofilters([0x300]))
    dummy.send(_frame_1337())
    dummy.flush()
    assert len(published) == 0


def test_to_topic_mask_filter(dummy):
    published = []
    bridge = SocketCANToTopic(dummy, published.append)
    bridge.setup([tofilter("300:ffe")])

    pass1, nopass1, pass2 = "300#1234", "302#9999", "301#5678"
    for text in (pass1, nopass1, pass2):
        dummy.send(toframe(text))
    dummy.flush()

    assert len(published) == 2
    assert frame_to_string(convert_message_to_socketcan(published[0]), True) == pass1
    assert frame_to_string(convert_message_to_socketcan(published[1]), True) == pass2


def test_to_topic_accepts_filter_specs(dummy):
    published = []
    bridge = SocketCANToTopic(dummy, published.append)
    bridge.setup(["300:ffe"])
    dummy.send(toframe("301#01"))
    dummy.send(toframe("302#02"))
    dummy.flush()
    assert [m.id for m in published] == [0x301]


def test_to_socketcan_correct_data(dummy):
    frames = []
    listener = dummy.create_msg_listener(frames.append)
    bridge = TopicToSocketCAN(dummy)
    bridge.setup()

    msg = CanMessage(id=0x1337, dlc=8, is_extended=True, data=list(range(8)))
    assert bridge.on_message(msg) is True
    dummy.flush()

    assert len(frames) >= 1
    received = convert_socketcan_to_message(frames[-1])
    assert received.id == msg.id
    assert received.dlc == msg.dlc
    assert received.is_extended == msg.is_extended
    assert received.is_rtr == msg.is_rtr
    assert received.is_error == msg.is_error
    assert received.data == msg.data
    del listener


def test_to_socketcan_invalid_frame_handling(dummy):
    frames = []
    listener = dummy.create_msg_listener(frames.append)
    bridge = TopicToSocketCAN(dummy)
    bridge.setup()

    msg = CanMessage(id=(1 << 11) + 1, is_extended=False)
    assert bridge.on_message(msg) is False
    dummy.flush()
    assert len(frames) == 0

    msg.is_extended = True
    assert bridge.on_message(msg) is True
    dummy.flush()
    assert len(frames) == 1

    frames.clear()
    msg.dlc = 10
    assert bridge.on_message(msg) is False
    dummy.flush()
    assert len(frames) == 0
    del listener