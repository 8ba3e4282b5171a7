# canlink

Tools for working with CAN bus traffic from Python:

- `canlink.frame`: `Header` and `Frame` values with CAN identifier rules
  (11-bit standard, 29-bit extended, RTR and error flags) and the driver
  `State`.
- `canlink.canstring`: a compact text notation for frames (`123#DEADBEEF`)
  and filters (`123:7ff`, `120-125`).
- `canlink.dispatcher`, `canlink.filter`, `canlink.reader`: listener
  dispatchers, frame filters and a buffered reader for blocking reads.
- `canlink.socketcan` and `canlink.bcm`: a SocketCAN raw driver and a
  broadcast-manager (BCM) socket for Linux.
- `canlink.dummy`: an in-process dummy bus, so code that talks CAN can be
  tested without hardware.
- `canlink.unit_converter`: an expression-based unit converter.
- `canlink.bridge`: conversion between frames and plain `CanMessage`
  records, and bridges that hand them to or take them from your own
  callables.

## Installing

```
pip install .
```

The SocketCAN parts need Linux with a CAN interface (for example a virtual
`vcan0`). Everything else runs anywhere.

## Frame notation

```python
from canlink.canstring import toframe, frame_to_string

frame = toframe("123#1234567812345678")
assert frame.is_valid()
assert frame_to_string(frame, True) == "123#1234567812345678"
```

An identifier written with eight hex digits and a value beyond 11 bits is
extended; the top bits of the value carry the extended, RTR and error flags.
A frame that cannot be parsed comes back with an invalid identifier, so check
`is_valid()`.

## Filters

```python
from canlink.canstring import tofilter, toframe

mask = tofilter("123:ffe")      # key & mask must match id & mask
assert mask.passes(toframe("122#"))
assert not mask.passes(toframe("124#"))

span = tofilter("120-125")      # inclusive range; "_" inverts it, "~" inverts a mask
assert span.passes(toframe("125#"))
```

`tofilters` builds a list from several specs; a plain integer gives a mask
filter for that id. `FilteredFrameListener(driver, callback, filters)` calls
`callback` for frames that pass any of the filters.

## Testing without hardware

```python
from canlink.canstring import toframe, frame_to_string
from canlink.dummy import DummyBus, ThreadedDummyInterface
from canlink.settings import NoSettings

bus = DummyBus("test-bus")
driver = ThreadedDummyInterface()
driver.init(bus.name, True, NoSettings())

seen = []
listener = driver.create_msg_listener(lambda f: seen.append(frame_to_string(f, True)))

driver.send(toframe("0#8200"))
driver.flush()
assert seen == ["0#8200"]

driver.shutdown()
bus.close()
```

Keep the listener object alive for as long as you want callbacks; dropping it
unregisters the callback. `DummyReplay` answers scripted requests on a dummy
bus (`add("0#8200", ["701#00", "701#04"])`, then `done()` tells whether every
request was seen), which is handy for simulating a device.

## Buffered reading

```python
from canlink.reader import BufferedReader

reader = BufferedReader()
reader.listen(driver)           # or listen(driver, header) for one id
frame = reader.read(0.5)        # None after half a second without a frame
```

## Unit conversion

```python
from canlink.unit_converter import UnitConverter, Variable, assign_variable

position = Variable()
conv = UnitConverter("norm(in,-1000,1000)",
                     lambda name: assign_variable("in", position, name))
position.value = 1001
assert conv.evaluate() == -999
```

Expressions support arithmetic, comparisons, `? :`, assignment, the
constants `pi` and `nan`, common math functions and `rad2deg`, `deg2rad`,
`norm`, `smooth` and `avg`. Names the lookup does not provide become internal
variables that start as NaN; `reset()` sets them back to NaN.

## Bridging to messages

`SocketCANToTopic(driver, publish)` turns every valid received frame into a
`CanMessage` and passes it to `publish`; `setup(filters)` limits it to frames
passing the given filters or filter specs. `TopicToSocketCAN(driver)`
converts a `CanMessage` with `on_message(msg)` and sends it, returning
`False` for an invalid frame or a failed send.

## Settings

Drivers take a `Settings` object. `NoSettings` provides nothing,
`SettingsMap` holds flat name/value pairs, and `NestedSettings` looks up
slash-separated names such as `error_mask/CAN_ERR_LOSTARB` in nested
dictionaries. `SocketCANInterface.init` reads `error_mask/CAN_ERR_*` and
`fatal_error_mask/CAN_ERR_*` booleans from them; bus-off is always fatal and
fatal errors are always reported.

## Command-line tools

Print every frame and state change received on an interface:

```
candump can0
```

Send one or more frames periodically through the broadcast manager
(period in seconds; extra data fields reuse the first frame's identifier):

```
canbcm can0 0.1 123#1122 3344
```

## What it does not do

The package has no message middleware of its own: the bridges work with
plain callables and `CanMessage` records, not with a publish/subscribe
system. It has no CANopen or motor-control layers, and `candump` cannot load
driver plug-ins; it only knows the built-in drivers.