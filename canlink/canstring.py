"""Text forms of CAN headers, frames and filters."""

from __future__ import annotations

import re
from typing import Iterable, Union

from canlink.filter import FrameFilter, FrameMaskFilter, FrameRangeFilter
from canlink.frame import (
    ERROR_MASK,
    EXTENDED_MASK,
    ID_MASK,
    RTR_MASK,
    Frame,
    Header,
    msg_header,
)

_U32 = 0xFFFFFFFF
_HEX_DIGITS = re.compile(r"[0-9a-fA-F]+")
_FILTER_DELIMITERS = re.compile(r"[:~\-_]")


def hex2dec(h: str) -> int:
    """Value of a single hex digit; raises ValueError for anything else."""
    if len(h) == 1:
        if "0" <= h <= "9":
            return ord(h) - ord("0")
        if "a" <= h <= "f":
            return ord(h) - ord("a") + 10
        if "A" <= h <= "F":
            return ord(h) - ord("A") + 10
    raise ValueError(f"not a hex digit: {h!r}")


def hex2buffer(text: str, pad: bool) -> bytes:
    """Bytes spelled by a hex string.

    An odd number of digits is padded with a leading zero if ``pad`` is set,
    otherwise it raises ValueError, as does any non-hex character.
    """
    if len(text) % 2:
        if not pad:
            raise ValueError(f"odd number of hex digits: {text!r}")
        text = "0" + text
    return bytes(
        (hex2dec(hi) << 4) | hex2dec(lo) for hi, lo in zip(text[::2], text[1::2])
    )


def dec2hex(d: int, lc: bool) -> str:
    """Hex digit for a value below 16; raises ValueError otherwise."""
    if 0 <= d < 10:
        return chr(ord("0") + d)
    if 10 <= d < 16:
        return chr(ord("a" if lc else "A") + d - 10)
    raise ValueError(f"not a hex digit value: {d}")


def byte2hex(d: int, pad: bool, lc: bool) -> str:
    """One or two hex digits for a byte; two if ``pad`` or the high nibble is set."""
    d &= 0xFF
    hi = d >> 4
    text = dec2hex(hi, lc) if (hi or pad) else ""
    return text + dec2hex(d & 0xF, lc)


def buffer2hex(data: Iterable[int], lc: bool) -> str:
    """Two hex digits for each byte of ``data``."""
    return "".join(byte2hex(b, True, lc) for b in data)


def header_to_string(header: Header, lc: bool) -> str:
    """Hex form of the full id without the extended flag; 8 digits if extended."""
    value = header.fullid() & ~EXTENDED_MASK & _U32
    digits = format(value, "x" if lc else "X")
    return digits.rjust(8, "0") if header.is_extended else digits


def frame_to_string(frame: Frame, lc: bool) -> str:
    """``HEADER#DATA`` form of a frame."""
    payload = [b & 0xFF for b in frame.data[: frame.dlc]]
    return header_to_string(frame, lc) + "#" + buffer2hex(payload, lc)


def tohex(s: str) -> int:
    """Leading hex number of ``s`` as an unsigned 32 bit value; 0 if there is none."""
    text = s.lstrip()
    negative = False
    if text[:1] in ("+", "-"):
        negative = text[0] == "-"
        text = text[1:]
    if text[:2] in ("0x", "0X") and _HEX_DIGITS.match(text, 2):
        text = text[2:]
    match = _HEX_DIGITS.match(text)
    if match is None:
        return 0
    value = int(match.group(), 16)
    if value > _U32:
        return _U32
    return (-value) & _U32 if negative else value


def toheader(s: str) -> Header:
    """Header from its hex form.

    Eight digits with an id beyond 11 bits mark an extended header as well.
    """
    h = tohex(s)
    can_id = h & ID_MASK
    extended = bool(h & EXTENDED_MASK) or (len(s) == 8 and can_id >= (1 << 11))
    return Header(
        id=can_id,
        is_extended=extended,
        is_rtr=bool(h & RTR_MASK),
        is_error=bool(h & ERROR_MASK),
    )


def _invalid_frame() -> Frame:
    return Frame.from_header(msg_header(0xFFF))


def toframe(s: str) -> Frame:
    """Frame from ``HEADER#DATA``; an invalid frame if the text is malformed."""
    head, sep, payload = s.partition("#")
    if not sep:
        return _invalid_frame()
    header = toheader(head)
    frame = Frame.from_header(header)
    if header.is_valid():
        try:
            buffer = hex2buffer(payload, False)
        except ValueError:
            return frame
        if len(buffer) > 8:
            return _invalid_frame()
        frame.data[: len(buffer)] = list(buffer)
        frame.dlc = len(buffer)
    return frame


def tofilter(spec: Union[int, str]) -> FrameFilter:
    """Filter from an id or from ``ID``, ``ID:MASK``, ``ID~MASK``, ``MIN-MAX`` or ``MIN_MAX``.

    ``~`` and ``_`` invert the mask and the range filter.
    """
    if isinstance(spec, int) and not isinstance(spec, bool):
        return FrameMaskFilter(spec & _U32)
    if not isinstance(spec, str):
        raise TypeError(f"cannot build a filter from {spec!r}")

    second = FrameMaskFilter.MASK_RELAXED
    kind = ":"
    match = _FILTER_DELIMITERS.search(spec)
    if match is not None:
        kind = match.group()
        second = tohex(spec[match.end():])
        first_text = spec[: match.start()]
    else:
        first_text = spec
    first = toheader(first_text).fullid()

    if kind in (":", "~"):
        return FrameMaskFilter(first, second, invert=kind == "~")
    return FrameRangeFilter(first, second, invert=kind == "_")


def tofilters(specs: Iterable[Union[int, str]]) -> list[FrameFilter]:
    """One filter for each spec."""
    return [tofilter(spec) for spec in specs]