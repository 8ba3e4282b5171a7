"""Frame filters and a listener that applies them."""

from __future__ import annotations

import weakref
from abc import ABC, abstractmethod
from typing import Callable, Iterable

from canlink.dispatcher import Listener
from canlink.frame import EXTENDED_MASK, Frame

_U32 = 0xFFFFFFFF


class FrameFilter(ABC):
    @abstractmethod
    def passes(self, frame: Frame) -> bool:
        """Whether the frame passes the filter."""


class FrameMaskFilter(FrameFilter):
    """Passes frames whose masked key equals the masked id."""

    MASK_ALL = _U32
    MASK_RELAXED = ~EXTENDED_MASK & _U32

    def __init__(self, can_id: int, mask: int = MASK_RELAXED, invert: bool = False) -> None:
        self._mask = mask & _U32
        self._masked_id = can_id & self._mask
        self._invert = invert

    def passes(self, frame: Frame) -> bool:
        return ((self._mask & frame.key()) == self._masked_id) != self._invert


class FrameRangeFilter(FrameFilter):
    """Passes frames whose key lies in [min_id, max_id]."""

    def __init__(self, min_id: int, max_id: int, invert: bool = False) -> None:
        self._min_id = min_id
        self._max_id = max_id
        self._invert = invert

    def passes(self, frame: Frame) -> bool:
        return (self._min_id <= frame.key() <= self._max_id) != self._invert


class FilteredFrameListener(Listener):
    """Listens on ``comm`` and forwards frames that pass any filter."""

    def __init__(
        self,
        comm,
        callback: Callable[[Frame], object],
        filters: Iterable[FrameFilter],
    ) -> None:
        super().__init__(callback)
        self.filters = tuple(filters)
        self_ref = weakref.ref(self)

        def on_frame(frame: Frame) -> None:
            owner = self_ref()
            if owner is None:
                return
            if any(f.passes(frame) for f in owner.filters):
                owner(frame)

        self.listener = comm.create_msg_listener(on_frame)