"""CAN bus frames, text notation, filters, dispatchers, SocketCAN drivers, a dummy bus and helpers."""

__version__ = "0.1.0"