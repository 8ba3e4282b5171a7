"""Driver settings looked up by slash separated names."""

from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import Mapping
from typing import Any, Callable, Optional, TypeVar

T = TypeVar("T")


def _to_repr(value: Any) -> str:
    if isinstance(value, bool):
        return "1" if value else "0"
    return str(value)


def _parse_bool(text: str) -> bool:
    stripped = text.strip()
    if stripped == "1":
        return True
    if stripped == "0":
        return False
    raise ValueError(f"cannot convert {text!r} to bool")


def _convert(text: str, converter: Callable[[str], T]) -> T:
    if converter is bool:
        return _parse_bool(text)  # type: ignore[return-value]
    if converter is str:
        return text  # type: ignore[return-value]
    return converter(text)


class Settings(ABC):
    """Read-only key/value settings with typed access."""

    @abstractmethod
    def _get_repr(self, name: str) -> Optional[str]:
        """Text form of the setting, or None if it is not set."""

    def get_optional(self, name: str, default: T) -> T:
        """The setting converted to the type of ``default``, or ``default``."""
        text = self._get_repr(name)
        if text is None:
            return default
        if default is None:
            return text  # type: ignore[return-value]
        return _convert(text, type(default))

    def get(self, name: str, converter: Callable[[str], T]) -> Optional[T]:
        """The setting converted with ``converter``, or None if it is not set.

        Raises ValueError if the value cannot be converted.
        """
        text = self._get_repr(name)
        if text is None:
            return None
        return _convert(text, converter)


class NoSettings(Settings):
    """Settings with no entries."""

    def _get_repr(self, name: str) -> Optional[str]:
        return None


class SettingsMap(Settings):
    """Flat, writable settings."""

    def __init__(self) -> None:
        self._settings: dict[str, str] = {}

    def set(self, name: str, value: Any) -> None:
        self._settings[name] = _to_repr(value)

    def _get_repr(self, name: str) -> Optional[str]:
        return self._settings.get(name)


class NestedSettings(Settings):
    """Settings held in nested mappings; ``a/b`` descends into ``a``."""

    def __init__(self, value: Optional[Mapping] = None) -> None:
        self._value: Any = {} if value is None else value

    def _get_repr(self, name: str) -> Optional[str]:
        value = self._value
        rest = name
        while isinstance(value, Mapping) and "/" in rest:
            segment, rest = rest.split("/", 1)
            if segment not in value:
                return None
            value = value[segment]
        if isinstance(value, Mapping) and rest in value:
            return _to_repr(value[rest])
        return None