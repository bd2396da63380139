# src/pewpew/core/errors.py
from __future__ import annotations

__all__ = [
    "PewPewError",
    "DispatcherError",
    "DuplicateEventError",
    "UnknownEventError",
    "InvalidEventError",
    "AlreadyRunError",
    "NotCallableError",
    "InvalidArgumentTypeError",
    "MissingParameterError",
    "ConfigError",
]


class PewPewError(Exception):
    """Base class for everything raised by pewpew."""


class DispatcherError(PewPewError):
    """Registry / notification failures raised by the Dispatcher."""


class DuplicateEventError(DispatcherError):
    pass


class UnknownEventError(DispatcherError, LookupError):
    pass


class InvalidEventError(DispatcherError):
    pass


class AlreadyRunError(DispatcherError):
    pass


class NotCallableError(DispatcherError, TypeError):
    pass


class InvalidArgumentTypeError(DispatcherError, TypeError):
    pass


class MissingParameterError(PewPewError, KeyError):
    """Raised when reading a parameter the event does not carry."""

    def __init__(self, event_name: str, key):
        self.event_name = event_name
        self.key = key
        super().__init__(f'The event "{event_name}" has no "{key}" parameter.')

    # KeyError.__str__ would repr() the message
    def __str__(self) -> str:
        return self.args[0]


class ConfigError(PewPewError):
    """Invalid wiring document (bad shape, unknown module/attribute)."""
