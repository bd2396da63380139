# src/pewpew/core/event.py
from __future__ import annotations

import inspect
from abc import ABC, abstractmethod
from collections.abc import Iterable, Mapping
from typing import Any, Callable, Dict, Optional

from pewpew.core import log
from pewpew.core.errors import MissingParameterError, NotCallableError

__all__ = ["Listener", "EventInterface", "Event", "listener_identity"]

Listener = Callable[..., Any]

_log = log.get("pewpew.event")


def listener_identity(fn: Listener) -> str:
    """Derive the registry key for a listener.

    - bound method  -> "<owner>.<method>" (owner is the class for classmethods,
      "<Class>@<hex id>" for instances, so two instances never collide)
    - plain function -> "<module>.<qualname>"

    Anything else (lambdas, partials, callable instances) has no stable name
    and raises NotCallableError.
    """
    owner = getattr(fn, "__self__", None)
    if inspect.ismethod(fn) or (inspect.isbuiltin(fn) and owner is not None and not inspect.ismodule(owner)):
        if isinstance(owner, type):
            owner_name = owner.__qualname__
        else:
            owner_name = f"{type(owner).__qualname__}@{id(owner):x}"
        return f"{owner_name}.{fn.__name__}"

    if inspect.isfunction(fn) or inspect.isbuiltin(fn):
        if fn.__name__ == "<lambda>":
            raise NotCallableError("cannot derive an identity for a lambda; pass identity= explicitly")
        return f"{fn.__module__}.{fn.__qualname__}"

    raise NotCallableError(f"cannot derive an identity for {fn!r}; pass identity= explicitly")


def _as_params(params: Any) -> Dict[Any, Any]:
    if params is None:
        return {}
    if isinstance(params, Mapping):
        return dict(params)
    if isinstance(params, (str, bytes)):
        # a lone string is one positional parameter, not a sequence of chars
        return {0: params}
    if isinstance(params, Iterable):
        return dict(enumerate(params))
    return {0: params}


class EventInterface(ABC):
    """What a Dispatcher needs from an event."""

    @abstractmethod
    def get_name(self) -> str: ...

    @abstractmethod
    def get_subject(self) -> Any: ...

    @abstractmethod
    def get_params(self) -> Dict[Any, Any]: ...

    @abstractmethod
    def get_return_value(self) -> Any: ...

    @abstractmethod
    def has_run(self) -> bool: ...

    @abstractmethod
    def get_listeners(self) -> Dict[str, Listener]: ...

    @abstractmethod
    def add_listener(self, fn: Listener, identity: Optional[str] = None) -> str: ...

    @abstractmethod
    def set_has_run(self) -> None: ...

    @abstractmethod
    def notify(self) -> Any: ...

    @abstractmethod
    def set_return_value(self, value: Any, wipe: bool = False) -> None: ...

    @abstractmethod
    def has_listeners(self) -> bool: ...

    @abstractmethod
    def reset(self) -> None: ...


class Event(EventInterface):
    """A named occurrence: subject, params, listeners and collected results.

    Params are also reachable as items::

        ev = Event(app, "user.created", {"id": 42})
        ev["id"]           # 42
        ev["name"] = "bob"
        "name" in ev       # True
    """

    def __init__(self, subject: Any, name: str, params: Any = None):
        self._subject = subject
        self._name = str(name)
        self._params: Dict[Any, Any] = _as_params(params)
        self._listeners: Dict[str, Listener] = {}
        self._value: Any = None
        self._has_run = False

    def __repr__(self) -> str:
        return f"{type(self).__name__}(name={self._name!r}, listeners={len(self._listeners)}, has_run={self._has_run})"

    @property
    def name(self) -> str:
        return self._name

    def get_name(self) -> str:
        return self._name

    def get_subject(self) -> Any:
        return self._subject

    def get_params(self) -> Dict[Any, Any]:
        return dict(self._params)

    def get_return_value(self) -> Any:
        return self._value

    def has_run(self) -> bool:
        return self._has_run

    def get_listeners(self) -> Dict[str, Listener]:
        return dict(self._listeners)

    def set_has_run(self) -> None:
        self._has_run = True

    def reset(self) -> None:
        """Allow the event to be notified again. Listeners and results are kept."""
        self._has_run = False

    def has_listeners(self) -> bool:
        return bool(self._listeners)

    def add_listener(self, fn: Listener, identity: Optional[str] = None) -> str:
        if not callable(fn):
            raise NotCallableError(f"listener for event {self._name!r} is not callable: {fn!r}")
        key = identity if identity is not None else listener_identity(fn)
        # re-adding an identity keeps its slot in the dispatch order
        self._listeners[key] = fn
        _log.debug("listener added event=%s id=%s", self._name, key)
        return key

    def set_return_value(self, value: Any, wipe: bool = False) -> None:
        """Merge `value` into the accumulated return value.

        Mappings merge per key, everything else is appended at the next
        integer key, so the result can mix caller keys and positions.
        """
        if wipe or self._value is None:
            self._value = {}

        if isinstance(value, Mapping):
            self._value.update(value)
        else:
            ints = [k for k in self._value if isinstance(k, int) and k >= 0]
            self._value[max(ints) + 1 if ints else 0] = value

    def notify(self) -> Any:
        args = (self, *self._params.values())
        for key, fn in list(self._listeners.items()):
            _log.debug("calling listener event=%s id=%s", self._name, key)
            self.set_return_value(fn(*args))
        return self._value

    # ---------- parameter view ----------
    def __contains__(self, key: Any) -> bool:
        return key in self._params

    def __getitem__(self, key: Any) -> Any:
        try:
            return self._params[key]
        except KeyError:
            raise MissingParameterError(self._name, key) from None

    def __setitem__(self, key: Any, value: Any) -> None:
        self._params[key] = value

    def __delitem__(self, key: Any) -> None:
        self._params.pop(key, None)
