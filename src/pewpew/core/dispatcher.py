# src/pewpew/core/dispatcher.py
from __future__ import annotations

import threading
from typing import Any, Callable, Dict, Optional, Union

from pewpew.core import log
from pewpew.core.errors import (
    AlreadyRunError,
    DuplicateEventError,
    InvalidArgumentTypeError,
    InvalidEventError,
    NotCallableError,
    UnknownEventError,
)
from pewpew.core.event import Event, EventInterface, Listener
from pewpew.core.metrics import Timer, gauge_set, inc

EventRef = Union[EventInterface, str]
EventFactory = Callable[[Any, str, Any], EventInterface]


class Dispatcher:
    """Registry of named events; mediates listener registration and notification.

    One re-entrant lock guards the registry and every forwarded event call,
    so listeners may call back into the same dispatcher.
    """

    def __init__(self, name: str = "pewpew.dispatcher"):
        self.name = name
        self.l = log.get(name)
        self._events: Dict[str, EventInterface] = {}
        self._lock = threading.RLock()

    def __len__(self) -> int:
        return len(self._events)

    def __contains__(self, name: object) -> bool:
        return name in self._events

    def _registered(self) -> None:
        gauge_set("pewpew_events_registered", float(len(self._events)), dispatcher=self.name)

    # ---------- registry ----------
    def add(self, event: EventInterface) -> bool:
        """Register an existing event under its own name. False if the name is taken."""
        if not isinstance(event, EventInterface):
            raise InvalidArgumentTypeError(f"can only add EventInterface instances, got {type(event).__name__}")
        name = event.get_name()
        with self._lock:
            if name in self._events:
                self.l.debug("add skipped, event exists name=%s", name)
                return False
            self._events[name] = event
            self._registered()
        inc("pewpew_event_ops_total", op="add")
        self.l.debug("event added name=%s", name)
        return True

    def create_event(
        self,
        subject: Any,
        name: str,
        params: Any = None,
        event_type: EventFactory = Event,
    ) -> EventInterface:
        with self._lock:
            if name in self._events:
                raise DuplicateEventError(f"Event {name} already exists.")
            event = event_type(subject, name, params)
            self._events[name] = event
            self._registered()
        inc("pewpew_event_ops_total", op="create")
        self.l.debug("event created name=%s type=%s", name, type(event).__name__)
        return event

    def remove(self, event: EventRef) -> bool:
        """Detach an event from the registry. The event object itself stays usable."""
        if isinstance(event, EventInterface):
            event = event.get_name()
        elif not isinstance(event, str):
            raise InvalidArgumentTypeError("Event to remove must be an EventInterface or a str.")

        with self._lock:
            if self._events.pop(event, None) is None:
                return False
            self._registered()
        inc("pewpew_event_ops_total", op="remove")
        self.l.debug("event removed name=%s", event)
        return True

    def get_event(self, name: str) -> Optional[EventInterface]:
        with self._lock:
            return self._events.get(name)

    def get_events(self) -> Dict[str, EventInterface]:
        with self._lock:
            return dict(self._events)

    # ---------- listeners ----------
    def add_listener(self, name: str, fn: Listener, identity: Optional[str] = None) -> bool:
        if not isinstance(name, str):
            raise InvalidArgumentTypeError("Event name must be a str (add listener).")
        if not callable(fn):
            raise NotCallableError("Event listener is not callable.")
        with self._lock:
            event = self._events.get(name)
            if event is None:
                raise UnknownEventError(f"No event named {name} exists!")
            event.add_listener(fn, identity)
        inc("pewpew_event_ops_total", op="add_listener")
        return True

    def has_listeners(self, event: EventRef) -> bool:
        with self._lock:
            ev = self.str_to_event(event)
            self.check_event(ev, "Invalid event - can't check listeners.")
            return ev.has_listeners()

    def get_listeners(self, event: EventRef) -> Dict[str, Listener]:
        with self._lock:
            ev = self.str_to_event(event)
            self.check_event(ev, "Invalid event - can't get listeners.")
            return ev.get_listeners()

    # ---------- notification ----------
    def notify(self, event: EventRef) -> EventInterface:
        """Run every listener of `event` once; raises AlreadyRunError until reset()."""
        with self._lock:
            ev = self.str_to_event(event)
            self.check_event(ev, "Invalid event - can't notify.")
            name = ev.get_name()
            if ev.has_run():
                raise AlreadyRunError(f"Event {name} has already been run. Reset it before running again.")

            try:
                with Timer("pewpew_notify_ms", event=name):
                    ev.notify()
            except Exception:
                inc("pewpew_listener_errors_total", event=name)
                self.l.error("listener failed, notification aborted event=%s", name, exc_info=True)
                raise
            ev.set_has_run()

        inc("pewpew_notify_total", event=name)
        self.l.info("event notified name=%s", name)
        return ev

    def reset(self, event: EventRef) -> None:
        with self._lock:
            ev = self.str_to_event(event)
            self.check_event(ev, "Invalid event - can't reset.")
            ev.reset()

    # ---------- helpers ----------
    def str_to_event(self, ref: Any) -> Optional[EventInterface]:
        """Registered name -> event; an event -> itself (registered or not); else None."""
        if isinstance(ref, str):
            return self._events.get(ref)
        if isinstance(ref, EventInterface):
            return ref
        return None

    @staticmethod
    def check_event(event: Any, msg: str = "Invalid event") -> None:
        if not isinstance(event, EventInterface):
            raise InvalidEventError(msg)
