# src/pewpew/wire_config.py
from __future__ import annotations

import importlib
from pathlib import Path
from typing import Any, Dict, Optional

import yaml

from pewpew.core import log
from pewpew.core.dispatcher import Dispatcher
from pewpew.core.errors import ConfigError, DuplicateEventError
from pewpew.core.event import Event

_log = log.get("pewpew.wire")


def _imp(module: str, attr: str) -> Any:
    try:
        mod = importlib.import_module(module)
        return getattr(mod, attr)
    except (ImportError, AttributeError) as e:
        raise ConfigError(f"cannot import {module}:{attr} ({e})") from e


def _ref(spec: Any, key: str, where: str) -> Any:
    """Resolve {module: ..., <key>: ...} to the imported object."""
    if not isinstance(spec, dict) or "module" not in spec or key not in spec:
        raise ConfigError(f"{where}: expected a mapping with 'module' and '{key}'")
    return _imp(str(spec["module"]), str(spec[key]))


def _commit(staged: Dispatcher, target: Dispatcher) -> None:
    """Move every staged event into `target`, or none of them."""
    added = []
    for name, ev in staged.get_events().items():
        if not target.add(ev):
            for done in added:
                target.remove(done)
            raise DuplicateEventError(f"Event {name} already exists.")
        added.append(ev)


def build_from_dict(
    data: Dict[str, Any],
    dispatcher: Optional[Dispatcher] = None,
    subject: Any = None,
) -> Dispatcher:
    """Register the events (and their listeners) described by `data`.

    Events are wired into a staging registry first; the target dispatcher
    only sees them once the whole document resolved.
    """
    if not isinstance(data, dict):
        raise ConfigError("wiring document must be a mapping")

    target = dispatcher if dispatcher is not None else Dispatcher()
    events = data.get("events") or []
    if not isinstance(events, list):
        raise ConfigError("'events' must be a list")

    staged = Dispatcher(name="pewpew.wire.staging")
    for i, e in enumerate(events):
        where = f"events[{i}]"
        if not isinstance(e, dict) or not e.get("name"):
            raise ConfigError(f"{where}: every event needs a 'name'")
        name = str(e["name"])
        if name in target:
            raise DuplicateEventError(f"Event {name} already exists.")

        event_type = _ref(e["type"], "class", f"{where}.type") if e.get("type") else Event
        staged.create_event(subject, name, e.get("params"), event_type=event_type)

        for j, spec in enumerate(e.get("listeners") or []):
            fn = _ref(spec, "function", f"{where}.listeners[{j}]")
            staged.add_listener(name, fn, spec.get("identity"))

        _log.debug("wired event name=%s listeners=%d", name, len(staged.get_listeners(name)))

    _commit(staged, target)
    _log.info("wiring loaded events=%d", len(events))
    return target


def build_from_yaml(
    yaml_path: str | Path,
    dispatcher: Optional[Dispatcher] = None,
    subject: Any = None,
) -> Dispatcher:
    """Read a wiring YAML file and return the populated Dispatcher."""
    try:
        data = yaml.safe_load(Path(yaml_path).read_text(encoding="utf-8"))
    except (OSError, yaml.YAMLError) as e:
        raise ConfigError(f"cannot load wiring {yaml_path}: {e}") from e
    return build_from_dict(data or {}, dispatcher=dispatcher, subject=subject)
