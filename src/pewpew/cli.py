# src/pewpew/cli.py
from __future__ import annotations

import argparse
import json
import sys
from typing import Any, List, Optional

from pewpew.core import log
from pewpew.core.errors import PewPewError
from pewpew.core.metrics import force_emit, start_exporter, stop_exporter
from pewpew.wire_config import build_from_yaml


def _jsonable(v: Any) -> Any:
    if isinstance(v, dict):
        keys = [str(k) for k in v]
        if len(set(keys)) != len(keys):
            # 0 and "0" would collapse into one JSON key; keep both as pairs
            return [[k if isinstance(k, (str, int, float, bool)) or k is None else repr(k), _jsonable(x)]
                    for k, x in v.items()]
        return {k: _jsonable(x) for k, x in zip(keys, v.values())}
    if isinstance(v, (list, tuple)):
        return [_jsonable(x) for x in v]
    if isinstance(v, (str, int, float, bool)) or v is None:
        return v
    return repr(v)


def build_parser() -> argparse.ArgumentParser:
    ap = argparse.ArgumentParser(prog="pewpew", description="Load event wiring from YAML and notify events.")
    ap.add_argument("config", help="wiring YAML file")
    ap.add_argument("--notify", "-n", action="append", default=[], metavar="NAME",
                    help="event to notify (repeatable, runs in order)")
    ap.add_argument("--list", action="store_true", help="print events and their listener ids")
    ap.add_argument("--log-level", default=None, help="overrides LOG_LEVEL")
    ap.add_argument("--json-logs", action="store_true", default=None, help="JSON log lines (or LOG_JSON=1)")
    ap.add_argument("--metrics-interval", type=float, default=None, metavar="SEC",
                    help="log a metrics snapshot every SEC seconds, and once more on exit")
    return ap


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    log.setup(args.log_level, args.json_logs, force=True)
    json_metrics = bool(args.json_logs)

    if args.metrics_interval is not None:
        start_exporter(interval_sec=args.metrics_interval, json_mode=json_metrics)
    try:
        disp = build_from_yaml(args.config)

        if args.list:
            for name, ev in disp.get_events().items():
                print(json.dumps({"event": name, "listeners": list(ev.get_listeners())}))

        for name in args.notify:
            ev = disp.notify(name)
            print(json.dumps({"event": name, "value": _jsonable(ev.get_return_value())}))
    except PewPewError as e:
        print(f"pewpew: {e}", file=sys.stderr)
        return 2
    finally:
        if args.metrics_interval is not None:
            stop_exporter()
            force_emit(json_mode=json_metrics)
    return 0


if __name__ == "__main__":  # pragma: no cover
    sys.exit(main())
