#!/usr/bin/env python3
"""classmap worker: load candidate classes inside a throwaway interpreter.

This script runs under the *project's* interpreter, which need not have
classmap installed. Zero non-stdlib dependencies.

Usage::

    python3 probe_script.py probe|hierarchy < request.json

The request is a JSON object read from stdin::

    {
      "markers": {"startup": ..., "before": ..., "after": ..., "end": ...},
      "roots": [...],        # prepended to sys.path, in order
      "sys_path": [...],     # extra entries, after the roots
      "bootstrap": null,     # optional script run before any load
      "entries": [{"symbol": ..., "module": ..., "attr": ..., "file": ...}]
    }

probe
    Loads each entry in order, bracketing it with marker lines on stdout.
    Failures are deliberately not caught: the traceback (or the abrupt exit)
    ends the process and the parent attributes it to the symbol in flight.

hierarchy
    Loads each entry and prints one JSON object mapping symbol to its
    ``supertypes`` (nearest first) and ``interfaces``. What the loads print
    to stdout or stderr is discarded, so stderr only ever carries an
    uncaught failure.

Exit codes:
    0: success
    2: bad arguments or request
"""

from __future__ import annotations

import contextlib
import importlib
import io
import json
import os
import runpy
import sys

_EX_USAGE = 2


def _prepare(request: dict) -> None:
    here = os.path.dirname(os.path.abspath(__file__))
    if sys.path and os.path.abspath(sys.path[0] or os.curdir) == here:
        del sys.path[0]
    sys.path[:0] = list(request.get("roots", [])) + list(request.get("sys_path", []))

    bootstrap = request.get("bootstrap")
    if bootstrap:
        runpy.run_path(bootstrap, run_name="__classmap_bootstrap__")


def _load(entry: dict) -> type:
    """Import the entry's module and return the class, or raise."""
    module = importlib.import_module(entry["module"])
    cls = getattr(module, entry["attr"])
    if not isinstance(cls, type):
        raise TypeError(f"{entry['symbol']} is not a class (got {type(cls).__name__})")

    expected = entry.get("file")
    actual = getattr(module, "__file__", None)
    if expected and (actual is None or os.path.realpath(actual) != os.path.realpath(expected)):
        raise ImportError(f"{entry['module']} resolved to {actual}, expected {expected}")
    return cls


def _emit(line: str) -> None:
    sys.stdout.write(line + "\n")
    sys.stdout.flush()


def _probe(request: dict) -> None:
    markers = request["markers"]
    _prepare(request)
    _emit(markers["startup"])
    for entry in request["entries"]:
        _emit(markers["before"])
        _emit(entry["symbol"])
        _load(entry)
        _emit(markers["after"])
    _emit(markers["end"])


def _name(cls: type) -> str:
    return f"{cls.__module__}.{cls.__qualname__}"


def _describe(cls: type) -> dict:
    chain = []
    base = cls.__bases__[0] if cls.__bases__ else None
    while base is not None and base is not object:
        chain.append(base)
        base = base.__bases__[0] if base.__bases__ else None

    skip = {cls, object, *chain}
    interfaces = sorted({_name(c) for c in cls.__mro__ if c not in skip})
    return {"supertypes": [_name(c) for c in chain], "interfaces": interfaces}


def _hierarchy(request: dict) -> None:
    records = {}
    sink = io.StringIO()
    with contextlib.redirect_stdout(sink), contextlib.redirect_stderr(sink):
        _prepare(request)
        for entry in request["entries"]:
            records[entry["symbol"]] = _describe(_load(entry))
    sys.stdout.write(json.dumps(records, sort_keys=True))
    sys.stdout.write("\n")
    sys.stdout.flush()


_MODES = {"probe": _probe, "hierarchy": _hierarchy}


def main(argv: list[str]) -> int:
    if len(argv) != 2 or argv[1] not in _MODES:
        print(f"usage: {os.path.basename(argv[0])} probe|hierarchy", file=sys.stderr)
        return _EX_USAGE
    try:
        request = json.load(sys.stdin)
    except ValueError as e:
        print(f"classmap worker: invalid request: {e}", file=sys.stderr)
        return _EX_USAGE
    _MODES[argv[1]](request)
    return 0


if __name__ == "__main__":
    sys.exit(main(sys.argv))
