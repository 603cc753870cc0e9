"""Launching isolated worker interpreters.

Every worker is a fresh interpreter running the bundled worker script, so a
class that crashes, hangs or pollutes global state on load cannot take the
build down with it. The runner only moves bytes: interpreting a probe
transcript is the protocol module's job and judging a hierarchy payload is
the extractor's.
"""

from __future__ import annotations

import json
import os
import subprocess
import sys
import threading
import time
from collections.abc import Sequence
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Literal

import structlog

from classmap.config.constants import (
    AFTER_LOAD_MARKER,
    BEFORE_LOAD_MARKER,
    END_MARKER,
    PROBE_MODE,
    STARTUP_MARKER,
)
from classmap.config.models import WorkerConfig
from classmap.core.errors import WorkerError
from classmap.core.logging import get_run_id
from classmap.index.models import CandidateEntry, SourceRoot
from classmap.templates import get_probe_script_path

logger = structlog.get_logger()

WorkerMode = Literal["probe", "hierarchy"]


@dataclass
class WorkerResult:
    """Raw outcome of one worker process.

    In probe mode ``stdout`` holds the merged stdout/stderr stream and
    ``stderr`` is empty.
    """

    mode: WorkerMode
    invocation: int
    returncode: int | None
    stdout: str
    stderr: str = ""
    timed_out: bool = False
    duration_ms: int = 0


def _decode(data: bytes | None) -> str:
    if not data:
        return ""
    return data.decode("utf-8", errors="replace").replace("\r\n", "\n")


class WorkerRunner:
    """Runs worker processes for one index build.

    Safe to share between threads. ``terminate_all`` kills whatever is still
    running, e.g. when the build is interrupted.
    """

    def __init__(
        self,
        roots: Sequence[SourceRoot],
        config: WorkerConfig,
        project_root: Path,
        run_id: str | None = None,
    ) -> None:
        self._roots = list(roots)
        self._config = config
        self._project_root = project_root
        self._run_id = run_id or get_run_id() or ""
        self._lock = threading.Lock()
        self._live: set[subprocess.Popen[bytes]] = set()
        self._invocations = 0

    @property
    def invocations(self) -> int:
        return self._invocations

    @property
    def timeout_sec(self) -> float | None:
        return self._config.timeout_sec

    def _resolve(self, path: str) -> str:
        p = Path(path).expanduser()
        return str(p if p.is_absolute() else self._project_root / p)

    def command(self, mode: WorkerMode) -> list[str]:
        python = self._config.python_executable or sys.executable
        return [python, str(get_probe_script_path()), mode]

    def environment(self) -> dict[str, str]:
        """Environment for worker processes: the parent's plus fixed overrides."""
        env = os.environ.copy()
        env.update(
            {
                "PYTHONUNBUFFERED": "1",
                "PYTHONDONTWRITEBYTECODE": "1",
                "PYTHONIOENCODING": "utf-8",
                "PYTHONWARNINGS": "ignore",
                "CLASSMAP_WORKER": "1",
                "CLASSMAP_RUN_ID": self._run_id,
            }
        )
        env.update(self._config.env)
        return env

    def request(self, entries: Sequence[CandidateEntry]) -> dict[str, Any]:
        """JSON request the worker script reads from stdin."""
        return {
            "markers": {
                "startup": STARTUP_MARKER,
                "before": BEFORE_LOAD_MARKER,
                "after": AFTER_LOAD_MARKER,
                "end": END_MARKER,
            },
            "roots": [str(root.path) for root in self._roots],
            "sys_path": [self._resolve(p) for p in self._config.sys_path],
            "bootstrap": self._resolve(self._config.bootstrap) if self._config.bootstrap else None,
            "entries": [
                {
                    "symbol": entry.symbol,
                    "module": entry.module,
                    "attr": entry.attr,
                    "file": entry.file_path,
                }
                for entry in entries
            ],
        }

    def run(self, mode: WorkerMode, entries: Sequence[CandidateEntry]) -> WorkerResult:
        """Run one worker over ``entries`` and wait for it to exit.

        Raises:
            WorkerError: The worker process could not be started.
        """
        stage = "validate" if mode == PROBE_MODE else "hierarchy"
        cmd = self.command(mode)
        payload = json.dumps(self.request(entries)).encode("utf-8")

        with self._lock:
            self._invocations += 1
            invocation = self._invocations

        start = time.monotonic()
        try:
            proc = subprocess.Popen(
                cmd,
                cwd=self._project_root,
                env=self.environment(),
                stdin=subprocess.PIPE,
                stdout=subprocess.PIPE,
                stderr=subprocess.STDOUT if mode == PROBE_MODE else subprocess.PIPE,
            )
        except OSError as e:
            raise WorkerError.launch_failed(stage, cmd, str(e)) from e

        with self._lock:
            self._live.add(proc)
        logger.debug(
            "worker_spawned", mode=mode, invocation=invocation, pid=proc.pid, symbols=len(entries)
        )

        timed_out = False
        try:
            try:
                out, err = proc.communicate(payload, timeout=self._config.timeout_sec)
            except subprocess.TimeoutExpired:
                timed_out = True
                proc.kill()
                out, err = proc.communicate()
            except BaseException:
                proc.kill()
                proc.wait()
                raise
        finally:
            with self._lock:
                self._live.discard(proc)

        duration_ms = int((time.monotonic() - start) * 1000)
        logger.debug(
            "worker_finished",
            mode=mode,
            invocation=invocation,
            symbols=len(entries),
            returncode=proc.returncode,
            timed_out=timed_out,
            duration_ms=duration_ms,
        )
        return WorkerResult(
            mode=mode,
            invocation=invocation,
            returncode=proc.returncode,
            stdout=_decode(out),
            stderr=_decode(err),
            timed_out=timed_out,
            duration_ms=duration_ms,
        )

    def terminate_all(self) -> int:
        """Kill every worker still running. Returns how many were killed."""
        with self._lock:
            live = list(self._live)
            self._live.clear()
        for proc in live:
            if proc.poll() is None:
                proc.kill()
        if live:
            logger.warning("workers_terminated", count=len(live))
        return len(live)
