"""Shared fixtures for index tests."""

from __future__ import annotations

from collections.abc import Callable, Mapping, Sequence
from pathlib import Path

import pytest

from classmap.config.constants import (
    AFTER_LOAD_MARKER,
    BEFORE_LOAD_MARKER,
    END_MARKER,
    STARTUP_MARKER,
)
from classmap.index.models import CandidateEntry
from classmap.index.workers import WorkerResult


def transcript(*lines: str) -> str:
    """Join protocol lines the way the worker prints them."""
    return "".join(line + "\n" for line in lines)


class FakeProbeRunner:
    """In-process stand-in for WorkerRunner in probe mode.

    ``behaviours`` maps a symbol to ``"ok"``, ``"noise"`` (loads but prints)
    or ``"crash"`` (kills the worker). ``poisons`` maps a symbol to symbols
    that crash if loaded later in the same worker.
    """

    def __init__(
        self,
        behaviours: Mapping[str, str] | None = None,
        poisons: Mapping[str, set[str]] | None = None,
    ) -> None:
        self.behaviours = dict(behaviours or {})
        self.poisons = dict(poisons or {})
        self.calls: list[list[str]] = []
        self.invocations = 0
        self.timeout_sec: float | None = None
        self.terminated = 0

    def run(self, mode: str, entries: Sequence[CandidateEntry]) -> WorkerResult:
        self.invocations += 1
        self.calls.append([entry.symbol for entry in entries])

        lines = [STARTUP_MARKER]
        poisoned: set[str] = set()
        for entry in entries:
            lines += [BEFORE_LOAD_MARKER, entry.symbol]
            poisoned |= self.poisons.get(entry.symbol, set())
            behaviour = self.behaviours.get(entry.symbol, "ok")
            if entry.symbol in poisoned:
                behaviour = "crash"
            if behaviour == "crash":
                lines.append(f"Traceback (most recent call last):\nRuntimeError: {entry.symbol}")
                return WorkerResult(
                    mode="probe",
                    invocation=self.invocations,
                    returncode=1,
                    stdout=transcript(*lines),
                )
            if behaviour == "noise":
                lines.append(f"DeprecationWarning: {entry.symbol}")
            lines.append(AFTER_LOAD_MARKER)
        lines.append(END_MARKER)
        return WorkerResult(
            mode="probe", invocation=self.invocations, returncode=0, stdout=transcript(*lines)
        )

    def terminate_all(self) -> int:
        self.terminated += 1
        return 0


def make_candidates(*symbols: str) -> dict[str, CandidateEntry]:
    return {
        symbol: CandidateEntry(symbol=symbol, file_path=f"/src/{symbol.replace('.', '/')}.py", mtime=1)
        for symbol in symbols
    }


@pytest.fixture
def fake_runner() -> type[FakeProbeRunner]:
    return FakeProbeRunner


@pytest.fixture
def candidates() -> Callable[..., dict[str, CandidateEntry]]:
    return make_candidates


@pytest.fixture
def write_source() -> Callable[[Path, str, str], Path]:
    """Write a source file (creating parent directories) and return its path."""

    def _write(root: Path, rel_path: str, content: str = "") -> Path:
        path = root / rel_path
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(content)
        return path

    return _write
