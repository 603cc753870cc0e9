"""Parser for the probe worker's marker protocol.

A probe transcript is the worker's merged stdout and stderr::

    <STARTUP>
    <BEFORE>
    pkg.mod.Class
    ...anything the load wrote...
    <AFTER>
    ...
    <END>

Every marker sits on its own line. A symbol followed by its AFTER marker
loaded. Output between the name and AFTER is whatever the import printed
(a package banner, a logging call) and is kept as a warning for that
symbol. A module is imported once per worker, so such output shows up under
whichever sibling loads first and must not exclude it. A missing AFTER
means the worker died loading that symbol; the rest of the transcript is the
failure detail and nothing after it was tried.
"""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass, field

from classmap.config.constants import (
    AFTER_LOAD_MARKER,
    BEFORE_LOAD_MARKER,
    END_MARKER,
    STARTUP_MARKER,
)
from classmap.core.errors import WorkerError

_STAGE = "validate"


@dataclass
class ProbeTranscript:
    """What one probe invocation established."""

    loaded: list[str] = field(default_factory=list)
    failures: dict[str, str] = field(default_factory=dict)
    warnings: dict[str, str] = field(default_factory=dict)
    completed: bool = False

    def attempted(self) -> set[str]:
        return set(self.loaded) | set(self.failures)


def _read_line(output: str, pos: int) -> tuple[str | None, int]:
    """Return the complete line starting at ``pos`` and the next position."""
    end = output.find("\n", pos)
    if end == -1:
        return None, pos
    return output[pos:end], end + 1


def _failure_detail(
    raw: str, returncode: int | None, timed_out: bool, timeout_sec: float | None
) -> str:
    detail = raw.strip()
    if timed_out:
        note = f"worker timed out after {timeout_sec}s" if timeout_sec else "worker timed out"
        return f"{detail}\n{note}" if detail else note
    if not detail:
        return f"worker exited with code {returncode}"
    return detail


def parse_probe_output(
    output: str,
    expected: Sequence[str],
    *,
    invocation: int,
    returncode: int | None = 0,
    timed_out: bool = False,
    timeout_sec: float | None = None,
) -> ProbeTranscript:
    """Attribute a probe transcript to the symbols the worker was given.

    Raises:
        WorkerError: The transcript does not follow the protocol, or the
            worker timed out while no symbol was being loaded.
    """
    start = output.find(STARTUP_MARKER + "\n")
    if start == -1:
        if timed_out:
            raise WorkerError.timeout(_STAGE, invocation, timeout_sec or 0.0, output)
        raise WorkerError.missing_startup(_STAGE, invocation, output)

    pending = set(expected)
    transcript = ProbeTranscript()
    pos = start + len(STARTUP_MARKER) + 1

    def violation(reason: str) -> WorkerError:
        if timed_out:
            return WorkerError.timeout(_STAGE, invocation, timeout_sec or 0.0, output)
        return WorkerError.protocol_violation(_STAGE, invocation, reason, output)

    while True:
        line, pos = _read_line(output, pos)
        if line is None:
            raise violation("worker output ended between symbols")
        if line == END_MARKER:
            transcript.completed = True
            break
        if line != BEFORE_LOAD_MARKER:
            raise violation(f"unexpected line {line!r}")

        symbol, pos = _read_line(output, pos)
        if symbol is None:
            raise violation("worker output ended before a symbol name")
        if symbol not in pending:
            raise violation(f"unexpected symbol {symbol!r}")
        pending.discard(symbol)

        after = output.find(AFTER_LOAD_MARKER + "\n", pos)
        if after == pos:
            transcript.loaded.append(symbol)
            pos = after + len(AFTER_LOAD_MARKER) + 1
        elif after == -1:
            transcript.failures[symbol] = _failure_detail(
                output[pos:], returncode, timed_out, timeout_sec
            )
            return transcript
        else:
            transcript.loaded.append(symbol)
            if noise := output[pos:after].strip():
                transcript.warnings[symbol] = noise
            pos = after + len(AFTER_LOAD_MARKER) + 1

    if pending:
        raise violation(f"worker finished without reporting {len(pending)} symbol(s)")
    return transcript
