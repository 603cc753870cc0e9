"""Fixed-point validation of the candidate index in isolated workers.

Loading a class can have effects on classes loaded after it: a module that
crashes half way leaves a partly initialised package behind, and a class
that loaded fine next to a broken neighbour might not load on its own. So
validation runs in passes. Each pass probes every symbol not yet excluded,
in fresh workers, and the loop stops at the first pass that excludes
nothing new. Only then is the remaining set known to load cleanly together.
"""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from concurrent.futures import ThreadPoolExecutor

import structlog

from classmap.config.constants import PROBE_MODE
from classmap.core.errors import WorkerError
from classmap.index.models import CandidateEntry, ValidationOutcome
from classmap.index.protocol import parse_probe_output
from classmap.index.workers import WorkerRunner

logger = structlog.get_logger()


class IsolatedValidator:
    """Partitions a candidate index into loadable symbols and errors.

    Args:
        runner: Launches the probe workers.
        batch_size: Symbols per worker. 0 puts every symbol in one worker.
        max_parallel: Batches probed concurrently within a pass.
        max_passes: Passes allowed before giving up. None allows one more
            pass than there are candidates: every pass but the last excludes
            at least one symbol, so only a bug can run out.
    """

    def __init__(
        self,
        runner: WorkerRunner,
        batch_size: int = 0,
        max_parallel: int = 1,
        max_passes: int | None = None,
    ) -> None:
        self._runner = runner
        self._batch_size = batch_size
        self._max_parallel = max_parallel
        self._max_passes = max_passes

    def validate(self, candidates: Mapping[str, CandidateEntry]) -> ValidationOutcome:
        """Probe ``candidates`` until no pass excludes anything new.

        Raises:
            WorkerError: A worker broke the protocol, timed out outside a
                load, or the pass limit ran out before the set converged.
        """
        remaining = dict(candidates)
        outcome = ValidationOutcome()
        max_passes = self._max_passes or len(candidates) + 1
        warnings: dict[str, str] = {}
        invocations_before = self._runner.invocations

        while remaining:
            if outcome.passes >= max_passes:
                raise WorkerError.passes_exhausted("validate", max_passes, len(outcome.errors))
            outcome.passes += 1

            new_errors, warnings = self._run_pass(list(remaining.values()))
            for symbol, detail in new_errors.items():
                remaining.pop(symbol, None)
                outcome.errors[symbol] = detail

            logger.info(
                "validation_pass_complete",
                number=outcome.passes,
                probed=len(remaining) + len(new_errors),
                excluded=len(new_errors),
            )
            if not new_errors:
                break

        outcome.valid_index = remaining
        outcome.warnings = {s: w for s, w in warnings.items() if s in remaining}
        outcome.worker_invocations = self._runner.invocations - invocations_before
        return outcome

    def _batches(self, entries: list[CandidateEntry]) -> list[list[CandidateEntry]]:
        if self._batch_size <= 0 or len(entries) <= self._batch_size:
            return [entries]
        size = self._batch_size
        return [entries[i : i + size] for i in range(0, len(entries), size)]

    def _run_pass(
        self, entries: list[CandidateEntry]
    ) -> tuple[dict[str, str], dict[str, str]]:
        batches = self._batches(entries)
        if self._max_parallel <= 1 or len(batches) == 1:
            results = [self._drain(batch) for batch in batches]
        else:
            with ThreadPoolExecutor(max_workers=self._max_parallel) as pool:
                futures = [pool.submit(self._drain, batch) for batch in batches]
                try:
                    results = [future.result() for future in futures]
                except BaseException:
                    for future in futures:
                        future.cancel()
                    self._runner.terminate_all()
                    raise

        errors: dict[str, str] = {}
        warnings: dict[str, str] = {}
        for batch_errors, batch_warnings in results:
            errors.update(batch_errors)
            warnings.update(batch_warnings)
        return errors, warnings

    def _drain(self, batch: Sequence[CandidateEntry]) -> tuple[dict[str, str], dict[str, str]]:
        """Probe one batch, relaunching past each fatal load until all are tried."""
        errors: dict[str, str] = {}
        warnings: dict[str, str] = {}
        pending = list(batch)
        while pending:
            result = self._runner.run(PROBE_MODE, pending)
            transcript = parse_probe_output(
                result.stdout,
                [entry.symbol for entry in pending],
                invocation=result.invocation,
                returncode=result.returncode,
                timed_out=result.timed_out,
                timeout_sec=self._runner.timeout_sec,
            )
            for symbol, detail in transcript.failures.items():
                logger.debug("symbol_excluded", symbol=symbol, invocation=result.invocation)
                errors[symbol] = detail
            for symbol, noise in transcript.warnings.items():
                logger.debug("symbol_load_output", symbol=symbol, invocation=result.invocation)
                warnings[symbol] = noise
            if transcript.completed:
                break
            attempted = transcript.attempted()
            pending = [entry for entry in pending if entry.symbol not in attempted]
        return errors, warnings
