"""Tests for the fixed-point validator, driven by an in-process fake runner."""

from __future__ import annotations

from collections.abc import Sequence
from typing import Any

import pytest

from classmap.config.constants import AFTER_LOAD_MARKER, BEFORE_LOAD_MARKER, STARTUP_MARKER
from classmap.core.errors import ErrorCode, WorkerError
from classmap.index.models import CandidateEntry, ValidationOutcome
from classmap.index.validator import IsolatedValidator
from classmap.index.workers import WorkerResult


def _assert_partition(outcome: ValidationOutcome, candidates: Any) -> None:
    valid, errors = set(outcome.valid_index), set(outcome.errors)
    assert valid | errors == set(candidates)
    assert valid.isdisjoint(errors)


class TestFixedPoint:
    """Exclusions accumulate until a pass finds nothing new."""

    def test_clean_set_needs_one_pass(self, fake_runner: Any, candidates: Any) -> None:
        runner = fake_runner()
        index = candidates("a.A", "b.B", "c.C")

        outcome = IsolatedValidator(runner).validate(index)

        assert outcome.valid_index == index
        assert outcome.errors == {}
        assert outcome.passes == 1
        assert outcome.worker_invocations == 1

    def test_crash_relaunches_on_remainder_then_confirms(
        self, fake_runner: Any, candidates: Any
    ) -> None:
        runner = fake_runner({"b.B": "crash"})
        index = candidates("a.A", "b.B", "c.C")

        outcome = IsolatedValidator(runner).validate(index)

        assert list(outcome.valid_index) == ["a.A", "c.C"]
        assert "RuntimeError: b.B" in outcome.errors["b.B"]
        assert runner.calls == [["a.A", "b.B", "c.C"], ["c.C"], ["a.A", "c.C"]]
        assert outcome.passes == 2
        _assert_partition(outcome, index)

    def test_symbol_after_a_crash_is_judged_on_its_own(
        self, fake_runner: Any, candidates: Any
    ) -> None:
        # Loading a.A breaks b.B, but a.A kills its worker before b.B is reached.
        runner = fake_runner({"a.A": "crash"}, poisons={"a.A": {"b.B"}})
        index = candidates("a.A", "b.B")

        outcome = IsolatedValidator(runner).validate(index)

        assert list(outcome.valid_index) == ["b.B"]
        assert list(outcome.errors) == ["a.A"]

    def test_noisy_symbol_kept_with_its_output(self, fake_runner: Any, candidates: Any) -> None:
        runner = fake_runner({"a.A": "noise"})
        index = candidates("a.A", "b.B")

        outcome = IsolatedValidator(runner).validate(index)

        assert outcome.errors == {}
        assert list(outcome.valid_index) == ["a.A", "b.B"]
        assert outcome.warnings == {"a.A": "DeprecationWarning: a.A"}
        assert outcome.passes == 1

    def test_everything_broken(self, fake_runner: Any, candidates: Any) -> None:
        runner = fake_runner({"a.A": "crash", "b.B": "crash"})
        index = candidates("a.A", "b.B")

        outcome = IsolatedValidator(runner).validate(index)

        assert outcome.valid_index == {}
        assert set(outcome.errors) == {"a.A", "b.B"}

    def test_empty_index_spawns_nothing(self, fake_runner: Any) -> None:
        runner = fake_runner()

        outcome = IsolatedValidator(runner).validate({})

        assert runner.calls == []
        assert outcome.passes == 0

    def test_default_limit_allows_one_exclusion_per_pass(self, candidates: Any) -> None:
        runner = _LastLoadCrashRunner()
        index = candidates(*(f"m.C{i:02d}" for i in range(20)))

        outcome = IsolatedValidator(runner).validate(index)  # type: ignore[arg-type]

        assert outcome.valid_index == {}
        assert len(outcome.errors) == 20
        assert outcome.passes == 20

    def test_pass_limit_is_fatal(self, fake_runner: Any, candidates: Any) -> None:
        runner = fake_runner({"a.A": "crash"})

        with pytest.raises(WorkerError) as exc_info:
            IsolatedValidator(runner, max_passes=1).validate(candidates("a.A", "b.B"))

        assert exc_info.value.code == ErrorCode.WORKER_PASSES_EXHAUSTED


class TestBatching:
    """Batches split a pass across several workers."""

    def test_batch_size_splits_in_order(self, fake_runner: Any, candidates: Any) -> None:
        runner = fake_runner()
        index = candidates("m.A", "m.B", "m.C", "m.D", "m.E")

        IsolatedValidator(runner, batch_size=2).validate(index)

        assert runner.calls == [["m.A", "m.B"], ["m.C", "m.D"], ["m.E"]]

    def test_parallel_batches_give_same_outcome(self, fake_runner: Any, candidates: Any) -> None:
        index = candidates("m.A", "m.B", "m.C", "m.D")
        behaviours = {"m.B": "crash", "m.D": "noise"}

        sequential = IsolatedValidator(fake_runner(behaviours), batch_size=1).validate(index)
        parallel = IsolatedValidator(
            fake_runner(behaviours), batch_size=1, max_parallel=3
        ).validate(index)

        assert parallel.valid_index == sequential.valid_index
        assert parallel.errors == sequential.errors


class _LastLoadCrashRunner:
    """Every worker dies on the last symbol it loads, so each pass excludes one."""

    invocations = 0
    timeout_sec = None

    def run(self, mode: str, entries: Sequence[CandidateEntry]) -> WorkerResult:
        self.invocations += 1
        lines = [STARTUP_MARKER]
        for entry in entries[:-1]:
            lines += [BEFORE_LOAD_MARKER, entry.symbol, AFTER_LOAD_MARKER]
        lines += [BEFORE_LOAD_MARKER, entries[-1].symbol, "MemoryError"]
        return WorkerResult(
            mode="probe",
            invocation=self.invocations,
            returncode=1,
            stdout="".join(line + "\n" for line in lines),
        )


class _GarbageRunner:
    invocations = 0
    timeout_sec = None

    def __init__(self) -> None:
        self.terminated = 0

    def run(self, mode: str, entries: Sequence[CandidateEntry]) -> WorkerResult:
        self.invocations += 1
        return WorkerResult(
            mode="probe", invocation=self.invocations, returncode=1, stdout="ImportError: site\n"
        )

    def terminate_all(self) -> int:
        self.terminated += 1
        return 0


class TestInfrastructure:
    """Broken workers abort validation."""

    def test_missing_startup_propagates(self, candidates: Any) -> None:
        with pytest.raises(WorkerError) as exc_info:
            IsolatedValidator(_GarbageRunner()).validate(candidates("a.A"))  # type: ignore[arg-type]

        assert exc_info.value.code == ErrorCode.WORKER_MISSING_STARTUP

    def test_parallel_failure_terminates_siblings(self, candidates: Any) -> None:
        runner = _GarbageRunner()

        with pytest.raises(WorkerError):
            IsolatedValidator(runner, batch_size=1, max_parallel=2).validate(  # type: ignore[arg-type]
                candidates("a.A", "b.B")
            )

        assert runner.terminated == 1
