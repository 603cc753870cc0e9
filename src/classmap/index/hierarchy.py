"""Supertype and interface extraction for validated symbols.

Runs after validation, so every symbol is known to load cleanly alongside
the others. The worker discards what imports print, so anything on its
stderr is a real failure and fatal, not a per-symbol exclusion.
"""

from __future__ import annotations

import json
from collections.abc import Mapping
from typing import Any

import structlog

from classmap.config.constants import HIERARCHY_MODE
from classmap.core.errors import WorkerError
from classmap.index.models import CandidateEntry, HierarchyRecord
from classmap.index.workers import WorkerRunner

logger = structlog.get_logger()

_STAGE = "hierarchy"


def _string_list(value: Any) -> list[str] | None:
    if not isinstance(value, list) or not all(isinstance(v, str) for v in value):
        return None
    return value


class HierarchyExtractor:
    """Asks one worker for the ancestry of every validated symbol."""

    def __init__(self, runner: WorkerRunner) -> None:
        self._runner = runner

    def extract(self, valid_index: Mapping[str, CandidateEntry]) -> dict[str, HierarchyRecord]:
        """Return a record per symbol of ``valid_index``, in the same order.

        Raises:
            WorkerError: The worker wrote to stderr, failed, timed out, or
                returned a payload that does not cover every symbol.
        """
        if not valid_index:
            return {}

        result = self._runner.run(HIERARCHY_MODE, list(valid_index.values()))
        invocation = result.invocation

        if result.timed_out:
            raise WorkerError.timeout(
                _STAGE, invocation, self._runner.timeout_sec or 0.0, result.stderr or result.stdout
            )
        if result.stderr.strip() or result.returncode != 0:
            raise WorkerError.error_output(_STAGE, invocation, result.stderr, result.returncode)

        try:
            payload = json.loads(result.stdout)
        except json.JSONDecodeError as e:
            raise WorkerError.invalid_payload(_STAGE, invocation, str(e), result.stdout) from e
        if not isinstance(payload, dict):
            raise WorkerError.invalid_payload(
                _STAGE, invocation, "expected a JSON object", result.stdout
            )

        records: dict[str, HierarchyRecord] = {}
        for symbol in valid_index:
            raw = payload.get(symbol)
            if not isinstance(raw, dict):
                raise WorkerError.invalid_payload(
                    _STAGE, invocation, f"no record for {symbol}", result.stdout
                )
            supertypes = _string_list(raw.get("supertypes"))
            interfaces = _string_list(raw.get("interfaces"))
            if supertypes is None or interfaces is None:
                raise WorkerError.invalid_payload(
                    _STAGE, invocation, f"malformed record for {symbol}", result.stdout
                )
            records[symbol] = HierarchyRecord(
                symbol=symbol,
                supertypes=tuple(supertypes),
                interfaces=frozenset(interfaces),
            )

        logger.info("hierarchy_extracted", symbols=len(records), invocation=invocation)
        return records
