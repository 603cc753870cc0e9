"""Data model of the index-building pipeline.

Each stage owns and fully replaces its output per run; nothing here is
shared-mutable across stages. Only the scan cache outlives a run.
"""

from __future__ import annotations

import re
from collections.abc import Mapping
from dataclasses import dataclass, field
from pathlib import Path
from typing import Literal

RootKind = Literal["application", "dependency"]
RootScope = Literal["all", "application", "dependencies"]


def split_symbol(symbol: str) -> tuple[str, str]:
    """Split ``pkg.mod.Class`` into ``("pkg.mod", "Class")``."""
    module, _, attr = symbol.rpartition(".")
    return module, attr


@dataclass(frozen=True)
class SourceRoot:
    """A directory to scan, resolved from configuration.

    Immutable for the duration of one run.
    """

    path: Path
    namespace: str | None = None
    exclude: re.Pattern[str] | None = None
    kind: RootKind = "application"

    def accepts_module(self, module: str) -> bool:
        """True if ``module`` falls under this root's namespace constraint."""
        if self.namespace is None:
            return True
        return module == self.namespace or module.startswith(self.namespace + ".")

    def excludes(self, rel_posix: str) -> bool:
        return self.exclude is not None and self.exclude.search(rel_posix) is not None


@dataclass(frozen=True, slots=True)
class CandidateEntry:
    """A discovered symbol and the file declaring it."""

    symbol: str
    file_path: str
    mtime: int

    @property
    def module(self) -> str:
        return split_symbol(self.symbol)[0]

    @property
    def attr(self) -> str:
        return split_symbol(self.symbol)[1]


@dataclass(frozen=True, slots=True)
class ScanCacheEntry:
    """What a file declared the last time it was parsed."""

    file_path: str
    mtime: int
    module: str
    symbols: tuple[str, ...] = ()


@dataclass
class ValidationOutcome:
    """Partition of a candidate index into loadable symbols and failures.

    Every candidate symbol ends up in exactly one of ``valid_index`` and
    ``errors``. ``warnings`` holds what a valid symbol's import printed.
    """

    valid_index: dict[str, CandidateEntry] = field(default_factory=dict)
    errors: dict[str, str] = field(default_factory=dict)
    warnings: dict[str, str] = field(default_factory=dict)
    passes: int = 0
    worker_invocations: int = 0

    def class_map(self) -> dict[str, str]:
        return {symbol: entry.file_path for symbol, entry in self.valid_index.items()}


@dataclass(frozen=True, slots=True)
class HierarchyRecord:
    """Supertypes (nearest first) and interfaces of one validated symbol."""

    symbol: str
    supertypes: tuple[str, ...] = ()
    interfaces: frozenset[str] = frozenset()

    def to_payload(self) -> dict[str, list[str]]:
        return {"supertypes": list(self.supertypes), "interfaces": sorted(self.interfaces)}


@dataclass(frozen=True, slots=True)
class SymbolCollision:
    """A later declaration of a symbol that was dropped in favour of the first."""

    symbol: str
    kept_path: str
    dropped_path: str


@dataclass(frozen=True, slots=True)
class SkippedRoot:
    """A root that could not be scanned (non-fatal)."""

    path: str
    reason: str


@dataclass(frozen=True)
class WrittenArtifacts:
    class_map: Path
    hierarchy: Path
    scan_cache: Path


@dataclass
class BuildReport:
    """Summary of one pipeline run."""

    run_id: str
    skipped: bool = False
    candidates: int = 0
    validated: int = 0
    errors: dict[str, str] = field(default_factory=dict)
    new_exclusions: list[str] = field(default_factory=list)
    warnings: dict[str, str] = field(default_factory=dict)
    parsed_files: int = 0
    reused_files: int = 0
    skipped_roots: list[SkippedRoot] = field(default_factory=list)
    collisions: list[SymbolCollision] = field(default_factory=list)
    passes: int = 0
    worker_invocations: int = 0
    artifacts: WrittenArtifacts | None = None
    duration_ms: int = 0

    @property
    def excluded(self) -> int:
        return len(self.errors)


def hierarchy_payload(records: Mapping[str, HierarchyRecord]) -> dict[str, dict[str, list[str]]]:
    """Artifact shape consumed by reflection queries."""
    return {symbol: record.to_payload() for symbol, record in records.items()}
