"""Incremental directory scanning into a candidate symbol index.

For every source file under the configured roots the scanner either reuses
the scan cache entry (same mtime, same module name) or parses the file with
tree-sitter. Root order is authoritative: a file reachable from several roots
belongs to the first, and a symbol declared by several files belongs to the
first file discovered (root order, then sorted walk order). Later
declarations are dropped without error and reported as collisions.
"""

from __future__ import annotations

import keyword
import os
import re
import time
from collections.abc import Sequence
from dataclasses import dataclass, field
from pathlib import Path

import structlog

from classmap.config.constants import SOURCE_SUFFIX
from classmap.config.models import SourceRootConfig
from classmap.core.excludes import PRUNABLE_DIRS
from classmap.index.models import (
    CandidateEntry,
    RootScope,
    ScanCacheEntry,
    SkippedRoot,
    SourceRoot,
    SymbolCollision,
)
from classmap.index.parser import ClassDeclarationParser
from classmap.index.scan_cache import ScanCache

logger = structlog.get_logger()


def _is_module_part(name: str) -> bool:
    return name.isidentifier() and not keyword.iskeyword(name)


def module_name_for(rel_posix: str) -> str | None:
    """Map a root-relative path to the module it is imported as.

    Returns None for files that cannot be imported by name.

    >>> module_name_for("acme/billing.py")
    'acme.billing'
    >>> module_name_for("acme/__init__.py")
    'acme'
    """
    if not rel_posix.endswith(SOURCE_SUFFIX):
        return None
    parts = rel_posix[: -len(SOURCE_SUFFIX)].split("/")
    if parts[-1] == "__init__":
        parts = parts[:-1]
    if not parts or not all(_is_module_part(p) for p in parts):
        return None
    return ".".join(parts)


def resolve_roots(
    configs: Sequence[SourceRootConfig],
    project_root: Path,
    scope: RootScope = "all",
) -> list[SourceRoot]:
    """Turn root configs into SourceRoots, keeping order and applying the scope."""
    roots: list[SourceRoot] = []
    for cfg in configs:
        if scope == "application" and cfg.kind != "application":
            continue
        if scope == "dependencies" and cfg.kind != "dependency":
            continue
        path = Path(cfg.path).expanduser()
        if not path.is_absolute():
            path = project_root / path
        roots.append(
            SourceRoot(
                path=Path(os.path.abspath(path)),
                namespace=cfg.namespace,
                exclude=re.compile(cfg.exclude) if cfg.exclude else None,
                kind=cfg.kind,
            )
        )
    return roots


@dataclass
class ScanResult:
    """Candidate index plus the refreshed scan cache."""

    candidates: dict[str, CandidateEntry] = field(default_factory=dict)
    cache: ScanCache = field(default_factory=ScanCache)
    parsed_files: int = 0
    reused_files: int = 0
    skipped_roots: list[SkippedRoot] = field(default_factory=list)
    unreadable_files: list[str] = field(default_factory=list)
    collisions: list[SymbolCollision] = field(default_factory=list)


def _root_problem(path: Path) -> str | None:
    if not path.exists():
        return "does not exist"
    if not path.is_dir():
        return "not a directory"
    if not os.access(path, os.R_OK | os.X_OK):
        return "permission denied"
    return None


class DirectoryScanner:
    """Walks source roots and produces the candidate index."""

    def __init__(self, parser: ClassDeclarationParser | None = None) -> None:
        # Created on first parse: a fully warm cache never needs tree-sitter.
        self._parser = parser

    def _get_parser(self) -> ClassDeclarationParser:
        if self._parser is None:
            self._parser = ClassDeclarationParser()
        return self._parser

    def scan(self, roots: Sequence[SourceRoot], cache: ScanCache | None = None) -> ScanResult:
        """Scan roots in order, reusing ``cache`` entries for unchanged files."""
        start = time.monotonic()
        previous = cache if cache is not None else ScanCache()
        result = ScanResult(cache=ScanCache(previous))
        claimed: set[str] = set()

        for root in roots:
            problem = _root_problem(root.path)
            if problem is not None:
                logger.warning("scan_root_skipped", root=str(root.path), reason=problem)
                result.skipped_roots.append(SkippedRoot(path=str(root.path), reason=problem))
                continue
            self._scan_root(root, previous, result, claimed)

        logger.info(
            "scan_complete",
            roots=len(roots),
            candidates=len(result.candidates),
            parsed_files=result.parsed_files,
            reused_files=result.reused_files,
            skipped_roots=len(result.skipped_roots),
            collisions=len(result.collisions),
            duration_ms=int((time.monotonic() - start) * 1000),
        )
        return result

    def _scan_root(
        self,
        root: SourceRoot,
        previous: ScanCache,
        result: ScanResult,
        claimed: set[str],
    ) -> None:
        for file_path, rel_posix in self._walk(root):
            module = module_name_for(rel_posix)
            if module is None or not root.accepts_module(module):
                continue
            if root.excludes(rel_posix):
                continue

            real = os.path.realpath(file_path)
            if real in claimed:
                continue
            claimed.add(real)

            entry = self._read_entry(file_path, module, previous, result)
            if entry is None:
                continue
            result.cache.put(entry)

            for symbol in entry.symbols:
                kept = result.candidates.get(symbol)
                if kept is not None:
                    logger.debug(
                        "duplicate_symbol_dropped",
                        symbol=symbol,
                        kept=kept.file_path,
                        dropped=file_path,
                    )
                    result.collisions.append(
                        SymbolCollision(
                            symbol=symbol, kept_path=kept.file_path, dropped_path=file_path
                        )
                    )
                    continue
                result.candidates[symbol] = CandidateEntry(
                    symbol=symbol, file_path=file_path, mtime=entry.mtime
                )

    def _read_entry(
        self,
        file_path: str,
        module: str,
        previous: ScanCache,
        result: ScanResult,
    ) -> ScanCacheEntry | None:
        try:
            mtime = os.stat(file_path).st_mtime_ns
        except OSError as e:
            logger.warning("scan_file_unreadable", path=file_path, error=str(e))
            result.unreadable_files.append(file_path)
            return None

        cached = previous.lookup(file_path, mtime, module)
        if cached is not None:
            result.reused_files += 1
            return cached

        try:
            parsed = self._get_parser().parse_file(Path(file_path))
        except OSError as e:
            logger.warning("scan_file_unreadable", path=file_path, error=str(e))
            result.unreadable_files.append(file_path)
            return None
        except (ValueError, RecursionError) as e:
            logger.warning(
                "scan_file_unparseable", path=file_path, error=f"{type(e).__name__}: {e}"
            )
            result.unreadable_files.append(file_path)
            return None

        result.parsed_files += 1
        if parsed.error_count:
            logger.debug("scan_file_parse_errors", path=file_path, errors=parsed.error_count)
        return ScanCacheEntry(
            file_path=file_path,
            mtime=mtime,
            module=module,
            symbols=tuple(f"{module}.{name}" for name in parsed.classes),
        )

    def _walk(self, root: SourceRoot) -> list[tuple[str, str]]:
        """All files under ``root`` in sorted order as (abs path, rel posix path)."""

        def on_error(err: OSError) -> None:
            logger.warning("scan_directory_unreadable", path=err.filename, error=err.strerror)

        results: list[tuple[str, str]] = []
        root_str = str(root.path)
        for dirpath, dirnames, filenames in os.walk(root_str, onerror=on_error):
            dirnames[:] = sorted(
                d for d in dirnames if d not in PRUNABLE_DIRS and _is_module_part(d)
            )
            rel_dir = os.path.relpath(dirpath, root_str).replace(os.sep, "/")
            rel_dir = "" if rel_dir == "." else rel_dir + "/"
            for filename in sorted(filenames):
                if filename.endswith(SOURCE_SUFFIX):
                    results.append((os.path.join(dirpath, filename), rel_dir + filename))
        return results
