"""Class index building.

Public entry points::

    from classmap.index import IndexPipeline, RunContext, build_index
"""

from classmap.index.hierarchy import HierarchyExtractor
from classmap.index.models import (
    BuildReport,
    CandidateEntry,
    HierarchyRecord,
    ScanCacheEntry,
    SourceRoot,
    ValidationOutcome,
)
from classmap.index.pipeline import IndexPipeline, RunContext, build_index
from classmap.index.scan_cache import ScanCache
from classmap.index.scanner import DirectoryScanner, ScanResult
from classmap.index.validator import IsolatedValidator
from classmap.index.workers import WorkerResult, WorkerRunner
from classmap.index.writer import IndexWriter

__all__ = [
    "BuildReport",
    "CandidateEntry",
    "DirectoryScanner",
    "HierarchyExtractor",
    "HierarchyRecord",
    "IndexPipeline",
    "IndexWriter",
    "IsolatedValidator",
    "RunContext",
    "ScanCache",
    "ScanCacheEntry",
    "ScanResult",
    "SourceRoot",
    "ValidationOutcome",
    "WorkerResult",
    "WorkerRunner",
    "build_index",
]
