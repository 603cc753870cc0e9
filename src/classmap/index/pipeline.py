"""Index build orchestration: scan, validate, extract, write.

Stages run strictly in sequence; each consumes the previous stage's output
and nothing else. Fatal errors abort the run after being logged with the
stage that raised them, and never replace existing artifacts.
"""

from __future__ import annotations

import time
from dataclasses import dataclass
from pathlib import Path
from typing import Any

import structlog

from classmap.config.loader import get_artifact_paths, load_config
from classmap.config.models import ClassMapConfig, SourceRootConfig
from classmap.core.errors import ClassMapError, InternalError
from classmap.core.logging import clear_run_id, get_run_id, set_run_id
from classmap.index.hierarchy import HierarchyExtractor
from classmap.index.models import BuildReport, RootScope, SourceRoot
from classmap.index.scan_cache import ScanCache
from classmap.index.scanner import DirectoryScanner, resolve_roots
from classmap.index.validator import IsolatedValidator
from classmap.index.workers import WorkerRunner
from classmap.index.writer import IndexWriter

logger = structlog.get_logger()


@dataclass(frozen=True)
class RunContext:
    """Per-invocation parameters supplied by the caller.

    Attributes:
        use_cache: Reuse the scan cache from the previous run.
        scope: Which kinds of roots to index.
        run_id: Correlation id for log events; generated when omitted.
        reentrant: The caller is itself running inside a build (for example
            an install hook fired by one). The run is skipped.
    """

    use_cache: bool = True
    scope: RootScope = "all"
    run_id: str | None = None
    reentrant: bool = False


def default_root_configs(project_root: Path) -> list[SourceRootConfig]:
    """Roots used when none are configured: ``src/`` if present, else the project."""
    if (project_root / "src").is_dir():
        return [SourceRootConfig(path="src")]
    return [SourceRootConfig(path=".")]


class IndexPipeline:
    """Builds the class map and hierarchy index for one project."""

    def __init__(
        self,
        config: ClassMapConfig,
        project_root: Path,
        runner: WorkerRunner | None = None,
        scanner: DirectoryScanner | None = None,
    ) -> None:
        self.config = config
        self.project_root = project_root.resolve()
        self._runner = runner
        self._scanner = scanner or DirectoryScanner()
        class_map, hierarchy, scan_cache = get_artifact_paths(self.project_root, config)
        self.writer = IndexWriter(class_map, hierarchy, scan_cache)

    def roots(self, scope: RootScope = "all") -> list[SourceRoot]:
        configs = self.config.roots or default_root_configs(self.project_root)
        return resolve_roots(configs, self.project_root, scope)

    def run(self, context: RunContext | None = None) -> BuildReport:
        """Run every stage and write the artifacts.

        Raises:
            WorkerError: Worker infrastructure failed (launch, protocol,
                timeout outside a load, unparseable hierarchy payload).
            ArtifactError: An artifact could not be written.
            InternalError: A stage failed unexpectedly; ``details["stage"]``
                names it.
        """
        context = context or RunContext()
        if context.reentrant:
            logger.info("build_skipped", reason="reentrant")
            return BuildReport(run_id=context.run_id or get_run_id() or "", skipped=True)

        previous_run_id = get_run_id()
        run_id = set_run_id(context.run_id)
        try:
            return self._run(context, run_id)
        finally:
            if previous_run_id is None:
                clear_run_id()
            else:
                set_run_id(previous_run_id)

    def _run(self, context: RunContext, run_id: str) -> BuildReport:
        start = time.monotonic()
        roots = self.roots(context.scope)
        runner = self._runner or WorkerRunner(roots, self.config.worker, self.project_root, run_id)
        worker = self.config.worker
        paths = self.writer.paths

        logger.info(
            "build_started", roots=len(roots), scope=context.scope, use_cache=context.use_cache
        )

        stage = "scan"
        try:
            cache = ScanCache.load(paths.scan_cache) if context.use_cache else ScanCache()
            scan = self._scanner.scan(roots, cache)

            stage = "validate"
            validator = IsolatedValidator(
                runner,
                batch_size=worker.batch_size,
                max_parallel=worker.max_parallel,
                max_passes=worker.max_passes,
            )
            outcome = validator.validate(scan.candidates)

            stage = "hierarchy"
            records = HierarchyExtractor(runner).extract(outcome.valid_index)

            stage = "write"
            new_exclusions = self.writer.new_exclusions(outcome.errors)
            self._ensure_index_dir(paths.class_map.parent)
            artifacts = self.writer.write(outcome, records, scan.cache)
        except ClassMapError as e:
            logger.error("stage_failed", stage=stage, code=e.code.name, error=e.message)
            raise
        except KeyboardInterrupt:
            runner.terminate_all()
            logger.warning("build_interrupted", stage=stage)
            raise
        except Exception as e:
            runner.terminate_all()
            logger.exception("stage_failed", stage=stage, code="INTERNAL_ERROR")
            raise InternalError.unexpected(f"{type(e).__name__}: {e}", stage=stage) from e

        report = BuildReport(
            run_id=run_id,
            candidates=len(scan.candidates),
            validated=len(outcome.valid_index),
            errors=dict(outcome.errors),
            new_exclusions=new_exclusions,
            warnings=dict(outcome.warnings),
            parsed_files=scan.parsed_files,
            reused_files=scan.reused_files,
            skipped_roots=list(scan.skipped_roots),
            collisions=list(scan.collisions),
            passes=outcome.passes,
            worker_invocations=outcome.worker_invocations,
            artifacts=artifacts,
            duration_ms=int((time.monotonic() - start) * 1000),
        )
        logger.info(
            "build_complete",
            candidates=report.candidates,
            validated=report.validated,
            excluded=report.excluded,
            new_exclusions=len(report.new_exclusions),
            load_warnings=len(report.warnings),
            passes=report.passes,
            duration_ms=report.duration_ms,
        )
        return report

    def _ensure_index_dir(self, index_dir: Path) -> None:
        # A failure here is reported by the writer's own checks.
        try:
            index_dir.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            logger.debug("index_dir_create_failed", path=str(index_dir), error=str(e))


def build_index(
    project_root: Path,
    context: RunContext | None = None,
    **overrides: Any,
) -> BuildReport:
    """Load configuration for ``project_root`` and build its index."""
    config = load_config(project_root, **overrides)
    return IndexPipeline(config, project_root).run(context)
