"""Fixtures for integration tests that spawn real worker interpreters."""

from __future__ import annotations

from collections.abc import Callable, Mapping
from pathlib import Path
from typing import Any

import pytest

from classmap.config.models import ClassMapConfig, SourceRootConfig, WorkerConfig
from classmap.index.pipeline import IndexPipeline


@pytest.fixture
def make_project(tmp_path: Path) -> Callable[[Mapping[str, str]], Path]:
    """Write ``{relative path: source}`` under the project and return its root."""

    def _make(files: Mapping[str, str]) -> Path:
        for rel_path, content in files.items():
            path = tmp_path / rel_path
            path.parent.mkdir(parents=True, exist_ok=True)
            path.write_text(content)
        return tmp_path

    return _make


@pytest.fixture
def make_pipeline() -> Callable[..., IndexPipeline]:
    """Pipeline over ``roots`` (default: src) with a short worker timeout."""

    def _make(
        project_root: Path,
        roots: list[SourceRootConfig] | None = None,
        **worker: Any,
    ) -> IndexPipeline:
        worker.setdefault("timeout_sec", 60)
        config = ClassMapConfig(
            roots=roots or [SourceRootConfig(path="src")],
            worker=WorkerConfig(**worker),
        )
        return IndexPipeline(config, project_root)

    return _make
