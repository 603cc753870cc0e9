"""Atomic persistence of the generated artifacts.

External readers (the autoloader, reflection queries) may open an artifact
at any moment, so every file is written next to its destination and moved
into place with ``os.replace``. A failed run leaves the previous artifacts
untouched.
"""

from __future__ import annotations

import json
import os
import tempfile
from collections.abc import Mapping
from pathlib import Path
from typing import Any

import structlog

from classmap.core.errors import ArtifactError
from classmap.index.models import (
    HierarchyRecord,
    ValidationOutcome,
    WrittenArtifacts,
    hierarchy_payload,
)
from classmap.index.scan_cache import ScanCache

logger = structlog.get_logger()


def render_json(payload: Any) -> str:
    """Deterministic JSON: equal payloads render to identical bytes."""
    return json.dumps(payload, sort_keys=True, indent=2) + "\n"


def detect_write_issues(path: Path) -> None:
    """Raise ArtifactError if ``path`` cannot be written.

    Checks the file itself when it exists, otherwise the directory that
    would contain it. A missing directory is reported against its nearest
    existing ancestor when that ancestor is not writable.
    """
    if path.exists():
        if path.is_dir() or not os.access(path, os.W_OK):
            raise ArtifactError.not_writable(str(path), str(path), is_dir=path.is_dir())

    parent = path.parent
    if parent.is_dir():
        if not os.access(parent, os.W_OK | os.X_OK):
            raise ArtifactError.not_writable(str(path), str(parent), is_dir=True)
        return

    ancestor = parent
    while not ancestor.exists() and ancestor.parent != ancestor:
        ancestor = ancestor.parent
    if ancestor.exists() and not os.access(ancestor, os.W_OK):
        raise ArtifactError.not_writable(str(path), str(ancestor), is_dir=ancestor.is_dir())
    raise ArtifactError.missing_directory(str(path), str(parent))


def atomic_write_text(path: Path, text: str) -> None:
    """Write ``text`` to ``path`` via a temporary file and ``os.replace``."""
    tmp_name: str | None = None
    try:
        with tempfile.NamedTemporaryFile(
            "w",
            encoding="utf-8",
            dir=path.parent,
            prefix=f".{path.name}.",
            suffix=".tmp",
            delete=False,
        ) as tmp:
            tmp_name = tmp.name
            tmp.write(text)
            tmp.flush()
            os.fsync(tmp.fileno())
        os.chmod(tmp_name, 0o644)
        os.replace(tmp_name, path)
    except OSError as e:
        if tmp_name is not None:
            try:
                os.unlink(tmp_name)
            except FileNotFoundError:
                pass
        raise ArtifactError.write_failed(str(path), str(e)) from e


def read_previous_errors(path: Path) -> set[str] | None:
    """Symbols excluded by the previous run, or None if there is no usable artifact."""
    try:
        payload = json.loads(path.read_text(encoding="utf-8"))
    except FileNotFoundError:
        return None
    except (OSError, ValueError) as e:
        logger.debug("previous_class_map_unreadable", path=str(path), error=str(e))
        return None
    if not isinstance(payload, dict) or not isinstance(payload.get("errors"), dict):
        return None
    return set(payload["errors"])


class IndexWriter:
    """Writes the class map, hierarchy and scan cache artifacts."""

    def __init__(self, class_map_path: Path, hierarchy_path: Path, scan_cache_path: Path) -> None:
        self.paths = WrittenArtifacts(
            class_map=class_map_path,
            hierarchy=hierarchy_path,
            scan_cache=scan_cache_path,
        )

    def new_exclusions(self, errors: Mapping[str, str]) -> list[str]:
        """Excluded symbols that the previous class map did not already exclude."""
        previous = read_previous_errors(self.paths.class_map) or set()
        return sorted(set(errors) - previous)

    def write(
        self,
        outcome: ValidationOutcome,
        hierarchy: Mapping[str, HierarchyRecord],
        cache: ScanCache,
    ) -> WrittenArtifacts:
        """Persist all artifacts.

        Every destination is checked before the first write, so a permission
        problem surfaces without replacing any artifact.

        Raises:
            ArtifactError: A destination is not writable or a write failed.
        """
        for path in (self.paths.class_map, self.paths.hierarchy, self.paths.scan_cache):
            detect_write_issues(path)

        contents = {
            self.paths.class_map: render_json(
                {"classMap": outcome.class_map(), "errors": dict(outcome.errors)}
            ),
            self.paths.hierarchy: render_json(hierarchy_payload(hierarchy)),
            self.paths.scan_cache: render_json(cache.without_missing_files().to_payload()),
        }
        for path, text in contents.items():
            atomic_write_text(path, text)
            logger.debug("artifact_written", path=str(path), bytes=len(text.encode("utf-8")))
        return self.paths
