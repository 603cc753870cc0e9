"""Directories the scanner never descends into.

Installed dependencies are indexed by configuring their site-packages as a
root of kind "dependency", never by walking into a virtualenv.
"""

from __future__ import annotations

PRUNABLE_DIRS: frozenset[str] = frozenset(
    (
        # VCS internals
        ".git",
        ".svn",
        ".hg",
        ".bzr",
        # ClassMap data
        ".classmap",
        # Virtual environments
        "venv",
        "virtualenv",
        # Bytecode and tool caches
        "__pycache__",
        ".mypy_cache",
        ".pytest_cache",
        ".ruff_cache",
        ".tox",
        ".nox",
        ".hypothesis",
    )
)
