"""Configuration constants.

This module contains truly constant values that should NOT be user-configurable.
These are protocol constraints, artifact schema versions and naming defaults.

For configurable values, see models.py (WorkerConfig, OutputConfig, etc.).
"""

from typing import Final

# =============================================================================
# Worker Protocol
# =============================================================================
# Literal line tokens written by the probe worker. They must not collide with
# anything indexed code is likely to print, hence the random suffixes. The
# worker script carries its own copy (it cannot import this package).

STARTUP_MARKER = "CLASSMAP_STARTUP_7F3A"
"""First line of a healthy probe worker's output."""

BEFORE_LOAD_MARKER = "CLASSMAP_BEFORE_LOAD_2C9E"
"""Written before each symbol; the symbol name follows on its own line."""

AFTER_LOAD_MARKER = "CLASSMAP_AFTER_LOAD_B41D"
"""Written only when the in-flight symbol loaded cleanly."""

END_MARKER = "CLASSMAP_END_5E60"
"""Last line of a probe worker that attempted every symbol."""

PROBE_MODE: Final = "probe"
"""Worker mode that brackets each load with markers."""

HIERARCHY_MODE: Final = "hierarchy"
"""Worker mode that reports supertypes and interfaces as JSON."""

# =============================================================================
# Artifacts
# =============================================================================

SCAN_CACHE_VERSION = 1
"""Bump when the scan cache layout changes; older caches are ignored."""

DEFAULT_INDEX_DIR = ".classmap"
DEFAULT_CLASS_MAP_FILE = "class_map.json"
DEFAULT_HIERARCHY_FILE = "hierarchy.json"
DEFAULT_SCAN_CACHE_FILE = "scan_cache.json"

PROJECT_CONFIG_FILE = "classmap.yaml"
"""Per-project config file, looked up in the project root."""

# =============================================================================
# Scanning
# =============================================================================

SOURCE_SUFFIX = ".py"

DEFAULT_EXCLUDE_PATTERN = r"(^|/)(tests?/|test_[^/]*\.py$|[^/]*_test\.py$|conftest\.py$)"
"""Test files never define autoloadable classes."""

# =============================================================================
# Worker Limits
# =============================================================================

DEFAULT_WORKER_TIMEOUT_SEC = 300.0
