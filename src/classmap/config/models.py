"""Pydantic configuration models with env var support.

Configuration Hierarchy (highest to lowest precedence):
1. Direct kwargs to load_config()
2. Environment variables (CLASSMAP__SECTION__KEY)
3. Project YAML (classmap.yaml in the project root)
4. Global YAML (~/.config/classmap/config.yaml)
5. Built-in defaults (this file)

Environment Variable Format:
    CLASSMAP__<SECTION>__<KEY>=<VALUE>

Examples:
    CLASSMAP__LOGGING__LEVEL=DEBUG
    CLASSMAP__WORKER__TIMEOUT_SEC=60
    CLASSMAP__WORKER__MAX_PARALLEL=4
    CLASSMAP__ROOTS='[{"path": "src"}]'
"""

import re
from pathlib import Path
from typing import Literal

from pydantic import BaseModel, Field, field_validator

from classmap.config.constants import (
    DEFAULT_CLASS_MAP_FILE,
    DEFAULT_EXCLUDE_PATTERN,
    DEFAULT_HIERARCHY_FILE,
    DEFAULT_INDEX_DIR,
    DEFAULT_SCAN_CACHE_FILE,
    DEFAULT_WORKER_TIMEOUT_SEC,
)

LogLevel = Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]
RootKind = Literal["application", "dependency"]

_IDENTIFIER = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*$")


class LogOutputConfig(BaseModel):
    """Single logging output configuration.

    Env vars: Not directly configurable via env (use YAML for multi-output).
    """

    format: Literal["json", "console"] = "console"
    destination: str = "stderr"  # stderr, stdout, or absolute file path
    level: LogLevel | None = None  # Inherits from parent if None

    @field_validator("destination")
    @classmethod
    def validate_destination(cls, v: str) -> str:
        if v in ("stderr", "stdout"):
            return v
        path = Path(v).expanduser()
        if not path.is_absolute():
            raise ValueError(f"File destination must be absolute path: {v}")
        return str(path)


class LoggingConfig(BaseModel):
    """Logging configuration.

    Env vars:
        CLASSMAP__LOGGING__LEVEL: Log level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
    """

    level: LogLevel = Field(
        default="INFO",
        description="Root log level. DEBUG also logs every dropped duplicate symbol.",
    )
    outputs: list[LogOutputConfig] = Field(default_factory=lambda: [LogOutputConfig()])


class SourceRootConfig(BaseModel):
    """One directory of source files to index.

    A root behaves like a ``sys.path`` entry: ``<root>/acme/billing.py``
    is the module ``acme.billing``. Root order matters: the first root that
    declares a symbol wins.
    """

    path: str = Field(description="Directory, absolute or relative to the project root.")
    namespace: str | None = Field(
        default=None,
        description="Only index modules equal to or below this dotted prefix.",
    )
    exclude: str | None = Field(
        default=DEFAULT_EXCLUDE_PATTERN,
        description="Regex searched against root-relative posix paths. "
        "Empty string disables exclusion.",
    )
    kind: RootKind = Field(
        default="application",
        description="Selects the root for 'application' or 'dependencies' scoped builds.",
    )

    @field_validator("namespace")
    @classmethod
    def validate_namespace(cls, v: str | None) -> str | None:
        if v is None or v == "":
            return None
        v = v.strip(".")
        if not all(_IDENTIFIER.match(part) for part in v.split(".")):
            raise ValueError(f"Namespace must be a dotted module prefix: {v}")
        return v

    @field_validator("exclude")
    @classmethod
    def validate_exclude(cls, v: str | None) -> str | None:
        if v is None or v == "":
            return None
        try:
            re.compile(v)
        except re.error as e:
            raise ValueError(f"Invalid exclude pattern {v!r}: {e}") from e
        return v


class WorkerConfig(BaseModel):
    """Isolated worker process configuration.

    Env vars:
        CLASSMAP__WORKER__PYTHON_EXECUTABLE: Interpreter used to load indexed code
        CLASSMAP__WORKER__TIMEOUT_SEC: Per-worker timeout
        CLASSMAP__WORKER__BATCH_SIZE: Symbols per probe batch (0 = one batch)
        CLASSMAP__WORKER__MAX_PARALLEL: Concurrent probe batches
    """

    python_executable: str | None = Field(
        default=None,
        description="Interpreter for workers. Defaults to the running interpreter. "
        "Point it at the indexed project's virtualenv so third-party imports resolve.",
    )
    timeout_sec: float | None = Field(
        default=DEFAULT_WORKER_TIMEOUT_SEC,
        description="Kill a worker after this many seconds. null disables. "
        "RISK: Too low turns slow imports into exclusions.",
    )
    batch_size: int = Field(
        default=0,
        description="Symbols per probe batch. 0 probes everything in one worker. "
        "TRADEOFF: Smaller batches isolate better but spawn more processes.",
    )
    max_parallel: int = Field(
        default=1,
        description="Probe batches run concurrently. Only useful with batch_size > 0.",
    )
    max_passes: int | None = Field(
        default=None,
        description="Upper bound on validation passes before giving up. "
        "null bounds it by the candidate count plus one, which only a bug can exhaust.",
    )
    bootstrap: str | None = Field(
        default=None,
        description="Python file executed in every worker before loading symbols.",
    )
    sys_path: list[str] = Field(
        default_factory=list,
        description="Extra sys.path entries appended after the source roots.",
    )
    env: dict[str, str] = Field(
        default_factory=dict,
        description="Extra environment variables for workers.",
    )

    @field_validator("batch_size")
    @classmethod
    def validate_batch_size(cls, v: int) -> int:
        if v < 0:
            raise ValueError(f"batch_size must be >= 0, got {v}")
        return v

    @field_validator("max_parallel", "max_passes")
    @classmethod
    def validate_positive(cls, v: int | None) -> int | None:
        if v is not None and v < 1:
            raise ValueError(f"Must be >= 1, got {v}")
        return v

    @field_validator("timeout_sec")
    @classmethod
    def validate_timeout(cls, v: float | None) -> float | None:
        if v is not None and v <= 0:
            raise ValueError(f"timeout_sec must be positive, got {v}")
        return v


class OutputConfig(BaseModel):
    """Generated artifact locations.

    Env vars:
        CLASSMAP__OUTPUT__INDEX_DIR: Directory for generated artifacts
    """

    index_dir: str = Field(
        default=DEFAULT_INDEX_DIR,
        description="Artifact directory, absolute or relative to the project root.",
    )
    class_map_file: str = DEFAULT_CLASS_MAP_FILE
    hierarchy_file: str = DEFAULT_HIERARCHY_FILE
    scan_cache_file: str = DEFAULT_SCAN_CACHE_FILE


class ClassMapConfig(BaseModel):
    """Root configuration for ClassMap.

    All settings can be configured via:
    1. Environment variables: CLASSMAP__SECTION__KEY
    2. YAML config files (project or global)
    3. Direct kwargs to load_config()
    """

    logging: LoggingConfig = Field(default_factory=LoggingConfig)
    roots: list[SourceRootConfig] = Field(default_factory=list)
    worker: WorkerConfig = Field(default_factory=WorkerConfig)
    output: OutputConfig = Field(default_factory=OutputConfig)
