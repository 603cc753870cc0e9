"""Core module exports."""

from classmap.core.errors import (
    ArtifactError,
    ClassMapError,
    ConfigError,
    ErrorCode,
    InternalError,
    WorkerError,
)
from classmap.core.logging import (
    clear_run_id,
    configure_logging,
    get_logger,
    get_run_id,
    set_run_id,
)
from classmap.core.progress import pluralize, spinner, status

__all__ = [
    # Errors
    "ArtifactError",
    "ClassMapError",
    "ConfigError",
    "ErrorCode",
    "InternalError",
    "WorkerError",
    # Logging
    "clear_run_id",
    "configure_logging",
    "get_logger",
    "get_run_id",
    "set_run_id",
    # Progress
    "pluralize",
    "spinner",
    "status",
]
