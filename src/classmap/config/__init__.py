"""Config module exports."""

from classmap.config.loader import get_artifact_paths, load_config
from classmap.config.models import (
    ClassMapConfig,
    LoggingConfig,
    OutputConfig,
    SourceRootConfig,
    WorkerConfig,
)

__all__ = [
    "load_config",
    "get_artifact_paths",
    "ClassMapConfig",
    "LoggingConfig",
    "OutputConfig",
    "SourceRootConfig",
    "WorkerConfig",
]
