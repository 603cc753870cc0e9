"""ClassMap error types with typed error codes.

Error code ranges:
- 2xxx: Config
- 4xxx: Worker (isolated load processes)
- 5xxx: Artifact I/O
- 9xxx: Internal

Per-symbol load failures are NOT errors in this sense: they are data and
travel in ``ValidationOutcome.errors``. Everything raised from here means the
tool itself could not do its job.
"""

from dataclasses import dataclass, field
from enum import IntEnum
from typing import Any


class ErrorCode(IntEnum):
    """Typed error codes for programmatic handling."""

    # Config (2xxx)
    CONFIG_PARSE_ERROR = 2001
    CONFIG_INVALID_VALUE = 2002

    # Worker (4xxx)
    WORKER_LAUNCH_FAILED = 4001
    WORKER_MISSING_STARTUP = 4002
    WORKER_PROTOCOL_VIOLATION = 4003
    WORKER_TIMEOUT = 4004
    WORKER_ERROR_OUTPUT = 4005
    WORKER_INVALID_PAYLOAD = 4006
    WORKER_PASSES_EXHAUSTED = 4007

    # Artifact (5xxx)
    ARTIFACT_NOT_WRITABLE = 5001
    ARTIFACT_MISSING_DIRECTORY = 5002
    ARTIFACT_WRITE_FAILED = 5003

    # Internal (9xxx)
    INTERNAL_ERROR = 9001


# Raw worker output is kept in details, but capped so a runaway worker
# cannot blow up logs or error payloads.
_OUTPUT_DETAIL_LIMIT = 8000


def _clip(output: str) -> str:
    if len(output) <= _OUTPUT_DETAIL_LIMIT:
        return output
    remaining = len(output) - _OUTPUT_DETAIL_LIMIT
    return output[:_OUTPUT_DETAIL_LIMIT] + f"\n... [{remaining} more chars]"


@dataclass(frozen=True, slots=True)
class ClassMapError(Exception):
    """Base error with structured context."""

    code: ErrorCode
    message: str
    retryable: bool = False
    details: dict[str, Any] = field(default_factory=dict)

    @property
    def error_name(self) -> str:
        """String identifier for logging (e.g., 'WORKER_TIMEOUT')."""
        return self.code.name

    @property
    def stage(self) -> str | None:
        """Pipeline stage the error was raised from, when known."""
        stage = self.details.get("stage")
        return str(stage) if stage is not None else None

    def to_dict(self) -> dict[str, Any]:
        """Serialize for JSON output."""
        return {
            "code": self.code.value,
            "error": self.error_name,
            "message": self.message,
            "retryable": self.retryable,
            "details": self.details,
        }

    def __str__(self) -> str:
        return f"[{self.code.value}] {self.error_name}: {self.message}"


class ConfigError(ClassMapError):
    """Configuration-related errors."""

    @classmethod
    def parse_error(cls, path: str, reason: str) -> "ConfigError":
        return cls(
            code=ErrorCode.CONFIG_PARSE_ERROR,
            message=f"Failed to parse config at {path}: {reason}",
            details={"path": path, "reason": reason},
        )

    @classmethod
    def invalid_value(cls, field: str, value: Any, reason: str) -> "ConfigError":
        return cls(
            code=ErrorCode.CONFIG_INVALID_VALUE,
            message=f"Invalid value for '{field}': {reason}",
            details={"field": field, "value": str(value), "reason": reason},
        )


class WorkerError(ClassMapError):
    """Infrastructure failures of an isolated worker process.

    ``details`` always carries ``stage`` and, where available, the worker
    ``invocation`` number and its raw ``output``.
    """

    @classmethod
    def launch_failed(cls, stage: str, command: list[str], reason: str) -> "WorkerError":
        return cls(
            code=ErrorCode.WORKER_LAUNCH_FAILED,
            message=f"Could not start {stage} worker: {reason}",
            details={"stage": stage, "command": command, "reason": reason},
        )

    @classmethod
    def missing_startup(cls, stage: str, invocation: int, output: str) -> "WorkerError":
        return cls(
            code=ErrorCode.WORKER_MISSING_STARTUP,
            message=f"{stage} worker #{invocation} exited before emitting its startup marker",
            details={"stage": stage, "invocation": invocation, "output": _clip(output)},
        )

    @classmethod
    def protocol_violation(
        cls, stage: str, invocation: int, reason: str, output: str
    ) -> "WorkerError":
        return cls(
            code=ErrorCode.WORKER_PROTOCOL_VIOLATION,
            message=f"{stage} worker #{invocation} broke the output protocol: {reason}",
            details={
                "stage": stage,
                "invocation": invocation,
                "reason": reason,
                "output": _clip(output),
            },
        )

    @classmethod
    def timeout(cls, stage: str, invocation: int, seconds: float, output: str) -> "WorkerError":
        return cls(
            code=ErrorCode.WORKER_TIMEOUT,
            message=f"{stage} worker #{invocation} timed out after {seconds:g}s",
            retryable=True,
            details={
                "stage": stage,
                "invocation": invocation,
                "timeout_sec": seconds,
                "output": _clip(output),
            },
        )

    @classmethod
    def error_output(
        cls, stage: str, invocation: int, stderr: str, returncode: int | None
    ) -> "WorkerError":
        return cls(
            code=ErrorCode.WORKER_ERROR_OUTPUT,
            message=f"{stage} worker #{invocation} reported errors (exit code {returncode})",
            details={
                "stage": stage,
                "invocation": invocation,
                "returncode": returncode,
                "output": _clip(stderr),
            },
        )

    @classmethod
    def invalid_payload(
        cls, stage: str, invocation: int, reason: str, output: str
    ) -> "WorkerError":
        return cls(
            code=ErrorCode.WORKER_INVALID_PAYLOAD,
            message=f"{stage} worker #{invocation} returned an unreadable payload: {reason}",
            details={
                "stage": stage,
                "invocation": invocation,
                "reason": reason,
                "output": _clip(output),
            },
        )

    @classmethod
    def passes_exhausted(cls, stage: str, max_passes: int, excluded: int) -> "WorkerError":
        return cls(
            code=ErrorCode.WORKER_PASSES_EXHAUSTED,
            message=(
                f"Exclusions still changing after {max_passes} validation passes "
                f"({excluded} symbols excluded so far)"
            ),
            details={"stage": stage, "max_passes": max_passes, "excluded": excluded},
        )


class ArtifactError(ClassMapError):
    """Errors writing generated artifacts.

    Raised before anything becomes visible at the destination path.
    """

    @classmethod
    def not_writable(cls, path: str, blocking_path: str, is_dir: bool) -> "ArtifactError":
        kind = "Directory" if is_dir else "File"
        return cls(
            code=ErrorCode.ARTIFACT_NOT_WRITABLE,
            message=f"File system error: {kind} '{blocking_path}' is not writable",
            details={"stage": "write", "path": path, "blocking_path": blocking_path},
        )

    @classmethod
    def missing_directory(cls, path: str, directory: str) -> "ArtifactError":
        return cls(
            code=ErrorCode.ARTIFACT_MISSING_DIRECTORY,
            message=f"Cannot write '{path}': directory '{directory}' does not exist",
            details={"stage": "write", "path": path, "directory": directory},
        )

    @classmethod
    def write_failed(cls, path: str, reason: str) -> "ArtifactError":
        return cls(
            code=ErrorCode.ARTIFACT_WRITE_FAILED,
            message=f"An error occurred while writing '{path}': {reason}",
            details={"stage": "write", "path": path, "reason": reason},
        )


class InternalError(ClassMapError):
    """Internal/unexpected errors."""

    @classmethod
    def unexpected(cls, reason: str, **details: Any) -> "InternalError":
        return cls(
            code=ErrorCode.INTERNAL_ERROR,
            message=f"Internal error: {reason}",
            details=details,
        )
