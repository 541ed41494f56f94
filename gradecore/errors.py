"""Exception hierarchy shared across gradecore modules."""

from __future__ import annotations

__all__ = [
    "GradecoreError",
    "InvalidOutputShapeError",
    "MissingFunctionNameError",
    "NoDefinitionsError",
    "ResourceNotFoundError",
    "ResourceParseError",
    "SchemaDefinitionError",
    "ScriptExecutionError",
]


class GradecoreError(Exception):
    """Base class for every error raised by gradecore."""


class ResourceNotFoundError(GradecoreError, FileNotFoundError):
    """Raised when a referenced file does not exist."""

    def __init__(self, path: str) -> None:
        super().__init__(f"File does not exist: {path}")
        self.path = path


class MissingFunctionNameError(GradecoreError, ValueError):
    """Raised when a script reference has no resolvable entry point."""

    def __init__(self, path: str) -> None:
        super().__init__(f"No function name available for Python file: {path}")
        self.path = path


class ScriptExecutionError(GradecoreError, RuntimeError):
    """Raised when a script bridge fails to produce a result."""

    def __init__(
        self,
        message: str,
        *,
        exit_code: int | None = None,
        stderr: str = "",
        traceback: str | None = None,
    ) -> None:
        super().__init__(message)
        self.exit_code = exit_code
        self.stderr = stderr
        self.traceback = traceback


class NoDefinitionsError(GradecoreError):
    """Raised when there is no function or tool definition set to validate against."""


class InvalidOutputShapeError(GradecoreError, ValueError):
    """Raised when model output matches none of the recognised call shapes."""

    def __init__(self, message: str, *, mode: object | None = None) -> None:
        super().__init__(message)
        self.mode = mode


class SchemaDefinitionError(GradecoreError, ValueError):
    """Raised when a declared parameter schema is itself invalid."""


class ResourceParseError(GradecoreError, ValueError):
    """Raised when a referenced JSON or YAML file cannot be parsed."""
