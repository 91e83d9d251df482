"""Exception types raised by the dirscope core."""

from pathlib import Path


class DirscopeError(Exception):
    """Base exception for all dirscope errors."""


class ListError(DirscopeError):
    """Raised when a directory's own children cannot be enumerated.

    This is distinct from per-entry failures found deeper in a directory
    walk, which never raise and resolve to a ``Failed`` outcome instead.
    """

    def __init__(self, path: Path, message: str) -> None:
        """Initialize ListError.

        Args:
            path: Directory that could not be listed
            message: Raw error text reported by the operating system
        """
        super().__init__(f"Cannot list directory {path}: {message}")
        self.path: Path = path
        self.message: str = message


class ConfigurationError(DirscopeError):
    """Raised when configuration loading or validation fails.

    Carries a detailed, actionable message covering missing files, YAML
    syntax errors and field-level validation failures.
    """


class EnvironmentVariableError(DirscopeError):
    """Raised when a ``${VAR}`` reference in configuration cannot be resolved."""
