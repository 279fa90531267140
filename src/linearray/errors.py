"""Exception hierarchy for line-addressed file access."""

from __future__ import annotations


class LineArrayError(Exception):
    """Base class for all linearray errors."""


class OpenError(LineArrayError):
    """The file descriptor could not be obtained.

    Every operation waiting for the accessor to become ready raises this
    error, so a failed open never leaves callers suspended.
    """

    def __init__(self, path: str, cause: BaseException | None = None):
        self.path = path
        self.cause = cause
        message = f"Failed to open {path}"
        if cause is not None:
            message = f"{message}: {cause}"
        super().__init__(message)


class ReadError(LineArrayError):
    """An I/O failure occurred while scanning a file."""

    def __init__(self, path: str, offset: int, cause: BaseException | None = None):
        self.path = path
        self.offset = offset
        self.cause = cause
        super().__init__(f"Failed to read {path} at offset {offset}: {cause}")


class StatError(LineArrayError):
    """The file could not be stat'd."""

    def __init__(self, path: str, cause: BaseException | None = None):
        self.path = path
        self.cause = cause
        super().__init__(f"Failed to stat {path}: {cause}")


class AccessorClosedError(LineArrayError):
    """An operation was issued after the accessor was closed."""


class ConfigError(LineArrayError, ValueError):
    """Invalid accessor options or configuration file."""
