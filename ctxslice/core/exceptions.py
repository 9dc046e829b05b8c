"""Exception classes for context tree operations.

Builder and mutator code degrades by omission and logs instead of raising;
these types are used where a failure has to be reported or recorded.
"""

from __future__ import annotations

from pathlib import Path


class ContextTreeError(Exception):
    """Base exception for context tree errors."""

    pass


class InvalidInputError(ContextTreeError):
    """Raised when a file cannot be added to a session."""

    def __init__(self, path: str | Path, reason: str = "not a writable file in the workspace"):
        self.path = str(path)
        self.reason = reason
        super().__init__(f"Invalid input '{self.path}': {reason}")


class DeserializationError(ContextTreeError):
    """Raised when the sessions document or one of its entries cannot be parsed."""

    def __init__(self, source: str, detail: str = ""):
        self.source = source
        self.detail = detail
        message = f"Failed to deserialize {source}"
        if detail:
            message += f": {detail}"
        super().__init__(message)


class RenderMissError(ContextTreeError):
    """Raised when a selected element cannot be located in source at render time."""

    def __init__(self, file_path: str, element: str = ""):
        self.file_path = file_path
        self.element = element
        target = f"{file_path}#{element}" if element else file_path
        super().__init__(f"Cannot locate {target} in source")


class PersistenceError(ContextTreeError):
    """Raised when the sessions document cannot be written."""

    def __init__(self, path: str | Path, cause: Exception | None = None):
        self.path = str(path)
        self.cause = cause
        message = f"Failed to write sessions to {self.path}"
        if cause is not None:
            message += f": {cause}"
        super().__init__(message)
