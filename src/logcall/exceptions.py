"""Error taxonomy for the logcall transformer.

Every error is raised while a function is being transformed and is fatal to
that function only. The engine records it against the function and moves on
to the next declaration; nothing is retried.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from logcall.model import Location


class LogcallError(Exception):
    """Base class for transformation failures."""

    kind = "error"

    def __init__(
        self,
        message: str,
        *,
        location: Location | None = None,
        function: str | None = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.location = location
        self.function = function

    def with_context(
        self,
        *,
        location: Location | None = None,
        function: str | None = None,
    ) -> LogcallError:
        if self.location is None and location is not None:
            self.location = location
        if self.function is None and function is not None:
            self.function = function
        return self

    def __str__(self) -> str:
        prefix = f"{self.location}: " if self.location is not None else ""
        suffix = f" (in `{self.function}`)" if self.function else ""
        return f"{prefix}{self.message}{suffix}"


class UsageError(LogcallError):
    """Malformed or conflicting directive."""

    kind = "usage"


class UnsupportedShapeError(LogcallError):
    """The function body has a recognized shape that cannot be instrumented."""

    kind = "unsupported-shape"


class InternalShapeMismatch(LogcallError):
    """A parameter cannot be used as a simple binding in generated code."""

    kind = "shape-mismatch"
