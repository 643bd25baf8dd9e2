"""logcall package root."""

from logcall.exceptions import (
    InternalShapeMismatch,
    LogcallError,
    UnsupportedShapeError,
    UsageError,
)
from logcall.markers import logcall

__all__ = [
    "__version__",
    "InternalShapeMismatch",
    "LogcallError",
    "UnsupportedShapeError",
    "UsageError",
    "logcall",
]

__version__ = "0.1.0"
