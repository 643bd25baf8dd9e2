from __future__ import annotations

from typing import Any, Callable, TypeVar

F = TypeVar("F", bound=Callable[..., Any])


def logcall(*args: Any, **kwargs: Any) -> Any:
    """Build-time directive marker.

    ``logcall transform`` consumes the decorator and rewrites the function
    body. Left in place, it returns the function unchanged so untransformed
    sources still import; it never instruments anything at runtime.
    """
    if len(args) == 1 and not kwargs and callable(args[0]):
        return args[0]

    def _marker(func: F) -> F:
        return func

    return _marker
