"""Recognize bodies that retrofit a coroutine onto a synchronous function.

Some tools turn ``async def`` methods into plain ``def`` methods that build a
coroutine and hand it to a future constructor::

    def fetch(self, key):
        async def _fetch(self=self, key=key):
            ...
        return asyncio.ensure_future(_fetch())

Instrumenting the outer function would only measure the construction of the
future, so the detector exposes the inner coroutine body instead. The match
is structural and conservative: when in doubt it reports ``NotAWrapper``.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Sequence, TypeAlias

import libcst as cst

DEFAULT_WRAPPER_CONSTRUCTORS: tuple[str, ...] = ("asyncio.ensure_future",)


@dataclass(frozen=True)
class NotAWrapper:
    pass


@dataclass(frozen=True)
class InlineWrapper:
    """The coroutine function to instrument and its index in the outer body."""

    block: cst.FunctionDef
    index: int


@dataclass(frozen=True)
class UnsupportedLegacyWrapper:
    function: cst.FunctionDef
    call: cst.Call


WrapperShape: TypeAlias = NotAWrapper | InlineWrapper | UnsupportedLegacyWrapper

NOT_A_WRAPPER = NotAWrapper()


def dotted_name(expr: cst.BaseExpression | None) -> str | None:
    if expr is None:
        return None
    if isinstance(expr, cst.Name):
        return expr.value
    if isinstance(expr, cst.Attribute):
        parts = []
        current: cst.BaseExpression = expr
        while isinstance(current, cst.Attribute):
            parts.append(current.attr.value)
            current = current.value
        if isinstance(current, cst.Name):
            parts.append(current.value)
            return ".".join(reversed(parts))
    return None


def matches_constructor(path: str, constructors: Sequence[str]) -> bool:
    return any(path == name or path.endswith("." + name) for name in constructors)


def body_statements(body: cst.BaseSuite) -> Sequence[cst.BaseStatement]:
    if isinstance(body, cst.IndentedBlock):
        return body.body
    if isinstance(body, cst.SimpleStatementSuite):
        return [cst.SimpleStatementLine(body=body.body)]
    return ()


def is_docstring(stmt: cst.CSTNode) -> bool:
    if not isinstance(stmt, cst.SimpleStatementLine) or not stmt.body:
        return False
    expr = stmt.body[0]
    return isinstance(expr, cst.Expr) and isinstance(
        expr.value, (cst.SimpleString, cst.ConcatenatedString)
    )


def classify_body(
    body: cst.BaseSuite,
    *,
    is_async: bool,
    parameters: Sequence[str],
    constructors: Sequence[str] = DEFAULT_WRAPPER_CONSTRUCTORS,
) -> WrapperShape:
    if is_async:
        return NOT_A_WRAPPER
    statements = list(body_statements(body))
    if not statements:
        return NOT_A_WRAPPER

    returned = _returned_expression(statements[-1])
    if not isinstance(returned, cst.Call):
        return NOT_A_WRAPPER
    path = dotted_name(returned.func)
    if path is None or not matches_constructor(path, constructors):
        return NOT_A_WRAPPER
    if len(returned.args) != 1:
        return NOT_A_WRAPPER
    argument = returned.args[0]
    if argument.keyword is not None or argument.star:
        return NOT_A_WRAPPER
    inner_call = argument.value
    if not isinstance(inner_call, cst.Call) or not isinstance(inner_call.func, cst.Name):
        return NOT_A_WRAPPER
    target = inner_call.func.value

    if len(statements) >= 2:
        candidate = statements[-2]
        if (
            _is_coroutine_def(candidate, target)
            and not inner_call.args
            and _captures_by_value(candidate.params, parameters)
        ):
            return InlineWrapper(block=candidate, index=len(statements) - 2)

    for statement in statements[:-1]:
        if _is_coroutine_def(statement, target):
            return UnsupportedLegacyWrapper(function=statement, call=inner_call)
    return NOT_A_WRAPPER


def _returned_expression(statement: cst.BaseStatement) -> cst.BaseExpression | None:
    if not isinstance(statement, cst.SimpleStatementLine) or len(statement.body) != 1:
        return None
    small = statement.body[0]
    if isinstance(small, cst.Return):
        return small.value
    return None


def _is_coroutine_def(statement: cst.BaseStatement, name: str) -> bool:
    return (
        isinstance(statement, cst.FunctionDef)
        and statement.asynchronous is not None
        and statement.name.value == name
    )


def _captures_by_value(params: cst.Parameters, parameters: Sequence[str]) -> bool:
    # Only `name=name` parameters; anything else closes over live bindings.
    if params.posonly_params or params.kwonly_params:
        return False
    if isinstance(params.star_arg, cst.Param) or isinstance(params.star_arg, cst.ParamStar):
        return False
    if isinstance(params.star_kwarg, cst.Param):
        return False
    captured: list[str] = []
    for param in params.params:
        default = param.default
        if not isinstance(default, cst.Name) or default.value != param.name.value:
            return False
        captured.append(param.name.value)
    return sorted(captured) == sorted(parameters)
