"""Parse ``@logcall(...)`` decorator arguments into a :class:`Directive`.

Accepted payloads::

    @logcall("info")
    @logcall(ingress="debug", egress="info")
    @logcall(ok="info", err="error", skip=[password])
    @logcall(ingress="info", debug="true")

Only the optional bare level is positional; it must come first. Every other
entry is a keyword argument.
"""

from __future__ import annotations

import logging
from typing import Callable, Sequence

import libcst as cst

from logcall.exceptions import UsageError
from logcall.model import DualOutcomeEgress, Directive, Level, Location, SimpleEgress

logger = logging.getLogger(__name__)

Locator = Callable[[cst.CSTNode], Location | None]

KNOWN_ARGUMENTS = ("ingress", "egress", "ok", "err", "skip", "debug")
_TRUE_VALUES = {"true"}
_FALSE_VALUES = {"false"}


def _no_location(node: cst.CSTNode) -> Location | None:
    return None


def parse_directive(args: Sequence[cst.Arg], *, locate: Locator | None = None) -> Directive:
    locate = locate or _no_location
    legacy_level: Level | None = None
    levels: dict[str, Level] = {}
    skip_list: tuple[str, ...] | None = None
    debug_dump = False
    seen: set[str] = set()

    for index, arg in enumerate(args):
        if arg.star:
            raise UsageError(
                "argument unpacking is not supported in a directive",
                location=locate(arg),
            )
        if arg.keyword is None:
            if index != 0:
                raise UsageError(
                    "a bare level must be the first argument",
                    location=locate(arg.value),
                )
            text = _string_value(arg.value, name="level", locate=locate)
            legacy_level = _level(text, arg.value, locate)
            continue

        name = arg.keyword.value
        if name not in KNOWN_ARGUMENTS:
            raise UsageError(f"unknown argument `{name}`", location=locate(arg.keyword))
        if name in seen:
            raise UsageError(f"`{name}` specified twice", location=locate(arg.keyword))
        seen.add(name)

        if name == "skip":
            skip_list = _skip_list(arg.value, locate)
        elif name == "debug":
            debug_dump = _flag(arg.value, name=name, locate=locate)
        else:
            text = _string_value(arg.value, name=name, locate=locate)
            levels[name] = _level(text, arg.value, locate)

    if legacy_level is not None and "egress" in levels:
        raise UsageError("egress specified twice", location=locate(args[0]))
    if legacy_level is not None and ("ok" in levels or "err" in levels):
        raise UsageError(
            "plain level cannot be combined with ok/err",
            location=locate(args[0]),
        )

    egress_mode: SimpleEgress | DualOutcomeEgress | None = None
    if "ok" in levels or "err" in levels:
        if "egress" in levels:
            logger.warning("`egress` is ignored when `ok` or `err` is given")
        egress_mode = DualOutcomeEgress(ok_level=levels.get("ok"), err_level=levels.get("err"))
    elif "egress" in levels:
        egress_mode = SimpleEgress(levels["egress"])
    elif legacy_level is not None:
        egress_mode = SimpleEgress(legacy_level)

    ingress_level = levels.get("ingress")
    if ingress_level is not None and skip_list is None:
        skip_list = ()

    if ingress_level is None and egress_mode is None:
        raise UsageError("directive logs nothing: give a level, `ingress`, `egress`, `ok` or `err`")

    return Directive(
        ingress_level=ingress_level,
        egress_mode=egress_mode,
        skip_list=skip_list,
        debug_dump=debug_dump,
    )


def parse_directive_text(text: str) -> Directive:
    """Parse a payload such as ``'ingress="info", skip=[a]'``."""
    try:
        expr = cst.parse_expression(f"logcall({text})")
    except cst.ParserSyntaxError as exc:
        raise UsageError(f"malformed directive: {exc.message}") from exc
    if not isinstance(expr, cst.Call):
        raise UsageError("malformed directive")
    return parse_directive(expr.args)


def directive_arguments(decorator: cst.Decorator) -> Sequence[cst.Arg]:
    if isinstance(decorator.decorator, cst.Call):
        return decorator.decorator.args
    return ()


def _string_value(node: cst.BaseExpression, *, name: str, locate: Locator) -> str:
    if isinstance(node, cst.SimpleString):
        value = node.evaluated_value
        if isinstance(value, str):
            return value
    raise UsageError(f"`{name}` expects a quoted string", location=locate(node))


def _level(text: str, node: cst.CSTNode, locate: Locator) -> Level:
    level = Level.parse(text)
    if level is None:
        raise UsageError(f"unknown log level `{text}`", location=locate(node))
    return level


def _flag(node: cst.BaseExpression, *, name: str, locate: Locator) -> bool:
    text = _string_value(node, name=name, locate=locate).strip().lower()
    if text in _TRUE_VALUES:
        return True
    if text in _FALSE_VALUES:
        return False
    raise UsageError(f'`{name}` expects "true" or "false"', location=locate(node))


def _skip_list(node: cst.BaseExpression, locate: Locator) -> tuple[str, ...]:
    if not isinstance(node, cst.List):
        raise UsageError(
            "`skip` expects a bracketed list of parameter names",
            location=locate(node),
        )
    names: list[str] = []
    for element in node.elements:
        if not isinstance(element, cst.Element) or not isinstance(element.value, cst.Name):
            raise UsageError(
                "`skip` entries must be bare parameter names",
                location=locate(element),
            )
        name = element.value.value
        if name not in names:
            names.append(name)
    return tuple(names)
