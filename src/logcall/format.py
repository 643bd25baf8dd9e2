"""Build the parameter part of generated log calls.

Plain mode produces a ``%``-style template plus the ordered value
expressions, ready for a stdlib ``logging`` call. Structured mode produces
keyword pairs for a structlog-style call. Values are returned as Python
source text; the synthesizer splices them into statements.
"""

from __future__ import annotations

import json
from dataclasses import dataclass
from enum import StrEnum
from typing import Callable, Iterable, Sequence, Tuple

from logcall.model import Parameter

SKIPPED_MARKER = "<skipped>"
RETURN_KEY = "ret"
RESERVED_KEYS = frozenset({"self", "event", "level", RETURN_KEY})

NameTransform = Callable[[str], str]


class RenderMode(StrEnum):
    DEBUG = "debug"
    DISPLAY = "display"

    @property
    def placeholder(self) -> str:
        return "%r" if self is RenderMode.DEBUG else "%s"


@dataclass(frozen=True)
class FormatSpec:
    template: str
    values: Tuple[str, ...] = ()


@dataclass(frozen=True)
class StructuredSpec:
    pairs: Tuple[Tuple[str, str], ...] = ()

    def as_arguments(self) -> str:
        return ", ".join(f"{key}={value}" for key, value in self.pairs)


def identity(name: str) -> str:
    return name


def string_literal(text: str) -> str:
    # JSON string escapes are valid Python string escapes.
    return json.dumps(text, ensure_ascii=False)


def rendered_parameters(
    parameters: Iterable[Parameter], skip_list: Sequence[str] | None
) -> list[tuple[Parameter, bool]]:
    """Pair each parameter with whether its value is rendered.

    ``skip_list=None`` renders nothing at all, so the result is empty.
    """
    if skip_list is None:
        return []
    skipped = set(skip_list)
    return [(param, param.name not in skipped) for param in parameters]


def build_format(
    parameters: Iterable[Parameter],
    skip_list: Sequence[str] | None,
    *,
    transform: NameTransform = identity,
    mode: RenderMode = RenderMode.DEBUG,
    prerendered: bool = False,
) -> FormatSpec:
    placeholder = "%s" if prerendered else mode.placeholder
    parts: list[str] = []
    values: list[str] = []
    for param, rendered in rendered_parameters(parameters, skip_list):
        if rendered:
            parts.append(f"{param.name}: {placeholder}")
            values.append(transform(param.name))
        else:
            parts.append(f"{param.name}: {SKIPPED_MARKER}")
    return FormatSpec(template=", ".join(parts), values=tuple(values))


def structured_keys(names: Sequence[str]) -> dict[str, str]:
    """Map parameter names to keyword names safe for a structlog call.

    ``self``, ``event`` and ``level`` are parameters of the bound logger
    methods and ``ret`` carries the return value, so parameters with those
    names get trailing underscores until the key is unique.
    """
    taken = set(names)
    keys: dict[str, str] = {}
    for name in names:
        key = name
        if key in RESERVED_KEYS:
            key += "_"
            while key in taken or key in RESERVED_KEYS:
                key += "_"
            taken.add(key)
        keys[name] = key
    return keys


def build_structured(
    parameters: Iterable[Parameter],
    skip_list: Sequence[str] | None,
    *,
    transform: NameTransform = identity,
    ret: str | None = None,
) -> StructuredSpec:
    parameters = list(parameters)
    keys = structured_keys([param.name for param in parameters])
    pairs: list[tuple[str, str]] = []
    for param, rendered in rendered_parameters(parameters, skip_list):
        if rendered:
            pairs.append((keys[param.name], transform(param.name)))
        else:
            pairs.append((keys[param.name], string_literal(SKIPPED_MARKER)))
    if ret is not None:
        pairs.append((RETURN_KEY, ret))
    return StructuredSpec(pairs=tuple(pairs))
