from __future__ import annotations

from dataclasses import dataclass, field
from enum import StrEnum
from typing import Iterator, List, Tuple, TypeAlias

import libcst as cst

from logcall.exceptions import LogcallError

TRACE_LEVEL_NUMBER = 5


class Level(StrEnum):
    TRACE = "trace"
    DEBUG = "debug"
    INFO = "info"
    WARN = "warn"
    ERROR = "error"

    @classmethod
    def parse(cls, text: str) -> Level | None:
        try:
            return cls(text.strip().lower())
        except ValueError:
            return None

    def call_prefix(self, logger_name: str) -> str:
        # Neither stdlib logging nor structlog has a trace method.
        if self is Level.TRACE:
            return f"{logger_name}.log({TRACE_LEVEL_NUMBER}, "
        method = "warning" if self is Level.WARN else self.value
        return f"{logger_name}.{method}("


@dataclass(frozen=True)
class SimpleEgress:
    level: Level


@dataclass(frozen=True)
class DualOutcomeEgress:
    ok_level: Level | None = None
    err_level: Level | None = None


EgressMode: TypeAlias = SimpleEgress | DualOutcomeEgress


@dataclass(frozen=True)
class Directive:
    """Resolved configuration of one ``@logcall`` decorator.

    ``skip_list`` is ``None`` when no parameter should be rendered, an empty
    tuple when every parameter should be rendered, and otherwise the ordered
    names to leave out.
    """

    ingress_level: Level | None = None
    egress_mode: EgressMode | None = None
    skip_list: Tuple[str, ...] | None = None
    debug_dump: bool = False

    @property
    def dual_outcome(self) -> bool:
        return isinstance(self.egress_mode, DualOutcomeEgress)


class ParameterKind(StrEnum):
    POSITIONAL_ONLY = "positional_only"
    POSITIONAL = "positional"
    VAR_POSITIONAL = "var_positional"
    KEYWORD_ONLY = "keyword_only"
    VAR_KEYWORD = "var_keyword"


@dataclass(frozen=True)
class Parameter:
    name: str
    kind: ParameterKind = ParameterKind.POSITIONAL
    is_receiver: bool = False


@dataclass(frozen=True)
class ParameterList:
    parameters: Tuple[Parameter, ...] = ()

    @classmethod
    def from_cst(cls, params: cst.Parameters, *, is_method: bool = False) -> ParameterList:
        collected: list[Parameter] = []
        for param in params.posonly_params:
            collected.append(Parameter(param.name.value, ParameterKind.POSITIONAL_ONLY))
        for param in params.params:
            collected.append(Parameter(param.name.value, ParameterKind.POSITIONAL))
        if isinstance(params.star_arg, cst.Param):
            collected.append(Parameter(params.star_arg.name.value, ParameterKind.VAR_POSITIONAL))
        for param in params.kwonly_params:
            collected.append(Parameter(param.name.value, ParameterKind.KEYWORD_ONLY))
        if isinstance(params.star_kwarg, cst.Param):
            collected.append(Parameter(params.star_kwarg.name.value, ParameterKind.VAR_KEYWORD))
        if is_method and collected and collected[0].kind in {
            ParameterKind.POSITIONAL_ONLY,
            ParameterKind.POSITIONAL,
        }:
            first = collected[0]
            collected[0] = Parameter(first.name, first.kind, is_receiver=True)
        return cls(tuple(collected))

    @property
    def names(self) -> list[str]:
        return [param.name for param in self.parameters]

    def __iter__(self) -> Iterator[Parameter]:
        return iter(self.parameters)

    def __len__(self) -> int:
        return len(self.parameters)


class Template(StrEnum):
    SYNC = "sync"
    SYNC_DUAL = "sync_dual_outcome"
    SUSPENDING = "suspending"
    SUSPENDING_DUAL = "suspending_dual_outcome"


@dataclass(frozen=True)
class FunctionShape:
    suspending: bool = False
    dual_outcome: bool = False

    @property
    def template(self) -> Template:
        if self.suspending:
            return Template.SUSPENDING_DUAL if self.dual_outcome else Template.SUSPENDING
        return Template.SYNC_DUAL if self.dual_outcome else Template.SYNC


@dataclass(frozen=True)
class FunctionSignature:
    name: str
    parameters: ParameterList = field(default_factory=ParameterList)
    returns: cst.Annotation | None = None


@dataclass(frozen=True)
class WrappedBody:
    body: cst.IndentedBlock
    shape: FunctionShape


@dataclass(frozen=True)
class Location:
    line: int
    column: int
    path: str | None = None

    def __str__(self) -> str:
        head = f"{self.path}:" if self.path else ""
        return f"{head}{self.line}:{self.column}"


Position = Tuple[int, int]


@dataclass(frozen=True)
class TextEdit:
    path: str
    start: Position
    end: Position
    replacement: str


@dataclass(frozen=True)
class Rewritten:
    function: str
    directives: int = 1


@dataclass(frozen=True)
class Inspect:
    """Synthesis succeeded but the directive asked to stop and show the result."""

    function: str
    rendered: str


@dataclass(frozen=True)
class Failed:
    function: str
    error: LogcallError


FunctionOutcome: TypeAlias = Rewritten | Inspect | Failed


@dataclass
class TransformPlan:
    source: str = ""
    code: str = ""
    path: str | None = None
    outcomes: List[FunctionOutcome] = field(default_factory=list)
    edits: List[TextEdit] = field(default_factory=list)
    warnings: List[str] = field(default_factory=list)
    parse_errors: List[str] = field(default_factory=list)

    @property
    def failures(self) -> list[Failed]:
        return [outcome for outcome in self.outcomes if isinstance(outcome, Failed)]

    @property
    def inspections(self) -> list[Inspect]:
        return [outcome for outcome in self.outcomes if isinstance(outcome, Inspect)]

    @property
    def errors(self) -> list[str]:
        return [*self.parse_errors, *(str(failure.error) for failure in self.failures)]

    @property
    def changed(self) -> bool:
        return self.code != self.source
