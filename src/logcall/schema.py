from __future__ import annotations

from typing import List, Optional, Tuple

from pydantic import BaseModel

from logcall.model import (
    Directive,
    DualOutcomeEgress,
    Failed,
    Inspect,
    SimpleEgress,
    TransformPlan,
)


class EgressDTO(BaseModel):
    mode: str
    level: Optional[str] = None
    ok: Optional[str] = None
    err: Optional[str] = None


class DirectiveDTO(BaseModel):
    ingress: Optional[str] = None
    egress: Optional[EgressDTO] = None
    skip: Optional[List[str]] = None
    debug: bool = False


class TextEditDTO(BaseModel):
    path: str
    start: Tuple[int, int]
    end: Tuple[int, int]
    replacement: str


class OutcomeDTO(BaseModel):
    function: str
    status: str
    directives: int = 0
    kind: Optional[str] = None
    message: Optional[str] = None
    location: Optional[str] = None


class TransformResponse(BaseModel):
    path: Optional[str] = None
    changed: bool = False
    edits: List[TextEditDTO] = []
    outcomes: List[OutcomeDTO] = []
    warnings: List[str] = []
    errors: List[str] = []


class TransformReport(BaseModel):
    files: List[TransformResponse] = []


def _level_value(level) -> Optional[str]:
    return level.value if level is not None else None


def directive_dto(directive: Directive) -> DirectiveDTO:
    egress: EgressDTO | None = None
    if isinstance(directive.egress_mode, SimpleEgress):
        egress = EgressDTO(mode="simple", level=directive.egress_mode.level.value)
    elif isinstance(directive.egress_mode, DualOutcomeEgress):
        egress = EgressDTO(
            mode="dual_outcome",
            ok=_level_value(directive.egress_mode.ok_level),
            err=_level_value(directive.egress_mode.err_level),
        )
    return DirectiveDTO(
        ingress=_level_value(directive.ingress_level),
        egress=egress,
        skip=list(directive.skip_list) if directive.skip_list is not None else None,
        debug=directive.debug_dump,
    )


def transform_response(plan: TransformPlan) -> TransformResponse:
    outcomes: list[OutcomeDTO] = []
    for outcome in plan.outcomes:
        if isinstance(outcome, Failed):
            error = outcome.error
            outcomes.append(
                OutcomeDTO(
                    function=outcome.function,
                    status="failed",
                    kind=error.kind,
                    message=error.message,
                    location=str(error.location) if error.location is not None else None,
                )
            )
        elif isinstance(outcome, Inspect):
            outcomes.append(OutcomeDTO(function=outcome.function, status="inspect"))
        else:
            outcomes.append(
                OutcomeDTO(
                    function=outcome.function,
                    status="rewritten",
                    directives=outcome.directives,
                )
            )
    edits = [
        TextEditDTO(
            path=edit.path,
            start=edit.start,
            end=edit.end,
            replacement=edit.replacement,
        )
        for edit in plan.edits
    ]
    return TransformResponse(
        path=plan.path,
        changed=plan.changed,
        edits=edits,
        outcomes=outcomes,
        warnings=plan.warnings,
        errors=plan.errors,
    )
