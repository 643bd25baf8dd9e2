from __future__ import annotations

import logging
from pathlib import Path
from typing import List, Optional

import typer

from logcall.config import merge_payload, transform_defaults
from logcall.directive import parse_directive_text
from logcall.engine import LogcallEngine
from logcall.exceptions import UsageError
from logcall.model import TransformPlan
from logcall.schema import TransformReport, directive_dto, transform_response

app = typer.Typer(add_completion=False)

_EXIT_FAILED = 1
_EXIT_INSPECT = 2


@app.callback()
def main(
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Log transformer decisions."),
) -> None:
    """Rewrite @logcall-decorated functions to log their calls."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
    )


@app.command("transform")
def transform(
    paths: List[Path] = typer.Argument(..., exists=True, dir_okay=False, readable=True),
    in_place: bool = typer.Option(False, "--in-place", help="Rewrite the files in place."),
    output: Optional[Path] = typer.Option(
        None, "--output", "-o", help="Write the rewritten module to this path."
    ),
    check: bool = typer.Option(
        False, "--check", help="Exit 1 if any file would be rewritten; write nothing."
    ),
    root: Path = typer.Option(Path("."), "--root"),
    config: Optional[Path] = typer.Option(None, "--config"),
    structured: Optional[bool] = typer.Option(None, "--structured/--plain"),
    display: Optional[bool] = typer.Option(None, "--display/--repr"),
    logger_name: Optional[str] = typer.Option(None, "--logger"),
    ensure_logger: Optional[bool] = typer.Option(
        None, "--ensure-logger/--no-ensure-logger"
    ),
    report: Optional[Path] = typer.Option(
        None, "--report", help="Write a JSON summary of every function outcome."
    ),
) -> None:
    """Instrument every @logcall-decorated function in PATHS."""
    if output is not None and len(paths) != 1:
        raise typer.BadParameter("--output takes exactly one input path")
    if output is not None and in_place:
        raise typer.BadParameter("--output and --in-place are mutually exclusive")
    section = merge_payload(
        {
            "structured": structured,
            "display": display,
            "logger": logger_name,
            "ensure_logger": ensure_logger,
        },
        transform_defaults(root=root, config_path=config),
    )
    engine = LogcallEngine.from_section(section)
    plans = [engine.transform_path(path) for path in paths]
    if report is not None:
        payload = TransformReport(files=[transform_response(plan) for plan in plans])
        report.write_text(payload.model_dump_json(indent=2) + "\n", encoding="utf-8")
    exit_code = _report(plans)
    if exit_code:
        raise typer.Exit(code=exit_code)
    for plan in plans:
        _emit(plan, in_place=in_place, output=output, check=check)
    if check and any(plan.changed for plan in plans):
        raise typer.Exit(code=_EXIT_FAILED)


def _report(plans: List[TransformPlan]) -> int:
    exit_code = 0
    for plan in plans:
        for error in plan.errors:
            typer.echo(f"error: {error}", err=True)
            exit_code = max(exit_code, _EXIT_FAILED)
        for inspection in plan.inspections:
            typer.echo(
                f"logcall debug output for `{inspection.function}`:\n{inspection.rendered}",
                err=True,
            )
            exit_code = _EXIT_INSPECT
    return exit_code


def _emit(
    plan: TransformPlan,
    *,
    in_place: bool,
    output: Optional[Path],
    check: bool,
) -> None:
    if check:
        if plan.changed:
            typer.echo(f"would rewrite {plan.path}")
        return
    if in_place:
        for edit in plan.edits:
            Path(edit.path).write_text(edit.replacement, encoding="utf-8")
        return
    if output is not None:
        output.write_text(plan.code, encoding="utf-8")
        return
    typer.echo(plan.code, nl=False)


@app.command("directive")
def directive(
    text: str = typer.Argument(..., help='Directive payload, e.g. \'ingress="info", skip=[a]\'.'),
) -> None:
    """Parse a directive payload and print its resolved form as JSON."""
    try:
        parsed = parse_directive_text(text)
    except UsageError as exc:
        typer.echo(f"error: {exc}", err=True)
        raise typer.Exit(code=_EXIT_FAILED) from exc
    typer.echo(directive_dto(parsed).model_dump_json(indent=2))


if __name__ == "__main__":  # pragma: no cover
    app()
