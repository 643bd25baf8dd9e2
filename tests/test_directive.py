from __future__ import annotations

import libcst as cst
import pytest

from logcall.directive import directive_arguments, parse_directive, parse_directive_text
from logcall.exceptions import UsageError
from logcall.model import DualOutcomeEgress, Level, Location, SimpleEgress


def test_bare_level_is_simple_egress() -> None:
    directive = parse_directive_text('"info"')
    assert directive.ingress_level is None
    assert directive.egress_mode == SimpleEgress(Level.INFO)
    assert directive.skip_list is None
    assert directive.debug_dump is False


def test_ingress_only_defaults_to_logging_every_parameter() -> None:
    directive = parse_directive_text('ingress="debug"')
    assert directive.ingress_level is Level.DEBUG
    assert directive.egress_mode is None
    assert directive.skip_list == ()


def test_ingress_and_egress() -> None:
    directive = parse_directive_text('ingress="info", egress="warn"')
    assert directive.ingress_level is Level.INFO
    assert directive.egress_mode == SimpleEgress(Level.WARN)


@pytest.mark.parametrize(
    ("payload", "expected"),
    [
        ('ok="info"', DualOutcomeEgress(ok_level=Level.INFO)),
        ('err="error"', DualOutcomeEgress(err_level=Level.ERROR)),
        ('ok="debug", err="error"', DualOutcomeEgress(Level.DEBUG, Level.ERROR)),
        ('err="error", ok="debug"', DualOutcomeEgress(Level.DEBUG, Level.ERROR)),
    ],
)
def test_ok_err_select_dual_outcome(payload: str, expected: DualOutcomeEgress) -> None:
    directive = parse_directive_text(payload)
    assert directive.egress_mode == expected
    assert directive.dual_outcome


def test_ingress_with_ok_err() -> None:
    directive = parse_directive_text('ingress="trace", ok="info", err="warn"')
    assert directive.ingress_level is Level.TRACE
    assert directive.egress_mode == DualOutcomeEgress(Level.INFO, Level.WARN)


def test_explicit_skip_list_keeps_order_and_drops_duplicates() -> None:
    directive = parse_directive_text('ingress="info", skip=[b, a, b]')
    assert directive.skip_list == ("b", "a")


def test_empty_skip_list_means_log_everything() -> None:
    directive = parse_directive_text('"info", skip=[]')
    assert directive.skip_list == ()


def test_debug_flag() -> None:
    assert parse_directive_text('"info", debug="true"').debug_dump is True
    assert parse_directive_text('"info", debug="FALSE"').debug_dump is False


def test_levels_are_case_insensitive() -> None:
    assert parse_directive_text('"INFO"').egress_mode == SimpleEgress(Level.INFO)


def test_egress_is_ignored_next_to_ok_err(caplog: pytest.LogCaptureFixture) -> None:
    directive = parse_directive_text('egress="info", ok="debug"')
    assert directive.egress_mode == DualOutcomeEgress(ok_level=Level.DEBUG)
    assert "ignored" in caplog.text


@pytest.mark.parametrize(
    ("payload", "message"),
    [
        ("", "logs nothing"),
        ("skip=[a]", "logs nothing"),
        ('debug="true"', "logs nothing"),
        ('bogus="info"', "unknown argument `bogus`"),
        ('"info", egress="warn"', "egress specified twice"),
        ('"info", ok="warn"', "plain level cannot be combined with ok/err"),
        ('"info", err="warn"', "plain level cannot be combined with ok/err"),
        ('"info", "warn"', "must be the first argument"),
        ("ingress=info", "expects a quoted string"),
        ('ingress=f"info"', "expects a quoted string"),
        ('ingress=b"info"', "expects a quoted string"),
        ('"verbose"', "unknown log level `verbose`"),
        ('ingress="warning"', "unknown log level `warning`"),
        ('ingress="info", skip="a"', "bracketed list"),
        ('ingress="info", skip=["a"]', "bare parameter names"),
        ('ingress="info", skip=[a.b]', "bare parameter names"),
        ('ingress="info", skip=[*a]', "bare parameter names"),
        ('"info", debug="maybe"', '"true" or "false"'),
        ('*levels', "unpacking"),
        ('"info", **extra', "unpacking"),
        ('"info"(', "malformed directive"),
    ],
)
def test_rejects_invalid_directives(payload: str, message: str) -> None:
    with pytest.raises(UsageError) as excinfo:
        parse_directive_text(payload)
    assert message in str(excinfo.value)


def test_errors_carry_the_offending_location() -> None:
    decorator = cst.parse_statement('@logcall(bogus="info")\ndef f():\n    pass\n').decorators[0]
    positions = {decorator.decorator.args[0].keyword: Location(line=1, column=10)}

    with pytest.raises(UsageError) as excinfo:
        parse_directive(directive_arguments(decorator), locate=positions.get)
    assert excinfo.value.location == Location(line=1, column=10)
    assert str(excinfo.value).startswith("1:10: unknown argument")


def test_bare_decorator_has_an_empty_payload() -> None:
    decorator = cst.parse_statement("@logcall\ndef f():\n    pass\n").decorators[0]
    assert directive_arguments(decorator) == ()
    with pytest.raises(UsageError):
        parse_directive(directive_arguments(decorator))


def _arg(value: str, keyword: str | None = None) -> cst.Arg:
    return cst.Arg(
        value=cst.parse_expression(value),
        keyword=cst.Name(keyword) if keyword else None,
    )


def test_repeated_entries_are_rejected() -> None:
    with pytest.raises(UsageError, match="`ingress` specified twice"):
        parse_directive([_arg('"info"', "ingress"), _arg('"debug"', "ingress")])


def test_bare_level_after_a_named_entry_is_rejected() -> None:
    with pytest.raises(UsageError, match="must be the first argument"):
        parse_directive([_arg('"info"', "ingress"), _arg('"warn"')])
