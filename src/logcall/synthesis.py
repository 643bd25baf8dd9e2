"""Generate instrumented function bodies.

The synthesizer chooses one of four templates from the function's shape
(``async`` or not, ``ok``/``err`` logging or not) and splices the original
statements into a relocated ``_logcall_body`` helper so the result can be
logged before it is returned. For the synchronous, simple case the output
reads::

    def add(a, b):
        _logcall_egress_a = "%r" % (a,)
        _logcall_egress_b = "%r" % (b,)
        def _logcall_body(a, b):
            return a + b
        _logcall_ret = _logcall_body(a, b)
        logger.info("add(a: %s, b: %s) => %r", _logcall_egress_a, _logcall_egress_b, _logcall_ret)
        return _logcall_ret
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Iterator, Sequence

import libcst as cst

from logcall.detector import (
    DEFAULT_WRAPPER_CONSTRUCTORS,
    InlineWrapper,
    UnsupportedLegacyWrapper,
    body_statements,
    classify_body,
    dotted_name,
    is_docstring,
)
from logcall.exceptions import InternalShapeMismatch, UnsupportedShapeError
from logcall.format import RenderMode, build_format, build_structured, string_literal
from logcall.model import (
    Directive,
    DualOutcomeEgress,
    FunctionShape,
    FunctionSignature,
    Level,
    ParameterList,
    SimpleEgress,
    WrappedBody,
)

logger = logging.getLogger(__name__)

RESERVED_PREFIX = "_logcall_"
BODY_FUNCTION = "_logcall_body"
RESULT_NAME = "_logcall_ret"


@dataclass(frozen=True)
class SynthesisConfig:
    structured: bool = False
    render: RenderMode = RenderMode.DEBUG
    logger_name: str = "logger"
    result_types: tuple[str, ...] = ("Result",)
    ok_type: str = "Ok"
    err_type: str = "Err"
    wrapper_constructors: tuple[str, ...] = DEFAULT_WRAPPER_CONSTRUCTORS


def ingress_name(name: str) -> str:
    return f"{RESERVED_PREFIX}ingress_{name}"


def egress_name(name: str) -> str:
    return f"{RESERVED_PREFIX}egress_{name}"


def result_subscript(
    returns: cst.Annotation | None, result_types: Sequence[str]
) -> cst.Subscript | None:
    if returns is None:
        return None
    for node in _iter_subscripts(returns.annotation):
        path = dotted_name(node.value)
        if path is not None and path.rpartition(".")[2] in result_types:
            return node
    return None


def variant_names(returns: cst.Annotation | None, config: SynthesisConfig) -> tuple[str, str]:
    """Success and failure class names, qualified like the ``Result`` annotation."""
    subscript = result_subscript(returns, config.result_types)
    qualifier = ""
    if subscript is not None:
        path = dotted_name(subscript.value) or ""
        head = path.rpartition(".")[0]
        qualifier = f"{head}." if head else ""
    return qualifier + config.ok_type, qualifier + config.err_type


def _iter_subscripts(expr: cst.BaseExpression) -> Iterator[cst.Subscript]:
    if isinstance(expr, cst.Subscript):
        yield expr
        for element in expr.slice:
            if isinstance(element.slice, cst.Index):
                yield from _iter_subscripts(element.slice.value)
    elif isinstance(expr, cst.BinaryOperation):
        yield from _iter_subscripts(expr.left)
        yield from _iter_subscripts(expr.right)


class _YieldFinder(cst.CSTVisitor):
    def __init__(self) -> None:
        self.found = False

    def visit_Yield(self, node: cst.Yield) -> bool:
        self.found = True
        return False

    def visit_FunctionDef(self, node: cst.FunctionDef) -> bool:
        return False

    def visit_ClassDef(self, node: cst.ClassDef) -> bool:
        return False

    def visit_Lambda(self, node: cst.Lambda) -> bool:
        return False


def is_generator_body(statements: Sequence[cst.BaseStatement]) -> bool:
    finder = _YieldFinder()
    for statement in statements:
        statement.visit(finder)
        if finder.found:
            return True
    return False


def _statement(code: str) -> cst.BaseStatement:
    return cst.parse_statement(code + "\n")


class CodeSynthesizer:
    def __init__(self, config: SynthesisConfig | None = None) -> None:
        self.config = config or SynthesisConfig()

    def instrument(
        self,
        node: cst.FunctionDef,
        directive: Directive,
        *,
        is_method: bool = False,
    ) -> cst.FunctionDef:
        """Return ``node`` with its body (or its retrofit coroutine) instrumented."""
        signature = FunctionSignature(
            name=node.name.value,
            parameters=ParameterList.from_cst(node.params, is_method=is_method),
            returns=node.returns,
        )
        shape = classify_body(
            node.body,
            is_async=node.asynchronous is not None,
            parameters=signature.parameters.names,
            constructors=self.config.wrapper_constructors,
        )
        if isinstance(shape, UnsupportedLegacyWrapper):
            raise UnsupportedShapeError(
                "unsupported legacy wrapper shape: the coroutine handed to "
                f"`{dotted_name(shape.call.func)}` is declared earlier in the body "
                "instead of immediately before the return with by-value captures",
                function=signature.name,
            )
        if isinstance(shape, InlineWrapper):
            logger.debug("instrumenting retrofit coroutine inside %s", signature.name)
            wrapped = self.synthesize(directive, signature, shape.block.body, suspending=True)
            statements = list(body_statements(node.body))
            statements[shape.index] = shape.block.with_changes(body=wrapped.body)
            return node.with_changes(body=node.body.with_changes(body=statements))

        wrapped = self.synthesize(
            directive,
            signature,
            node.body,
            suspending=node.asynchronous is not None,
        )
        logger.debug("instrumenting %s with the %s template", signature.name, wrapped.shape.template)
        return node.with_changes(body=wrapped.body)

    def synthesize(
        self,
        directive: Directive,
        signature: FunctionSignature,
        body: cst.BaseSuite,
        *,
        suspending: bool,
    ) -> WrappedBody:
        self._check_parameters(signature)
        shape = FunctionShape(suspending=suspending, dual_outcome=directive.dual_outcome)
        statements = list(body_statements(body))
        new_body: list[cst.BaseStatement] = []
        if statements and is_docstring(statements[0]):
            new_body.append(statements.pop(0))

        if directive.ingress_level is not None:
            new_body.extend(self._ingress(directive, signature, directive.ingress_level))

        if directive.egress_mode is None:
            new_body.extend(statements or [_statement("pass")])
        else:
            if is_generator_body(statements):
                raise UnsupportedShapeError(
                    "generator functions cannot be wrapped for egress logging",
                    function=signature.name,
                )
            new_body.extend(self._egress(directive, signature, statements, body, shape))

        if isinstance(body, cst.IndentedBlock):
            block = body.with_changes(body=new_body, footer=())
        else:
            block = cst.IndentedBlock(body=new_body)
        return WrappedBody(body=block, shape=shape)

    def _check_parameters(self, signature: FunctionSignature) -> None:
        for param in signature.parameters:
            if param.name.startswith(RESERVED_PREFIX):
                raise InternalShapeMismatch(
                    f"parameter `{param.name}` uses the reserved `{RESERVED_PREFIX}` prefix",
                    function=signature.name,
                )
            if param.name == self.config.logger_name:
                raise InternalShapeMismatch(
                    f"parameter `{param.name}` shadows the logger used by generated code",
                    function=signature.name,
                )

    def _ingress(
        self, directive: Directive, signature: FunctionSignature, level: Level
    ) -> list[cst.BaseStatement]:
        params = signature.parameters
        skipped = set(directive.skip_list or ())
        statements: list[cst.BaseStatement] = [
            _statement(f"{ingress_name(param.name)} = {param.name}")
            for param in params
            if param.name not in skipped
        ]
        statements.append(
            _statement(self._log_call(level, signature, params, directive.skip_list, egress=False))
        )
        return statements

    def _egress(
        self,
        directive: Directive,
        signature: FunctionSignature,
        statements: list[cst.BaseStatement],
        body: cst.BaseSuite,
        shape: FunctionShape,
    ) -> list[cst.BaseStatement]:
        params = signature.parameters
        placeholder = self.config.render.placeholder
        generated: list[cst.BaseStatement] = []
        if directive.skip_list is not None:
            skipped = set(directive.skip_list)
            generated.extend(
                _statement(f"{egress_name(param.name)} = {string_literal(placeholder)} % ({param.name},)")
                for param in params
                if param.name not in skipped
            )

        footer = body.footer if isinstance(body, cst.IndentedBlock) else ()
        generated.append(
            cst.FunctionDef(
                name=cst.Name(BODY_FUNCTION),
                params=cst.Parameters(params=[cst.Param(cst.Name(name)) for name in params.names]),
                body=cst.IndentedBlock(body=statements or [_statement("pass")], footer=footer),
                asynchronous=cst.Asynchronous() if shape.suspending else None,
            )
        )
        awaited = "await " if shape.suspending else ""
        generated.append(
            _statement(f"{RESULT_NAME} = {awaited}{BODY_FUNCTION}({', '.join(params.names)})")
        )

        egress_mode = directive.egress_mode
        if isinstance(egress_mode, SimpleEgress):
            generated.append(
                _statement(self._log_call(egress_mode.level, signature, params, directive.skip_list, egress=True))
            )
        elif isinstance(egress_mode, DualOutcomeEgress):
            ok_type, err_type = variant_names(signature.returns, self.config)
            arms = []
            if egress_mode.ok_level is not None:
                arms.append((ok_type, egress_mode.ok_level))
            if egress_mode.err_level is not None:
                arms.append((err_type, egress_mode.err_level))
            lines = []
            for index, (variant, level) in enumerate(arms):
                keyword = "if" if index == 0 else "elif"
                call = self._log_call(level, signature, params, directive.skip_list, egress=True)
                lines.append(f"{keyword} isinstance({RESULT_NAME}, {variant}):\n    {call}\n")
            generated.append(cst.parse_statement("".join(lines)))

        generated.append(_statement(f"return {RESULT_NAME}"))
        return generated

    def _log_call(
        self,
        level: Level,
        signature: FunctionSignature,
        params: ParameterList,
        skip_list: Sequence[str] | None,
        *,
        egress: bool,
    ) -> str:
        prefix = level.call_prefix(self.config.logger_name)
        transform = egress_name if egress else ingress_name
        if self.config.structured:
            ret = None
            if egress:
                ret = f"{string_literal(self.config.render.placeholder)} % ({RESULT_NAME},)"
            spec = build_structured(params, skip_list, transform=transform, ret=ret)
            arguments = spec.as_arguments()
            tail = f", {arguments}" if arguments else ""
            return f"{prefix}{string_literal(signature.name)}{tail})"

        spec = build_format(
            params,
            skip_list,
            transform=transform,
            mode=self.config.render,
            prerendered=egress,
        )
        message = f"{signature.name}({spec.template})"
        values = list(spec.values)
        if egress:
            message += f" => {self.config.render.placeholder}"
            values.append(RESULT_NAME)
        tail = "".join(f", {value}" for value in values)
        return f"{prefix}{string_literal(message)}{tail})"
