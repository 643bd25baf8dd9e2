from __future__ import annotations

import logging
from pathlib import Path
from typing import Sequence

import libcst as cst
from libcst.metadata import MetadataWrapper, PositionProvider

from logcall.config import (
    DEFAULT_DECORATORS,
    TomlTable,
    decorator_names,
    ensure_logger_enabled,
    synthesis_config,
)
from logcall.detector import body_statements, dotted_name, is_docstring
from logcall.directive import directive_arguments, parse_directive
from logcall.exceptions import LogcallError
from logcall.model import (
    Directive,
    DualOutcomeEgress,
    Failed,
    Inspect,
    Location,
    ParameterList,
    Rewritten,
    TextEdit,
    TransformPlan,
)
from logcall.synthesis import (
    CodeSynthesizer,
    SynthesisConfig,
    result_subscript,
    variant_names,
)

logger = logging.getLogger(__name__)


class LogcallEngine:
    def __init__(
        self,
        synthesis: SynthesisConfig | None = None,
        *,
        decorators: Sequence[str] = DEFAULT_DECORATORS,
        ensure_logger: bool = False,
    ) -> None:
        self.synthesizer = CodeSynthesizer(synthesis)
        self.decorators = tuple(decorators)
        self.ensure_logger = ensure_logger

    @classmethod
    def from_section(cls, section: TomlTable | None) -> LogcallEngine:
        return cls(
            synthesis_config(section),
            decorators=decorator_names(section),
            ensure_logger=ensure_logger_enabled(section),
        )

    def transform_source(self, source: str, path: str | None = None) -> TransformPlan:
        try:
            module = cst.parse_module(source)
        except cst.ParserSyntaxError as exc:
            return TransformPlan(
                source=source,
                code=source,
                path=path,
                parse_errors=[f"LibCST parse failed for {path or '<source>'}: {exc}"],
            )
        transformer = _LogcallTransformer(
            synthesizer=self.synthesizer,
            decorators=self.decorators,
            ensure_logger=self.ensure_logger,
            path=path,
        )
        new_module = MetadataWrapper(module).visit(transformer)
        plan = TransformPlan(
            source=source,
            code=new_module.code,
            path=path,
            outcomes=transformer.outcomes,
            warnings=transformer.warnings,
        )
        for warning in plan.warnings:
            logger.warning("%s", warning)
        return plan

    def transform_path(self, path: Path) -> TransformPlan:
        try:
            source = path.read_text(encoding="utf-8")
        except OSError as exc:
            return TransformPlan(path=str(path), parse_errors=[f"Failed to read {path}: {exc}"])
        plan = self.transform_source(source, path=str(path))
        if plan.changed and not plan.errors and not plan.inspections:
            end_line = len(source.splitlines())
            plan.edits.append(
                TextEdit(
                    path=str(path),
                    start=(0, 0),
                    end=(end_line, 0),
                    replacement=plan.code,
                )
            )
        return plan


class _LogcallTransformer(cst.CSTTransformer):
    METADATA_DEPENDENCIES = (PositionProvider,)

    def __init__(
        self,
        *,
        synthesizer: CodeSynthesizer,
        decorators: Sequence[str],
        ensure_logger: bool,
        path: str | None,
    ) -> None:
        super().__init__()
        self.synthesizer = synthesizer
        self.decorators = set(decorators)
        self.ensure_logger = ensure_logger
        self.path = path
        self.outcomes: list[Rewritten | Inspect | Failed] = []
        self.warnings: list[str] = []
        self._scopes: list[str] = []
        self._module: cst.Module | None = None
        self._bindings: set[str] = set()
        self._star_import = False

    def visit_Module(self, node: cst.Module) -> bool:
        self._module = node
        self._bindings = _module_bindings(node.body)
        self._star_import = _has_star_import(node.body)
        return True

    def leave_Module(self, original_node: cst.Module, updated_node: cst.Module) -> cst.Module:
        rewritten = any(isinstance(outcome, Rewritten) for outcome in self.outcomes)
        if not (self.ensure_logger and rewritten):
            return updated_node
        return _ensure_logger_binding(
            updated_node,
            logger_name=self.synthesizer.config.logger_name,
            structured=self.synthesizer.config.structured,
        )

    def visit_ClassDef(self, node: cst.ClassDef) -> bool:
        self._scopes.append("class")
        return True

    def leave_ClassDef(
        self, original_node: cst.ClassDef, updated_node: cst.ClassDef
    ) -> cst.CSTNode:
        self._scopes.pop()
        return updated_node

    def visit_FunctionDef(self, node: cst.FunctionDef) -> bool:
        self._scopes.append("function")
        return True

    def leave_FunctionDef(
        self, original_node: cst.FunctionDef, updated_node: cst.FunctionDef
    ) -> cst.CSTNode:
        self._scopes.pop()
        is_method = bool(self._scopes) and self._scopes[-1] == "class"
        return self._maybe_rewrite_function(original_node, updated_node, is_method=is_method)

    def _is_directive(self, decorator: cst.Decorator) -> bool:
        expr = decorator.decorator
        if isinstance(expr, cst.Call):
            expr = expr.func
        return dotted_name(expr) in self.decorators

    def _locate(self, node: cst.CSTNode) -> Location | None:
        code_range = self.get_metadata(PositionProvider, node, None)
        if code_range is None:
            return None
        return Location(
            line=code_range.start.line,
            column=code_range.start.column + 1,
            path=self.path,
        )

    def _maybe_rewrite_function(
        self,
        original_node: cst.FunctionDef,
        updated_node: cst.FunctionDef,
        *,
        is_method: bool,
    ) -> cst.CSTNode:
        matches = [
            decorator for decorator in original_node.decorators if self._is_directive(decorator)
        ]
        if not matches:
            return updated_node
        name = original_node.name.value
        node = updated_node
        inspect = False
        # Decorators apply bottom-up: the one nearest to `def` wraps first.
        for decorator in reversed(matches):
            try:
                directive = parse_directive(directive_arguments(decorator), locate=self._locate)
                self._check_directive(directive, original_node, is_method=is_method)
                node = self.synthesizer.instrument(node, directive, is_method=is_method)
            except LogcallError as exc:
                exc.with_context(location=self._locate(decorator), function=name)
                logger.debug("leaving %s untouched: %s", name, exc)
                self.outcomes.append(Failed(function=name, error=exc))
                return updated_node
            inspect = inspect or directive.debug_dump

        node = node.with_changes(
            decorators=[
                decorator for decorator in node.decorators if not self._is_directive(decorator)
            ]
        )
        if inspect:
            module = self._module or cst.Module(body=[])
            self.outcomes.append(Inspect(function=name, rendered=module.code_for_node(node)))
            return updated_node
        self.outcomes.append(Rewritten(function=name, directives=len(matches)))
        return node

    def _check_directive(
        self, directive: Directive, node: cst.FunctionDef, *, is_method: bool
    ) -> None:
        name = node.name.value
        params = ParameterList.from_cst(node.params, is_method=is_method).names
        for skipped in directive.skip_list or ():
            if skipped not in params:
                self.warnings.append(
                    f"{self._where(node)}skip-list entry `{skipped}` is not a parameter of `{name}`"
                )
        config = self.synthesizer.config
        if directive.dual_outcome and result_subscript(node.returns, config.result_types) is None:
            self.warnings.append(
                f"{self._where(node)}`{name}` logs ok/err outcomes but its return annotation "
                f"is not one of {', '.join(config.result_types)}"
            )
        egress = directive.egress_mode
        if isinstance(egress, DualOutcomeEgress) and not self._star_import:
            ok_type, err_type = variant_names(node.returns, config)
            arms = [(egress.ok_level, ok_type), (egress.err_level, err_type)]
            for level, variant in arms:
                if level is None or variant.split(".")[0] in self._bindings:
                    continue
                self.warnings.append(
                    f"{self._where(node)}`{name}` checks results against `{variant}`, "
                    "which is not bound at module level"
                )

    def _where(self, node: cst.CSTNode) -> str:
        location = self._locate(node)
        return f"{location}: " if location is not None else ""


def _is_import(stmt: cst.CSTNode) -> bool:
    if not isinstance(stmt, cst.SimpleStatementLine):
        return False
    return any(isinstance(item, (cst.Import, cst.ImportFrom)) for item in stmt.body)


def _find_import_insert_index(body: Sequence[cst.CSTNode]) -> int:
    insert_idx = 0
    if body and is_docstring(body[0]):
        insert_idx = 1
    while insert_idx < len(body) and _is_import(body[insert_idx]):
        insert_idx += 1
    return insert_idx


def _bound_names(stmt: cst.CSTNode) -> set[str]:
    if isinstance(stmt, (cst.FunctionDef, cst.ClassDef)):
        return {stmt.name.value}
    names: set[str] = set()
    if not isinstance(stmt, cst.SimpleStatementLine):
        return names
    for item in stmt.body:
        if isinstance(item, cst.Assign):
            for target in item.targets:
                if isinstance(target.target, cst.Name):
                    names.add(target.target.value)
        elif isinstance(item, cst.AnnAssign) and isinstance(item.target, cst.Name):
            names.add(item.target.value)
        elif isinstance(item, (cst.Import, cst.ImportFrom)) and not isinstance(
            item.names, cst.ImportStar
        ):
            for alias in item.names:
                if alias.asname is not None and isinstance(alias.asname.name, cst.Name):
                    names.add(alias.asname.name.value)
                else:
                    full = dotted_name(alias.name) or ""
                    names.add(full.split(".")[0])
    return names


def _module_bindings(body: Sequence[cst.CSTNode]) -> set[str]:
    # Names bound under top-level if/try/with blocks count as module bindings.
    names: set[str] = set()
    for stmt in body:
        names |= _bound_names(stmt)
        for suite in _nested_suites(stmt):
            names |= _module_bindings(body_statements(suite))
    return names


def _nested_suites(stmt: cst.CSTNode) -> list[cst.BaseSuite]:
    suites: list[cst.BaseSuite] = []
    if isinstance(stmt, cst.If):
        suites.append(stmt.body)
        orelse = stmt.orelse
        while isinstance(orelse, cst.If):
            suites.append(orelse.body)
            orelse = orelse.orelse
        if isinstance(orelse, cst.Else):
            suites.append(orelse.body)
    elif isinstance(stmt, (cst.Try, cst.TryStar)):
        suites.append(stmt.body)
        suites.extend(handler.body for handler in stmt.handlers)
        if stmt.orelse is not None:
            suites.append(stmt.orelse.body)
        if stmt.finalbody is not None:
            suites.append(stmt.finalbody.body)
    elif isinstance(stmt, cst.With):
        suites.append(stmt.body)
    return suites


def _has_star_import(body: Sequence[cst.CSTNode]) -> bool:
    for stmt in body:
        if not isinstance(stmt, cst.SimpleStatementLine):
            continue
        for item in stmt.body:
            if isinstance(item, cst.ImportFrom) and isinstance(item.names, cst.ImportStar):
                return True
    return False


def _has_module_import(body: Sequence[cst.CSTNode], module_name: str) -> bool:
    for stmt in body:
        if not isinstance(stmt, cst.SimpleStatementLine):
            continue
        for item in stmt.body:
            if isinstance(item, cst.Import):
                for alias in item.names:
                    if alias.asname is None and dotted_name(alias.name) == module_name:
                        return True
    return False


def _ensure_logger_binding(
    module: cst.Module, *, logger_name: str, structured: bool
) -> cst.Module:
    body = list(module.body)
    if logger_name in _module_bindings(body):
        return module
    module_name = "structlog" if structured else "logging"
    factory = "structlog.get_logger()" if structured else "logging.getLogger(__name__)"
    insert_idx = _find_import_insert_index(body)
    if not _has_module_import(body, module_name):
        body.insert(insert_idx, cst.parse_statement(f"import {module_name}\n"))
        insert_idx += 1
    binding = cst.parse_statement(f"{logger_name} = {factory}\n")
    body.insert(insert_idx, binding.with_changes(leading_lines=[cst.EmptyLine()]))
    logger.debug("inserted `%s` binding", logger_name)
    return module.with_changes(body=body)
