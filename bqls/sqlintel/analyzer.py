"""Analysis provider wrapping sqlglot for BigQuery SQL.

Source text is tokenized once, split into statements on ``;`` and each
statement is parsed on its own, so one broken statement never hides the
others. Parsed expressions are converted into the surface tree of
``syntax``; byte ranges are recovered by matching names, literals and
keywords against the token stream in source order.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Callable, Iterable, Mapping, Protocol, Sequence

import sqlglot
from sqlglot import exp
from sqlglot.errors import ParseError, TokenError
from sqlglot.tokens import Token, TokenType

from .functions import FunctionCatalog
from .models import LocationRange, SqlIntelError, TableMetadata
from .resolved import ResolvedNode
from .resolver import AnalysisError, SourceMap, resolve_statement
from .syntax import (
    AstNode,
    FunctionCallNode,
    PathExpressionNode,
    ScriptNode,
    SelectColumnNode,
    SyntaxNode,
    TablePathExpressionNode,
    iter_table_paths,
    link_parents,
)

LOG = logging.getLogger(__name__)

DEFAULT_DIALECT = "bigquery"


class SqlSyntaxError(SqlIntelError):
    """Raised by strict parsing when a statement cannot be parsed."""

    def __init__(self, message: str, location: LocationRange | None = None) -> None:
        super().__init__(message)
        self.location = location


@dataclass(frozen=True, slots=True)
class StatementError:
    """Parse or resolution failure confined to one statement."""

    message: str
    location: LocationRange | None = None


@dataclass(frozen=True, slots=True)
class AnalysisOutput:
    """Resolved tree of one statement and the byte span it covers."""

    statement: ResolvedNode
    location: LocationRange


@dataclass(frozen=True, slots=True)
class Analysis:
    outputs: tuple[AnalysisOutput, ...] = ()
    errors: tuple[StatementError, ...] = ()


@dataclass(frozen=True, slots=True)
class ParsedFile:
    """Parse and analysis artifacts derived from one version of a document."""

    text: str
    surface: ScriptNode
    outputs: tuple[AnalysisOutput, ...] = ()
    errors: tuple[StatementError, ...] = ()

    def find_output(self, offset: int) -> AnalysisOutput | None:
        for output in self.outputs:
            if output.location.contains(offset):
                return output
        return None


class AnalysisProvider(Protocol):
    """Interface implemented by SQL analysis backends."""

    def parse(self, text: str, *, strict: bool = True) -> ScriptNode: ...

    def analyze(self, text: str, catalog: Mapping[str, TableMetadata]) -> Analysis: ...

    def tables(self, surface: AstNode) -> tuple[str, ...]: ...


@dataclass(slots=True)
class _Statement:
    tokens: Sequence[Token]
    first: int
    end: int
    location: LocationRange
    expression: exp.Expression | None = None
    error: str | None = None


class SqlglotAnalyzer:
    """Default ``AnalysisProvider`` built on sqlglot."""

    def __init__(self, *, dialect: str = DEFAULT_DIALECT, functions: FunctionCatalog | None = None) -> None:
        self._dialect = dialect
        self._functions = functions or FunctionCatalog.default()

    def parse(self, text: str, *, strict: bool = True) -> ScriptNode:
        """Return the surface tree of ``text``.

        In strict mode the first syntax error raises ``SqlSyntaxError``;
        otherwise unparseable statements are left out of the tree.
        """

        try:
            statements, offsets = self._split(text)
        except TokenError as exc:
            if strict:
                raise SqlSyntaxError(str(exc)) from exc
            return link_parents(ScriptNode(location=LocationRange(0, len(text.encode("utf-8")))))

        nodes: list[AstNode] = []
        for statement in statements:
            if statement.error is not None:
                if strict:
                    raise SqlSyntaxError(statement.error, statement.location)
                continue
            node, _ = _SurfaceBuilder(statement, offsets).build()
            nodes.append(node)
        script = ScriptNode(statements=nodes, location=LocationRange(0, offsets[-1]))
        return link_parents(script)

    def analyze(self, text: str, catalog: Mapping[str, TableMetadata]) -> Analysis:
        """Resolve every statement of ``text`` against ``catalog``."""

        try:
            statements, offsets = self._split(text)
        except TokenError as exc:
            return Analysis(errors=(StatementError(str(exc)),))

        outputs: list[AnalysisOutput] = []
        errors: list[StatementError] = []
        for statement in statements:
            if statement.error is not None:
                errors.append(StatementError(statement.error, statement.location))
                continue
            _, source_map = _SurfaceBuilder(statement, offsets).build()
            try:
                node = resolve_statement(
                    statement.expression,
                    catalog=catalog,
                    source_map=source_map,
                    functions=self._functions,
                    location=statement.location,
                )
            except AnalysisError as exc:
                errors.append(StatementError(str(exc), exc.location or statement.location))
                continue
            except Exception as exc:
                LOG.exception("Statement resolution failed", extra={"location": statement.location})
                errors.append(StatementError(f"Internal error: {exc}", statement.location))
                continue
            if node is None:
                LOG.debug("Skipping non-query statement", extra={"location": statement.location})
                continue
            outputs.append(AnalysisOutput(statement=node, location=statement.location))
        return Analysis(outputs=tuple(outputs), errors=tuple(errors))

    def tables(self, surface: AstNode) -> tuple[str, ...]:
        """Return the distinct table paths referenced by ``surface``."""

        return tuple(dict.fromkeys(iter_table_paths(surface)))

    def _split(self, text: str) -> tuple[list[_Statement], list[int]]:
        tokens = sqlglot.tokenize(text, read=self._dialect)
        offsets = _byte_offsets(text)
        groups: list[list[int]] = [[]]
        for index, token in enumerate(tokens):
            if token.token_type == TokenType.SEMICOLON:
                groups.append([])
            else:
                groups[-1].append(index)

        statements: list[_Statement] = []
        for group in groups:
            if not group:
                continue
            first, last = tokens[group[0]], tokens[group[-1]]
            statement = _Statement(
                tokens=tokens,
                first=group[0],
                end=group[-1] + 1,
                location=LocationRange(offsets[first.start], offsets[last.end + 1]),
            )
            chunk = text[first.start : last.end + 1]
            try:
                expressions = [expression for expression in sqlglot.parse(chunk, read=self._dialect) if expression]
            except ParseError as exc:
                statement.error = _parse_error_message(exc)
            else:
                if not expressions:
                    continue
                statement.expression = expressions[0]
            statements.append(statement)
        return statements, offsets


def _byte_offsets(text: str) -> list[int]:
    """Map every character index (and the end of text) to its byte offset."""

    offsets = [0]
    for char in text:
        offsets.append(offsets[-1] + len(char.encode("utf-8")))
    return offsets


def _parse_error_message(exc: ParseError) -> str:
    for error in exc.errors:
        description = error.get("description")
        if description:
            return str(description)
    return str(exc).strip()


def _is_literal_token(token: Token) -> bool:
    return token.token_type == TokenType.NUMBER or token.token_type.name.endswith("STRING")


def _is_name_token(token: Token) -> bool:
    if _is_literal_token(token):
        return False
    if token.token_type in (TokenType.VAR, TokenType.IDENTIFIER):
        return True
    return token.text.isidentifier()


# Source order of SELECT clauses; sqlglot stores some of them out of order.
_CLAUSE_ORDER = {
    key: index
    for index, key in enumerate(
        (
            "from",
            "from_",
            "joins",
            "laterals",
            "where",
            "group",
            "having",
            "qualify",
            "windows",
            "order",
            "limit",
            "offset",
        )
    )
}


class _SurfaceBuilder:
    """Converts one parsed statement into surface nodes with byte ranges."""

    def __init__(self, statement: _Statement, offsets: Sequence[int]) -> None:
        self._statement = statement
        self._tokens = statement.tokens
        self._lo = statement.first
        self._hi = statement.end
        self._offsets = offsets
        self._cursor = statement.first
        self._claimed: set[int] = set()
        self._source_map = SourceMap()

    def build(self) -> tuple[AstNode, SourceMap]:
        root = self._visit(self._statement.expression)
        node = SyntaxNode(name="Statement", items=[root], location=self._statement.location)
        return node, self._source_map

    def _visit(self, expression: exp.Expression) -> AstNode:
        if isinstance(expression, exp.Select):
            node = self._visit_select(expression)
        elif isinstance(expression, exp.Table):
            node = self._visit_table(expression)
        elif isinstance(expression, exp.Alias):
            node = self._visit_alias(expression)
        elif isinstance(expression, (exp.Column, exp.Dot)) and _dotted_names(expression):
            node = self._visit_path(_dotted_names(expression))
        elif isinstance(expression, exp.Func):
            node = self._visit_function(expression)
        elif isinstance(expression, exp.Literal):
            node = self._visit_literal(expression)
        else:
            node = self._visit_generic(expression, expression.iter_expressions())
        if node.location is not None:
            self._source_map.ranges[id(expression)] = node.location
        return node

    def _visit_generic(self, expression: exp.Expression, children: Iterable[exp.Expression]) -> AstNode:
        items = [self._visit(child) for child in children]
        return SyntaxNode(name=type(expression).__name__, items=items, location=_union(item.location for item in items))

    def _visit_select(self, select: exp.Select) -> AstNode:
        items: list[AstNode] = []
        with_ = select.args.get("with") or select.args.get("with_")
        if isinstance(with_, exp.Expression):
            items.append(self._visit(with_))
        index = self._claim(lambda token: token.token_type == TokenType.SELECT)
        keyword = self._span(index, index) if index is not None else None
        for projection in select.expressions:
            items.append(self._visit_select_column(projection))
        remaining = [key for key in select.args if key not in ("with", "with_", "expressions")]
        for key in sorted(remaining, key=lambda name: _CLAUSE_ORDER.get(name, len(_CLAUSE_ORDER))):
            value = select.args[key]
            for child in value if isinstance(value, list) else [value]:
                if isinstance(child, exp.Expression):
                    items.append(self._visit(child))
        location = _union([keyword, *(item.location for item in items)])
        return SyntaxNode(name="Select", items=items, location=location)

    def _visit_select_column(self, projection: exp.Expression) -> AstNode:
        if isinstance(projection, exp.Alias):
            inner = self._visit(projection.this)
            alias_range = self._claim_path([projection.alias])
            node = SelectColumnNode(
                expression=inner,
                alias=projection.alias,
                location=_union([inner.location, alias_range]),
            )
        else:
            inner = self._visit(projection)
            node = SelectColumnNode(expression=inner, location=inner.location)
        if node.location is not None:
            self._source_map.ranges[id(projection)] = node.location
        return node

    def _visit_alias(self, alias: exp.Alias) -> AstNode:
        inner = self._visit(alias.this)
        alias_range = self._claim_path([alias.alias]) if alias.alias else None
        return SyntaxNode(name="Alias", items=[inner], location=_union([inner.location, alias_range]))

    def _visit_path(self, names: list[str]) -> AstNode:
        return PathExpressionNode(names=tuple(names), location=self._claim_path(names))

    def _visit_table(self, table: exp.Table) -> AstNode:
        names = [part.name for part in table.parts]
        if not names or not all(names):
            return self._visit_generic(table, table.iter_expressions())
        path = PathExpressionNode(names=tuple(names), location=self._claim_path(names))
        alias = table.alias or None
        alias_range = self._claim_path([alias]) if alias else None
        return TablePathExpressionNode(
            path_expr=path,
            alias=alias,
            location=_union([path.location, alias_range]),
        )

    def _visit_function(self, function: exp.Func) -> AstNode:
        spellings = _function_spellings(function)
        index = self._claim(lambda token: _is_name_token(token) and token.text.upper() in spellings)
        if index is None:
            arguments = [self._visit(child) for child in function.iter_expressions()]
            name = next(iter(spellings), type(function).__name__.upper())
            path = PathExpressionNode(names=(name,))
            return FunctionCallNode(
                function=path,
                arguments=arguments,
                location=_union(argument.location for argument in arguments),
            )

        name = self._tokens[index].text.upper()
        self._source_map.function_names[id(function)] = name
        path = PathExpressionNode(names=(name,), location=self._span(index, index))
        close = self._matching_paren(index + 1)
        arguments = [self._visit(child) for child in function.iter_expressions()]
        if close is not None:
            self._cursor = max(self._cursor, close + 1)
        return FunctionCallNode(
            function=path,
            arguments=arguments,
            location=self._span(index, close if close is not None else index),
        )

    def _visit_literal(self, literal: exp.Literal) -> AstNode:
        value = str(literal.this)
        index = self._claim(lambda token: _is_literal_token(token) and token.text == value)
        location = self._span(index, index) if index is not None else None
        return SyntaxNode(name="Literal", location=location)

    # Token matching

    def _claim(self, predicate: Callable[[Token], bool]) -> int | None:
        for start in (self._cursor, self._lo):
            for index in range(start, self._hi):
                if index in self._claimed or not predicate(self._tokens[index]):
                    continue
                self._claimed.add(index)
                if start == self._cursor:
                    self._cursor = index + 1
                return index
        return None

    def _claim_path(self, names: Sequence[str]) -> LocationRange | None:
        target = ".".join(name.lower() for name in names)
        for start in (self._cursor, self._lo):
            for index in range(start, self._hi):
                end = self._match_path(index, target)
                if end is None:
                    continue
                self._claimed.update(range(index, end + 1))
                if start == self._cursor:
                    self._cursor = end + 1
                return self._span(index, end)
        return None

    def _match_path(self, index: int, target: str) -> int | None:
        joined = ""
        while index < self._hi:
            token = self._tokens[index]
            if index in self._claimed or not _is_name_token(token):
                return None
            piece = token.text.lower()
            joined = f"{joined}.{piece}" if joined else piece
            if joined == target:
                return index
            if not target.startswith(joined + "."):
                return None
            if index + 1 >= self._hi or self._tokens[index + 1].token_type != TokenType.DOT:
                return None
            index += 2
        return None

    def _matching_paren(self, index: int) -> int | None:
        if index >= self._hi or self._tokens[index].token_type != TokenType.L_PAREN:
            return None
        depth = 0
        for current in range(index, self._hi):
            token_type = self._tokens[current].token_type
            if token_type == TokenType.L_PAREN:
                depth += 1
            elif token_type == TokenType.R_PAREN:
                depth -= 1
                if depth == 0:
                    return current
        return None

    def _span(self, first: int, last: int) -> LocationRange:
        start = self._tokens[first].start
        end = self._tokens[last].end + 1
        return LocationRange(self._offsets[start], self._offsets[min(end, len(self._offsets) - 1)])


def _dotted_names(expression: exp.Expression) -> list[str]:
    """Names of a column or struct-field chain such as ``a.b.c``, else ``[]``."""

    if isinstance(expression, exp.Column):
        parts = expression.parts
        if all(isinstance(part, exp.Identifier) for part in parts):
            return [part.name for part in parts]
        return []
    if isinstance(expression, exp.Dot) and isinstance(expression.expression, exp.Identifier):
        base = _dotted_names(expression.this)
        if base:
            return [*base, expression.expression.name]
    return []


def _function_spellings(function: exp.Func) -> list[str]:
    if isinstance(function, exp.Anonymous):
        return [str(function.name).upper()]
    return [name.upper() for name in type(function).sql_names()]


def _union(locations: Iterable[LocationRange | None]) -> LocationRange | None:
    result: LocationRange | None = None
    for location in locations:
        if location is None:
            continue
        result = location if result is None else result.union(location)
    return result


__all__ = [
    "Analysis",
    "AnalysisOutput",
    "AnalysisProvider",
    "DEFAULT_DIALECT",
    "ParsedFile",
    "SqlSyntaxError",
    "SqlglotAnalyzer",
    "StatementError",
]
