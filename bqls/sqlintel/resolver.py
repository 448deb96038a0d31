"""Name and type resolution of parsed queries into the resolved tree."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Mapping

from sqlglot import exp

from .functions import FIRST_ARGUMENT, FunctionCatalog
from .models import LocationRange, SchemaField, SqlIntelError, TableMetadata
from .resolved import (
    UNKNOWN_TYPE,
    AggregateScanNode,
    ArrayScanNode,
    ColumnRefNode,
    ComputedColumnNode,
    ExprNode,
    FilterScanNode,
    FunctionCallNode,
    FunctionInfo,
    GetStructFieldNode,
    JoinScanNode,
    LiteralNode,
    OperatorNode,
    OrderByScanNode,
    OutputColumn,
    ProjectScanNode,
    QueryStatementNode,
    ResolvedColumn,
    ScanNode,
    SetOperationScanNode,
    SingleRowScanNode,
    SubqueryExprNode,
    TableScanNode,
    WithEntryNode,
    WithRefScanNode,
    WithScanNode,
)

_QUERY_TYPES = (exp.Select, exp.Union, exp.Intersect, exp.Except, exp.Subquery)

_LEGACY_TYPES = {
    "INTEGER": "INT64",
    "FLOAT": "FLOAT64",
    "BOOLEAN": "BOOL",
    "RECORD": "STRUCT",
}


class AnalysisError(SqlIntelError):
    """Raised when a statement references unknown tables, columns or fields."""

    def __init__(self, message: str, location: LocationRange | None = None) -> None:
        super().__init__(message)
        self.location = location


@dataclass(slots=True)
class SourceMap:
    """Byte ranges and typed function names recorded while building the surface tree."""

    ranges: dict[int, LocationRange] = field(default_factory=dict)
    function_names: dict[int, str] = field(default_factory=dict)

    def location(self, expression: exp.Expression | None) -> LocationRange | None:
        if expression is None:
            return None
        return self.ranges.get(id(expression))


@dataclass(slots=True)
class _Source:
    alias: str
    scan: ScanNode
    columns: list[ResolvedColumn]

    def find(self, name: str) -> ResolvedColumn | None:
        lowered = name.lower()
        for column in self.columns:
            if column.name.lower() == lowered:
                return column
        return None


@dataclass(slots=True)
class _Scope:
    parent: _Scope | None = None
    ctes: dict[str, tuple[str, list[OutputColumn]]] = field(default_factory=dict)
    sources: list[_Source] = field(default_factory=list)
    aliases: dict[str, ResolvedColumn] = field(default_factory=dict)

    def child(self) -> _Scope:
        return _Scope(parent=self, ctes=dict(self.ctes))

    def find_source(self, alias: str) -> _Source | None:
        lowered = alias.lower()
        scope: _Scope | None = self
        while scope is not None:
            for source in scope.sources:
                if source.alias.lower() == lowered:
                    return source
            scope = scope.parent
        return None

    def find_column(self, name: str) -> ResolvedColumn | None:
        lowered = name.lower()
        scope: _Scope | None = self
        while scope is not None:
            if lowered in scope.aliases:
                return scope.aliases[lowered]
            for source in scope.sources:
                column = source.find(name)
                if column is not None:
                    return column
            scope = scope.parent
        return None


def resolve_statement(
    expression: exp.Expression | None,
    *,
    catalog: Mapping[str, TableMetadata],
    source_map: SourceMap,
    functions: FunctionCatalog,
    location: LocationRange | None = None,
) -> QueryStatementNode | None:
    """Resolve a parsed query statement; other statement kinds return ``None``."""

    if not isinstance(expression, _QUERY_TYPES):
        return None
    resolver = _Resolver(catalog, source_map, functions)
    scan, outputs = resolver.query(expression, _Scope())
    return QueryStatementNode(query=scan, output_columns=outputs, location=location)


def column_type_name(schema_field: SchemaField) -> str:
    """Render a schema field type the way the resolved tree spells types."""

    base = _LEGACY_TYPES.get(schema_field.type.upper(), schema_field.type.upper())
    if base == "STRUCT" and schema_field.fields:
        members = ", ".join(f"{child.name} {column_type_name(child)}" for child in schema_field.fields)
        base = f"STRUCT<{members}>"
    if schema_field.mode.upper() == "REPEATED":
        return f"ARRAY<{base}>"
    return base


def struct_field_type(type_name: str, field_name: str) -> str | None:
    """Return the type of ``field_name`` inside a ``STRUCT<...>`` type name."""

    if not (type_name.startswith("STRUCT<") and type_name.endswith(">")):
        return None
    lowered = field_name.lower()
    for member in _split_members(type_name[len("STRUCT<") : -1]):
        name, _, member_type = member.strip().partition(" ")
        if name.lower() == lowered:
            return member_type.strip()
    return None


def _split_members(body: str) -> list[str]:
    members: list[str] = []
    depth = 0
    current = ""
    for char in body:
        if char == "<":
            depth += 1
        elif char == ">":
            depth -= 1
        if char == "," and depth == 0:
            members.append(current)
            current = ""
            continue
        current += char
    if current.strip():
        members.append(current)
    return members


class _Resolver:
    def __init__(
        self,
        catalog: Mapping[str, TableMetadata],
        source_map: SourceMap,
        functions: FunctionCatalog,
    ) -> None:
        self._catalog = catalog
        self._source_map = source_map
        self._functions = functions

    # Queries

    def query(self, expression: exp.Expression, scope: _Scope) -> tuple[ScanNode, list[OutputColumn]]:
        if isinstance(expression, exp.Subquery):
            return self.query(expression.this, scope)

        location = self._source_map.location(expression)
        scope = scope.child()
        entries: list[WithEntryNode] = []
        for cte in expression.ctes:
            name = cte.alias_or_name
            scan, outputs = self.query(cte.this, scope)
            scope.ctes[name.lower()] = (name, outputs)
            entries.append(WithEntryNode(with_query_name=name, query=scan, location=self._source_map.location(cte)))

        if isinstance(expression, exp.Select):
            scan, outputs = self._select(expression, scope, location)
        elif isinstance(expression, (exp.Union, exp.Intersect, exp.Except)):
            left, outputs = self.query(expression.this, scope)
            right, _ = self.query(expression.expression, scope)
            scan = SetOperationScanNode(
                operator=type(expression).__name__.upper(),
                input_scans=[left, right],
                column_list=list(left.column_list),
                location=location,
            )
        else:
            raise AnalysisError(f"Unsupported query: {type(expression).__name__}", location)

        if entries:
            scan = WithScanNode(with_entries=entries, query=scan, column_list=list(scan.column_list), location=location)
        return scan, outputs

    def _select(
        self, select: exp.Select, scope: _Scope, location: LocationRange | None
    ) -> tuple[ScanNode, list[OutputColumn]]:
        scan = self._from(select, scope)

        where = _arg(select, "where")
        if where is not None:
            scan = FilterScanNode(
                input_scan=scan,
                filter_expr=self._expr(where.this, scope),
                column_list=list(scan.column_list),
                location=location,
            )

        group = _arg(select, "group")
        if group is not None:
            scan = AggregateScanNode(
                input_scan=scan,
                group_by_list=[self._expr(item, scope) for item in group.expressions],
                column_list=list(scan.column_list),
                location=location,
            )
            having = _arg(select, "having")
            if having is not None:
                scan = FilterScanNode(
                    input_scan=scan,
                    filter_expr=self._expr(having.this, scope),
                    column_list=list(scan.column_list),
                    location=location,
                )

        columns: list[ResolvedColumn] = []
        outputs: list[OutputColumn] = []
        computed: list[ComputedColumnNode] = []
        for index, projection in enumerate(select.expressions, start=1):
            star = _star_qualifier(projection)
            if star is not None:
                for column in self._star_columns(star, scope, projection):
                    columns.append(column)
                    outputs.append(OutputColumn(name=column.name, column=column))
                continue

            target = projection.this if isinstance(projection, exp.Alias) else projection
            name = projection.alias if isinstance(projection, exp.Alias) else _default_name(target, index)
            resolved = self._expr(target, scope)
            if isinstance(resolved, ColumnRefNode):
                column = resolved.column
            else:
                column = ResolvedColumn(name=name, table_name="$query", type=resolved.type)
                computed.append(
                    ComputedColumnNode(column=column, expr=resolved, location=self._source_map.location(projection))
                )
            columns.append(column)
            outputs.append(OutputColumn(name=name, column=column))

        scan = ProjectScanNode(input_scan=scan, expr_list=computed, column_list=columns, location=location)

        order = _arg(select, "order")
        if order is not None:
            order_scope = _Scope(parent=scope, aliases={output.name.lower(): output.column for output in outputs})
            items = [item.this if isinstance(item, exp.Ordered) else item for item in order.expressions]
            scan = OrderByScanNode(
                input_scan=scan,
                order_by_list=[self._expr(item, order_scope) for item in items],
                column_list=list(columns),
                location=location,
            )
        return scan, outputs

    def _from(self, select: exp.Select, scope: _Scope) -> ScanNode:
        from_ = _arg(select, "from", "from_")
        if from_ is None:
            return SingleRowScanNode()
        scan = self._source(from_.this, scope)
        for join in select.args.get("joins") or []:
            right = self._source(join.this, scope)
            condition = join.args.get("on")
            scan = JoinScanNode(
                left_scan=scan,
                right_scan=right,
                join_expr=self._expr(condition, scope) if condition is not None else None,
                column_list=[*scan.column_list, *right.column_list],
                location=self._source_map.location(join),
            )
        return scan

    def _source(self, expression: exp.Expression, scope: _Scope) -> ScanNode:
        location = self._source_map.location(expression)
        if isinstance(expression, exp.Table):
            names = [part.name for part in expression.parts]
            path = ".".join(names)
            alias = expression.alias or names[-1]
            cte = scope.ctes.get(path.lower()) if len(names) == 1 else None
            if cte is not None:
                cte_name, outputs = cte
                columns = [ResolvedColumn(output.name, cte_name, output.column.type) for output in outputs]
                scan: ScanNode = WithRefScanNode(
                    with_query_name=cte_name,
                    alias=alias,
                    column_list=columns,
                    location=location,
                )
            else:
                metadata = self._catalog.get(path)
                if metadata is None:
                    raise AnalysisError(f"Table not found: {path}", location)
                columns = [ResolvedColumn(item.name, path, column_type_name(item)) for item in metadata.schema]
                scan = TableScanNode(table_name=path, alias=alias, column_list=columns, location=location)
        elif isinstance(expression, exp.Subquery):
            scan, outputs = self.query(expression.this, scope)
            alias = expression.alias
            columns = [_exposed(output) for output in outputs]
        elif isinstance(expression, exp.Unnest):
            array = [self._expr(item, scope) for item in expression.expressions]
            table_alias = expression.args.get("alias")
            names = [column.name for column in table_alias.columns] if table_alias is not None else []
            alias = expression.alias
            if not names and alias:
                names = [alias]
            element_type = _element_type(array[0].type) if array else UNKNOWN_TYPE
            columns = [ResolvedColumn(name, "$array", element_type) for name in names]
            scan = ArrayScanNode(array_expr=array[0] if array else None, column_list=columns, location=location)
            alias = alias or (names[0] if names else "")
        else:
            raise AnalysisError(f"Unsupported FROM item: {type(expression).__name__}", location)

        scope.sources.append(_Source(alias=alias, scan=scan, columns=columns))
        return scan

    def _star_columns(self, qualifier: str, scope: _Scope, projection: exp.Expression) -> list[ResolvedColumn]:
        if not qualifier:
            return [column for source in scope.sources for column in source.columns]
        source = scope.find_source(qualifier)
        if source is None:
            raise AnalysisError(f"Unrecognized name: {qualifier}", self._source_map.location(projection))
        return list(source.columns)

    # Expressions

    def _expr(self, expression: exp.Expression, scope: _Scope) -> ExprNode:
        location = self._source_map.location(expression)
        if isinstance(expression, exp.Column) and not isinstance(expression.this, exp.Star):
            return self._column(expression, scope, location)
        if isinstance(expression, exp.Dot) and isinstance(expression.expression, exp.Identifier):
            base = self._expr(expression.this, scope)
            return self._struct_field(base, expression.expression.name, location)
        if isinstance(expression, exp.Paren):
            return self._expr(expression.this, scope)
        if isinstance(expression, _QUERY_TYPES):
            scan, outputs = self.query(expression, scope)
            return SubqueryExprNode(
                subquery=scan,
                type=outputs[0].column.type if outputs else UNKNOWN_TYPE,
                location=location,
            )
        if isinstance(expression, exp.Literal):
            return LiteralNode(value=str(expression.this), type=_literal_type(expression), location=location)
        if isinstance(expression, exp.Boolean):
            return LiteralNode(value=expression.sql(dialect="bigquery"), type="BOOL", location=location)
        if isinstance(expression, exp.Null):
            return LiteralNode(value="NULL", type="INT64", location=location)
        if isinstance(expression, exp.Cast):
            return OperatorNode(
                operator="CAST",
                operands=[self._expr(expression.this, scope)],
                type=expression.to.sql(dialect="bigquery"),
                location=location,
            )
        operands = [
            self._expr(child, scope)
            for child in expression.iter_expressions()
            if not isinstance(child, (exp.Star, exp.Identifier, exp.Var, exp.DataType))
        ]
        if isinstance(expression, exp.Func):
            function = self._function(expression)
            return FunctionCallNode(
                function=function,
                arguments=operands,
                type=_return_type(function, operands),
                location=location,
            )
        if isinstance(expression, (exp.Predicate, exp.Connector, exp.Not)):
            result_type = "BOOL"
        else:
            result_type = operands[0].type if operands else UNKNOWN_TYPE
        return OperatorNode(
            operator=type(expression).__name__,
            operands=operands,
            type=result_type,
            location=location,
        )

    def _column(self, column: exp.Column, scope: _Scope, location: LocationRange | None) -> ExprNode:
        *qualifier, name = [part.name for part in column.parts]
        if not qualifier:
            resolved = scope.find_column(name)
            if resolved is None:
                raise AnalysisError(f"Unrecognized name: {name}", location)
            return ColumnRefNode(column=resolved, type=resolved.type, location=location)

        source = scope.find_source(qualifier[0])
        if source is not None:
            path = [*qualifier[1:], name]
            resolved = source.find(path[0])
            if resolved is None:
                raise AnalysisError(f"Name {path[0]} not found inside {qualifier[0]}", location)
        else:
            path = [*qualifier, name]
            resolved = scope.find_column(path[0])
            if resolved is None:
                raise AnalysisError(f"Unrecognized name: {path[0]}", location)

        fields = path[1:]
        node: ExprNode = ColumnRefNode(
            column=resolved,
            type=resolved.type,
            location=location if not fields else None,
        )
        for index, field_name in enumerate(fields):
            node = self._struct_field(node, field_name, location if index == len(fields) - 1 else None)
        return node

    def _struct_field(self, base: ExprNode, field_name: str, location: LocationRange | None) -> ExprNode:
        if base.type == UNKNOWN_TYPE:
            field_type = UNKNOWN_TYPE
        else:
            field_type = struct_field_type(base.type, field_name)
            if field_type is None:
                raise AnalysisError(f"Field name {field_name} does not exist in {base.type}", location)
        return GetStructFieldNode(expr=base, field_name=field_name, type=field_type, location=location)

    def _function(self, function: exp.Func) -> FunctionInfo:
        names = [self._source_map.function_names.get(id(function), "")]
        if isinstance(function, exp.Anonymous):
            names.append(str(function.name))
        else:
            names.extend(type(function).sql_names())
        return self._functions.lookup(names)


def _arg(expression: exp.Expression, *keys: str) -> exp.Expression | None:
    for key in keys:
        value = expression.args.get(key)
        if isinstance(value, exp.Expression):
            return value
    return None


def _star_qualifier(projection: exp.Expression) -> str | None:
    """Return ``""`` for ``*``, the qualifier for ``t.*`` and ``None`` otherwise."""

    if isinstance(projection, exp.Star):
        return ""
    if isinstance(projection, exp.Column) and isinstance(projection.this, exp.Star):
        return projection.table
    return None


def _default_name(expression: exp.Expression, index: int) -> str:
    if isinstance(expression, exp.Column):
        return expression.name
    if isinstance(expression, exp.Dot) and isinstance(expression.expression, exp.Identifier):
        return expression.expression.name
    return f"$col{index}"


def _exposed(output: OutputColumn) -> ResolvedColumn:
    if output.column.name == output.name:
        return output.column
    return ResolvedColumn(output.name, output.column.table_name, output.column.type)


def _literal_type(literal: exp.Literal) -> str:
    if literal.is_string:
        return "STRING"
    text = str(literal.this)
    if any(char in text for char in ".eE"):
        return "FLOAT64"
    return "INT64"


def _element_type(type_name: str) -> str:
    if type_name.startswith("ARRAY<") and type_name.endswith(">"):
        return type_name[len("ARRAY<") : -1]
    return UNKNOWN_TYPE


def _return_type(function: FunctionInfo, arguments: list[ExprNode]) -> str:
    if function.return_type == FIRST_ARGUMENT:
        return arguments[0].type if arguments else UNKNOWN_TYPE
    return function.return_type or UNKNOWN_TYPE


__all__ = [
    "AnalysisError",
    "SourceMap",
    "column_type_name",
    "resolve_statement",
    "struct_field_type",
]
