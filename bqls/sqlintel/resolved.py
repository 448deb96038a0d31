"""Resolved (typed) tree produced by analysis, one per statement."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Sequence

from .models import LocationRange

UNKNOWN_TYPE = "UNKNOWN"


@dataclass(frozen=True, slots=True)
class ResolvedColumn:
    """Column produced by a scan; ``table_name`` is the table it came from."""

    name: str
    table_name: str
    type: str = UNKNOWN_TYPE


@dataclass(frozen=True, slots=True)
class FunctionInfo:
    """Function bound to a call, with its overload signatures."""

    name: str
    signatures: tuple[str, ...] = ()
    return_type: str | None = None


@dataclass(eq=False, kw_only=True)
class ResolvedNode:
    location: LocationRange | None = None

    def children(self) -> Sequence[ResolvedNode]:
        return ()


# Expressions


@dataclass(eq=False, kw_only=True)
class ExprNode(ResolvedNode):
    type: str = UNKNOWN_TYPE


@dataclass(eq=False, kw_only=True)
class LiteralNode(ExprNode):
    value: str = ""


@dataclass(eq=False, kw_only=True)
class ColumnRefNode(ExprNode):
    column: ResolvedColumn


@dataclass(eq=False, kw_only=True)
class GetStructFieldNode(ExprNode):
    expr: ExprNode
    field_name: str

    def children(self) -> Sequence[ResolvedNode]:
        return (self.expr,)


@dataclass(eq=False, kw_only=True)
class FunctionCallNode(ExprNode):
    function: FunctionInfo
    arguments: list[ExprNode] = field(default_factory=list)

    def children(self) -> Sequence[ResolvedNode]:
        return self.arguments


@dataclass(eq=False, kw_only=True)
class OperatorNode(ExprNode):
    """Operators and other expressions without a dedicated node class."""

    operator: str
    operands: list[ExprNode] = field(default_factory=list)

    def children(self) -> Sequence[ResolvedNode]:
        return self.operands


@dataclass(eq=False, kw_only=True)
class SubqueryExprNode(ExprNode):
    subquery: ScanNode

    def children(self) -> Sequence[ResolvedNode]:
        return (self.subquery,)


@dataclass(eq=False, kw_only=True)
class ComputedColumnNode(ResolvedNode):
    column: ResolvedColumn
    expr: ExprNode

    def children(self) -> Sequence[ResolvedNode]:
        return (self.expr,)


# Scans


@dataclass(eq=False, kw_only=True)
class ScanNode(ResolvedNode):
    """Row source; ``column_list`` holds the columns it exposes."""

    column_list: list[ResolvedColumn] = field(default_factory=list)


@dataclass(eq=False, kw_only=True)
class SingleRowScanNode(ScanNode):
    pass


@dataclass(eq=False, kw_only=True)
class TableScanNode(ScanNode):
    table_name: str
    alias: str = ""


@dataclass(eq=False, kw_only=True)
class WithRefScanNode(ScanNode):
    with_query_name: str
    alias: str = ""


@dataclass(eq=False, kw_only=True)
class ArrayScanNode(ScanNode):
    """``UNNEST`` of an array expression."""

    array_expr: ExprNode | None = None

    def children(self) -> Sequence[ResolvedNode]:
        return (self.array_expr,) if self.array_expr is not None else ()


@dataclass(eq=False, kw_only=True)
class ProjectScanNode(ScanNode):
    input_scan: ScanNode
    expr_list: list[ComputedColumnNode] = field(default_factory=list)

    def children(self) -> Sequence[ResolvedNode]:
        return (*self.expr_list, self.input_scan)


@dataclass(eq=False, kw_only=True)
class FilterScanNode(ScanNode):
    input_scan: ScanNode
    filter_expr: ExprNode

    def children(self) -> Sequence[ResolvedNode]:
        return (self.input_scan, self.filter_expr)


@dataclass(eq=False, kw_only=True)
class JoinScanNode(ScanNode):
    left_scan: ScanNode
    right_scan: ScanNode
    join_expr: ExprNode | None = None

    def children(self) -> Sequence[ResolvedNode]:
        nodes: list[ResolvedNode] = [self.left_scan, self.right_scan]
        if self.join_expr is not None:
            nodes.append(self.join_expr)
        return nodes


@dataclass(eq=False, kw_only=True)
class AggregateScanNode(ScanNode):
    input_scan: ScanNode
    group_by_list: list[ExprNode] = field(default_factory=list)

    def children(self) -> Sequence[ResolvedNode]:
        return (self.input_scan, *self.group_by_list)


@dataclass(eq=False, kw_only=True)
class OrderByScanNode(ScanNode):
    input_scan: ScanNode
    order_by_list: list[ExprNode] = field(default_factory=list)

    def children(self) -> Sequence[ResolvedNode]:
        return (self.input_scan, *self.order_by_list)


@dataclass(eq=False, kw_only=True)
class SetOperationScanNode(ScanNode):
    operator: str
    input_scans: list[ScanNode] = field(default_factory=list)

    def children(self) -> Sequence[ResolvedNode]:
        return self.input_scans


@dataclass(eq=False, kw_only=True)
class WithEntryNode(ResolvedNode):
    with_query_name: str
    query: ScanNode

    def children(self) -> Sequence[ResolvedNode]:
        return (self.query,)


@dataclass(eq=False, kw_only=True)
class WithScanNode(ScanNode):
    with_entries: list[WithEntryNode] = field(default_factory=list)
    query: ScanNode

    def children(self) -> Sequence[ResolvedNode]:
        return (*self.with_entries, self.query)


# Statements


@dataclass(frozen=True, slots=True)
class OutputColumn:
    name: str
    column: ResolvedColumn


@dataclass(eq=False, kw_only=True)
class QueryStatementNode(ResolvedNode):
    query: ScanNode
    output_columns: list[OutputColumn] = field(default_factory=list)

    def children(self) -> Sequence[ResolvedNode]:
        return (self.query,)


__all__ = [
    "AggregateScanNode",
    "ArrayScanNode",
    "ColumnRefNode",
    "ComputedColumnNode",
    "ExprNode",
    "FilterScanNode",
    "FunctionCallNode",
    "FunctionInfo",
    "GetStructFieldNode",
    "JoinScanNode",
    "LiteralNode",
    "OperatorNode",
    "OrderByScanNode",
    "OutputColumn",
    "ProjectScanNode",
    "QueryStatementNode",
    "ResolvedColumn",
    "ResolvedNode",
    "ScanNode",
    "SetOperationScanNode",
    "SingleRowScanNode",
    "SubqueryExprNode",
    "TableScanNode",
    "UNKNOWN_TYPE",
    "WithEntryNode",
    "WithRefScanNode",
    "WithScanNode",
]
