"""Hover descriptions for the token under the cursor."""

from __future__ import annotations

import logging
import sys
from typing import Any

import yaml

from . import resolved
from .analyzer import AnalysisOutput, ParsedFile
from .locator import lookup_node, search_node, walk
from .metadata import MetadataStore, MetadataStoreError
from .models import MarkedString, SchemaField, TableMetadata
from .syntax import PathExpressionNode, SelectColumnNode, TablePathExpressionNode

LOG = logging.getLogger(__name__)

TIMESTAMP_FORMAT = "%Y-%m-%d %H:%M:%S"


class HoverResolver:
    """Runs the hover strategies in order; the first non-empty answer wins."""

    def __init__(self, metadata: MetadataStore) -> None:
        self._metadata = metadata

    async def resolve(self, parsed: ParsedFile, offset: int) -> list[MarkedString]:
        target = search_node(parsed.surface, PathExpressionNode, offset)
        if target is None:
            LOG.debug("No path expression at offset", extra={"offset": offset})
            return []

        table = lookup_node(target, TablePathExpressionNode)
        if table is not None:
            metadata = await self._metadata.get_table_metadata(table.path_expr.path)
            return render_table(metadata)

        output = parsed.find_output(offset)
        if output is None:
            return []

        call = search_node(output.statement, resolved.FunctionCallNode, offset)
        if call is not None:
            return [render_function(call.function)]

        struct_field = search_node(output.statement, resolved.GetStructFieldNode, offset)
        if struct_field is not None:
            return [MarkedString("markdown", struct_field.type)]

        column_ref = search_node(output.statement, resolved.ColumnRefNode, offset)
        if column_ref is not None:
            return [await self._describe_column(column_ref.column)]

        select_column = lookup_node(target, SelectColumnNode)
        if select_column is not None:
            column = select_list_column(output, select_column, offset)
            if column is not None:
                return [await self._describe_column(column)]
        return []

    async def _describe_column(self, column: resolved.ResolvedColumn) -> MarkedString:
        try:
            metadata = await self._metadata.get_table_metadata(column.table_name)
        except MetadataStoreError:
            metadata = None
        schema_field = metadata.find_field(column.name) if metadata is not None else None
        if schema_field is None:
            return MarkedString("markdown", f"{column.name}: {column.type}")
        return MarkedString("markdown", f"{schema_field.name}: {schema_field.type}\n{schema_field.description}")


def select_list_column(
    output: AnalysisOutput, select_column: SelectColumnNode, offset: int
) -> resolved.ResolvedColumn | None:
    """Map a select-list item to the column exposed by the scan under ``offset``."""

    target: resolved.ScanNode | None = None
    narrowest = sys.maxsize
    for node in walk(output.statement):
        if not isinstance(node, resolved.ScanNode) or node.location is None:
            continue
        if not node.location.contains(offset):
            continue
        if node.location.width < narrowest:
            target = node
            narrowest = node.location.width
    if target is None:
        return None

    name = select_column_name(select_column)
    if name is None:
        return None
    for ref_name in _exposed_names(target):
        prefix = f"{ref_name}."
        if name.lower().startswith(prefix.lower()):
            name = name[len(prefix) :]
    for column in target.column_list:
        if column.name.lower() == name.lower():
            return column
    return None


def select_column_name(select_column: SelectColumnNode) -> str | None:
    """Dotted path of the item's expression, falling back to its alias."""

    if isinstance(select_column.expression, PathExpressionNode):
        return select_column.expression.path
    return select_column.alias


def _exposed_names(scan: resolved.ScanNode) -> list[str]:
    names: list[str] = []
    pending: list[resolved.ScanNode] = [scan]
    while pending:
        node = pending.pop(0)
        if isinstance(node, (resolved.ProjectScanNode, resolved.FilterScanNode, resolved.OrderByScanNode)):
            pending.append(node.input_scan)
        elif isinstance(node, resolved.WithScanNode):
            pending.append(node.query)
        elif isinstance(node, resolved.JoinScanNode):
            pending.extend((node.left_scan, node.right_scan))
        elif isinstance(node, resolved.TableScanNode):
            if node.alias:
                names.append(node.alias)
        elif isinstance(node, resolved.WithRefScanNode):
            names.append(node.with_query_name)
            if node.alias:
                names.append(node.alias)
        else:
            LOG.debug("Unsupported scan in select-list walk", extra={"scan": type(node).__name__})
    return names


def render_function(function: resolved.FunctionInfo) -> MarkedString:
    return MarkedString("markdown", f"## {function.name}\n\n" + "\n".join(function.signatures))


def render_table(metadata: TableMetadata) -> list[MarkedString]:
    """Markdown summary of a table followed by its schema as YAML."""

    lines = [f"## {metadata.full_id}"]
    if metadata.description:
        lines.append(metadata.description)
    if metadata.created is not None:
        lines.append(f"created at {metadata.created.strftime(TIMESTAMP_FORMAT)}")
    if metadata.modified is not None:
        lines.append(f"last modified at {metadata.modified.strftime(TIMESTAMP_FORMAT)}")
    schema = [_schema_entry(schema_field) for schema_field in metadata.schema]
    schema_yaml = yaml.dump(schema, default_flow_style=False, sort_keys=False, allow_unicode=True)
    return [MarkedString("markdown", "\n".join(lines)), MarkedString("yaml", schema_yaml)]


def _schema_entry(schema_field: SchemaField) -> dict[str, Any]:
    entry: dict[str, Any] = {"name": schema_field.name, "type": schema_field.type}
    if schema_field.mode:
        entry["mode"] = schema_field.mode
    if schema_field.description:
        entry["description"] = schema_field.description
    if schema_field.fields:
        entry["fields"] = [_schema_entry(child) for child in schema_field.fields]
    return entry


__all__ = [
    "HoverResolver",
    "TIMESTAMP_FORMAT",
    "render_function",
    "render_table",
    "select_column_name",
    "select_list_column",
]
