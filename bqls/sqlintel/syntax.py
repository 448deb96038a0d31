"""Surface syntax tree produced from source text, with byte-offset ranges."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Iterator, Sequence

from .models import LocationRange


@dataclass(eq=False, kw_only=True)
class AstNode:
    """Base surface node; ``parent`` is assigned once by ``link_parents``."""

    location: LocationRange | None = None
    parent: AstNode | None = field(default=None, repr=False)

    def children(self) -> Sequence[AstNode]:
        return ()


@dataclass(eq=False, kw_only=True)
class ScriptNode(AstNode):
    """Root of a parsed file: one child per statement."""

    statements: list[AstNode] = field(default_factory=list)

    def children(self) -> Sequence[AstNode]:
        return self.statements


@dataclass(eq=False, kw_only=True)
class SyntaxNode(AstNode):
    """Any construct without a dedicated node class, labelled by ``name``."""

    name: str
    items: list[AstNode] = field(default_factory=list)

    def children(self) -> Sequence[AstNode]:
        return self.items


@dataclass(eq=False, kw_only=True)
class PathExpressionNode(AstNode):
    """Dotted name such as ``a.x`` or ``project.dataset.table``."""

    names: tuple[str, ...]

    @property
    def path(self) -> str:
        return ".".join(self.names)


@dataclass(eq=False, kw_only=True)
class TablePathExpressionNode(AstNode):
    """Table reference in a FROM clause, optionally aliased."""

    path_expr: PathExpressionNode
    alias: str | None = None

    def children(self) -> Sequence[AstNode]:
        return (self.path_expr,)


@dataclass(eq=False, kw_only=True)
class SelectColumnNode(AstNode):
    """One item of a select list."""

    expression: AstNode
    alias: str | None = None

    def children(self) -> Sequence[AstNode]:
        return (self.expression,)


@dataclass(eq=False, kw_only=True)
class FunctionCallNode(AstNode):
    function: PathExpressionNode
    arguments: list[AstNode] = field(default_factory=list)

    def children(self) -> Sequence[AstNode]:
        return (self.function, *self.arguments)


def link_parents(root: AstNode) -> AstNode:
    """Point every descendant of ``root`` at its parent."""

    stack: list[AstNode] = [root]
    while stack:
        node = stack.pop()
        for child in node.children():
            child.parent = node
            stack.append(child)
    return root


def iter_table_paths(root: AstNode) -> Iterator[str]:
    """Yield the dotted path of every table reference under ``root``."""

    stack: list[AstNode] = [root]
    while stack:
        node = stack.pop()
        if isinstance(node, TablePathExpressionNode) and node.path_expr.names:
            yield node.path_expr.path
        stack.extend(reversed(node.children()))


__all__ = [
    "AstNode",
    "FunctionCallNode",
    "PathExpressionNode",
    "ScriptNode",
    "SelectColumnNode",
    "SyntaxNode",
    "TablePathExpressionNode",
    "iter_table_paths",
    "link_parents",
]
