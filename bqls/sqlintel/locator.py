"""Offset-based node search shared by the surface and resolved trees."""

from __future__ import annotations

from typing import Iterator, Protocol, Sequence, TypeVar

from .models import LocationRange


class LocatedNode(Protocol):
    """Capability shared by both tree shapes."""

    location: LocationRange | None

    def children(self) -> Sequence["LocatedNode"]: ...


class ParentedNode(Protocol):
    parent: "ParentedNode | None"


N = TypeVar("N")
P = TypeVar("P")


def walk(root: LocatedNode) -> Iterator[LocatedNode]:
    """Yield ``root`` and its descendants in depth-first pre-order."""

    stack: list[LocatedNode] = [root]
    while stack:
        node = stack.pop()
        yield node
        stack.extend(reversed(node.children()))


def search_node(root: LocatedNode, kind: type[N], offset: int) -> N | None:
    """Return the innermost node of ``kind`` whose range contains ``offset``.

    Every node is visited; later pre-order matches replace earlier ones, which
    leaves the most deeply nested candidate. Nodes without a range never match.
    """

    found: N | None = None
    for node in walk(root):
        if not isinstance(node, kind):
            continue
        location = node.location
        if location is None:
            continue
        if location.start <= offset <= location.end:
            found = node
    return found


def lookup_node(node: ParentedNode, kind: type[P]) -> P | None:
    """Return the closest strict ancestor of ``node`` that is a ``kind``."""

    current = node.parent
    while current is not None:
        if isinstance(current, kind):
            return current
        current = current.parent
    return None


__all__ = ["LocatedNode", "lookup_node", "search_node", "walk"]
