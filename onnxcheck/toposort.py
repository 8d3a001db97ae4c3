"""Topological ordering of graph nodes by their named input and output edges."""

from __future__ import annotations

from collections.abc import Iterable, Sequence
from enum import Enum
from typing import Protocol


class _GraphNode(Protocol):
    inputs: Iterable[str]
    outputs: Iterable[str]


class CycleError(ValueError):
    """Raised when the graph contains a cycle."""

    def __init__(self, node_index: int) -> None:
        super().__init__("Graph contains a cycle")
        self.node_index = node_index


class DuplicateOutputError(ValueError):
    """Raised when two outputs in the graph share a name."""

    def __init__(self, name: str) -> None:
        super().__init__(f"Output name is not unique: {name}")
        self.name = name


class _State(Enum):
    UNVISITED = 0
    ACTIVE = 1
    VISITED = 2


def toposort(nodes: Sequence[_GraphNode]) -> list[int]:
    """Return node indices so that each node follows the producers of its inputs.

    Each node needs ``inputs`` and ``outputs`` holding tensor names. Inputs
    that no node produces are ignored.
    """
    producers: dict[str, int] = {}
    for index, node in enumerate(nodes):
        for output in node.outputs:
            if output in producers:
                raise DuplicateOutputError(output)
            producers[output] = index

    states = [_State.UNVISITED] * len(nodes)
    order: list[int] = []

    for root in range(len(nodes)):
        if states[root] is _State.VISITED:
            continue
        states[root] = _State.ACTIVE
        stack = [(root, iter(list(nodes[root].inputs)))]
        while stack:
            index, pending = stack[-1]
            for name in pending:
                producer = producers.get(name)
                if producer is None:
                    continue
                state = states[producer]
                if state is _State.ACTIVE:
                    raise CycleError(producer)
                if state is _State.UNVISITED:
                    states[producer] = _State.ACTIVE
                    stack.append((producer, iter(list(nodes[producer].inputs))))
                    break
            else:
                stack.pop()
                states[index] = _State.VISITED
                order.append(index)
    return order