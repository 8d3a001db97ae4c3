"""Graph nodes, local functions and the context used while checking them."""

from __future__ import annotations

import os
import sys
from collections.abc import Iterator, Mapping
from contextlib import contextmanager
from dataclasses import dataclass, field
from typing import Any

from onnxcheck.status import ErrorCode, Status

_MISSING: Any = object()


@dataclass
class Node:
    """One operator node: its type, name, tensor edges and attributes."""

    op_type: str
    name: str = ""
    inputs: list[str] = field(default_factory=list)
    outputs: list[str] = field(default_factory=list)
    attributes: dict[str, Any] = field(default_factory=dict)

    def attr(self, name: str, default: Any = _MISSING) -> Any:
        """Return an attribute value, or ``default`` when it is absent.

        Raises KeyError when the attribute is absent and no default is given.
        """
        try:
            return self.attributes[name]
        except KeyError:
            if default is _MISSING:
                raise KeyError(f"Node {self.name!r} ({self.op_type}) has no attribute {name!r}") from None
            return default

    def has_attr(self, name: str) -> bool:
        """Tell whether the node carries the named attribute."""
        return name in self.attributes


@dataclass
class Graph:
    """A (sub)graph: its nodes and the names of its inputs and outputs."""

    nodes: list[Node] = field(default_factory=list)
    inputs: list[str] = field(default_factory=list)
    outputs: list[str] = field(default_factory=list)
    name: str = ""


@dataclass
class LocalFunction:
    """A model-local function: a named body of nodes with default attributes."""

    name: str
    inputs: list[str] = field(default_factory=list)
    outputs: list[str] = field(default_factory=list)
    nodes: list[Node] = field(default_factory=list)
    attributes: dict[str, Any] = field(default_factory=dict)


class CheckContext:
    """State shared by the node checkers: opset, local functions and call stack."""

    def __init__(
        self,
        opset_version: int = 1,
        local_functions: Mapping[str, LocalFunction] | None = None,
    ) -> None:
        self.opset_version = opset_version
        self.local_functions: dict[str, LocalFunction] = dict(local_functions or {})
        self.local_function_stack: list[tuple[str, dict[str, Any]]] = []
        self.local_function_errors: list[tuple[str, ...]] = []

    def make_error(self, desc: str, code: ErrorCode, node: Node, index: int) -> Status:
        """Build an error status for ``node``, recording the local function stack."""
        stack = tuple(name for name, _ in self.local_function_stack)
        self.local_function_errors.append(stack)
        caller = sys._getframe(1)
        return Status(
            code=code,
            desc=desc,
            file=os.path.basename(caller.f_code.co_filename),
            line=caller.f_lineno,
            func=caller.f_code.co_name,
            node=index,
            node_name=node.name,
            node_operator=node.op_type,
            local_function_stack=stack,
        )

    @contextmanager
    def function_scope(self, name: str, attributes: Mapping[str, Any] | None = None) -> Iterator[None]:
        """Push a local function onto the stack for the duration of the block."""
        self.local_function_stack.append((name, dict(attributes or {})))
        try:
            yield
        finally:
            self.local_function_stack.pop()