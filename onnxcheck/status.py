"""Parser status values, error codes and formatting helpers."""

from __future__ import annotations

from collections.abc import Iterable, Sequence
from dataclasses import dataclass, field
from enum import Enum, IntEnum
from typing import TypeVar

T = TypeVar("T")

MAX_DIMS = 8


class ErrorCode(IntEnum):
    """Error codes reported by the parser."""

    SUCCESS = 0
    INTERNAL_ERROR = 1
    MEM_ALLOC_FAILED = 2
    MODEL_DESERIALIZE_FAILED = 3
    INVALID_VALUE = 4
    INVALID_GRAPH = 5
    INVALID_NODE = 6
    UNSUPPORTED_GRAPH = 7
    UNSUPPORTED_NODE = 8
    UNSUPPORTED_NODE_ATTR = 9
    UNSUPPORTED_NODE_INPUT = 10
    UNSUPPORTED_NODE_DATATYPE = 11
    UNSUPPORTED_NODE_DYNAMIC = 12
    UNSUPPORTED_NODE_SHAPE = 13
    REFIT_FAILED = 14


_DTYPE_NAMES: dict[str, str] = {
    "FLOAT": "float32",
    "HALF": "float16",
    "BF16": "bfloat16",
    "INT8": "int8",
    "UINT8": "uint8",
    "INT32": "int32",
    "INT64": "int64",
    "BOOL": "bool",
    "FP8": "float8",
    "INT4": "int4",
}


class DataType(Enum):
    """Engine tensor data types."""

    FLOAT = 0
    HALF = 1
    INT8 = 2
    INT32 = 3
    BOOL = 4
    UINT8 = 5
    FP8 = 6
    BF16 = 7
    INT64 = 8
    INT4 = 9

    def __str__(self) -> str:
        try:
            return _DTYPE_NAMES[self.name]
        except KeyError:
            raise RuntimeError("Unknown dtype") from None


@dataclass(frozen=True)
class Status:
    """Outcome of a parser step, with location and node details on failure."""

    code: ErrorCode
    desc: str = ""
    file: str = ""
    line: int = 0
    func: str = ""
    node: int = -1
    node_name: str = ""
    node_operator: str = ""
    local_function_stack: tuple[str, ...] = field(default_factory=tuple)

    def __post_init__(self) -> None:
        object.__setattr__(self, "code", ErrorCode(self.code))
        object.__setattr__(self, "local_function_stack", tuple(self.local_function_stack))

    @classmethod
    def success(cls) -> "Status":
        """Return a status that reports success."""
        return cls(ErrorCode.SUCCESS)

    def is_error(self) -> bool:
        return self.code != ErrorCode.SUCCESS

    def is_success(self) -> bool:
        return self.code == ErrorCode.SUCCESS

    def __str__(self) -> str:
        parts = []
        if self.file or self.line:
            parts.append(f"{self.file}:{self.line}")
        if self.func:
            parts.append(f"In function {self.func}:")
        header = " ".join(parts)
        body = f"[{self.code.value}] {self.desc}" if self.desc else f"[{self.code.value}]"
        lines = [f"{header}\n{body}" if header else body]
        if self.node >= 0:
            lines.append(f"In node {self.node} with name: {self.node_name} and operator: {self.node_operator}")
        if self.local_function_stack:
            lines.append("Local function stack: " + " -> ".join(self.local_function_stack))
        return "\n".join(lines)


class ParserError(Exception):
    """Raised when a parser step fails; carries the failing status."""

    def __init__(self, status: Status) -> None:
        super().__init__(str(status))
        self.status = status


def _format_sequence(values: Iterable[object]) -> str:
    return "(" + ", ".join(str(v) for v in values) + ")"


def format_dims(dims: Sequence[int]) -> str:
    """Format a shape as a parenthesised, comma separated list."""
    return _format_sequence(dims)


def format_permutation(order: Sequence[int]) -> str:
    """Format a permutation, which always holds MAX_DIMS entries."""
    if len(order) != MAX_DIMS:
        raise ValueError(f"a permutation has exactly {MAX_DIMS} entries, got {len(order)}")
    return _format_sequence(order)


def check_not_null(value: T | None) -> T:
    """Return value, raising if a layer or tensor that must exist is missing."""
    if value is None:
        raise RuntimeError("Internal Error!")
    return value