"""Helpers for weights: ONNX data types, sizes, shapes, paths and names."""

from __future__ import annotations

import math
import re
from collections.abc import Iterable, Sequence
from enum import IntEnum

_SIZE_MAX = 2**64 - 1


class OnnxDtype(IntEnum):
    """ONNX tensor element types, numbered as in the ONNX format."""

    UNDEFINED = 0
    FLOAT = 1
    UINT8 = 2
    INT8 = 3
    UINT16 = 4
    INT16 = 5
    INT32 = 6
    INT64 = 7
    STRING = 8
    BOOL = 9
    FLOAT16 = 10
    DOUBLE = 11
    UINT32 = 12
    UINT64 = 13
    COMPLEX64 = 14
    COMPLEX128 = 15
    BFLOAT16 = 16
    FLOAT8E4M3FN = 17
    FLOAT8E4M3FNUZ = 18
    FLOAT8E5M2 = 19
    FLOAT8E5M2FNUZ = 20
    UINT4 = 21
    INT4 = 22


_NAMED_DTYPES = frozenset(
    {
        OnnxDtype.FLOAT,
        OnnxDtype.UINT8,
        OnnxDtype.INT8,
        OnnxDtype.UINT16,
        OnnxDtype.INT16,
        OnnxDtype.INT32,
        OnnxDtype.INT64,
        OnnxDtype.STRING,
        OnnxDtype.BOOL,
        OnnxDtype.FLOAT16,
        OnnxDtype.BFLOAT16,
        OnnxDtype.DOUBLE,
        OnnxDtype.UINT32,
        OnnxDtype.UINT64,
        OnnxDtype.COMPLEX64,
        OnnxDtype.COMPLEX128,
    }
)

_SIZE_BITS: dict[OnnxDtype, int] = {
    OnnxDtype.FLOAT16: 16,
    OnnxDtype.BFLOAT16: 16,
    OnnxDtype.FLOAT: 32,
    OnnxDtype.DOUBLE: 64,
    OnnxDtype.COMPLEX64: 64,
    OnnxDtype.COMPLEX128: 128,
    OnnxDtype.UINT8: 8,
    OnnxDtype.INT8: 8,
    OnnxDtype.UINT16: 16,
    OnnxDtype.INT16: 16,
    OnnxDtype.UINT32: 32,
    # Booleans are stored one per byte.
    OnnxDtype.BOOL: 8,
    OnnxDtype.INT32: 32,
    OnnxDtype.UINT64: 64,
    OnnxDtype.INT64: 64,
    OnnxDtype.FLOAT8E4M3FN: 8,
    OnnxDtype.INT4: 4,
}


def _as_dtype(onnx_dtype: int) -> OnnxDtype | None:
    try:
        return OnnxDtype(onnx_dtype)
    except ValueError:
        return None


def get_dtype_name(onnx_dtype: int) -> str:
    """Return the name of an ONNX data type, or "<UNKNOWN>"."""
    dtype = _as_dtype(onnx_dtype)
    if dtype in _NAMED_DTYPES:
        return dtype.name
    return "<UNKNOWN>"


def get_dtype_size_bits(onnx_dtype: int) -> int:
    """Return the size in bits of an ONNX data type, or -1 if it has none."""
    dtype = _as_dtype(onnx_dtype)
    if dtype is None:
        return -1
    return _SIZE_BITS.get(dtype, -1)


def get_tensor_or_weights_size_bytes(count: int, onnx_dtype: int) -> int:
    """Return the byte size of ``count`` elements, padding sub-byte types."""
    bits = get_dtype_size_bits(onnx_dtype)
    # A negative count wraps to a huge unsigned value and so is rejected here too.
    unsigned_count = count % (_SIZE_MAX + 1)
    if bits == -1 or unsigned_count > _SIZE_MAX // bits:
        raise RuntimeError("Size of weights exceeds maximum!")
    size_in_bits = count * bits
    if size_in_bits % 8:
        # INT4 is the only sub-byte type; it is padded to a whole byte.
        if _as_dtype(onnx_dtype) is not OnnxDtype.INT4:
            raise RuntimeError("Unexpected sub-byte data type")
        size_in_bits += 4
    return size_in_bits // 8


def volume(dims: Iterable[int]) -> int:
    """Return the number of elements in a static shape."""
    dims = list(dims)
    if any(d < 0 for d in dims):
        raise ValueError("volume makes no sense for dynamic shapes")
    return math.prod(dims)


_PATH_COMPONENT = re.compile(r"[^/]*/|[^/]+$")


def normalize_path(path: str) -> str:
    """Collapse extra slashes, "./" and "../" components in a path."""
    parts: list[str] = []
    for component in _PATH_COMPONENT.findall(path):
        if component in ("/", "./"):
            continue
        if component != "../" or not parts or parts[-1] == "../":
            parts.append(component)
        else:
            parts.pop()
    return "".join(parts)


class UniqueNameGenerator:
    """Produces names not yet taken, by adding a running numeric suffix."""

    def __init__(self, names: Sequence[str] | set[str] | None = None) -> None:
        self.names: set[str] = set(names or ())
        self.suffix_counter = 0

    def generate(self, basename: str) -> str:
        """Return a name based on ``basename`` that is unused, and reserve it."""
        candidate = basename
        while candidate in self.names:
            candidate = f"{basename}_{self.suffix_counter}"
            self.suffix_counter += 1
        self.names.add(candidate)
        return candidate