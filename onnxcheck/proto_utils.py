"""Helpers for the text form of ONNX protobuf messages."""

from __future__ import annotations

IR_VERSION = 10

_RAW_DATA_KEY = 'raw_data: "'
_ELLIPSIS = "..."
_REPEATED_KEYS = ("float_data:", "int32_data:", "int64_data:")


def remove_raw_data_strings(s: str) -> str:
    """Replace raw_data strings longer than 128 characters with "..."."""
    beg = 0
    while (beg := s.find(_RAW_DATA_KEY, beg)) != -1:
        beg += len(_RAW_DATA_KEY)
        end = beg - 1
        while True:
            end = s.find('"', end + 1)
            # Skip escaped end-quotes.
            if end == -1 or s[end - 1] != "\\":
                break
        if end == -1:
            break
        if end - beg > 128:
            s = s[:beg] + _ELLIPSIS + s[end:]
        beg += len(_ELLIPSIS)
    return s


def remove_repeated_data_strings(s: str) -> str:
    """Collapse runs of float_data, int32_data and int64_data lines into one."""
    lines = s.split("\n")
    if lines[-1] == "":
        lines.pop()
    out: list[str] = []
    is_repeat = False
    for line in lines:
        if any(key in line for key in _REPEATED_KEYS):
            if not is_repeat:
                is_repeat = True
                out.append(line[: line.find(":") + 1] + " ...\n")
        else:
            is_repeat = False
            out.append(line + "\n")
    return "".join(out)


def _trunc_divmod(a: int, b: int) -> tuple[int, int]:
    quotient = abs(a) // b
    if a < 0:
        quotient = -quotient
    return quotient, a - quotient * b


def onnx_ir_version_as_string(ir_version: int = IR_VERSION) -> str:
    """Return an ONNX IR version number as "major.minor.patch"."""
    major, rest = _trunc_divmod(ir_version, 1_000_000)
    minor, _ = _trunc_divmod(rest, 10_000)
    _, patch = _trunc_divmod(ir_version, 10_000)
    return f"{major}.{minor}.{patch}"