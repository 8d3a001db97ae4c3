# onnxcheck

onnxcheck checks the nodes of an ONNX-style graph before import. It looks for
operators, attributes and attribute combinations that the importer cannot
handle. It does not stop at the first problem. It collects every error it
finds, and ties each one to the node that caused it.

The package also has helpers that order graph nodes, size weight data,
normalise paths and tidy up textual model dumps.

## Installation

```
pip install onnxcheck
```

It needs Python 3.10 or later and has no runtime dependencies.

## Describing a graph

Graphs are built from plain dataclasses in `onnxcheck.nodes`:

- `Node`: an operator node with `op_type`, `name`, `inputs`, `outputs` and an
  `attributes` dict. `node.attr(name, default)` returns an attribute value. It
  raises `KeyError` when the attribute is missing and no default is given.
  `node.has_attr(name)` tells whether the attribute is present.
- `Graph`: a subgraph, used as the `then_branch` and `else_branch` attributes
  of an `If` node.
- `LocalFunction`: a named function body with its inputs, outputs, nodes and
  default attributes.
- `CheckContext(opset_version, local_functions)`: the opset version and local
  functions that the checkers consult. It also keeps the stack of local
  functions being expanded.

## Checking a graph

```python
from onnxcheck.nodes import CheckContext, Node
from onnxcheck.op_checkers import check_graph

ctx = CheckContext(opset_version=13, local_functions={})
nodes = [
    Node(name="pool", op_type="MaxPool", inputs=["x"], outputs=["y", "indices"]),
    Node(name="bn", op_type="BatchNormalization", inputs=["y"], outputs=["z"],
         attributes={"training_mode": 1}),
]

for status in check_graph(ctx, nodes):
    print(status)
```

`check_node(ctx, node, node_index)` checks a single node and returns a list of
errors. `get_checker_map()` returns the registry that maps each operator type
to its checker. `register_checker(op_type)` is a decorator that adds a checker
for a new operator type. It raises `ValueError` if that type already has a
checker.

How an operator is handled depends on its type:

- An operator with a registered checker is checked by that checker.
- An operator named after a local function in the context is checked by
  expanding the function. Each node in the function body is checked. Attributes
  on the calling node override the function's defaults.
- Any other operator is reported as `INVALID_NODE` with "Plugin not found".

Operators known to be unsupported, such as the `Sequence*`, `Bitwise*` and
`String*` families, are always reported as `UNSUPPORTED_NODE`.

Each error is an `onnxcheck.status.Status`, a frozen dataclass. It holds:

- an `ErrorCode` and a description;
- the file, line and function that raised it;
- the index, name and operator of the node;
- the stack of local function names being expanded when the error was found.

`str(status)` gives a readable multi-line report. `Status.success()`,
`is_error()` and `is_success()` cover the success case. `ParserError` is an
exception that carries a `Status`.

## Topological ordering

```python
from onnxcheck.toposort import toposort, CycleError, DuplicateOutputError

order = toposort(nodes)  # node indices, producers before consumers
```

Any objects with `inputs` and `outputs` name lists will do. `toposort` raises
`CycleError` when the graph has a cycle. It raises `DuplicateOutputError` when
two outputs share a name. Inputs that no node produces are ignored.

## Weight and text helpers

```python
from onnxcheck.weight_utils import (
    OnnxDtype, get_tensor_or_weights_size_bytes, normalize_path, UniqueNameGenerator,
)
from onnxcheck.proto_utils import onnx_ir_version_as_string

get_tensor_or_weights_size_bytes(3, OnnxDtype.INT4)   # 2, sub-byte data is padded
normalize_path("a/./b/../c")                          # "a/c"
names = UniqueNameGenerator({"w"})
names.generate("w")                                   # "w_0"
onnx_ir_version_as_string(3)                          # "0.0.3"
```

`onnxcheck.weight_utils` also has these helpers:

- `get_dtype_name` returns the name of a data type, or `"<UNKNOWN>"`.
- `get_dtype_size_bits` returns the size of a data type in bits, or -1.
- `volume` returns the element count of a static shape. It raises
  `ValueError` on negative dimensions.

`onnxcheck.proto_utils` has two functions that tidy up text dumps of models:

- `remove_raw_data_strings` replaces `raw_data` strings longer than 128
  characters with `...`.
- `remove_repeated_data_strings` collapses runs of `float_data`, `int32_data`
  and `int64_data` lines into one.

`onnxcheck.status` also has the following:

- `format_dims` formats a shape.
- `format_permutation` formats an eight-entry permutation.
- `check_not_null` raises `RuntimeError` on `None`.
- `DataType` is the set of engine tensor types. Its `str()` gives names such
  as `float32` or `bfloat16`.

## What it does not do

onnxcheck does not read ONNX files or protobuf messages. You build the graph
yourself from `Node`, `Graph` and `LocalFunction`. It does not build or run
engines, and it cannot look up plugins. It has no logger and no command-line
tool. It is a library only.