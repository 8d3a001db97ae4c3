"""Per-operator static checks that find nodes the engine cannot import."""

from __future__ import annotations

from collections.abc import Callable, Iterable, Iterator, Mapping
from typing import Any

from onnxcheck.nodes import CheckContext, Node
from onnxcheck.status import DataType, ErrorCode, Status
from onnxcheck.weight_utils import OnnxDtype, get_dtype_name

OpChecker = Callable[[CheckContext, Node, int], Iterable[Status]]

_CHECKERS: dict[str, OpChecker] = {}

_LOCAL_FUNCTION = "LocalFunctionImporter"
_FALLBACK_PLUGIN = "FallbackPluginImporter"


def register_checker(op_type: str) -> Callable[[OpChecker], OpChecker]:
    """Decorator that registers a checker for ``op_type``.

    Raises ValueError when the operator already has a checker.
    """

    def decorator(checker: OpChecker) -> OpChecker:
        if op_type in _CHECKERS:
            raise ValueError(f"A checker for {op_type!r} is already registered")
        _CHECKERS[op_type] = checker
        return checker

    return decorator


def get_checker_map() -> dict[str, OpChecker]:
    """Return the registry of checkers, keyed by operator type."""
    return _CHECKERS


def check_node(ctx: CheckContext, node: Node, node_index: int) -> list[Status]:
    """Run the checker for ``node`` and return the errors it reports."""
    checker = _CHECKERS.get(node.op_type)
    if checker is None:
        if node.op_type in ctx.local_functions:
            checker = _CHECKERS[_LOCAL_FUNCTION]
        else:
            checker = _CHECKERS[_FALLBACK_PLUGIN]
    return list(checker(ctx, node, node_index))


def check_graph(ctx: CheckContext, nodes: Iterable[Node]) -> list[Status]:
    """Check every node in order and return all errors found."""
    errors: list[Status] = []
    for index, node in enumerate(nodes):
        errors.extend(check_node(ctx, node, index))
    return errors


# ---------------------------------------------------------------------------
# Shared helpers

_ONNX_TO_ENGINE_DTYPE: dict[OnnxDtype, DataType] = {
    OnnxDtype.FLOAT: DataType.FLOAT,
    OnnxDtype.DOUBLE: DataType.FLOAT,
    OnnxDtype.FLOAT16: DataType.HALF,
    OnnxDtype.BFLOAT16: DataType.BF16,
    OnnxDtype.INT8: DataType.INT8,
    OnnxDtype.UINT8: DataType.UINT8,
    OnnxDtype.INT32: DataType.INT32,
    OnnxDtype.INT64: DataType.INT64,
    OnnxDtype.BOOL: DataType.BOOL,
    OnnxDtype.FLOAT8E4M3FN: DataType.FP8,
    OnnxDtype.INT4: DataType.INT4,
}

_ALPHA_DEFAULTS: dict[str, float] = {
    "leakyrelu": 0.01,
    "elu": 1.0,
    "selu": 1.67326319217681884765625,
    "hardsigmoid": 0.2,
    "scaledtanh": 1.0,
    "thresholdedrelu": 1.0,
}

_BETA_DEFAULTS: dict[str, float] = {
    "selu": 1.05070102214813232421875,
    "hardsigmoid": 0.5,
    "scaledtanh": 1.0,
}


def _convert_dtype(onnx_dtype: int) -> DataType | None:
    try:
        return _ONNX_TO_ENGINE_DTYPE.get(OnnxDtype(onnx_dtype))
    except ValueError:
        return None


def _default_alpha(activation: str) -> float:
    return _ALPHA_DEFAULTS.get(activation, 0.0)


def _default_beta(activation: str) -> float:
    return _BETA_DEFAULTS.get(activation, 0.0)


def _activations(node: Node, defaults: list[str]) -> list[str]:
    return [str(name).lower() for name in node.attr("activations", defaults)]


def _fill_defaults(values: Iterable[float], activations: list[str], default: Callable[[str], float]) -> list[float]:
    """Extend ``values`` with per-activation defaults for the activations after them."""
    filled = [float(v) for v in values]
    filled.extend(default(act) for act in activations[len(filled):])
    return filled


def _parse_lstm_activation_values(activations: list[str], values: list[float], is_alpha: bool) -> list[float]:
    """Assign given values only to activations that take the parameter."""
    default = _default_alpha if is_alpha else _default_beta
    given = iter(float(v) for v in values)
    result: list[float] = []
    for act in activations:
        fallback = default(act)
        result.append(fallback if fallback == 0.0 else next(given, fallback))
    return result


def _check_reverse_pass(
    ctx: CheckContext,
    node: Node,
    index: int,
    count: int,
    checks: Iterable[tuple[list[Any], str]],
) -> Iterator[Status]:
    """Report every value list whose reverse-pass half differs from its forward half."""
    for values, message in checks:
        if values[:count] != values[count : 2 * count]:
            yield ctx.make_error(message, ErrorCode.UNSUPPORTED_NODE, node, index)


def _check_arg_min_max(ctx: CheckContext, node: Node, index: int) -> Iterator[Status]:
    select_last_index = int(node.attr("select_last_index", 0))
    if select_last_index and ctx.opset_version < 12:
        yield ctx.make_error(
            "Per-opset 12 ONNX does not support the select_last_index attribute.",
            ErrorCode.UNSUPPORTED_NODE,
            node,
            index,
        )


def _check_pooling(ctx: CheckContext, node: Node, index: int) -> Iterator[Status]:
    if ctx.opset_version >= 10:
        for dilation in node.attr("dilations", [1, 1]):
            if dilation != 1:
                yield ctx.make_error(
                    "This version of TensorRT does not support dilations other than 1.",
                    ErrorCode.UNSUPPORTED_NODE,
                    node,
                    index,
                )


def _check_random(kind: str) -> OpChecker:
    def checker(ctx: CheckContext, node: Node, index: int) -> Iterator[Status]:
        if node.has_attr("dtype"):
            dtype = int(node.attr("dtype", OnnxDtype.FLOAT))
            if dtype not in (OnnxDtype.FLOAT, OnnxDtype.FLOAT16):
                yield ctx.make_error(f"Unsupported data type in {kind}", ErrorCode.INVALID_VALUE, node, index)

    return checker


def _no_errors(ctx: CheckContext, node: Node, index: int) -> Iterator[Status]:
    return iter(())


def _unsupported(ctx: CheckContext, node: Node, index: int) -> Iterator[Status]:
    yield ctx.make_error(f"Unsupported operator: {node.op_type}", ErrorCode.UNSUPPORTED_NODE, node, index)


# ---------------------------------------------------------------------------
# Operators with nothing to check

_EMPTY_CHECKER_OPS = (
    "Abs", "Acos", "Acosh", "And", "Asin", "Asinh", "Atan", "Atanh", "Add",
    "BlackmanWindow", "CastLike", "Ceil", "Celu", "Clip", "Concat", "Conv", "ConvTranspose",
    "Cos", "Cosh", "CumSum", "DeformConv", "DepthToSpace", "QuantizeLinear", "DequantizeLinear",
    "TRT_FP8QuantizeLinear", "TRT_FP8DequantizeLinear", "TRT_INT4QuantizeLinear",
    "TRT_INT4DequantizeLinear", "Div", "Elu", "Equal", "Erf", "Exp", "Expand", "EyeLike",
    "Flatten", "Floor", "Gather", "GatherElements", "GatherND", "Gelu", "Gemm",
    "GlobalAveragePool", "GlobalLpPool", "GlobalMaxPool", "Greater", "GreaterOrEqual",
    "GroupNormalization", "HammingWindow", "HannWindow", "Hardmax", "HardSigmoid", "Identity",
    "ImageScaler", "InstanceNormalization", "IsInf", "IsNaN", "LayerNormalization", "LeakyRelu",
    "Less", "LessOrEqual", "Log", "LogSoftmax", "Loop", "LRN", "MatMul", "Max", "Mean",
    "MeanVarianceNormalization", "Min", "Mul", "Mod", "Neg", "NonMaxSuppression", "Not",
    "OneHot", "Or", "Pad", "ParametricSoftplus", "Pow", "PRelu", "Range", "Reciprocal",
    "ReduceL1", "ReduceLogSum", "ReduceLogSumExp", "ReduceL2", "ReduceMax", "ReduceMean",
    "ReduceMin", "ReduceProd", "ReduceSum", "ReduceSumSquare", "Relu", "Sign", "Round",
    "Reshape", "ScaledTanh", "Scan", "GridSample", "ScatterND", "ScatterElements", "Scatter",
    "Selu", "Shape", "Sigmoid", "Sin", "Sinh", "Size", "Softmax", "Softsign", "Softplus",
    "SpaceToDepth", "Split", "Sqrt", "Squeeze", "Sub", "Sum", "Tan", "Tanh", "ThresholdedRelu",
    "Tile", "Transpose", "Trilu", "Unsqueeze", "Where", "Xor", "Shrink", "HardSwish", "NonZero",
    "Mish", "TRT_Scale", "TRT_Shuffle", "TRT_TopK_Min", "TRT_MatMul", "TRT_RNNv2",
    "TRT_RaggedSoftmax", "TRT_FullyConnected", "TRT_MaxAverageBlendPool", "TRT_PluginV2",
    "TRT_Gather", "TRT_Slice", "TRT_Resize", "TRT_FloorDiv", "TRT_Conv", "TRT_Deconv", "STFT",
)

_UNSUPPORTED_OPS = (
    "BitShift", "BitwiseAnd", "BitwiseNot", "BitwiseOr", "BitwiseXor", "Col2Im", "Compress",
    "ConcatFromSequence", "ConvInteger", "DFT", "Det", "ImageDecoder", "MatMulInteger",
    "MaxRoiPool", "MaxUnpool", "MelWeightMatrix", "Multinomial", "Optional",
    "OptionalGetElement", "OptionalHasElement", "QLinearConv", "QLinearMatMul",
    "RegexFullMatch", "SequenceAt", "SequenceConstruct", "SequenceEmpty", "SequenceErase",
    "SequenceInsert", "SequenceLength", "SplitToSequence", "StringConcat", "StringNormalizer",
    "StringSplit", "TfIdfVectorizer", "Unique", "AffineGrid", "Bernoulli", "CenterCropPad",
    "DynamicQuantizeLinear", "NegativeLogLikelihoodLoss", "SequenceMap", "SoftmaxCrossEntropyLoss",
)

for _op in _EMPTY_CHECKER_OPS:
    register_checker(_op)(_no_errors)

for _op in _UNSUPPORTED_OPS:
    register_checker(_op)(_unsupported)

register_checker("RandomUniform")(_check_random("randomUniform"))
register_checker("RandomUniformLike")(_check_random("randomUniform"))
register_checker("RandomNormal")(_check_random("randomNormal"))
register_checker("RandomNormalLike")(_check_random("randomNormal"))


# ---------------------------------------------------------------------------
# Operators with checks


@register_checker("ArgMax")
def _check_arg_max(ctx: CheckContext, node: Node, index: int) -> Iterator[Status]:
    yield from _check_arg_min_max(ctx, node, index)


@register_checker("ArgMin")
def _check_arg_min(ctx: CheckContext, node: Node, index: int) -> Iterator[Status]:
    yield from _check_arg_min_max(ctx, node, index)


@register_checker("AveragePool")
def _check_average_pool(ctx: CheckContext, node: Node, index: int) -> Iterator[Status]:
    yield from _check_pooling(ctx, node, index)


@register_checker("BatchNormalization")
def _check_batch_normalization(ctx: CheckContext, node: Node, index: int) -> Iterator[Status]:
    if int(node.attr("training_mode", 0)):
        yield ctx.make_error(
            "This version of TensorRT does not support training_mode == 1 in BatchNormalization.",
            ErrorCode.UNSUPPORTED_NODE,
            node,
            index,
        )


@register_checker("Cast")
def _check_cast(ctx: CheckContext, node: Node, index: int) -> Iterator[Status]:
    if _convert_dtype(int(node.attr("to"))) is None:
        yield ctx.make_error(
            "Unsupported data type for the Cast operator!", ErrorCode.INVALID_NODE, node, index
        )


@register_checker("Constant")
def _check_constant(ctx: CheckContext, node: Node, index: int) -> Iterator[Status]:
    # Nodes carrying output ranges come from a serialized network, which skips this check.
    if node.attr("trt_outputs_range_min", []):
        return
    if any(node.has_attr(name) for name in ("sparse_value", "value_string", "value_strings")):
        yield ctx.make_error(
            "This version of TensorRT does not support the sparse_value, value_string and "
            "value_strings attributes.",
            ErrorCode.UNSUPPORTED_NODE,
            node,
            index,
        )


@register_checker("ConstantOfShape")
def _check_constant_of_shape(ctx: CheckContext, node: Node, index: int) -> Iterator[Status]:
    value = node.attr("value", None)
    dtype = OnnxDtype.FLOAT if value is None else getattr(value, "dtype", OnnxDtype.FLOAT)
    if get_dtype_name(int(dtype)) == "UINT8":
        yield ctx.make_error(
            "Invalid input type for ConstantOfShape", ErrorCode.UNSUPPORTED_NODE_DATATYPE, node, index
        )


@register_checker("Dropout")
def _check_dropout(ctx: CheckContext, node: Node, index: int) -> Iterator[Status]:
    if ctx.opset_version <= 6 and not int(node.attr("is_test", 1)):
        yield ctx.make_error(
            "TensorRT does not support the Droupout operator with training mode.",
            ErrorCode.UNSUPPORTED_NODE_ATTR,
            node,
            index,
        )


@register_checker("Einsum")
def _check_einsum(ctx: CheckContext, node: Node, index: int) -> Iterator[Status]:
    equation = str(node.attr("equation"))
    invalid = [c for c in equation if not ("a" <= c <= "z" or c in "->., ")]
    if invalid:
        yield ctx.make_error(
            "Invalid character(s) in Einsum equation: " + ",".join(invalid),
            ErrorCode.INVALID_NODE,
            node,
            index,
        )


@register_checker("GRU")
def _check_gru(ctx: CheckContext, node: Node, index: int) -> Iterator[Status]:
    count = 2
    bidirectional = node.attr("direction", "forward") == "bidirectional"
    defaults = ["Sigmoid", "Tanh"] * (2 if bidirectional else 1)
    activations = _activations(node, defaults)
    alphas = _fill_defaults(node.attr("activation_alpha", []), activations, _default_alpha)
    betas = _fill_defaults(node.attr("activation_beta", []), activations, _default_beta)
    if bidirectional:
        message = (
            "The parser does not currently support cases where activations for the reverse pass "
            "of the GRU do not match the forward pass."
        )
        yield from _check_reverse_pass(
            ctx, node, index, count, [(activations, message), (alphas, message), (betas, message)]
        )


@register_checker("If")
def _check_if(ctx: CheckContext, node: Node, index: int) -> Iterator[Status]:
    then_graph = node.attr("then_branch")
    else_graph = node.attr("else_branch")
    if len(then_graph.outputs) != len(else_graph.outputs):
        yield ctx.make_error(
            "then/else subgraphs should have the same number of outputs.",
            ErrorCode.UNSUPPORTED_NODE_ATTR,
            node,
            index,
        )


@register_checker("LSTM")
def _check_lstm(ctx: CheckContext, node: Node, index: int) -> Iterator[Status]:
    if int(node.attr("input_forget", 0)) != 0:
        yield ctx.make_error(
            "Coupled input/forget is unsupported in the LSTM converter",
            ErrorCode.UNSUPPORTED_NODE,
            node,
            index,
        )
    count = 3
    bidirectional = node.attr("direction", "forward") == "bidirectional"
    defaults = ["Sigmoid", "Tanh", "Tanh"] * (2 if bidirectional else 1)
    activations = _activations(node, defaults)
    alphas = _parse_lstm_activation_values(activations, list(node.attr("activation_alpha", [])), True)
    betas = _parse_lstm_activation_values(activations, list(node.attr("activation_beta", [])), False)
    if bidirectional:
        prefix = "The parser does not currently support cases where "
        suffix = " for the reverse pass of the LSTM do not match the forward pass."
        yield from _check_reverse_pass(
            ctx,
            node,
            index,
            count,
            [
                (activations, prefix + "activations" + suffix),
                (alphas, prefix + "activation alphas" + suffix),
                (betas, prefix + "activation betas" + suffix),
            ],
        )


def _check_lp_order(ctx: CheckContext, node: Node, index: int) -> Iterator[Status]:
    if int(node.attr("p", 2)) not in (1, 2):
        yield ctx.make_error(
            "Only L1 and L2 normalization are supported.", ErrorCode.UNSUPPORTED_NODE, node, index
        )


@register_checker("LpNormalization")
def _check_lp_normalization(ctx: CheckContext, node: Node, index: int) -> Iterator[Status]:
    yield from _check_lp_order(ctx, node, index)


@register_checker("LpPool")
def _check_lp_pool(ctx: CheckContext, node: Node, index: int) -> Iterator[Status]:
    yield from _check_lp_order(ctx, node, index)
    yield from _check_pooling(ctx, node, index)


@register_checker("MaxPool")
def _check_max_pool(ctx: CheckContext, node: Node, index: int) -> Iterator[Status]:
    if len(node.outputs) != 1:
        yield ctx.make_error(
            "TensorRT does not support the indices output in MaxPool!",
            ErrorCode.UNSUPPORTED_NODE,
            node,
            index,
        )
    yield from _check_pooling(ctx, node, index)


_RESIZE_TRANSFORMATION_MODES = frozenset(
    {"align_corners", "tf_half_pixel_for_nn", "pytorch_half_pixel", "half_pixel", "asymmetric"}
)


@register_checker("Resize")
def _check_resize(ctx: CheckContext, node: Node, index: int) -> Iterator[Status]:
    mode = node.attr("mode", "nearest")
    if mode not in ("cubic", "linear", "nearest"):
        yield ctx.make_error("Invalid Resize mode", ErrorCode.UNSUPPORTED_NODE, node, index)

    if ctx.opset_version >= 11:
        transformation_mode = node.attr("coordinate_transformation_mode", "half_pixel")
        nearest_mode = node.attr("nearest_mode", "round_prefer_floor")
        if transformation_mode == "tf_half_pixel_for_nn" and nearest_mode != "round_prefer_floor":
            yield ctx.make_error(
                "This version of TensorRT only support round_prefer_floor nearest mode in "
                "tf_half_pixel_for_nn!",
                ErrorCode.UNSUPPORTED_NODE,
                node,
                index,
            )
        if transformation_mode not in _RESIZE_TRANSFORMATION_MODES:
            yield ctx.make_error(
                "TensorRT only supports half_pixel, pytorch_half_pixel, tf_half_pixel_for_nn, "
                "asymmetric and align_corners transformation modes!",
                ErrorCode.UNSUPPORTED_NODE,
                node,
                index,
            )

    if int(node.attr("antialias", 0)) != 0:
        yield ctx.make_error(
            "Antialiasing is not supported currently.", ErrorCode.UNSUPPORTED_NODE_ATTR, node, index
        )

    if node.attr("keep_aspect_ratio_policy", "stretch") != "stretch":
        yield ctx.make_error(
            "Only `stretch` is supported currently as `keep_aspect_ratio_policy`.",
            ErrorCode.UNSUPPORTED_NODE_ATTR,
            node,
            index,
        )

    axes = list(node.attr("axes", []))
    if len(set(axes)) != len(axes):
        yield ctx.make_error("The input axes must have unique elements.", ErrorCode.INVALID_NODE, node, index)


@register_checker("ReverseSequence")
def _check_reverse_sequence(ctx: CheckContext, node: Node, index: int) -> Iterator[Status]:
    if int(node.attr("batch_axis", 1)) == int(node.attr("time_axis", 0)):
        yield ctx.make_error(
            "batch_axis and time_axis cannot be the same", ErrorCode.UNSUPPORTED_NODE, node, index
        )


@register_checker("RNN")
def _check_rnn(ctx: CheckContext, node: Node, index: int) -> Iterator[Status]:
    count = 1
    bidirectional = node.attr("direction", "forward") == "bidirectional"
    defaults = ["Tanh"] * (2 if bidirectional else 1)
    activations = _activations(node, defaults)
    alphas = _fill_defaults(node.attr("activation_alpha", []), activations, _default_alpha)
    betas = _fill_defaults(node.attr("activation_beta", []), activations, _default_beta)
    if bidirectional:
        message = (
            "The parser does not currently support cases where activations for the reverse pass "
            "of the RNN do not match the forward pass."
        )
        yield from _check_reverse_pass(
            ctx, node, index, count, [(activations, message), (alphas, message), (betas, message)]
        )


@register_checker("RoiAlign")
def _check_roi_align(ctx: CheckContext, node: Node, index: int) -> Iterator[Status]:
    if node.attr("mode", "avg") not in ("avg", "max"):
        yield ctx.make_error("Mode must be avg or max!", ErrorCode.INVALID_NODE, node, index)
    if int(node.attr("sampling_ratio", 0)) < 0:
        yield ctx.make_error("Sampling ratio cannot be negative!", ErrorCode.INVALID_NODE, node, index)
    if ctx.opset_version >= 16:
        ctm = node.attr("coordinate_transformation_mode", "half_pixel")
        if ctm not in ("half_pixel", "output_half_pixel"):
            yield ctx.make_error(
                "Coordinate transformation mode must be half_pixel or output_half_pixel!",
                ErrorCode.INVALID_NODE,
                node,
                index,
            )


@register_checker("Slice")
def _check_slice(ctx: CheckContext, node: Node, index: int) -> Iterator[Status]:
    if ctx.opset_version >= 10 and not 3 <= len(node.inputs) <= 5:
        yield ctx.make_error(
            "Post-opset 10 Slice operator requires 3 - 5 inputs.", ErrorCode.UNSUPPORTED_NODE, node, index
        )


@register_checker("TopK")
def _check_top_k(ctx: CheckContext, node: Node, index: int) -> Iterator[Status]:
    if ctx.opset_version < 10 and not node.has_attr("k"):
        yield ctx.make_error("Attribute k is missing.", ErrorCode.INVALID_NODE, node, index)


@register_checker("Upsample")
def _check_upsample(ctx: CheckContext, node: Node, index: int) -> Iterator[Status]:
    if node.attr("mode", "nearest") not in ("nearest", "linear", "bilinear"):
        yield ctx.make_error(
            "The attribute mode can only be nearest, linear, or bilinear.",
            ErrorCode.UNSUPPORTED_NODE,
            node,
            index,
        )


@register_checker("TRT_MaxPool")
def _check_trt_max_pool(ctx: CheckContext, node: Node, index: int) -> Iterator[Status]:
    yield from _check_max_pool(ctx, node, index)


@register_checker("TRT_AveragePool")
def _check_trt_average_pool(ctx: CheckContext, node: Node, index: int) -> Iterator[Status]:
    yield from _check_average_pool(ctx, node, index)


@register_checker(_FALLBACK_PLUGIN)
def _check_fallback_plugin(ctx: CheckContext, node: Node, index: int) -> Iterator[Status]:
    # No plugin creators are available to this checker, so an unknown operator cannot be imported.
    yield ctx.make_error(
        "Plugin not found, are the plugin name, version, and namespace correct?",
        ErrorCode.INVALID_NODE,
        node,
        index,
    )


@register_checker(_LOCAL_FUNCTION)
def _check_local_function(ctx: CheckContext, node: Node, index: int) -> Iterator[Status]:
    function = ctx.local_functions[node.op_type]
    if len(node.inputs) != len(function.inputs):
        yield ctx.make_error(
            "node.input().size() == function.input().size()", ErrorCode.INVALID_NODE, node, index
        )

    # Values on the calling node override the function's defaults.
    attributes: Mapping[str, Any] = {**function.attributes, **node.attributes}
    with ctx.function_scope(node.op_type, attributes):
        for inner in function.nodes:
            yield from check_node(ctx, inner, index)