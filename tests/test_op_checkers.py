from dataclasses import dataclass

import pytest

from onnxcheck.nodes import CheckContext, Graph, LocalFunction, Node
from onnxcheck.op_checkers import check_graph, check_node, get_checker_map, register_checker
from onnxcheck.status import ErrorCode
from onnxcheck.weight_utils import OnnxDtype


@dataclass
class _Tensor:
    dtype: int


def _codes(errors):
    return [e.code for e in errors]


def test_empty_checker_reports_nothing():
    assert check_node(CheckContext(13), Node("Abs", inputs=["x"], outputs=["y"]), 0) == []


def test_map_holds_registered_ops():
    checkers = get_checker_map()
    assert "Resize" in checkers
    assert "BitShift" in checkers
    assert "TRT_PluginV2" in checkers


def test_unsupported_operator():
    errors = check_node(CheckContext(13), Node("BitShift", name="shift"), 4)
    assert _codes(errors) == [ErrorCode.UNSUPPORTED_NODE]
    assert errors[0].node == 4
    assert errors[0].node_name == "shift"
    assert errors[0].node_operator == "BitShift"


def test_arg_max_select_last_index_depends_on_opset():
    node = Node("ArgMax", attributes={"select_last_index": 1})
    assert _codes(check_node(CheckContext(11), node, 0)) == [ErrorCode.UNSUPPORTED_NODE]
    assert check_node(CheckContext(12), node, 0) == []


def test_pooling_dilations():
    node = Node("AveragePool", attributes={"dilations": [1, 2]})
    errors = check_node(CheckContext(10), node, 0)
    assert _codes(errors) == [ErrorCode.UNSUPPORTED_NODE]
    assert "dilations other than 1" in errors[0].desc
    assert check_node(CheckContext(9), node, 0) == []


def test_batch_normalization_training_mode():
    node = Node("BatchNormalization", attributes={"training_mode": 1})
    assert _codes(check_node(CheckContext(15), node, 0)) == [ErrorCode.UNSUPPORTED_NODE]
    assert check_node(CheckContext(15), Node("BatchNormalization"), 0) == []


def test_cast_types():
    ctx = CheckContext(13)
    assert check_node(ctx, Node("Cast", attributes={"to": OnnxDtype.FLOAT}), 0) == []
    errors = check_node(ctx, Node("Cast", attributes={"to": OnnxDtype.STRING}), 0)
    assert _codes(errors) == [ErrorCode.INVALID_NODE]
    with pytest.raises(KeyError):
        check_node(ctx, Node("Cast"), 0)


def test_constant_unsupported_attributes():
    ctx = CheckContext(13)
    node = Node("Constant", attributes={"sparse_value": object()})
    assert _codes(check_node(ctx, node, 0)) == [ErrorCode.UNSUPPORTED_NODE]
    node.attributes["trt_outputs_range_min"] = [0.5]
    assert check_node(ctx, node, 0) == []


def test_constant_of_shape_uint8():
    ctx = CheckContext(13)
    node = Node("ConstantOfShape", attributes={"value": _Tensor(OnnxDtype.UINT8)})
    assert _codes(check_node(ctx, node, 0)) == [ErrorCode.UNSUPPORTED_NODE_DATATYPE]
    assert check_node(ctx, Node("ConstantOfShape"), 0) == []


def test_dropout_training_mode_only_old_opsets():
    node = Node("Dropout", attributes={"is_test": 0})
    assert _codes(check_node(CheckContext(6), node, 0)) == [ErrorCode.UNSUPPORTED_NODE_ATTR]
    assert check_node(CheckContext(7), node, 0) == []


def test_einsum_invalid_characters():
    ctx = CheckContext(13)
    assert check_node(ctx, Node("Einsum", attributes={"equation": "ij,jk->ik"}), 0) == []
    errors = check_node(ctx, Node("Einsum", attributes={"equation": "iJ,jk->iK"}), 0)
    assert _codes(errors) == [ErrorCode.INVALID_NODE]
    assert errors[0].desc == "Invalid character(s) in Einsum equation: J,K"


def test_gru_bidirectional_activations():
    ctx = CheckContext(13)
    assert check_node(ctx, Node("GRU", attributes={"direction": "bidirectional"}), 0) == []
    node = Node(
        "GRU",
        attributes={"direction": "bidirectional", "activations": ["Sigmoid", "Tanh", "Relu", "Tanh"]},
    )
    errors = check_node(ctx, node, 0)
    assert ErrorCode.UNSUPPORTED_NODE in _codes(errors)
    assert all("GRU" in e.desc for e in errors)


def test_lstm_input_forget_and_alphas():
    ctx = CheckContext(13)
    errors = check_node(ctx, Node("LSTM", attributes={"input_forget": 1}), 0)
    assert _codes(errors) == [ErrorCode.UNSUPPORTED_NODE]
    node = Node(
        "LSTM",
        attributes={
            "direction": "bidirectional",
            "activations": ["LeakyRelu", "Tanh", "Tanh", "LeakyRelu", "Tanh", "Tanh"],
            "activation_alpha": [0.5, 0.25],
        },
    )
    errors = check_node(ctx, node, 0)
    assert [e.desc for e in errors] == [
        "The parser does not currently support cases where activation alphas for the reverse "
        "pass of the LSTM do not match the forward pass."
    ]


def test_rnn_bidirectional_default_is_fine():
    assert check_node(CheckContext(13), Node("RNN", attributes={"direction": "bidirectional"}), 0) == []


def test_if_branch_output_counts():
    then_graph = Graph(outputs=["a", "b"])
    else_graph = Graph(outputs=["a"])
    node = Node("If", attributes={"then_branch": then_graph, "else_branch": else_graph})
    assert _codes(check_node(CheckContext(13), node, 0)) == [ErrorCode.UNSUPPORTED_NODE_ATTR]
    node.attributes["else_branch"] = Graph(outputs=["c", "d"])
    assert check_node(CheckContext(13), node, 0) == []


def test_lp_pool_order():
    errors = check_node(CheckContext(13), Node("LpPool", attributes={"p": 3}), 0)
    assert [e.desc for e in errors] == ["Only L1 and L2 normalization are supported."]


def test_max_pool_indices_output():
    node = Node("MaxPool", outputs=["y", "indices"])
    assert _codes(check_node(CheckContext(13), node, 0)) == [ErrorCode.UNSUPPORTED_NODE]
    trt_node = Node("TRT_MaxPool", outputs=["y", "indices"])
    assert _codes(check_node(CheckContext(13), trt_node, 0)) == [ErrorCode.UNSUPPORTED_NODE]


def test_random_dtype():
    ctx = CheckContext(13)
    node = Node("RandomUniform", attributes={"dtype": OnnxDtype.INT32})
    errors = check_node(ctx, node, 0)
    assert [e.desc for e in errors] == ["Unsupported data type in randomUniform"]
    assert errors[0].code == ErrorCode.INVALID_VALUE
    assert check_node(ctx, Node("RandomNormalLike"), 0) == []


def test_resize_checks():
    ctx = CheckContext(13)
    assert check_node(ctx, Node("Resize"), 0) == []
    assert _codes(check_node(ctx, Node("Resize", attributes={"mode": "area"}), 0)) == [ErrorCode.UNSUPPORTED_NODE]
    assert _codes(check_node(ctx, Node("Resize", attributes={"antialias": 1}), 0)) == [
        ErrorCode.UNSUPPORTED_NODE_ATTR
    ]
    assert _codes(check_node(ctx, Node("Resize", attributes={"axes": [1, 1]}), 0)) == [ErrorCode.INVALID_NODE]


def test_reverse_sequence_axes():
    node = Node("ReverseSequence", attributes={"batch_axis": 0, "time_axis": 0})
    assert _codes(check_node(CheckContext(13), node, 0)) == [ErrorCode.UNSUPPORTED_NODE]


def test_roi_align_checks():
    ctx = CheckContext(16)
    node = Node("RoiAlign", attributes={"mode": "sum", "coordinate_transformation_mode": "asymmetric"})
    assert _codes(check_node(ctx, node, 0)) == [ErrorCode.INVALID_NODE, ErrorCode.INVALID_NODE]
    assert _codes(check_node(CheckContext(10), node, 0)) == [ErrorCode.INVALID_NODE]


def test_slice_inputs():
    node = Node("Slice", inputs=["x", "starts"])
    assert _codes(check_node(CheckContext(10), node, 0)) == [ErrorCode.UNSUPPORTED_NODE]
    assert check_node(CheckContext(9), node, 0) == []


def test_top_k_missing_k():
    assert [e.desc for e in check_node(CheckContext(9), Node("TopK"), 0)] == ["Attribute k is missing."]
    assert check_node(CheckContext(10), Node("TopK"), 0) == []


def test_upsample_mode():
    node = Node("Upsample", attributes={"mode": "cubic"})
    assert _codes(check_node(CheckContext(9), node, 0)) == [ErrorCode.UNSUPPORTED_NODE]


def test_unknown_operator_falls_back_to_plugin():
    errors = check_node(CheckContext(13), Node("MyCustomOp"), 2)
    assert _codes(errors) == [ErrorCode.INVALID_NODE]
    assert errors[0].desc == "Plugin not found, are the plugin name, version, and namespace correct?"


def test_local_function_records_stack():
    function = LocalFunction("Block", inputs=["x"], nodes=[Node("BitShift", name="inner")])
    ctx = CheckContext(13, {"Block": function})
    errors = check_node(ctx, Node("Block", inputs=["x"]), 7)
    assert _codes(errors) == [ErrorCode.UNSUPPORTED_NODE]
    assert errors[0].local_function_stack == ("Block",)
    assert errors[0].node == 7
    assert ctx.local_function_stack == []


def test_local_function_input_mismatch():
    function = LocalFunction("Block", inputs=["x", "y"], nodes=[Node("Abs")])
    ctx = CheckContext(13, {"Block": function})
    errors = check_node(ctx, Node("Block", inputs=["x"]), 0)
    assert _codes(errors) == [ErrorCode.INVALID_NODE]
    assert errors[0].local_function_stack == ()


def test_check_graph_collects_in_order():
    nodes = [Node("Abs"), Node("BitShift"), Node("Det")]
    errors = check_graph(CheckContext(13), nodes)
    assert [e.node for e in errors] == [1, 2]
    assert [e.node_operator for e in errors] == ["BitShift", "Det"]


def test_register_checker_rejects_duplicates():
    with pytest.raises(ValueError):
        register_checker("Abs")(lambda ctx, node, index: [])


def test_register_checker_adds_new_op():
    checkers = get_checker_map()

    @register_checker("TestOnlyOp")
    def _checker(ctx, node, index):
        yield ctx.make_error("custom", ErrorCode.INVALID_VALUE, node, index)

    try:
        errors = check_node(CheckContext(13), Node("TestOnlyOp"), 0)
        assert [e.desc for e in errors] == ["custom"]
    finally:
        checkers.pop("TestOnlyOp")
    assert "TestOnlyOp" not in checkers