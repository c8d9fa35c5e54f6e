from __future__ import annotations

import numpy as np
import pytest

from tflower.ir import Graph, GraphValidator, Node, Operator, Tensor, ValidationError


def make_tensor(
    name: str, shape: list[int] | None = None, dtype: str = "float32"
) -> Tensor:
    actual_shape = shape if shape is not None else [1]
    return Tensor(name=name, dtype=dtype, shape=actual_shape)


def op_node(name: str, op_type: str, inputs: list[str], outputs: list[str]) -> Node:
    return Node(name=name, inputs=inputs, outputs=outputs, op=Operator(op_type))


def test_valid_graph_passes_validation() -> None:
    g = Graph()
    g.add_tensor(make_tensor("x", [1, 3, 224, 224]))
    w = make_tensor("w", [64, 3, 7, 7])
    w.const = True
    w.data = np.zeros((64, 3, 7, 7), dtype=np.float32)
    g.add_tensor(w)
    g.add_tensor(make_tensor("y", [1, 64, 112, 112]))
    g.add_node(op_node("x", "InputOp", [], ["x"]))
    g.add_node(op_node("w", "Const", [], ["w"]))
    g.add_node(op_node("conv", "Convolution", ["x", "w"], ["y"]))
    g.inputs = ["x"]
    g.outputs = ["conv"]

    GraphValidator(g).validate()  # should not raise


def test_missing_graph_input_node_raises() -> None:
    g = Graph()
    g.add_tensor(make_tensor("x", [1]))
    g.add_node(op_node("x", "InputOp", [], ["x"]))
    g.inputs = ["x", "z"]  # z missing
    with pytest.raises(ValidationError) as exc:
        GraphValidator(g).validate()
    assert exc.value.code == "EGRAPH_INPUT"


def test_missing_graph_output_node_raises() -> None:
    g = Graph()
    g.add_tensor(make_tensor("x", [1]))
    g.add_node(op_node("x", "InputOp", [], ["x"]))
    g.outputs = ["softmax"]
    with pytest.raises(ValidationError) as exc:
        GraphValidator(g).validate()
    assert exc.value.code == "EGRAPH_OUTPUT"


def test_missing_node_input_tensor_raises() -> None:
    g = Graph()
    g.add_tensor(make_tensor("x", [1]))
    g.add_tensor(make_tensor("y", [1]))
    g.add_node(op_node("add", "Eltwise", ["x", "z"], ["y"]))  # z missing
    with pytest.raises(ValidationError) as exc:
        GraphValidator(g).validate()
    assert exc.value.code == "EINPUT_MISSING"
    assert exc.value.node_index == 0


def test_duplicate_producer_raises() -> None:
    g = Graph()
    g.add_tensor(make_tensor("x", [1]))
    g.add_tensor(make_tensor("y", [1]))
    g.add_node(op_node("a", "Id", ["x"], ["y"]))
    g.add_node(op_node("b", "Id", ["x"], ["y"]))  # duplicate
    with pytest.raises(ValidationError) as exc:
        GraphValidator(g).validate()
    assert exc.value.code == "EDUP_PRODUCER"


def test_const_tensor_without_data_raises() -> None:
    g = Graph()
    w = make_tensor("w", [2, 2])
    w.const = True
    g.add_tensor(w)
    with pytest.raises(ValidationError) as exc:
        GraphValidator(g).validate()
    assert exc.value.code == "ECONST_DATA"


def test_const_tensor_element_count_mismatch_raises() -> None:
    g = Graph()
    w = make_tensor("w", [2, 3])
    w.const = True
    w.data = np.zeros(4, dtype=np.float32)
    g.add_tensor(w)
    with pytest.raises(ValidationError) as exc:
        GraphValidator(g).validate()
    assert exc.value.code == "ECONST_DATA"


def test_cycle_detection_raises() -> None:
    # x -> n1 -> y; y -> n2 -> x (cycle)
    g = Graph()
    g.add_tensor(make_tensor("x", [1]))
    g.add_tensor(make_tensor("y", [1]))
    g.add_node(op_node("n1", "Id", ["x"], ["y"]))
    g.add_node(op_node("n2", "Id", ["y"], ["x"]))
    with pytest.raises(ValidationError) as exc:
        GraphValidator(g).validate()
    assert exc.value.code == "ECYCLE"


def test_out_of_order_nodes_are_not_a_cycle() -> None:
    # x -> b -> y -> a -> z, nodes listed out of order
    g = Graph()
    for t in ["x", "y", "z"]:
        g.add_tensor(make_tensor(t, [1]))
    g.add_node(op_node("a", "A", ["y"], ["z"]))
    g.add_node(op_node("b", "B", ["x"], ["y"]))
    GraphValidator(g).validate()  # should not raise
