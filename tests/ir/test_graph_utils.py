from __future__ import annotations

import numpy as np
import pytest

from tflower.ir import (
    Graph,
    GraphBuilder,
    Node,
    Tensor,
    build_consumer_map,
    summarize,
)


def t(name: str, shape: list[int]) -> Tensor:
    return Tensor(name=name, dtype="float32", shape=shape)


def test_consumer_map() -> None:
    # x -> A -> y -> B -> z
    g = Graph()
    g.add_tensor(t("x", [1]))
    g.add_tensor(t("y", [1]))
    g.add_tensor(t("z", [1]))
    g.add_node(Node("A", ["x"], ["y"]))
    g.add_node(Node("B", ["y"], ["z"]))

    c = build_consumer_map(g)

    assert "z" not in c
    assert c["x"] == [0]
    assert c["y"] == [1]


def test_builder_rejects_duplicate_names() -> None:
    b = GraphBuilder("g")
    b.create_node("conv")
    b.create_tensor("conv")
    with pytest.raises(ValueError):
        b.create_node("conv")
    with pytest.raises(ValueError):
        b.create_const_tensor("conv")


def test_builder_takes_const_buffer_without_copy() -> None:
    b = GraphBuilder("g")
    tensor = b.create_const_tensor("w")
    data = np.arange(6, dtype=np.float32).reshape(2, 3)
    b.set_const_buffer(tensor, data)
    b.set_tensor_dims(tensor, [2, 3])

    assert b.get_const_buffer(tensor) is data
    assert b.get_tensor_dims(tensor) == [2, 3]
    assert b.graph.get_tensor("w") is tensor
    assert tensor.const


def test_builder_graph_io_registration_is_idempotent() -> None:
    b = GraphBuilder("g")
    node = b.create_node("input")
    b.add_graph_input_node(node)
    b.add_graph_input_node(node)
    out = b.create_node("softmax")
    b.add_graph_output_node(out)
    assert b.graph.inputs == ["input"]
    assert b.graph.outputs == ["softmax"]


def test_summarize_counts_ops_and_unused_consts() -> None:
    b = GraphBuilder("net")
    x = b.create_node("x")
    xt = b.create_tensor("x")
    b.add_node_output_tensor(x, xt)
    b.set_node_op(x, b.create_operator("InputOp"))

    w = b.create_node("w")
    wt = b.create_const_tensor("w")
    b.set_const_buffer(wt, np.zeros(4, dtype=np.float32))
    b.set_tensor_size(wt, 16)
    b.add_node_output_tensor(w, wt)
    b.set_node_op(w, b.create_operator("Const"))

    summary = summarize(b.graph)
    assert summary["name"] == "net"
    assert summary["op_types"] == {"Const": 1, "InputOp": 1}
    assert summary["const_bytes"] == 16
    assert summary["unused_consts"] == ["w"]
