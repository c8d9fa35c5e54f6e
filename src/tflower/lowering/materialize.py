"""
Creation of target nodes and tensors for foreign nodes.

Consts become const tensors holding their decoded data, Placeholders become
graph inputs, and every other node gets an empty float32 NCHW output tensor
that its translator fills in later.
"""

from __future__ import annotations

from dataclasses import dataclass

import numpy as np

from tflower.errors import ConversionError
from tflower.foreign.graph import ForeignGraph, ForeignNode
from tflower.foreign.records import decode_tensor, get_shape, get_tensor, tensor_layout
from tflower.ir.builder import GraphBuilder
from tflower.ir.graph import Tensor


def materialize_const(node: ForeignNode, builder: GraphBuilder) -> Tensor:
    value = get_tensor(node.defs[0])
    data = decode_tensor(value, node_name=node.name)

    target = builder.create_node(node.name)
    tensor = builder.create_const_tensor(node.name, data.dtype.name)
    builder.set_tensor_dims(tensor, list(data.shape))
    builder.set_tensor_size(tensor, data.nbytes)
    builder.set_tensor_layout(tensor, tensor_layout(data.ndim))
    builder.set_const_buffer(tensor, data)
    builder.add_node_output_tensor(target, tensor)
    builder.set_node_op(target, builder.create_operator("Const"))

    node.target_node = target
    node.target_tensor = tensor
    return tensor


def _nhwc_to_nchw(dims: list[int]) -> list[int]:
    if len(dims) == 4:
        return [dims[0], dims[3], dims[1], dims[2]]
    if len(dims) == 3:
        return [dims[0], dims[2], dims[1]]
    return list(dims)


def placeholder_dims(node: ForeignNode) -> list[int] | None:
    """
    Input dims in NCHW order: from the target shape of an absorbed input
    reshape (the last Const record among the merged defs), else from the
    ``shape`` attribute. Absorbed Identity or Squeeze records carry no shape.
    """
    value = None
    for record in reversed(node.defs[1:]):
        if record.op == "Const":
            value = get_tensor(record, "value", None)
            if value is not None:
                break

    if value is None:
        shape = get_shape(node.defs[0], "shape", None)
        if shape is None or len(shape) > 4:
            return None
        return _nhwc_to_nchw(shape)

    target = [int(d) for d in decode_tensor(value, node_name=node.name).reshape(-1)]
    if len(target) == 4:
        target = [target[0], target[3], target[1], target[2]]
    return [1 if d == -1 else d for d in target]


def materialize_input(node: ForeignNode, builder: GraphBuilder) -> Tensor:
    target = builder.create_node(node.name)
    tensor = builder.create_tensor(node.name, "float32")
    builder.set_tensor_layout(tensor, "NCHW")

    dims = placeholder_dims(node)
    if dims is not None:
        builder.set_tensor_dims(tensor, dims)

    builder.add_node_output_tensor(target, tensor)
    builder.set_node_op(target, builder.create_operator("InputOp"))
    builder.add_graph_input_node(target)

    node.target_node = target
    node.target_tensor = tensor
    return tensor


def create_shell(node: ForeignNode, builder: GraphBuilder) -> Tensor:
    target = builder.create_node(node.name)
    tensor = builder.create_tensor(node.name, "float32")
    builder.set_tensor_layout(tensor, "NCHW")
    builder.add_node_output_tensor(target, tensor)

    node.target_node = target
    node.target_tensor = tensor
    return tensor


def create_preset_const(
    builder: GraphBuilder, name: str, dims: list[int], value: float, layout: str = "W"
) -> Tensor:
    """Add a const node filled with ``value``."""
    data = np.full(dims, value, dtype=np.float32)
    tensor = builder.create_const_tensor(name, "float32")
    builder.set_tensor_dims(tensor, dims)
    builder.set_tensor_size(tensor, data.nbytes)
    builder.set_tensor_layout(tensor, layout)
    builder.set_const_buffer(tensor, data)

    target = builder.create_node(name)
    builder.set_node_op(target, builder.create_operator("Const"))
    builder.add_node_output_tensor(target, tensor)
    return tensor


@dataclass
class LoweringContext:
    graph: ForeignGraph
    builder: GraphBuilder

    def tensor(self, node: ForeignNode) -> Tensor:
        """
        The output tensor of ``node``. Consts that were absorbed into a
        recurrent cell are materialized on first use.
        """
        if node.target_tensor is not None:
            return node.target_tensor
        if node.op == "Const":
            return materialize_const(node, self.builder)
        raise ConversionError(
            f"node '{node.name}' ({node.op}) has no target tensor",
            node_name=node.name,
        )
