from __future__ import annotations

from typing import Any

import numpy as np

from tflower.ir.graph import Graph, Node, Operator, Tensor


class GraphBuilder:
    """Incremental construction API over a target-IR Graph."""

    def __init__(self, name: str = "", graph: Graph | None = None) -> None:
        self.graph = graph if graph is not None else Graph(name=name)
        self._node_names: set[str] = {n.name for n in self.graph.nodes}

    # nodes

    def create_node(self, name: str) -> Node:
        if name in self._node_names:
            raise ValueError(f"Duplicate node name: {name}")
        node = Node(name=name)
        self.graph.add_node(node)
        self._node_names.add(name)
        return node

    def add_node_input_tensor(self, node: Node, tensor: Tensor) -> None:
        node.inputs.append(tensor.name)

    def add_node_output_tensor(self, node: Node, tensor: Tensor) -> None:
        node.outputs.append(tensor.name)

    def add_graph_input_node(self, node: Node) -> None:
        if node.name not in self.graph.inputs:
            self.graph.inputs.append(node.name)

    def add_graph_output_node(self, node: Node) -> None:
        if node.name not in self.graph.outputs:
            self.graph.outputs.append(node.name)

    # tensors

    def create_tensor(self, name: str, dtype: str = "float32") -> Tensor:
        if name in self.graph.tensors:
            raise ValueError(f"Duplicate tensor name: {name}")
        tensor = Tensor(name=name, dtype=dtype)
        self.graph.add_tensor(tensor)
        return tensor

    def create_const_tensor(self, name: str, dtype: str = "float32") -> Tensor:
        tensor = self.create_tensor(name, dtype)
        tensor.const = True
        return tensor

    def set_tensor_dims(self, tensor: Tensor, dims: list[int]) -> None:
        tensor.shape = [int(d) for d in dims]

    def get_tensor_dims(self, tensor: Tensor) -> list[int]:
        return list(tensor.shape)

    def set_tensor_layout(self, tensor: Tensor, layout: str | None) -> None:
        tensor.layout = layout

    def set_tensor_size(self, tensor: Tensor, size: int) -> None:
        tensor.size = int(size)

    def set_const_buffer(self, tensor: Tensor, data: np.ndarray) -> None:
        """Hand ``data`` over to the tensor; the array is not copied."""
        tensor.data = data

    def get_const_buffer(self, tensor: Tensor) -> np.ndarray | None:
        return tensor.data

    # operators

    def create_operator(self, op_type: str) -> Operator:
        return Operator(op_type=op_type)

    def set_operator_params(self, op: Operator, params: Any) -> None:
        op.params = params

    def set_node_op(self, node: Node, op: Operator) -> None:
        node.op = op
